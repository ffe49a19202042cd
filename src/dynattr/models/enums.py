"""Shared enumerations and sentinels."""

from __future__ import annotations

from enum import Enum


# ── Attribute Types ──────────────────────────────────────
class AttributeType(str, Enum):
    """Declared type of a runtime attribute."""
    TEXT = "text"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    DATETIME = "datetime"
    JSON = "json"               # arbitrary structured value, compared structurally


# ── Sorting ──────────────────────────────────────────────
class SortDirection(str, Enum):
    ASCENDING = "ASC"
    DESCENDING = "DESC"


# ── Unset ────────────────────────────────────────────────
class _Unset(Enum):
    """Marks a document (or write field) that is absent, as opposed to ``None`` or ``{}``."""
    UNSET = "unset"

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset.UNSET
