"""Value coercion & comparison for declared attribute types.

Every comparison goes through ``coerce()``, a single function keyed on the
``AttributeType`` tag (``None`` = opaque), which turns a stored value or a
query literal into a canonical comparable form:

  text      → case-folded ``str``
  int/float → ``Decimal`` built from the exact decimal text (``10 == 10.0``)
  bool      → ``bool``
  datetime  → naive UTC ``datetime`` (missing time parts are midnight)
  json/None → canonical JSON text (sorted keys), i.e. structural equality
"""

from __future__ import annotations

import json
import math
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from dynattr.errors import TypeMismatchError
from dynattr.models.documents import AttributeDocument, MaybeDocument
from dynattr.models.enums import UNSET, AttributeType
from dynattr.schema import AttributeRegistry

_TRUE_LITERALS = {"true", "1"}
_FALSE_LITERALS = {"false", "0"}


# ── Per-type canonicalisation helpers ───────────────────

def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value.casefold()
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return str(value).casefold()
    raise TypeError(f"not text: {type(value).__name__}")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("non-finite float")
        # repr() is the shortest text that round-trips, so 0.1 stays 0.1
        return Decimal(repr(value))
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}") from None
    else:
        raise TypeError(f"not a number: {type(value).__name__}")
    if not number.is_finite():
        raise ValueError("non-finite number")
    return number


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_LITERALS:
            return True
        if lowered in _FALSE_LITERALS:
            return False
    raise ValueError(f"not a boolean: {value!r}")


def to_instant(value: Any) -> datetime:
    """Parse ``value`` into a naive UTC instant."""
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, date):
        instant = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        instant = datetime.fromisoformat(value.strip())
    else:
        raise TypeError(f"not a datetime: {type(value).__name__}")
    if instant.tzinfo is not None:
        instant = instant.astimezone(timezone.utc).replace(tzinfo=None)
    return instant


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=_json_default)


# ── Comparator ──────────────────────────────────────────

def coerce(type_: AttributeType | None, value: Any) -> Any:
    """Canonical comparable form of ``value`` under ``type_``.

    Raises ``ValueError`` / ``TypeError`` when ``value`` does not fit.
    """
    if type_ is AttributeType.TEXT:
        return _to_text(value)
    if type_ is AttributeType.INT or type_ is AttributeType.FLOAT:
        return _to_decimal(value)
    if type_ is AttributeType.BOOL:
        return _to_bool(value)
    if type_ is AttributeType.DATETIME:
        return to_instant(value)
    return canonical_json(value)


def coerce_literal(name: str, type_: AttributeType | None, value: Any) -> Any:
    """Coerce a query literal, raising ``TypeMismatchError`` when it does not fit."""
    try:
        return coerce(type_, value)
    except (TypeError, ValueError) as exc:
        raise TypeMismatchError(name, type_.value if type_ else "opaque", value) from exc


def coerce_stored(type_: AttributeType | None, value: Any) -> Any | None:
    """Coerce a stored value; ``None`` when it is null or not coercible."""
    if value is None:
        return None
    try:
        return coerce(type_, value)
    except (TypeError, ValueError):
        return None


def lookup(document: MaybeDocument, name: str) -> Any:
    """Top-level value of ``name``; ``UNSET`` when the key or document is absent."""
    if document is UNSET or document is None:
        return UNSET
    return document.get(name, UNSET)


def equals(type_: AttributeType | None, stored: Any, literal: Any) -> bool:
    """Compare a stored value to a raw literal under ``type_``.

    A ``None`` literal matches values that are explicitly null or absent
    (``UNSET``).  A literal that does not fit the type raises
    ``TypeMismatchError``.
    """
    if literal is None:
        return stored is UNSET or stored is None
    expected = coerce_literal("<literal>", type_, literal)
    return matches_canonical(type_, stored, expected)


def matches_canonical(type_: AttributeType | None, stored: Any, expected: Any) -> bool:
    """Compare a stored value to an already-coerced literal."""
    if stored is UNSET:
        return False
    actual = coerce_stored(type_, stored)
    return actual is not None and actual == expected


def compare(type_: AttributeType | None, left: Any, right: Any) -> int:
    """Three-way comparison of two values under ``type_`` (-1, 0, 1)."""
    a = coerce_literal("<left>", type_, left)
    b = coerce_literal("<right>", type_, right)
    return (a > b) - (a < b)


def sort_key(type_: AttributeType | None, stored: Any) -> Any | None:
    """Ordering key for a stored value; ``None`` sorts as missing."""
    if stored is UNSET:
        return None
    return coerce_stored(type_, stored)


# ── Storage encoding ────────────────────────────────────

def format_instant(value: Any) -> str:
    """Stored form of an instant: ``YYYY-MM-DDTHH:MM:SS.ffffff`` in UTC."""
    return to_instant(value).isoformat(timespec="microseconds")


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return format_instant(value)
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, UUID):
        return str(value)
    return value


def encode_document(document: AttributeDocument | None) -> AttributeDocument | None:
    """Make a caller-supplied document JSON-storable.

    ``datetime`` / ``date`` values become ISO-8601 UTC strings with microseconds,
    ``Decimal`` becomes ``int`` / ``float``; everything else is kept as is.
    """
    if document is None:
        return None
    return {name: _jsonable(value) for name, value in document.items()}


def decode_document(registry: AttributeRegistry, document: AttributeDocument | None) -> AttributeDocument | None:
    """Turn stored datetime strings back into ``datetime`` for datetime-typed keys."""
    if document is None:
        return None
    decoded: AttributeDocument = {}
    for name, value in document.items():
        if registry.type_of(name) is AttributeType.DATETIME and isinstance(value, str):
            instant = coerce_stored(AttributeType.DATETIME, value)
            if instant is not None:
                value = instant
        decoded[name] = value
    return decoded
