"""Exceptions raised by the attribute subsystem.

Everything derives from ``AttributeStoreError`` so callers of the repository
can catch one type per query or write.
"""

from __future__ import annotations

from typing import Any


class AttributeStoreError(Exception):
    """Base class for all dynattr errors."""


class TypeMismatchError(AttributeStoreError, ValueError):
    """A literal cannot be coerced to the attribute's declared type."""

    def __init__(self, name: str, type_: str, value: Any):
        self.name = name
        self.type = type_
        self.value = value
        super().__init__(f"Value {value!r} for attribute '{name}' cannot be coerced to type '{type_}'")


class UnknownAttributeError(AttributeStoreError, KeyError):
    """An ordering was requested on an attribute with no registered type."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Attribute '{self.name}' is not registered; cannot sort by it"


class AttributePathError(AttributeStoreError, ValueError):
    """A criteria field does not address a single top-level attribute."""


class AttributeTypeConflictError(AttributeStoreError):
    """An attribute name was re-registered with a different type."""

    def __init__(self, name: str, existing: str, requested: str):
        self.name = name
        self.existing = existing
        self.requested = requested
        super().__init__(
            f"Attribute '{name}' is already registered as '{existing}', cannot re-register as '{requested}'"
        )


class SchemaValidationError(AttributeStoreError):
    """Raised when an attribute schema YAML / dict is invalid."""


class EntityNotFoundError(AttributeStoreError, LookupError):
    """An update referenced an entity id that does not exist."""
