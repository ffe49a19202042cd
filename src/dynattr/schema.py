"""Attribute Type Registry: which runtime attribute names exist and their types.

Provides:
  1. ``AttributeRegistry``: name → ``AttributeType`` with lazy loading
     (init-on-first-use) and explicit invalidation
  2. YAML / dict attribute schema parsing with error collection
  3. A process-wide registry singleton for application code; tests build
     isolated ``AttributeRegistry()`` instances instead
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from dynattr.errors import AttributeTypeConflictError, SchemaValidationError
from dynattr.logging import get_logger
from dynattr.models.documents import AttributeDefinition
from dynattr.models.enums import AttributeType

log = get_logger("schema")

# ── Type names accepted in schema files → AttributeType ──
_TYPE_MAP: dict[str, AttributeType] = {
    "string": AttributeType.TEXT,
    "str": AttributeType.TEXT,
    "text": AttributeType.TEXT,
    "int": AttributeType.INT,
    "integer": AttributeType.INT,
    "float": AttributeType.FLOAT,
    "number": AttributeType.FLOAT,
    "bool": AttributeType.BOOL,
    "boolean": AttributeType.BOOL,
    "datetime": AttributeType.DATETIME,
    "date": AttributeType.DATETIME,
    "json": AttributeType.JSON,
    "dict": AttributeType.JSON,
    "list": AttributeType.JSON,
    "object": AttributeType.JSON,
}


def resolve_type(value: str | AttributeType) -> AttributeType:
    """Map a type name (or alias) to its ``AttributeType``."""
    if isinstance(value, AttributeType):
        return value
    try:
        return _TYPE_MAP[str(value).strip().lower()]
    except KeyError:
        raise ValueError(
            f"unknown attribute type '{value}'. Allowed: {', '.join(_TYPE_MAP)}"
        ) from None


DefinitionLoader = Callable[[], Iterable[AttributeDefinition]]


# ── Registry ────────────────────────────────────────────

class AttributeRegistry:
    """Maps attribute names to declared types.

    Definitions from ``loader`` are fetched on first use and cached until
    ``invalidate()``; names added through ``register()`` extend the cache and
    survive invalidation.  A reload that gives a registered name another type
    raises ``AttributeTypeConflictError`` and keeps nothing from that load.
    Reads are safe from any thread, registrations must be serialized by the
    caller.

    Usage:
        registry = AttributeRegistry({"foo": "text", "size": AttributeType.INT})
        registry.type_of("size")      # AttributeType.INT
        registry.type_of("unknown")   # None → opaque
    """

    def __init__(
        self,
        definitions: Mapping[str, str | AttributeType] | Iterable[AttributeDefinition] | None = None,
        *,
        loader: DefinitionLoader | None = None,
    ):
        self._loader = loader
        self._loaded: dict[str, AttributeType] | None = None
        self._registered: dict[str, AttributeType] = {}
        self._merged: dict[str, AttributeType] | None = None
        if definitions is not None:
            self.register_many(definitions)

    # ── Cache lifecycle ────────────────────────────────
    def _load(self) -> dict[str, AttributeType]:
        loaded: dict[str, AttributeType] = {}
        if self._loader is not None:
            for definition in self._loader():
                loaded[definition.name] = definition.type
            log.debug("attribute_definitions_loaded", count=len(loaded))
        return loaded

    def _types(self) -> dict[str, AttributeType]:
        if self._merged is None:
            loaded = self._loaded if self._loaded is not None else self._load()
            for name, registered in self._registered.items():
                found = loaded.get(name)
                if found is not None and found is not registered:
                    raise AttributeTypeConflictError(name, registered.value, found.value)
            self._loaded = loaded
            self._merged = {**loaded, **self._registered}
        return self._merged

    def invalidate(self) -> None:
        """Drop loaded definitions; the loader runs again on next access."""
        self._loaded = None
        self._merged = None

    # ── Public API ─────────────────────────────────────
    def register(self, name: str, type_: str | AttributeType) -> AttributeType:
        """Declare ``name`` with ``type_``.

        Registering an existing name with the same type is a no-op; with a
        different type it raises ``AttributeTypeConflictError``.
        """
        if not name:
            raise ValueError("attribute name must be a non-empty string")
        attr_type = resolve_type(type_)
        existing = self._types().get(name)
        if existing is not None:
            if existing is not attr_type:
                raise AttributeTypeConflictError(name, existing.value, attr_type.value)
            return existing
        self._registered[name] = attr_type
        self._types()[name] = attr_type
        log.info("attribute_registered", name=name, type=attr_type.value)
        return attr_type

    def register_many(
        self,
        definitions: Mapping[str, str | AttributeType] | Iterable[AttributeDefinition],
    ) -> None:
        if isinstance(definitions, Mapping):
            items = list(definitions.items())
        else:
            items = [(d.name, d.type) for d in definitions]
        for name, type_ in items:
            self.register(name, type_)

    def type_of(self, name: str) -> AttributeType | None:
        """Declared type of ``name``; ``None`` means opaque / untyped."""
        return self._types().get(name)

    def names(self) -> list[str]:
        return sorted(self._types())

    def definitions(self) -> list[AttributeDefinition]:
        return [AttributeDefinition(name=n, type=t) for n, t in sorted(self._types().items())]

    def __contains__(self, name: object) -> bool:
        return name in self._types()

    def __len__(self) -> int:
        return len(self._types())


# ── Schema files ────────────────────────────────────────

class AttributeSchema(BaseModel):
    """Parsed attribute schema file."""
    name: str = "default"
    version: str = "1.0"
    description: str = ""
    attributes: dict[str, AttributeDefinition] = Field(default_factory=dict)

    def definitions(self) -> list[AttributeDefinition]:
        return list(self.attributes.values())

    def to_dict(self) -> dict[str, Any]:
        """Serialise the schema to a plain dict."""
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "attributes": {
                name: {"type": d.type.value, "description": d.description}
                for name, d in self.attributes.items()
            },
        }


def load_attribute_schema(path: str | Path) -> AttributeSchema:
    """Load and parse an attribute schema YAML file.

    Raises ``SchemaValidationError`` on a missing file or invalid content.
    """
    path = Path(path)
    if not path.exists():
        raise SchemaValidationError(f"Attribute schema file not found: {path}")

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    if not isinstance(raw, dict):
        raise SchemaValidationError("Attribute schema must be a YAML mapping at the top level")

    return _parse_schema(raw, source_path=str(path))


def parse_attribute_dict(raw: dict[str, Any]) -> AttributeSchema:
    """Parse a schema from a plain dict (useful for tests / programmatic use)."""
    if not isinstance(raw, dict):
        raise SchemaValidationError("Schema input must be a mapping (dict), got " + type(raw).__name__)
    return _parse_schema(raw, source_path="<dict>")


def _parse_schema(raw: dict[str, Any], *, source_path: str) -> AttributeSchema:
    errors: list[str] = []

    raw_attributes = raw.get("attributes", {})
    if raw_attributes is None:
        raw_attributes = {}
    if not isinstance(raw_attributes, dict):
        errors.append("'attributes' must be a mapping")
        raw_attributes = {}

    attributes: dict[str, AttributeDefinition] = {}
    for attr_name, attr_def in raw_attributes.items():
        attr_name = str(attr_name)
        if not attr_name.strip():
            errors.append("Attribute names must be non-empty")
            continue

        # Short form: ``name: type``
        if isinstance(attr_def, dict):
            type_name = attr_def.get("type", "text")
            description = attr_def.get("description", "")
        else:
            type_name = attr_def
            description = ""

        try:
            attr_type = resolve_type(type_name)
        except ValueError as exc:
            errors.append(f"Attribute '{attr_name}': {exc}")
            continue

        attributes[attr_name] = AttributeDefinition(
            name=attr_name,
            type=attr_type,
            description=description or "",
        )

    if errors:
        raise SchemaValidationError(
            f"Schema validation failed ({source_path}):\n  - " + "\n  - ".join(errors)
        )

    schema = AttributeSchema(
        name=raw.get("name", "default"),
        version=str(raw.get("version", "1.0")),
        description=raw.get("description", ""),
        attributes=attributes,
    )
    log.info(
        "attribute_schema_loaded",
        source=source_path,
        name=schema.name,
        attributes=len(attributes),
    )
    return schema


# ── Singleton registry management ───────────────────────

_active_registry: AttributeRegistry | None = None


def get_attribute_registry() -> AttributeRegistry:
    """Return the process-wide registry (created on first call).

    Its loader reads the ``attribute_schema_path`` setting; a missing file
    yields an empty registry.
    """
    global _active_registry
    if _active_registry is not None:
        return _active_registry

    from dynattr.config import get_settings
    path = Path(get_settings().attribute_schema_path)

    def _load_from_settings() -> list[AttributeDefinition]:
        if not path.exists():
            log.warning("attribute_schema_not_found", path=str(path))
            return []
        return load_attribute_schema(path).definitions()

    _active_registry = AttributeRegistry(loader=_load_from_settings)
    return _active_registry


def set_attribute_registry(registry: AttributeRegistry) -> None:
    """Override the process-wide registry (useful for tests)."""
    global _active_registry
    _active_registry = registry


def reset_attribute_registry() -> None:
    """Forget the process-wide registry so it is rebuilt on next access."""
    global _active_registry
    _active_registry = None
