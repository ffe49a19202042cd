"""Attribute documents, write commands and search criteria / results."""

from __future__ import annotations

from typing import Any, Iterator, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from .enums import UNSET, AttributeType, SortDirection, _Unset

# A flat mapping of attribute name → value.  Values nested below the top level
# are never interpreted by the type system.
AttributeDocument = dict[str, Any]

# ``UNSET`` is an absent document (SQL NULL); ``{}`` is a present, empty one.
MaybeDocument = Union[AttributeDocument, _Unset]


# ── Attribute Definitions ───────────────────────────────
class AttributeDefinition(BaseModel):
    """A runtime-declared attribute: its name and declared type."""
    id: UUID = Field(default_factory=uuid4)
    name: str = Field(min_length=1)           # may contain a literal "."
    type: AttributeType
    description: str = ""


# ── Write Commands ──────────────────────────────────────
class EntityWrite(BaseModel):
    """One entity in a create / update / upsert batch.

    Only the fields the caller actually passed count as written: an omitted
    ``attributes`` leaves the stored document untouched, ``None`` wipes it and
    ``{}`` resets it to an empty document.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: UUID = Field(default_factory=uuid4)
    parent_id: UUID | None = Field(default=None, alias="parentId")
    name: str | None = None
    attributes: AttributeDocument | None = None

    def is_set(self, field: str) -> bool:
        return field in self.model_fields_set

    def incoming_attributes(self) -> AttributeDocument | None | _Unset:
        """Return the attributes patch, ``UNSET`` when the field was omitted."""
        if not self.is_set("attributes"):
            return UNSET
        return self.attributes

    def payload(self) -> dict[str, Any]:
        """The written fields, keyed the way callers supplied them."""
        data = self.model_dump(exclude_unset=True)
        data["id"] = str(self.id)
        if "parent_id" in data and data["parent_id"] is not None:
            data["parent_id"] = str(data["parent_id"])
        return data


# ── Criteria ────────────────────────────────────────────
class EqualsFilter(BaseModel):
    field: str
    value: Any = None


class FieldSorting(BaseModel):
    field: str
    direction: SortDirection = SortDirection.ASCENDING

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESCENDING


class Criteria(BaseModel):
    """Search request: optional id restriction, equality filters and sortings."""
    ids: list[UUID] = Field(default_factory=list)
    filters: list[EqualsFilter] = Field(default_factory=list)
    sortings: list[FieldSorting] = Field(default_factory=list)

    def add_filter(self, field: str, value: Any) -> Criteria:
        self.filters.append(EqualsFilter(field=field, value=value))
        return self

    def add_sorting(self, field: str, direction: SortDirection | str = SortDirection.ASCENDING) -> Criteria:
        self.sortings.append(FieldSorting(field=field, direction=SortDirection(direction)))
        return self


# ── Results ─────────────────────────────────────────────
class EntityRecord(BaseModel):
    """An entity as read back: raw own document plus the inherited view.

    ``attributes`` is ``None`` when the entity has no document of its own.
    """
    id: str
    parent_id: str | None = None
    name: str | None = None
    attributes: AttributeDocument | None = None
    view_attributes: AttributeDocument | None = None


class SearchResult(BaseModel):
    entities: list[EntityRecord] = Field(default_factory=list)

    @property
    def ids(self) -> list[str]:
        return [e.id for e in self.entities]

    def first(self) -> EntityRecord | None:
        return self.entities[0] if self.entities else None

    def last(self) -> EntityRecord | None:
        return self.entities[-1] if self.entities else None

    def get(self, entity_id: str | UUID) -> EntityRecord | None:
        key = str(entity_id)
        for e in self.entities:
            if e.id == key:
                return e
        return None

    def __len__(self) -> int:
        return len(self.entities)

    def __iter__(self) -> Iterator[EntityRecord]:  # type: ignore[override]
        return iter(self.entities)


class WrittenEvent(BaseModel):
    """Outcome of a write batch: one payload per written entity."""
    operation: str                            # create | update | upsert
    payloads: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def ids(self) -> list[str]:
        return [p["id"] for p in self.payloads]
