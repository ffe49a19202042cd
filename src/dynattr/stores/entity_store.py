"""Entity repository: attribute documents on top of the ``entities`` table.

Writes run every attribute patch through the Document Merger; reads and
searches resolve each entity's view against its direct parent before any
filter or sorting is evaluated.  All work happens inside the caller's
session, which is the single-writer scope for read-merge-write.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dynattr.config import get_settings
from dynattr.engine.coercion import decode_document, encode_document
from dynattr.engine.inheritance import resolve_views
from dynattr.engine.merger import changed_keys, merge
from dynattr.engine.query import AttributeQueryTranslator
from dynattr.errors import AttributePathError, EntityNotFoundError
from dynattr.logging import get_logger
from dynattr.models.documents import (
    Criteria,
    EntityRecord,
    EntityWrite,
    EqualsFilter,
    MaybeDocument,
    SearchResult,
    WrittenEvent,
)
from dynattr.models.enums import UNSET
from dynattr.schema import AttributeRegistry, get_attribute_registry
from dynattr.stores.tables import EntityRow

log = get_logger("entity_store")

# Plain columns that criteria may filter on, by field name
_COLUMN_FIELDS = {
    "id": "id",
    "name": "name",
    "parent_id": "parent_id",
    "parentId": "parent_id",
}

WriteInput = EntityWrite | Mapping[str, Any]


def _own(row: EntityRow) -> MaybeDocument:
    return UNSET if row.attributes is None else row.attributes


def _as_command(command: WriteInput) -> EntityWrite:
    if isinstance(command, EntityWrite):
        return command
    return EntityWrite.model_validate(command)


class EntityRepository:
    """Create, update and search entities carrying dynamic attributes.

    Usage:
        repo = EntityRepository(session, registry)
        await repo.create([{"id": parent_id, "attributes": {"foo": "bar"}},
                           {"id": child_id, "parentId": parent_id}])
        result = await repo.search(Criteria().add_filter("attributes.foo", "bar"))
        result.ids   # [parent_id, child_id] (the child inherits foo)
    """

    def __init__(
        self,
        session: AsyncSession,
        registry: AttributeRegistry | None = None,
        *,
        attributes_field: str | None = None,
    ):
        self._session = session
        self._registry = registry if registry is not None else get_attribute_registry()
        self._translator = AttributeQueryTranslator(
            self._registry,
            prefix=attributes_field or get_settings().attributes_field,
        )

    # ── Storage contract ────────────────────────────────
    async def _row(self, entity_id: str | UUID) -> EntityRow | None:
        stmt = select(EntityRow).where(EntityRow.id == str(entity_id))
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def _require_row(self, entity_id: str | UUID) -> EntityRow:
        row = await self._row(entity_id)
        if row is None:
            raise EntityNotFoundError(f"Entity '{entity_id}' does not exist")
        return row

    async def fetch_own(self, entity_id: str | UUID) -> MaybeDocument:
        """The entity's own stored document (``UNSET`` when it has none)."""
        return _own(await self._require_row(entity_id))

    async def fetch_parent(self, entity_id: str | UUID) -> MaybeDocument:
        """The direct parent's own document; ``UNSET`` for roots."""
        row = await self._require_row(entity_id)
        if row.parent_id is None:
            return UNSET
        parent = await self._row(row.parent_id)
        return UNSET if parent is None else _own(parent)

    async def write_own(self, entity_id: str | UUID, document: MaybeDocument) -> None:
        """Replace the entity's stored document as a whole."""
        row = await self._require_row(entity_id)
        row.attributes = None if document is UNSET else encode_document(document)
        row.updated_at = datetime.now(tz=timezone.utc)
        await self._session.flush()

    # ── Writes ──────────────────────────────────────────
    async def create(self, commands: Iterable[WriteInput]) -> WrittenEvent:
        payloads = [self._insert(_as_command(c)) for c in commands]
        await self._session.flush()
        log.info("entities_written", operation="create", count=len(payloads))
        return WrittenEvent(operation="create", payloads=payloads)

    async def update(self, commands: Iterable[WriteInput]) -> WrittenEvent:
        """Patch existing entities; an unknown id raises ``EntityNotFoundError``.

        Every id is resolved before any row is touched, so a failing batch
        leaves all of its entities unchanged.
        """
        batch = [(command, await self._require_row(command.id)) for command in map(_as_command, commands)]
        payloads = [self._patch(row, command) for command, row in batch]
        await self._session.flush()
        log.info("entities_written", operation="update", count=len(payloads))
        return WrittenEvent(operation="update", payloads=payloads)

    async def upsert(self, commands: Iterable[WriteInput]) -> WrittenEvent:
        payloads = []
        for command in map(_as_command, commands):
            row = await self._row(command.id)
            if row is None:
                payloads.append(self._insert(command))
                # flush so a later command in the batch can patch this one
                await self._session.flush()
            else:
                payloads.append(self._patch(row, command))
        await self._session.flush()
        log.info("entities_written", operation="upsert", count=len(payloads))
        return WrittenEvent(operation="upsert", payloads=payloads)

    def _insert(self, command: EntityWrite) -> dict[str, Any]:
        incoming = command.incoming_attributes()
        if incoming is not UNSET and incoming is not None:
            incoming = encode_document(incoming)
        document = merge(UNSET, incoming)
        self._session.add(EntityRow(
            id=str(command.id),
            parent_id=str(command.parent_id) if command.parent_id else None,
            name=command.name,
            attributes=None if document is UNSET else document,
        ))
        return self._payload(command)

    def _patch(self, row: EntityRow, command: EntityWrite) -> dict[str, Any]:
        incoming = command.incoming_attributes()
        if incoming is not UNSET:
            if incoming is not None:
                incoming = encode_document(incoming)
            previous = _own(row)
            merged = merge(previous, incoming)
            row.attributes = None if merged is UNSET else merged
            log.debug(
                "attributes_patched",
                entity_id=row.id,
                changed=sorted(changed_keys(previous, merged)),
                wiped=merged is UNSET,
            )
        if command.is_set("name"):
            row.name = command.name
        if command.is_set("parent_id"):
            row.parent_id = str(command.parent_id) if command.parent_id else None
        row.updated_at = datetime.now(tz=timezone.utc)
        return self._payload(command)

    def _payload(self, command: EntityWrite) -> dict[str, Any]:
        payload = command.payload()
        if payload.get("attributes") is not None:
            payload["attributes"] = decode_document(self._registry, encode_document(command.attributes))
        return payload

    # ── Reads ───────────────────────────────────────────
    async def get(self, entity_id: str | UUID) -> EntityRecord | None:
        return (await self.search(Criteria(ids=[entity_id]))).first()

    async def search(self, criteria: Criteria | None = None) -> SearchResult:
        """Run ``criteria`` against the resolved views of all candidates.

        Without sortings, candidates follow ``criteria.ids`` when given and
        ``created_at`` then id otherwise; rows written in one batch share a
        timestamp, so their relative order is unspecified.
        """
        criteria = criteria or Criteria()

        column_filters: list[EqualsFilter] = []
        attribute_filters: list[EqualsFilter] = []
        for flt in criteria.filters:
            if self._translator.is_attribute_field(flt.field):
                attribute_filters.append(flt)
            elif flt.field in _COLUMN_FIELDS:
                column_filters.append(flt)
            else:
                raise AttributePathError(f"Unknown criteria field '{flt.field}'")

        stmt = select(EntityRow).order_by(EntityRow.created_at, EntityRow.id)
        if criteria.ids:
            stmt = stmt.where(EntityRow.id.in_([str(i) for i in criteria.ids]))
        rows = list((await self._session.execute(stmt)).scalars().all())
        if criteria.ids:
            position = {str(i): n for n, i in enumerate(criteria.ids)}
            rows.sort(key=lambda r: position[r.id])

        rows = [r for r in rows if all(self._column_matches(r, f) for f in column_filters)]
        by_id = {r.id: r for r in rows}
        views = resolve_views(
            {r.id: _own(r) for r in rows},
            {r.id: r.parent_id for r in rows},
            await self._parent_documents(rows),
        )

        ordered = self._translator.apply(list(by_id), views, attribute_filters, criteria.sortings)
        log.debug("search_completed", candidates=len(rows), matched=len(ordered))
        return SearchResult(entities=[self._record(by_id[key], views[key]) for key in ordered])

    async def _parent_documents(self, rows: list[EntityRow]) -> dict[str, MaybeDocument]:
        """Own documents of the direct parents of ``rows``, loading absent parents."""
        loaded = {r.id: r for r in rows}
        parent_ids = {r.parent_id for r in rows if r.parent_id is not None}
        missing = parent_ids - loaded.keys()
        if missing:
            stmt = select(EntityRow).where(EntityRow.id.in_(missing))
            for parent in (await self._session.execute(stmt)).scalars().all():
                loaded[parent.id] = parent
        return {pid: _own(loaded[pid]) for pid in parent_ids if pid in loaded}

    @staticmethod
    def _column_matches(row: EntityRow, flt: EqualsFilter) -> bool:
        value = getattr(row, _COLUMN_FIELDS[flt.field])
        if flt.value is None:
            return value is None
        return value is not None and str(value) == str(flt.value)

    def _record(self, row: EntityRow, view: MaybeDocument) -> EntityRecord:
        return EntityRecord(
            id=row.id,
            parent_id=row.parent_id,
            name=row.name,
            attributes=decode_document(self._registry, row.attributes),
            view_attributes=None if view is UNSET else decode_document(self._registry, view),
        )
