"""Attribute definition store: persists the runtime attribute schema."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dynattr.errors import AttributeTypeConflictError
from dynattr.logging import get_logger
from dynattr.models.documents import AttributeDefinition
from dynattr.models.enums import AttributeType
from dynattr.schema import AttributeRegistry, get_attribute_registry, resolve_type
from dynattr.stores.tables import AttributeRow

log = get_logger("attribute_store")


def _to_definition(row: AttributeRow) -> AttributeDefinition:
    return AttributeDefinition(
        id=row.id,
        name=row.name,
        type=AttributeType(row.type),
        description=row.description or "",
    )


class AttributeDefinitionStore:
    """Stores attribute definitions and keeps a registry in step with them.

    Definitions are only ever added; stored entity documents are never touched
    when a definition is created.
    """

    def __init__(self, session: AsyncSession, registry: AttributeRegistry | None = None):
        self._session = session
        self._registry = registry if registry is not None else get_attribute_registry()

    @property
    def registry(self) -> AttributeRegistry:
        return self._registry

    async def get(self, name: str) -> AttributeDefinition | None:
        stmt = select(AttributeRow).where(AttributeRow.name == name)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _to_definition(row) if row else None

    async def list_all(self) -> list[AttributeDefinition]:
        stmt = select(AttributeRow).order_by(AttributeRow.name)
        result = await self._session.execute(stmt)
        return [_to_definition(r) for r in result.scalars().all()]

    async def create(self, definitions: Iterable[AttributeDefinition]) -> list[str]:
        """Persist new definitions and register them. Returns the names created.

        A name that already exists with the same type is skipped; with a
        different type it raises ``AttributeTypeConflictError`` and nothing
        from the batch is registered.
        """
        pending: list[AttributeDefinition] = []
        known: list[AttributeDefinition] = []
        for definition in definitions:
            existing = await self.get(definition.name)
            if existing is None:
                existing = next((p for p in pending if p.name == definition.name), None)
            current = existing.type if existing is not None else self._registry.type_of(definition.name)
            if current is not None and current is not definition.type:
                raise AttributeTypeConflictError(definition.name, current.value, definition.type.value)
            if existing is not None:
                known.append(existing)
            else:
                pending.append(definition)

        for definition in pending:
            self._session.add(AttributeRow(
                id=str(definition.id),
                name=definition.name,
                type=definition.type.value,
                description=definition.description,
            ))
        await self._session.flush()

        self._registry.register_many([*known, *pending])
        if pending:
            log.info("attributes_created", names=[d.name for d in pending])
        return [d.name for d in pending]

    async def define(self, types: Mapping[str, str | AttributeType]) -> list[str]:
        """Shorthand for ``create()`` from a ``{name: type}`` mapping."""
        return await self.create(
            AttributeDefinition(name=name, type=resolve_type(type_))
            for name, type_ in types.items()
        )

    async def load_into(self, registry: AttributeRegistry | None = None) -> AttributeRegistry:
        """Register every stored definition in ``registry`` (default: this store's)."""
        registry = registry if registry is not None else self._registry
        definitions = await self.list_all()
        registry.register_many(definitions)
        log.debug("attributes_loaded", count=len(definitions))
        return registry
