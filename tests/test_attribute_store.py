"""Tests for the DB-backed attribute definition store."""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dynattr.errors import AttributeTypeConflictError
from dynattr.models.documents import AttributeDefinition
from dynattr.models.enums import AttributeType
from dynattr.schema import AttributeRegistry
from dynattr.stores.attribute_store import AttributeDefinitionStore
from dynattr.stores.tables import AttributeRow


class TestAttributeDefinitionStore:
    @pytest.mark.asyncio
    async def test_create_persists_and_registers(self, db_session: AsyncSession, registry):
        store = AttributeDefinitionStore(db_session, registry)
        created = await store.create([
            AttributeDefinition(name="foo", type=AttributeType.TEXT, description="free text"),
            AttributeDefinition(name="foo.bar", type=AttributeType.INT),
        ])
        assert created == ["foo", "foo.bar"]
        assert registry.type_of("foo.bar") is AttributeType.INT

        stored = await store.get("foo")
        assert stored is not None
        assert stored.type is AttributeType.TEXT
        assert stored.description == "free text"

    @pytest.mark.asyncio
    async def test_define_from_mapping(self, db_session: AsyncSession, registry):
        store = AttributeDefinitionStore(db_session, registry)
        await store.define({"flag": "boolean", "when": "datetime"})
        assert [d.name for d in await store.list_all()] == ["flag", "when"]
        assert registry.type_of("when") is AttributeType.DATETIME

    @pytest.mark.asyncio
    async def test_same_definition_twice_is_skipped(self, db_session: AsyncSession, registry):
        store = AttributeDefinitionStore(db_session, registry)
        assert await store.define({"foo": "text"}) == ["foo"]
        assert await store.define({"foo": "text"}) == []

        rows = (await db_session.execute(select(AttributeRow))).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_duplicate_within_batch(self, db_session: AsyncSession, registry):
        store = AttributeDefinitionStore(db_session, registry)
        with pytest.raises(AttributeTypeConflictError):
            await store.create([
                AttributeDefinition(name="bar", type=AttributeType.INT),
                AttributeDefinition(name="bar", type=AttributeType.BOOL),
            ])
        assert registry.type_of("bar") is None

    @pytest.mark.asyncio
    async def test_conflict_with_stored_definition(self, db_session: AsyncSession, registry):
        store = AttributeDefinitionStore(db_session, registry)
        await store.define({"foo": "text"})
        with pytest.raises(AttributeTypeConflictError) as info:
            await store.define({"foo": "int"})
        assert info.value.existing == "text"
        assert (await store.get("foo")).type is AttributeType.TEXT

    @pytest.mark.asyncio
    async def test_conflict_with_registry_only_definition(self, db_session: AsyncSession):
        registry = AttributeRegistry({"foo": "float"})
        store = AttributeDefinitionStore(db_session, registry)
        with pytest.raises(AttributeTypeConflictError):
            await store.define({"foo": "text"})
        assert await store.get("foo") is None

    @pytest.mark.asyncio
    async def test_load_into_fresh_registry(self, db_session: AsyncSession, registry):
        store = AttributeDefinitionStore(db_session, registry)
        await store.define({"size": "int", "colour": "text"})

        fresh = await store.load_into(AttributeRegistry())
        assert fresh.names() == ["colour", "size"]
        assert fresh.type_of("size") is AttributeType.INT

    @pytest.mark.asyncio
    async def test_get_unknown(self, db_session: AsyncSession, registry):
        store = AttributeDefinitionStore(db_session, registry)
        assert await store.get("nope") is None
        assert await store.list_all() == []
