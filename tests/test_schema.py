"""Tests for the attribute type registry and attribute schema files."""

from __future__ import annotations

from pathlib import Path

import pytest

from dynattr.errors import AttributeTypeConflictError, SchemaValidationError
from dynattr.models.documents import AttributeDefinition
from dynattr.models.enums import AttributeType
from dynattr.schema import (
    AttributeRegistry,
    get_attribute_registry,
    load_attribute_schema,
    parse_attribute_dict,
    reset_attribute_registry,
    resolve_type,
    set_attribute_registry,
)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
EXAMPLE_SCHEMA = PROJECT_ROOT / "attributes.yaml"


class TestResolveType:
    @pytest.mark.parametrize("alias,expected", [
        ("string", AttributeType.TEXT),
        ("TEXT", AttributeType.TEXT),
        ("integer", AttributeType.INT),
        ("number", AttributeType.FLOAT),
        ("boolean", AttributeType.BOOL),
        ("date", AttributeType.DATETIME),
        ("dict", AttributeType.JSON),
        (AttributeType.BOOL, AttributeType.BOOL),
    ])
    def test_aliases(self, alias, expected):
        assert resolve_type(alias) is expected

    def test_unknown(self):
        with pytest.raises(ValueError, match="unknown attribute type"):
            resolve_type("money")


class TestAttributeRegistry:
    def test_unregistered_name_is_opaque(self, registry):
        assert registry.type_of("foo") is None
        assert "foo" not in registry

    def test_register_and_lookup(self, registry):
        registry.register("foo", "text")
        registry.register("foo.bar", AttributeType.INT)
        assert registry.type_of("foo") is AttributeType.TEXT
        assert registry.type_of("foo.bar") is AttributeType.INT
        assert registry.type_of("foo.") is None
        assert registry.names() == ["foo", "foo.bar"]
        assert len(registry) == 2

    def test_register_is_idempotent(self, registry):
        registry.register("foo", "text")
        registry.register("foo", "string")
        assert len(registry) == 1

    def test_conflicting_type_is_rejected(self, registry):
        registry.register("foo", "text")
        with pytest.raises(AttributeTypeConflictError) as info:
            registry.register("foo", "int")
        assert info.value.existing == "text"
        assert info.value.requested == "int"
        assert registry.type_of("foo") is AttributeType.TEXT

    def test_empty_name_is_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.register("", "text")

    def test_construct_from_definitions(self):
        registry = AttributeRegistry([AttributeDefinition(name="size", type=AttributeType.INT)])
        assert registry.type_of("size") is AttributeType.INT
        assert [d.name for d in registry.definitions()] == ["size"]

    def test_loader_runs_lazily_once(self):
        calls = []

        def loader():
            calls.append(1)
            return [AttributeDefinition(name="foo", type=AttributeType.TEXT)]

        registry = AttributeRegistry(loader=loader)
        assert calls == []
        assert registry.type_of("foo") is AttributeType.TEXT
        assert registry.type_of("bar") is None
        assert calls == [1]

    def test_invalidate_reloads_and_keeps_registrations(self):
        source = [AttributeDefinition(name="foo", type=AttributeType.TEXT)]
        registry = AttributeRegistry(loader=lambda: list(source))
        registry.register("local", "bool")
        source.append(AttributeDefinition(name="later", type=AttributeType.INT))
        assert registry.type_of("later") is None

        registry.invalidate()
        assert registry.type_of("later") is AttributeType.INT
        assert registry.type_of("local") is AttributeType.BOOL

    def test_register_conflicts_with_loaded_definition(self):
        registry = AttributeRegistry(loader=lambda: [AttributeDefinition(name="foo", type=AttributeType.TEXT)])
        with pytest.raises(AttributeTypeConflictError):
            registry.register("foo", "float")

    def test_reload_conflicting_with_registration(self):
        source: list[AttributeDefinition] = []
        registry = AttributeRegistry(loader=lambda: list(source))
        registry.register("size", "int")
        source.append(AttributeDefinition(name="size", type=AttributeType.TEXT))
        source.append(AttributeDefinition(name="colour", type=AttributeType.TEXT))

        registry.invalidate()
        with pytest.raises(AttributeTypeConflictError) as info:
            registry.type_of("size")
        assert info.value.existing == "int"
        assert info.value.requested == "text"

        source[:] = [AttributeDefinition(name="colour", type=AttributeType.TEXT)]
        registry.invalidate()
        assert registry.type_of("size") is AttributeType.INT
        assert registry.names() == ["colour", "size"]

    def test_lookups_reuse_the_merged_cache(self):
        calls = []

        def loader():
            calls.append(1)
            return [AttributeDefinition(name="foo", type=AttributeType.TEXT)]

        registry = AttributeRegistry(loader=loader)
        registry.register("bar", "int")
        merged = registry._types()
        for _ in range(3):
            assert registry.type_of("foo") is AttributeType.TEXT
        assert registry._types() is merged
        assert calls == [1]

        registry.register("baz", "bool")
        assert registry.type_of("baz") is AttributeType.BOOL
        assert registry.type_of("foo") is AttributeType.TEXT
        assert calls == [1]


class TestSchemaParsing:
    def test_short_and_long_form(self):
        schema = parse_attribute_dict({
            "name": "catalog",
            "version": 2,
            "attributes": {
                "colour": "text",
                "size.eu": {"type": "integer", "description": "EU size"},
            },
        })
        assert schema.name == "catalog"
        assert schema.version == "2"
        assert schema.attributes["colour"].type is AttributeType.TEXT
        assert schema.attributes["size.eu"].type is AttributeType.INT
        assert schema.attributes["size.eu"].description == "EU size"

    def test_missing_type_defaults_to_text(self):
        schema = parse_attribute_dict({"attributes": {"note": {"description": "free text"}}})
        assert schema.attributes["note"].type is AttributeType.TEXT

    def test_errors_are_collected(self):
        with pytest.raises(SchemaValidationError) as info:
            parse_attribute_dict({"attributes": {"a": "money", "b": {"type": "blob"}}})
        message = str(info.value)
        assert "'a'" in message
        assert "'b'" in message

    def test_attributes_must_be_a_mapping(self):
        with pytest.raises(SchemaValidationError):
            parse_attribute_dict({"attributes": ["foo"]})

    def test_non_dict_input(self):
        with pytest.raises(SchemaValidationError):
            parse_attribute_dict(["not", "a", "dict"])  # type: ignore[arg-type]

    def test_to_dict(self):
        schema = parse_attribute_dict({"attributes": {"flag": "bool"}})
        assert schema.to_dict()["attributes"] == {"flag": {"type": "bool", "description": ""}}

    def test_load_example_file(self):
        schema = load_attribute_schema(EXAMPLE_SCHEMA)
        registry = AttributeRegistry(schema.definitions())
        assert registry.type_of("size.eu") is AttributeType.INT
        assert registry.type_of("dimensions") is AttributeType.JSON

    def test_missing_file(self, tmp_path):
        with pytest.raises(SchemaValidationError, match="not found"):
            load_attribute_schema(tmp_path / "nope.yaml")

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- foo\n- bar\n", encoding="utf-8")
        with pytest.raises(SchemaValidationError):
            load_attribute_schema(path)


class TestSingletonRegistry:
    def setup_method(self):
        reset_attribute_registry()

    def teardown_method(self):
        reset_attribute_registry()

    def test_set_and_get(self):
        registry = AttributeRegistry({"foo": "text"})
        set_attribute_registry(registry)
        assert get_attribute_registry() is registry

    def test_loads_from_configured_file(self, monkeypatch, tmp_path):
        from dynattr.config import reset_settings

        path = tmp_path / "attrs.yaml"
        path.write_text("attributes:\n  flag: bool\n", encoding="utf-8")
        monkeypatch.setenv("DYNATTR_ATTRIBUTE_SCHEMA_PATH", str(path))
        reset_settings()
        try:
            registry = get_attribute_registry()
            assert registry.type_of("flag") is AttributeType.BOOL
            assert get_attribute_registry() is registry
        finally:
            reset_settings()

    def test_missing_configured_file_gives_empty_registry(self, monkeypatch, tmp_path):
        from dynattr.config import reset_settings

        monkeypatch.setenv("DYNATTR_ATTRIBUTE_SCHEMA_PATH", str(tmp_path / "absent.yaml"))
        reset_settings()
        try:
            assert len(get_attribute_registry()) == 0
        finally:
            reset_settings()
