"""CLI entry point for attribute schema and database utilities."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from dynattr.config import get_settings
from dynattr.errors import AttributeStoreError, SchemaValidationError
from dynattr.logging import setup_logging


def cmd_validate_schema(args: argparse.Namespace) -> int:
    """Validate an attribute schema YAML file."""
    from dynattr.schema import load_attribute_schema

    try:
        schema = load_attribute_schema(Path(args.schema))
    except SchemaValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Schema OK: {schema.name} v{schema.version}")
    print(f"  Attributes: {len(schema.attributes)}")
    for name, definition in schema.attributes.items():
        print(f"    {name}: {definition.type.value}")
    if args.json:
        print(json.dumps(schema.to_dict(), indent=2, default=str))
    return 0


async def _init_db(schema_path: Path | None) -> list[str]:
    from dynattr.schema import AttributeRegistry, load_attribute_schema
    from dynattr.stores.attribute_store import AttributeDefinitionStore
    from dynattr.stores.database import create_tables, dispose_engine, get_session_factory

    await create_tables()
    created: list[str] = []
    try:
        if schema_path is not None:
            schema = load_attribute_schema(schema_path)
            async with get_session_factory()() as session:
                store = AttributeDefinitionStore(session, AttributeRegistry())
                created = await store.create(schema.definitions())
                await session.commit()
    finally:
        await dispose_engine()
    return created


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create tables and store the definitions of an attribute schema."""
    settings = get_settings()
    schema_path = Path(args.schema) if args.schema else Path(settings.attribute_schema_path)
    if args.schema and not schema_path.exists():
        print(f"Error: file not found: {schema_path}", file=sys.stderr)
        return 1
    try:
        created = asyncio.run(_init_db(schema_path if schema_path.exists() else None))
    except AttributeStoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"Database ready: {settings.database_url}")
    print(f"  Attributes created: {len(created)}")
    return 0


async def _list_attributes() -> list[tuple[str, str]]:
    from dynattr.schema import AttributeRegistry
    from dynattr.stores.attribute_store import AttributeDefinitionStore
    from dynattr.stores.database import create_tables, dispose_engine, get_session_factory

    await create_tables()
    try:
        async with get_session_factory()() as session:
            definitions = await AttributeDefinitionStore(session, AttributeRegistry()).list_all()
    finally:
        await dispose_engine()
    return [(d.name, d.type.value) for d in definitions]


def cmd_list_attributes(args: argparse.Namespace) -> int:
    """Print the attribute definitions stored in the database."""
    rows = asyncio.run(_list_attributes())
    if args.json:
        print(json.dumps([{"name": n, "type": t} for n, t in rows], indent=2))
        return 0
    if not rows:
        print("No attributes defined.")
    for name, type_ in rows:
        print(f"{name}\t{type_}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dynattr",
        description="dynattr – typed runtime attributes for entities",
    )
    sub = parser.add_subparsers(dest="command")

    # validate-schema
    p_val = sub.add_parser("validate-schema", help="Validate an attribute schema YAML")
    p_val.add_argument("schema", help="Path to YAML schema file")
    p_val.add_argument("--json", action="store_true", help="Print parsed schema as JSON")
    p_val.set_defaults(func=cmd_validate_schema)

    # init-db
    p_init = sub.add_parser("init-db", help="Create tables and store attribute definitions")
    p_init.add_argument("--schema", default=None, help="Attribute schema YAML (default: settings path)")
    p_init.set_defaults(func=cmd_init_db)

    # list-attributes
    p_list = sub.add_parser("list-attributes", help="List stored attribute definitions")
    p_list.add_argument("--json", action="store_true")
    p_list.set_defaults(func=cmd_list_attributes)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(get_settings().log_level)
    if not hasattr(args, "func"):
        parser.print_help()
        return 2
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
