"""Tests for the dynattr command line."""

from __future__ import annotations

import json

import pytest

from dynattr.cli import build_parser, main
from dynattr.config import reset_settings

SCHEMA = """\
name: catalog
version: "2.0"
attributes:
  colour: text
  "size.eu":
    type: integer
    description: EU size
"""


@pytest.fixture
def schema_file(tmp_path):
    path = tmp_path / "attributes.yaml"
    path.write_text(SCHEMA, encoding="utf-8")
    return path


@pytest.fixture
def sqlite_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DYNATTR_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("DYNATTR_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("DYNATTR_ATTRIBUTE_SCHEMA_PATH", str(tmp_path / "missing.yaml"))
    reset_settings()
    yield tmp_path
    reset_settings()


class TestValidateSchema:
    def test_valid_schema(self, schema_file, capsys):
        assert main(["validate-schema", str(schema_file)]) == 0
        out = capsys.readouterr().out
        assert "Schema OK: catalog v2.0" in out
        assert "size.eu: int" in out

    def test_json_output(self, schema_file, capsys):
        assert main(["validate-schema", str(schema_file), "--json"]) == 0
        out = capsys.readouterr().out
        parsed = json.loads(out[out.index("{"):])
        assert parsed["attributes"]["colour"]["type"] == "text"

    def test_invalid_schema(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("attributes:\n  price: money\n", encoding="utf-8")
        assert main(["validate-schema", str(path)]) == 1
        assert "price" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        assert main(["validate-schema", str(tmp_path / "nope.yaml")]) == 1
        assert "not found" in capsys.readouterr().err


class TestDatabaseCommands:
    def test_init_db_then_list(self, sqlite_env, schema_file, capsys):
        assert main(["init-db", "--schema", str(schema_file)]) == 0
        assert "Attributes created: 2" in capsys.readouterr().out

        assert main(["list-attributes", "--json"]) == 0
        rows = json.loads(capsys.readouterr().out)
        assert rows == [{"name": "colour", "type": "text"}, {"name": "size.eu", "type": "int"}]

    def test_init_db_is_repeatable(self, sqlite_env, schema_file, capsys):
        assert main(["init-db", "--schema", str(schema_file)]) == 0
        assert main(["init-db", "--schema", str(schema_file)]) == 0
        assert "Attributes created: 0" in capsys.readouterr().out

    def test_init_db_missing_schema(self, sqlite_env, capsys):
        assert main(["init-db", "--schema", str(sqlite_env / "absent.yaml")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_init_db_without_schema_file(self, sqlite_env, capsys):
        assert main(["init-db"]) == 0
        assert "Attributes created: 0" in capsys.readouterr().out

    def test_list_empty(self, sqlite_env, capsys):
        assert main(["list-attributes"]) == 0
        assert "No attributes defined." in capsys.readouterr().out


class TestParser:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 2
        assert "usage" in capsys.readouterr().out.lower()

    def test_subcommands(self):
        parser = build_parser()
        args = parser.parse_args(["init-db", "--schema", "x.yaml"])
        assert args.command == "init-db"
        assert args.schema == "x.yaml"
