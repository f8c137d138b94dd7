"""Tests for the schema-crud CLI."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from rich.console import Console

from schema_crud.cli import build_parser, main
from schema_crud.schema.introspector import ColumnInfo, TableInfo


@pytest.fixture
def console(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Console:
    """Recording console; cwd moved so no stray config file is picked up."""
    recording = Console(record=True, width=200)
    monkeypatch.setattr("schema_crud.cli.console", recording)
    monkeypatch.chdir(tmp_path)
    return recording


def _write_config(tmp_path: Path, schema_store: Path) -> Path:
    path = tmp_path / "engine.toml"
    path.write_text(
        f"""
[schema]
path = "{schema_store.as_posix()}"
default_connection = "main"

[connections.main]
url = "postgresql://u:p@localhost/app"
description = "Primary database"

[connections.reporting]
url = "postgresql://u:p@replica/app"
""",
        encoding="utf-8",
    )
    return path


# ============================================================================
# Test: Parser
# ============================================================================


class TestParser:
    """Verify argument parsing."""

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_show_options(self) -> None:
        args = build_parser().parse_args(["show", "users", "--context", "list,form", "--related"])
        assert args.model == "users"
        assert args.context == "list,form"
        assert args.related is True
        assert args.related_context == "list"

    def test_generate_defaults(self) -> None:
        args = build_parser().parse_args(["generate", "users"])
        assert args.db_schema == "public"
        assert args.force is False


# ============================================================================
# Test: Commands
# ============================================================================


class TestValidateCommand:
    """Verify ``validate``."""

    def test_valid(self, console: Console, schema_store: Path) -> None:
        assert main(["--schema-path", str(schema_store), "validate", "users"]) == 0
        output = console.export_text()
        assert "users" in output
        assert "created_at" in output
        assert "roles" in output

    def test_connection_qualified(self, console: Console, schema_store: Path) -> None:
        assert main(["--schema-path", str(schema_store), "validate", "users@db1"]) == 0
        assert "app_users" in console.export_text()

    def test_missing(self, console: Console, schema_store: Path) -> None:
        assert main(["--schema-path", str(schema_store), "validate", "widgets"]) == 1
        assert "widgets" in console.export_text()

    def test_invalid_name(self, console: Console, schema_store: Path) -> None:
        assert main(["--schema-path", str(schema_store), "validate", "users-table"]) == 1


class TestShowCommand:
    """Verify ``show``."""

    def test_list_context(self, console: Console, schema_store: Path) -> None:
        assert main(["--schema-path", str(schema_store), "show", "users", "--context", "list"]) == 0
        view = json.loads(console.export_text())
        assert set(view["fields"]) == {"name", "email", "active"}

    def test_related(self, console: Console, schema_store: Path) -> None:
        argv = ["--schema-path", str(schema_store), "show", "users", "--context", "detail", "--related"]
        assert main(argv) == 0
        view = json.loads(console.export_text())
        assert set(view["related_schemas"]) == {"roles", "permissions"}


class TestListCommand:
    """Verify ``list``."""

    def test_lists_models(self, console: Console, schema_store: Path) -> None:
        assert main(["--schema-path", str(schema_store), "list"]) == 0
        output = console.export_text()
        for model in ("users", "roles", "permissions"):
            assert model in output

    def test_empty_store(self, console: Console, tmp_path: Path) -> None:
        assert main(["--schema-path", str(tmp_path / "empty"), "list"]) == 0
        assert "No schema documents" in console.export_text()


class TestConnectionsCommand:
    """Verify ``connections``."""

    def test_lists_profiles(self, console: Console, tmp_path: Path, schema_store: Path) -> None:
        config = _write_config(tmp_path, schema_store)
        assert main(["--config", str(config), "connections"]) == 0
        output = console.export_text()
        assert "main" in output
        assert "reporting" in output
        assert "Primary database" in output

    def test_missing_config(self, console: Console, tmp_path: Path) -> None:
        assert main(["--config", str(tmp_path / "missing.toml"), "connections"]) == 1

    def test_no_profiles(self, console: Console) -> None:
        assert main(["connections"]) == 0
        assert "No connections configured" in console.export_text()


class TestGenerateCommand:
    """Verify ``generate`` with the introspector mocked."""

    @pytest.fixture
    def introspector(self) -> MagicMock:
        table = TableInfo(
            name="tags",
            columns={
                "id": ColumnInfo(name="id", data_type="integer", is_nullable=False),
                "name": ColumnInfo(name="name", data_type="character varying", is_nullable=False),
            },
            primary_key=["id"],
        )
        instance = MagicMock()
        instance.__enter__.return_value.introspect_table.return_value = table
        with patch("schema_crud.cli.SchemaIntrospector", return_value=instance) as cls:
            yield cls

    def test_writes_document(
        self, console: Console, tmp_path: Path, schema_store: Path, introspector: MagicMock
    ) -> None:
        config = _write_config(tmp_path, schema_store)
        output = tmp_path / "drafts"

        assert main(["--config", str(config), "generate", "tags", "--output", str(output)]) == 0

        introspector.assert_called_once_with("postgresql://u:p@localhost/app")
        document = json.loads((output / "tags.json").read_text(encoding="utf-8"))
        assert document["model"] == "tags"
        assert set(document["fields"]) == {"id", "name"}

    def test_refuses_overwrite(
        self, console: Console, tmp_path: Path, schema_store: Path, introspector: MagicMock
    ) -> None:
        config = _write_config(tmp_path, schema_store)
        argv = ["--config", str(config), "generate", "users", "--output", str(schema_store)]

        assert main(argv) == 1
        assert "--force" in console.export_text()
        assert main([*argv, "--force"]) == 0

    def test_unknown_connection(self, console: Console, tmp_path: Path, schema_store: Path) -> None:
        config = _write_config(tmp_path, schema_store)
        assert main(["--config", str(config), "generate", "tags", "--connection", "nope"]) == 1

    def test_missing_table(self, console: Console, tmp_path: Path, schema_store: Path) -> None:
        config = _write_config(tmp_path, schema_store)
        instance = MagicMock()
        instance.__enter__.return_value.introspect_table.side_effect = LookupError("Table 'public.tags' not found")
        with patch("schema_crud.cli.SchemaIntrospector", return_value=instance):
            assert main(["--config", str(config), "generate", "tags", "--output", str(tmp_path)]) == 1
        assert "not found" in console.export_text()
