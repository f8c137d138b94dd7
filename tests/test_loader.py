"""Tests for document path resolution, parsing and defaults."""

from pathlib import Path

import pytest

from schema_crud.errors import InvalidModelNameError, SchemaNotFoundError, SchemaValidationError
from schema_crud.schema.loader import SchemaLoader


# ============================================================================
# Test: Path Resolution
# ============================================================================


class TestResolvePath:
    """Verify connection-qualified lookup with fallback."""

    def test_unqualified_path(self, schema_store: Path) -> None:
        path, source = SchemaLoader(schema_store).resolve_path("roles")
        assert path == schema_store / "roles.json"
        assert source is None

    def test_qualified_path_preferred(self, schema_store: Path) -> None:
        path, source = SchemaLoader(schema_store).resolve_path("users", "db1")
        assert path == schema_store / "db1" / "users.json"
        assert source == "db1"

    def test_qualified_falls_back_to_default(self, schema_store: Path) -> None:
        path, source = SchemaLoader(schema_store).resolve_path("roles", "db1")
        assert path == schema_store / "roles.json"
        assert source is None

    def test_unknown_connection_directory_falls_back(self, schema_store: Path) -> None:
        path, _ = SchemaLoader(schema_store).resolve_path("users", "nowhere")
        assert path == schema_store / "users.json"

    def test_missing_document(self, schema_store: Path) -> None:
        with pytest.raises(SchemaNotFoundError, match="widgets"):
            SchemaLoader(schema_store).resolve_path("widgets", "db1")

    def test_not_found_status_code(self, schema_store: Path) -> None:
        with pytest.raises(SchemaNotFoundError) as exc_info:
            SchemaLoader(schema_store).resolve_path("widgets")
        assert exc_info.value.status_code == 404

    @pytest.mark.parametrize("connection", ["..", "a/b", "."])
    def test_connection_cannot_escape_store(self, schema_store: Path, connection: str) -> None:
        with pytest.raises(InvalidModelNameError):
            SchemaLoader(schema_store).resolve_path("users", connection)

    def test_model_name_validated(self, schema_store: Path) -> None:
        with pytest.raises(InvalidModelNameError):
            SchemaLoader(schema_store).get_schema_file_path("../secrets")


# ============================================================================
# Test: Document Parsing
# ============================================================================


class TestLoadDocument:
    """Verify JSON parsing and its failure modes."""

    def test_loads_document_and_source(self, schema_store: Path) -> None:
        document, source = SchemaLoader(schema_store).load_document("users", "db1")
        assert document["table"] == "app_users"
        assert source == "db1"

    def test_invalid_json(self, tmp_path: Path) -> None:
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(SchemaValidationError, match="not valid JSON"):
            SchemaLoader(tmp_path).load_document("broken")

    def test_non_object_document(self, tmp_path: Path) -> None:
        (tmp_path / "listy.json").write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(SchemaValidationError, match="JSON object"):
            SchemaLoader(tmp_path).load_document("listy")


# ============================================================================
# Test: Defaults
# ============================================================================


class TestApplyDefaults:
    """Verify defaults only fill absent keys."""

    def test_fills_absent_keys(self) -> None:
        result = SchemaLoader(".").apply_defaults({"model": "t", "table": "t"})
        assert result["primary_key"] == "id"
        assert result["timestamps"] is True
        assert result["soft_delete"] is False

    def test_explicit_false_preserved(self) -> None:
        result = SchemaLoader(".").apply_defaults({"timestamps": False, "soft_delete": True})
        assert result["timestamps"] is False
        assert result["soft_delete"] is True

    def test_camel_case_key_counts_as_present(self) -> None:
        result = SchemaLoader(".").apply_defaults({"softDelete": True, "primaryKey": "uuid"})
        assert "soft_delete" not in result
        assert "primary_key" not in result
        assert result["softDelete"] is True

    def test_input_not_modified(self) -> None:
        document = {"model": "t"}
        SchemaLoader(".").apply_defaults(document)
        assert document == {"model": "t"}


class TestListModels:
    """Verify store enumeration."""

    def test_lists_default_directory(self, schema_store: Path) -> None:
        assert SchemaLoader(schema_store).list_models() == ["permissions", "roles", "users"]

    def test_lists_connection_directory(self, schema_store: Path) -> None:
        assert SchemaLoader(schema_store).list_models("db1") == ["users"]

    def test_missing_directory_is_empty(self, tmp_path: Path) -> None:
        assert SchemaLoader(tmp_path / "nope").list_models() == []
