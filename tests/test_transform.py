"""Tests for row value casting and output projection."""

from datetime import date, datetime

import pytest

from schema_crud.query.transform import cast_value, format_value, transform_row
from schema_crud.schema.models import FieldDef, Schema


class TestCastValue:
    """Verify per-type casts."""

    @pytest.mark.parametrize(
        "field_type,raw,expected",
        [
            ("integer", "42", 42),
            ("decimal", "9.5", 9.5),
            ("currency", 3, 3.0),
            ("boolean", "false", False),
            ("boolean", "off", False),
            ("boolean", "yes", True),
            ("boolean", 1, True),
            ("json", '{"a": [1, 2]}', {"a": [1, 2]}),
            ("multiselect", "[1, 2]", [1, 2]),
            ("string", 7, 7),
        ],
    )
    def test_casts(self, field_type: str, raw, expected) -> None:
        assert cast_value(FieldDef(type=field_type), raw) == expected

    def test_date_and_datetime(self) -> None:
        assert cast_value(FieldDef(type="date"), "2024-03-01T10:00:00") == date(2024, 3, 1)
        assert cast_value(FieldDef(type="datetime"), "2024-03-01 10:30:00") == datetime(2024, 3, 1, 10, 30)
        assert cast_value(FieldDef(type="datetime"), date(2024, 3, 1)) == datetime(2024, 3, 1)

    def test_none_passes_through(self) -> None:
        assert cast_value(FieldDef(type="integer"), None) is None

    def test_uncastable_returned_unchanged(self) -> None:
        assert cast_value(FieldDef(type="integer"), "n/a") == "n/a"
        assert cast_value(FieldDef(type="json"), "{broken") == "{broken"
        assert cast_value(FieldDef(type="date"), "someday") == "someday"

    def test_structured_json_untouched(self) -> None:
        assert cast_value(FieldDef(type="json"), {"a": 1}) == {"a": 1}


class TestFormatValue:
    """Verify dates are rendered as strings."""

    def test_date_format(self) -> None:
        field = FieldDef(type="datetime", date_format="%Y/%m/%d %H:%M")
        assert format_value(field, "2024-03-01T10:05:00") == "2024/03/01 10:05"

    def test_isoformat_default(self) -> None:
        assert format_value(FieldDef(type="date"), "2024-03-01") == "2024-03-01"

    def test_non_dates_cast_only(self) -> None:
        assert format_value(FieldDef(type="integer"), "5") == 5


class TestTransformRow:
    """Verify projection and sensitive-value removal."""

    @pytest.fixture
    def schema(self) -> Schema:
        return Schema(
            model="users",
            table="users",
            fields={
                "id": {"type": "integer"},
                "name": {"listable": True},
                "active": {"type": "boolean", "listable": True},
                "password": {"type": "password"},
            },
        )

    def test_all_columns(self, schema: Schema) -> None:
        row = {"id": "1", "name": "Ann", "active": 0, "password": "hash", "extra": "x"}
        assert transform_row(schema, row) == {"id": 1, "name": "Ann", "active": False, "extra": "x"}

    def test_projection_keeps_primary_key(self, schema: Schema) -> None:
        row = {"id": 1, "name": "Ann", "active": True, "password": "hash"}
        assert transform_row(schema, row, ["name"]) == {"id": 1, "name": "Ann"}

    def test_password_never_output(self, schema: Schema) -> None:
        row = {"id": 1, "password": "hash"}
        assert "password" not in transform_row(schema, row, ["password"])
