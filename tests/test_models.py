"""Tests for schema document models and model references."""

import pytest
from pydantic import ValidationError

from schema_crud.errors import InvalidModelNameError
from schema_crud.schema.models import (
    CastType,
    FieldDef,
    FieldType,
    FrozenDict,
    ModelReference,
    Relationship,
    RelationshipType,
    Schema,
    derive_visibility,
    parse_model_reference,
    thaw,
    validate_model_name,
)


# ============================================================================
# Test: Model References
# ============================================================================


class TestParseModelReference:
    """Verify ``model`` / ``model@connection`` parsing."""

    def test_plain_model(self) -> None:
        assert parse_model_reference("users") == ModelReference("users", None)

    def test_qualified_model(self) -> None:
        ref = parse_model_reference("users@db1")
        assert ref.model == "users"
        assert ref.connection == "db1"

    def test_everything_after_first_at_is_connection(self) -> None:
        ref = parse_model_reference("users@db1@backup")
        assert ref == ModelReference("users", "db1@backup")

    def test_empty_connection_is_none(self) -> None:
        assert parse_model_reference("users@").connection is None

    @pytest.mark.parametrize("reference", ["users-table", "../users", "", "users table", "@db1"])
    def test_invalid_model_name_rejected(self, reference: str) -> None:
        with pytest.raises(InvalidModelNameError):
            parse_model_reference(reference)

    def test_invalid_name_status_code(self) -> None:
        with pytest.raises(InvalidModelNameError) as exc_info:
            validate_model_name("users-table")
        assert exc_info.value.status_code == 400

    def test_valid_name_returned(self) -> None:
        assert validate_model_name("user_roles2") == "user_roles2"


# ============================================================================
# Test: Visibility Derivation
# ============================================================================


class TestDeriveVisibility:
    """Verify per-context visibility computed from show_in and flags."""

    def test_ordinary_field_gets_all_contexts(self) -> None:
        assert derive_visibility({"type": "string"}) == ("list", "create", "edit", "detail")

    def test_password_excluded_from_detail(self) -> None:
        assert "detail" not in derive_visibility({"type": "password"})

    def test_password_enum_type_excluded_from_detail(self) -> None:
        assert "detail" not in derive_visibility({"type": FieldType.PASSWORD})

    def test_viewable_false_excluded_from_detail(self) -> None:
        assert "detail" not in derive_visibility({"viewable": False})

    @pytest.mark.parametrize(
        "flags",
        [{"readonly": True}, {"auto_increment": True}, {"computed": True}, {"editable": False}],
    )
    def test_non_writable_excluded_from_forms(self, flags: dict) -> None:
        contexts = derive_visibility(flags)
        assert "create" not in contexts
        assert "edit" not in contexts
        assert "detail" in contexts

    def test_listable_false_excluded_from_list(self) -> None:
        assert "list" not in derive_visibility({"listable": False})

    def test_explicit_show_in_is_authoritative(self) -> None:
        field = {"type": "string", "show_in": ["detail"], "viewable": False}
        assert derive_visibility(field) == ("detail",)

    def test_show_in_cannot_put_password_in_detail(self) -> None:
        field = {"type": "password", "show_in": ["form", "detail"]}
        assert derive_visibility(field) == ("create", "edit")

    def test_form_expands_to_create_and_edit(self) -> None:
        assert derive_visibility({"show_in": ["list", "form"]}) == ("list", "create", "edit")


# ============================================================================
# Test: FieldDef
# ============================================================================


class TestFieldDef:
    """Verify field defaults, traits and pass-through keys."""

    def test_defaults(self) -> None:
        field = FieldDef()
        assert field.type == FieldType.STRING
        assert field.listable is None
        assert field.show_in is None
        assert field.visibility == ("list", "create", "edit", "detail")

    def test_visibility_filled_from_flags(self) -> None:
        assert FieldDef(readonly=True).visibility == ("list", "detail")

    def test_explicit_visibility_kept(self) -> None:
        assert FieldDef(visibility=("list",)).visibility == ("list",)

    @pytest.mark.parametrize(
        "field_type,cast",
        [
            ("integer", CastType.INTEGER),
            ("decimal", CastType.FLOAT),
            ("float", CastType.FLOAT),
            ("boolean", CastType.BOOLEAN),
            ("json", CastType.JSON),
            ("date", CastType.DATE),
            ("datetime", CastType.DATETIME),
            ("string", None),
            ("text", None),
        ],
    )
    def test_type_casts(self, field_type: str, cast: CastType | None) -> None:
        assert FieldDef(type=field_type).traits.cast == cast

    @pytest.mark.parametrize("flags", [{"readonly": True}, {"auto_increment": True}, {"computed": True}])
    def test_not_writable(self, flags: dict) -> None:
        assert FieldDef(**flags).is_writable is False

    def test_extra_keys_kept(self) -> None:
        field = FieldDef(width=120, placeholder="Name")
        assert field.extra("width") == 120
        assert field.extra("placeholder") == "Name"
        assert field.extra("icon", "none") == "none"

    def test_frozen(self) -> None:
        field = FieldDef()
        with pytest.raises(ValidationError):
            field.label = "changed"

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FieldDef(type="varchar")


# ============================================================================
# Test: Relationship and Schema
# ============================================================================


class TestRelationship:
    """Verify join-key bookkeeping."""

    def test_default_type_is_many_to_many(self) -> None:
        assert Relationship(name="roles").type == RelationshipType.MANY_TO_MANY

    def test_missing_pivot_keys(self) -> None:
        rel = Relationship(name="roles", foreign_key="user_id")
        assert rel.missing_join_keys() == ["pivot_table", "related_key"]

    def test_complete_pivot_keys(self) -> None:
        rel = Relationship(name="roles", pivot_table="role_user", foreign_key="user_id", related_key="role_id")
        assert rel.missing_join_keys() == []
        assert rel.is_many_to_many

    def test_through_keys(self) -> None:
        rel = Relationship(name="permissions", type="belongs_to_many_through", first_pivot_table="role_user")
        assert rel.is_through
        assert "second_pivot_table" in rel.missing_join_keys()
        assert "first_pivot_table" not in rel.missing_join_keys()

    def test_one_to_many_needs_no_pivot(self) -> None:
        assert Relationship(name="posts", type="one_to_many").missing_join_keys() == []


class TestSchema:
    """Verify canonical schema defaults and helpers."""

    def test_defaults(self) -> None:
        schema = Schema(model="users", table="users")
        assert schema.primary_key == "id"
        assert schema.timestamps is True
        assert schema.soft_delete is False
        assert schema.deleted_at_column == "deleted_at"
        assert schema.fields == {}

    def test_default_sort_direction_normalized(self) -> None:
        schema = Schema(model="t", table="t", default_sort={"name": "DESC", "id": "up"})
        assert schema.default_sort == {"name": "desc", "id": "asc"}

    def test_fields_where_requires_explicit_true(self) -> None:
        schema = Schema(
            model="t",
            table="t",
            fields={"a": {"sortable": True}, "b": {"sortable": False}, "c": {}},
        )
        assert schema.fields_where("sortable") == ["a"]

    def test_lookups(self) -> None:
        schema = Schema(
            model="users",
            table="users",
            relationships=[{"name": "roles", "pivot_table": "ru", "foreign_key": "u", "related_key": "r"}],
            details=[{"model": "posts", "foreign_key": "user_id"}],
        )
        assert schema.get_relationship("roles").pivot_table == "ru"
        assert schema.get_relationship("posts") is None
        assert schema.get_detail("posts").foreign_key == "user_id"
        assert schema.get_detail("roles") is None

    def test_display_titles(self) -> None:
        assert Schema(model="users", table="users").display_title == "Users"
        schema = Schema(model="users", table="users", title="People", singular_title="Person")
        assert schema.display_title == "People"
        assert schema.display_singular_title == "Person"

    def test_frozen(self) -> None:
        schema = Schema(model="users", table="users")
        with pytest.raises(ValidationError):
            schema.table = "other"


# ============================================================================
# Test: Read-only Mappings
# ============================================================================


class TestReadOnlyMappings:
    """Verify a built Schema cannot be changed through its mappings."""

    @pytest.fixture
    def schema(self) -> Schema:
        return Schema(
            model="users",
            table="users",
            default_sort={"name": "asc"},
            permissions={"read": "view_users"},
            fields={"name": {"validation": {"length": {"max": 100}}}},
            actions=[{"name": "export", "options": {"format": "csv"}}],
        )

    def test_fields_read_only(self, schema: Schema) -> None:
        with pytest.raises(TypeError):
            schema.fields["email"] = FieldDef()
        with pytest.raises(TypeError):
            del schema.fields["name"]

    def test_permissions_read_only(self, schema: Schema) -> None:
        with pytest.raises(TypeError):
            schema.permissions["delete"] = "anyone"
        with pytest.raises(TypeError):
            schema.permissions.update(read="anyone")

    def test_default_sort_read_only(self, schema: Schema) -> None:
        assert isinstance(schema.default_sort, FrozenDict)
        with pytest.raises(TypeError):
            schema.default_sort.clear()

    def test_nested_validation_read_only(self, schema: Schema) -> None:
        validation = schema.fields["name"].validation
        with pytest.raises(TypeError):
            validation["required"] = True
        with pytest.raises(TypeError):
            validation["length"]["max"] = 5

    def test_actions_read_only(self, schema: Schema) -> None:
        with pytest.raises(TypeError):
            schema.actions[0]["name"] = "purge"
        with pytest.raises(TypeError):
            schema.actions[0]["options"].pop("format")

    def test_defaults_read_only(self) -> None:
        schema = Schema(model="t", table="t")
        with pytest.raises(TypeError):
            schema.permissions.setdefault("read", "x")

    def test_json_round_trip(self, schema: Schema) -> None:
        restored = Schema.model_validate_json(schema.model_dump_json())
        assert restored == schema
        assert isinstance(restored.fields, FrozenDict)

    def test_thaw_gives_mutable_copy(self, schema: Schema) -> None:
        validation = thaw(schema.fields["name"].validation)
        validation["length"]["max"] = 5
        assert type(validation) is dict
        assert schema.fields["name"].validation["length"]["max"] == 100
