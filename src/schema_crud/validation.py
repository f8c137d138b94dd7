"""Create/update payload validation driven by field ``validation`` rules.

A pydantic model is generated per schema (one strict variant for create,
one partial variant for update) with ``pydantic.create_model``.

Supported rules::

    required            value must be present and non-empty
    length {min, max}   string length bounds (a bare int is a max)
    email, url          format checks (also implied by the field type)
    range {min, max}    numeric bounds
    pattern / regex     regular expression
    matches             equals another field's value
    integer, numeric    value must parse as int / float

``unique`` needs the database and is enforced by ``SchemaEntity``.

Usage:
    from schema_crud.validation import RecordValidator

    clean = RecordValidator(schema).validate({"name": "Ann", "email": "ann@example.com"})
"""

import re
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError, create_model

from schema_crud.errors import RecordValidationError
from schema_crud.schema.models import CastType, FieldDef, FieldType, Schema

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)


def _check_email(value: Any) -> Any:
    if value is not None and not _EMAIL_RE.match(str(value)):
        raise ValueError("must be a valid email address")
    return value


def _check_url(value: Any) -> Any:
    if value is not None and not _URL_RE.match(str(value)):
        raise ValueError("must be a valid URL")
    return value


def _python_type(field: FieldDef, rules: dict[str, Any]) -> Any:
    if rules.get("integer"):
        return int
    if rules.get("numeric"):
        return float
    cast = field.traits.cast
    if cast == CastType.INTEGER:
        return int
    if cast == CastType.FLOAT:
        return float
    if cast == CastType.BOOLEAN:
        return bool
    if cast in (CastType.JSON, CastType.DATE, CastType.DATETIME):
        return Any
    return str


def _annotated(field: FieldDef) -> Any:
    """Annotated type carrying the field's validation rules."""
    rules = field.validation
    py_type = _python_type(field, rules)
    constraints: dict[str, Any] = {}

    length = rules.get("length") if py_type is str else None
    if isinstance(length, dict):
        if length.get("min") is not None:
            constraints["min_length"] = int(length["min"])
        if length.get("max") is not None:
            constraints["max_length"] = int(length["max"])
    elif isinstance(length, int) and not isinstance(length, bool):
        constraints["max_length"] = length

    bounds = rules.get("range") if py_type in (int, float) else None
    if isinstance(bounds, dict):
        if bounds.get("min") is not None:
            constraints["ge"] = bounds["min"]
        if bounds.get("max") is not None:
            constraints["le"] = bounds["max"]

    pattern = rules.get("pattern") or rules.get("regex")
    if isinstance(pattern, str) and py_type is str:
        constraints["pattern"] = pattern

    metadata: list[Any] = [Field(**constraints)]
    if rules.get("email") or field.type == FieldType.EMAIL:
        metadata.append(AfterValidator(_check_email))
    if rules.get("url") or field.type == FieldType.URL:
        metadata.append(AfterValidator(_check_url))

    return Annotated[tuple([py_type, *metadata])]


def is_required(field: FieldDef) -> bool:
    return bool(field.required or field.validation.get("required"))


class RecordValidator:
    """Validates record payloads against one schema's writable fields.

    Keys that are not writable fields are dropped, never validated or
    passed on.

    Args:
        schema: Canonical schema.
    """

    def __init__(self, schema: Schema):
        self._schema = schema
        self._writable = {name: field for name, field in schema.fields.items() if field.is_writable}
        self._create_model = self._build_model(partial=False)
        self._update_model = self._build_model(partial=True)

    @property
    def unique_fields(self) -> list[str]:
        """Writable fields whose value must not already exist in the table."""
        return [name for name, field in self._writable.items() if field.validation.get("unique")]

    def validate(self, data: dict[str, Any], partial: bool = False) -> dict[str, Any]:
        """Validate *data* and return the cleaned writable values.

        Args:
            data: Submitted payload.
            partial: Update mode.  Only supplied keys are validated and
                ``required`` is not enforced for absent keys.

        Returns:
            Dict of supplied writable fields with coerced values.

        Raises:
            RecordValidationError: With one error dict per failing field.
        """
        payload, errors = self._prepare(data, partial)
        model = self._update_model if partial else self._create_model

        try:
            validated = model.model_validate(payload)
        except ValidationError as e:
            reported = {error["field"] for error in errors}
            for error in e.errors():
                field = str(error["loc"][0]) if error["loc"] else ""
                if field not in reported:
                    errors.append({"field": field, "message": error["msg"]})
            validated = None

        if validated is not None:
            cleaned = validated.model_dump(exclude_unset=True)
            errors.extend(self._check_matches(cleaned, data))
        if errors:
            raise RecordValidationError(
                f"Validation failed for '{self._schema.model}': "
                + "; ".join(f"{e['field']}: {e['message']}" for e in errors),
                errors,
            )
        return cleaned

    def _prepare(self, data: dict[str, Any], partial: bool) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        """Keep writable keys; blank strings count as absent for typed and required fields."""
        payload: dict[str, Any] = {}
        errors: list[dict[str, Any]] = []
        for name, value in data.items():
            field = self._writable.get(name)
            if field is None:
                continue
            if isinstance(value, str) and value.strip() == "" and (field.traits.cast is not None or is_required(field)):
                value = None
            if value is None and is_required(field):
                errors.append({"field": name, "message": "is required"})
                continue
            payload[name] = value
        if not partial:
            for name, field in self._writable.items():
                if name not in payload and field.default is not None:
                    payload[name] = field.default
        return payload, errors

    def _check_matches(self, cleaned: dict[str, Any], data: dict[str, Any]) -> list[dict[str, Any]]:
        errors = []
        for name, field in self._writable.items():
            other = field.validation.get("matches")
            if other and name in cleaned and cleaned[name] != cleaned.get(other, data.get(other)):
                errors.append({"field": name, "message": f"must match {other}"})
        return errors

    def _build_model(self, partial: bool) -> type[BaseModel]:
        definitions: dict[str, Any] = {}
        for name, field in self._writable.items():
            annotated = _annotated(field)
            if is_required(field) and not partial:
                definitions[name] = (annotated, ...)
            else:
                definitions[name] = (annotated | None, None)

        suffix = "Update" if partial else "Create"
        return create_model(
            f"{self._schema.model.title().replace('_', '')}{suffix}",
            __config__=ConfigDict(extra="ignore"),
            **definitions,
        )
