"""Schema document loading from a directory-based document store.

Documents are JSON files, one per table, optionally nested under a
connection-named subdirectory:

    schemas/
        users.json
        db1/
            users.json      # used for "users@db1"

Usage:
    from schema_crud.schema.loader import SchemaLoader

    loader = SchemaLoader("schemas")
    document, source_connection = loader.load_document("users", "db1")
    document = loader.apply_defaults(document)
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic.alias_generators import to_camel

from schema_crud.errors import (
    InvalidModelNameError,
    SchemaNotFoundError,
    SchemaValidationError,
)
from schema_crud.schema.models import validate_model_name

logger = logging.getLogger(__name__)

# Keys filled in when the document leaves them out
DOCUMENT_DEFAULTS: dict[str, Any] = {
    "primary_key": "id",
    "timestamps": True,
    "soft_delete": False,
}


class SchemaLoader:
    """Resolves and parses schema documents below ``schema_path``.

    Args:
        schema_path: Root directory of the document store.
    """

    def __init__(self, schema_path: str | Path):
        self._schema_path = Path(schema_path)

    @property
    def schema_path(self) -> Path:
        return self._schema_path

    def get_schema_file_path(self, model: str, connection: str | None = None) -> Path:
        """Path of the document for *model*, qualified by *connection* if given."""
        validate_model_name(model)
        if connection is not None:
            _validate_connection_dir(connection)
            return self._schema_path / connection / f"{model}.json"
        return self._schema_path / f"{model}.json"

    def resolve_path(self, model: str, connection: str | None = None) -> tuple[Path, str | None]:
        """Find the document for *model*.

        When *connection* is given the connection-qualified path is tried
        first, then the unqualified path.

        Returns:
            Tuple of (path, connection subdirectory the path lives in or None).

        Raises:
            SchemaNotFoundError: If neither candidate exists.
        """
        if connection is not None:
            qualified = self.get_schema_file_path(model, connection)
            if qualified.is_file():
                return qualified, connection
            logger.debug(
                "No connection-qualified schema at %s, falling back to default path",
                qualified,
            )

        default = self.get_schema_file_path(model)
        if default.is_file():
            return default, None

        raise SchemaNotFoundError(f"Schema file not found for model: {model}")

    def load_document(self, model: str, connection: str | None = None) -> tuple[dict[str, Any], str | None]:
        """Read and parse the raw document for *model*.

        Returns:
            Tuple of (document dict, source connection or None).

        Raises:
            SchemaNotFoundError: If no document exists.
            SchemaValidationError: If the file is not a JSON object.
        """
        path, source_connection = self.resolve_path(model, connection)

        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise SchemaValidationError(
                f"Schema for model '{model}' is not valid JSON ({path.name}): {e}"
            ) from e

        if not isinstance(document, dict):
            raise SchemaValidationError(
                f"Schema for model '{model}' must be a JSON object, got {type(document).__name__}"
            )

        return document, source_connection

    def apply_defaults(self, document: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of *document* with absent top-level defaults filled in.

        Explicit values, including explicit ``false``, are never overwritten.

        Example:
            >>> SchemaLoader(".").apply_defaults({"timestamps": False})["timestamps"]
            False
        """
        result = dict(document)
        for key, value in DOCUMENT_DEFAULTS.items():
            if key not in result and to_camel(key) not in result:
                result[key] = value
        return result

    def list_models(self, connection: str | None = None) -> list[str]:
        """Model names available in the store (or a connection subdirectory)."""
        directory = self._schema_path
        if connection is not None:
            _validate_connection_dir(connection)
            directory = directory / connection
        if not directory.is_dir():
            return []
        return sorted(path.stem for path in directory.glob("*.json"))


def _validate_connection_dir(connection: str) -> None:
    if not connection or connection in (".", "..") or "/" in connection or "\\" in connection:
        raise InvalidModelNameError(f"Invalid connection name: '{connection}'")
