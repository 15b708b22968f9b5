"""JSON Schema gate for generated content.

Nothing downstream may assume the shape of a generated object unless it
passed ``SchemaValidator.validate``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

from ollama_lore.errors import ConfigurationError

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating one object."""

    valid: bool
    diagnostic: str | None = None

    def __bool__(self) -> bool:
        return self.valid


def load_schema(schema: str | Mapping[str, Any]) -> dict[str, Any]:
    """Parse content-schema JSON text (or accept a mapping) and check it.

    Raises ConfigurationError when the text is not JSON, not an object, or
    not a well-formed JSON Schema.
    """
    if isinstance(schema, str):
        if not schema.strip():
            raise ConfigurationError("Content schema is empty")
        try:
            schema = json.loads(schema)
        except (ValueError, RecursionError) as e:
            raise ConfigurationError(
                "Content schema is not valid JSON", diagnostic=str(e),
            ) from e
    if not isinstance(schema, Mapping):
        raise ConfigurationError("Content schema must be a JSON object")
    schema = dict(schema)
    try:
        Draft7Validator.check_schema(schema)
    except SchemaError as e:
        raise ConfigurationError(
            "Content schema is not a well-formed JSON Schema",
            diagnostic=e.message,
        ) from e
    return schema


class SchemaValidator:
    """Draft 7 structural validator for one content schema."""

    def __init__(self, schema: str | Mapping[str, Any]) -> None:
        self.schema = load_schema(schema)
        self._validator = Draft7Validator(self.schema)

    def validate(self, instance: Any) -> ValidationOutcome:
        """Validate *instance*; the diagnostic names the first violation."""
        error = next(iter(self._validator.iter_errors(instance)), None)
        if error is None:
            return ValidationOutcome(valid=True)
        path = "/".join(str(p) for p in error.absolute_path) or "$"
        diagnostic = f"{path}: {error.message}"
        _logger.debug("Schema validation failed: %s", diagnostic)
        return ValidationOutcome(valid=False, diagnostic=diagnostic)


def validate(instance: Any, schema: str | Mapping[str, Any]) -> ValidationOutcome:
    """Validate *instance* against *schema* in one call."""
    return SchemaValidator(schema).validate(instance)
