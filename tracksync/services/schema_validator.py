"""JSON schema validation of templated field values"""

import json
from typing import Any, List

from jsonschema.validators import validator_for

from tracksync.errors import ValidationError


def _load_schema(schema_definition: Any) -> Any:
    if isinstance(schema_definition, (str, bytes)):
        return json.loads(schema_definition)
    return schema_definition


def _validator(schema: Any):
    # The dialect is detected from "$schema"; schemas without it use the latest draft.
    cls = validator_for(schema)
    return cls(schema)


def collect_errors(value: Any, schema_definition: Any) -> List[str]:
    """Return the message of every violation of ``schema_definition`` by ``value``."""
    schema = _load_schema(schema_definition)
    errors = sorted(_validator(schema).iter_errors(value), key=lambda e: [str(p) for p in e.absolute_path])
    return [error.message for error in errors]


def validate(value: Any, schema_definition: Any, field_name: str) -> None:
    """Validate a value for a templated field.

    The schema is parsed on every call. ``None`` (JSON null) is only accepted when the
    schema allows it.

    Raises:
        ValidationError: listing all violations found
    """
    messages = collect_errors(value, schema_definition)
    if messages:
        raise ValidationError(field_name, messages)


def is_valid(value: Any, schema_definition: Any) -> bool:
    """Non-throwing variant of :func:`validate`."""
    return not collect_errors(value, schema_definition)


def check_schema(schema_definition: Any) -> None:
    """Ensure a schema definition is itself a valid schema for its dialect.

    Raises:
        jsonschema.exceptions.SchemaError: if the schema is malformed
        json.JSONDecodeError: if the definition is not JSON
    """
    schema = _load_schema(schema_definition)
    validator_for(schema).check_schema(schema)
