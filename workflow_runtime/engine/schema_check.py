"""JSON Schema checks for human input and agent structured output."""

from __future__ import annotations

import logging
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

logger = logging.getLogger(__name__)


def schema_problems(schema: Any) -> list[str]:
    """Return problems with a schema itself; empty when it is usable."""
    if not isinstance(schema, dict):
        return ["schema must be an object"]
    try:
        Draft202012Validator.check_schema(schema)
    except SchemaError as exc:
        return [f"invalid schema: {exc.message}"]
    return []


def validate_payload(payload: Any, schema: dict[str, Any] | None) -> list[str]:
    """Validate a payload and return error messages, sorted by location."""
    if not schema:
        return []
    try:
        validator = Draft202012Validator(schema)
        errors = sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path])
    except SchemaError as exc:
        logger.warning("Unusable schema: %s", exc.message)
        return [f"invalid schema: {exc.message}"]
    return [_describe(e) for e in errors]


def _describe(error: Any) -> str:
    location = ".".join(str(part) for part in error.path)
    return f"{location}: {error.message}" if location else error.message
