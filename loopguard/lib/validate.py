"""
Schema validation for loopguard state documents.

Every document crossing the state-directory boundary (stories, guardrails,
failure state, agent contract) is checked against a JSON Schema shipped in
loopguard/schemas/. Validation fails hard; callers wrap the error into
ConfigError when reading and refuse to write when saving.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from jsonschema.exceptions import best_match
from jsonschema.validators import validator_for

SCHEMAS_DIR = Path(__file__).resolve().parent.parent / "schemas"

# Known document schemas, by name
SCHEMA_NAMES = ("stories", "guardrails", "failure_state", "agent_contract")


class ValidationError(Exception):
    """A state document does not match its schema."""

    def __init__(self, schema_name: str, message: str, path: str = None):
        self.schema_name = schema_name
        self.path = path
        super().__init__(f"[{schema_name}] {message}" + (f" at {path}" if path else ""))


def schema_path(schema_name: str) -> Path:
    return SCHEMAS_DIR / f"{schema_name}.schema.json"


@lru_cache(maxsize=len(SCHEMA_NAMES))
def _validator(schema_name: str):
    path = schema_path(schema_name)
    if not path.exists():
        raise ValidationError(schema_name, f"Schema file not found: {path}")
    schema = json.loads(path.read_text())
    validator_cls = validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def validate(data: Any, schema_name: str) -> None:
    """
    Validate a parsed document against its schema.

    When several constraints fail, the most relevant one is reported.

    Raises:
        ValidationError: If the document does not match
    """
    error = best_match(_validator(schema_name).iter_errors(data))
    if error is None:
        return
    path = ".".join(str(p) for p in error.absolute_path) or "(root)"
    raise ValidationError(schema_name, error.message, path)


def validate_before_write(data: Any, schema_name: str, filepath: Path) -> None:
    """
    Validate a document about to be written. Never write invalid state.

    Raises:
        ValidationError: If data doesn't match schema
    """
    try:
        validate(data, schema_name)
    except ValidationError as e:
        raise ValidationError(
            schema_name,
            f"Refusing to write invalid data to {filepath}: {e}"
        ) from None
