"""Validates the shape of append requests against a JSON schema."""

import logging
import threading

import jsonschema

from userlogs.errors import ValidationError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ["user_id", "message"]

APPEND_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": REQUIRED_FIELDS,
    "properties": {
        "user_id": {"type": "string", "pattern": r"\S"},
        "message": {"type": "string", "pattern": r"\S"},
        "created": {"type": ["string", "null"]},
    },
}


def _field_of(error) -> str:
    if error.validator == "required":
        # "'user_id' is a required property"
        for name in REQUIRED_FIELDS:
            if repr(name) in error.message:
                return name
    if error.path:
        return str(error.path[0])
    return "body"


class AppendRequestValidator:
    """Checks the shape of a POST /log body before anything touches storage.

    Only types and presence are checked here; the content of ``created`` is
    parsed by the service when the entry is rendered.
    """

    def __init__(self, schema=None):
        self._validator = jsonschema.Draft202012Validator(schema or APPEND_SCHEMA)
        self._lock = threading.Lock()
        self._stats = {"total": 0, "valid": 0, "invalid": 0}

    def validate(self, payload) -> dict:
        """Return the request fields or raise ValidationError.

        A blank ``created`` counts as absent.
        """
        errors = sorted(self._validator.iter_errors(payload), key=lambda e: e.message)
        self._record(not errors)

        if errors:
            fields, messages, missing = [], [], True
            for error in errors:
                field = _field_of(error)
                if field not in fields:
                    fields.append(field)
                if error.validator == "required":
                    messages.append(f"{field} is required")
                elif error.validator == "pattern" and field in REQUIRED_FIELDS:
                    messages.append(f"{field} must not be empty")
                else:
                    missing = False
                    messages.append(f"{field}: {error.message}")
            logger.warning("Rejected append request: %s", "; ".join(messages))
            raise ValidationError(fields, messages, missing=missing)

        return {
            "user_id": payload["user_id"],
            "message": payload["message"],
            "created": payload.get("created") or None,
        }

    def _record(self, valid: bool):
        with self._lock:
            self._stats["total"] += 1
            self._stats["valid" if valid else "invalid"] += 1

    def get_stats(self) -> dict:
        """Return a copy of the stats dict."""
        with self._lock:
            return dict(self._stats)
