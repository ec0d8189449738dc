import threading
from collections import Counter

import jsonschema

ERROR_RECORD_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Client error record",
    "type": "object",
    "required": ["message"],
    "properties": {
        "message": {
            "type": ["string", "number"],
            "minLength": 1,
            "pattern": "\\S",
        },
        "timestamp": {"type": ["string", "null"]},
        "source": {"type": ["string", "null"]},
        "context": {"type": ["string", "null"]},
        "userAgent": {"type": ["string", "null"]},
        "url": {"type": ["string", "null"]},
        "dns": {"type": ["string", "null"]},
        "cors": {"type": ["boolean", "string", "number", "null"]},
        "https": {"type": ["boolean", "string", "number", "null"]},
        "stack": {
            "anyOf": [
                {"type": ["string", "null"]},
                {"type": "array", "items": {"type": ["string", "null"]}},
            ]
        },
    },
}


def _field_of(error) -> str:
    """Top-level wire key an error is about; errors on the body itself count as "payload"."""
    return str(error.path[0]) if error.path else "payload"


class PayloadValidator:
    """Checks decoded error-record payloads and counts rejections per wire field.

    The counts surface on ``/health`` so a misbehaving client build shows up
    as one field piling up rejections.
    """

    def __init__(self, schema=None):
        self._validator = jsonschema.Draft202012Validator(schema or ERROR_RECORD_SCHEMA)
        self._lock = threading.Lock()
        self._checked = 0
        self._rejected = 0
        self._rejected_fields = Counter()

    def validate(self, payload) -> tuple[bool, list[str]]:
        """Return (is_valid, reasons). Reasons are ordered by field and name the field."""
        errors = sorted(self._validator.iter_errors(payload), key=lambda e: list(e.path))
        reasons = [
            f"{_field_of(e)}: {e.message}" if e.path else e.message
            for e in errors
        ]
        with self._lock:
            self._checked += 1
            if errors:
                self._rejected += 1
                self._rejected_fields.update({_field_of(e) for e in errors})
        return not errors, reasons

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "checked": self._checked,
                "rejected": self._rejected,
                "rejected_fields": dict(self._rejected_fields),
            }
