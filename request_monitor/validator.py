import json
import os
import threading
from collections import Counter

import jsonschema

DEFAULT_SCHEMA_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "schemas", "request_descriptor.json"
)


def _field_of(error) -> str:
    """Dotted path of the offending field, or the missing property for ``required``."""
    path = ".".join(str(part) for part in error.absolute_path)
    if error.validator == "required" and not path:
        return error.message.split("'")[1] if "'" in error.message else "<root>"
    return path or "<root>"


class DescriptorValidator:
    """Checks request descriptors posted by external collaborators.

    Counts accepted and rejected payloads, by failing keyword and by field,
    for the ``/health`` and ``/api/validation-stats`` endpoints.
    """

    def __init__(self, schema_path=None):
        with open(schema_path or DEFAULT_SCHEMA_PATH, "r") as f:
            schema = json.load(f)

        self._validator = jsonschema.Draft202012Validator(schema)
        self._lock = threading.Lock()
        self.reset_stats()

    def validate(self, payload):
        """Validate one descriptor payload.

        Returns:
            tuple: (is_valid: bool, errors: list[str]) where each error reads
            ``"<field>: <message>"``, ordered by field.
        """
        errors = sorted(self._validator.iter_errors(payload), key=_field_of)
        messages = [f"{_field_of(e)}: {e.message}" for e in errors]

        with self._lock:
            self._total += 1
            if errors:
                self._rejected += 1
                self._error_types.update(e.validator for e in errors)
                self._fields.update(_field_of(e) for e in errors)
            else:
                self._accepted += 1

        return not errors, messages

    def get_stats(self):
        with self._lock:
            return {
                "total": self._total,
                "valid": self._accepted,
                "invalid": self._rejected,
                "error_types": dict(self._error_types),
                "fields": dict(self._fields),
            }

    def reset_stats(self):
        with self._lock:
            self._total = 0
            self._accepted = 0
            self._rejected = 0
            self._error_types = Counter()
            self._fields = Counter()
