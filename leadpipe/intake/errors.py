"""Errors raised while validating inbound webhook payloads."""

from __future__ import annotations

import re

import msgspec

_MSGSPEC_PATH = re.compile(r" - at `\$(?P<path>[^`]*)`$")


def _path_to_field(path: str, prefix: str | None) -> str:
    """Convert a msgspec ``$.a.b[0]`` path suffix into ``a.b[0]``."""
    field = path.removeprefix(".")
    if prefix:
        return f"{prefix}.{field}" if field else prefix
    return field or "$"


class PayloadValidationError(ValueError):
    """Raised when a payload does not match any accepted shape.

    Attributes
    ----------
    field
        Dotted path of the offending field, ``$`` for the body itself.
    reason
        Human-readable description of the mismatch.

    """

    def __init__(self, field: str, reason: str) -> None:
        """Record the failing field and reason."""
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")

    @classmethod
    def missing_field(cls, field: str) -> PayloadValidationError:
        """Create an error for a required field that is absent."""
        return cls(field, "required field is missing")

    @classmethod
    def type_mismatch(
        cls, field: str, expected: str, actual: object
    ) -> PayloadValidationError:
        """Create an error for a field holding the wrong JSON type."""
        return cls(field, f"expected {expected}, got {_json_type_name(actual)}")

    @classmethod
    def unknown_source(cls, source: str) -> PayloadValidationError:
        """Create an error for an unsupported source kind."""
        return cls("source", f"unknown source kind {source!r}")

    @classmethod
    def too_many_rows(cls, count: int, limit: int) -> PayloadValidationError:
        """Create an error for batch bundles beyond the configured bound."""
        return cls("rows", f"bundle has {count} rows; at most {limit} allowed")

    @classmethod
    def from_msgspec(
        cls, exc: msgspec.ValidationError, *, prefix: str | None = None
    ) -> PayloadValidationError:
        """Translate a msgspec validation error, keeping its field path."""
        message = str(exc)
        match = _MSGSPEC_PATH.search(message)
        if match is None:
            return cls(prefix or "$", message)
        reason = message[: match.start()]
        return cls(_path_to_field(match.group("path"), prefix), reason)


def _json_type_name(value: object) -> str:
    match value:
        case None:
            return "null"
        case bool():
            return "boolean"
        case int() | float():
            return "number"
        case str():
            return "string"
        case list():
            return "array"
        case dict():
            return "object"
        case _:
            return type(value).__name__
