"""Typed parameter specs shared by query filters and request payloads."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from gitlab_api.errors import GitlabInvalidArgumentError

DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class ParamKind(StrEnum):
    """Value shapes accepted by GitLab query parameters and payload fields."""

    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    STRINGS = "strings"
    INTEGERS = "integers"
    DATE = "date"
    DATETIME = "datetime"
    OBJECT = "object"


def _invalid(name: str, expected: str, value: object) -> GitlabInvalidArgumentError:
    return GitlabInvalidArgumentError(
        f"Invalid value {value!r} for '{name}'. Expected {expected}."
    )


def _is_integer(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def normalize_date(name: str, value: object) -> str:
    """Normalize a date or ISO date string into GitLab's YYYY-MM-DD form."""
    if isinstance(value, datetime):
        return value.date().strftime(DATE_FORMAT)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, str):
        try:
            return date.fromisoformat(value).strftime(DATE_FORMAT)
        except ValueError as error:
            raise _invalid(name, "an ISO date (YYYY-MM-DD)", value) from error
    raise _invalid(name, "a date", value)


def normalize_datetime(name: str, value: object) -> str:
    """Normalize a datetime or ISO-8601 string into a UTC timestamp."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as error:
            raise _invalid(name, "an ISO-8601 datetime", value) from error
    if not isinstance(value, datetime):
        raise _invalid(name, "a datetime", value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime(DATETIME_FORMAT)


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Accepted shape for one named parameter."""

    kind: ParamKind
    choices: frozenset[str] | None = None

    def normalize(self, name: str, value: object) -> Any:
        """Validate a caller value and return its JSON-ready form."""
        kind = self.kind
        if kind is ParamKind.STRING:
            if not isinstance(value, str):
                raise _invalid(name, "a string", value)
            if self.choices is not None and value not in self.choices:
                allowed = ", ".join(sorted(self.choices))
                raise _invalid(name, f"one of: {allowed}", value)
            return value
        if kind is ParamKind.INTEGER:
            if not _is_integer(value):
                raise _invalid(name, "an integer", value)
            return value
        if kind is ParamKind.BOOLEAN:
            if not isinstance(value, bool):
                raise _invalid(name, "a boolean", value)
            return value
        if kind is ParamKind.STRINGS:
            if not isinstance(value, (list, tuple)) or not all(
                isinstance(item, str) for item in value
            ):
                raise _invalid(name, "a list of strings", value)
            return list(value)
        if kind is ParamKind.INTEGERS:
            if not isinstance(value, (list, tuple)) or not all(_is_integer(item) for item in value):
                raise _invalid(name, "a list of integers", value)
            return list(value)
        if kind is ParamKind.DATE:
            return normalize_date(name, value)
        if kind is ParamKind.DATETIME:
            return normalize_datetime(name, value)
        if not isinstance(value, Mapping):
            raise _invalid(name, "an object", value)
        return dict(value)


def encode_query_value(name: str, value: Any) -> list[tuple[str, str]]:
    """Encode one normalized value as query-string pairs.

    Array parameters named with a ``[]`` suffix repeat once per element;
    other lists are comma-joined.
    """
    if isinstance(value, bool):
        return [(name, "true" if value else "false")]
    if isinstance(value, list):
        items = [encode_query_value(name, item)[0][1] for item in value]
        if name.endswith("[]"):
            return [(name, item) for item in items]
        return [(name, ",".join(items))]
    return [(name, str(value))]
