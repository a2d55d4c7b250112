"""Request payload builder."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from datetime import date
from types import MappingProxyType
from typing import Any, Self

from gitlab_api.params import FieldSpec, ParamKind

_STRING = FieldSpec(ParamKind.STRING)
_INTEGER = FieldSpec(ParamKind.INTEGER)
_BOOLEAN = FieldSpec(ParamKind.BOOLEAN)
_STRINGS = FieldSpec(ParamKind.STRINGS)
_INTEGERS = FieldSpec(ParamKind.INTEGERS)
_DATE = FieldSpec(ParamKind.DATE)
_OBJECT = FieldSpec(ParamKind.OBJECT)


class Body:
    """Ordered JSON payload accumulated through chained ``put_*`` calls.

    A repeated key keeps its first position and takes the last value.
    Keys that were never put are absent from the payload.
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def put(self, key: str, spec: FieldSpec, value: object) -> Self:
        """Put a value validated against an explicit field spec."""
        self._values[key] = spec.normalize(key, value)
        return self

    def put_string(self, key: str, value: str) -> Self:
        """Put a string value."""
        return self.put(key, _STRING, value)

    def put_int(self, key: str, value: int) -> Self:
        """Put an integer value; booleans are rejected."""
        return self.put(key, _INTEGER, value)

    def put_bool(self, key: str, value: bool) -> Self:
        """Put a boolean value."""
        return self.put(key, _BOOLEAN, value)

    def put_strings(self, key: str, value: Sequence[str]) -> Self:
        """Put a list of strings."""
        return self.put(key, _STRINGS, value)

    def put_ints(self, key: str, value: Sequence[int]) -> Self:
        """Put a list of integers."""
        return self.put(key, _INTEGERS, value)

    def put_date(self, key: str, value: date | str) -> Self:
        """Put a date as YYYY-MM-DD."""
        return self.put(key, _DATE, value)

    def put_object(self, key: str, value: Mapping[str, Any]) -> Self:
        """Put a nested JSON object."""
        return self.put(key, _OBJECT, value)

    def get_map(self) -> Mapping[str, Any]:
        """Return a read-only view of the accumulated payload."""
        return MappingProxyType(self._values)

    def keys(self) -> tuple[str, ...]:
        """Keys in the order they were first put."""
        return tuple(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Body({self._values!r})"
