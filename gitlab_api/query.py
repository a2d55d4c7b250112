"""Generic collection query builder."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, ClassVar, Generic, Self, TypeVar
from urllib.parse import urlencode

from gitlab_api.errors import GitlabInvalidArgumentError
from gitlab_api.facade import Facade
from gitlab_api.pagination import Pagination
from gitlab_api.params import FieldSpec, encode_query_value
from gitlab_api.requestor import GitlabRequestor

T = TypeVar("T", bound=Facade)


class Query(Generic[T]):
    """Accumulates filters for one collection endpoint, then fetches it.

    Subclasses declare ``MODEL`` and the ``FILTERS`` the endpoint accepts, keyed
    by wire name. Setting the same filter twice keeps its first position and
    takes the last value, so identical call sequences encode identically.
    """

    MODEL: ClassVar[type[Facade]]
    FILTERS: ClassVar[Mapping[str, FieldSpec]] = {}

    def __init__(
        self,
        requestor: GitlabRequestor,
        path: str,
        *,
        defaults: Mapping[str, Any] | None = None,
        pagination: Pagination | None = None,
    ) -> None:
        self._requestor = requestor
        self._path = path
        self._defaults = dict(defaults or {})
        self._filters: dict[str, Any] = {}
        self._pagination = pagination

    def _set(self, name: str, value: object) -> Self:
        spec = self.FILTERS.get(name)
        if spec is None:
            allowed = ", ".join(sorted(self.FILTERS)) or "none"
            raise GitlabInvalidArgumentError(
                f"Unknown filter '{name}' for '{self._path}'. Expected one of: {allowed}."
            )
        normalized = spec.normalize(name, value)
        if isinstance(normalized, list) and not normalized:
            raise GitlabInvalidArgumentError(
                f"Invalid value {value!r} for '{name}'. Expected a non-empty list."
            )
        self._filters[name] = normalized
        return self

    def with_filter(self, name: str, value: object) -> Self:
        """Set a filter by wire name, validated like the typed setters."""
        return self._set(name, value)

    def with_pagination(self, pagination: Pagination) -> Self:
        if not isinstance(pagination, Pagination):
            raise GitlabInvalidArgumentError(
                f"Invalid pagination {pagination!r}. Expected a Pagination."
            )
        self._pagination = pagination
        return self

    @property
    def path(self) -> str:
        return self._path

    @property
    def filters(self) -> Mapping[str, Any]:
        return MappingProxyType(self._filters)

    @property
    def pagination(self) -> Pagination:
        return self._pagination or self._requestor.default_pagination

    def filter_params(self) -> list[tuple[str, str]]:
        """Encoded filter pairs in the order they were first set."""
        pairs: list[tuple[str, str]] = []
        for name, value in self._filters.items():
            pairs.extend(encode_query_value(name, value))
        return pairs

    def params(self) -> list[tuple[str, str]]:
        """Encoded parameters of the first page request."""
        window = self.pagination
        return [*self.filter_params(), *window.params_for(window.page)]

    def query_string(self) -> str:
        return urlencode(self.params())

    def query(self) -> list[T]:
        """Fetch the collection in server order."""
        rows = self._requestor.get_list(
            self._path,
            params=self.filter_params(),
            pagination=self.pagination,
        )
        return [
            self.MODEL.from_wire(
                row,
                requestor=self._requestor,
                endpoint=self._path,
                **self._defaults,
            )
            for row in rows
        ]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._path!r}, {self.query_string()!r})"
