"""Pagination descriptors and next-page detection strategies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import parse_qs, urlsplit

import httpx

from gitlab_api.errors import GitlabInvalidArgumentError

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100
NEXT_PAGE_HEADER = "X-Next-Page"


@dataclass(frozen=True, slots=True)
class Pagination:
    """Page window over a collection endpoint.

    ``fetch_all`` walks every page starting at ``page``; otherwise exactly one
    page is requested. ``max_items`` bounds a fetch-all walk and falls back to
    the client's configured cap when left unset.
    """

    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    fetch_all: bool = False
    max_items: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 1:
            raise GitlabInvalidArgumentError(
                f"Invalid page {self.page!r}. Expected an integer >= 1."
            )
        if (
            isinstance(self.per_page, bool)
            or not isinstance(self.per_page, int)
            or not 1 <= self.per_page <= MAX_PER_PAGE
        ):
            raise GitlabInvalidArgumentError(
                f"Invalid per_page {self.per_page!r}. Expected an integer between 1 and "
                f"{MAX_PER_PAGE}."
            )
        if self.max_items is not None and (
            isinstance(self.max_items, bool)
            or not isinstance(self.max_items, int)
            or self.max_items < 1
        ):
            raise GitlabInvalidArgumentError(
                f"Invalid max_items {self.max_items!r}. Expected a positive integer or None."
            )

    @classmethod
    def of(cls, page: int, per_page: int) -> Pagination:
        """Return a single-page window."""
        return cls(page=page, per_page=per_page)

    @classmethod
    def default(cls) -> Pagination:
        """Return GitLab's default window: first page, 20 items."""
        return _DEFAULT_PAGINATION

    @classmethod
    def all_pages(
        cls,
        per_page: int = MAX_PER_PAGE,
        *,
        max_items: int | None = None,
    ) -> Pagination:
        """Return a window that walks every page of the collection."""
        return cls(page=1, per_page=per_page, fetch_all=True, max_items=max_items)

    def params_for(self, page: int) -> list[tuple[str, str]]:
        """Query parameters for one page request."""
        return [("per_page", str(self.per_page)), ("page", str(page))]


_DEFAULT_PAGINATION = Pagination()


class NextPageStrategy(Protocol):
    """Reads the next page number from a collection response, or None when done."""

    def __call__(self, response: httpx.Response, *, current_page: int) -> int | None:
        """Return the next page number."""


def _parse_page(value: str | None) -> int | None:
    if value is None:
        return None
    value = value.strip()
    if not value.isdigit():
        return None
    return int(value)


def increment_page(response: httpx.Response, *, current_page: int) -> int | None:
    """Assume another page follows; the short-page rule ends the walk."""
    return current_page + 1


def next_page_from_link(response: httpx.Response, *, current_page: int) -> int | None:
    """Read the page number from a ``Link: <...>; rel="next"`` header."""
    next_link = response.links.get("next")
    if not next_link or "url" not in next_link:
        return None
    page_values = parse_qs(urlsplit(next_link["url"]).query).get("page")
    if not page_values:
        return None
    return _parse_page(page_values[0])


def next_page_from_headers(response: httpx.Response, *, current_page: int) -> int | None:
    """Read GitLab's ``X-Next-Page`` header, falling back to Link, then increment.

    An ``X-Next-Page`` header that is present but empty marks the last page.
    """
    if NEXT_PAGE_HEADER in response.headers:
        return _parse_page(response.headers[NEXT_PAGE_HEADER])
    if "link" in response.headers:
        return next_page_from_link(response, current_page=current_page)
    return increment_page(response, current_page=current_page)
