"""Single point of contact with the GitLab REST API."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx

from gitlab_api.body import Body
from gitlab_api.errors import (
    GitlabError,
    GitlabUnknownRemoteError,
    error_from_response,
    error_from_transport,
)
from gitlab_api.logging_config import get_logger
from gitlab_api.pagination import NextPageStrategy, Pagination, next_page_from_headers

DEFAULT_MAX_FETCH_ALL_ITEMS = 10_000

QueryParams = Sequence[tuple[str, str]]

log = get_logger(__name__)


def _shape_error(response: httpx.Response, *, endpoint: str, expected: str) -> GitlabError:
    return GitlabUnknownRemoteError(
        f"Expected {expected} in GitLab response for '{endpoint}'.",
        status_code=response.status_code,
        endpoint=endpoint,
        body=response.text,
    )


def _decode_json(response: httpx.Response, *, endpoint: str) -> Any:
    try:
        return response.json()
    except ValueError as error:
        raise _shape_error(response, endpoint=endpoint, expected="a JSON body") from error


def _ensure_mapping(response: httpx.Response, *, endpoint: str) -> dict[str, Any]:
    """Ensure a response body is a JSON object."""
    payload = _decode_json(response, endpoint=endpoint)
    if not isinstance(payload, dict):
        raise _shape_error(response, endpoint=endpoint, expected="a JSON object")
    return payload


def _ensure_rows(response: httpx.Response, *, endpoint: str) -> list[dict[str, Any]]:
    """Ensure a response body is a JSON array of objects."""
    payload = _decode_json(response, endpoint=endpoint)
    if not isinstance(payload, list):
        raise _shape_error(response, endpoint=endpoint, expected="a JSON array")
    if not all(isinstance(item, dict) for item in payload):
        raise _shape_error(
            response,
            endpoint=endpoint,
            expected="all array items to be JSON objects",
        )
    return payload


class GitlabRequestor:
    """Issues authenticated requests and normalizes responses and failures.

    The wrapped ``httpx.Client`` carries the base URL and auth headers; endpoints
    passed here are relative to the API namespace (``/projects/1/issues``).
    """

    def __init__(
        self,
        http_client: httpx.Client,
        *,
        next_page: NextPageStrategy = next_page_from_headers,
        max_fetch_all_items: int = DEFAULT_MAX_FETCH_ALL_ITEMS,
        default_pagination: Pagination | None = None,
    ) -> None:
        self._http_client = http_client
        self._next_page = next_page
        self._max_fetch_all_items = max_fetch_all_items
        self._default_pagination = default_pagination or Pagination.default()

    @property
    def http_client(self) -> httpx.Client:
        return self._http_client

    @property
    def default_pagination(self) -> Pagination:
        return self._default_pagination

    @property
    def max_fetch_all_items(self) -> int:
        return self._max_fetch_all_items

    def _send(
        self,
        method: str,
        endpoint: str,
        *,
        params: QueryParams | None = None,
        body: Body | None = None,
    ) -> httpx.Response:
        """Send one request and raise a mapped error for any failure."""
        json_payload = dict(body.get_map()) if body is not None else None
        try:
            response = self._http_client.request(
                method,
                endpoint,
                params=list(params) if params else None,
                json=json_payload,
            )
        except httpx.RequestError as error:
            mapped = error_from_transport(error, endpoint=endpoint)
            log.warning(
                "gitlab_request_failed",
                method=method,
                endpoint=endpoint,
                kind=mapped.kind.value,
                error=str(error),
            )
            raise mapped from error

        log.debug(
            "gitlab_request",
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
        )
        if response.is_success:
            return response

        mapped = error_from_response(response, endpoint=endpoint)
        log.warning(
            "gitlab_request_failed",
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
            kind=mapped.kind.value,
        )
        raise mapped

    def get(self, endpoint: str, *, params: QueryParams = ()) -> dict[str, Any]:
        """GET a single JSON object."""
        response = self._send("GET", endpoint, params=params)
        return _ensure_mapping(response, endpoint=endpoint)

    def get_list(
        self,
        endpoint: str,
        *,
        params: QueryParams = (),
        pagination: Pagination | None = None,
    ) -> list[dict[str, Any]]:
        """GET a collection, walking every page when the pagination asks for it.

        A failure on any page raises; rows from earlier pages are discarded.
        """
        window = pagination or self._default_pagination
        if not window.fetch_all:
            response = self._send(
                "GET",
                endpoint,
                params=[*params, *window.params_for(window.page)],
            )
            rows = _ensure_rows(response, endpoint=endpoint)
            log.debug("gitlab_page_fetched", endpoint=endpoint, page=window.page, count=len(rows))
            return rows

        cap = window.max_items or self._max_fetch_all_items
        items: list[dict[str, Any]] = []
        page = window.page
        while True:
            response = self._send(
                "GET",
                endpoint,
                params=[*params, *window.params_for(page)],
            )
            rows = _ensure_rows(response, endpoint=endpoint)
            log.debug("gitlab_page_fetched", endpoint=endpoint, page=page, count=len(rows))
            items.extend(rows)

            next_page: int | None = None
            if len(rows) >= window.per_page:
                next_page = self._next_page(response, current_page=page)
                if next_page is not None and next_page <= page:
                    next_page = None

            if len(items) >= cap:
                if len(items) > cap or next_page is not None:
                    log.warning(
                        "gitlab_fetch_all_capped",
                        endpoint=endpoint,
                        max_items=cap,
                        last_page=page,
                    )
                return items[:cap]
            if next_page is None:
                return items
            page = next_page

    def _write(self, method: str, endpoint: str, body: Body | None) -> dict[str, Any] | None:
        response = self._send(method, endpoint, body=body)
        if response.status_code == 204 or not response.content.strip():
            return None
        return _ensure_mapping(response, endpoint=endpoint)

    def post(self, endpoint: str, body: Body | None = None) -> dict[str, Any] | None:
        """POST a JSON payload; returns the response object, or None for an empty reply."""
        return self._write("POST", endpoint, body)

    def put(self, endpoint: str, body: Body | None = None) -> dict[str, Any] | None:
        """PUT a JSON payload; returns the response object, or None for an empty reply."""
        return self._write("PUT", endpoint, body)

    def delete(self, endpoint: str) -> None:
        """DELETE a resource; any response body is ignored."""
        self._send("DELETE", endpoint)

    def close(self) -> None:
        self._http_client.close()
