"""Error family shared by every GitLab client operation."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

import httpx


class ErrorKind(StrEnum):
    """Discriminant for failures raised by the client."""

    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_REQUEST = "invalid_request"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNKNOWN_REMOTE = "unknown_remote"


class GitlabError(RuntimeError):
    """Base error for client-side validation, remote rejections and transport faults."""

    kind: ErrorKind = ErrorKind.UNKNOWN_REMOTE

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str | None = None,
        body: str | None = None,
        messages: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        self.body = body
        self.messages = messages


class GitlabInvalidArgumentError(GitlabError, ValueError):
    """Raised when builder input is malformed, before any request is sent."""

    kind = ErrorKind.INVALID_ARGUMENT


class GitlabNotFoundError(GitlabError):
    """Raised when the resource is absent or already deleted (404)."""

    kind = ErrorKind.NOT_FOUND


class GitlabUnauthorizedError(GitlabError):
    """Raised when the token is missing or lacks permission (401/403)."""

    kind = ErrorKind.UNAUTHORIZED


class GitlabInvalidRequestError(GitlabError):
    """Raised when GitLab rejects the request during validation (400/422)."""

    kind = ErrorKind.INVALID_REQUEST


class GitlabServiceUnavailableError(GitlabError):
    """Raised on 5xx responses and transport failures."""

    kind = ErrorKind.SERVICE_UNAVAILABLE


class GitlabUnknownRemoteError(GitlabError):
    """Raised for unmapped statuses and unexpected response shapes."""

    kind = ErrorKind.UNKNOWN_REMOTE


def _messages_from_value(value: Any) -> list[str]:
    """Flatten GitLab's message shapes into plain strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value]
    if isinstance(value, dict):
        flattened: list[str] = []
        for field_name, field_messages in value.items():
            for field_message in _messages_from_value(field_messages):
                flattened.append(f"{field_name} {field_message}")
        return flattened
    return [str(value)]


def extract_messages(response: httpx.Response) -> tuple[str, ...]:
    """Return server-reported error messages from a response body."""
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return (text,) if text else ()

    if not isinstance(payload, dict):
        return tuple(_messages_from_value(payload))

    messages: list[str] = []
    for key in ("message", "error", "error_description"):
        messages.extend(_messages_from_value(payload.get(key)))
    return tuple(messages)


def error_from_response(response: httpx.Response, *, endpoint: str) -> GitlabError:
    """Map a non-success response onto the error family."""
    status_code = response.status_code
    body = response.text
    messages = extract_messages(response)
    detail = f": {'; '.join(messages)}" if messages else ""
    message = f"GitLab API request failed with status {status_code} for '{endpoint}'{detail}"

    error_type: type[GitlabError]
    if status_code == 404:
        error_type = GitlabNotFoundError
    elif status_code in {401, 403}:
        error_type = GitlabUnauthorizedError
    elif status_code in {400, 422}:
        error_type = GitlabInvalidRequestError
    elif 500 <= status_code < 600:
        error_type = GitlabServiceUnavailableError
    else:
        error_type = GitlabUnknownRemoteError

    return error_type(
        message,
        status_code=status_code,
        endpoint=endpoint,
        body=body,
        messages=messages,
    )


def error_from_transport(error: httpx.RequestError, *, endpoint: str) -> GitlabError:
    """Map an httpx request failure onto the error family."""
    if isinstance(error, httpx.TransportError):
        return GitlabServiceUnavailableError(
            f"GitLab API request to '{endpoint}' failed: {error}",
            endpoint=endpoint,
        )
    return GitlabUnknownRemoteError(
        f"GitLab API request to '{endpoint}' could not be completed: {error}",
        endpoint=endpoint,
    )
