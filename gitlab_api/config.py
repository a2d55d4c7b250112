"""Client configuration and opt-in environment loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from urllib.parse import urlsplit

from dotenv import load_dotenv

from gitlab_api.errors import GitlabInvalidArgumentError
from gitlab_api.pagination import Pagination
from gitlab_api.requestor import DEFAULT_MAX_FETCH_ALL_ITEMS

DEFAULT_GITLAB_URL = "https://gitlab.com"
DEFAULT_API_NAMESPACE = "/api/v4"
DEFAULT_TIMEOUT_SECONDS = 20.0
DEFAULT_USER_AGENT = "gitlab-api-client"
GITLAB_URL_ENV_VAR = "GITLAB_URL"
GITLAB_TOKEN_ENV_VARS = ("GITLAB_TOKEN", "GITLAB_PRIVATE_TOKEN")
GITLAB_OAUTH_TOKEN_ENV_VAR = "GITLAB_OAUTH_TOKEN"


class AuthMethod(StrEnum):
    """How the token is presented to GitLab."""

    ACCESS_TOKEN = "access_token"
    OAUTH2 = "oauth2"


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Connection settings held immutably for a client's lifetime."""

    endpoint: str = DEFAULT_GITLAB_URL
    token: str | None = field(default=None, repr=False)
    auth_method: AuthMethod = AuthMethod.ACCESS_TOKEN
    api_namespace: str = DEFAULT_API_NAMESPACE
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    trust_env: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    max_fetch_all_items: int = DEFAULT_MAX_FETCH_ALL_ITEMS
    default_pagination: Pagination = field(default_factory=Pagination.default)
    token_source: str | None = None

    def __post_init__(self) -> None:
        parts = urlsplit(self.endpoint.strip()) if isinstance(self.endpoint, str) else None
        if parts is None or parts.scheme not in {"http", "https"} or not parts.netloc:
            raise GitlabInvalidArgumentError(
                f"Invalid endpoint {self.endpoint!r}. Expected an absolute http(s) URL."
            )
        object.__setattr__(self, "endpoint", self.endpoint.strip().rstrip("/"))

        namespace = "/" + self.api_namespace.strip("/") if self.api_namespace.strip("/") else ""
        object.__setattr__(self, "api_namespace", namespace)

        if self.token is not None and not self.token.strip():
            object.__setattr__(self, "token", None)
        if not isinstance(self.auth_method, AuthMethod):
            try:
                object.__setattr__(self, "auth_method", AuthMethod(self.auth_method))
            except ValueError as error:
                raise GitlabInvalidArgumentError(
                    f"Invalid auth_method {self.auth_method!r}. Expected one of: "
                    f"{', '.join(AuthMethod)}."
                ) from error
        if (
            isinstance(self.timeout_seconds, bool)
            or not isinstance(self.timeout_seconds, (int, float))
            or self.timeout_seconds <= 0
        ):
            raise GitlabInvalidArgumentError(
                f"Invalid timeout {self.timeout_seconds!r}. Expected a positive number of seconds."
            )
        if (
            isinstance(self.max_fetch_all_items, bool)
            or not isinstance(self.max_fetch_all_items, int)
            or self.max_fetch_all_items < 1
        ):
            raise GitlabInvalidArgumentError(
                f"Invalid max_fetch_all_items {self.max_fetch_all_items!r}. "
                "Expected a positive integer."
            )

    @property
    def base_url(self) -> str:
        return f"{self.endpoint}{self.api_namespace}"

    @property
    def is_anonymous(self) -> bool:
        return self.token is None

    def auth_headers(self) -> dict[str, str]:
        """Headers that authenticate requests, empty for anonymous access."""
        if self.token is None:
            return {}
        if self.auth_method is AuthMethod.OAUTH2:
            return {"Authorization": f"Bearer {self.token}"}
        return {"PRIVATE-TOKEN": self.token}

    @classmethod
    def from_env(cls, *, dotenv_path: Path | None = None) -> ClientConfig:
        """Read endpoint and token from the environment and an optional ``.env`` file.

        Real environment variables win over ``.env`` values. A personal token
        takes precedence over an OAuth token.
        """
        load_dotenv(dotenv_path=dotenv_path or Path.cwd() / ".env", override=False)

        endpoint = os.getenv(GITLAB_URL_ENV_VAR) or DEFAULT_GITLAB_URL
        for env_var in GITLAB_TOKEN_ENV_VARS:
            token = os.getenv(env_var)
            if token:
                return cls(
                    endpoint=endpoint,
                    token=token,
                    auth_method=AuthMethod.ACCESS_TOKEN,
                    token_source=env_var,
                )

        oauth_token = os.getenv(GITLAB_OAUTH_TOKEN_ENV_VAR)
        if oauth_token:
            return cls(
                endpoint=endpoint,
                token=oauth_token,
                auth_method=AuthMethod.OAUTH2,
                token_source=GITLAB_OAUTH_TOKEN_ENV_VAR,
            )
        return cls(endpoint=endpoint)
