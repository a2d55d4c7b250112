"""Root entry point: builds the authenticated transport and scopes top-level builders."""

from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import Any, Self

import httpx

from gitlab_api.config import AuthMethod, ClientConfig
from gitlab_api.entities import (
    IssueQuery,
    MergeRequestQuery,
    Project,
    ProjectCreator,
    ProjectQuery,
    User,
    UserQuery,
    fetch_project,
    require_positive,
    require_text,
    segment,
)
from gitlab_api.pagination import NextPageStrategy, Pagination, next_page_from_headers
from gitlab_api.requestor import GitlabRequestor


def build_http_client(
    config: ClientConfig,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Build an HTTP client rooted at the API namespace with auth headers attached."""
    headers = {
        "Accept": "application/json",
        "User-Agent": config.user_agent,
        **config.auth_headers(),
    }
    return httpx.Client(
        base_url=config.base_url,
        headers=headers,
        timeout=config.timeout_seconds,
        trust_env=config.trust_env,
        transport=transport,
    )


class GitlabClient:
    """Authenticated handle on one GitLab instance.

    The only object constructible without a parent resource; every project,
    user, issue and merge request is reached through it.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: httpx.BaseTransport | None = None,
        next_page: NextPageStrategy = next_page_from_headers,
    ) -> None:
        self._config = config
        self._requestor = GitlabRequestor(
            build_http_client(config, transport),
            next_page=next_page,
            max_fetch_all_items=config.max_fetch_all_items,
            default_pagination=config.default_pagination,
        )

    @classmethod
    def from_access_token(cls, endpoint: str, token: str | None, **kwargs: Any) -> GitlabClient:
        """Client sending ``token`` as a personal, project or group access token."""
        config = ClientConfig(endpoint=endpoint, token=token, auth_method=AuthMethod.ACCESS_TOKEN)
        return cls(config, **kwargs)

    @classmethod
    def from_oauth2_token(cls, endpoint: str, token: str, **kwargs: Any) -> GitlabClient:
        """Client sending ``token`` as an OAuth2 bearer token."""
        config = ClientConfig(endpoint=endpoint, token=token, auth_method=AuthMethod.OAUTH2)
        return cls(config, **kwargs)

    @classmethod
    def from_env(cls, *, dotenv_path: Path | None = None, **kwargs: Any) -> GitlabClient:
        """Client configured from ``GITLAB_URL`` and ``GITLAB_TOKEN`` style variables."""
        return cls(ClientConfig.from_env(dotenv_path=dotenv_path), **kwargs)

    @classmethod
    def builder(cls, endpoint: str) -> ClientBuilder:
        return ClientBuilder(endpoint)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def requestor(self) -> GitlabRequestor:
        return self._requestor

    def projects(self) -> ProjectQuery:
        return ProjectQuery(self._requestor, "/projects")

    def user_projects(self, username: str) -> ProjectQuery:
        return ProjectQuery(
            self._requestor,
            f"/users/{segment(require_text('username', username))}/projects",
        )

    def get_project(self, project: int | str) -> Project:
        """Fetch a project by numeric id or ``namespace/path``."""
        return fetch_project(self._requestor, project)

    def get_project_by_path(self, path_with_namespace: str) -> Project:
        return fetch_project(self._requestor, require_text("project path", path_with_namespace))

    def new_project(self, name: str) -> ProjectCreator:
        return ProjectCreator(self._requestor, "/projects").with_name(name)

    def users(self) -> UserQuery:
        return UserQuery(self._requestor, "/users")

    def get_user(self, user_id: int) -> User:
        endpoint = f"/users/{require_positive('user id', user_id)}"
        return User.from_wire(self._requestor.get(endpoint), requestor=self._requestor, endpoint=endpoint)

    def get_current_user(self) -> User:
        """The user the token belongs to; fails with Unauthorized when anonymous."""
        endpoint = "/user"
        return User.from_wire(self._requestor.get(endpoint), requestor=self._requestor, endpoint=endpoint)

    def issues(self) -> IssueQuery:
        return IssueQuery(self._requestor, "/issues")

    def merge_requests(self) -> MergeRequestQuery:
        return MergeRequestQuery(self._requestor, "/merge_requests")

    def close(self) -> None:
        self._requestor.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        mode = "anonymous" if self._config.is_anonymous else self._config.auth_method.value
        return f"GitlabClient({self._config.base_url!r}, {mode})"


class ClientBuilder:
    """Collects connection settings, then builds a ``GitlabClient``."""

    def __init__(self, endpoint: str) -> None:
        self._settings: dict[str, Any] = {"endpoint": endpoint}
        self._transport: httpx.BaseTransport | None = None
        self._next_page: NextPageStrategy = next_page_from_headers

    def with_access_token(self, token: str) -> Self:
        self._settings["token"] = token
        self._settings["auth_method"] = AuthMethod.ACCESS_TOKEN
        return self

    def with_oauth2_token(self, token: str) -> Self:
        self._settings["token"] = token
        self._settings["auth_method"] = AuthMethod.OAUTH2
        return self

    def with_api_namespace(self, api_namespace: str) -> Self:
        self._settings["api_namespace"] = api_namespace
        return self

    def with_timeout(self, timeout_seconds: float) -> Self:
        self._settings["timeout_seconds"] = timeout_seconds
        return self

    def with_trust_env(self, trust_env: bool) -> Self:
        self._settings["trust_env"] = trust_env
        return self

    def with_user_agent(self, user_agent: str) -> Self:
        self._settings["user_agent"] = user_agent
        return self

    def with_max_fetch_all_items(self, max_items: int) -> Self:
        self._settings["max_fetch_all_items"] = max_items
        return self

    def with_default_pagination(self, pagination: Pagination) -> Self:
        self._settings["default_pagination"] = pagination
        return self

    def with_transport(self, transport: httpx.BaseTransport) -> Self:
        self._transport = transport
        return self

    def with_next_page_strategy(self, next_page: NextPageStrategy) -> Self:
        self._next_page = next_page
        return self

    def build(self) -> GitlabClient:
        return GitlabClient(
            ClientConfig(**self._settings),
            transport=self._transport,
            next_page=self._next_page,
        )
