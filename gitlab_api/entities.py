"""GitLab resources and the queries and mutations scoped to them."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from typing import Any, Self
from urllib.parse import quote

from pydantic import model_validator

from gitlab_api.body import Body
from gitlab_api.errors import GitlabInvalidArgumentError, GitlabInvalidRequestError
from gitlab_api.facade import Facade
from gitlab_api.mutation import Creator, Updater, to_facade
from gitlab_api.params import FieldSpec, ParamKind
from gitlab_api.query import Query
from gitlab_api.requestor import GitlabRequestor

_STRING = FieldSpec(ParamKind.STRING)
_INTEGER = FieldSpec(ParamKind.INTEGER)
_BOOLEAN = FieldSpec(ParamKind.BOOLEAN)
_STRINGS = FieldSpec(ParamKind.STRINGS)
_INTEGERS = FieldSpec(ParamKind.INTEGERS)
_DATE = FieldSpec(ParamKind.DATE)
_DATETIME = FieldSpec(ParamKind.DATETIME)
_SORT = FieldSpec(ParamKind.STRING, frozenset({"asc", "desc"}))
_VISIBILITY = FieldSpec(ParamKind.STRING, frozenset({"private", "internal", "public"}))
_STATE_EVENT = FieldSpec(ParamKind.STRING, frozenset({"close", "reopen"}))


def segment(value: int | str) -> str:
    """Percent-encode one URL path segment, slashes included."""
    return quote(str(value), safe="")


def require_positive(name: str, value: int) -> int:
    """Validate an id or iid before it is placed in a path."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise GitlabInvalidArgumentError(
            f"Invalid {name} {value!r}. Expected a positive integer."
        )
    return value


def require_text(name: str, value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise GitlabInvalidArgumentError(
            f"Invalid {name} {value!r}. Expected a non-empty string."
        )
    return value


def project_endpoint(project: int | str) -> str:
    """Endpoint for a project given its id or ``namespace/path``."""
    if isinstance(project, str):
        return f"/projects/{segment(require_text('project path', project))}"
    return f"/projects/{require_positive('project id', project)}"


def fetch_project(requestor: GitlabRequestor, project: int | str) -> Project:
    endpoint = project_endpoint(project)
    return Project.from_wire(requestor.get(endpoint), requestor=requestor, endpoint=endpoint)


# Facades


class User(Facade):
    """A GitLab account."""

    id: int
    username: str | None = None
    name: str | None = None
    state: str | None = None
    avatar_url: str | None = None
    web_url: str | None = None
    created_at: datetime | None = None
    bio: str | None = None
    public_email: str | None = None
    organization: str | None = None
    job_title: str | None = None
    website_url: str | None = None

    def projects(self) -> ProjectQuery:
        """Projects owned by this user."""
        if not self.username:
            raise GitlabInvalidArgumentError(
                f"User {self.id} has no username; cannot list its projects."
            )
        return ProjectQuery(self.requestor, f"/users/{segment(self.username)}/projects")


class Commit(Facade):
    """A repository commit; ``project_id`` is filled from the owning project."""

    id: str
    project_id: int | None = None
    short_id: str | None = None
    title: str | None = None
    message: str | None = None
    author_name: str | None = None
    author_email: str | None = None
    committer_name: str | None = None
    committer_email: str | None = None
    created_at: datetime | None = None
    authored_date: datetime | None = None
    committed_date: datetime | None = None
    parent_ids: list[str] = []
    status: str | None = None
    web_url: str | None = None
    stats: dict[str, int] | None = None

    def project(self) -> Project:
        if self.project_id is None:
            raise GitlabInvalidArgumentError(f"Commit {self.id} is not scoped to a project.")
        return fetch_project(self.requestor, self.project_id)


class Branch(Facade):
    """A repository branch; ``project_id`` is filled from the owning project."""

    name: str
    project_id: int
    merged: bool = False
    protected: bool = False
    default: bool = False
    can_push: bool = False
    developers_can_push: bool = False
    developers_can_merge: bool = False
    web_url: str | None = None
    commit: Commit | None = None

    @model_validator(mode="before")
    @classmethod
    def _scope_commit(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("commit"), dict) and "project_id" in data:
            data = {**data, "commit": {"project_id": data["project_id"], **data["commit"]}}
        return data

    @property
    def endpoint(self) -> str:
        return f"/projects/{self.project_id}/repository/branches/{segment(self.name)}"

    def project(self) -> Project:
        return fetch_project(self.requestor, self.project_id)

    def commits(self) -> CommitQuery:
        """Commits reachable from this branch."""
        return CommitQuery(
            self.requestor,
            f"/projects/{self.project_id}/repository/commits",
            defaults={"project_id": self.project_id},
        ).with_ref_name(self.name)

    def delete(self) -> None:
        """Delete the branch; the default branch is refused."""
        if self.default:
            raise GitlabInvalidRequestError(
                f"Branch '{self.name}' is the default branch of project {self.project_id} "
                "and cannot be deleted.",
                endpoint=self.endpoint,
            )
        self.requestor.delete(self.endpoint)


class Project(Facade):
    """A GitLab project."""

    id: int
    name: str
    path: str | None = None
    description: str | None = None
    name_with_namespace: str | None = None
    path_with_namespace: str | None = None
    default_branch: str | None = None
    visibility: str | None = None
    ssh_url_to_repo: str | None = None
    http_url_to_repo: str | None = None
    web_url: str | None = None
    readme_url: str | None = None
    tag_list: list[str] = []
    owner: User | None = None
    issues_enabled: bool | None = None
    open_issues_count: int | None = None
    merge_requests_enabled: bool | None = None
    jobs_enabled: bool | None = None
    wiki_enabled: bool | None = None
    created_at: datetime | None = None
    last_activity_at: datetime | None = None
    creator_id: int | None = None
    archived: bool | None = None
    forks_count: int | None = None
    star_count: int | None = None
    public_jobs: bool | None = None

    @property
    def endpoint(self) -> str:
        return f"/projects/{self.id}"

    def _scoped(self) -> dict[str, Any]:
        return {"project_id": self.id}

    # Issues

    def issues(self) -> ProjectIssueQuery:
        return ProjectIssueQuery(self.requestor, f"{self.endpoint}/issues")

    def get_issue(self, iid: int) -> Issue:
        endpoint = f"{self.endpoint}/issues/{require_positive('issue iid', iid)}"
        return Issue.from_wire(self.requestor.get(endpoint), requestor=self.requestor, endpoint=endpoint)

    def new_issue(self, title: str) -> IssueCreator:
        return IssueCreator(self.requestor, f"{self.endpoint}/issues").with_title(title)

    # Repository

    def branches(self) -> BranchQuery:
        return BranchQuery(
            self.requestor,
            f"{self.endpoint}/repository/branches",
            defaults=self._scoped(),
        )

    def get_branch(self, name: str) -> Branch:
        endpoint = f"{self.endpoint}/repository/branches/{segment(require_text('branch name', name))}"
        return Branch.from_wire(
            self.requestor.get(endpoint),
            requestor=self.requestor,
            endpoint=endpoint,
            **self._scoped(),
        )

    def new_branch(self, name: str, ref: str) -> BranchCreator:
        """Branch named ``name`` created from ``ref`` (a branch name or commit SHA)."""
        return (
            BranchCreator(
                self.requestor,
                f"{self.endpoint}/repository/branches",
                defaults=self._scoped(),
            )
            .with_branch(name)
            .with_ref(ref)
        )

    def commits(self) -> CommitQuery:
        return CommitQuery(
            self.requestor,
            f"{self.endpoint}/repository/commits",
            defaults=self._scoped(),
        )

    def get_commit(self, sha: str) -> Commit:
        endpoint = f"{self.endpoint}/repository/commits/{segment(require_text('commit sha', sha))}"
        return Commit.from_wire(
            self.requestor.get(endpoint),
            requestor=self.requestor,
            endpoint=endpoint,
            **self._scoped(),
        )

    # Merge requests

    def merge_requests(self) -> ProjectMergeRequestQuery:
        return ProjectMergeRequestQuery(self.requestor, f"{self.endpoint}/merge_requests")

    def get_merge_request(self, iid: int) -> MergeRequest:
        endpoint = f"{self.endpoint}/merge_requests/{require_positive('merge request iid', iid)}"
        return MergeRequest.from_wire(
            self.requestor.get(endpoint),
            requestor=self.requestor,
            endpoint=endpoint,
        )

    def new_merge_request(
        self,
        source_branch: str,
        target_branch: str,
        title: str,
    ) -> MergeRequestCreator:
        return (
            MergeRequestCreator(self.requestor, f"{self.endpoint}/merge_requests")
            .with_source_branch(source_branch)
            .with_target_branch(target_branch)
            .with_title(title)
        )

    # Members

    def users(self) -> ProjectUserQuery:
        return ProjectUserQuery(self.requestor, f"{self.endpoint}/users")

    # Lifecycle

    def fork(self, namespace: int | str | None = None) -> Project:
        """Fork into ``namespace`` (id or full path), or the caller's namespace."""
        body = Body()
        if isinstance(namespace, bool):
            raise GitlabInvalidArgumentError(f"Invalid namespace {namespace!r}.")
        if isinstance(namespace, int):
            body.put_int("namespace_id", require_positive("namespace id", namespace))
        elif isinstance(namespace, str):
            body.put_string("namespace_path", require_text("namespace path", namespace))
        elif namespace is not None:
            raise GitlabInvalidArgumentError(
                f"Invalid namespace {namespace!r}. Expected an id or a path."
            )
        endpoint = f"{self.endpoint}/fork"
        payload = self.requestor.post(endpoint, body)
        return to_facade(Project, payload, requestor=self.requestor, endpoint=endpoint)

    def delete(self) -> None:
        self.requestor.delete(self.endpoint)

    # Updates

    def _updater(self) -> ProjectUpdater:
        return ProjectUpdater(self.requestor, self.endpoint)

    def with_name(self, name: str) -> ProjectUpdater:
        """Start a partial update of this project, beginning with its name."""
        return self._updater().with_name(name)

    def with_path(self, path: str) -> ProjectUpdater:
        return self._updater().with_path(path)

    def with_description(self, description: str) -> ProjectUpdater:
        return self._updater().with_description(description)

    def with_default_branch(self, default_branch: str) -> ProjectUpdater:
        return self._updater().with_default_branch(default_branch)

    def with_visibility(self, visibility: str) -> ProjectUpdater:
        return self._updater().with_visibility(visibility)

    def with_tag_list(self, tag_list: Sequence[str]) -> ProjectUpdater:
        return self._updater().with_tag_list(tag_list)

    def with_issues_enabled(self, enabled: bool) -> ProjectUpdater:
        return self._updater().with_issues_enabled(enabled)

    def with_jobs_enabled(self, enabled: bool) -> ProjectUpdater:
        return self._updater().with_jobs_enabled(enabled)

    def with_wiki_enabled(self, enabled: bool) -> ProjectUpdater:
        return self._updater().with_wiki_enabled(enabled)

    def with_merge_requests_enabled(self, enabled: bool) -> ProjectUpdater:
        return self._updater().with_merge_requests_enabled(enabled)


class Issue(Facade):
    """A project issue, addressed by its project-scoped ``iid``."""

    id: int
    iid: int
    project_id: int
    title: str
    description: str | None = None
    state: str | None = None
    author: User | None = None
    assignees: list[User] = []
    labels: list[str] = []
    upvotes: int | None = None
    downvotes: int | None = None
    merge_requests_count: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    closed_by: User | None = None
    subscribed: bool | None = None
    due_date: date | None = None
    confidential: bool | None = None
    has_tasks: bool | None = None
    web_url: str | None = None

    @property
    def endpoint(self) -> str:
        return f"/projects/{self.project_id}/issues/{self.iid}"

    def project(self) -> Project:
        return fetch_project(self.requestor, self.project_id)

    def related_merge_requests(self) -> MergeRequestListQuery:
        return MergeRequestListQuery(self.requestor, f"{self.endpoint}/related_merge_requests")

    def closed_by_merge_requests(self) -> MergeRequestListQuery:
        return MergeRequestListQuery(self.requestor, f"{self.endpoint}/closed_by")

    def close(self) -> Issue:
        return self._updater().with_state_event("close").update()

    def reopen(self) -> Issue:
        return self._updater().with_state_event("reopen").update()

    def delete(self) -> None:
        self.requestor.delete(self.endpoint)

    def _updater(self) -> IssueUpdater:
        return IssueUpdater(self.requestor, self.endpoint)

    def with_title(self, title: str) -> IssueUpdater:
        """Start a partial update of this issue, beginning with its title."""
        return self._updater().with_title(title)

    def with_description(self, description: str) -> IssueUpdater:
        return self._updater().with_description(description)

    def with_labels(self, labels: Sequence[str]) -> IssueUpdater:
        return self._updater().with_labels(labels)

    def with_assignee_ids(self, assignee_ids: Sequence[int]) -> IssueUpdater:
        return self._updater().with_assignee_ids(assignee_ids)

    def with_due_date(self, due_date: date | str) -> IssueUpdater:
        return self._updater().with_due_date(due_date)

    def with_confidential(self, confidential: bool) -> IssueUpdater:
        return self._updater().with_confidential(confidential)

    def with_state_event(self, state_event: str) -> IssueUpdater:
        return self._updater().with_state_event(state_event)


class MergeRequest(Facade):
    """A merge request; branches are held by name, not as live objects."""

    id: int
    iid: int
    project_id: int
    title: str
    source_branch: str
    target_branch: str
    description: str | None = None
    state: str | None = None
    author: User | None = None
    assignees: list[User] = []
    labels: list[str] = []
    upvotes: int | None = None
    downvotes: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    merged_at: datetime | None = None
    closed_at: datetime | None = None
    closed_by: User | None = None
    merged_by: User | None = None
    subscribed: bool | None = None
    source_project_id: int | None = None
    target_project_id: int | None = None
    sha: str | None = None
    merge_status: str | None = None
    draft: bool | None = None
    squash: bool | None = None
    web_url: str | None = None

    @property
    def endpoint(self) -> str:
        return f"/projects/{self.project_id}/merge_requests/{self.iid}"

    def project(self) -> Project:
        return fetch_project(self.requestor, self.project_id)

    def participants(self) -> UserListQuery:
        return UserListQuery(self.requestor, f"{self.endpoint}/participants")

    def commits(self) -> CommitListQuery:
        return CommitListQuery(
            self.requestor,
            f"{self.endpoint}/commits",
            defaults={"project_id": self.project_id},
        )

    def closes_issues(self) -> IssueListQuery:
        return IssueListQuery(self.requestor, f"{self.endpoint}/closes_issues")

    def accept(
        self,
        *,
        merge_commit_message: str | None = None,
        squash: bool | None = None,
        should_remove_source_branch: bool | None = None,
        sha: str | None = None,
    ) -> MergeRequest:
        """Merge the request; ``sha`` guards against merging a moved source head."""
        body = Body()
        if merge_commit_message is not None:
            body.put_string("merge_commit_message", merge_commit_message)
        if squash is not None:
            body.put_bool("squash", squash)
        if should_remove_source_branch is not None:
            body.put_bool("should_remove_source_branch", should_remove_source_branch)
        if sha is not None:
            body.put_string("sha", sha)
        endpoint = f"{self.endpoint}/merge"
        payload = self.requestor.put(endpoint, body)
        return to_facade(MergeRequest, payload, requestor=self.requestor, endpoint=endpoint)

    def approve(self) -> None:
        self.requestor.post(f"{self.endpoint}/approve")

    def unapprove(self) -> None:
        self.requestor.post(f"{self.endpoint}/unapprove")

    def delete(self) -> None:
        self.requestor.delete(self.endpoint)

    def _updater(self) -> MergeRequestUpdater:
        return MergeRequestUpdater(self.requestor, self.endpoint)

    def with_title(self, title: str) -> MergeRequestUpdater:
        """Start a partial update of this merge request, beginning with its title."""
        return self._updater().with_title(title)

    def with_description(self, description: str) -> MergeRequestUpdater:
        return self._updater().with_description(description)

    def with_target_branch(self, target_branch: str) -> MergeRequestUpdater:
        return self._updater().with_target_branch(target_branch)

    def with_assignee_ids(self, assignee_ids: Sequence[int]) -> MergeRequestUpdater:
        return self._updater().with_assignee_ids(assignee_ids)

    def with_labels(self, labels: Sequence[str]) -> MergeRequestUpdater:
        return self._updater().with_labels(labels)

    def with_state_event(self, state_event: str) -> MergeRequestUpdater:
        return self._updater().with_state_event(state_event)

    def with_remove_source_branch(self, remove: bool) -> MergeRequestUpdater:
        return self._updater().with_remove_source_branch(remove)

    def with_squash(self, squash: bool) -> MergeRequestUpdater:
        return self._updater().with_squash(squash)


# Queries

_PROJECT_FILTERS: dict[str, FieldSpec] = {
    "archived": _BOOLEAN,
    "id_after": _INTEGER,
    "id_before": _INTEGER,
    "last_activity_after": _DATETIME,
    "last_activity_before": _DATETIME,
    "membership": _BOOLEAN,
    "min_access_level": _INTEGER,
    "order_by": FieldSpec(
        ParamKind.STRING,
        frozenset(
            {
                "id",
                "name",
                "path",
                "created_at",
                "updated_at",
                "last_activity_at",
                "similarity",
                "star_count",
            }
        ),
    ),
    "owned": _BOOLEAN,
    "search": _STRING,
    "search_namespaces": _BOOLEAN,
    "simple": _BOOLEAN,
    "sort": _SORT,
    "starred": _BOOLEAN,
    "statistics": _BOOLEAN,
    "visibility": _VISIBILITY,
    "with_custom_attributes": _BOOLEAN,
    "with_issues_enabled": _BOOLEAN,
    "with_merge_requests_enabled": _BOOLEAN,
    "with_programming_language": _STRING,
}


class ProjectQuery(Query[Project]):
    """Projects visible to the caller, or owned by one user."""

    MODEL = Project
    FILTERS = _PROJECT_FILTERS

    def with_archived(self, archived: bool) -> Self:
        return self._set("archived", archived)

    def with_id_after(self, project_id: int) -> Self:
        return self._set("id_after", project_id)

    def with_id_before(self, project_id: int) -> Self:
        return self._set("id_before", project_id)

    def with_last_activity_after(self, when: datetime | str) -> Self:
        return self._set("last_activity_after", when)

    def with_last_activity_before(self, when: datetime | str) -> Self:
        return self._set("last_activity_before", when)

    def with_membership(self, membership: bool) -> Self:
        return self._set("membership", membership)

    def with_min_access_level(self, level: int) -> Self:
        return self._set("min_access_level", level)

    def with_order_by(self, order_by: str) -> Self:
        return self._set("order_by", order_by)

    def with_owned(self, owned: bool) -> Self:
        return self._set("owned", owned)

    def with_search(self, search: str) -> Self:
        return self._set("search", search)

    def with_search_namespaces(self, search_namespaces: bool) -> Self:
        return self._set("search_namespaces", search_namespaces)

    def with_simple(self, simple: bool) -> Self:
        return self._set("simple", simple)

    def with_sort(self, sort: str) -> Self:
        return self._set("sort", sort)

    def with_starred(self, starred: bool) -> Self:
        return self._set("starred", starred)

    def with_statistics(self, statistics: bool) -> Self:
        return self._set("statistics", statistics)

    def with_visibility(self, visibility: str) -> Self:
        return self._set("visibility", visibility)

    def with_custom_attributes(self, enabled: bool) -> Self:
        return self._set("with_custom_attributes", enabled)

    def with_issues_enabled(self, enabled: bool) -> Self:
        return self._set("with_issues_enabled", enabled)

    def with_merge_requests_enabled(self, enabled: bool) -> Self:
        return self._set("with_merge_requests_enabled", enabled)

    def with_programming_language(self, language: str) -> Self:
        return self._set("with_programming_language", language)


class BranchQuery(Query[Branch]):
    """Branches of one project."""

    MODEL = Branch
    FILTERS = {"search": _STRING, "regex": _STRING}

    def with_search(self, search: str) -> Self:
        return self._set("search", search)

    def with_regex(self, regex: str) -> Self:
        return self._set("regex", regex)


class CommitQuery(Query[Commit]):
    """Commits of one project repository."""

    MODEL = Commit
    FILTERS = {
        "ref_name": _STRING,
        "since": _DATETIME,
        "until": _DATETIME,
        "path": _STRING,
        "all": _BOOLEAN,
        "with_stats": _BOOLEAN,
        "first_parent": _BOOLEAN,
        "order": FieldSpec(ParamKind.STRING, frozenset({"default", "topo"})),
    }

    def with_ref_name(self, ref_name: str) -> Self:
        return self._set("ref_name", ref_name)

    def with_since(self, since: datetime | str) -> Self:
        return self._set("since", since)

    def with_until(self, until: datetime | str) -> Self:
        return self._set("until", until)

    def with_path(self, path: str) -> Self:
        return self._set("path", path)

    def with_all(self, all_refs: bool) -> Self:
        return self._set("all", all_refs)

    def with_stats(self, with_stats: bool) -> Self:
        return self._set("with_stats", with_stats)

    def with_first_parent(self, first_parent: bool) -> Self:
        return self._set("first_parent", first_parent)

    def with_order(self, order: str) -> Self:
        return self._set("order", order)


_ISSUE_FILTERS: dict[str, FieldSpec] = {
    "assignee_id": _INTEGER,
    "assignee_username[]": _STRINGS,
    "author_id": _INTEGER,
    "author_username": _STRING,
    "confidential": _BOOLEAN,
    "created_after": _DATETIME,
    "created_before": _DATETIME,
    "due_date": FieldSpec(
        ParamKind.STRING,
        frozenset(
            {
                "0",
                "any",
                "today",
                "tomorrow",
                "overdue",
                "week",
                "month",
                "next_month_and_previous_two_weeks",
            }
        ),
    ),
    "iids[]": _INTEGERS,
    "in": _STRING,
    "iteration_id": _INTEGER,
    "iteration_title": _STRING,
    "labels": _STRINGS,
    "milestone": _STRING,
    "my_reaction_emoji": _STRING,
    "non_archived": _BOOLEAN,
    "order_by": _STRING,
    "scope": FieldSpec(ParamKind.STRING, frozenset({"created_by_me", "assigned_to_me", "all"})),
    "search": _STRING,
    "sort": _SORT,
    "state": FieldSpec(ParamKind.STRING, frozenset({"opened", "closed", "all"})),
    "updated_after": _DATETIME,
    "updated_before": _DATETIME,
    "weight": _INTEGER,
    "with_labels_details": _BOOLEAN,
}


class IssueQuery(Query[Issue]):
    """Issues visible to the caller across all projects."""

    MODEL = Issue
    FILTERS = _ISSUE_FILTERS

    def with_assignee_id(self, assignee_id: int) -> Self:
        return self._set("assignee_id", assignee_id)

    def with_assignee_usernames(self, usernames: Sequence[str]) -> Self:
        """Match issues assigned to these usernames, sent as repeated array values."""
        return self._set("assignee_username[]", usernames)

    def with_author_id(self, author_id: int) -> Self:
        return self._set("author_id", author_id)

    def with_author_username(self, username: str) -> Self:
        return self._set("author_username", username)

    def with_confidential(self, confidential: bool) -> Self:
        return self._set("confidential", confidential)

    def with_created_after(self, when: datetime | str) -> Self:
        return self._set("created_after", when)

    def with_created_before(self, when: datetime | str) -> Self:
        return self._set("created_before", when)

    def with_due_date(self, due_date: str) -> Self:
        return self._set("due_date", due_date)

    def with_iids(self, iids: Sequence[int]) -> Self:
        """Match only these internal ids; an empty list is rejected."""
        return self._set("iids[]", iids)

    def with_in(self, fields: str) -> Self:
        return self._set("in", fields)

    def with_iteration_id(self, iteration_id: int) -> Self:
        return self._set("iteration_id", iteration_id)

    def with_iteration_title(self, title: str) -> Self:
        return self._set("iteration_title", title)

    def with_labels(self, labels: Sequence[str]) -> Self:
        return self._set("labels", labels)

    def with_milestone(self, milestone: str) -> Self:
        return self._set("milestone", milestone)

    def with_my_reaction_emoji(self, emoji: str) -> Self:
        return self._set("my_reaction_emoji", emoji)

    def with_non_archived(self, non_archived: bool) -> Self:
        return self._set("non_archived", non_archived)

    def with_order_by(self, order_by: str) -> Self:
        return self._set("order_by", order_by)

    def with_scope(self, scope: str) -> Self:
        return self._set("scope", scope)

    def with_search(self, search: str) -> Self:
        return self._set("search", search)

    def with_sort(self, sort: str) -> Self:
        return self._set("sort", sort)

    def with_state(self, state: str) -> Self:
        return self._set("state", state)

    def with_updated_after(self, when: datetime | str) -> Self:
        return self._set("updated_after", when)

    def with_updated_before(self, when: datetime | str) -> Self:
        return self._set("updated_before", when)

    def with_weight(self, weight: int) -> Self:
        return self._set("weight", weight)

    def with_labels_details(self, enabled: bool) -> Self:
        return self._set("with_labels_details", enabled)


class ProjectIssueQuery(IssueQuery):
    """Issues of one project."""

    FILTERS = {name: spec for name, spec in _ISSUE_FILTERS.items() if name != "non_archived"}


_MERGE_REQUEST_FILTERS: dict[str, FieldSpec] = {
    "approved_by_ids[]": _INTEGERS,
    "approver_ids[]": _INTEGERS,
    "assignee_id": _INTEGER,
    "author_id": _INTEGER,
    "author_username": _STRING,
    "created_after": _DATETIME,
    "created_before": _DATETIME,
    "deployed_after": _DATETIME,
    "deployed_before": _DATETIME,
    "environment": _STRING,
    "in": _STRING,
    "labels": _STRINGS,
    "milestone": _STRING,
    "my_reaction_emoji": _STRING,
    "order_by": FieldSpec(ParamKind.STRING, frozenset({"created_at", "updated_at", "title"})),
    "scope": FieldSpec(ParamKind.STRING, frozenset({"created_by_me", "assigned_to_me", "all"})),
    "search": _STRING,
    "sort": _SORT,
    "source_branch": _STRING,
    "state": FieldSpec(
        ParamKind.STRING, frozenset({"opened", "closed", "locked", "merged", "all"})
    ),
    "target_branch": _STRING,
    "updated_after": _DATETIME,
    "updated_before": _DATETIME,
    "view": FieldSpec(ParamKind.STRING, frozenset({"simple"})),
    "wip": FieldSpec(ParamKind.STRING, frozenset({"yes", "no"})),
    "with_labels_details": _BOOLEAN,
    "with_merge_status_recheck": _BOOLEAN,
}


class MergeRequestQuery(Query[MergeRequest]):
    """Merge requests visible to the caller across all projects."""

    MODEL = MergeRequest
    FILTERS = _MERGE_REQUEST_FILTERS

    def with_approved_by_ids(self, user_ids: Sequence[int]) -> Self:
        """Match merge requests approved by all of these users."""
        return self._set("approved_by_ids[]", user_ids)

    def with_approver_ids(self, user_ids: Sequence[int]) -> Self:
        """Match merge requests with all of these users as approvers."""
        return self._set("approver_ids[]", user_ids)

    def with_assignee_id(self, assignee_id: int) -> Self:
        return self._set("assignee_id", assignee_id)

    def with_author_id(self, author_id: int) -> Self:
        return self._set("author_id", author_id)

    def with_author_username(self, username: str) -> Self:
        return self._set("author_username", username)

    def with_created_after(self, when: datetime | str) -> Self:
        return self._set("created_after", when)

    def with_created_before(self, when: datetime | str) -> Self:
        return self._set("created_before", when)

    def with_deployed_after(self, when: datetime | str) -> Self:
        return self._set("deployed_after", when)

    def with_deployed_before(self, when: datetime | str) -> Self:
        return self._set("deployed_before", when)

    def with_environment(self, environment: str) -> Self:
        return self._set("environment", environment)

    def with_in(self, fields: str) -> Self:
        return self._set("in", fields)

    def with_labels(self, labels: Sequence[str]) -> Self:
        return self._set("labels", labels)

    def with_milestone(self, milestone: str) -> Self:
        return self._set("milestone", milestone)

    def with_my_reaction_emoji(self, emoji: str) -> Self:
        return self._set("my_reaction_emoji", emoji)

    def with_order_by(self, order_by: str) -> Self:
        return self._set("order_by", order_by)

    def with_scope(self, scope: str) -> Self:
        return self._set("scope", scope)

    def with_search(self, search: str) -> Self:
        return self._set("search", search)

    def with_sort(self, sort: str) -> Self:
        return self._set("sort", sort)

    def with_source_branch(self, branch: str) -> Self:
        return self._set("source_branch", branch)

    def with_state(self, state: str) -> Self:
        return self._set("state", state)

    def with_target_branch(self, branch: str) -> Self:
        return self._set("target_branch", branch)

    def with_updated_after(self, when: datetime | str) -> Self:
        return self._set("updated_after", when)

    def with_updated_before(self, when: datetime | str) -> Self:
        return self._set("updated_before", when)

    def with_view(self, view: str) -> Self:
        return self._set("view", view)

    def with_wip(self, wip: str) -> Self:
        return self._set("wip", wip)

    def with_labels_details(self, enabled: bool) -> Self:
        return self._set("with_labels_details", enabled)

    def with_merge_status_recheck(self, enabled: bool) -> Self:
        return self._set("with_merge_status_recheck", enabled)


class ProjectMergeRequestQuery(MergeRequestQuery):
    """Merge requests of one project; also filterable by iid."""

    FILTERS = {**_MERGE_REQUEST_FILTERS, "iids[]": _INTEGERS}

    def with_iids(self, iids: Sequence[int]) -> Self:
        """Match only these internal ids; an empty list is rejected."""
        return self._set("iids[]", iids)


class UserQuery(Query[User]):
    """Users of the instance."""

    MODEL = User
    FILTERS = {
        "username": _STRING,
        "active": _BOOLEAN,
        "blocked": _BOOLEAN,
        "exclude_internal": _BOOLEAN,
        "search": _STRING,
    }

    def with_username(self, username: str) -> Self:
        return self._set("username", username)

    def with_active(self, active: bool) -> Self:
        return self._set("active", active)

    def with_blocked(self, blocked: bool) -> Self:
        return self._set("blocked", blocked)

    def with_exclude_internal(self, exclude: bool) -> Self:
        return self._set("exclude_internal", exclude)

    def with_search(self, search: str) -> Self:
        return self._set("search", search)


class ProjectUserQuery(Query[User]):
    """Users who are members of one project or its ancestors."""

    MODEL = User
    FILTERS = {"search": _STRING, "skip_users[]": _INTEGERS}

    def with_search(self, search: str) -> Self:
        return self._set("search", search)

    def with_skip_users(self, user_ids: Sequence[int]) -> Self:
        """Leave these user ids out of the results."""
        return self._set("skip_users[]", user_ids)


class UserListQuery(Query[User]):
    MODEL = User


class CommitListQuery(Query[Commit]):
    MODEL = Commit


class IssueListQuery(Query[Issue]):
    MODEL = Issue


class MergeRequestListQuery(Query[MergeRequest]):
    MODEL = MergeRequest


# Creators and updaters

_PROJECT_FIELDS: dict[str, FieldSpec] = {
    "name": _STRING,
    "path": _STRING,
    "description": _STRING,
    "default_branch": _STRING,
    "visibility": _VISIBILITY,
    "tag_list": _STRINGS,
    "issues_enabled": _BOOLEAN,
    "jobs_enabled": _BOOLEAN,
    "wiki_enabled": _BOOLEAN,
    "merge_requests_enabled": _BOOLEAN,
}


class _ProjectFields:
    """Setters shared by project creation and update."""

    def with_name(self, name: str) -> Self:
        return self._set("name", name)

    def with_path(self, path: str) -> Self:
        return self._set("path", path)

    def with_description(self, description: str) -> Self:
        return self._set("description", description)

    def with_default_branch(self, default_branch: str) -> Self:
        return self._set("default_branch", default_branch)

    def with_visibility(self, visibility: str) -> Self:
        return self._set("visibility", visibility)

    def with_tag_list(self, tag_list: Sequence[str]) -> Self:
        return self._set("tag_list", tag_list)

    def with_issues_enabled(self, enabled: bool) -> Self:
        return self._set("issues_enabled", enabled)

    def with_jobs_enabled(self, enabled: bool) -> Self:
        return self._set("jobs_enabled", enabled)

    def with_wiki_enabled(self, enabled: bool) -> Self:
        return self._set("wiki_enabled", enabled)

    def with_merge_requests_enabled(self, enabled: bool) -> Self:
        return self._set("merge_requests_enabled", enabled)


class ProjectCreator(_ProjectFields, Creator[Project]):
    MODEL = Project
    FIELDS = {
        **_PROJECT_FIELDS,
        "namespace_id": _INTEGER,
        "initialize_with_readme": _BOOLEAN,
    }
    REQUIRED = ("name",)

    def with_namespace_id(self, namespace_id: int) -> Self:
        return self._set("namespace_id", namespace_id)

    def with_initialize_with_readme(self, initialize: bool) -> Self:
        return self._set("initialize_with_readme", initialize)


class ProjectUpdater(_ProjectFields, Updater[Project]):
    MODEL = Project
    FIELDS = _PROJECT_FIELDS


class BranchCreator(Creator[Branch]):
    MODEL = Branch
    FIELDS = {"branch": _STRING, "ref": _STRING}
    REQUIRED = ("branch", "ref")

    def with_branch(self, name: str) -> Self:
        return self._set("branch", name)

    def with_ref(self, ref: str) -> Self:
        return self._set("ref", ref)


_ISSUE_FIELDS: dict[str, FieldSpec] = {
    "title": _STRING,
    "description": _STRING,
    "labels": _STRINGS,
    "assignee_ids": _INTEGERS,
    "due_date": _DATE,
    "confidential": _BOOLEAN,
    "milestone_id": _INTEGER,
    "weight": _INTEGER,
}


class _IssueFields:
    def with_title(self, title: str) -> Self:
        return self._set("title", title)

    def with_description(self, description: str) -> Self:
        return self._set("description", description)

    def with_labels(self, labels: Sequence[str]) -> Self:
        return self._set("labels", labels)

    def with_assignee_ids(self, assignee_ids: Sequence[int]) -> Self:
        return self._set("assignee_ids", assignee_ids)

    def with_due_date(self, due_date: date | str) -> Self:
        return self._set("due_date", due_date)

    def with_confidential(self, confidential: bool) -> Self:
        return self._set("confidential", confidential)

    def with_milestone_id(self, milestone_id: int) -> Self:
        return self._set("milestone_id", milestone_id)

    def with_weight(self, weight: int) -> Self:
        return self._set("weight", weight)


class IssueCreator(_IssueFields, Creator[Issue]):
    MODEL = Issue
    FIELDS = _ISSUE_FIELDS
    REQUIRED = ("title",)


class IssueUpdater(_IssueFields, Updater[Issue]):
    MODEL = Issue
    FIELDS = {**_ISSUE_FIELDS, "state_event": _STATE_EVENT, "discussion_locked": _BOOLEAN}

    def with_state_event(self, state_event: str) -> Self:
        return self._set("state_event", state_event)

    def with_discussion_locked(self, locked: bool) -> Self:
        return self._set("discussion_locked", locked)


_MERGE_REQUEST_FIELDS: dict[str, FieldSpec] = {
    "title": _STRING,
    "description": _STRING,
    "target_branch": _STRING,
    "assignee_ids": _INTEGERS,
    "labels": _STRINGS,
    "milestone_id": _INTEGER,
    "remove_source_branch": _BOOLEAN,
    "squash": _BOOLEAN,
}


class _MergeRequestFields:
    def with_title(self, title: str) -> Self:
        return self._set("title", title)

    def with_description(self, description: str) -> Self:
        return self._set("description", description)

    def with_target_branch(self, target_branch: str) -> Self:
        return self._set("target_branch", target_branch)

    def with_assignee_ids(self, assignee_ids: Sequence[int]) -> Self:
        return self._set("assignee_ids", assignee_ids)

    def with_labels(self, labels: Sequence[str]) -> Self:
        return self._set("labels", labels)

    def with_milestone_id(self, milestone_id: int) -> Self:
        return self._set("milestone_id", milestone_id)

    def with_remove_source_branch(self, remove: bool) -> Self:
        return self._set("remove_source_branch", remove)

    def with_squash(self, squash: bool) -> Self:
        return self._set("squash", squash)


class MergeRequestCreator(_MergeRequestFields, Creator[MergeRequest]):
    MODEL = MergeRequest
    FIELDS = {
        **_MERGE_REQUEST_FIELDS,
        "source_branch": _STRING,
        "target_project_id": _INTEGER,
        "allow_collaboration": _BOOLEAN,
    }
    REQUIRED = ("source_branch", "target_branch", "title")

    def with_source_branch(self, source_branch: str) -> Self:
        return self._set("source_branch", source_branch)

    def with_target_project_id(self, project_id: int) -> Self:
        return self._set("target_project_id", project_id)

    def with_allow_collaboration(self, allow: bool) -> Self:
        return self._set("allow_collaboration", allow)


class MergeRequestUpdater(_MergeRequestFields, Updater[MergeRequest]):
    MODEL = MergeRequest
    FIELDS = {
        **_MERGE_REQUEST_FIELDS,
        "state_event": _STATE_EVENT,
        "discussion_locked": _BOOLEAN,
    }

    def with_state_event(self, state_event: str) -> Self:
        return self._set("state_event", state_event)

    def with_discussion_locked(self, locked: bool) -> Self:
        return self._set("discussion_locked", locked)
