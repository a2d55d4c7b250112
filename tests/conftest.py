"""Shared pytest fixtures and test-run configuration."""

from __future__ import annotations

import hashlib
import itertools
import json
import math
import os
import re
from collections.abc import Callable, Iterator
from typing import Any
from urllib.parse import unquote

import httpx
import pytest
from gitlab_api.client import GitlabClient

FAKE_GITLAB_URL = "https://gitlab.example.com"
FAKE_TOKEN = "test-token"
TIMESTAMP = "2024-01-01T00:00:00.000Z"


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom pytest options for integration test execution."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked as integration (live GitLab instance).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly enabled."""
    run_integration = config.getoption("--run-integration")
    env_enabled = os.getenv("RUN_INTEGRATION_TESTS") == "1"
    if run_integration or env_enabled:
        return

    skip_marker = pytest.mark.skip(
        reason=(
            "Integration tests are disabled by default. "
            "Use --run-integration or set RUN_INTEGRATION_TESTS=1."
        )
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)


def _error(status_code: int, message: Any, *, key: str = "message") -> httpx.Response:
    return httpx.Response(status_code=status_code, json={key: message})


def _paginate(request: httpx.Request, rows: list[dict[str, Any]]) -> httpx.Response:
    """Slice rows by page/per_page and advertise the next page like GitLab does."""
    per_page = int(request.url.params.get("per_page", "20"))
    page = int(request.url.params.get("page", "1"))
    total_pages = max(1, math.ceil(len(rows) / per_page))
    start = (page - 1) * per_page
    headers = {
        "X-Page": str(page),
        "X-Per-Page": str(per_page),
        "X-Total": str(len(rows)),
        "X-Total-Pages": str(total_pages),
        "X-Next-Page": str(page + 1) if page < total_pages else "",
    }
    return httpx.Response(status_code=200, json=rows[start : start + per_page], headers=headers)


class FakeGitlab:
    """In-memory GitLab speaking enough of the v4 REST API for client tests."""

    def __init__(self, *, token: str = FAKE_TOKEN) -> None:
        self.token = token
        self.requests: list[httpx.Request] = []
        self.users: dict[int, dict[str, Any]] = {
            1: self._user(1, "root", "Administrator"),
            2: self._user(2, "alice", "Alice Liddell"),
        }
        self.current_user_id = 1
        self.projects: dict[int, dict[str, Any]] = {}
        self.branches: dict[int, dict[str, dict[str, Any]]] = {}
        self.commits: dict[int, dict[str, dict[str, Any]]] = {}
        self.issues: dict[int, dict[int, dict[str, Any]]] = {}
        self.merge_requests: dict[int, dict[int, dict[str, Any]]] = {}
        self._project_ids = itertools.count(1)
        self._issue_ids = itertools.count(100)
        self._merge_request_ids = itertools.count(500)
        self._commit_counter = itertools.count(1)
        self._routes: list[tuple[str, re.Pattern[str], Callable[..., httpx.Response]]] = [
            ("GET", re.compile(r"/user"), self._get_current_user),
            ("GET", re.compile(r"/users"), self._list_users),
            ("GET", re.compile(r"/users/(\d+)"), self._get_user),
            ("GET", re.compile(r"/users/([^/]+)/projects"), self._list_user_projects),
            ("GET", re.compile(r"/projects"), self._list_projects),
            ("POST", re.compile(r"/projects"), self._create_project),
            ("GET", re.compile(r"/projects/([^/]+)"), self._get_project),
            ("PUT", re.compile(r"/projects/([^/]+)"), self._update_project),
            ("DELETE", re.compile(r"/projects/([^/]+)"), self._delete_project),
            ("POST", re.compile(r"/projects/([^/]+)/fork"), self._fork_project),
            ("GET", re.compile(r"/projects/([^/]+)/users"), self._list_project_users),
            ("GET", re.compile(r"/projects/([^/]+)/repository/branches"), self._list_branches),
            ("POST", re.compile(r"/projects/([^/]+)/repository/branches"), self._create_branch),
            ("GET", re.compile(r"/projects/([^/]+)/repository/branches/([^/]+)"), self._get_branch),
            (
                "DELETE",
                re.compile(r"/projects/([^/]+)/repository/branches/([^/]+)"),
                self._delete_branch,
            ),
            ("GET", re.compile(r"/projects/([^/]+)/repository/commits"), self._list_commits),
            ("GET", re.compile(r"/projects/([^/]+)/repository/commits/([^/]+)"), self._get_commit),
            ("GET", re.compile(r"/issues"), self._list_all_issues),
            ("GET", re.compile(r"/projects/([^/]+)/issues"), self._list_issues),
            ("POST", re.compile(r"/projects/([^/]+)/issues"), self._create_issue),
            ("GET", re.compile(r"/projects/([^/]+)/issues/(\d+)"), self._get_issue),
            ("PUT", re.compile(r"/projects/([^/]+)/issues/(\d+)"), self._update_issue),
            ("DELETE", re.compile(r"/projects/([^/]+)/issues/(\d+)"), self._delete_issue),
            (
                "GET",
                re.compile(r"/projects/([^/]+)/issues/(\d+)/related_merge_requests"),
                self._related_merge_requests,
            ),
            ("GET", re.compile(r"/merge_requests"), self._list_all_merge_requests),
            ("GET", re.compile(r"/projects/([^/]+)/merge_requests"), self._list_merge_requests),
            ("POST", re.compile(r"/projects/([^/]+)/merge_requests"), self._create_merge_request),
            ("GET", re.compile(r"/projects/([^/]+)/merge_requests/(\d+)"), self._get_merge_request),
            (
                "PUT",
                re.compile(r"/projects/([^/]+)/merge_requests/(\d+)"),
                self._update_merge_request,
            ),
            (
                "DELETE",
                re.compile(r"/projects/([^/]+)/merge_requests/(\d+)"),
                self._delete_merge_request,
            ),
            (
                "PUT",
                re.compile(r"/projects/([^/]+)/merge_requests/(\d+)/merge"),
                self._merge_merge_request,
            ),
            (
                "POST",
                re.compile(r"/projects/([^/]+)/merge_requests/(\d+)/approve"),
                self._approve_merge_request,
            ),
            (
                "POST",
                re.compile(r"/projects/([^/]+)/merge_requests/(\d+)/unapprove"),
                self._unapprove_merge_request,
            ),
            (
                "GET",
                re.compile(r"/projects/([^/]+)/merge_requests/(\d+)/participants"),
                self._merge_request_participants,
            ),
            (
                "GET",
                re.compile(r"/projects/([^/]+)/merge_requests/(\d+)/commits"),
                self._merge_request_commits,
            ),
            (
                "GET",
                re.compile(r"/projects/([^/]+)/merge_requests/(\d+)/closes_issues"),
                self._merge_request_closes_issues,
            ),
        ]

    # Transport entry point

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        raw_path = request.url.raw_path.decode("ascii").partition("?")[0]
        prefix = "/api/v4"
        if not raw_path.startswith(prefix):
            return _error(404, "404 Not Found")
        path = raw_path[len(prefix) :]

        authenticated = self._is_authenticated(request)
        if request.headers.get("PRIVATE-TOKEN") or request.headers.get("Authorization"):
            if not authenticated:
                return _error(401, "401 Unauthorized")
        if request.method != "GET" and not authenticated:
            return _error(401, "401 Unauthorized")

        for method, pattern, handler in self._routes:
            if method != request.method:
                continue
            match = pattern.fullmatch(path)
            if match is None:
                continue
            arguments = [unquote(group) for group in match.groups()]
            return handler(request, *arguments)
        return _error(404, "404 Not Found")

    def _is_authenticated(self, request: httpx.Request) -> bool:
        if request.headers.get("PRIVATE-TOKEN") == self.token:
            return True
        return request.headers.get("Authorization") == f"Bearer {self.token}"

    @property
    def mock_transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # Seed helpers

    def _user(self, user_id: int, username: str, name: str) -> dict[str, Any]:
        return {
            "id": user_id,
            "username": username,
            "name": name,
            "state": "active",
            "avatar_url": f"{FAKE_GITLAB_URL}/uploads/{username}.png",
            "web_url": f"{FAKE_GITLAB_URL}/{username}",
            "created_at": TIMESTAMP,
        }

    def _new_commit(self, project_id: int, title: str, parent: str | None) -> dict[str, Any]:
        counter = next(self._commit_counter)
        sha = hashlib.sha1(f"{project_id}:{counter}".encode()).hexdigest()
        commit = {
            "id": sha,
            "short_id": sha[:8],
            "title": title,
            "message": title,
            "author_name": "Administrator",
            "author_email": "admin@example.com",
            "committer_name": "Administrator",
            "committer_email": "admin@example.com",
            "created_at": TIMESTAMP,
            "authored_date": TIMESTAMP,
            "committed_date": TIMESTAMP,
            "parent_ids": [parent] if parent else [],
            "web_url": f"{FAKE_GITLAB_URL}/-/commit/{sha}",
        }
        self.commits[project_id][sha] = commit
        return commit

    def _branch_payload(self, project_id: int, branch: dict[str, Any]) -> dict[str, Any]:
        default_branch = self.projects[project_id]["default_branch"]
        return {
            "name": branch["name"],
            "merged": False,
            "protected": branch["name"] == default_branch,
            "default": branch["name"] == default_branch,
            "developers_can_push": False,
            "developers_can_merge": False,
            "can_push": True,
            "web_url": f"{self.projects[project_id]['web_url']}/-/tree/{branch['name']}",
            "commit": self.commits[project_id][branch["sha"]],
        }

    def _resolve_project(self, reference: str) -> dict[str, Any] | None:
        if reference.isdigit():
            return self.projects.get(int(reference))
        for project in self.projects.values():
            if project["path_with_namespace"] == reference:
                return project
        return None

    def _body(self, request: httpx.Request) -> dict[str, Any]:
        if not request.content:
            return {}
        return json.loads(request.content)

    def _current_user(self) -> dict[str, Any]:
        return self.users[self.current_user_id]

    # Users

    def _get_current_user(self, request: httpx.Request) -> httpx.Response:
        if not self._is_authenticated(request):
            return _error(401, "401 Unauthorized")
        return httpx.Response(200, json=self._current_user())

    def _list_users(self, request: httpx.Request) -> httpx.Response:
        rows = list(self.users.values())
        username = request.url.params.get("username")
        if username is not None:
            rows = [row for row in rows if row["username"] == username]
        search = request.url.params.get("search")
        if search is not None:
            rows = [row for row in rows if search.lower() in row["name"].lower()]
        return _paginate(request, rows)

    def _get_user(self, request: httpx.Request, user_id: str) -> httpx.Response:
        user = self.users.get(int(user_id))
        if user is None:
            return _error(404, "404 User Not Found")
        return httpx.Response(200, json=user)

    def _list_user_projects(self, request: httpx.Request, username: str) -> httpx.Response:
        rows = [
            project
            for project in self.projects.values()
            if project["owner"]["username"] == username
        ]
        if not any(user["username"] == username for user in self.users.values()):
            return _error(404, "404 User Not Found")
        return _paginate(request, rows)

    # Projects

    def _list_projects(self, request: httpx.Request) -> httpx.Response:
        rows = sorted(self.projects.values(), key=lambda project: project["id"], reverse=True)
        search = request.url.params.get("search")
        if search is not None:
            rows = [row for row in rows if search.lower() in row["name"].lower()]
        visibility = request.url.params.get("visibility")
        if visibility is not None:
            rows = [row for row in rows if row["visibility"] == visibility]
        return _paginate(request, rows)

    def _create_project(self, request: httpx.Request) -> httpx.Response:
        body = self._body(request)
        name = body.get("name")
        if not name:
            return _error(400, {"name": ["can't be blank"]})
        path = body.get("path") or name.lower().replace(" ", "-")
        owner = self._current_user()
        path_with_namespace = f"{owner['username']}/{path}"
        if any(p["path_with_namespace"] == path_with_namespace for p in self.projects.values()):
            return _error(
                400,
                {"name": ["has already been taken"], "path": ["has already been taken"]},
            )
        project = self._store_project(
            name=name,
            path=path,
            namespace=owner["username"],
            owner=owner,
            settings=body,
        )
        return httpx.Response(201, json=project)

    def _store_project(
        self,
        *,
        name: str,
        path: str,
        namespace: str,
        owner: dict[str, Any],
        settings: dict[str, Any],
    ) -> dict[str, Any]:
        project_id = next(self._project_ids)
        web_url = f"{FAKE_GITLAB_URL}/{namespace}/{path}"
        project = {
            "id": project_id,
            "name": name,
            "path": path,
            "description": settings.get("description"),
            "name_with_namespace": f"{owner['name']} / {name}",
            "path_with_namespace": f"{namespace}/{path}",
            "default_branch": "master",
            "visibility": settings.get("visibility", "private"),
            "ssh_url_to_repo": f"git@gitlab.example.com:{namespace}/{path}.git",
            "http_url_to_repo": f"{web_url}.git",
            "web_url": web_url,
            "readme_url": f"{web_url}/-/blob/master/README.md",
            "tag_list": settings.get("tag_list", []),
            "owner": owner,
            "issues_enabled": settings.get("issues_enabled", True),
            "open_issues_count": 0,
            "merge_requests_enabled": settings.get("merge_requests_enabled", True),
            "jobs_enabled": settings.get("jobs_enabled", True),
            "wiki_enabled": settings.get("wiki_enabled", True),
            "created_at": TIMESTAMP,
            "last_activity_at": TIMESTAMP,
            "creator_id": owner["id"],
            "archived": False,
            "forks_count": 0,
            "star_count": 0,
            "public_jobs": True,
            "_links": {"self": f"{FAKE_GITLAB_URL}/api/v4/projects/{project_id}"},
        }
        self.projects[project_id] = project
        self.branches[project_id] = {}
        self.commits[project_id] = {}
        self.issues[project_id] = {}
        self.merge_requests[project_id] = {}
        initial = self._new_commit(project_id, "Initial commit", None)
        self.branches[project_id]["master"] = {"name": "master", "sha": initial["id"]}
        return project

    def _get_project(self, request: httpx.Request, reference: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        return httpx.Response(200, json=project)

    def _update_project(self, request: httpx.Request, reference: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        body = self._body(request)
        if "default_branch" in body and body["default_branch"] not in self.branches[project["id"]]:
            return _error(400, {"default_branch": ["does not exist"]})
        for key, value in body.items():
            project[key] = value
        return httpx.Response(200, json=project)

    def _delete_project(self, request: httpx.Request, reference: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        project_id = project["id"]
        for store in (self.projects, self.branches, self.commits, self.issues, self.merge_requests):
            store.pop(project_id, None)
        return httpx.Response(202, json={"message": "202 Accepted"})

    def _fork_project(self, request: httpx.Request, reference: str) -> httpx.Response:
        source = self._resolve_project(reference)
        if source is None:
            return _error(404, "404 Project Not Found")
        body = self._body(request)
        owner = self._current_user()
        namespace = body.get("namespace_path", owner["username"])
        if any(
            p["path_with_namespace"] == f"{namespace}/{source['path']}"
            for p in self.projects.values()
        ):
            return _error(409, ["Project namespace name has already been taken"])
        fork = self._store_project(
            name=source["name"],
            path=source["path"],
            namespace=namespace,
            owner=owner,
            settings={"description": source["description"], "visibility": source["visibility"]},
        )
        source["forks_count"] += 1
        return httpx.Response(201, json=fork)

    def _list_project_users(self, request: httpx.Request, reference: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        rows = [project["owner"]]
        return _paginate(request, rows)

    # Repository

    def _list_branches(self, request: httpx.Request, reference: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        project_id = project["id"]
        rows = [
            self._branch_payload(project_id, branch)
            for _name, branch in sorted(self.branches[project_id].items())
        ]
        search = request.url.params.get("search")
        if search is not None:
            rows = [row for row in rows if search in row["name"]]
        return _paginate(request, rows)

    def _create_branch(self, request: httpx.Request, reference: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        project_id = project["id"]
        body = self._body(request)
        name = body.get("branch")
        ref = body.get("ref")
        if not name:
            return _error(400, "branch is missing", key="error")
        if not ref:
            return _error(400, "ref is missing", key="error")
        if name in self.branches[project_id]:
            return _error(400, "Branch already exists")
        if ref in self.branches[project_id]:
            sha = self.branches[project_id][ref]["sha"]
        elif ref in self.commits[project_id]:
            sha = ref
        else:
            return _error(400, "Invalid reference name: " + ref)
        branch = {"name": name, "sha": sha}
        self.branches[project_id][name] = branch
        return httpx.Response(201, json=self._branch_payload(project_id, branch))

    def _get_branch(self, request: httpx.Request, reference: str, name: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        branch = self.branches[project["id"]].get(name)
        if branch is None:
            return _error(404, "404 Branch Not Found")
        return httpx.Response(200, json=self._branch_payload(project["id"], branch))

    def _delete_branch(self, request: httpx.Request, reference: str, name: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        if name not in self.branches[project["id"]]:
            return _error(404, "404 Branch Not Found")
        if name == project["default_branch"]:
            return _error(400, "The default branch of a project cannot be deleted.")
        del self.branches[project["id"]][name]
        return httpx.Response(204)

    def _list_commits(self, request: httpx.Request, reference: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        commits = self.commits[project["id"]]
        ref_name = request.url.params.get("ref_name")
        if ref_name is not None:
            branch = self.branches[project["id"]].get(ref_name)
            if branch is None:
                return _error(404, "404 Commit Not Found")
            rows = [commits[branch["sha"]]]
        else:
            rows = list(reversed(commits.values()))
        return _paginate(request, rows)

    def _get_commit(self, request: httpx.Request, reference: str, sha: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        commit = self.commits[project["id"]].get(sha)
        if commit is None:
            return _error(404, "404 Commit Not Found")
        return httpx.Response(200, json=commit)

    # Issues

    def _filter_issues(self, request: httpx.Request, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        state = request.url.params.get("state")
        if state is not None and state != "all":
            rows = [row for row in rows if row["state"] == state]
        labels = request.url.params.get("labels")
        if labels:
            wanted = set(labels.split(","))
            rows = [row for row in rows if wanted <= set(row["labels"])]
        iids = request.url.params.get_list("iids[]")
        if iids:
            rows = [row for row in rows if str(row["iid"]) in iids]
        return rows

    def _list_all_issues(self, request: httpx.Request) -> httpx.Response:
        rows = [issue for issues in self.issues.values() for issue in issues.values()]
        rows.sort(key=lambda issue: issue["id"], reverse=True)
        return _paginate(request, self._filter_issues(request, rows))

    def _list_issues(self, request: httpx.Request, reference: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        rows = sorted(self.issues[project["id"]].values(), key=lambda issue: issue["iid"], reverse=True)
        return _paginate(request, self._filter_issues(request, rows))

    def _create_issue(self, request: httpx.Request, reference: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        body = self._body(request)
        if not body.get("title"):
            return _error(400, "title is missing", key="error")
        project_id = project["id"]
        iid = len(self.issues[project_id]) + 1
        issue = {
            "id": next(self._issue_ids),
            "iid": iid,
            "project_id": project_id,
            "title": body["title"],
            "description": body.get("description"),
            "state": "opened",
            "author": self._current_user(),
            "assignees": [self.users[user_id] for user_id in body.get("assignee_ids", [])],
            "labels": body.get("labels", []),
            "upvotes": 0,
            "downvotes": 0,
            "merge_requests_count": 0,
            "created_at": TIMESTAMP,
            "updated_at": TIMESTAMP,
            "closed_at": None,
            "closed_by": None,
            "subscribed": True,
            "due_date": body.get("due_date"),
            "confidential": body.get("confidential", False),
            "has_tasks": False,
            "web_url": f"{project['web_url']}/-/issues/{iid}",
        }
        self.issues[project_id][iid] = issue
        project["open_issues_count"] += 1
        return httpx.Response(201, json=issue)

    def _find_issue(self, reference: str, iid: str) -> dict[str, Any] | None:
        project = self._resolve_project(reference)
        if project is None:
            return None
        return self.issues[project["id"]].get(int(iid))

    def _get_issue(self, request: httpx.Request, reference: str, iid: str) -> httpx.Response:
        issue = self._find_issue(reference, iid)
        if issue is None:
            return _error(404, "404 Issue Not Found")
        return httpx.Response(200, json=issue)

    def _update_issue(self, request: httpx.Request, reference: str, iid: str) -> httpx.Response:
        issue = self._find_issue(reference, iid)
        if issue is None:
            return _error(404, "404 Issue Not Found")
        body = self._body(request)
        state_event = body.pop("state_event", None)
        if state_event == "close":
            issue["state"] = "closed"
            issue["closed_at"] = TIMESTAMP
            issue["closed_by"] = self._current_user()
        elif state_event == "reopen":
            issue["state"] = "opened"
            issue["closed_at"] = None
            issue["closed_by"] = None
        assignee_ids = body.pop("assignee_ids", None)
        if assignee_ids is not None:
            issue["assignees"] = [self.users[user_id] for user_id in assignee_ids]
        issue.update(body)
        return httpx.Response(200, json=issue)

    def _delete_issue(self, request: httpx.Request, reference: str, iid: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None or int(iid) not in self.issues[project["id"]]:
            return _error(404, "404 Issue Not Found")
        del self.issues[project["id"]][int(iid)]
        return httpx.Response(204)

    def _related_merge_requests(
        self, request: httpx.Request, reference: str, iid: str
    ) -> httpx.Response:
        issue = self._find_issue(reference, iid)
        if issue is None:
            return _error(404, "404 Issue Not Found")
        rows = [
            merge_request
            for merge_request in self.merge_requests[issue["project_id"]].values()
            if f"#{issue['iid']}" in (merge_request["description"] or "")
        ]
        return _paginate(request, rows)

    # Merge requests

    def _list_all_merge_requests(self, request: httpx.Request) -> httpx.Response:
        rows = [mr for merge_requests in self.merge_requests.values() for mr in merge_requests.values()]
        state = request.url.params.get("state")
        if state is not None and state != "all":
            rows = [row for row in rows if row["state"] == state]
        return _paginate(request, rows)

    def _list_merge_requests(self, request: httpx.Request, reference: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        rows = sorted(
            self.merge_requests[project["id"]].values(),
            key=lambda merge_request: merge_request["iid"],
            reverse=True,
        )
        state = request.url.params.get("state")
        if state is not None and state != "all":
            rows = [row for row in rows if row["state"] == state]
        iids = request.url.params.get_list("iids[]")
        if iids:
            rows = [row for row in rows if str(row["iid"]) in iids]
        return _paginate(request, rows)

    def _create_merge_request(self, request: httpx.Request, reference: str) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None:
            return _error(404, "404 Project Not Found")
        project_id = project["id"]
        body = self._body(request)
        for required in ("source_branch", "target_branch", "title"):
            if not body.get(required):
                return _error(400, f"{required} is missing", key="error")
        branches = self.branches[project_id]
        for key in ("source_branch", "target_branch"):
            if body[key] not in branches:
                return _error(400, [f"{key.replace('_', ' ').capitalize()} does not exist"])
        for existing in self.merge_requests[project_id].values():
            if existing["source_branch"] == body["source_branch"] and existing["state"] == "opened":
                return _error(
                    409,
                    [
                        "Another open merge request already exists for this source branch: "
                        f"!{existing['iid']}"
                    ],
                )
        iid = len(self.merge_requests[project_id]) + 1
        merge_request = {
            "id": next(self._merge_request_ids),
            "iid": iid,
            "project_id": project_id,
            "title": body["title"],
            "description": body.get("description"),
            "state": "opened",
            "source_branch": body["source_branch"],
            "target_branch": body["target_branch"],
            "source_project_id": project_id,
            "target_project_id": project_id,
            "author": self._current_user(),
            "assignees": [self.users[user_id] for user_id in body.get("assignee_ids", [])],
            "labels": body.get("labels", []),
            "upvotes": 0,
            "downvotes": 0,
            "created_at": TIMESTAMP,
            "updated_at": TIMESTAMP,
            "merged_at": None,
            "closed_at": None,
            "merged_by": None,
            "closed_by": None,
            "subscribed": True,
            "sha": branches[body["source_branch"]]["sha"],
            "merge_status": "can_be_merged",
            "draft": False,
            "squash": body.get("squash", False),
            "web_url": f"{project['web_url']}/-/merge_requests/{iid}",
            "approved": False,
        }
        self.merge_requests[project_id][iid] = merge_request
        return httpx.Response(201, json=merge_request)

    def _find_merge_request(self, reference: str, iid: str) -> dict[str, Any] | None:
        project = self._resolve_project(reference)
        if project is None:
            return None
        return self.merge_requests[project["id"]].get(int(iid))

    def _get_merge_request(self, request: httpx.Request, reference: str, iid: str) -> httpx.Response:
        merge_request = self._find_merge_request(reference, iid)
        if merge_request is None:
            return _error(404, "404 Not found")
        return httpx.Response(200, json=merge_request)

    def _update_merge_request(
        self, request: httpx.Request, reference: str, iid: str
    ) -> httpx.Response:
        merge_request = self._find_merge_request(reference, iid)
        if merge_request is None:
            return _error(404, "404 Not found")
        body = self._body(request)
        state_event = body.pop("state_event", None)
        if state_event == "close":
            merge_request["state"] = "closed"
            merge_request["closed_at"] = TIMESTAMP
            merge_request["closed_by"] = self._current_user()
        elif state_event == "reopen":
            merge_request["state"] = "opened"
            merge_request["closed_at"] = None
            merge_request["closed_by"] = None
        assignee_ids = body.pop("assignee_ids", None)
        if assignee_ids is not None:
            merge_request["assignees"] = [self.users[user_id] for user_id in assignee_ids]
        body.pop("remove_source_branch", None)
        merge_request.update(body)
        return httpx.Response(200, json=merge_request)

    def _delete_merge_request(
        self, request: httpx.Request, reference: str, iid: str
    ) -> httpx.Response:
        project = self._resolve_project(reference)
        if project is None or int(iid) not in self.merge_requests[project["id"]]:
            return _error(404, "404 Not found")
        del self.merge_requests[project["id"]][int(iid)]
        return httpx.Response(204)

    def _merge_merge_request(
        self, request: httpx.Request, reference: str, iid: str
    ) -> httpx.Response:
        merge_request = self._find_merge_request(reference, iid)
        if merge_request is None:
            return _error(404, "404 Not found")
        if merge_request["state"] != "opened":
            return _error(405, "405 Method Not Allowed")
        body = self._body(request)
        if "sha" in body and body["sha"] != merge_request["sha"]:
            return _error(409, "SHA does not match HEAD of source branch")
        merge_request["state"] = "merged"
        merge_request["merged_at"] = TIMESTAMP
        merge_request["merged_by"] = self._current_user()
        if body.get("squash") is not None:
            merge_request["squash"] = body["squash"]
        return httpx.Response(200, json=merge_request)

    def _approve_merge_request(
        self, request: httpx.Request, reference: str, iid: str
    ) -> httpx.Response:
        merge_request = self._find_merge_request(reference, iid)
        if merge_request is None:
            return _error(404, "404 Not found")
        if merge_request["approved"]:
            return _error(401, "401 Unauthorized")
        merge_request["approved"] = True
        return httpx.Response(
            201,
            json={"id": merge_request["id"], "iid": merge_request["iid"], "approved": True},
        )

    def _unapprove_merge_request(
        self, request: httpx.Request, reference: str, iid: str
    ) -> httpx.Response:
        merge_request = self._find_merge_request(reference, iid)
        if merge_request is None:
            return _error(404, "404 Not found")
        if not merge_request["approved"]:
            return _error(404, "404 Not found")
        merge_request["approved"] = False
        return httpx.Response(201)

    def _merge_request_participants(
        self, request: httpx.Request, reference: str, iid: str
    ) -> httpx.Response:
        merge_request = self._find_merge_request(reference, iid)
        if merge_request is None:
            return _error(404, "404 Not found")
        return _paginate(request, [merge_request["author"], *merge_request["assignees"]])

    def _merge_request_commits(
        self, request: httpx.Request, reference: str, iid: str
    ) -> httpx.Response:
        merge_request = self._find_merge_request(reference, iid)
        if merge_request is None:
            return _error(404, "404 Not found")
        commit = self.commits[merge_request["project_id"]][merge_request["sha"]]
        return _paginate(request, [commit])

    def _merge_request_closes_issues(
        self, request: httpx.Request, reference: str, iid: str
    ) -> httpx.Response:
        merge_request = self._find_merge_request(reference, iid)
        if merge_request is None:
            return _error(404, "404 Not found")
        issues = self.issues[merge_request["project_id"]]
        rows = [
            issue
            for issue in issues.values()
            if f"Closes #{issue['iid']}" in (merge_request["description"] or "")
        ]
        return _paginate(request, rows)


@pytest.fixture
def fake_gitlab() -> FakeGitlab:
    return FakeGitlab()


@pytest.fixture
def gitlab_client(fake_gitlab: FakeGitlab) -> Iterator[GitlabClient]:
    """Client authenticated against the in-memory GitLab."""
    client = GitlabClient.from_access_token(
        FAKE_GITLAB_URL,
        FAKE_TOKEN,
        transport=fake_gitlab.mock_transport,
    )
    with client:
        yield client
