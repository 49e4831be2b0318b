"""
GitHub Projects (v2) client: resolve a project, page through its items and
return the issues sitting in one status column.

Remote failures surface as one of NotFound / Unauthorized / RateLimited /
Transient. Rate limits and transient failures are retried with backoff.
"""
from __future__ import annotations

import dataclasses as dc
import time
from datetime import UTC, date, datetime, timedelta
from typing import Any, Callable, Optional

import httpx
import structlog

from doner.config import GITHUB_GRAPHQL_URL
from doner.models import Issue

log = structlog.get_logger("doner.github")

PAGE_SIZE = 100
SPRINT_DAYS = 14
USER_AGENT = "doner-cli"

# ---------- errors ----------

class FetchError(Exception):
    retryable = False

class NotFound(FetchError):
    pass

class Unauthorized(FetchError):
    pass

class RateLimited(FetchError):
    retryable = True

class Transient(FetchError):
    def __init__(self, message: str, *, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable

class InvalidProjectId(ValueError):
    pass

# ---------- queries ----------

ORG_PROJECT_QUERY = """
query($owner: String!, $number: Int!) {
  organization(login: $owner) { projectV2(number: $number) { id } }
}
"""

USER_PROJECT_QUERY = """
query($owner: String!, $number: Int!) {
  user(login: $owner) { projectV2(number: $number) { id } }
}
"""

VIEWER_QUERY = "query { viewer { login } }"

ITEMS_QUERY = """
query($projectId: ID!, $cursor: String, $statusField: String!, $iterationField: String!) {
  node(id: $projectId) {
    ... on ProjectV2 {
      items(first: %d, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          isArchived
          fieldValueByName(name: $statusField) {
            ... on ProjectV2ItemFieldSingleSelectValue { __typename name }
          }
          iteration: fieldValueByName(name: $iterationField) {
            ... on ProjectV2ItemFieldIterationValue { __typename title startDate }
          }
          content {
            __typename
            ... on Issue {
              number
              title
              url
              closedAt
              repository { nameWithOwner }
              parent { number title url repository { nameWithOwner } }
            }
          }
        }
      }
    }
  }
}
""" % PAGE_SIZE

# ---------- iteration filter ----------

def _parse_start(start: Optional[str]) -> Optional[date]:
    if not start:
        return None
    try:
        return date.fromisoformat(start)
    except ValueError:
        return None

def is_current_iteration(start: Optional[str], today: date) -> bool:
    d = _parse_start(start)
    return d is not None and d <= today < d + timedelta(days=SPRINT_DAYS)

def is_previous_iteration(start: Optional[str], today: date) -> bool:
    # No list of iterations to compare against, so "previous" means it
    # started one to two sprint lengths ago.
    d = _parse_start(start)
    if d is None:
        return False
    return today - timedelta(days=2 * SPRINT_DAYS) <= d < today - timedelta(days=SPRINT_DAYS)

def matches_iteration(title: Optional[str], start: Optional[str], expr: str, today: date) -> bool:
    """Match an item's iteration against e.g. "@current,@previous", "@all" or a title."""
    expr = expr.strip()
    if expr == "@all":
        return True
    if expr.startswith("@") and title is None:
        return False
    for part in (p.strip() for p in expr.split(",")):
        if part == "@current":
            if is_current_iteration(start, today):
                return True
        elif part == "@previous":
            if is_previous_iteration(start, today):
                return True
        elif part and title == part:
            return True
    return False

# ---------- client ----------

@dc.dataclass
class FetchStats:
    total_items: int = 0
    archived: int = 0
    wrong_column: int = 0
    not_issue: int = 0
    filtered_by_iteration: int = 0
    columns_seen: set[str] = dc.field(default_factory=set)
    iterations_seen: set[str] = dc.field(default_factory=set)


def _status_error(r: httpx.Response) -> FetchError:
    body = r.text[:500]
    code = r.status_code
    if code == 429 or (code == 403 and r.headers.get("x-ratelimit-remaining") == "0"):
        return RateLimited(f"GitHub rate limit exceeded ({code})")
    if code in (401, 403):
        return Unauthorized(f"GitHub rejected the token ({code}): {body}")
    if code == 404:
        return NotFound(f"GitHub API returned 404: {body}")
    return Transient(f"GitHub API error ({code}): {body}", retryable=code >= 500)

def _graphql_error(errors: list[dict[str, Any]]) -> FetchError:
    types = {e.get("type") for e in errors}
    msg = "GitHub API error: " + ", ".join(str(e.get("message", "")) for e in errors)
    if "RATE_LIMITED" in types:
        return RateLimited(msg)
    if "NOT_FOUND" in types:
        return NotFound(msg)
    if types & {"FORBIDDEN", "INSUFFICIENT_SCOPES"}:
        return Unauthorized(msg)
    return Transient(msg, retryable=False)


class GitHubClient:
    def __init__(
        self,
        token: str,
        api_url: str = GITHUB_GRAPHQL_URL,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        retries: int = 5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.url = api_url
        self.h = {"Authorization": f"Bearer {token}", "User-Agent": USER_AGENT}
        self.cli = httpx.Client(timeout=30, transport=transport)
        self.retries = retries
        self.sleep = sleep

    def close(self) -> None:
        self.cli.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _post(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            r = self.cli.post(self.url, headers=self.h, json={"query": query, "variables": variables})
        except httpx.TransportError as e:
            raise Transient(f"Failed to reach GitHub API: {e}") from e
        if r.is_error:
            raise _status_error(r)
        try:
            payload = r.json()
        except ValueError as e:
            raise Transient(f"Invalid JSON from GitHub API: {e}", retryable=False) from e
        if payload.get("errors"):
            raise _graphql_error(payload["errors"])
        return payload.get("data") or {}

    def execute(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Run a GraphQL query and return its `data`, retrying retryable failures."""
        backoff = 1.0
        for attempt in range(self.retries):
            try:
                return self._post(query, variables or {})
            except FetchError as e:
                if not e.retryable or attempt == self.retries - 1:
                    raise
                log.warning("github_retry", attempt=attempt + 1, error=str(e), backoff=backoff)
                self.sleep(backoff)
                backoff = min(backoff * 2.0, 10.0)
        raise RuntimeError("Unreachable")

    def viewer_login(self) -> str:
        data = self.execute(VIEWER_QUERY)
        login = (data.get("viewer") or {}).get("login")
        if not login:
            raise Unauthorized("Failed to get user info for token")
        return login

    # ---------- project lookup ----------

    def resolve_project_id(self, project: str) -> str:
        """Accept a `PVT_...` node id or `owner/number`; return the node id."""
        project = project.strip()
        if project.startswith("PVT_"):
            return project
        owner, sep, num = project.partition("/")
        if not sep or not owner or "/" in num:
            raise InvalidProjectId(
                "Invalid project ID format. Use 'owner/number' (e.g. 'myorg/5') "
                "or a GraphQL node ID (starting with 'PVT_')"
            )
        if not num.isdigit() or int(num) == 0:
            raise InvalidProjectId("Project number must be a positive integer")
        number = int(num)
        try:
            return self._lookup_project(ORG_PROJECT_QUERY, "organization", owner, number)
        except NotFound:
            log.debug("org_project_not_found", owner=owner, number=number)
        return self._lookup_project(USER_PROJECT_QUERY, "user", owner, number)

    def _lookup_project(self, query: str, kind: str, owner: str, number: int) -> str:
        data = self.execute(query, {"owner": owner, "number": number})
        node = data.get(kind)
        if node is None:
            raise NotFound(f"{kind.capitalize()} '{owner}' not found or not accessible")
        project = node.get("projectV2")
        if not project:
            raise NotFound(
                f"Project #{number} not found for {kind} '{owner}'. Check the project number "
                "and your token permissions (needs 'read:project' scope)."
            )
        return project["id"]

    # ---------- items ----------

    def fetch_column_issues(
        self,
        project_node_id: str,
        column: str,
        *,
        iteration: Optional[str] = None,
        status_field: str = "Status",
        iteration_field: str = "Iteration",
        today: Optional[date] = None,
    ) -> tuple[list[Issue], FetchStats]:
        """Return issues whose status is `column`, in project order."""
        today = today or datetime.now(UTC).date()
        stats = FetchStats()
        issues: list[Issue] = []
        cursor: Optional[str] = None

        while True:
            data = self.execute(ITEMS_QUERY, {
                "projectId": project_node_id,
                "cursor": cursor,
                "statusField": status_field,
                "iterationField": iteration_field,
            })
            node = data.get("node")
            if not node or "items" not in node:
                raise NotFound(f"Project {project_node_id} not found. Make sure the project ID is correct.")
            items = node["items"]
            nodes = items.get("nodes") or []
            stats.total_items += len(nodes)
            for item in nodes:
                issue = self._select(item, column, iteration, today, stats)
                if issue is not None:
                    issues.append(issue)
            log.debug("page_fetched", items=len(nodes), kept=len(issues), cursor=cursor)

            page = items.get("pageInfo") or {}
            if not page.get("hasNextPage"):
                break
            if not page.get("endCursor"):
                raise Transient("GitHub returned hasNextPage without endCursor", retryable=False)
            cursor = page["endCursor"]

        log.info("issues_fetched", count=len(issues), total_items=stats.total_items)
        return issues, stats

    def _select(
        self,
        item: dict[str, Any],
        column: str,
        iteration: Optional[str],
        today: date,
        stats: FetchStats,
    ) -> Optional[Issue]:
        if item.get("isArchived"):
            stats.archived += 1
            return None

        status = (item.get("fieldValueByName") or {}).get("name")
        stats.columns_seen.add(status or "<no status>")
        if status != column:
            stats.wrong_column += 1
            return None

        it = item.get("iteration") or {}
        it_title, it_start = it.get("title"), it.get("startDate")
        stats.iterations_seen.add(it_title or "<no iteration>")
        if iteration and not matches_iteration(it_title, it_start, iteration, today):
            stats.filtered_by_iteration += 1
            return None

        content = item.get("content") or {}
        if content.get("__typename") != "Issue":
            stats.not_issue += 1
            return None
        return Issue.from_graphql(content)
