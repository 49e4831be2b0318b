from datetime import UTC, datetime

from doner.models import Issue, ParentRef, filter_by_time, parse_dt

CUTOFF = datetime(2024, 1, 15, tzinfo=UTC)


def _issue(n: int, closed: datetime | None = None) -> Issue:
    return Issue(id=f"o/r#{n}", title=f"Issue {n}", url=f"u{n}", closed_at=closed)


def test_from_graphql_full() -> None:
    content = {
        "__typename": "Issue",
        "number": 42,
        "title": "Fix login",
        "url": "https://github.com/o/r/issues/42",
        "closedAt": "2024-01-20T10:15:00Z",
        "repository": {"nameWithOwner": "o/r"},
        "parent": {"number": 40, "title": "Auth epic", "url": "https://github.com/o/r/issues/40"},
    }
    issue = Issue.from_graphql(content)
    assert issue.id == "o/r#42"
    assert issue.title == "Fix login"
    assert issue.closed_at == datetime(2024, 1, 20, 10, 15, tzinfo=UTC)
    assert issue.parent == ParentRef(id="o/r#40", title="Auth epic", url="https://github.com/o/r/issues/40")


def test_from_graphql_parent_in_other_repo() -> None:
    content = {
        "number": 1,
        "title": "t",
        "url": "u",
        "closedAt": None,
        "repository": {"nameWithOwner": "o/child"},
        "parent": {"number": 9, "title": "p", "url": "pu", "repository": {"nameWithOwner": "o/epics"}},
    }
    issue = Issue.from_graphql(content)
    assert issue.closed_at is None
    assert issue.parent is not None
    assert issue.parent.id == "o/epics#9"


def test_parse_dt_empty() -> None:
    assert parse_dt(None) is None
    assert parse_dt("") is None


def test_no_cutoff_keeps_everything() -> None:
    issues = [_issue(1), _issue(2, datetime(2020, 1, 1, tzinfo=UTC))]
    assert filter_by_time(issues, None) == issues


def test_cutoff_drops_old_and_unclosed() -> None:
    keep_exact = _issue(1, CUTOFF)
    keep_new = _issue(2, datetime(2024, 1, 20, tzinfo=UTC))
    old = _issue(3, datetime(2024, 1, 14, 23, 59, tzinfo=UTC))
    unclosed = _issue(4)
    result = filter_by_time([old, keep_new, unclosed, keep_exact], CUTOFF)
    assert result == [keep_new, keep_exact]


def test_filter_is_idempotent() -> None:
    issues = [_issue(n, datetime(2024, 1, n, tzinfo=UTC)) for n in range(1, 29)] + [_issue(99)]
    once = filter_by_time(issues, CUTOFF)
    assert filter_by_time(once, CUTOFF) == once
