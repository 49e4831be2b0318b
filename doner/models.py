from __future__ import annotations

import dataclasses as dc
from datetime import UTC, datetime
from typing import Any, Iterable, Optional

# ---------- models ----------

@dc.dataclass(frozen=True)
class ParentRef:
    """Snapshot of a parent issue as inlined in the child's payload."""
    id: str
    title: str
    url: str


@dc.dataclass(frozen=True)
class Issue:
    id: str  # "owner/repo#42"
    title: str
    url: str
    closed_at: Optional[datetime] = None
    parent: Optional[ParentRef] = None

    @classmethod
    def from_graphql(cls, content: dict[str, Any]) -> "Issue":
        """Build from a GraphQL `Issue` content node."""
        repo = (content.get("repository") or {}).get("nameWithOwner") or "?"
        parent = None
        if p := content.get("parent"):
            # Parents may live in another repository; fall back to the child's.
            parent_repo = (p.get("repository") or {}).get("nameWithOwner") or repo
            parent = ParentRef(
                id=f"{parent_repo}#{p['number']}",
                title=p.get("title", ""),
                url=p.get("url", ""),
            )
        return cls(
            id=f"{repo}#{content['number']}",
            title=content.get("title", ""),
            url=content["url"],
            closed_at=parse_dt(content.get("closedAt")),
            parent=parent,
        )

def parse_dt(x: Optional[str]) -> Optional[datetime]:
    if not x:
        return None
    return datetime.fromisoformat(x.replace("Z", "+00:00")).astimezone(UTC)

# ---------- filtering ----------

def filter_by_time(issues: Iterable[Issue], cutoff: Optional[datetime]) -> list[Issue]:
    """Keep issues closed at or after `cutoff`; everything when `cutoff` is None.

    Issues with no close timestamp can't satisfy a cutoff and are dropped
    whenever one is given.
    """
    if cutoff is None:
        return list(issues)
    return [i for i in issues if i.closed_at is not None and i.closed_at >= cutoff]
