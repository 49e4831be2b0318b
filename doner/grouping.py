"""Group issues under their parent issue."""
from __future__ import annotations

import dataclasses as dc
from typing import Iterable, Iterator, Optional

from doner.models import Issue, ParentRef

STANDALONE = "__standalone__"


@dc.dataclass(frozen=True)
class Group:
    key: str
    parent: Optional[ParentRef]
    issues: tuple[Issue, ...]

    @property
    def is_standalone(self) -> bool:
        return self.key == STANDALONE


@dc.dataclass(frozen=True)
class GroupedResult:
    groups: tuple[Group, ...]
    standalone: Group

    def __iter__(self) -> Iterator[Group]:
        yield from self.groups
        if self.standalone.issues:
            yield self.standalone

    def __len__(self) -> int:
        return sum(len(g.issues) for g in self)


def group_issues(issues: Iterable[Issue]) -> GroupedResult:
    """Partition `issues` by parent id.

    Groups keep the order in which their first member was seen, children keep
    input order, and parentless issues go to the standalone group, which is
    always last. A parent that also shows up as an issue in its own right is
    not merged with its group header.
    """
    index: dict[str, int] = {}
    parents: list[ParentRef] = []
    children: list[list[Issue]] = []
    standalone: list[Issue] = []

    for issue in issues:
        if issue.parent is None:
            standalone.append(issue)
            continue
        key = issue.parent.id
        if key not in index:
            index[key] = len(parents)
            parents.append(issue.parent)
            children.append([])
        children[index[key]].append(issue)

    groups = tuple(
        Group(key=p.id, parent=p, issues=tuple(kids)) for p, kids in zip(parents, children)
    )
    return GroupedResult(
        groups=groups,
        standalone=Group(key=STANDALONE, parent=None, issues=tuple(standalone)),
    )
