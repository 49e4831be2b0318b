"""Render issues as plain text or markdown, flat or grouped by parent."""
from __future__ import annotations

import dataclasses as dc
from datetime import UTC, datetime
from enum import Enum
from typing import Sequence

from doner.grouping import Group, GroupedResult, group_issues
from doner.models import Issue

TS_FMT = "%Y-%m-%d %H:%M"
STANDALONE_TITLE = "Standalone Issues"


class OutputFormat(str, Enum):
    text = "text"
    markdown = "markdown"


@dc.dataclass(frozen=True)
class RenderOptions:
    format: OutputFormat = OutputFormat.text
    wrap: bool = False


def _ts(dt: datetime) -> str:
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC)
    return dt.strftime(TS_FMT)

def _finish(lines: list[str]) -> str:
    return "\n".join(lines).rstrip("\n") + "\n"

def _text_header(total: int) -> list[str]:
    return [f"Found {total} issue(s):", ""]

def _markdown_header(total: int) -> list[str]:
    return [f"## Summary ({total} issues)", ""]

# ---------- flat ----------

def _list_text(issues: Sequence[Issue]) -> str:
    lines = _text_header(len(issues))
    for it in issues:
        lines.append(f"• [{it.id}] {it.title}")
        lines.append(f"  {it.url}")
        if it.parent:
            lines.append(f"  Parent: {it.parent.title} ({it.parent.url})")
        if it.closed_at:
            lines.append(f"  Closed: {_ts(it.closed_at)}")
        lines.append("")
    return _finish(lines)

def _list_markdown(issues: Sequence[Issue]) -> str:
    lines = _markdown_header(len(issues))
    for it in issues:
        lines.append(f"- **[{it.id}]({it.url})**: {it.title}")
        if it.parent:
            lines.append(f"  - Parent: [{it.parent.title}]({it.parent.url})")
        if it.closed_at:
            lines.append(f"  - Closed: {_ts(it.closed_at)}")
    return _finish(lines)

# ---------- grouped ----------

def _group_text(g: Group) -> list[str]:
    if g.is_standalone:
        lines = [f"▶ {STANDALONE_TITLE}"]
    else:
        lines = [f"▶ {g.parent.title}", f"  {g.parent.url}"]
    lines.append("  Completed:")
    for it in g.issues:
        lines.append(f"    • [{it.id}] {it.title}")
        if it.closed_at:
            lines.append(f"      Closed: {_ts(it.closed_at)}")
    return lines

def _group_markdown(g: Group) -> list[str]:
    if g.is_standalone:
        lines = [f"### {STANDALONE_TITLE}", ""]
    else:
        lines = [f"### [{g.parent.title}]({g.parent.url})", ""]
    for it in g.issues:
        lines.append(f"- [{it.id}]({it.url}): {it.title}")
        if it.closed_at:
            lines.append(f"  - Closed: {_ts(it.closed_at)}")
    return lines

def render_list(issues: Sequence[Issue], fmt: OutputFormat = OutputFormat.text) -> str:
    if fmt == OutputFormat.markdown:
        return _list_markdown(issues)
    return _list_text(issues)

def render_grouped(grouped: GroupedResult, fmt: OutputFormat = OutputFormat.text) -> str:
    total = len(grouped)
    if fmt == OutputFormat.markdown:
        lines, block = _markdown_header(total), _group_markdown
    else:
        lines, block = _text_header(total), _group_text
    for g in grouped:
        lines.extend(block(g))
        lines.append("")
    return _finish(lines)

def build_output(issues: Sequence[Issue], options: RenderOptions) -> str:
    """Render already-filtered issues according to `options`."""
    if options.wrap:
        return render_grouped(group_issues(issues), options.format)
    return render_list(issues, options.format)
