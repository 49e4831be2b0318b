from datetime import UTC, datetime

from doner.grouping import group_issues
from doner.models import Issue, ParentRef
from doner.output import OutputFormat, RenderOptions, build_output, render_grouped, render_list

EPIC = ParentRef(id="o/r#40", title="Auth epic", url="u40")
CLOSED = datetime(2024, 1, 20, 9, 5, tzinfo=UTC)


def test_flat_text_single_issue() -> None:
    issues = [Issue(id="o/r#42", title="Fix login", url="u42")]
    assert render_list(issues, OutputFormat.text) == "Found 1 issue(s):\n\n• [o/r#42] Fix login\n  u42\n"


def test_flat_text_with_parent_and_closed() -> None:
    issues = [
        Issue(id="o/r#41", title="Add SSO", url="u41", closed_at=CLOSED, parent=EPIC),
        Issue(id="o/r#42", title="Fix login", url="u42"),
    ]
    assert render_list(issues, OutputFormat.text) == (
        "Found 2 issue(s):\n"
        "\n"
        "• [o/r#41] Add SSO\n"
        "  u41\n"
        "  Parent: Auth epic (u40)\n"
        "  Closed: 2024-01-20 09:05\n"
        "\n"
        "• [o/r#42] Fix login\n"
        "  u42\n"
    )


def test_flat_markdown() -> None:
    issues = [
        Issue(id="o/r#41", title="Add SSO", url="u41", closed_at=CLOSED, parent=EPIC),
        Issue(id="o/r#42", title="Fix login", url="u42"),
    ]
    assert render_list(issues, OutputFormat.markdown) == (
        "## Summary (2 issues)\n"
        "\n"
        "- **[o/r#41](u41)**: Add SSO\n"
        "  - Parent: [Auth epic](u40)\n"
        "  - Closed: 2024-01-20 09:05\n"
        "- **[o/r#42](u42)**: Fix login\n"
    )


def test_empty_renders() -> None:
    assert render_list([], OutputFormat.text) == "Found 0 issue(s):\n"
    assert render_list([], OutputFormat.markdown) == "## Summary (0 issues)\n"
    assert render_grouped(group_issues([]), OutputFormat.text) == "Found 0 issue(s):\n"
    assert render_grouped(group_issues([]), OutputFormat.markdown) == "## Summary (0 issues)\n"


def test_grouped_text_parent_before_standalone() -> None:
    lone = Issue(id="o/r#7", title="Bump deps", url="u7")
    a = Issue(id="o/r#41", title="Add SSO", url="u41", closed_at=CLOSED, parent=EPIC)
    b = Issue(id="o/r#42", title="Fix login", url="u42", parent=EPIC)
    out = render_grouped(group_issues([lone, a, b]), OutputFormat.text)
    assert out == (
        "Found 3 issue(s):\n"
        "\n"
        "▶ Auth epic\n"
        "  u40\n"
        "  Completed:\n"
        "    • [o/r#41] Add SSO\n"
        "      Closed: 2024-01-20 09:05\n"
        "    • [o/r#42] Fix login\n"
        "\n"
        "▶ Standalone Issues\n"
        "  Completed:\n"
        "    • [o/r#7] Bump deps\n"
    )
    assert out.count("[o/r#41]") == out.count("[o/r#42]") == out.count("[o/r#7]") == 1
    assert "Parent:" not in out


def test_grouped_markdown() -> None:
    lone = Issue(id="o/r#7", title="Bump deps", url="u7", closed_at=CLOSED)
    a = Issue(id="o/r#41", title="Add SSO", url="u41", parent=EPIC)
    out = render_grouped(group_issues([a, lone]), OutputFormat.markdown)
    assert out == (
        "## Summary (2 issues)\n"
        "\n"
        "### [Auth epic](u40)\n"
        "\n"
        "- [o/r#41](u41): Add SSO\n"
        "\n"
        "### Standalone Issues\n"
        "\n"
        "- [o/r#7](u7): Bump deps\n"
        "  - Closed: 2024-01-20 09:05\n"
    )


def test_grouped_without_standalone() -> None:
    a = Issue(id="o/r#41", title="Add SSO", url="u41", parent=EPIC)
    out = render_grouped(group_issues([a]), OutputFormat.text)
    assert "Standalone" not in out
    assert out.endswith("    • [o/r#41] Add SSO\n")


def test_build_output_dispatch() -> None:
    issues = [
        Issue(id="o/r#1", title="One", url="u1"),
        Issue(id="o/r#2", title="Two", url="u2", parent=EPIC),
    ]
    assert build_output(issues, RenderOptions()) == render_list(issues, OutputFormat.text)
    assert build_output(issues, RenderOptions(format=OutputFormat.markdown)) == render_list(issues, OutputFormat.markdown)
    wrapped = build_output(issues, RenderOptions(format=OutputFormat.text, wrap=True))
    assert wrapped == render_grouped(group_issues(issues), OutputFormat.text)
    assert wrapped.index("▶ Auth epic") < wrapped.index("▶ Standalone Issues")


def test_render_is_deterministic() -> None:
    issues = [Issue(id=f"o/r#{n}", title=f"T{n}", url=f"u{n}", parent=EPIC if n % 2 else None) for n in range(10)]
    opts = RenderOptions(format=OutputFormat.markdown, wrap=True)
    assert build_output(issues, opts) == build_output(list(issues), opts)
