"""
doner: summarize the issues in one column of a GitHub project board.

Env:
  GITHUB_TOKEN           (optional; overrides the token stored by `doner auth login`)
  DONER_STATUS_FIELD     (optional, default: 'Status')
  DONER_ITERATION_FIELD  (optional, default: 'Iteration')
  DONER_LLM_CMD          (optional; command used by --ai)

Example:
  doner summarize myorg/5 --since this-week --wrap --format markdown
"""
from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import Optional

import structlog
import typer

from doner import auth
from doner.config import Settings
from doner.github import FetchError, FetchStats, GitHubClient, InvalidProjectId
from doner.llm import LlmClient, LlmError
from doner.models import filter_by_time
from doner.output import OutputFormat, RenderOptions, build_output
from doner.time_filter import TimeFilterError, parse_time_filter

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Summarize issues from a GitHub project board column")
auth_app = typer.Typer(no_args_is_help=True, help="Authenticate with GitHub")
app.add_typer(auth_app, name="auth")

log = structlog.get_logger("doner")

# ---------- logging setup ----------

def configure_logging(verbosity: int) -> None:
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
        ),
        # sys.stderr is looked up per logger, not captured at configure time.
        logger_factory=lambda *args: structlog.PrintLogger(sys.stderr),
        cache_logger_on_first_use=False,
    )

def _now() -> datetime:
    return datetime.now(UTC)

def _fail(msg: str, code: int) -> typer.Exit:
    typer.echo(f"error: {msg}", err=True)
    return typer.Exit(code)

def _print_debug(project_node_id: str, column: str, iteration: Optional[str], settings: Settings,
                 stats: FetchStats, fetched: int, kept: int) -> None:
    lines = [
        f"Debug: Project node ID: {project_node_id}",
        f'Debug: Looking for column: "{column}"',
        f'Debug: Status field: "{settings.status_field}"',
    ]
    if iteration:
        lines.append(f'Debug: Iteration filter: "{iteration}"')
    lines += [
        f"Debug: Total items fetched: {stats.total_items}",
        f"Debug: Archived items (skipped): {stats.archived}",
        f"Debug: Wrong column (skipped): {stats.wrong_column}",
        f"Debug: Not an issue (skipped): {stats.not_issue}",
        f"Debug: Filtered by iteration (skipped): {stats.filtered_by_iteration}",
        f"Debug: Filtered by time (skipped): {fetched - kept}",
        f"Debug: Final count: {kept}",
    ]
    if stats.columns_seen:
        lines.append(f"Debug: Columns seen: {sorted(stats.columns_seen)}")
    if stats.iterations_seen:
        lines.append(f"Debug: Iterations seen: {sorted(stats.iterations_seen)}")
    for line in lines:
        typer.echo(line, err=True)
    typer.echo("", err=True)

# ---------- summarize ----------

@app.command("summarize")
def summarize(
    project_id: str = typer.Argument(..., help="GitHub Project identifier (owner/number or GraphQL node ID)"),
    column: str = typer.Option("Done", "--col", "-c", help="Column name to fetch issues from"),
    since: Optional[str] = typer.Option(None, "--since", "-s", help="Filter by close time (e.g. 7d, 24h, yesterday, this-week)"),
    iteration: Optional[str] = typer.Option(
        "@current,@previous", "--iteration", "-i",
        help="Filter by iteration (@current, @previous, @all, a comma list, or an iteration name)",
    ),
    fmt: OutputFormat = typer.Option(OutputFormat.text, "--format", "-f", help="Output format"),
    wrap: bool = typer.Option(False, "--wrap", "-w", help="Group issues by parent issue"),
    ai: bool = typer.Option(False, "--ai", help="Summarize the report with an LLM CLI (gemini, cursor or $DONER_LLM_CMD)"),
    debug: bool = typer.Option(False, "--debug", help="Show debug information about fetched items"),
    verbose: int = typer.Option(0, "-v", count=True, help="-v or -vv for more logs"),
):
    """Fetch and summarize issues from a project board column."""
    configure_logging(2 if debug else verbose)
    settings = Settings.from_env()

    cutoff = None
    if since is not None:
        try:
            cutoff = parse_time_filter(since, _now())
        except TimeFilterError as e:
            raise _fail(str(e), 2)

    try:
        token = auth.resolve_token(settings)
    except auth.AuthError as e:
        raise _fail(str(e), 2)

    try:
        with GitHubClient(token, settings.api_url) as gh:
            node_id = gh.resolve_project_id(project_id)
            fetched, stats = gh.fetch_column_issues(
                node_id,
                column,
                iteration=iteration,
                status_field=settings.status_field,
                iteration_field=settings.iteration_field,
            )
    except InvalidProjectId as e:
        raise _fail(str(e), 2)
    except FetchError as e:
        log.error("fetch_failed", kind=type(e).__name__, error=str(e))
        raise _fail(str(e), 1)

    issues = filter_by_time(fetched, cutoff)
    log.info("issues_filtered", fetched=len(fetched), kept=len(issues), cutoff=cutoff.isoformat() if cutoff else None)

    if debug:
        _print_debug(node_id, column, iteration, settings, stats, len(fetched), len(issues))

    if not issues:
        typer.echo(f'No issues found in column "{column}"')
        return

    report = build_output(issues, RenderOptions(format=fmt, wrap=wrap))

    if not ai:
        typer.echo(report, nl=False)
        return

    try:
        llm = LlmClient.from_env(settings)
        typer.echo("Generating AI summary... ", err=True, nl=False)
        summary = llm.summarize(report)
    except LlmError as e:
        raise _fail(str(e), 1)
    typer.echo("done", err=True)
    typer.echo(summary)

app.command("sum", hidden=True)(summarize)

# ---------- auth ----------

@auth_app.command("login")
def login(
    with_token: Optional[str] = typer.Option(None, "--with-token", help="Provide token directly instead of prompting"),
    skip_validation: bool = typer.Option(False, "--skip-validation", hidden=True),
):
    """Log in to GitHub and store the token."""
    configure_logging(0)
    settings = Settings.from_env()
    try:
        token = with_token.strip() if with_token else auth.read_token_interactive()
    except auth.AuthError as e:
        raise _fail(str(e), 2)

    if skip_validation:
        typer.echo("Skipping validation (test mode)")
        username = "test-user"
    else:
        typer.echo("Validating token... ", nl=False)
        try:
            with GitHubClient(token, settings.api_url) as gh:
                username = gh.viewer_login()
        except FetchError as e:
            typer.echo("FAILED")
            raise _fail(f"Invalid token or authentication failed: {e}", 1)
        typer.echo("OK")

    typer.echo("Storing token... ", nl=False)
    auth.store_token(settings.token_path, token)
    typer.echo("OK")
    typer.echo(f"Logged in as {username}")

@auth_app.command("logout")
def logout():
    """Log out and remove the stored token."""
    configure_logging(0)
    settings = Settings.from_env()
    if not auth.has_token(settings.token_path):
        typer.echo("Not logged in.")
        return
    auth.delete_token(settings.token_path)
    typer.echo("Logged out. Stored token removed.")

@auth_app.command("status")
def status():
    """Check authentication status."""
    configure_logging(0)
    settings = Settings.from_env()
    if settings.github_token:
        typer.echo("Using token from GITHUB_TOKEN environment variable")
        return
    token = auth.load_token(settings.token_path)
    if not token:
        typer.echo("Not logged in.")
        typer.echo("Run 'doner auth login' to authenticate.")
        return
    try:
        with GitHubClient(token, settings.api_url) as gh:
            username = gh.viewer_login()
    except FetchError:
        typer.echo("Stored token appears invalid or expired.")
        typer.echo("Run 'doner auth login' to re-authenticate.")
        return
    typer.echo(f"Logged in as {username} (token stored in {settings.token_path})")

# ---------- entry ----------

def main() -> None:
    app()

if __name__ == "__main__":
    main()
