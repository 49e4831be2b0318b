"""
Token storage for the GitHub API.

Lookup order: $GITHUB_TOKEN, then the token file written by `doner auth login`
($XDG_CONFIG_HOME/doner/token, mode 0600).
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import structlog
import typer

from doner.config import Settings

log = structlog.get_logger("doner.auth")

TOKEN_HELP_URL = "https://github.com/settings/tokens"


class AuthError(Exception):
    pass


def store_token(path: Path, token: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as fh:
        fh.write(token.strip() + "\n")
    os.chmod(path, 0o600)
    log.info("token_stored", path=str(path))

def load_token(path: Path) -> Optional[str]:
    if not path.is_file():
        return None
    token = path.read_text().strip()
    return token or None

def has_token(path: Path) -> bool:
    return load_token(path) is not None

def delete_token(path: Path) -> bool:
    """Remove the stored token. Returns False if there was nothing to remove."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    log.info("token_deleted", path=str(path))
    return True

def resolve_token(settings: Settings) -> str:
    if settings.github_token:
        return settings.github_token
    token = load_token(settings.token_path)
    if token:
        return token
    raise AuthError(
        "No GitHub token found. Either:\n"
        "  1. Run 'doner auth login' to authenticate\n"
        "  2. Set the GITHUB_TOKEN environment variable"
    )

def read_token_interactive() -> str:
    typer.echo("Paste your GitHub personal access token:")
    typer.echo(f"(Create one at {TOKEN_HELP_URL} with 'read:project' and 'repo' scopes)")
    token = typer.prompt("Token", hide_input=True, default="", show_default=False).strip()
    if not token:
        raise AuthError("Token cannot be empty")
    return token
