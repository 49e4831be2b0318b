from __future__ import annotations

import dataclasses as dc
import os
from pathlib import Path
from typing import Mapping, Optional

GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"


def _default_config_dir(env: Mapping[str, str]) -> Path:
    xdg_config = env.get("XDG_CONFIG_HOME") or os.path.join(Path.home(), ".config")
    return Path(xdg_config) / "doner"


@dc.dataclass(frozen=True)
class Settings:
    """Runtime settings, all overridable from the environment."""
    github_token: Optional[str] = None
    api_url: str = GITHUB_GRAPHQL_URL
    status_field: str = "Status"
    iteration_field: str = "Iteration"
    llm_cmd: Optional[str] = None
    config_dir: Path = dc.field(default_factory=lambda: _default_config_dir(os.environ))

    @property
    def token_path(self) -> Path:
        return self.config_dir / "token"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            github_token=env.get("GITHUB_TOKEN") or None,
            api_url=env.get("GITHUB_API_URL") or GITHUB_GRAPHQL_URL,
            status_field=env.get("DONER_STATUS_FIELD") or "Status",
            iteration_field=env.get("DONER_ITERATION_FIELD") or "Iteration",
            llm_cmd=env.get("DONER_LLM_CMD") or None,
            config_dir=_default_config_dir(env),
        )
