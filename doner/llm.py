"""Hand the rendered report to an LLM command-line tool for a narrative summary."""
from __future__ import annotations

import shlex
import shutil
import subprocess

import structlog

from doner.config import Settings

log = structlog.get_logger("doner.llm")

SYSTEM_PROMPT = (
    "You are a helpful assistant that summarizes completed software development work. "
    "Be concise but informative. Use markdown formatting."
)

INSTRUCTIONS = """Provide a rich summary that:
1. Groups related work into themes
2. Highlights key accomplishments
3. Notes any significant patterns"""


class LlmError(RuntimeError):
    pass


def build_prompt(report: str) -> str:
    return f"{SYSTEM_PROMPT}\n\nSummarize the following completed tasks:\n\n{report}\n\n{INSTRUCTIONS}"


class LlmClient:
    def __init__(self, argv: list[str], timeout: int = 300):
        # argv is the command up to, not including, the prompt argument.
        self.argv = argv
        self.timeout = timeout

    @classmethod
    def from_env(cls, settings: Settings) -> "LlmClient":
        if settings.llm_cmd is not None:
            argv = shlex.split(settings.llm_cmd)
            if not argv:
                raise LlmError("DONER_LLM_CMD is empty")
            return cls(argv)
        if shutil.which("gemini"):
            return cls(["gemini", "-p"])
        if shutil.which("cursor"):
            return cls(["cursor", "--prompt"])
        raise LlmError(
            "No LLM CLI tool found. Install one of:\n"
            "  - gemini-cli (https://github.com/google-gemini/gemini-cli)\n"
            "  - cursor CLI\n"
            "Or set DONER_LLM_CMD to a custom command"
        )

    def summarize(self, report: str) -> str:
        cmd = [*self.argv, build_prompt(report)]
        log.info("llm_invoke", exe=cmd[0])
        try:
            p = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise LlmError(f"Failed to execute {cmd[0]}: {e}") from e
        if p.returncode != 0:
            raise LlmError(f"{cmd[0]} failed: {p.stderr.strip()}")
        return p.stdout.strip()
