"""Adapter for the ``playwright-cli`` named-session browser tool."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

LIST_SESSION_PLACEHOLDER = "_"


@dataclass(slots=True, frozen=True)
class ToolResult:
    """Combined stdout/stderr of one tool invocation and whether it exited 0."""

    output: str
    ok: bool


class SessionTool(Protocol):
    """Operations the health checker needs from the browser session tool."""

    def is_active(self, session: str) -> bool: ...

    def load_state(self, session: str, state_file: Path) -> ToolResult: ...

    def open(self, session: str, url: str) -> ToolResult: ...

    def goto(self, session: str, url: str) -> ToolResult: ...

    def snapshot(self, session: str) -> ToolResult: ...

    def save_state(self, session: str, state_file: Path) -> ToolResult: ...


class PlaywrightCliTool:
    """Runs ``playwright-cli -s=<session> <command> [args...]``."""

    def __init__(
        self,
        *,
        executable: str = "playwright-cli",
        timeout_seconds: float = 60.0,
        logger: logging.Logger = logger,
    ) -> None:
        self.executable = executable
        self.timeout_seconds = timeout_seconds
        self._logger = logger

    def run(self, session: str, *args: str) -> ToolResult:
        argv = [self.executable, f"-s={session}", *args]
        self._logger.debug("Running %s", argv)
        try:
            completed = subprocess.run(  # noqa: S603
                argv,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            return ToolResult(output=f"{args[0] if args else 'command'} timed out", ok=False)
        except OSError as error:
            return ToolResult(output=f"{self.executable} failed to start: {error}", ok=False)
        return ToolResult(
            output=f"{completed.stdout}{completed.stderr}",
            ok=completed.returncode == 0,
        )

    def list_sessions(self) -> str:
        return self.run(LIST_SESSION_PLACEHOLDER, "list").output

    def is_active(self, session: str) -> bool:
        return session_listed(self.list_sessions(), session)

    def load_state(self, session: str, state_file: Path) -> ToolResult:
        return self.run(session, "state-load", str(state_file))

    def open(self, session: str, url: str) -> ToolResult:
        return self.run(session, "open", url)

    def goto(self, session: str, url: str) -> ToolResult:
        return self.run(session, "goto", url)

    def snapshot(self, session: str) -> ToolResult:
        return self.run(session, "snapshot")

    def save_state(self, session: str, state_file: Path) -> ToolResult:
        return self.run(session, "state-save", str(state_file))


def session_listed(list_output: str, session: str) -> bool:
    """Whether ``session`` appears as a whole token in ``list`` output.

    Hyphens count as part of a name: ``outlook`` does not match
    ``outlook-calendar``.
    """

    token = re.compile(rf"(?<![\w-]){re.escape(session)}(?![\w-])")
    return token.search(list_output) is not None
