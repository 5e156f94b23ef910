"""Synchronous one-shot agent command for tasks that need no browser session."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping

from agent_relay.config import AgentSettings
from agent_relay.dispatch.models import JobResult

logger = logging.getLogger(__name__)


class AgentCommandError(RuntimeError):
    """Agent command error with retryability hint."""

    def __init__(self, message: str, *, transient: bool) -> None:
        super().__init__(message)
        self.transient = transient


class AgentCommandRunner:
    """Runs ``<executable> [--dangerously-skip-permissions] -p <prompt>``."""

    def __init__(
        self,
        *,
        executable: str = "claude",
        timeout_seconds: float | None = None,
        env: Mapping[str, str] | None = None,
        logger: logging.Logger = logger,
    ) -> None:
        self.executable = executable
        self.timeout_seconds = timeout_seconds
        self.env = dict(env) if env is not None else None
        self._logger = logger

    @classmethod
    def from_settings(cls, settings: AgentSettings) -> AgentCommandRunner:
        return cls(executable=settings.executable, timeout_seconds=settings.timeout_seconds)

    def build_args(self, prompt: str, *, skip_permissions: bool = True) -> list[str]:
        args = [self.executable]
        if skip_permissions:
            args.append("--dangerously-skip-permissions")
        args.extend(["-p", prompt])
        return args

    def perform(self, prompt: str, *, skip_permissions: bool = True) -> JobResult:
        self._logger.info("Executing agent task: %s...", prompt[:50])
        args = self.build_args(prompt, skip_permissions=skip_permissions)
        self._logger.debug("Command: %s", args)

        try:
            completed = subprocess.run(  # noqa: S603
                args,
                check=False,
                capture_output=True,
                text=True,
                env=self.env,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as error:
            raise AgentCommandError(
                f"Agent command not found: {self.executable}",
                transient=False,
            ) from error
        except subprocess.TimeoutExpired as error:
            raise AgentCommandError(
                f"Agent task timed out after {self.timeout_seconds:g}s",
                transient=True,
            ) from error
        except OSError as error:
            raise AgentCommandError(
                f"Agent command failed to start: {error}",
                transient=True,
            ) from error

        if completed.returncode != 0:
            self._logger.error("Task failed: %s", completed.stderr)
            raise AgentCommandError(
                f"Agent task failed: {completed.stderr.strip()}",
                transient=False,
            )
        self._logger.info("Task completed successfully")
        return JobResult(output=completed.stdout)
