"""Controllers for dispatch, gate, agent and config CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from agent_relay.config import REQUIRED_KEYS, Settings, export_env
from agent_relay.dispatch.agent_runner import AgentCommandRunner
from agent_relay.dispatch.jobs import ActionJob, JobRuntime
from agent_relay.dispatch.models import Blocked

# sysexits EX_TEMPFAIL: schedulers treat it as "try again later".
RETRY_LATER_EXIT_CODE = 75


@dataclass(slots=True)
class DispatchCommand:
    """CLI input for a mailbox dispatch."""

    config_path: Path | None
    job_name: str
    action: str
    wait: bool = True
    poll_interval: float | None = None
    max_wait: float | None = None


@dataclass(slots=True)
class GateCommand:
    """CLI input for a standalone readiness check."""

    config_path: Path | None


@dataclass(slots=True)
class AgentRunCommand:
    """CLI input for a direct agent run."""

    config_path: Path | None
    prompt: str
    skip_permissions: bool | None = None


@dataclass(slots=True)
class ConfigValidateCommand:
    """CLI input for config validation."""

    config_path: Path | None


@dataclass(slots=True)
class DispatchCliResult:
    """Lines to render plus the process exit code."""

    lines: list[str]
    exit_code: int = 0


class DispatchCliController:
    """Coordinates gate, mailbox, poller and direct agent CLI operations."""

    def dispatch(self, command: DispatchCommand) -> DispatchCliResult:
        settings = _load_settings(command.config_path)
        export_env(settings.tree)
        runtime = JobRuntime.from_settings(settings)
        if command.poll_interval is not None:
            runtime.poll_interval = command.poll_interval
        if command.max_wait is not None:
            runtime.max_wait = command.max_wait

        if not command.wait:
            readiness = runtime.gate.check_ready()
            if isinstance(readiness, Blocked):
                return _blocked_result(readiness)
            task_id = runtime.mailbox.dispatch(command.job_name, command.action)
            return DispatchCliResult(
                lines=[
                    f"Task dispatched: task_id={task_id} job={command.job_name}",
                    f"pending={runtime.mailbox.pending_path(task_id)}",
                    f"result={runtime.mailbox.result_path(task_id)}",
                ],
            )

        job = ActionJob(runtime, name=command.job_name, action=command.action)
        outcome = job.perform()
        if isinstance(outcome, Blocked):
            return _blocked_result(outcome)
        return DispatchCliResult(
            lines=[
                f"Task completed: task_id={outcome.task_id} job={command.job_name} status=ok",
                outcome.output,
            ],
        )

    def gate(self, command: GateCommand) -> DispatchCliResult:
        settings = Settings.from_env(config_path=command.config_path)
        readiness = JobRuntime.from_settings(settings).gate.check_ready()
        if isinstance(readiness, Blocked):
            return _blocked_result(readiness)
        return DispatchCliResult(lines=["ready"])

    def run_agent(self, command: AgentRunCommand) -> DispatchCliResult:
        settings = Settings.from_env(config_path=command.config_path)
        export_env(settings.tree)
        runner = AgentCommandRunner.from_settings(settings.agent)
        skip_permissions = (
            settings.agent.skip_permissions
            if command.skip_permissions is None
            else command.skip_permissions
        )
        result = runner.perform(command.prompt, skip_permissions=skip_permissions)
        return DispatchCliResult(lines=[result.output.rstrip("\n")])

    def validate_config(self, command: ConfigValidateCommand) -> DispatchCliResult:
        settings = _load_settings(command.config_path)
        return DispatchCliResult(
            lines=[
                f"Config OK: {settings.config_path}",
                f"required_keys={len(REQUIRED_KEYS)}",
                f"tasks_dir={settings.mailbox.tasks_dir}",
                f"auth_state_dir={settings.sessions.auth_state_dir}",
            ],
        )


def _load_settings(config_path: Path | None) -> Settings:
    settings = Settings.from_env(config_path=config_path)
    settings.validate()
    return settings


def _blocked_result(blocked: Blocked) -> DispatchCliResult:
    return DispatchCliResult(
        lines=[f"blocked: {blocked.reason}"],
        exit_code=RETRY_LATER_EXIT_CODE,
    )
