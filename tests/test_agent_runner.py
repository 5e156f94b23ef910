from __future__ import annotations

import allure
import pytest

from agent_relay.config import AgentSettings
from agent_relay.dispatch.agent_runner import AgentCommandError, AgentCommandRunner

pytestmark = [
    allure.epic("Task Handoff"),
    allure.feature("Agent Command"),
]

ECHO_AGENT = """
import sys

args = sys.argv[1:]
if "--fail" in " ".join(args):
    print("permission denied", file=sys.stderr)
    raise SystemExit(2)
print("args=" + "|".join(args))
"""


def test_build_args_skips_permissions_by_default() -> None:
    runner = AgentCommandRunner(executable="claude")

    assert runner.build_args("Summarize") == [
        "claude",
        "--dangerously-skip-permissions",
        "-p",
        "Summarize",
    ]
    assert runner.build_args("Summarize", skip_permissions=False) == ["claude", "-p", "Summarize"]


def test_from_settings_copies_executable_and_timeout() -> None:
    runner = AgentCommandRunner.from_settings(
        AgentSettings(executable="/opt/agent", timeout_seconds=42),
    )

    assert runner.executable == "/opt/agent"
    assert runner.timeout_seconds == 42


def test_perform_returns_stdout(fake_executable) -> None:
    agent = fake_executable("claude", ECHO_AGENT)

    result = AgentCommandRunner(executable=str(agent)).perform("Draft the weekly digest")

    assert result.success is True
    assert result.task_id is None
    assert result.output.strip() == "args=--dangerously-skip-permissions|-p|Draft the weekly digest"


def test_perform_raises_with_stderr_on_nonzero_exit(fake_executable) -> None:
    agent = fake_executable("claude", ECHO_AGENT)

    with pytest.raises(AgentCommandError, match="Agent task failed: permission denied") as excinfo:
        AgentCommandRunner(executable=str(agent)).perform("--fail please")

    assert excinfo.value.transient is False


def test_perform_reports_missing_executable(tmp_path) -> None:
    runner = AgentCommandRunner(executable=str(tmp_path / "missing-agent"))

    with pytest.raises(AgentCommandError, match="Agent command not found") as excinfo:
        runner.perform("anything")

    assert excinfo.value.transient is False
