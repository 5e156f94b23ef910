"""Shared test fixtures."""

from __future__ import annotations

import os
import stat
import sys
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from agent_relay.dispatch.gate import LockProbeError
from agent_relay.sessions.cli_tool import ToolResult, session_listed

BASE_CONFIG = """\
outlook:
  inbox_url: https://outlook.example.com/mail/
  calendar_url: https://outlook.example.com/calendar/
slack:
  workspaces:
    greatminds:
      url: https://greatminds.slack.example.com/
    turing:
      url: https://turing.slack.example.com/
linkedin:
  feed_url: https://linkedin.example.com/feed/
mailbox:
  tasks_dir: tasks
  poll_interval_seconds: 0.05
  max_wait_seconds: 5
gate:
  launch_grace_seconds: 0
sessions:
  auth_state_dir: auth-state
  settle_seconds: 0
"""


@pytest.fixture()
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Complete config.yml in a temp dir; no AGENT_RELAY_* overrides leak in."""

    for name in list(os.environ):
        if name.startswith("AGENT_RELAY_"):
            monkeypatch.delenv(name, raising=False)
    path = tmp_path / "config.yml"
    path.write_text(BASE_CONFIG, "utf-8")
    return path


@dataclass
class FakeProbe:
    """Scripted environment probe that records launches."""

    locked: bool | Exception = False
    running: bool = True
    launched: list[str] = field(default_factory=list)

    def is_screen_locked(self) -> bool:
        if isinstance(self.locked, Exception):
            raise self.locked
        return self.locked

    def is_app_running(self, app_name: str) -> bool:
        return self.running

    def launch_app(self, app_name: str) -> None:
        self.launched.append(app_name)


@pytest.fixture()
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture()
def failing_lock_probe() -> FakeProbe:
    return FakeProbe(locked=LockProbeError("ioreg: command not found"))


@dataclass
class FakeSessionTool:
    """In-memory stand-in for ``playwright-cli`` recording every call."""

    active: set[str] = field(default_factory=set)
    pages: dict[str, str] = field(default_factory=dict)
    capture_ok: bool = True
    calls: list[tuple[str, ...]] = field(default_factory=list)
    raise_for: set[str] = field(default_factory=set)

    def is_active(self, session: str) -> bool:
        self.calls.append(("list", session))
        if session in self.raise_for:
            raise OSError(f"tool crashed for {session}")
        return session_listed(" ".join(sorted(self.active)), session)

    def load_state(self, session: str, state_file: Path) -> ToolResult:
        self.calls.append(("state-load", session, str(state_file)))
        self.active.add(session)
        return ToolResult(output="", ok=True)

    def open(self, session: str, url: str) -> ToolResult:
        self.calls.append(("open", session, url))
        return ToolResult(output="", ok=True)

    def goto(self, session: str, url: str) -> ToolResult:
        self.calls.append(("goto", session, url))
        return ToolResult(output="", ok=True)

    def snapshot(self, session: str) -> ToolResult:
        self.calls.append(("snapshot", session))
        if not self.capture_ok:
            return ToolResult(output="browser crashed", ok=False)
        return ToolResult(output=self.pages.get(session, ""), ok=True)

    def save_state(self, session: str, state_file: Path) -> ToolResult:
        self.calls.append(("state-save", session, str(state_file)))
        state_file.write_text('{"cookies": []}', "utf-8")
        return ToolResult(output="", ok=True)

    def commands_for(self, session: str) -> list[str]:
        return [call[0] for call in self.calls if call[1] == session]


@pytest.fixture()
def fake_tool() -> FakeSessionTool:
    return FakeSessionTool()


def _write_fake_executable(path: Path, script: str) -> Path:
    """Install ``script`` as an executable named ``path`` running under this interpreter."""

    implementation = path.parent / f"{path.name}_impl.py"
    implementation.write_text(script.strip() + "\n", "utf-8")
    path.write_text(
        f'#!/usr/bin/env sh\nexec "{sys.executable}" "{implementation}" "$@"\n',
        "utf-8",
    )
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


@pytest.fixture()
def fake_executable(tmp_path: Path):
    """Factory writing fake command-line tools into ``tmp_path/bin``."""

    if os.name == "nt":
        pytest.skip("fake executables use a POSIX shell launcher")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)

    def _factory(name: str, script: str) -> Path:
        return _write_fake_executable(bin_dir / name, script)

    return _factory
