"""Per-session probe / recover / refresh loop for authenticated browser sessions."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from agent_relay.config import Settings
from agent_relay.sessions.cli_tool import PlaywrightCliTool, SessionTool
from agent_relay.sessions.registry import (
    SessionRegistry,
    SessionTarget,
    build_registry,
    specs_from_config,
)

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_SECONDS = 2.0


class HealthState(str, Enum):
    """Terminal state of one session check."""

    HEALTHY = "healthy"
    NO_CREDENTIAL_SNAPSHOT = "no_credential_snapshot"
    CAPTURE_FAILED = "capture_failed"
    PATTERN_MISMATCH = "pattern_mismatch"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class SessionHealthReport:
    name: str
    state: HealthState
    recovered: bool = False
    detail: str | None = None

    @property
    def healthy(self) -> bool:
        return self.state is HealthState.HEALTHY


@dataclass(slots=True)
class HealthSummary:
    """Aggregate result of a batch check; always covers every selected session."""

    reports: list[SessionHealthReport] = field(default_factory=list)

    @property
    def healthy(self) -> list[str]:
        return [report.name for report in self.reports if report.healthy]

    @property
    def unhealthy(self) -> list[str]:
        return [report.name for report in self.reports if not report.healthy]

    def to_dict(self) -> dict[str, list[str]]:
        return {"healthy": self.healthy, "unhealthy": self.unhealthy}


class SessionHealthChecker:
    """Checks that named browser sessions are open and still logged in.

    For each session: if it is not attached, restore it from its credential
    snapshot (no snapshot means unhealthy, nothing is probed); then load the
    session URL, wait ``settle_seconds``, capture the page and match it
    against the readiness pattern. Only a matching page refreshes the
    snapshot on disk.
    """

    def __init__(  # noqa: PLR0913
        self,
        registry: SessionRegistry,
        tool: SessionTool,
        *,
        auth_state_dir: Path,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger = logger,
    ) -> None:
        self.registry = registry
        self.tool = tool
        self.auth_state_dir = auth_state_dir
        self.settle_seconds = settle_seconds
        self._sleep = sleep
        self._logger = logger

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionHealthChecker:
        registry = build_registry(specs_from_config(settings.tree), settings.tree.get)
        tool = PlaywrightCliTool(
            executable=settings.sessions.cli_executable,
            timeout_seconds=settings.sessions.command_timeout_seconds,
        )
        return cls(
            registry,
            tool,
            auth_state_dir=settings.sessions.auth_state_dir,
            settle_seconds=settings.sessions.settle_seconds,
        )

    def state_file(self, name: str) -> Path:
        return self.auth_state_dir / f"{name}.json"

    def check_all(self, selector: str | None = None) -> HealthSummary:
        """Check every registered session, or only ``selector``.

        An unknown ``selector`` raises; errors inside one session are logged
        and recorded as unhealthy.
        """

        targets = self.registry.select(selector)
        summary = HealthSummary()
        for target in targets:
            try:
                report = self.check_session(target)
            except Exception as error:  # noqa: BLE001
                self._logger.exception("Session '%s' check failed", target.name)
                report = SessionHealthReport(
                    name=target.name,
                    state=HealthState.ERROR,
                    detail=f"error: {error}",
                )
            summary.reports.append(report)

        self._logger.info(
            "Session health: %d/%d OK",
            len(summary.healthy),
            len(summary.reports),
        )
        for report in summary.reports:
            if not report.healthy:
                self._logger.warning("Session '%s' unhealthy (%s)", report.name, report.state.value)
        return summary

    def check_session(self, target: SessionTarget) -> SessionHealthReport:
        url = self.registry.url_for(target.name)
        recovered = False
        if not self.tool.is_active(target.name):
            state_file = self.state_file(target.name)
            if not state_file.exists():
                self._logger.warning("No auth state for '%s'", target.name)
                return SessionHealthReport(
                    name=target.name,
                    state=HealthState.NO_CREDENTIAL_SNAPSHOT,
                    detail=str(state_file),
                )
            self._recover(target, url, state_file)
            recovered = True

        return self._verify(target, url, recovered=recovered)

    def _recover(self, target: SessionTarget, url: str, state_file: Path) -> None:
        self._logger.info("Restoring session '%s' from %s", target.name, state_file)
        loaded = self.tool.load_state(target.name, state_file)
        if not loaded.ok:
            self._logger.warning("state-load failed for '%s': %s", target.name, loaded.output)
        opened = self.tool.open(target.name, url)
        if not opened.ok:
            self._logger.warning("open failed for '%s': %s", target.name, opened.output)

    def _verify(
        self,
        target: SessionTarget,
        url: str,
        *,
        recovered: bool,
    ) -> SessionHealthReport:
        self.tool.goto(target.name, url)
        self._sleep(self.settle_seconds)
        captured = self.tool.snapshot(target.name)
        if not captured.ok:
            return SessionHealthReport(
                name=target.name,
                state=HealthState.CAPTURE_FAILED,
                recovered=recovered,
                detail=captured.output.strip()[:240] or None,
            )
        if not target.matches(captured.output):
            return SessionHealthReport(
                name=target.name,
                state=HealthState.PATTERN_MISMATCH,
                recovered=recovered,
            )

        self.auth_state_dir.mkdir(parents=True, exist_ok=True)
        saved = self.tool.save_state(target.name, self.state_file(target.name))
        if not saved.ok:
            self._logger.warning("state-save failed for '%s': %s", target.name, saved.output)
        return SessionHealthReport(name=target.name, state=HealthState.HEALTHY, recovered=recovered)
