"""Controllers for session health CLI commands."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from agent_relay.config import MissingConfigKeyError, Settings
from agent_relay.sessions.health import SessionHealthChecker


@dataclass(slots=True)
class HealthCheckCommand:
    """CLI input for a health check of one or all sessions."""

    config_path: Path | None
    service: str | None
    output_format: str = "table"


@dataclass(slots=True)
class SessionsListCommand:
    """CLI input for listing registered sessions."""

    config_path: Path | None


@dataclass(slots=True)
class SessionUrlCommand:
    """CLI input for resolving one session URL."""

    config_path: Path | None
    name: str


@dataclass(slots=True)
class HealthCheckResult:
    """Health report to render in CLI."""

    lines: list[str]
    success: bool


class SessionCliController:
    """Builds the health checker from settings and renders its results."""

    def health(self, command: HealthCheckCommand) -> HealthCheckResult:
        checker = _checker(command.config_path)
        summary = checker.check_all(command.service)

        if command.output_format == "json":
            return HealthCheckResult(
                lines=[json.dumps(summary.to_dict(), ensure_ascii=False, indent=2)],
                success=not summary.unhealthy,
            )

        lines = [f"Session health: {len(summary.healthy)}/{len(summary.reports)} OK"]
        for report in summary.reports:
            suffix = " (recovered)" if report.recovered else ""
            if report.healthy:
                lines.append(f"  {report.name}: healthy{suffix}")
            else:
                lines.append(f"  {report.name}: unhealthy ({report.state.value}){suffix}")
        lines.append(f"healthy={','.join(summary.healthy) or '-'}")
        lines.append(f"unhealthy={','.join(summary.unhealthy) or '-'}")
        return HealthCheckResult(lines=lines, success=not summary.unhealthy)

    def list_sessions(self, command: SessionsListCommand) -> list[str]:
        registry = _checker(command.config_path).registry
        lines: list[str] = []
        for name, target in registry.items():
            try:
                url = registry.url_for(name)
            except MissingConfigKeyError as error:
                url = f"<missing {error.dot_path}>"
            lines.append(f"{name}\t{url}\t/{target.pattern.pattern}/i")
        return lines

    def url(self, command: SessionUrlCommand) -> list[str]:
        return [_checker(command.config_path).registry.url_for(command.name)]


def _checker(config_path: Path | None) -> SessionHealthChecker:
    settings = Settings.from_env(config_path=config_path)
    settings.validate()
    return SessionHealthChecker.from_settings(settings)
