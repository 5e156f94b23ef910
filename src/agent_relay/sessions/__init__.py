"""Named browser sessions and their authentication health checks."""

from agent_relay.sessions.cli_tool import PlaywrightCliTool, SessionTool, ToolResult
from agent_relay.sessions.health import (
    HealthState,
    HealthSummary,
    SessionHealthChecker,
    SessionHealthReport,
)
from agent_relay.sessions.registry import (
    DEFAULT_SESSION_SPECS,
    SessionRegistry,
    SessionSpec,
    SessionTarget,
    UnknownSessionError,
    build_registry,
)

__all__ = [
    "DEFAULT_SESSION_SPECS",
    "HealthState",
    "HealthSummary",
    "PlaywrightCliTool",
    "SessionHealthChecker",
    "SessionHealthReport",
    "SessionRegistry",
    "SessionSpec",
    "SessionTarget",
    "SessionTool",
    "ToolResult",
    "UnknownSessionError",
    "build_registry",
]
