"""Runtime configuration for the dispatcher and session health checks."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

import yaml

T = TypeVar("T")

DEFAULT_CONFIG_PATH = Path("config.yml")

REQUIRED_KEYS: tuple[str, ...] = (
    "outlook.inbox_url",
    "outlook.calendar_url",
    "slack.workspaces",
    "linkedin.feed_url",
)

# Optional credentials forwarded to agent subprocesses: env name -> config key.
OPTIONAL_ENV_EXPORTS: tuple[tuple[str, str], ...] = (
    ("FAKTORY_URL", "faktory.url"),
    ("GCAL_CLIENT_ID", "google_calendar.client_id"),
    ("GCAL_CLIENT_SECRET", "google_calendar.client_secret"),
    ("GCAL_REFRESH_TOKEN", "google_calendar.refresh_token"),
)

_MISSING = object()


class ConfigNotFoundError(FileNotFoundError):
    """Raised when the YAML config file does not exist."""


class MissingConfigKeyError(KeyError):
    """Raised when a dot-path lookup hits an absent segment."""

    def __init__(self, dot_path: str) -> None:
        super().__init__(dot_path)
        self.dot_path = dot_path

    def __str__(self) -> str:
        return f"Config key not found: {self.dot_path}"


class ConfigValidationError(ValueError):
    """Raised once with every required key that is missing."""

    def __init__(self, missing: list[str], *, config_path: Path | None = None) -> None:
        self.missing = list(missing)
        self.config_path = config_path
        listing = "\n".join(f"  - {key}" for key in self.missing)
        location = f"\nCheck {config_path}" if config_path is not None else ""
        super().__init__(f"Missing required config keys:\n{listing}{location}")


class ConfigTree:
    """Read-only view over the loaded YAML document with dot-path access."""

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    @classmethod
    def load(cls, path: Path) -> ConfigTree:
        if not path.exists():
            raise ConfigNotFoundError(
                f"Config file not found: {path}\n"
                "Copy config.yml.example to config.yml and fill in your values.",
            )
        raw = yaml.safe_load(path.read_text("utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config YAML must be a mapping: {path}")
        return cls(raw)

    def get(self, dot_path: str) -> Any:
        """Return value at ``dot_path`` or raise :class:`MissingConfigKeyError`."""

        value: Any = self._data
        for key in dot_path.split("."):
            if isinstance(value, Mapping) and key in value:
                value = value[key]
            else:
                raise MissingConfigKeyError(dot_path)
        return value

    def get_optional(self, dot_path: str, default: T) -> Any | T:
        try:
            value = self.get(dot_path)
        except MissingConfigKeyError:
            return default
        return default if value is None else value

    def missing(self, keys: Iterable[str]) -> list[str]:
        """Return every key that is absent or null, preserving input order."""

        absent: list[str] = []
        for dot_path in keys:
            try:
                value = self.get(dot_path)
            except MissingConfigKeyError:
                absent.append(dot_path)
                continue
            if value is None:
                absent.append(dot_path)
        return absent

    def validate_required(
        self,
        keys: Iterable[str] = REQUIRED_KEYS,
        *,
        config_path: Path | None = None,
    ) -> None:
        absent = self.missing(keys)
        if absent:
            raise ConfigValidationError(absent, config_path=config_path)


@dataclass(slots=True)
class MailboxSettings:
    """Task mailbox and result polling settings."""

    tasks_dir: Path = Path("tasks")
    poll_interval_seconds: float = 5.0
    max_wait_seconds: float = 1_800.0
    progress_every_seconds: float = 30.0


@dataclass(slots=True)
class GateSettings:
    """Environment readiness checks run before dispatch."""

    companion_app: str = "Google Chrome"
    launch_grace_seconds: float = 3.0
    probe_timeout_seconds: float = 10.0


@dataclass(slots=True)
class SessionSettings:
    """Browser session tool and credential snapshot settings."""

    auth_state_dir: Path = Path("auth-state")
    cli_executable: str = "playwright-cli"
    settle_seconds: float = 2.0
    command_timeout_seconds: float = 60.0


@dataclass(slots=True)
class AgentSettings:
    """Direct (synchronous) agent command settings."""

    executable: str = "claude"
    skip_permissions: bool = True
    timeout_seconds: float = 1_800.0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    config_path: Path = DEFAULT_CONFIG_PATH
    tree: ConfigTree = field(default_factory=ConfigTree)
    mailbox: MailboxSettings = field(default_factory=MailboxSettings)
    gate: GateSettings = field(default_factory=GateSettings)
    sessions: SessionSettings = field(default_factory=SessionSettings)
    agent: AgentSettings = field(default_factory=AgentSettings)

    @classmethod
    def from_env(cls, config_path: Path | None = None) -> Settings:
        """Load the YAML config once and apply ``AGENT_RELAY_*`` overrides."""

        path = config_path or Path(os.getenv("AGENT_RELAY_CONFIG", str(DEFAULT_CONFIG_PATH)))
        tree = ConfigTree.load(path)
        base_dir = path.parent
        return cls(
            config_path=path,
            tree=tree,
            mailbox=MailboxSettings(
                tasks_dir=_resolve_path(
                    base_dir,
                    _setting(tree, "AGENT_RELAY_TASKS_DIR", "mailbox.tasks_dir", "tasks", str),
                ),
                poll_interval_seconds=_setting(
                    tree,
                    "AGENT_RELAY_POLL_INTERVAL_SECONDS",
                    "mailbox.poll_interval_seconds",
                    5.0,
                    float,
                ),
                max_wait_seconds=_setting(
                    tree,
                    "AGENT_RELAY_MAX_WAIT_SECONDS",
                    "mailbox.max_wait_seconds",
                    1_800.0,
                    float,
                ),
                progress_every_seconds=_setting(
                    tree,
                    "AGENT_RELAY_PROGRESS_EVERY_SECONDS",
                    "mailbox.progress_every_seconds",
                    30.0,
                    float,
                ),
            ),
            gate=GateSettings(
                companion_app=_setting(
                    tree,
                    "AGENT_RELAY_COMPANION_APP",
                    "gate.companion_app",
                    "Google Chrome",
                    str,
                ),
                launch_grace_seconds=_setting(
                    tree,
                    "AGENT_RELAY_LAUNCH_GRACE_SECONDS",
                    "gate.launch_grace_seconds",
                    3.0,
                    float,
                ),
                probe_timeout_seconds=_setting(
                    tree,
                    "AGENT_RELAY_PROBE_TIMEOUT_SECONDS",
                    "gate.probe_timeout_seconds",
                    10.0,
                    float,
                ),
            ),
            sessions=SessionSettings(
                auth_state_dir=_resolve_path(
                    base_dir,
                    _setting(
                        tree,
                        "AGENT_RELAY_AUTH_STATE_DIR",
                        "sessions.auth_state_dir",
                        "auth-state",
                        str,
                    ),
                ),
                cli_executable=_setting(
                    tree,
                    "AGENT_RELAY_SESSION_CLI",
                    "sessions.cli_executable",
                    "playwright-cli",
                    str,
                ),
                settle_seconds=_setting(
                    tree,
                    "AGENT_RELAY_SETTLE_SECONDS",
                    "sessions.settle_seconds",
                    2.0,
                    float,
                ),
                command_timeout_seconds=_setting(
                    tree,
                    "AGENT_RELAY_SESSION_COMMAND_TIMEOUT_SECONDS",
                    "sessions.command_timeout_seconds",
                    60.0,
                    float,
                ),
            ),
            agent=AgentSettings(
                executable=_setting(
                    tree,
                    "AGENT_RELAY_AGENT_EXECUTABLE",
                    "agent.executable",
                    "claude",
                    str,
                ),
                skip_permissions=_setting(
                    tree,
                    "AGENT_RELAY_AGENT_SKIP_PERMISSIONS",
                    "agent.skip_permissions",
                    True,
                    _parse_bool,
                ),
                timeout_seconds=_setting(
                    tree,
                    "AGENT_RELAY_AGENT_TIMEOUT_SECONDS",
                    "agent.timeout_seconds",
                    1_800.0,
                    float,
                ),
            ),
        )

    def validate(self) -> None:
        """Fail fast listing every missing required key, then check numeric ranges."""

        self.tree.validate_required(config_path=self.config_path)
        if self.mailbox.poll_interval_seconds <= 0:
            raise ValueError("mailbox.poll_interval_seconds must be > 0.")
        if self.mailbox.max_wait_seconds <= 0:
            raise ValueError("mailbox.max_wait_seconds must be > 0.")
        if self.mailbox.progress_every_seconds < 0:
            raise ValueError("mailbox.progress_every_seconds must be >= 0.")
        if self.gate.launch_grace_seconds < 0:
            raise ValueError("gate.launch_grace_seconds must be >= 0.")
        if self.sessions.settle_seconds < 0:
            raise ValueError("sessions.settle_seconds must be >= 0.")


def export_env(
    tree: ConfigTree,
    environ: MutableMapping[str, str] | None = None,
) -> list[str]:
    """Export optional credentials to the environment, skipping absent keys.

    Variables already present in the environment are left untouched. Returns
    the names that were set.
    """

    target = os.environ if environ is None else environ
    exported: list[str] = []
    for env_name, dot_path in OPTIONAL_ENV_EXPORTS:
        if target.get(env_name):
            continue
        try:
            value = tree.get(dot_path)
        except MissingConfigKeyError:
            continue
        if value is None or value == "":
            continue
        target[env_name] = str(value)
        exported.append(env_name)
    return exported


def _setting(
    tree: ConfigTree,
    env_name: str,
    dot_path: str,
    default: T,
    cast: Callable[[Any], T],
) -> T:
    raw = os.getenv(env_name)
    source = env_name
    if raw is None:
        raw = tree.get_optional(dot_path, _MISSING)
        source = dot_path
    if raw is _MISSING:
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as error:
        raise ValueError(f"Invalid value for {source}: {raw!r}") from error


def _resolve_path(base_dir: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return base_dir / path


def _parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")
