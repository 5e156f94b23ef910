"""Environment readiness checks run before a task is dispatched."""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable
from typing import Protocol

from agent_relay.dispatch.models import Blocked, Readiness, Ready

logger = logging.getLogger(__name__)

LOCKED_REASON = "locked"


class LockProbeError(RuntimeError):
    """The screen-lock state could not be determined."""


class EnvironmentProbe(Protocol):
    """Queries the desktop environment the browser agent runs in."""

    def is_screen_locked(self) -> bool:
        """Return lock state or raise :class:`LockProbeError`."""

    def is_app_running(self, app_name: str) -> bool:
        """Return whether a process named ``app_name`` is running."""

    def launch_app(self, app_name: str) -> None:
        """Start ``app_name``; best effort."""


class MacOsEnvironmentProbe:
    """Uses ``ioreg``/``plutil``, ``pgrep`` and ``open`` on macOS."""

    def __init__(self, *, timeout_seconds: float = 10.0) -> None:
        self.timeout_seconds = timeout_seconds

    def is_screen_locked(self) -> bool:
        try:
            ioreg = subprocess.run(  # noqa: S603
                ["ioreg", "-n", "Root", "-d1", "-a"],  # noqa: S607
                check=True,
                capture_output=True,
                timeout=self.timeout_seconds,
            )
            extracted = subprocess.run(  # noqa: S603
                ["plutil", "-extract", "IOConsoleLocked", "raw", "-"],  # noqa: S607
                check=True,
                capture_output=True,
                input=ioreg.stdout,
                timeout=self.timeout_seconds,
            )
        except (OSError, subprocess.SubprocessError) as error:
            raise LockProbeError(f"Lock state query failed: {error}") from error

        value = extracted.stdout.decode("utf-8", errors="replace").strip().lower()
        if value == "true":
            return True
        if value == "false":
            return False
        raise LockProbeError(f"Unexpected IOConsoleLocked value: {value!r}")

    def is_app_running(self, app_name: str) -> bool:
        try:
            completed = subprocess.run(  # noqa: S603
                ["pgrep", "-x", app_name],  # noqa: S607
                check=False,
                capture_output=True,
                timeout=self.timeout_seconds,
            )
        except (OSError, subprocess.SubprocessError):
            logger.warning("Could not check whether %s is running", app_name, exc_info=True)
            return False
        return completed.returncode == 0

    def launch_app(self, app_name: str) -> None:
        try:
            subprocess.run(  # noqa: S603
                ["open", "-a", app_name],  # noqa: S607
                check=False,
                capture_output=True,
                timeout=self.timeout_seconds,
            )
        except (OSError, subprocess.SubprocessError):
            logger.warning("Failed to launch %s", app_name, exc_info=True)


class PreconditionGate:
    """Decides whether the environment can take a browser task right now.

    Lock-probe failures fail open. A missing companion app is launched and
    given ``launch_grace_seconds`` to start; the launch is not re-verified.
    """

    def __init__(
        self,
        probe: EnvironmentProbe,
        *,
        companion_app: str = "Google Chrome",
        launch_grace_seconds: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger = logger,
    ) -> None:
        self.probe = probe
        self.companion_app = companion_app
        self.launch_grace_seconds = launch_grace_seconds
        self._sleep = sleep
        self._logger = logger

    def check_ready(self) -> Readiness:
        try:
            locked = self.probe.is_screen_locked()
        except (LockProbeError, OSError) as error:
            self._logger.warning("Lock probe failed, assuming unlocked: %s", error)
            locked = False
        if locked:
            self._logger.info("Screen is locked - will retry when unlocked")
            return Blocked(reason=LOCKED_REASON)

        if not self.probe.is_app_running(self.companion_app):
            self._logger.info("%s not running, attempting to launch...", self.companion_app)
            self.probe.launch_app(self.companion_app)
            self._sleep(self.launch_grace_seconds)
        return Ready()
