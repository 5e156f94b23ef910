"""Bounded polling for mailbox result records."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from pathlib import Path

from agent_relay.dispatch.contracts import read_result_record
from agent_relay.dispatch.models import (
    PollOutcome,
    ResultStatus,
    TaskFailed,
    TaskSucceeded,
    TaskTimedOut,
)

logger = logging.getLogger(__name__)

DEFAULT_PROGRESS_EVERY_SECONDS = 30.0


class ResultPoller:
    """Waits for ``done/{task_id}.json`` and classifies the outcome.

    Elapsed time is counted in whole poll intervals rather than wall clock, so
    the real wait may exceed ``max_wait`` by up to one interval plus the time
    spent checking.
    """

    def __init__(
        self,
        result_path_for: Callable[[str], Path],
        *,
        progress_every: float = DEFAULT_PROGRESS_EVERY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger = logger,
    ) -> None:
        self._result_path_for = result_path_for
        self.progress_every = progress_every
        self._sleep = sleep
        self._logger = logger

    def await_result(
        self,
        task_id: str,
        *,
        poll_interval: float,
        max_wait: float,
    ) -> PollOutcome:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")

        result_path = self._result_path_for(task_id)
        elapsed = 0.0
        next_progress_at = self.progress_every

        while elapsed < max_wait:
            outcome = self._check(task_id, result_path)
            if outcome is not None:
                return outcome

            self._sleep(poll_interval)
            elapsed += poll_interval
            if self.progress_every > 0 and elapsed >= next_progress_at:
                self._logger.info("Waiting for task %s result... (%gs)", task_id, elapsed)
                while next_progress_at <= elapsed:
                    next_progress_at += self.progress_every

        self._logger.warning(
            "Task %s timed out after %gs - no result file found",
            task_id,
            max_wait,
        )
        return TaskTimedOut(task_id=task_id, waited_seconds=elapsed)

    def _check(self, task_id: str, result_path: Path) -> PollOutcome | None:
        if not result_path.exists():
            return None
        try:
            record = read_result_record(result_path, jid=task_id)
        except (json.JSONDecodeError, UnicodeDecodeError):
            self._logger.debug("Result file %s is not complete JSON yet", result_path)
            return None

        self._logger.info("Task %s completed: %s", task_id, record.status.value)
        self._logger.info("Output: %s", record.output)
        if record.status is ResultStatus.ERROR:
            return TaskFailed(task_id=task_id, output=record.output)
        return TaskSucceeded(task_id=task_id, output=record.output)
