"""Jobs that hand a task to the persistent browser agent and wait for it."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from agent_relay.config import Settings
from agent_relay.dispatch.gate import MacOsEnvironmentProbe, PreconditionGate
from agent_relay.dispatch.mailbox import TaskMailbox
from agent_relay.dispatch.models import (
    Blocked,
    FailureClass,
    JobResult,
    PollOutcome,
    TaskFailed,
    TaskSucceeded,
    TaskTimedOut,
)
from agent_relay.dispatch.poller import ResultPoller

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_WAIT_SECONDS = 1_800.0


class JobError(RuntimeError):
    """Fatal job outcome; the message starts with the job name."""

    failure_class: FailureClass

    def __init__(self, message: str, *, job_name: str, task_id: str | None) -> None:
        super().__init__(message)
        self.job_name = job_name
        self.task_id = task_id


class TaskFailedError(JobError):
    """The agent rejected the task (``status: error``)."""

    failure_class = FailureClass.TASK_FAILURE


class TaskTimeoutError(JobError):
    """The agent never answered; the task may or may not have run."""

    failure_class = FailureClass.TIMEOUT


@dataclass(slots=True)
class JobRuntime:
    """Collaborators shared by every browser job in one process."""

    gate: PreconditionGate
    mailbox: TaskMailbox
    poller: ResultPoller
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_wait: float = DEFAULT_MAX_WAIT_SECONDS

    @classmethod
    def from_settings(cls, settings: Settings) -> JobRuntime:
        mailbox = TaskMailbox(settings.mailbox.tasks_dir)
        return cls(
            gate=PreconditionGate(
                MacOsEnvironmentProbe(timeout_seconds=settings.gate.probe_timeout_seconds),
                companion_app=settings.gate.companion_app,
                launch_grace_seconds=settings.gate.launch_grace_seconds,
            ),
            mailbox=mailbox,
            poller=ResultPoller(
                mailbox.result_path,
                progress_every=settings.mailbox.progress_every_seconds,
            ),
            poll_interval=settings.mailbox.poll_interval_seconds,
            max_wait=settings.mailbox.max_wait_seconds,
        )


class BrowserJob:
    """Base class for jobs executed by the persistent browser session.

    Subclasses implement :meth:`action_prompt` and may override
    :attr:`job_name`. :meth:`perform` returns :class:`Blocked` when the
    environment is not ready so the caller can requeue.
    """

    def __init__(self, runtime: JobRuntime, *, logger: logging.Logger = logger) -> None:
        self.runtime = runtime
        self._logger = logger

    @property
    def job_name(self) -> str:
        return type(self).__name__

    def action_prompt(self, options: Mapping[str, Any]) -> str:
        raise NotImplementedError(f"{type(self).__name__} must implement action_prompt")

    def perform(self, options: Mapping[str, Any] | None = None) -> JobResult | Blocked:
        self._logger.info("Starting %s...", self.job_name)

        readiness = self.runtime.gate.check_ready()
        if isinstance(readiness, Blocked):
            return readiness

        task_id = self.runtime.mailbox.dispatch(self.job_name, self.action_prompt(options or {}))
        outcome = self.runtime.poller.await_result(
            task_id,
            poll_interval=self.runtime.poll_interval,
            max_wait=self.runtime.max_wait,
        )
        return self._resolve(outcome)

    def _resolve(self, outcome: PollOutcome) -> JobResult:
        if isinstance(outcome, TaskSucceeded):
            return JobResult(output=outcome.output, task_id=outcome.task_id)
        if isinstance(outcome, TaskFailed):
            raise TaskFailedError(
                f"{self.job_name} failed: {outcome.output}",
                job_name=self.job_name,
                task_id=outcome.task_id,
            )
        if isinstance(outcome, TaskTimedOut):
            raise TaskTimeoutError(
                f"{self.job_name}: task {outcome.task_id} timed out after "
                f"{self.runtime.max_wait:g}s - no result file found",
                job_name=self.job_name,
                task_id=outcome.task_id,
            )
        raise TypeError(f"Unsupported poll outcome: {outcome!r}")


class ActionJob(BrowserJob):
    """Browser job with a fixed name and action text."""

    def __init__(
        self,
        runtime: JobRuntime,
        *,
        name: str,
        action: str,
        logger: logging.Logger = logger,
    ) -> None:
        super().__init__(runtime, logger=logger)
        if not name.strip():
            raise ValueError("Job name must be a non-empty string.")
        self._name = name
        self._action = action

    @property
    def job_name(self) -> str:
        return self._name

    def action_prompt(self, options: Mapping[str, Any]) -> str:
        return self._action
