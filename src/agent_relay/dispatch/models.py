"""Domain models for mailbox dispatch, polling outcomes and readiness."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ResultStatus(str, Enum):
    """Status values an external agent may write into a result record."""

    OK = "ok"
    ERROR = "error"


class FailureClass(str, Enum):
    """Normalized failure classes used by callers' retry policy."""

    RETRYABLE_ENVIRONMENT = "retryable_environment"
    TASK_FAILURE = "task_failure"
    TIMEOUT = "timeout"


@dataclass(slots=True, frozen=True)
class TaskDescriptor:
    """Task written to the pending mailbox; immutable once created."""

    jid: str
    job: str
    action: str
    created_at: str


@dataclass(slots=True, frozen=True)
class ResultRecord:
    """Completion record written by the external agent."""

    jid: str
    status: ResultStatus
    output: str


@dataclass(slots=True, frozen=True)
class TaskSucceeded:
    task_id: str
    output: str


@dataclass(slots=True, frozen=True)
class TaskFailed:
    """Agent reported ``status: error``; fatal, never retried."""

    task_id: str
    output: str


@dataclass(slots=True, frozen=True)
class TaskTimedOut:
    """No result appeared within the wait window; outcome is unknown."""

    task_id: str
    waited_seconds: float


PollOutcome = TaskSucceeded | TaskFailed | TaskTimedOut


@dataclass(slots=True, frozen=True)
class Ready:
    """Environment is ready for dispatch."""

    ready: bool = True


@dataclass(slots=True, frozen=True)
class Blocked:
    """Environment is not ready; callers should retry later."""

    reason: str
    ready: bool = False
    failure_class: FailureClass = FailureClass.RETRYABLE_ENVIRONMENT


Readiness = Ready | Blocked


@dataclass(slots=True, frozen=True)
class JobResult:
    """Structured success payload returned by jobs."""

    output: str
    task_id: str | None = None
    success: bool = True
