"""Directory mailbox used as the rendezvous point with the external agent."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from agent_relay.dispatch.contracts import read_task_descriptor, write_task_descriptor
from agent_relay.dispatch.models import TaskDescriptor

logger = logging.getLogger(__name__)

TASK_ID_BYTES = 12
CREATED_AT_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


def new_task_id() -> str:
    """Random hex identifier with ``TASK_ID_BYTES`` of entropy."""

    return secrets.token_hex(TASK_ID_BYTES)


class TaskMailbox:
    """Writes task descriptors to ``pending/`` and locates results in ``done/``.

    There is no notification channel: the external agent watches ``pending/``
    on its own and writes ``done/{jid}.json`` when finished. Task files are
    never removed here.
    """

    def __init__(
        self,
        root_dir: Path,
        *,
        id_factory: Callable[[], str] = new_task_id,
        clock: Callable[[], datetime] = utc_now,
        logger: logging.Logger = logger,
    ) -> None:
        self.root_dir = root_dir
        self.pending_dir = root_dir / "pending"
        self.done_dir = root_dir / "done"
        self._id_factory = id_factory
        self._clock = clock
        self._logger = logger

    def dispatch(self, job_name: str, action: str) -> str:
        """Write a new task descriptor and return its identifier."""

        task = TaskDescriptor(
            jid=self._id_factory(),
            job=job_name,
            action=action,
            created_at=self._clock().astimezone(UTC).strftime(CREATED_AT_FORMAT),
        )
        self.pending_dir.mkdir(parents=True, exist_ok=True)
        path = self.pending_path(task.jid)
        write_task_descriptor(path, task)
        self._logger.info("Wrote task file: %s", path)
        return task.jid

    def read_task(self, task_id: str) -> TaskDescriptor:
        return read_task_descriptor(self.pending_path(task_id))

    def pending_path(self, task_id: str) -> Path:
        return self.pending_dir / f"{task_id}.json"

    def result_path(self, task_id: str) -> Path:
        return self.done_dir / f"{task_id}.json"
