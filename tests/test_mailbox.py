from __future__ import annotations

import json
import re
from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

import allure
import pytest

from agent_relay.dispatch.contracts import read_task_descriptor
from agent_relay.dispatch.mailbox import TaskMailbox, new_task_id

pytestmark = [
    allure.epic("Task Handoff"),
    allure.feature("Mailbox"),
]


def test_task_ids_are_hex_with_twelve_bytes_of_entropy() -> None:
    task_id = new_task_id()

    assert re.fullmatch(r"[0-9a-f]{24}", task_id)


def test_sequential_dispatches_produce_distinct_ids(tmp_path: Path) -> None:
    mailbox = TaskMailbox(tmp_path / "tasks")

    ids = [mailbox.dispatch("SyncJob", f"action {index}") for index in range(200)]

    assert len(set(ids)) == len(ids)
    assert len(list(mailbox.pending_dir.glob("*.json"))) == len(ids)


def test_dispatch_round_trips_descriptor_fields(tmp_path: Path) -> None:
    mailbox = TaskMailbox(tmp_path / "tasks")
    action = 'Archive newsletters older than 7 days.\nUse "Focused" view.'

    task_id = mailbox.dispatch("EmailCleanupJob", action)
    task = mailbox.read_task(task_id)

    assert task.jid == task_id
    assert task.job == "EmailCleanupJob"
    assert task.action == action


def test_dispatch_writes_expected_json_document(tmp_path: Path) -> None:
    created = datetime(2026, 3, 1, 9, 30, 15, 999_999, tzinfo=UTC)
    mailbox = TaskMailbox(
        tmp_path / "tasks",
        id_factory=lambda: "abc123",
        clock=lambda: created,
    )

    task_id = mailbox.dispatch("CalendarSyncJob", "sync")

    path = tmp_path / "tasks" / "pending" / "abc123.json"
    assert task_id == "abc123"
    assert mailbox.pending_path(task_id) == path
    assert json.loads(path.read_text("utf-8")) == {
        "jid": "abc123",
        "job": "CalendarSyncJob",
        "action": "sync",
        "created_at": "2026-03-01T09:30:15Z",
    }


def test_created_at_is_normalized_to_utc(tmp_path: Path) -> None:
    local = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone(timedelta(hours=2)))
    mailbox = TaskMailbox(tmp_path, id_factory=lambda: "t1", clock=lambda: local)

    mailbox.dispatch("Job", "x")

    assert mailbox.read_task("t1").created_at == "2026-03-01T10:00:00Z"


def test_dispatch_creates_pending_dir_idempotently(tmp_path: Path) -> None:
    root = tmp_path / "deep" / "tasks"
    mailbox = TaskMailbox(root)
    mailbox.pending_dir.mkdir(parents=True)

    mailbox.dispatch("Job", "one")
    mailbox.dispatch("Job", "two")

    assert mailbox.pending_dir.is_dir()
    assert not mailbox.done_dir.exists()


def test_dispatch_leaves_no_temp_files(tmp_path: Path) -> None:
    mailbox = TaskMailbox(tmp_path)

    task_id = mailbox.dispatch("Job", "x")

    assert [path.name for path in mailbox.pending_dir.iterdir()] == [f"{task_id}.json"]


def test_result_path_is_keyed_by_task_id(tmp_path: Path) -> None:
    mailbox = TaskMailbox(tmp_path)

    assert mailbox.result_path("feed") == tmp_path / "done" / "feed.json"


def test_read_task_descriptor_rejects_missing_fields(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"jid": "x", "job": "J"}), "utf-8")

    with pytest.raises(ValueError, match="action, created_at"):
        read_task_descriptor(path)
