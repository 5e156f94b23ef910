from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path

import allure
import pytest

from agent_relay.dispatch.contracts import write_result_record
from agent_relay.dispatch.mailbox import TaskMailbox
from agent_relay.dispatch.models import (
    ResultRecord,
    ResultStatus,
    TaskFailed,
    TaskSucceeded,
    TaskTimedOut,
)
from agent_relay.dispatch.poller import ResultPoller

pytestmark = [
    allure.epic("Task Handoff"),
    allure.feature("Bounded Polling"),
]


class RecordingSleep:
    """Fake sleep that can drop a result file after a given number of calls."""

    def __init__(self, on_call: dict[int, Callable[[], None]] | None = None) -> None:
        self.calls: list[float] = []
        self._on_call = on_call or {}

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        action = self._on_call.get(len(self.calls))
        if action is not None:
            action()


@pytest.fixture()
def mailbox(tmp_path: Path) -> TaskMailbox:
    return TaskMailbox(tmp_path / "tasks")


def _write_result(mailbox: TaskMailbox, task_id: str, status: str, output: str) -> None:
    path = mailbox.result_path(task_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"status": status, "output": output}), "utf-8")


def test_times_out_after_exactly_two_intervals(mailbox: TaskMailbox) -> None:
    sleep = RecordingSleep()
    poller = ResultPoller(mailbox.result_path, sleep=sleep)

    outcome = poller.await_result("never", poll_interval=5, max_wait=10)

    assert outcome == TaskTimedOut(task_id="never", waited_seconds=10)
    assert sleep.calls == [5, 5]


def test_elapsed_counts_intervals_and_may_overshoot_max_wait(mailbox: TaskMailbox) -> None:
    sleep = RecordingSleep()
    poller = ResultPoller(mailbox.result_path, sleep=sleep)

    outcome = poller.await_result("never", poll_interval=4, max_wait=10)

    assert isinstance(outcome, TaskTimedOut)
    assert sleep.calls == [4, 4, 4]
    assert outcome.waited_seconds >= 10


def test_ok_result_yields_success(mailbox: TaskMailbox) -> None:
    _write_result(mailbox, "t-ok", "ok", "done")
    sleep = RecordingSleep()
    poller = ResultPoller(mailbox.result_path, sleep=sleep)

    outcome = poller.await_result("t-ok", poll_interval=5, max_wait=10)

    assert outcome == TaskSucceeded(task_id="t-ok", output="done")
    assert sleep.calls == []


def test_error_result_yields_failure_with_diagnostic(mailbox: TaskMailbox) -> None:
    _write_result(mailbox, "t-err", "error", "boom")
    poller = ResultPoller(mailbox.result_path, sleep=RecordingSleep())

    outcome = poller.await_result("t-err", poll_interval=5, max_wait=10)

    assert isinstance(outcome, TaskFailed)
    assert "boom" in outcome.output


def test_result_appearing_mid_wait_is_picked_up(mailbox: TaskMailbox) -> None:
    sleep = RecordingSleep(
        on_call={
            3: lambda: write_result_record(
                mailbox.result_path("late"),
                ResultRecord(jid="late", status=ResultStatus.OK, output="archived 12"),
            ),
        },
    )
    poller = ResultPoller(mailbox.result_path, sleep=sleep)

    outcome = poller.await_result("late", poll_interval=1, max_wait=60)

    assert outcome == TaskSucceeded(task_id="late", output="archived 12")
    assert len(sleep.calls) == 3


def test_partial_json_is_treated_as_not_ready(mailbox: TaskMailbox) -> None:
    path = mailbox.result_path("partial")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text('{"status": "o', "utf-8")
    sleep = RecordingSleep(on_call={1: lambda: _write_result(mailbox, "partial", "ok", "fine")})
    poller = ResultPoller(mailbox.result_path, sleep=sleep)

    outcome = poller.await_result("partial", poll_interval=1, max_wait=10)

    assert outcome == TaskSucceeded(task_id="partial", output="fine")


def test_unknown_status_is_a_contract_error(mailbox: TaskMailbox) -> None:
    _write_result(mailbox, "weird", "pending", "")
    poller = ResultPoller(mailbox.result_path, sleep=RecordingSleep())

    with pytest.raises(ValueError, match="result.status"):
        poller.await_result("weird", poll_interval=1, max_wait=10)


def test_progress_is_logged_on_cadence_not_every_iteration(
    mailbox: TaskMailbox,
    caplog: pytest.LogCaptureFixture,
) -> None:
    poller = ResultPoller(mailbox.result_path, progress_every=30, sleep=RecordingSleep())

    with caplog.at_level(logging.INFO, logger="agent_relay.dispatch.poller"):
        poller.await_result("slow", poll_interval=7, max_wait=100)

    progress = [record for record in caplog.records if "Waiting for task" in record.getMessage()]
    assert [record.getMessage() for record in progress] == [
        "Waiting for task slow result... (35s)",
        "Waiting for task slow result... (63s)",
        "Waiting for task slow result... (91s)",
    ]


def test_progress_logging_can_be_disabled(
    mailbox: TaskMailbox,
    caplog: pytest.LogCaptureFixture,
) -> None:
    poller = ResultPoller(mailbox.result_path, progress_every=0, sleep=RecordingSleep())

    with caplog.at_level(logging.INFO, logger="agent_relay.dispatch.poller"):
        poller.await_result("quiet", poll_interval=10, max_wait=100)

    assert not [record for record in caplog.records if "Waiting for task" in record.getMessage()]


def test_rejects_non_positive_poll_interval(mailbox: TaskMailbox) -> None:
    poller = ResultPoller(mailbox.result_path, sleep=RecordingSleep())

    with pytest.raises(ValueError, match="poll_interval"):
        poller.await_result("x", poll_interval=0, max_wait=10)


def test_result_cut_inside_multibyte_character_is_not_ready(mailbox: TaskMailbox) -> None:
    path = mailbox.result_path("accent")
    path.parent.mkdir(parents=True, exist_ok=True)
    complete = json.dumps({"status": "ok", "output": "café"}, ensure_ascii=False).encode("utf-8")
    path.write_bytes(complete[: complete.index("é".encode()) + 1])
    sleep = RecordingSleep(on_call={1: lambda: path.write_bytes(complete)})
    poller = ResultPoller(mailbox.result_path, sleep=sleep)

    outcome = poller.await_result("accent", poll_interval=1, max_wait=10)

    assert outcome == TaskSucceeded(task_id="accent", output="café")
    assert sleep.calls == [1]
