"""File-based contracts shared by the dispatcher and the external agent."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import asdict
from pathlib import Path
from typing import Any

from agent_relay.dispatch.models import ResultRecord, ResultStatus, TaskDescriptor


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Write JSON via a sibling temp file and ``os.replace``.

    Readers polling ``path`` never observe a partially written document.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False, indent=2))
            handle.write("\n")
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


def load_json(path: Path) -> dict[str, Any]:
    """Load JSON document and validate top-level object type."""

    payload = json.loads(path.read_text("utf-8"))
    if not isinstance(payload, dict):
        raise TypeError(f"Expected JSON object in {path}")
    return payload


def write_task_descriptor(path: Path, task: TaskDescriptor) -> None:
    write_json_atomic(path, asdict(task))


def read_task_descriptor(path: Path) -> TaskDescriptor:
    """Deserialize and validate a pending task file."""

    raw = load_json(path)
    missing = [key for key in ("jid", "job", "action", "created_at") if key not in raw]
    if missing:
        raise ValueError(f"Task descriptor missing required fields: {', '.join(missing)}")
    for key in ("jid", "job", "action", "created_at"):
        if not isinstance(raw[key], str):
            raise TypeError(f"task.{key} must be a string")
    if not raw["jid"].strip():
        raise ValueError("task.jid must be a non-empty string")
    return TaskDescriptor(
        jid=raw["jid"],
        job=raw["job"],
        action=raw["action"],
        created_at=raw["created_at"],
    )


def write_result_record(path: Path, record: ResultRecord) -> None:
    """Serialize a result record the way the external agent is expected to."""

    write_json_atomic(path, {"status": record.status.value, "output": record.output})


def read_result_record(path: Path, *, jid: str) -> ResultRecord:
    """Deserialize a completed task file.

    ``jid`` comes from the file name; the record itself only carries
    ``status`` and ``output``.
    """

    raw = load_json(path)
    status_raw = raw.get("status")
    output = raw.get("output", "")
    try:
        status = ResultStatus(status_raw)
    except ValueError as error:
        raise ValueError(
            f"result.status must be one of 'ok', 'error' (got {status_raw!r}) in {path}",
        ) from error
    if output is None:
        output = ""
    if not isinstance(output, str):
        raise TypeError(f"result.output must be a string in {path}")
    return ResultRecord(jid=jid, status=status, output=output)
