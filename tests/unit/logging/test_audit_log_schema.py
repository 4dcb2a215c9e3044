from __future__ import annotations

import json
from pathlib import Path

from ext_audit.logging import AuditEvent, JsonlAuditLogger, new_run_id, utc_timestamp


def _event(run_id: str, ok: bool = True) -> AuditEvent:
    return AuditEvent(
        timestamp=utc_timestamp(),
        run_id=run_id,
        command="reconcile",
        ok=ok,
        error_code=None if ok else "INDEX_LOAD_ERROR",
        metadata={"matched_count": 1},
    )


def test_append_writes_one_sorted_json_object_per_line(tmp_path: Path) -> None:
    logger = JsonlAuditLogger(path=tmp_path / "nested" / "audit.jsonl")
    logger.append(_event("run-1"))

    lines = logger.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert list(event.keys()) == sorted(event.keys())
    assert set(event.keys()) == {"command", "error_code", "metadata", "ok", "run_id", "timestamp"}
    assert event["timestamp"].endswith("Z")


def test_read_returns_most_recent_events_and_skips_garbage(tmp_path: Path) -> None:
    logger = JsonlAuditLogger(path=tmp_path / "audit.jsonl")
    logger.append(_event("run-1"))
    with logger.path.open("a", encoding="utf-8") as handle:
        handle.write("{broken\n\n")
    logger.append(_event("run-2", ok=False))
    logger.append(_event("run-3"))

    recent = logger.read(limit=2)

    assert [item["run_id"] for item in recent] == ["run-2", "run-3"]
    assert recent[0]["error_code"] == "INDEX_LOAD_ERROR"
    assert logger.read(limit=0) == []


def test_read_missing_file_is_empty(tmp_path: Path) -> None:
    assert JsonlAuditLogger(path=tmp_path / "audit.jsonl").read() == []


def test_run_ids_are_unique() -> None:
    assert new_run_id() != new_run_id()
    assert new_run_id().startswith("run-")
