from datetime import datetime, timedelta, timezone
from itertools import count
from pathlib import Path

from dqa_checker.infrastructure.audit.audit_log import AuditLog, logs_key_for_day
from dqa_checker.infrastructure.storage.document_store import FileSystemDocumentStore

START = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def make_clock(step: timedelta = timedelta(minutes=1)):
    ticks = count()
    return lambda: START + step * next(ticks)


def test_log_event_persists_daily_document(tmp_path: Path) -> None:
    store = FileSystemDocumentStore(tmp_path)
    audit = AuditLog(store, clock=make_clock())

    entry = audit.log_event("dqa.import", "dataset", entity_id="a1:register", message="Imported 3 rows")

    document = store.get("dqa360-audit", logs_key_for_day(START.date()))
    assert document["version"] == "1.0.0"
    assert document["logs"][0]["id"] == entry.id
    assert document["logs"][0]["entityType"] == "dataset"
    assert document["logs"][0]["actor"] == {"username": "system"}
    assert logs_key_for_day(START.date()) == "logs-2025-03-10"


def test_entries_are_newest_first_and_capped(tmp_path: Path) -> None:
    store = FileSystemDocumentStore(tmp_path)
    audit = AuditLog(store, max_entries_per_day=3, clock=make_clock())

    for index in range(5):
        audit.log_event("dqa.comparison", "assessment", message=f"run {index}")

    logs = store.get("dqa360-audit", "logs-2025-03-10")["logs"]
    assert [log["message"] for log in logs] == ["run 4", "run 3", "run 2"]


def test_list_logs_filters_and_spans_days(tmp_path: Path) -> None:
    store = FileSystemDocumentStore(tmp_path)
    writer = AuditLog(store, clock=make_clock(step=timedelta(hours=13)))
    writer.log_event("dqa.import", "dataset", entity_name="register", message="Imported 3 rows")
    writer.log_event("dqa.comparison", "assessment", status="failure", message="Comparison failed")
    writer.log_event("dqa.comparison", "assessment", message="Comparison run: 1 mismatches")

    reader = AuditLog(store, clock=lambda: START + timedelta(days=1, hours=12))

    everything = reader.list_logs()
    assert [entry.message for entry in everything] == [
        "Comparison run: 1 mismatches",
        "Comparison failed",
        "Imported 3 rows",
    ]
    assert [entry.status for entry in reader.list_logs(status="failure")] == ["failure"]
    assert len(reader.list_logs(action="dqa.comparison")) == 2
    assert [entry.entity_name for entry in reader.list_logs(text="REGISTER")] == ["register"]
    assert len(reader.list_logs(limit=1)) == 1
    assert reader.list_logs(days=1)[0].message == "Comparison run: 1 mismatches"
