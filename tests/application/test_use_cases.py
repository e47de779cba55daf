import json
from datetime import datetime, timedelta, timezone
from itertools import count
from pathlib import Path

import pytest

from dqa_checker.application.dto import ComparisonRequest, ImportRequest, MultiPeriodComparisonRequest
from dqa_checker.application.use_cases import (
    DqaContext,
    ExportRowsUseCase,
    ImportRowsUseCase,
    RunComparisonUseCase,
    RunMultiPeriodComparisonUseCase,
)
from dqa_checker.domain.models import SourceName
from dqa_checker.domain.services import ReconciliationEngine
from dqa_checker.infrastructure.audit.audit_log import AuditLog
from dqa_checker.infrastructure.parsing.rows import FileFormat
from dqa_checker.infrastructure.storage.document_store import FileSystemDocumentStore

NOW = datetime(2025, 4, 2, 8, 30, tzinfo=timezone.utc)


def make_context(tmp_path: Path, history_limit: int = 20) -> DqaContext:
    ticks = count()
    store = FileSystemDocumentStore(tmp_path / "datastore")
    return DqaContext(
        store=store,
        audit_log=AuditLog(store, clock=lambda: NOW + timedelta(seconds=next(ticks))),
        engine=ReconciliationEngine(clock=lambda: NOW),
        history_limit=history_limit,
    )


def row(value, period="202501", org_unit="o", data_element="d1"):
    return {
        "dataElement": data_element,
        "categoryOptionCombo": "c",
        "orgUnit": org_unit,
        "period": period,
        "value": value,
    }


def seed_assessment(context: DqaContext, assessment_id: str = "a1") -> None:
    context.store.create(
        "dqa360",
        assessment_id,
        {
            "id": assessment_id,
            "localDatasets": {
                "register": {"rows": [row(50), row(10, period="202502"), row(3, org_unit="other")]},
                "summary": {"rows": [row(52), row(10, period="202502")]},
                "reported": {"rows": [row(54), row(10, period="202502")]},
                "corrections": {"rows": [row(52)]},
            },
        },
    )


def test_run_comparison_scopes_rows_and_records_history(tmp_path: Path) -> None:
    context = make_context(tmp_path)
    seed_assessment(context)

    response = RunComparisonUseCase(context).execute(ComparisonRequest("a1", period="202501", org_unit="o"))

    summary = response.report.summary
    assert (summary.total, summary.mismatches, summary.missing) == (1, 1, 0)
    document = context.store.get("dqa360", "a1")
    assert document["comparisonResults"][0] == summary.to_dict()
    assert document["localDatasets"]["register"]["rows"][0]["value"] == 50

    logs = AuditLog(context.store, clock=lambda: NOW).list_logs(action="dqa.comparison")
    assert logs[0].status == "success"
    assert logs[0].message == "Comparison run: 1 mismatches, 0 missing of 1"
    assert logs[0].context["period"] == "202501"


def test_run_comparison_without_scope_uses_all_rows(tmp_path: Path) -> None:
    context = make_context(tmp_path)
    seed_assessment(context)

    summary = RunComparisonUseCase(context).execute(ComparisonRequest("a1")).report.summary

    assert summary.total == 3
    assert summary.missing == 2


def test_history_is_newest_first_and_capped(tmp_path: Path) -> None:
    context = make_context(tmp_path, history_limit=2)
    seed_assessment(context)
    use_case = RunComparisonUseCase(context)

    for period in ("202501", "202502", "202503"):
        use_case.execute(ComparisonRequest("a1", period=period))

    history = context.store.get("dqa360", "a1")["comparisonResults"]
    assert [entry["period"] for entry in history] == ["202503", "202502"]


def test_unknown_assessment_compares_empty_sources(tmp_path: Path) -> None:
    context = make_context(tmp_path)

    response = RunComparisonUseCase(context).execute(ComparisonRequest("missing", period="202501"))

    assert response.report.summary.total == 0
    assert context.store.get("dqa360", "missing")["comparisonResults"][0]["total"] == 0


class BrokenStore(FileSystemDocumentStore):
    def get(self, namespace, key):
        if namespace == "dqa360":
            raise OSError("disk unavailable")
        return super().get(namespace, key)


def test_store_failure_is_audited_and_raised(tmp_path: Path) -> None:
    store = BrokenStore(tmp_path / "datastore")
    context = DqaContext(store=store, audit_log=AuditLog(store, clock=lambda: NOW))

    with pytest.raises(OSError):
        RunComparisonUseCase(context).execute(ComparisonRequest("a1", period="202501"))

    logs = AuditLog(store, clock=lambda: NOW).list_logs()
    assert logs[0].status == "failure"
    assert logs[0].message == "disk unavailable"
    assert logs[0].action == "dqa.comparison"
    assert logs[0].context == {"period": "202501", "orgUnit": None}


class SuccessRejectingAuditLog(AuditLog):
    def log_event(self, **event):
        if event.get("status") == "success":
            raise OSError("audit store full")
        return super().log_event(**event)


def test_success_audit_failure_is_audited_and_raised(tmp_path: Path) -> None:
    context = make_context(tmp_path)
    seed_assessment(context)
    context.audit_log = SuccessRejectingAuditLog(context.store, clock=lambda: NOW)

    with pytest.raises(OSError):
        RunComparisonUseCase(context).execute(ComparisonRequest("a1", period="202501"))
    with pytest.raises(OSError):
        ImportRowsUseCase(context).execute(
            ImportRequest("a1", SourceName.SUMMARY, b"[]", FileFormat.JSON)
        )

    logs = AuditLog(context.store, clock=lambda: NOW).list_logs(status="failure")
    assert {entry.action for entry in logs} == {"dqa.comparison", "dqa.import"}
    assert all(entry.message == "audit store full" for entry in logs)


def test_multi_period_comparison_runs_each_month(tmp_path: Path) -> None:
    context = make_context(tmp_path)
    seed_assessment(context)

    result = RunMultiPeriodComparisonUseCase(context).execute(
        MultiPeriodComparisonRequest(
            assessment_id="a1",
            assessment_period="2025Q1",
            assessment_frequency="quarterly",
            dataset_period_type="Monthly",
            org_unit="o",
        )
    )

    assert not result.expansion.degraded
    assert [response.request.period for response in result.responses] == ["202501", "202502", "202503"]
    assert [response.report.summary.total for response in result.responses] == [1, 1, 0]
    assert result.total_mismatches == 1
    assert result.total_missing == 1


def test_multi_period_with_malformed_period_runs_once(tmp_path: Path) -> None:
    context = make_context(tmp_path)
    seed_assessment(context)

    result = RunMultiPeriodComparisonUseCase(context).execute(
        MultiPeriodComparisonRequest("a1", "2025-Q1", "quarterly", "Monthly")
    )

    assert result.expansion.degraded
    assert len(result.responses) == 1
    assert result.responses[0].report.summary.total == 0


def test_import_rows_into_new_assessment(tmp_path: Path) -> None:
    context = make_context(tmp_path)
    content = b"de,pe,ou,val\nd1,202501,o,5\nd2,202501,o,x\n"

    response = ImportRowsUseCase(context, clock=lambda: NOW).execute(
        ImportRequest(
            assessment_id="a2",
            source=SourceName.CORRECTION,
            content=content,
            fmt=FileFormat.CSV,
            mapping={"dataElement": "de", "period": "pe", "orgUnit": "ou", "value": "val"},
        )
    )

    assert response.count == 2
    document = context.store.get("dqa360", "a2")
    assert document["lastUpdated"] == NOW.isoformat()
    stored = document["localDatasets"]["corrections"]["rows"]
    assert stored[0] == {
        "dataElement": "d1",
        "categoryOptionCombo": "default",
        "orgUnit": "o",
        "period": "202501",
        "value": "5",
    }
    logs = AuditLog(context.store, clock=lambda: NOW).list_logs(action="dqa.import")
    assert logs[0].entity_id == "a2:corrections"
    assert logs[0].message == "Imported 2 rows into corrections"


def test_import_keeps_other_sources(tmp_path: Path) -> None:
    context = make_context(tmp_path)
    seed_assessment(context)
    payload = json.dumps([row(1, data_element="d9")]).encode("utf-8")

    ImportRowsUseCase(context).execute(ImportRequest("a1", SourceName.SUMMARY, payload, FileFormat.JSON))

    datasets = context.store.get("dqa360", "a1")["localDatasets"]
    assert [r["dataElement"] for r in datasets["summary"]["rows"]] == ["d9"]
    assert len(datasets["register"]["rows"]) == 3


def test_import_failure_is_audited(tmp_path: Path) -> None:
    context = make_context(tmp_path)

    with pytest.raises(ValueError):
        ImportRowsUseCase(context).execute(ImportRequest("a3", SourceName.REGISTER, b'{"x": 1}', FileFormat.JSON))

    logs = AuditLog(context.store, clock=lambda: NOW).list_logs(status="failure")
    assert logs[0].action == "dqa.import"
    assert logs[0].entity_name == "register"


def test_export_rows(tmp_path: Path) -> None:
    context = make_context(tmp_path)
    seed_assessment(context)
    use_case = ExportRowsUseCase(context)

    exported = json.loads(use_case.execute("a1", "corrections", "json"))
    assert exported == [row(52)]

    csv_lines = use_case.execute("a1", SourceName.REGISTER, FileFormat.CSV).decode("utf-8").splitlines()
    assert len(csv_lines) == 4

    with pytest.raises(ValueError):
        use_case.execute("a1", "register", "xml")
