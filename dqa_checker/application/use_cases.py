"""Application services orchestrating the DQA comparison workflow."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping

from dqa_checker.application.dto import (
    ComparisonRequest,
    ComparisonResponse,
    ImportRequest,
    ImportResponse,
    MultiPeriodComparisonRequest,
    MultiPeriodComparisonResponse,
)
from dqa_checker.config import SETTINGS
from dqa_checker.domain.models import ComparisonSources, DataSourceRow, SourceName
from dqa_checker.domain.periods import PeriodExpander
from dqa_checker.domain.repositories import AuditTrail, DocumentNotFoundError, DocumentStore, upsert
from dqa_checker.domain.results import ComparisonSummary
from dqa_checker.domain.services import ReconciliationEngine
from dqa_checker.infrastructure.parsing.rows import FileFormat, parse_rows
from dqa_checker.presentation.comparison_report import render_source_rows

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DqaContext:
    store: DocumentStore
    audit_log: AuditTrail
    engine: ReconciliationEngine = field(default_factory=ReconciliationEngine)
    expander: PeriodExpander = field(default_factory=PeriodExpander)
    namespace: str = SETTINGS.namespace
    history_limit: int = SETTINGS.comparison_history_limit


def load_assessment(context: DqaContext, assessment_id: str) -> dict[str, Any] | None:
    try:
        return context.store.get(context.namespace, assessment_id)
    except DocumentNotFoundError:
        return None


def sources_from_assessment(document: Mapping[str, Any] | None) -> ComparisonSources:
    datasets = (document or {}).get("localDatasets") or {}
    return ComparisonSources.from_mapping(
        {source.value: (datasets.get(source.dataset_key) or {}).get("rows") or [] for source in SourceName}
    )


def _audit_failure(dqa: DqaContext, /, **event: Any) -> None:
    try:
        dqa.audit_log.log_event(status="failure", **event)
    except Exception:  # noqa: BLE001
        logger.exception("Could not record failure audit event %s", event.get("action"))


class RunComparisonUseCase:
    def __init__(self, context: DqaContext) -> None:
        self._context = context

    def execute(self, request: ComparisonRequest) -> ComparisonResponse:
        context = self._context
        try:
            document = load_assessment(context, request.assessment_id)
            sources = sources_from_assessment(document).filtered(request.period, request.org_unit)
            report = context.engine.compare(sources, period=request.period, org_unit=request.org_unit)
            summary = report.summary
            self._record_history(request.assessment_id, summary)
            context.audit_log.log_event(
                action="dqa.comparison",
                entity_type="assessment",
                entity_id=request.assessment_id,
                status="success",
                message=(
                    f"Comparison run: {summary.mismatches} mismatches, {summary.missing} missing of {summary.total}"
                ),
                context={
                    "total": summary.total,
                    "mismatches": summary.mismatches,
                    "missing": summary.missing,
                    "period": summary.period,
                    "orgUnit": summary.org_unit,
                    "durationMs": summary.duration_ms,
                },
            )
        except Exception as exc:
            _audit_failure(
                context,
                action="dqa.comparison",
                entity_type="assessment",
                entity_id=request.assessment_id,
                message=str(exc) or "Comparison failed",
                context={"period": request.period, "orgUnit": request.org_unit},
            )
            raise

        logger.info(
            "Comparison for assessment %s (period=%s, org_unit=%s): %d keys, %d mismatches, %d missing",
            request.assessment_id,
            request.period,
            request.org_unit,
            summary.total,
            summary.mismatches,
            summary.missing,
        )
        return ComparisonResponse(request=request, report=report, sources=sources)

    def _record_history(self, assessment_id: str, summary: ComparisonSummary) -> None:
        # Best-effort.
        context = self._context
        try:
            document = load_assessment(context, assessment_id) or {"id": assessment_id}
            history = [summary.to_dict(), *(document.get("comparisonResults") or [])]
            document["comparisonResults"] = history[: context.history_limit]
            upsert(context.store, context.namespace, assessment_id, document)
        except Exception:  # noqa: BLE001
            logger.exception("Could not persist comparison history for assessment %s", assessment_id)


class RunMultiPeriodComparisonUseCase:
    def __init__(self, context: DqaContext) -> None:
        self._context = context
        self._single = RunComparisonUseCase(context)

    def execute(self, request: MultiPeriodComparisonRequest) -> MultiPeriodComparisonResponse:
        expansion = self._context.expander.expand(
            request.assessment_period,
            request.assessment_frequency,
            request.dataset_period_type,
        )
        responses = tuple(
            self._single.execute(
                ComparisonRequest(
                    assessment_id=request.assessment_id,
                    period=sub_period.id,
                    org_unit=request.org_unit,
                )
            )
            for sub_period in expansion
        )
        return MultiPeriodComparisonResponse(expansion=expansion, responses=responses)


class ImportRowsUseCase:
    def __init__(self, context: DqaContext, clock: Callable[[], datetime] | None = None) -> None:
        self._context = context
        self._clock = clock or (lambda: datetime.now(SETTINGS.timezone))

    def execute(self, request: ImportRequest) -> ImportResponse:
        context = self._context
        source = SourceName.parse(request.source)
        entity_id = f"{request.assessment_id}:{source.dataset_key}"
        try:
            rows = parse_rows(request.content, request.fmt, request.mapping)
            document = load_assessment(context, request.assessment_id) or {"id": request.assessment_id}
            datasets = document.setdefault("localDatasets", {})
            dataset = datasets.setdefault(source.dataset_key, {})
            dataset["rows"] = [row.to_dict() for row in rows]
            document["lastUpdated"] = self._clock().isoformat()
            upsert(context.store, context.namespace, request.assessment_id, document)
            context.audit_log.log_event(
                action="dqa.import",
                entity_type="dataset",
                entity_id=entity_id,
                entity_name=source.dataset_key,
                status="success",
                message=f"Imported {len(rows)} rows into {source.dataset_key}",
            )
        except Exception as exc:
            _audit_failure(
                context,
                action="dqa.import",
                entity_type="dataset",
                entity_id=entity_id,
                entity_name=source.dataset_key,
                message=str(exc) or "Import failed",
            )
            raise

        logger.info("Imported %d rows into %s", len(rows), entity_id)
        return ImportResponse(assessment_id=request.assessment_id, source=source, count=len(rows))


class ExportRowsUseCase:
    def __init__(self, context: DqaContext) -> None:
        self._context = context

    def execute(self, assessment_id: str, source: SourceName | str, fmt: FileFormat | str) -> bytes:
        fmt = FileFormat(fmt)
        source = SourceName.parse(source)
        document = load_assessment(self._context, assessment_id)
        rows: list[DataSourceRow] = list(sources_from_assessment(document).rows_for(source))
        return render_source_rows(rows, fmt)
