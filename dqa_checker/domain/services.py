"""Domain services implementing comparison rules."""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Mapping, Sequence

from .models import ComparisonKey, ComparisonSources, DataSourceRow, SourceName
from .results import ComparisonReport, ComparisonResultRow, ComparisonSummary

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Exact-equality comparison of the four sources, key by key.

    No tolerance is applied here; acceptable-variance thresholds belong to
    the callers rendering the result.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def compare(
        self,
        sources: ComparisonSources,
        period: str | None = None,
        org_unit: str | None = None,
    ) -> ComparisonReport:
        started = time.perf_counter()
        indexes = {source: self._to_index(sources.rows_for(source)) for source in SourceName}

        keys: dict[ComparisonKey, None] = {}
        for source in SourceName:
            keys.update(dict.fromkeys(indexes[source]))

        rows: list[ComparisonResultRow] = []
        for key in keys:
            values = {source: indexes[source].get(key) for source in SourceName}
            present = [value for value in values.values() if value is not None]
            rows.append(
                ComparisonResultRow(
                    key=key,
                    register=values[SourceName.REGISTER],
                    summary=values[SourceName.SUMMARY],
                    reported=values[SourceName.REPORTED],
                    correction=values[SourceName.CORRECTION],
                    missing_count=len(SourceName) - len(present),
                    mismatch=len(set(present)) > 1,
                )
            )

        duration_ms = (time.perf_counter() - started) * 1000
        summary = ComparisonSummary(
            total=len(rows),
            mismatches=sum(1 for row in rows if row.mismatch),
            missing=sum(1 for row in rows if row.is_missing),
            period=period,
            org_unit=org_unit,
            run_at=self._clock(),
            duration_ms=round(duration_ms, 3),
        )
        logger.debug(
            "Compared %d keys for period=%s org_unit=%s: %d mismatches, %d missing",
            summary.total,
            period,
            org_unit,
            summary.mismatches,
            summary.missing,
        )
        return ComparisonReport(summary=summary, rows=tuple(rows))

    @staticmethod
    def _to_index(rows: Sequence[DataSourceRow]) -> Mapping[ComparisonKey, Decimal]:
        # Duplicate keys within a source: last row wins.
        return {row.key: row.numeric_value for row in rows}
