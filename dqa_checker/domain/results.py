"""Domain-level results for multi-source comparison."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Sequence

from .models import ComparisonKey, SourceName


class RowFilter(str, Enum):
    ALL = "all"
    MISMATCHES = "mismatches"
    MISSING = "missing"


class DeltaMetric(str, Enum):
    ABSOLUTE = "abs"
    PERCENTAGE = "pct"


@dataclass(frozen=True)
class ComparisonResultRow:
    key: ComparisonKey
    register: Decimal | None
    summary: Decimal | None
    reported: Decimal | None
    correction: Decimal | None
    missing_count: int
    mismatch: bool

    @property
    def values(self) -> dict[SourceName, Decimal | None]:
        return {source: getattr(self, source.value) for source in SourceName}

    @property
    def is_missing(self) -> bool:
        return self.missing_count > 0

    def delta(self, metric: DeltaMetric | str = DeltaMetric.ABSOLUTE) -> Decimal | None:
        """Register minus summary, absolute or as a percentage of summary."""
        metric = DeltaMetric(metric)
        if self.register is None or self.summary is None:
            return None
        difference = self.register - self.summary
        if metric is DeltaMetric.ABSOLUTE:
            return difference
        if self.summary == 0:
            return None
        return difference / self.summary * 100


@dataclass(frozen=True)
class ComparisonSummary:
    total: int
    mismatches: int
    missing: int
    period: str | None
    org_unit: str | None
    run_at: datetime
    duration_ms: float

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "mismatches": self.mismatches,
            "missing": self.missing,
            "period": self.period,
            "orgUnit": self.org_unit,
            "runAt": self.run_at.isoformat(),
            "durationMs": self.duration_ms,
        }


@dataclass(frozen=True)
class ComparisonReport:
    summary: ComparisonSummary
    rows: Sequence[ComparisonResultRow] = field(default_factory=tuple)

    def has_issues(self) -> bool:
        return bool(self.summary.mismatches or self.summary.missing)

    def filter_rows(self, row_filter: RowFilter | str = RowFilter.ALL) -> list[ComparisonResultRow]:
        row_filter = RowFilter(row_filter)
        if row_filter is RowFilter.MISMATCHES:
            return [row for row in self.rows if row.mismatch]
        if row_filter is RowFilter.MISSING:
            return [row for row in self.rows if row.is_missing]
        return list(self.rows)

    def iter_issues(self) -> Iterable[ComparisonResultRow]:
        for row in self.rows:
            if row.mismatch or row.is_missing:
                yield row
