"""Application-level DTOs for DQA comparison workflows."""
from __future__ import annotations

from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Mapping, Sequence

from dqa_checker.domain.models import ComparisonSources, SourceName
from dqa_checker.domain.periods import ExpansionResult, Granularity
from dqa_checker.domain.results import ComparisonReport
from dqa_checker.infrastructure.parsing.rows import FileFormat


@dataclass(slots=True, frozen=True)
class ComparisonRequest:
    assessment_id: str
    period: str | None = None
    org_unit: str | None = None


@dataclass(slots=True, frozen=True)
class ComparisonResponse:
    request: ComparisonRequest
    report: ComparisonReport
    sources: ComparisonSources


@dataclass(slots=True, frozen=True)
class MultiPeriodComparisonRequest:
    assessment_id: str
    assessment_period: str
    assessment_frequency: Granularity | str
    dataset_period_type: Granularity | str
    org_unit: str | None = None


@dataclass(slots=True, frozen=True)
class MultiPeriodComparisonResponse:
    expansion: ExpansionResult
    responses: Sequence[ComparisonResponse] = field(default_factory=tuple)

    @property
    def total_mismatches(self) -> int:
        return sum(response.report.summary.mismatches for response in self.responses)

    @property
    def total_missing(self) -> int:
        return sum(response.report.summary.missing for response in self.responses)


@dataclass(slots=True, frozen=True)
class ImportRequest:
    assessment_id: str
    source: SourceName
    content: BytesIO | Path | bytes
    fmt: FileFormat
    mapping: Mapping[str, str] | None = None


@dataclass(slots=True, frozen=True)
class ImportResponse:
    assessment_id: str
    source: SourceName
    count: int
