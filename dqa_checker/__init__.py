"""Period decomposition and multi-source reconciliation for DHIS2 data quality assessments."""
from dqa_checker.application.use_cases import DqaContext, RunComparisonUseCase, RunMultiPeriodComparisonUseCase
from dqa_checker.domain.models import ComparisonSources, DataSourceRow
from dqa_checker.domain.periods import ExpansionResult, Granularity, PeriodExpander
from dqa_checker.domain.services import ReconciliationEngine
from dqa_checker.infrastructure.storage.document_store import FileSystemDocumentStore

__all__ = [
    "DqaContext",
    "RunComparisonUseCase",
    "RunMultiPeriodComparisonUseCase",
    "ComparisonSources",
    "DataSourceRow",
    "ExpansionResult",
    "Granularity",
    "PeriodExpander",
    "ReconciliationEngine",
    "FileSystemDocumentStore",
]
