"""Command-line entrypoint for period expansion and source comparison."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dqa_checker.application.dto import (
    ComparisonRequest,
    ImportRequest,
    MultiPeriodComparisonRequest,
)
from dqa_checker.application.use_cases import (
    DqaContext,
    ImportRowsUseCase,
    RunComparisonUseCase,
    RunMultiPeriodComparisonUseCase,
)
from dqa_checker.config import SETTINGS
from dqa_checker.domain.models import ComparisonSources, SourceName
from dqa_checker.domain.periods import PeriodExpander
from dqa_checker.domain.results import ComparisonReport, RowFilter
from dqa_checker.domain.services import ReconciliationEngine
from dqa_checker.infrastructure.audit.audit_log import AuditLog
from dqa_checker.infrastructure.parsing.rows import FileFormat, parse_rows
from dqa_checker.infrastructure.storage.document_store import FileSystemDocumentStore
from dqa_checker.infrastructure.storage.mapping_store import load_mapping
from dqa_checker.logging_config import setup_logging
from dqa_checker.presentation.comparison_report import render_csv, render_excel, render_html


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="DHIS2 data quality assessment: periods and source comparison")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    parser.add_argument("--log-json", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--store", type=Path, default=SETTINGS.datastore_dir, help="Document store directory")
    commands = parser.add_subparsers(dest="command", required=True)

    periods = commands.add_parser("periods", help="List the sub-periods of an assessment period")
    periods.add_argument("period", help="Assessment period, e.g. 2024Q1")
    periods.add_argument("--frequency", required=True, help="Assessment frequency (daily ... annually)")
    periods.add_argument("--period-type", required=True, help="Dataset period type (Daily ... Yearly)")

    compare = commands.add_parser("compare", help="Compare source files directly")
    for source in SourceName:
        compare.add_argument(f"--{source.value}", type=Path, help=f"{source.value.capitalize()} rows (csv/xlsx/json)")
    compare.add_argument("--period", help="Only compare rows of this period")
    compare.add_argument("--org-unit", help="Only compare rows of this org unit")
    _add_report_options(compare)

    import_rows = commands.add_parser("import", help="Import a source file into an assessment")
    import_rows.add_argument("assessment_id")
    import_rows.add_argument("source", choices=[source.value for source in SourceName])
    import_rows.add_argument("file", type=Path)

    run = commands.add_parser("run", help="Compare the sources stored on an assessment")
    run.add_argument("assessment_id")
    run.add_argument("--period", help="Assessment period (or the single period to compare)")
    run.add_argument("--org-unit")
    run.add_argument("--frequency", help="Assessment frequency; expands --period into sub-periods")
    run.add_argument("--period-type", help="Dataset period type used with --frequency")
    _add_report_options(run)
    return parser.parse_args(argv)


def _add_report_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--filter", choices=[item.value for item in RowFilter], default=RowFilter.ALL.value)
    parser.add_argument("--output", type=Path, help="Write details to .csv, .html or .xlsx")


def _print_report(report: ComparisonReport, row_filter: str) -> None:
    summary = report.summary
    print(f"Period: {summary.period or '-'}  Org unit: {summary.org_unit or '-'}")
    print(f"Total keys: {summary.total}")
    print(f"Mismatches: {summary.mismatches}")
    print(f"Missing: {summary.missing}")
    rows = report.filter_rows(row_filter)
    if not report.has_issues():
        print("No discrepancies detected.")
        return
    for row in rows:
        values = ", ".join(
            f"{source.value}={'-' if value is None else value}" for source, value in row.values.items()
        )
        flags = []
        if row.mismatch:
            flags.append("mismatch")
        if row.is_missing:
            flags.append(f"missing={row.missing_count}")
        print(f"- {row.key}: {values} [{' '.join(flags) or 'ok'}]")


def _write_output(report: ComparisonReport, path: Path, row_filter: str) -> None:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        path.write_bytes(render_csv(report.filter_rows(row_filter)))
    elif suffix in {".html", ".htm"}:
        path.write_text(render_html(report, row_filter=row_filter), encoding="utf-8")
    elif suffix == ".xlsx":
        path.write_bytes(render_excel(report, row_filter=row_filter))
    else:
        raise ValueError(f"Unsupported output type: {path.name}")
    print(f"Report written to {path}")


def _context(store_dir: Path) -> DqaContext:
    store = FileSystemDocumentStore(store_dir)
    return DqaContext(store=store, audit_log=AuditLog(store))


def _cmd_periods(args: argparse.Namespace) -> int:
    expansion = PeriodExpander().expand(args.period, args.frequency, args.period_type)
    for period in expansion:
        print(f"{period.id}\t{period.display_name}\t{period.period_type.period_type}")
    if expansion.degraded:
        print(f"warning: period was not decomposed ({expansion.reason})", file=sys.stderr)
        return 1
    return 0


def _cmd_compare(args: argparse.Namespace) -> int:
    mapping = load_mapping()
    sources = {}
    for source in SourceName:
        path = getattr(args, source.value)
        if path is not None:
            sources[source.value] = parse_rows(path, FileFormat.from_filename(path.name), mapping)
    compared = ComparisonSources.from_mapping(sources).filtered(args.period, args.org_unit)
    report = ReconciliationEngine().compare(compared, period=args.period, org_unit=args.org_unit)
    _print_report(report, args.filter)
    if args.output:
        _write_output(report, args.output, args.filter)
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    request = ImportRequest(
        assessment_id=args.assessment_id,
        source=SourceName.parse(args.source),
        content=args.file,
        fmt=FileFormat.from_filename(args.file.name),
        mapping=load_mapping(),
    )
    response = ImportRowsUseCase(_context(args.store)).execute(request)
    print(f"Imported {response.count} rows into {response.source.dataset_key} of {response.assessment_id}")
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    context = _context(args.store)
    if args.frequency:
        if not (args.period and args.period_type):
            print("--frequency requires --period and --period-type", file=sys.stderr)
            return 2
        result = RunMultiPeriodComparisonUseCase(context).execute(
            MultiPeriodComparisonRequest(
                assessment_id=args.assessment_id,
                assessment_period=args.period,
                assessment_frequency=args.frequency,
                dataset_period_type=args.period_type,
                org_unit=args.org_unit,
            )
        )
        responses = list(result.responses)
    else:
        responses = [
            RunComparisonUseCase(context).execute(
                ComparisonRequest(assessment_id=args.assessment_id, period=args.period, org_unit=args.org_unit)
            )
        ]
    for index, response in enumerate(responses):
        if index:
            print()
        _print_report(response.report, args.filter)
        if args.output:
            output = args.output
            if len(responses) > 1:
                output = output.with_name(f"{output.stem}_{response.request.period}{output.suffix}")
            _write_output(response.report, output, args.filter)
    return 0


COMMANDS = {
    "periods": _cmd_periods,
    "compare": _cmd_compare,
    "import": _cmd_import,
    "run": _cmd_run,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    level = getattr(logging, str(args.log_level).upper(), logging.WARNING)
    setup_logging(level=level, format_as_json=args.log_json, stream=sys.stderr)
    return COMMANDS[args.command](args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
