"""Report generators for comparison results and source rows."""
from __future__ import annotations

import csv
import html
import io
import json
from decimal import Decimal
from typing import Sequence

import pandas as pd

from dqa_checker.domain.models import DataSourceRow
from dqa_checker.domain.results import ComparisonReport, ComparisonResultRow, DeltaMetric, RowFilter
from dqa_checker.infrastructure.parsing.rows import ROW_FIELDS, FileFormat

RESULT_COLUMNS = [
    "data_element",
    "category_option_combo",
    "org_unit",
    "period",
    "register",
    "summary",
    "reported",
    "correction",
    "delta",
    "missing_count",
    "mismatch",
]


def _fmt(value: Decimal | None) -> str:
    if value is None:
        return ""
    return format(value.normalize(), "f") if value == value.to_integral_value() else str(value)


def result_rows_to_dicts(
    rows: Sequence[ComparisonResultRow],
    metric: DeltaMetric | str = DeltaMetric.ABSOLUTE,
) -> list[dict[str, str]]:
    output: list[dict[str, str]] = []
    for row in rows:
        delta = row.delta(metric)
        if delta is not None and DeltaMetric(metric) is DeltaMetric.PERCENTAGE:
            delta = delta.quantize(Decimal("0.01"))
        output.append(
            {
                "data_element": row.key.data_element,
                "category_option_combo": row.key.category_option_combo,
                "org_unit": row.key.org_unit,
                "period": row.key.period,
                "register": _fmt(row.register),
                "summary": _fmt(row.summary),
                "reported": _fmt(row.reported),
                "correction": _fmt(row.correction),
                "delta": _fmt(delta),
                "missing_count": str(row.missing_count),
                "mismatch": "yes" if row.mismatch else "no",
            }
        )
    return output


def render_csv(rows: Sequence[ComparisonResultRow], metric: DeltaMetric | str = DeltaMetric.ABSOLUTE) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=RESULT_COLUMNS)
    writer.writeheader()
    writer.writerows(result_rows_to_dicts(rows, metric))
    return buffer.getvalue().encode("utf-8")


def render_html(
    report: ComparisonReport,
    metric: DeltaMetric | str = DeltaMetric.ABSOLUTE,
    row_filter: RowFilter | str = RowFilter.ALL,
) -> str:
    summary = report.summary
    caption = (
        f"<p>Total keys: {summary.total} | Mismatches: {summary.mismatches} | Missing: {summary.missing}</p>"
    )
    rows = result_rows_to_dicts(report.filter_rows(row_filter), metric)
    if not rows:
        return caption + "<p>No comparison rows.</p>"
    header = "".join(f"<th>{col}</th>" for col in RESULT_COLUMNS)
    body_parts = []
    for row in rows:
        css = ' class="mismatch"' if row["mismatch"] == "yes" else ""
        body_parts.append(
            f"<tr{css}>" + "".join(f"<td>{html.escape(row[col])}</td>" for col in RESULT_COLUMNS) + "</tr>"
        )
    body_html = "".join(body_parts)
    return f"{caption}<table><thead><tr>{header}</tr></thead><tbody>{body_html}</tbody></table>"


def render_excel(
    report: ComparisonReport,
    metric: DeltaMetric | str = DeltaMetric.ABSOLUTE,
    row_filter: RowFilter | str = RowFilter.ALL,
) -> bytes:
    buffer = io.BytesIO()
    details = pd.DataFrame(result_rows_to_dicts(report.filter_rows(row_filter), metric), columns=RESULT_COLUMNS)
    summary = pd.DataFrame([report.summary.to_dict()])
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        summary.to_excel(writer, sheet_name="Summary", index=False)
        details.to_excel(writer, sheet_name="Comparison", index=False)
    return buffer.getvalue()


def render_source_rows(rows: Sequence[DataSourceRow], fmt: FileFormat | str) -> bytes:
    fmt = FileFormat(fmt)
    records = [row.to_dict() for row in rows]
    if fmt is FileFormat.JSON:
        return json.dumps(records, indent=2, ensure_ascii=False).encode("utf-8")
    if fmt is FileFormat.CSV:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(ROW_FIELDS), lineterminator="\n")
        writer.writeheader()
        writer.writerows(records)
        return buffer.getvalue().encode("utf-8")
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        pd.DataFrame(records, columns=list(ROW_FIELDS)).to_excel(writer, sheet_name="DQA", index=False)
    return buffer.getvalue()
