import csv
import io
import json
from datetime import datetime, timezone

import pandas as pd

from dqa_checker.domain.models import ComparisonSources, DataSourceRow
from dqa_checker.domain.services import ReconciliationEngine
from dqa_checker.presentation.comparison_report import (
    render_csv,
    render_excel,
    render_html,
    render_source_rows,
    result_rows_to_dicts,
)


def make_row(value, data_element: str = "d1") -> DataSourceRow:
    return DataSourceRow(data_element, "c", "o", "202501", value)


def make_report():
    sources = ComparisonSources(
        register=[make_row("50"), make_row("1", "d2")],
        summary=[make_row("52"), make_row("1", "d2")],
        reported=[make_row("54")],
        correction=[make_row("52")],
    )
    engine = ReconciliationEngine(clock=lambda: datetime(2025, 1, 1, tzinfo=timezone.utc))
    return engine.compare(sources, period="202501", org_unit="o")


def test_rows_to_dicts():
    rows = result_rows_to_dicts(make_report().rows)

    assert rows[0]["register"] == "50"
    assert rows[0]["delta"] == "-2"
    assert rows[0]["mismatch"] == "yes"
    assert rows[1]["reported"] == ""
    assert rows[1]["missing_count"] == "2"


def test_percentage_delta_is_rounded():
    rows = result_rows_to_dicts(make_report().rows, "pct")

    assert rows[0]["delta"] == "-3.85"


def test_render_csv_has_header_and_rows():
    data = render_csv(make_report().rows).decode("utf-8")

    parsed = list(csv.DictReader(io.StringIO(data)))
    assert len(parsed) == 2
    assert parsed[0]["data_element"] == "d1"


def test_render_csv_without_rows_keeps_header():
    data = render_csv([]).decode("utf-8")

    assert data.startswith("data_element,")


def test_render_html():
    html = render_html(make_report())

    assert "Mismatches: 1" in html
    assert '<tr class="mismatch">' in html


def test_render_excel_has_summary_and_details():
    content = render_excel(make_report())

    sheets = pd.read_excel(io.BytesIO(content), sheet_name=None, engine="openpyxl")
    assert set(sheets) == {"Summary", "Comparison"}
    assert len(sheets["Comparison"]) == 2
    assert int(sheets["Summary"].loc[0, "total"]) == 2


def test_render_source_rows_formats():
    rows = [make_row(5), make_row("7", "d2")]

    as_json = json.loads(render_source_rows(rows, "json"))
    as_csv = render_source_rows(rows, "csv").decode("utf-8").splitlines()

    assert as_json[0] == {"dataElement": "d1", "categoryOptionCombo": "c", "orgUnit": "o", "period": "202501", "value": 5}
    assert as_csv[0] == "dataElement,categoryOptionCombo,orgUnit,period,value"
    assert as_csv[2] == "d2,c,o,202501,7"
    excel = pd.read_excel(io.BytesIO(render_source_rows(rows, "excel")), engine="openpyxl")
    assert list(excel["dataElement"]) == ["d1", "d2"]


def test_html_and_excel_apply_row_filter():
    report = make_report()

    html = render_html(report, row_filter="mismatches")
    sheets = pd.read_excel(io.BytesIO(render_excel(report, row_filter="missing")), sheet_name=None, engine="openpyxl")

    assert "<td>d1</td>" in html
    assert "<td>d2</td>" not in html
    assert list(sheets["Comparison"]["data_element"]) == ["d2"]
    assert int(sheets["Summary"].loc[0, "total"]) == 2
