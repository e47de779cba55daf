"""Streamlit front-end for period expansion and four-source comparison."""
from __future__ import annotations

from typing import Sequence

import pandas as pd
import streamlit as st

from dqa_checker import ComparisonSources, Granularity, PeriodExpander, ReconciliationEngine
from dqa_checker.domain.models import DataSourceRow, SourceName
from dqa_checker.domain.results import ComparisonReport, DeltaMetric, RowFilter
from dqa_checker.infrastructure.parsing.rows import ROW_FIELDS, FileFormat, parse_rows
from dqa_checker.infrastructure.storage import mapping_store
from dqa_checker.presentation.comparison_report import (
    render_csv,
    render_excel,
    render_html,
    result_rows_to_dicts,
)


st.set_page_config(page_title="DQA Comparison", layout="wide")
st.title("Data Quality Assessment: Source Comparison")


def rows_to_dataframe(rows: Sequence[DataSourceRow]) -> pd.DataFrame:
    return pd.DataFrame([row.to_dict() for row in rows], columns=list(ROW_FIELDS))


def run_comparison(
    uploads: dict[SourceName, tuple[str, bytes]],
    periods: Sequence[str],
    org_unit: str | None,
) -> list[tuple[ComparisonReport, ComparisonSources]]:
    mapping = mapping_store.load_mapping()
    parsed = {
        source.value: parse_rows(content, FileFormat.from_filename(name), mapping)
        for source, (name, content) in uploads.items()
    }
    sources = ComparisonSources.from_mapping(parsed)
    engine = ReconciliationEngine()
    results = []
    for period in periods:
        scoped = sources.filtered(period, org_unit)
        results.append((engine.compare(scoped, period=period, org_unit=org_unit), scoped))
    return results


if "view" not in st.session_state:
    st.session_state["view"] = "compare"
if "result" not in st.session_state:
    st.session_state["result"] = None


if st.session_state["view"] == "compare":
    st.subheader("Assessment period")
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        assessment_period = st.text_input("Assessment period", value="2025Q1")
    with col2:
        frequency = st.selectbox("Assessment frequency", [g.frequency for g in Granularity], index=3)
    with col3:
        period_type = st.selectbox("Dataset period type", [g.period_type for g in Granularity], index=2)
    with col4:
        org_unit = st.text_input("Org unit (optional)", value="")

    expansion = PeriodExpander().expand(assessment_period.strip(), frequency, period_type)
    if expansion.degraded:
        st.warning(f"Period not decomposed: {expansion.reason}")
    st.caption("Sub-periods: " + ", ".join(period.display_name for period in expansion))

    st.subheader("Sources")
    uploads: dict[SourceName, tuple[str, bytes]] = {}
    columns = st.columns(len(SourceName))
    for column, source in zip(columns, SourceName):
        with column:
            uploaded = st.file_uploader(source.value.capitalize(), type=["csv", "xls", "xlsx", "json"], key=source.value)
            if uploaded is not None:
                uploads[source] = (uploaded.name, uploaded.read())

    with st.expander("Import column mapping"):
        mapping = mapping_store.load_mapping()
        mapping_df = pd.DataFrame(
            [{"field": name, "column": mapping.get(name, name)} for name in ROW_FIELDS],
            columns=["field", "column"],
        )
        edited_df = st.data_editor(mapping_df, hide_index=True, disabled=["field"], key="mapping_editor")
        if st.button("Save mapping", key="save_mapping_btn"):
            mapping_store.save_mapping({row["field"]: row["column"] for _, row in edited_df.iterrows()})
            st.success("Mapping saved")

    run_btn = st.button("Run Comparison", disabled=not uploads)
    if run_btn and uploads:
        with st.spinner("Comparing..."):
            results = run_comparison(uploads, expansion.ids, org_unit.strip() or None)
        st.session_state["result"] = {"results": results, "expansion": expansion}
        st.session_state["view"] = "results"
        st.rerun()
else:
    back_clicked = st.button("← Back", key="back_to_compare")
    if back_clicked:
        st.session_state["view"] = "compare"
        st.session_state["result"] = None
        st.rerun()

    result = st.session_state.get("result")
    if not result:
        st.info("No results available. Upload sources and run the comparison first.")
    else:
        col_filter, col_metric = st.columns(2)
        with col_filter:
            row_filter = st.selectbox("Rows", [item.value for item in RowFilter])
        with col_metric:
            metric = st.selectbox("Delta", [item.value for item in DeltaMetric])

        for report, sources in result["results"]:
            summary = report.summary
            st.subheader(f"Period {summary.period}")
            metric_cols = st.columns(3)
            metric_cols[0].metric("Total keys", summary.total)
            metric_cols[1].metric("Mismatches", summary.mismatches)
            metric_cols[2].metric("Missing", summary.missing)

            tabs = st.tabs(["Comparison", *[source.value.capitalize() for source in SourceName]])
            with tabs[0]:
                st.dataframe(pd.DataFrame(result_rows_to_dicts(report.filter_rows(row_filter), metric)))
                st.download_button(
                    "Download CSV",
                    data=render_csv(report.filter_rows(row_filter), metric),
                    file_name=f"comparison_{summary.period}.csv",
                    mime="text/csv",
                    key=f"csv_{summary.period}",
                )
                st.download_button(
                    "Download HTML",
                    data=render_html(report, metric, row_filter).encode("utf-8"),
                    file_name=f"comparison_{summary.period}.html",
                    mime="text/html",
                    key=f"html_{summary.period}",
                )
                st.download_button(
                    "Download Excel",
                    data=render_excel(report, metric, row_filter),
                    file_name=f"comparison_{summary.period}.xlsx",
                    mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                    key=f"xlsx_{summary.period}",
                )
            for tab, source in zip(tabs[1:], SourceName):
                with tab:
                    st.dataframe(rows_to_dataframe(sources.rows_for(source)))
