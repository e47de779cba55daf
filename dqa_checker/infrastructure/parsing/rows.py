"""Parse CSV, Excel and JSON files into data-source rows."""
from __future__ import annotations

import json
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Any, Mapping, Sequence

import pandas as pd

from dqa_checker.config import SETTINGS
from dqa_checker.domain.models import DataSourceRow
from dqa_checker.infrastructure.parsing.utils import clean_cell, ensure_bytes

ROW_FIELDS = ("dataElement", "categoryOptionCombo", "orgUnit", "period", "value")

# Legacy .xls workbooks start with the OLE2 compound document signature.
_OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


class FileFormat(str, Enum):
    CSV = "csv"
    EXCEL = "excel"
    JSON = "json"

    @classmethod
    def from_filename(cls, name: str) -> FileFormat:
        suffix = Path(name).suffix.lower()
        if suffix == ".csv":
            return cls.CSV
        if suffix in {".xls", ".xlsx", ".xlsm"}:
            return cls.EXCEL
        if suffix == ".json":
            return cls.JSON
        raise ValueError(f"Unsupported file type: {name!r}")


def _excel_engine(raw: bytes) -> str:
    return "xlrd" if raw.startswith(_OLE2_SIGNATURE) else "openpyxl"


def read_records(source: BytesIO | Path | bytes, fmt: FileFormat | str) -> list[dict[str, Any]]:
    """Read a file into a list of raw records keyed by column name."""
    fmt = FileFormat(fmt)
    raw = ensure_bytes(source)
    if fmt is FileFormat.JSON:
        data = json.loads(raw.decode("utf-8-sig"))
        if isinstance(data, dict) and isinstance(data.get("rows"), list):
            data = data["rows"]
        if not isinstance(data, list):
            raise ValueError("JSON import must be a list of row objects")
        return [dict(item) for item in data if isinstance(item, dict)]
    if fmt is FileFormat.CSV:
        df = pd.read_csv(BytesIO(raw), dtype=str, keep_default_na=False, skipinitialspace=True)
    else:
        # First sheet only.
        df = pd.read_excel(BytesIO(raw), sheet_name=0, engine=_excel_engine(raw), dtype=str, keep_default_na=False)
    df.columns = [str(column).strip() for column in df.columns]
    return df.to_dict(orient="records")


def normalize_records(
    records: Sequence[Mapping[str, Any]],
    mapping: Mapping[str, str] | None = None,
) -> list[DataSourceRow]:
    """Apply a ``{field: column}`` mapping; unmapped fields fall back to the field name."""
    mapping = mapping or {}
    rows: list[DataSourceRow] = []
    for record in records:
        values = {}
        for name in ROW_FIELDS:
            column = mapping.get(name) or name
            raw = record.get(column, record.get(name))
            values[name] = raw if name == "value" and not isinstance(raw, str) else clean_cell(raw)
        # Fully blank spreadsheet lines only.
        if all(value in ("", None) for value in values.values()):
            continue
        rows.append(
            DataSourceRow(
                data_element=values["dataElement"],
                category_option_combo=values["categoryOptionCombo"] or SETTINGS.default_category_option_combo,
                org_unit=values["orgUnit"],
                period=values["period"],
                value=values["value"],
            )
        )
    return rows


def parse_rows(
    source: BytesIO | Path | bytes,
    fmt: FileFormat | str,
    mapping: Mapping[str, str] | None = None,
) -> list[DataSourceRow]:
    return normalize_records(read_records(source, fmt), mapping)
