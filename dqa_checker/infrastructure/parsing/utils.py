"""Shared parsing utilities for file ingestion."""
from __future__ import annotations

from io import BytesIO
from pathlib import Path

import pandas as pd


def ensure_bytes(source: BytesIO | Path | bytes) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, BytesIO):
        return source.getvalue()
    if isinstance(source, Path):
        return source.read_bytes()
    raise TypeError(f"Unsupported source type: {type(source)!r}")


def clean_cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    text = str(value).strip()
    if text.upper() == "NAN":
        return ""
    if text.endswith(".0") and text[:-2].lstrip("-").isdigit():
        return text[:-2]
    return text
