"""Storage helpers for import column mappings."""
from __future__ import annotations

from pathlib import Path
import json
from typing import Any

from dqa_checker.config import MAPPING_PATH
from dqa_checker.infrastructure.parsing.rows import ROW_FIELDS


def _normalize_mapping(raw: dict[str, Any] | None) -> dict[str, str]:
    normalized: dict[str, str] = {}
    if not isinstance(raw, dict):
        return normalized
    for key, value in raw.items():
        if key not in ROW_FIELDS:
            continue
        value_str = "" if value is None else str(value).strip()
        if value_str:
            normalized[key] = value_str
    return normalized


def default_mapping() -> dict[str, str]:
    return {name: name for name in ROW_FIELDS}


def load_mapping(path: Path | None = None) -> dict[str, str]:
    mapping_path = path or MAPPING_PATH
    mapping = default_mapping()
    if not mapping_path.exists():
        return mapping
    try:
        data = json.loads(mapping_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return mapping
    mapping.update(_normalize_mapping(data))
    return mapping


def save_mapping(mapping: dict[str, str], path: Path | None = None) -> dict[str, str]:
    mapping_path = path or MAPPING_PATH
    normalized = _normalize_mapping(mapping)
    mapping_path.parent.mkdir(parents=True, exist_ok=True)
    mapping_path.write_text(
        json.dumps(normalized, ensure_ascii=False, indent=2, sort_keys=True),
        encoding="utf-8",
    )
    merged = default_mapping()
    merged.update(normalized)
    return merged
