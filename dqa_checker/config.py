"""Central configuration for the DQA checker package."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timezone
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.environ.get("DQA_DATA_DIR", BASE_DIR / "data"))
DATASTORE_DIR = DATA_DIR / "datastore"
MAPPING_PATH = DATA_DIR / "column_mapping.json"


@dataclass(slots=True, frozen=True)
class Settings:
    namespace: str
    audit_namespace: str
    comparison_history_limit: int
    audit_entries_per_day: int
    default_category_option_combo: str
    datastore_dir: Path
    timezone: timezone.__class__


SETTINGS = Settings(
    namespace="dqa360",
    audit_namespace="dqa360-audit",
    comparison_history_limit=20,
    audit_entries_per_day=1000,
    default_category_option_combo="default",
    datastore_dir=DATASTORE_DIR,
    timezone=timezone.utc,
)
