from pathlib import Path
import json

from dqa_checker.infrastructure.storage.mapping_store import default_mapping, load_mapping, save_mapping


def test_save_and_load_mapping(tmp_path: Path):
    path = tmp_path / "column_mapping.json"
    merged = save_mapping({"dataElement": " DE ", "unknown": "x", "value": ""}, path=path)
    assert merged["dataElement"] == "DE"
    assert merged["value"] == "value"
    assert json.loads(path.read_text()) == {"dataElement": "DE"}

    loaded = load_mapping(path=path)
    assert loaded["dataElement"] == "DE"
    assert loaded["orgUnit"] == "orgUnit"


def test_missing_or_corrupt_file_gives_defaults(tmp_path: Path):
    path = tmp_path / "column_mapping.json"
    assert load_mapping(path=path) == default_mapping()

    path.write_text("{not json")
    assert load_mapping(path=path) == default_mapping()
