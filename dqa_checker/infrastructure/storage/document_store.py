"""Filesystem-backed JSON document store."""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from dqa_checker.domain.repositories import DocumentExistsError, DocumentNotFoundError

_SAFE_NAME = re.compile(r"^[0-9A-Za-z_.-]+$")


def _check_name(kind: str, value: str) -> str:
    if not value or not _SAFE_NAME.match(value) or value in {".", ".."}:
        raise ValueError(f"Invalid {kind}: {value!r}")
    return value


class FileSystemDocumentStore:
    """Stores each document at ``<root>/<namespace>/<key>.json``."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def get(self, namespace: str, key: str) -> dict[str, Any]:
        path = self._path(namespace, key)
        if not path.is_file():
            raise DocumentNotFoundError(f"{namespace}/{key}")
        return json.loads(path.read_text(encoding="utf-8"))

    def create(self, namespace: str, key: str, document: dict[str, Any]) -> None:
        path = self._path(namespace, key)
        if path.exists():
            raise DocumentExistsError(f"{namespace}/{key}")
        self._write(path, document)

    def update(self, namespace: str, key: str, document: dict[str, Any]) -> None:
        path = self._path(namespace, key)
        if not path.is_file():
            raise DocumentNotFoundError(f"{namespace}/{key}")
        self._write(path, document)

    def keys(self, namespace: str) -> list[str]:
        directory = self._root / _check_name("namespace", namespace)
        if not directory.is_dir():
            return []
        return sorted(path.stem for path in directory.glob("*.json"))

    def _path(self, namespace: str, key: str) -> Path:
        return self._root / _check_name("namespace", namespace) / f"{_check_name('key', key)}.json"

    @staticmethod
    def _write(path: Path, document: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(path)
