"""Directory-backed store: one JSON file per document."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Iterator

from ..errors import StoreError
from .base import DocumentStore


class JsonDirectoryStore(DocumentStore):
    """Stores ``<root>/<collection>/<id>.json``; each file is replaced atomically."""

    def __init__(self, root: str | Path):
        super().__init__()
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, collection: str, key: str) -> Path:
        return self._root / collection / f"{key}.json"

    def _read(self, collection: str, key: str) -> dict[str, Any] | None:
        path = self._path(collection, key)
        if not path.exists():
            return None
        return self._load(path)

    def _write(self, collection: str, key: str, document: dict[str, Any]) -> None:
        path = self._path(collection, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _scan(self, collection: str) -> Iterator[dict[str, Any]]:
        directory = self._root / collection
        if not directory.is_dir():
            return
        for path in sorted(directory.glob("*.json")):
            yield self._load(path)

    @staticmethod
    def _load(path: Path) -> dict[str, Any]:
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except json.JSONDecodeError as exc:
            raise StoreError("Stored document is not valid JSON", path=str(path)) from exc
