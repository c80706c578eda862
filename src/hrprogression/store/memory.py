"""In-process document store, used by tests and one-shot runs."""

from __future__ import annotations

import copy
from typing import Any, Iterator

from .base import DocumentStore


class MemoryDocumentStore(DocumentStore):
    """Keeps JSON-ready copies so callers never share mutable state with the store."""

    def __init__(self) -> None:
        super().__init__()
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    def _read(self, collection: str, key: str) -> dict[str, Any] | None:
        document = self._collections.get(collection, {}).get(key)
        return copy.deepcopy(document) if document is not None else None

    def _write(self, collection: str, key: str, document: dict[str, Any]) -> None:
        self._collections.setdefault(collection, {})[key] = copy.deepcopy(document)

    def _scan(self, collection: str) -> Iterator[dict[str, Any]]:
        for document in list(self._collections.get(collection, {}).values()):
            yield copy.deepcopy(document)
