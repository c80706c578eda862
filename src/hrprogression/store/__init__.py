"""Document persistence for candidates, interviewers and round results."""

from __future__ import annotations

from .base import DocumentStore
from .json_store import JsonDirectoryStore
from .memory import MemoryDocumentStore

__all__ = ["DocumentStore", "JsonDirectoryStore", "MemoryDocumentStore"]
