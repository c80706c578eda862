"""Document store contract shared by the storage backends."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Iterator

import structlog

from ..errors import ConcurrentModificationError, NotFoundError, RequestValidationError, StoreError
from ..schemas import Candidate, Interviewer, RoundResult
from ..schemas.candidate import utcnow

CANDIDATES = "candidates"
INTERVIEWERS = "interviewers"
RESULTS = "results"

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.@-]{1,128}$")


def check_key(key: str) -> str:
    if not isinstance(key, str) or not _KEY_PATTERN.match(key) or key in {".", ".."}:
        raise RequestValidationError("Invalid document id", document_id=key)
    return key


class DocumentStore(ABC):
    """Three independently addressable collections without cross-document transactions.

    Candidate writes are guarded by ``revision``: saving a candidate whose
    revision no longer matches the stored one raises
    :class:`ConcurrentModificationError`. Interviewer and result writes are
    plain last-write-wins.
    """

    def __init__(self) -> None:
        self._logger = structlog.get_logger(__name__)

    @abstractmethod
    def _read(self, collection: str, key: str) -> dict[str, Any] | None:
        """Return the raw document or None."""

    @abstractmethod
    def _write(self, collection: str, key: str, document: dict[str, Any]) -> None:
        """Persist the raw document, replacing any previous version."""

    @abstractmethod
    def _scan(self, collection: str) -> Iterator[dict[str, Any]]:
        """Yield every raw document in a collection."""

    # candidates

    def find_candidate(self, candidate_id: str) -> Candidate | None:
        raw = self._read(CANDIDATES, check_key(candidate_id))
        return Candidate.model_validate(raw) if raw is not None else None

    def get_candidate(self, candidate_id: str) -> Candidate:
        candidate = self.find_candidate(candidate_id)
        if candidate is None:
            raise NotFoundError("Candidate not found", candidate_id=candidate_id)
        return candidate

    def save_candidate(self, candidate: Candidate) -> Candidate:
        key = check_key(candidate.candidate_id)
        stored = self._read(CANDIDATES, key)
        stored_revision = stored.get("revision", 0) if stored is not None else None
        if stored_revision is None and candidate.revision != 0:
            raise NotFoundError("Candidate not found", candidate_id=candidate.candidate_id)
        if stored_revision is not None and stored_revision != candidate.revision:
            raise ConcurrentModificationError(
                "Candidate was modified concurrently",
                candidate_id=candidate.candidate_id,
                expected_revision=candidate.revision,
                stored_revision=stored_revision,
            )
        updated = candidate.model_copy(
            update={"revision": candidate.revision + 1, "updated_at": utcnow()},
            deep=True,
        )
        self._guarded_write(CANDIDATES, key, updated.model_dump(mode="json"))
        candidate.revision = updated.revision
        candidate.updated_at = updated.updated_at
        return candidate

    def create_candidate(self, candidate: Candidate) -> Candidate:
        if self._read(CANDIDATES, check_key(candidate.candidate_id)) is not None:
            raise RequestValidationError("Candidate already exists", candidate_id=candidate.candidate_id)
        candidate.revision = 0
        return self.save_candidate(candidate)

    # interviewers

    def find_interviewer(self, interviewer_id: str) -> Interviewer | None:
        raw = self._read(INTERVIEWERS, check_key(interviewer_id))
        return Interviewer.model_validate(raw) if raw is not None else None

    def get_interviewer(self, interviewer_id: str) -> Interviewer:
        interviewer = self.find_interviewer(interviewer_id)
        if interviewer is None:
            raise NotFoundError("Interviewer not found", interviewer_id=interviewer_id)
        return interviewer

    def save_interviewer(self, interviewer: Interviewer) -> Interviewer:
        interviewer.updated_at = utcnow()
        self._guarded_write(
            INTERVIEWERS,
            check_key(interviewer.interviewer_id),
            interviewer.model_dump(mode="json"),
        )
        return interviewer

    def list_interviewers(self) -> list[Interviewer]:
        return [Interviewer.model_validate(raw) for raw in self._scan(INTERVIEWERS)]

    def interviewers_with_candidate(self, candidate_id: str) -> list[Interviewer]:
        return [
            interviewer
            for interviewer in self.list_interviewers()
            if interviewer.entries_for(candidate_id)
        ]

    # round results

    def add_result(self, result: RoundResult) -> RoundResult:
        key = check_key(result.result_id)
        if self._read(RESULTS, key) is not None:
            raise StoreError("Round result already recorded", result_id=result.result_id)
        self._guarded_write(RESULTS, key, result.model_dump(mode="json"))
        return result

    def find_result(self, result_id: str) -> RoundResult | None:
        raw = self._read(RESULTS, check_key(result_id))
        return RoundResult.model_validate(raw) if raw is not None else None

    def results_for(self, candidate_id: str, round_id: str | None = None) -> list[RoundResult]:
        results = [
            RoundResult.model_validate(raw)
            for raw in self._scan(RESULTS)
            if raw.get("candidate_id") == candidate_id
            and (round_id is None or raw.get("round_id") == round_id)
        ]
        return sorted(results, key=lambda item: item.completed_at)

    def _guarded_write(self, collection: str, key: str, document: dict[str, Any]) -> None:
        try:
            self._write(collection, key, document)
        except OSError as exc:
            self._logger.error("store.write_failed", collection=collection, key=key, error=str(exc))
            raise StoreError("Document write failed", collection=collection, key=key) from exc
