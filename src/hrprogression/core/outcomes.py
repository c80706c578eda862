"""Persists finished round attempts and feeds cleared rounds back into progress."""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from ..errors import ConcurrentModificationError, NotFoundError, RequestValidationError
from ..schemas import RoundResult, RoundSubmission
from ..store import DocumentStore
from .progress import ProgressTracker
from .scoring import ScoringEngine


def parse_submission(payload: RoundSubmission | dict[str, Any]) -> RoundSubmission:
    if isinstance(payload, RoundSubmission):
        return payload
    try:
        return RoundSubmission.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(
            "Missing or invalid round submission fields",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()],
        ) from exc


class RoundOutcomeRecorder:
    """Scores a submission, stores the immutable result, records cleared rounds."""

    CLEAR_ROUND_ATTEMPTS = 3

    def __init__(self, *, store: DocumentStore, scoring: ScoringEngine, progress: ProgressTracker) -> None:
        self._store = store
        self._scoring = scoring
        self._progress = progress
        self._logger = structlog.get_logger(__name__)

    def record(self, candidate_id: str, payload: RoundSubmission | dict[str, Any]) -> RoundResult:
        submission = parse_submission(payload)
        self._store.get_candidate(candidate_id)

        scored = self._scoring.score(submission)
        result = RoundResult(
            candidate_id=candidate_id,
            domain_id=submission.domain_id,
            domain_name=submission.domain_name,
            round_id=submission.round_id,
            round_name=submission.round_name,
            started_at=submission.started_at,
            completed_at=submission.completed_at,
            duration_seconds=submission.duration_seconds,
            questions=scored.questions,
            total_questions=scored.total_questions,
            correct_answers=scored.correct_answers,
            percentage=scored.percentage,
            passed=scored.passed,
            feedback=submission.feedback,
        )
        self._store.add_result(result)
        self._logger.info(
            "outcome.recorded",
            candidate_id=candidate_id,
            result_id=result.result_id,
            round_id=result.round_id,
            passed=result.passed,
            percentage=result.percentage,
        )

        if result.passed:
            self._clear_round(candidate_id, result.domain_id, result.round_id)
        return result

    def attempts(self, candidate_id: str, round_id: str) -> list[RoundResult]:
        return self._store.results_for(candidate_id, round_id)

    def history(self, candidate_id: str) -> list[RoundResult]:
        """All attempts of a candidate, oldest first."""
        return self._store.results_for(candidate_id)

    def get(self, candidate_id: str, result_id: str) -> RoundResult:
        result = self._store.find_result(result_id)
        if result is None or result.candidate_id != candidate_id:
            raise NotFoundError("No result found", result_id=result_id)
        return result

    def _clear_round(self, candidate_id: str, domain_id: str, round_id: str) -> None:
        # the progress write reloads the candidate, so a lost race is retried
        for attempt in range(1, self.CLEAR_ROUND_ATTEMPTS + 1):
            try:
                self._progress.record_cleared_round(candidate_id, domain_id, round_id)
                return
            except ConcurrentModificationError:
                if attempt == self.CLEAR_ROUND_ATTEMPTS:
                    raise
                self._logger.info("outcome.clear_round_retry", candidate_id=candidate_id, attempt=attempt)
