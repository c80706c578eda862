"""Round scoring: per-question verdicts and the round-level pass/fail."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal

import structlog

from ..errors import OracleError
from ..oracle import FALLBACK_FOLLOW_UPS, EvaluationOracle, parse_verdict
from ..schemas import (
    ORACLE_SCORED_TYPES,
    CodeEvaluation,
    QuestionAttempt,
    QuestionResult,
    QuestionType,
    RoundSubmission,
)

RoundKind = Literal["project", "oracle", "standard"]


@dataclass(slots=True)
class ScoredRound:
    """Scoring output handed to the outcome recorder."""

    kind: RoundKind
    questions: list[QuestionResult]
    total_questions: int
    correct_answers: int
    percentage: float
    passed: bool


class ScoringEngine:
    """Applies the per-round-type scoring rules.

    * Project rounds always pass with a percentage of 0.
    * Coding/SystemDesign rounds average the oracle's four sub-scores.
    * Everything else is the share of correct answers.
    """

    DEFAULT_PASS_THRESHOLD = 60.0
    DEFAULT_CRITERION_FLOOR = 5
    MAX_SUB_SCORE = 10
    CRITERIA_COUNT = 4

    def __init__(
        self,
        oracle: EvaluationOracle | None = None,
        *,
        pass_threshold: float | None = None,
        criterion_floor: int | None = None,
    ) -> None:
        self._oracle = oracle
        self._pass_threshold = self.DEFAULT_PASS_THRESHOLD if pass_threshold is None else pass_threshold
        self._criterion_floor = self.DEFAULT_CRITERION_FLOOR if criterion_floor is None else criterion_floor
        self._logger = structlog.get_logger(__name__)

    @property
    def pass_threshold(self) -> float:
        return self._pass_threshold

    def score(self, submission: RoundSubmission) -> ScoredRound:
        kind = self.infer_kind(question.type for question in submission.questions)
        questions = [self._score_question(question) for question in submission.questions]
        total = len(questions)
        correct = sum(1 for question in questions if question.is_correct)

        if kind == "project":
            percentage, passed = 0.0, True
        elif kind == "oracle":
            percentage = self._rubric_percentage(questions)
            passed = self.is_passing(percentage)
        else:
            percentage = correct * 100 / total if total else 0.0
            passed = self.is_passing(percentage)

        self._logger.info(
            "scoring.round_scored",
            round_id=submission.round_id,
            kind=kind,
            total_questions=total,
            correct_answers=correct,
            percentage=percentage,
            passed=passed,
        )
        return ScoredRound(
            kind=kind,
            questions=questions,
            total_questions=total,
            correct_answers=correct,
            percentage=percentage,
            passed=passed,
        )

    def is_passing(self, percentage: float) -> bool:
        return percentage >= self._pass_threshold

    @staticmethod
    def infer_kind(types: Iterable[QuestionType]) -> RoundKind:
        kinds = set(types)
        if kinds and kinds == {QuestionType.PROJECT}:
            return "project"
        if kinds and kinds <= ORACLE_SCORED_TYPES:
            return "oracle"
        return "standard"

    def _rubric_percentage(self, questions: list[QuestionResult]) -> float:
        # questions without a usable verdict contribute zero on every criterion
        rubric_questions = [q for q in questions if q.type in ORACLE_SCORED_TYPES]
        if not rubric_questions:
            return 0.0
        total_points = sum(q.code_evaluation.total for q in rubric_questions if q.code_evaluation)
        max_points = len(rubric_questions) * self.CRITERIA_COUNT * self.MAX_SUB_SCORE
        return total_points * 100 / max_points

    def _score_question(self, attempt: QuestionAttempt) -> QuestionResult:
        base = attempt.model_dump(include={"question_id", "question", "candidate_answer", "correct_answer", "type", "options"})

        if attempt.type == QuestionType.PROJECT:
            return QuestionResult(**base, is_correct=True)

        if attempt.type in ORACLE_SCORED_TYPES:
            try:
                verdict = self._consult_oracle(attempt)
            except OracleError as exc:
                self._logger.warning(
                    "oracle.fallback",
                    question_id=attempt.question_id,
                    reason=exc.message,
                )
                return QuestionResult(
                    **base,
                    is_correct=False,
                    evaluation_error=exc.message,
                    follow_up_questions=list(FALLBACK_FOLLOW_UPS),
                )
            return QuestionResult(
                **base,
                is_correct=self._meets_rubric(verdict),
                code_evaluation=verdict,
                follow_up_questions=verdict.follow_up_questions,
            )

        return QuestionResult(**base, is_correct=self._answer_matches(attempt))

    def _consult_oracle(self, attempt: QuestionAttempt) -> CodeEvaluation:
        if self._oracle is None:
            raise OracleError("No evaluation oracle configured")
        try:
            raw = self._oracle.evaluate(attempt.question, attempt.candidate_answer)
        except OracleError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise OracleError("Oracle call raised", reason=str(exc)) from exc
        return parse_verdict(raw)

    def _meets_rubric(self, verdict: CodeEvaluation) -> bool:
        return all(score > self._criterion_floor for score in verdict.sub_scores)

    @staticmethod
    def _answer_matches(attempt: QuestionAttempt) -> bool:
        if attempt.correct_answer is None:
            return attempt.is_correct
        return attempt.candidate_answer.strip().casefold() == attempt.correct_answer.strip().casefold()
