"""Round submissions, oracle verdicts and persisted round results."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from .candidate import UtcDatetime, new_id


class QuestionType(str, Enum):
    MCQ = "MCQ"
    CODING = "Coding"
    SYSTEM_DESIGN = "SystemDesign"
    PROJECT = "Project"


ORACLE_SCORED_TYPES = frozenset({QuestionType.CODING, QuestionType.SYSTEM_DESIGN})


def _normalize_question_type(value: Any) -> Any:
    if isinstance(value, str) and value.replace(" ", "").lower() == "systemdesign":
        return QuestionType.SYSTEM_DESIGN
    return value


QuestionTypeField = Annotated[QuestionType, BeforeValidator(_normalize_question_type)]


class CodeEvaluation(BaseModel):
    """Rubric verdict returned by the evaluation oracle for one answer."""

    correctness: int = Field(ge=0, le=10)
    understanding: int = Field(ge=0, le=10)
    quality: int = Field(ge=0, le=10)
    efficiency: int = Field(ge=0, le=10)
    feedback: str = ""
    follow_up_questions: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("follow_up_questions", "followUpQuestions"),
    )

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def sub_scores(self) -> tuple[int, int, int, int]:
        return (self.correctness, self.understanding, self.quality, self.efficiency)

    @property
    def total(self) -> int:
        return sum(self.sub_scores)


class QuestionAttempt(BaseModel):
    """One answered question as submitted by the round-flow client."""

    question_id: str
    question: str
    candidate_answer: str = ""
    correct_answer: str | None = None
    is_correct: bool = False
    type: QuestionTypeField
    options: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class RoundSubmission(BaseModel):
    """A completed attempt at a round, before scoring."""

    domain_id: str = Field(min_length=1)
    domain_name: str = Field(min_length=1)
    round_id: str = Field(min_length=1)
    round_name: str = Field(min_length=1)
    started_at: UtcDatetime
    completed_at: UtcDatetime
    duration_seconds: int | None = Field(default=None, ge=0)
    questions: list[QuestionAttempt] = Field(min_length=1)
    feedback: str | None = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_chronology(self) -> "RoundSubmission":
        if self.completed_at < self.started_at:
            raise ValueError("completed_at must not precede started_at")
        return self


class QuestionResult(BaseModel):
    """Scored question stored inside a round result."""

    question_id: str
    question: str
    candidate_answer: str = ""
    correct_answer: str | None = None
    is_correct: bool
    type: QuestionTypeField
    options: list[str] = Field(default_factory=list)
    code_evaluation: CodeEvaluation | None = None
    evaluation_error: str | None = None
    follow_up_questions: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", frozen=True)


class RoundResult(BaseModel):
    """Immutable record of one finished attempt at a round."""

    result_id: str = Field(default_factory=new_id)
    candidate_id: str
    domain_id: str
    domain_name: str
    round_id: str
    round_name: str
    started_at: UtcDatetime
    completed_at: UtcDatetime
    duration_seconds: int | None = None
    questions: list[QuestionResult] = Field(default_factory=list)
    total_questions: int
    correct_answers: int
    percentage: float
    passed: bool
    feedback: str | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)
