"""Pydantic schema definitions for the progression documents."""

from __future__ import annotations

from .candidate import (
    AssignedRound,
    AssignmentStatus,
    Candidate,
    DomainProgress,
    DomainStatus,
    EvaluatorAssignment,
    EvaluatorFeedback,
    EvaluatorRole,
    FeedbackDecision,
    InterviewFormat,
    InterviewSchedule,
    PipelineStatus,
    WorkDomainSelection,
)
from .catalog import CatalogRound, DomainDefinition
from .evaluator import (
    ACTIVE_ROSTER_STATUSES,
    AvailabilityStatus,
    CandidateAssignment,
    Interviewer,
    RosterStatus,
)
from .rounds import (
    ORACLE_SCORED_TYPES,
    CodeEvaluation,
    QuestionAttempt,
    QuestionResult,
    QuestionType,
    RoundResult,
    RoundSubmission,
)

__all__ = [
    "ACTIVE_ROSTER_STATUSES",
    "ORACLE_SCORED_TYPES",
    "AssignedRound",
    "AssignmentStatus",
    "AvailabilityStatus",
    "Candidate",
    "CandidateAssignment",
    "CatalogRound",
    "CodeEvaluation",
    "DomainDefinition",
    "DomainProgress",
    "DomainStatus",
    "EvaluatorAssignment",
    "EvaluatorFeedback",
    "EvaluatorRole",
    "FeedbackDecision",
    "InterviewFormat",
    "InterviewSchedule",
    "Interviewer",
    "PipelineStatus",
    "QuestionAttempt",
    "QuestionResult",
    "QuestionType",
    "RosterStatus",
    "RoundResult",
    "RoundSubmission",
    "WorkDomainSelection",
]
