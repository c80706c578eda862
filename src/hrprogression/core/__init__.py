"""Core progression engine components."""

from __future__ import annotations

# NOTE: keep imports explicit for export clarity.
from .assignment import AssignmentSequencer
from .outcomes import RoundOutcomeRecorder, parse_submission
from .progress import ProgressTracker
from .retry import FreezingPeriod, RetryGate, RetryState, RetryStatus
from .roster import InterviewerRoster
from .scoring import ScoredRound, ScoringEngine
from .status import PipelineEvent, is_terminal, transition


__all__ = [
    "AssignmentSequencer",
    "FreezingPeriod",
    "InterviewerRoster",
    "PipelineEvent",
    "ProgressTracker",
    "RetryGate",
    "RetryState",
    "RetryStatus",
    "RoundOutcomeRecorder",
    "ScoredRound",
    "ScoringEngine",
    "is_terminal",
    "parse_submission",
    "transition",
]
