"""Pipeline status transition rules.

| from                                  | event                        | to                            |
|---------------------------------------|------------------------------|-------------------------------|
| in-progress                           | domain reaches final index   | waiting-for-assignment        |
| waiting-for-assignment                | assign interviewer / admin   | assigned-interviewer / -admin |
| assigned-*                            | unassign                     | re-derived from domain        |
| assigned-interviewer                  | feedback pass                | waiting-for-admin-assignment  |
| assigned-admin                        | feedback pass                | final-accepted                |
| assigned-*                            | feedback reject              | rejected                      |
| waiting-for-admin-assignment          | admin assigns final round    | assigned-admin                |

``rejected`` and ``final-accepted`` are terminal.
"""

from __future__ import annotations

from enum import Enum

from ..errors import InvalidTransitionError
from ..schemas import DomainStatus, EvaluatorRole, FeedbackDecision, PipelineStatus


class PipelineEvent(str, Enum):
    DOMAIN_IN_PROGRESS = "domain-in-progress"
    DOMAIN_COMPLETED = "domain-completed"
    ASSIGNED_INTERVIEWER = "assigned-interviewer"
    ASSIGNED_ADMIN = "assigned-admin"
    INTERVIEWER_PASSED = "interviewer-passed"
    ADMIN_PASSED = "admin-passed"
    EVALUATOR_REJECTED = "evaluator-rejected"


TRANSITIONS: dict[PipelineEvent, PipelineStatus] = {
    PipelineEvent.DOMAIN_IN_PROGRESS: PipelineStatus.IN_PROGRESS,
    PipelineEvent.DOMAIN_COMPLETED: PipelineStatus.WAITING_FOR_ASSIGNMENT,
    PipelineEvent.ASSIGNED_INTERVIEWER: PipelineStatus.ASSIGNED_INTERVIEWER,
    PipelineEvent.ASSIGNED_ADMIN: PipelineStatus.ASSIGNED_ADMIN,
    PipelineEvent.INTERVIEWER_PASSED: PipelineStatus.WAITING_FOR_ADMIN_ASSIGNMENT,
    PipelineEvent.ADMIN_PASSED: PipelineStatus.FINAL_ACCEPTED,
    PipelineEvent.EVALUATOR_REJECTED: PipelineStatus.REJECTED,
}

TERMINAL_STATUSES = frozenset({PipelineStatus.REJECTED, PipelineStatus.FINAL_ACCEPTED})


def is_terminal(status: PipelineStatus) -> bool:
    return status in TERMINAL_STATUSES


def ensure_open(status: PipelineStatus, *, action: str) -> None:
    if is_terminal(status):
        raise InvalidTransitionError(
            f"Candidate pipeline is closed; cannot {action}",
            status=status.value,
        )


def transition(current: PipelineStatus, event: PipelineEvent) -> PipelineStatus:
    ensure_open(current, action=event.value)
    return TRANSITIONS[event]


def domain_is_complete(round_index: int, total_rounds: int) -> bool:
    return total_rounds > 0 and round_index >= total_rounds


def domain_event(round_index: int, total_rounds: int) -> tuple[DomainStatus, PipelineEvent]:
    """Domain status and pipeline event implied by a progress pointer."""
    if domain_is_complete(round_index, total_rounds):
        return DomainStatus.COMPLETED, PipelineEvent.DOMAIN_COMPLETED
    return DomainStatus.IN_PROGRESS, PipelineEvent.DOMAIN_IN_PROGRESS


def assignment_event(role: EvaluatorRole) -> PipelineEvent:
    if role == EvaluatorRole.INTERVIEWER:
        return PipelineEvent.ASSIGNED_INTERVIEWER
    return PipelineEvent.ASSIGNED_ADMIN


def feedback_event(role: EvaluatorRole, decision: FeedbackDecision) -> PipelineEvent:
    if decision == FeedbackDecision.REJECT:
        return PipelineEvent.EVALUATOR_REJECTED
    if role == EvaluatorRole.ADMIN:
        return PipelineEvent.ADMIN_PASSED
    return PipelineEvent.INTERVIEWER_PASSED
