"""Candidate aggregate: domain progress and assignment history."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

import pendulum
from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return pendulum.now("UTC")


def new_id() -> str:
    return uuid.uuid4().hex


def _as_utc(value: datetime) -> datetime:
    # naive timestamps are taken to be UTC so they compare with aware ones
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class PipelineStatus(str, Enum):
    """Candidate-wide position in the assignment/evaluation workflow."""

    IN_PROGRESS = "in-progress"
    WAITING_FOR_ASSIGNMENT = "waiting-for-assignment"
    ASSIGNED_INTERVIEWER = "assigned-interviewer"
    ASSIGNED_ADMIN = "assigned-admin"
    WAITING_FOR_ADMIN_ASSIGNMENT = "waiting-for-admin-assignment"
    FINAL_ACCEPTED = "final-accepted"
    REJECTED = "rejected"


class DomainStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class AssignmentStatus(str, Enum):
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EvaluatorRole(str, Enum):
    INTERVIEWER = "interviewer"
    ADMIN = "admin"


class InterviewFormat(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    PHONE = "phone"
    OTHER = "other"


class FeedbackDecision(str, Enum):
    PASS = "pass"
    REJECT = "reject"


class WorkDomainSelection(BaseModel):
    """The domain a candidate is currently working in."""

    domain_id: str
    name: str

    model_config = ConfigDict(extra="forbid")


class DomainProgress(BaseModel):
    """Position and status inside one domain's ordered round list."""

    domain_id: str
    domain_name: str
    current_round_index: int = Field(default=0, ge=0)
    current_round_name: str = ""
    status: DomainStatus = DomainStatus.IN_PROGRESS
    cleared_rounds: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    def clear_round(self, round_id: str) -> bool:
        """Record a cleared round; returns False when it was already present."""
        if round_id in self.cleared_rounds:
            return False
        self.cleared_rounds.append(round_id)
        return True


class InterviewSchedule(BaseModel):
    """Requested logistics; recorded as given, never conflict-checked."""

    date: str | None = None
    time: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    format: InterviewFormat | None = None

    model_config = ConfigDict(extra="forbid")


class EvaluatorFeedback(BaseModel):
    """Opaque decision payload submitted by an evaluator."""

    decision: FeedbackDecision
    notes: str = ""
    ratings: dict[str, float] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")


class AssignedRound(BaseModel):
    """Binds the candidate to one evaluator for one assignment slot."""

    assignment_id: str = Field(default_factory=new_id)
    round_number: int = Field(ge=1)
    assigned_to: str
    assigned_to_role: EvaluatorRole
    assigned_at: UtcDatetime = Field(default_factory=utcnow)
    assigned_by: str | None = None
    schedule: InterviewSchedule = Field(default_factory=InterviewSchedule)
    status: AssignmentStatus = AssignmentStatus.ASSIGNED
    feedback: EvaluatorFeedback | None = None
    response_submitted: bool = False

    model_config = ConfigDict(extra="forbid")

    def matches(self, round_number: int, role: EvaluatorRole) -> bool:
        return self.round_number == round_number and self.assigned_to_role == role


class EvaluatorAssignment(BaseModel):
    """Legacy single-slot interviewer pointer, kept in sync on direct assign."""

    interviewer_id: str
    assigned_at: UtcDatetime = Field(default_factory=utcnow)
    assigned_by: str | None = None
    status: AssignmentStatus = AssignmentStatus.ASSIGNED

    model_config = ConfigDict(extra="forbid")


class Candidate(BaseModel):
    """Candidate document owned by the progress tracker and sequencer."""

    candidate_id: str
    name: str | None = None
    email: str
    work_domain: WorkDomainSelection | None = None
    work_domain_selected_at: UtcDatetime | None = None
    progress: list[DomainProgress] = Field(default_factory=list)
    status: PipelineStatus = PipelineStatus.IN_PROGRESS
    assigned_interviewer: EvaluatorAssignment | None = None
    assigned_rounds: list[AssignedRound] = Field(default_factory=list)
    revision: int = 0
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")

    @property
    def display_name(self) -> str:
        return self.name or self.email

    def progress_for(self, domain_id: str) -> DomainProgress | None:
        for entry in self.progress:
            if entry.domain_id == domain_id:
                return entry
        return None

    def active_progress(self) -> DomainProgress | None:
        if self.work_domain is None:
            return None
        return self.progress_for(self.work_domain.domain_id)

    def find_round(self, round_number: int, role: EvaluatorRole) -> AssignedRound | None:
        matches = [slot for slot in self.assigned_rounds if slot.matches(round_number, role)]
        live = [slot for slot in matches if slot.status != AssignmentStatus.CANCELLED]
        if live:
            return live[-1]
        return matches[-1] if matches else None

    def find_assignment(self, assignment_id: str) -> AssignedRound | None:
        for slot in self.assigned_rounds:
            if slot.assignment_id == assignment_id:
                return slot
        return None

    def open_rounds(self) -> list[AssignedRound]:
        return [slot for slot in self.assigned_rounds if slot.status == AssignmentStatus.ASSIGNED]

    def has_round(self, round_number: int) -> bool:
        # cancelled slots still occupy their number in the assignment sequence
        return any(slot.round_number == round_number for slot in self.assigned_rounds)
