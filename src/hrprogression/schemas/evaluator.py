"""Interviewer aggregate and its denormalized candidate roster."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .candidate import UtcDatetime, utcnow


class AvailabilityStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    BUSY = "Busy"


class RosterStatus(str, Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_ROSTER_STATUSES = frozenset({RosterStatus.ASSIGNED, RosterStatus.IN_PROGRESS})


class CandidateAssignment(BaseModel):
    """Snapshot of a candidate taken when the interviewer was assigned.

    Name, email and domain are a cache refreshed on assign/reassign only.
    """

    candidate_id: str
    candidate_name: str
    candidate_email: str
    work_domain: str = "Not specified"
    assigned_at: UtcDatetime = Field(default_factory=utcnow)
    assigned_by: str | None = None
    status: RosterStatus = RosterStatus.ASSIGNED
    current_round: int = 0
    total_rounds: int = 0
    last_activity: UtcDatetime | None = None
    notes: str = ""

    model_config = ConfigDict(extra="forbid")


class Interviewer(BaseModel):
    """Evaluator document; workload counters are derived, never stored."""

    interviewer_id: str
    user_id: str | None = None
    name: str
    email: str
    title: str | None = None
    status: AvailabilityStatus = AvailabilityStatus.ACTIVE
    skills: list[str] = Field(default_factory=list)
    assigned_candidates: list[CandidateAssignment] = Field(default_factory=list)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    # stored documents may carry stale counters from older writers
    model_config = ConfigDict(extra="ignore")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def active_interviews(self) -> int:
        return sum(1 for entry in self.assigned_candidates if entry.status in ACTIVE_ROSTER_STATUSES)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def completed_interviews(self) -> int:
        return sum(1 for entry in self.assigned_candidates if entry.status == RosterStatus.COMPLETED)

    def entries_for(self, candidate_id: str) -> list[CandidateAssignment]:
        return [entry for entry in self.assigned_candidates if entry.candidate_id == candidate_id]

    def active_entry_for(self, candidate_id: str) -> CandidateAssignment | None:
        for entry in self.entries_for(candidate_id):
            if entry.status in ACTIVE_ROSTER_STATUSES:
                return entry
        return None
