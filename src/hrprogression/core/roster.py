"""Interviewer-side bookkeeping of assigned candidates.

Every write here is secondary to a candidate write: callers treat failures as
consistency warnings, and workload counters are recomputed from the list on
read, so a missed update heals on the next successful one.
"""

from __future__ import annotations

from typing import Any

import structlog

from ..catalog import DomainCatalog
from ..errors import ConsistencyWarning, NotFoundError, RequestValidationError
from ..schemas import (
    ACTIVE_ROSTER_STATUSES,
    AvailabilityStatus,
    Candidate,
    CandidateAssignment,
    Interviewer,
    RosterStatus,
)
from ..schemas.candidate import utcnow
from ..store import DocumentStore


class InterviewerRoster:
    """Maintains ``Interviewer.assigned_candidates`` snapshots."""

    def __init__(self, *, store: DocumentStore, catalog: DomainCatalog) -> None:
        self._store = store
        self._catalog = catalog
        self._logger = structlog.get_logger(__name__)

    def require_assignable(self, interviewer_id: str) -> Interviewer:
        interviewer = self._store.get_interviewer(interviewer_id)
        if interviewer.status != AvailabilityStatus.ACTIVE:
            raise RequestValidationError(
                "Interviewer is not active. Please activate the interviewer first.",
                interviewer_id=interviewer_id,
                availability=interviewer.status.value,
            )
        return interviewer

    def snapshot(self, candidate: Candidate, *, assigned_by: str | None, notes: str = "") -> CandidateAssignment:
        progress = candidate.active_progress()
        domain_id = candidate.work_domain.domain_id if candidate.work_domain else None
        return CandidateAssignment(
            candidate_id=candidate.candidate_id,
            candidate_name=candidate.display_name,
            candidate_email=candidate.email,
            work_domain=candidate.work_domain.name if candidate.work_domain else "Not specified",
            assigned_by=assigned_by,
            current_round=progress.current_round_index if progress else 0,
            total_rounds=len(self._catalog.get_ordered_rounds(domain_id)) if domain_id else 0,
            last_activity=utcnow(),
            notes=notes,
        )

    def add_candidate(
        self,
        interviewer_id: str,
        candidate: Candidate,
        *,
        assigned_by: str | None = None,
        notes: str = "",
    ) -> Interviewer:
        """Attach a fresh snapshot, replacing any active entry for the same candidate."""
        interviewer = self._load(interviewer_id)
        interviewer.assigned_candidates = [
            entry
            for entry in interviewer.assigned_candidates
            if not (entry.candidate_id == candidate.candidate_id and entry.status in ACTIVE_ROSTER_STATUSES)
        ]
        interviewer.assigned_candidates.append(self.snapshot(candidate, assigned_by=assigned_by, notes=notes))
        self._store.save_interviewer(interviewer)
        self._log_change("roster.candidate_added", interviewer, candidate.candidate_id)
        return interviewer

    def remove_candidate(self, interviewer_id: str, candidate_id: str) -> Interviewer:
        interviewer = self._load(interviewer_id)
        before = len(interviewer.assigned_candidates)
        interviewer.assigned_candidates = [
            entry for entry in interviewer.assigned_candidates if entry.candidate_id != candidate_id
        ]
        if len(interviewer.assigned_candidates) == before:
            raise ConsistencyWarning(
                "Candidate missing from interviewer roster",
                interviewer_id=interviewer_id,
                candidate_id=candidate_id,
            )
        self._store.save_interviewer(interviewer)
        self._log_change("roster.candidate_removed", interviewer, candidate_id)
        return interviewer

    def remove_everywhere(self, candidate_id: str) -> list[str]:
        touched: list[str] = []
        for interviewer in self._store.interviewers_with_candidate(candidate_id):
            self.remove_candidate(interviewer.interviewer_id, candidate_id)
            touched.append(interviewer.interviewer_id)
        return touched

    def mark(self, interviewer_id: str, candidate_id: str, status: RosterStatus) -> Interviewer:
        """Set the status of the candidate's active entry."""
        interviewer = self._load(interviewer_id)
        entry = interviewer.active_entry_for(candidate_id)
        if entry is None:
            raise ConsistencyWarning(
                "No active roster entry for candidate",
                interviewer_id=interviewer_id,
                candidate_id=candidate_id,
            )
        entry.status = status
        entry.last_activity = utcnow()
        self._store.save_interviewer(interviewer)
        self._log_change("roster.entry_updated", interviewer, candidate_id, entry_status=status.value)
        return interviewer

    def summary(self, interviewer_id: str) -> dict[str, Any]:
        interviewer = self._store.get_interviewer(interviewer_id)
        return {
            "interviewer_id": interviewer.interviewer_id,
            "assigned_candidates": [entry.model_dump(mode="json") for entry in interviewer.assigned_candidates],
            "stats": {
                "total_assigned": len(interviewer.assigned_candidates),
                "active_interviews": interviewer.active_interviews,
                "completed_interviews": interviewer.completed_interviews,
                "status": interviewer.status.value,
            },
        }

    def _load(self, interviewer_id: str) -> Interviewer:
        try:
            return self._store.get_interviewer(interviewer_id)
        except NotFoundError as exc:
            raise ConsistencyWarning("Interviewer referenced by assignment no longer exists", interviewer_id=interviewer_id) from exc

    def _log_change(self, event: str, interviewer: Interviewer, candidate_id: str, **extra: Any) -> None:
        self._logger.info(
            event,
            interviewer_id=interviewer.interviewer_id,
            candidate_id=candidate_id,
            active_interviews=interviewer.active_interviews,
            **extra,
        )
