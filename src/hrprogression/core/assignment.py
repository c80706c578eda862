"""Evaluator assignment: sequencing, reassignment, unassignment and feedback.

Each operation performs one candidate write (the primary write, guarded by the
candidate's revision) followed by interviewer roster updates. Roster updates
are best-effort: a failure is logged as a consistency warning and can be
repaired with :meth:`AssignmentSequencer.reconcile`.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

import structlog

from ..errors import ConsistencyWarning, NotFoundError, RequestValidationError, StoreError
from ..schemas import (
    AssignedRound,
    AssignmentStatus,
    Candidate,
    EvaluatorAssignment,
    EvaluatorFeedback,
    EvaluatorRole,
    InterviewSchedule,
    RosterStatus,
)
from ..schemas.candidate import utcnow
from ..store import DocumentStore
from .progress import ProgressTracker
from .roster import InterviewerRoster
from .status import assignment_event, ensure_open, feedback_event, transition


class AssignmentSequencer:
    """State machine over a candidate's ``assigned_rounds``."""

    # assignment sequence: round number -> role allowed to take it
    SEQUENCE: dict[int, EvaluatorRole] = {
        1: EvaluatorRole.INTERVIEWER,
        2: EvaluatorRole.ADMIN,
    }

    def __init__(self, *, store: DocumentStore, roster: InterviewerRoster, progress: ProgressTracker) -> None:
        self._store = store
        self._roster = roster
        self._progress = progress
        self._logger = structlog.get_logger(__name__)

    def next_round_number(self, candidate: Candidate, role: EvaluatorRole) -> int:
        for round_number, allowed_role in sorted(self.SEQUENCE.items()):
            if candidate.has_round(round_number):
                continue
            earlier_taken = all(candidate.has_round(n) for n in range(1, round_number))
            if allowed_role == role and earlier_taken:
                return round_number
            break
        raise RequestValidationError(
            "All rounds already assigned or invalid role sequence",
            candidate_id=candidate.candidate_id,
            role=role.value,
        )

    def assign_next(
        self,
        candidate_id: str,
        role: EvaluatorRole,
        evaluator_id: str,
        *,
        schedule: InterviewSchedule | None = None,
        assigned_by: str | None = None,
        notes: str = "",
    ) -> AssignedRound:
        candidate = self._store.get_candidate(candidate_id)
        ensure_open(candidate.status, action="assign an evaluator")
        round_number = self.next_round_number(candidate, role)
        if role == EvaluatorRole.INTERVIEWER:
            self._roster.require_assignable(evaluator_id)

        slot = AssignedRound(
            round_number=round_number,
            assigned_to=evaluator_id,
            assigned_to_role=role,
            assigned_by=assigned_by,
            schedule=schedule or InterviewSchedule(),
        )
        displaced = self._open_slot(candidate, slot, purge=False)
        candidate.status = transition(candidate.status, assignment_event(role))
        self._store.save_candidate(candidate)
        self._log_slot("assignment.assigned", candidate, slot, displaced=len(displaced))

        self._release_displaced(candidate_id, displaced, keep=evaluator_id, purge=False)
        if role == EvaluatorRole.INTERVIEWER:
            self._best_effort(
                "add_to_roster",
                self._roster.add_candidate,
                evaluator_id,
                candidate,
                assigned_by=assigned_by,
                notes=notes,
            )
        return slot

    def assign_direct(
        self,
        candidate_id: str,
        role: EvaluatorRole,
        evaluator_id: str,
        *,
        schedule: InterviewSchedule | None = None,
        assigned_by: str | None = None,
        notes: str = "",
    ) -> AssignedRound:
        """Administrative override: bypasses the role sequence and restarts at round 1."""
        candidate = self._store.get_candidate(candidate_id)
        ensure_open(candidate.status, action="assign an evaluator")
        if role == EvaluatorRole.INTERVIEWER:
            self._roster.require_assignable(evaluator_id)

        previous_interviewer = (
            candidate.assigned_interviewer.interviewer_id if candidate.assigned_interviewer else None
        )
        slot = AssignedRound(
            round_number=1,
            assigned_to=evaluator_id,
            assigned_to_role=role,
            assigned_by=assigned_by,
            schedule=schedule or InterviewSchedule(),
        )
        displaced = self._open_slot(candidate, slot, purge=True)
        candidate.status = transition(candidate.status, assignment_event(role))
        candidate.assigned_interviewer = (
            EvaluatorAssignment(interviewer_id=evaluator_id, assigned_by=assigned_by)
            if role == EvaluatorRole.INTERVIEWER
            else None
        )
        self._store.save_candidate(candidate)
        self._log_slot("assignment.assigned_direct", candidate, slot, displaced=len(displaced))

        keep = evaluator_id if role == EvaluatorRole.INTERVIEWER else None
        if previous_interviewer and previous_interviewer != keep and not any(
            s.assigned_to == previous_interviewer for s in displaced
        ):
            self._best_effort("remove_from_previous", self._roster.remove_candidate, previous_interviewer, candidate_id)
        self._release_displaced(candidate_id, displaced, keep=keep, purge=True)
        if role == EvaluatorRole.INTERVIEWER:
            self._best_effort(
                "add_to_roster",
                self._roster.add_candidate,
                evaluator_id,
                candidate,
                assigned_by=assigned_by,
                notes=notes,
            )
        return slot

    def reassign(
        self,
        candidate_id: str,
        round_number: int,
        role: EvaluatorRole,
        new_evaluator_id: str,
        *,
        schedule: InterviewSchedule | None = None,
        assigned_by: str | None = None,
    ) -> AssignedRound:
        candidate = self._store.get_candidate(candidate_id)
        slot = candidate.find_round(round_number, role)
        if slot is None:
            raise NotFoundError(
                "No such assignment to reassign",
                candidate_id=candidate_id,
                round_number=round_number,
                role=role.value,
            )
        ensure_open(candidate.status, action="reassign an evaluator")
        if role == EvaluatorRole.INTERVIEWER:
            self._roster.require_assignable(new_evaluator_id)

        previous_assignee = slot.assigned_to
        slot.assigned_to = new_evaluator_id
        slot.assigned_at = utcnow()
        slot.schedule = schedule or InterviewSchedule()
        slot.status = AssignmentStatus.ASSIGNED
        slot.feedback = None
        slot.response_submitted = False
        if assigned_by:
            slot.assigned_by = assigned_by
        displaced = self._open_slot(candidate, slot, purge=False)
        candidate.status = transition(candidate.status, assignment_event(role))
        if role == EvaluatorRole.INTERVIEWER and candidate.assigned_interviewer is not None:
            candidate.assigned_interviewer = EvaluatorAssignment(
                interviewer_id=new_evaluator_id,
                assigned_by=assigned_by or candidate.assigned_interviewer.assigned_by,
            )
        self._store.save_candidate(candidate)
        self._log_slot(
            "assignment.reassigned",
            candidate,
            slot,
            previous_assignee=previous_assignee,
            displaced=len(displaced),
        )

        self._release_displaced(candidate_id, displaced, keep=new_evaluator_id, purge=False)
        if role == EvaluatorRole.INTERVIEWER:
            if previous_assignee != new_evaluator_id:
                self._best_effort("remove_from_previous", self._roster.remove_candidate, previous_assignee, candidate_id)
            self._best_effort(
                "add_to_roster",
                self._roster.add_candidate,
                new_evaluator_id,
                candidate,
                assigned_by=assigned_by,
            )
        return slot

    def unassign(self, candidate_id: str, round_number: int, role: EvaluatorRole) -> AssignedRound:
        candidate = self._store.get_candidate(candidate_id)
        slot = candidate.find_round(round_number, role)
        if slot is None:
            raise NotFoundError(
                "No such assignment to unassign",
                candidate_id=candidate_id,
                round_number=round_number,
                role=role.value,
            )
        ensure_open(candidate.status, action="unassign an evaluator")

        candidate.assigned_rounds = [
            item for item in candidate.assigned_rounds if item.assignment_id != slot.assignment_id
        ]
        candidate.status = self._progress.derive_status(candidate)
        candidate.assigned_interviewer = None
        self._store.save_candidate(candidate)
        self._log_slot("assignment.unassigned", candidate, slot)

        self._best_effort("remove_from_rosters", self._roster.remove_everywhere, candidate_id)
        return slot

    def submit_feedback(self, candidate_id: str, assignment_id: str, feedback: EvaluatorFeedback) -> AssignedRound:
        candidate = self._store.get_candidate(candidate_id)
        slot = candidate.find_assignment(assignment_id)
        if slot is None:
            raise NotFoundError("Round not found", candidate_id=candidate_id, assignment_id=assignment_id)
        if slot.status != AssignmentStatus.ASSIGNED:
            raise RequestValidationError(
                "Assignment is not awaiting feedback",
                assignment_id=assignment_id,
                assignment_status=slot.status.value,
            )

        candidate.status = transition(candidate.status, feedback_event(slot.assigned_to_role, feedback.decision))
        slot.status = AssignmentStatus.COMPLETED
        slot.response_submitted = True
        slot.feedback = feedback
        pointer = candidate.assigned_interviewer
        if pointer is not None and pointer.interviewer_id == slot.assigned_to:
            pointer.status = AssignmentStatus.COMPLETED
        self._store.save_candidate(candidate)
        self._log_slot("assignment.feedback_submitted", candidate, slot, decision=feedback.decision.value)

        if slot.assigned_to_role == EvaluatorRole.INTERVIEWER:
            self._best_effort("complete_roster_entry", self._roster.mark, slot.assigned_to, candidate_id, RosterStatus.COMPLETED)
        return slot

    def release_interviewer(self, candidate_id: str, interviewer_id: str) -> None:
        """Drop the legacy interviewer pointer and the matching roster entry."""
        candidate = self._store.get_candidate(candidate_id)
        candidate.assigned_interviewer = None
        self._store.save_candidate(candidate)
        self._logger.info("assignment.interviewer_released", candidate_id=candidate_id, interviewer_id=interviewer_id)
        self._best_effort("remove_from_roster", self._roster.remove_candidate, interviewer_id, candidate_id)

    def reconcile(self, candidate_id: str) -> list[str]:
        """Re-derive roster membership from the candidate's open interviewer slot.

        Compensates for roster writes lost after a successful candidate write.
        Returns the ids of interviewers whose roster changed.
        """
        candidate = self._store.get_candidate(candidate_id)
        open_interviewer_slots = [
            slot for slot in candidate.open_rounds() if slot.assigned_to_role == EvaluatorRole.INTERVIEWER
        ]
        expected = open_interviewer_slots[-1] if open_interviewer_slots else None
        touched: list[str] = []

        for interviewer in self._store.list_interviewers():
            if interviewer.active_entry_for(candidate_id) is None:
                continue
            if expected is not None and interviewer.interviewer_id == expected.assigned_to:
                continue
            self._roster.mark(interviewer.interviewer_id, candidate_id, RosterStatus.CANCELLED)
            touched.append(interviewer.interviewer_id)

        if expected is not None:
            holder = self._store.find_interviewer(expected.assigned_to)
            if holder is not None and holder.active_entry_for(candidate_id) is None:
                self._roster.add_candidate(holder.interviewer_id, candidate, assigned_by=expected.assigned_by)
                touched.append(holder.interviewer_id)

        self._logger.info("assignment.reconciled", candidate_id=candidate_id, touched=touched)
        return touched

    def _open_slot(self, candidate: Candidate, slot: AssignedRound, *, purge: bool) -> list[AssignedRound]:
        """Make ``slot`` the candidate's only open assignment.

        Other open slots are removed (``purge``) or cancelled; the displaced
        slots are returned so their evaluators can be released.
        """
        displaced = [item for item in candidate.open_rounds() if item.assignment_id != slot.assignment_id]
        if purge:
            displaced_ids = {item.assignment_id for item in displaced}
            candidate.assigned_rounds = [
                item for item in candidate.assigned_rounds if item.assignment_id not in displaced_ids
            ]
        else:
            for item in displaced:
                item.status = AssignmentStatus.CANCELLED
        if candidate.find_assignment(slot.assignment_id) is None:
            candidate.assigned_rounds.append(slot)
        return displaced

    def _release_displaced(
        self,
        candidate_id: str,
        displaced: Iterable[AssignedRound],
        *,
        keep: str | None,
        purge: bool,
    ) -> None:
        for item in displaced:
            if item.assigned_to_role != EvaluatorRole.INTERVIEWER or item.assigned_to == keep:
                continue
            if purge:
                self._best_effort("remove_displaced", self._roster.remove_candidate, item.assigned_to, candidate_id)
            else:
                self._best_effort(
                    "cancel_displaced",
                    self._roster.mark,
                    item.assigned_to,
                    candidate_id,
                    RosterStatus.CANCELLED,
                )

    def _best_effort(self, step: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (ConsistencyWarning, StoreError) as exc:
            self._logger.warning(
                "assignment.consistency_warning",
                step=step,
                error=exc.message,
                details=exc.details,
            )
            return None

    def _log_slot(self, event: str, candidate: Candidate, slot: AssignedRound, **extra: Any) -> None:
        self._logger.info(
            event,
            candidate_id=candidate.candidate_id,
            assignment_id=slot.assignment_id,
            round_number=slot.round_number,
            role=slot.assigned_to_role.value,
            assigned_to=slot.assigned_to,
            status=candidate.status.value,
            **extra,
        )
