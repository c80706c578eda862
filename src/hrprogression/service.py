"""Service facade: authorization, audit trail and the exposed operations."""

from __future__ import annotations

import json
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, TypeVar

import pendulum
import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from . import __version__
from .catalog import DomainCatalog
from .core import AssignmentSequencer, InterviewerRoster, ProgressTracker, RetryGate, RetryStatus, RoundOutcomeRecorder
from .errors import AuthorizationError, NotFoundError, RequestValidationError
from .schemas import (
    AssignedRound,
    AvailabilityStatus,
    Candidate,
    CatalogRound,
    EvaluatorFeedback,
    EvaluatorRole,
    FeedbackDecision,
    InterviewSchedule,
    Interviewer,
    RoundResult,
    RoundSubmission,
)
from .store import DocumentStore

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_input(model: type[ModelT], payload: ModelT | dict[str, Any], message: str) -> ModelT:
    """Validate caller-built input, reporting failures as :class:`RequestValidationError`."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(
            message,
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()],
        ) from exc


def _schedule(schedule: InterviewSchedule | dict[str, Any] | None) -> InterviewSchedule | None:
    if schedule is None:
        return None
    return validate_input(InterviewSchedule, schedule, "Invalid interview schedule")


class ActorRole(str, Enum):
    CANDIDATE = "candidate"
    INTERVIEWER = "interviewer"
    ADMIN = "admin"
    HR = "hr"


ADMIN_ROLES = frozenset({ActorRole.ADMIN, ActorRole.HR})


class Actor(BaseModel):
    """Authenticated caller as supplied by the identity provider."""

    actor_id: str
    role: ActorRole

    model_config = ConfigDict(frozen=True)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class AuditLogger:
    """Append-only audit logger writing JSON lines."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: dict) -> None:
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False, default=str))
            handle.write("\n")


class PipelineService:
    """Entry point for every candidate, evaluator and admin operation."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        catalog: DomainCatalog,
        progress: ProgressTracker,
        recorder: RoundOutcomeRecorder,
        retry_gate: RetryGate,
        sequencer: AssignmentSequencer,
        roster: InterviewerRoster,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._progress = progress
        self._recorder = recorder
        self._retry_gate = retry_gate
        self._sequencer = sequencer
        self._roster = roster
        self._audit_logger = audit_logger
        self._logger = structlog.get_logger(__name__)

    # candidate operations

    def register_candidate(
        self,
        actor: Actor,
        candidate_id: str,
        *,
        email: str,
        domain_id: str,
        domain_name: str,
        name: str | None = None,
    ) -> Candidate:
        with self._operation("register_candidate", actor, candidate_id=candidate_id):
            self._require_candidate_access(actor, candidate_id)
            candidate = self._progress.register(
                candidate_id,
                email=email,
                domain_id=domain_id,
                domain_name=domain_name,
                name=name,
            )
            self._audit("register_candidate", actor, candidate_id=candidate_id, domain_id=domain_id)
            return candidate

    def submit_round_result(
        self,
        actor: Actor,
        candidate_id: str,
        submission: RoundSubmission | dict[str, Any],
    ) -> RoundResult:
        with self._operation("submit_round_result", actor, candidate_id=candidate_id):
            self._require_candidate_access(actor, candidate_id)
            result = self._recorder.record(candidate_id, submission)
            self._audit(
                "submit_round_result",
                actor,
                candidate_id=candidate_id,
                result_id=result.result_id,
                round_id=result.round_id,
                percentage=result.percentage,
                passed=result.passed,
            )
            return result

    def get_retry_status(self, actor: Actor, candidate_id: str, round_id: str) -> RetryStatus:
        with self._operation("get_retry_status", actor, candidate_id=candidate_id):
            self._require_candidate_access(actor, candidate_id)
            self._store.get_candidate(candidate_id)
            status = self._retry_gate.evaluate(self._recorder.attempts(candidate_id, round_id))
            self._logger.info(
                "service.retry_status",
                round_id=round_id,
                state=status.state.value,
                allowed=status.allowed,
            )
            return status

    def get_next_eligible_round(self, actor: Actor, candidate_id: str) -> CatalogRound | None:
        """First catalog round of the active domain not yet cleared, or None when all are."""
        with self._operation("get_next_eligible_round", actor, candidate_id=candidate_id):
            self._require_candidate_access(actor, candidate_id)
            candidate = self._store.get_candidate(candidate_id)
            if candidate.work_domain is None:
                raise RequestValidationError("Candidate has no active work domain set", candidate_id=candidate_id)
            domain_id = candidate.work_domain.domain_id
            rounds = self._catalog.get_ordered_rounds(domain_id)
            if not rounds:
                raise NotFoundError("No rounds found for this domain", domain_id=domain_id)
            progress = candidate.progress_for(domain_id)
            cleared = progress.cleared_rounds if progress else []
            return self._retry_gate.next_eligible_round(rounds, cleared)

    def advance_progress(self, actor: Actor, candidate_id: str, round_index: int, round_name: str) -> Candidate:
        with self._operation("advance_progress", actor, candidate_id=candidate_id):
            self._require_candidate_access(actor, candidate_id)
            candidate = self._progress.advance(candidate_id, round_index, round_name)
            self._audit(
                "advance_progress",
                actor,
                candidate_id=candidate_id,
                round_index=round_index,
                status=candidate.status.value,
            )
            return candidate

    def switch_domain(self, actor: Actor, candidate_id: str, domain_id: str, domain_name: str) -> Candidate:
        with self._operation("switch_domain", actor, candidate_id=candidate_id):
            self._require_candidate_access(actor, candidate_id)
            candidate = self._progress.switch_domain(candidate_id, domain_id, domain_name)
            self._audit("switch_domain", actor, candidate_id=candidate_id, domain_id=domain_id)
            return candidate

    def candidate_detail(self, actor: Actor, candidate_id: str) -> dict[str, Any]:
        with self._operation("candidate_detail", actor, candidate_id=candidate_id):
            candidate = self._store.get_candidate(candidate_id)
            assignees = {slot.assigned_to for slot in candidate.assigned_rounds}
            if not (actor.is_admin or actor.actor_id == candidate_id or actor.actor_id in assignees):
                raise AuthorizationError("Not allowed to view this candidate", candidate_id=candidate_id)
            return {
                "candidate": candidate.model_dump(mode="json"),
                "attempts": [result.model_dump(mode="json") for result in self._recorder.history(candidate_id)],
            }

    def get_result(self, actor: Actor, candidate_id: str, result_id: str) -> RoundResult:
        with self._operation("get_result", actor, candidate_id=candidate_id):
            self._require_candidate_access(actor, candidate_id)
            return self._recorder.get(candidate_id, result_id)

    # evaluator operations

    def register_interviewer(
        self,
        actor: Actor,
        interviewer_id: str,
        *,
        name: str,
        email: str,
        user_id: str | None = None,
        title: str | None = None,
        status: AvailabilityStatus | str = AvailabilityStatus.ACTIVE,
        skills: list[str] | None = None,
    ) -> Interviewer:
        """Create or update an interviewer profile; existing roster entries are kept."""
        with self._operation("register_interviewer", actor, interviewer_id=interviewer_id):
            self._require_admin(actor)
            existing = self._store.find_interviewer(interviewer_id)
            interviewer = validate_input(
                Interviewer,
                {
                    "interviewer_id": interviewer_id,
                    "user_id": user_id or interviewer_id,
                    "name": name,
                    "email": email,
                    "title": title,
                    "status": status,
                    "skills": skills or [],
                    "assigned_candidates": existing.assigned_candidates if existing else [],
                },
                "Invalid interviewer profile",
            )
            self._store.save_interviewer(interviewer)
            self._audit(
                "register_interviewer",
                actor,
                interviewer_id=interviewer_id,
                availability=interviewer.status.value,
            )
            return interviewer

    def interviewer_roster(self, actor: Actor, interviewer_id: str) -> dict[str, Any]:
        with self._operation("interviewer_roster", actor, interviewer_id=interviewer_id):
            if not actor.is_admin:
                interviewer = self._store.get_interviewer(interviewer_id)
                if actor.actor_id not in {interviewer.interviewer_id, interviewer.user_id}:
                    raise AuthorizationError("Not allowed to view this roster", interviewer_id=interviewer_id)
            return self._roster.summary(interviewer_id)

    def submit_evaluator_feedback(
        self,
        actor: Actor,
        candidate_id: str,
        assignment_id: str,
        decision: FeedbackDecision | str,
        notes: str = "",
        ratings: dict[str, float] | None = None,
    ) -> AssignedRound:
        with self._operation("submit_evaluator_feedback", actor, candidate_id=candidate_id):
            candidate = self._store.get_candidate(candidate_id)
            slot = candidate.find_assignment(assignment_id)
            if slot is None:
                raise NotFoundError("Round not found", candidate_id=candidate_id, assignment_id=assignment_id)
            if not (actor.is_admin or actor.actor_id == slot.assigned_to):
                raise AuthorizationError(
                    "Only the assigned evaluator may submit feedback",
                    assignment_id=assignment_id,
                )
            feedback = validate_input(
                EvaluatorFeedback,
                {"decision": decision, "notes": notes, "ratings": ratings or {}},
                "Invalid evaluator feedback",
            )
            updated = self._sequencer.submit_feedback(candidate_id, assignment_id, feedback)
            self._audit(
                "submit_evaluator_feedback",
                actor,
                candidate_id=candidate_id,
                assignment_id=assignment_id,
                decision=feedback.decision.value,
            )
            return updated

    # admin operations

    def assign_next(
        self,
        actor: Actor,
        candidate_id: str,
        role: EvaluatorRole,
        evaluator_id: str,
        *,
        schedule: InterviewSchedule | dict[str, Any] | None = None,
        notes: str = "",
    ) -> AssignedRound:
        with self._operation("assign_next", actor, candidate_id=candidate_id):
            self._require_admin(actor)
            slot = self._sequencer.assign_next(
                candidate_id,
                role,
                evaluator_id,
                schedule=_schedule(schedule),
                assigned_by=actor.actor_id,
                notes=notes,
            )
            self._audit_slot("assign_next", actor, candidate_id, slot)
            return slot

    def assign_direct(
        self,
        actor: Actor,
        candidate_id: str,
        role: EvaluatorRole,
        evaluator_id: str,
        *,
        schedule: InterviewSchedule | dict[str, Any] | None = None,
        notes: str = "",
    ) -> AssignedRound:
        with self._operation("assign_direct", actor, candidate_id=candidate_id):
            self._require_admin(actor)
            slot = self._sequencer.assign_direct(
                candidate_id,
                role,
                evaluator_id,
                schedule=_schedule(schedule),
                assigned_by=actor.actor_id,
                notes=notes,
            )
            self._audit_slot("assign_direct", actor, candidate_id, slot)
            return slot

    def reassign(
        self,
        actor: Actor,
        candidate_id: str,
        round_number: int,
        role: EvaluatorRole,
        new_evaluator_id: str,
        *,
        schedule: InterviewSchedule | dict[str, Any] | None = None,
    ) -> AssignedRound:
        with self._operation("reassign", actor, candidate_id=candidate_id):
            self._require_admin(actor)
            slot = self._sequencer.reassign(
                candidate_id,
                round_number,
                role,
                new_evaluator_id,
                schedule=_schedule(schedule),
                assigned_by=actor.actor_id,
            )
            self._audit_slot("reassign", actor, candidate_id, slot)
            return slot

    def unassign(self, actor: Actor, candidate_id: str, round_number: int, role: EvaluatorRole) -> None:
        with self._operation("unassign", actor, candidate_id=candidate_id):
            self._require_admin(actor)
            slot = self._sequencer.unassign(candidate_id, round_number, role)
            self._audit_slot("unassign", actor, candidate_id, slot)

    def release_interviewer(self, actor: Actor, candidate_id: str, interviewer_id: str) -> None:
        with self._operation("release_interviewer", actor, candidate_id=candidate_id):
            self._require_admin(actor)
            self._sequencer.release_interviewer(candidate_id, interviewer_id)
            self._audit("release_interviewer", actor, candidate_id=candidate_id, interviewer_id=interviewer_id)

    def reconcile(self, actor: Actor, candidate_id: str) -> list[str]:
        with self._operation("reconcile", actor, candidate_id=candidate_id):
            self._require_admin(actor)
            touched = self._sequencer.reconcile(candidate_id)
            self._audit("reconcile", actor, candidate_id=candidate_id, touched=touched)
            return touched

    def freezing_period_days(self) -> float:
        return self._retry_gate.freezing_period.days()

    # helpers

    @contextmanager
    def _operation(self, operation: str, actor: Actor, **context: Any) -> Iterator[None]:
        with structlog.contextvars.bound_contextvars(
            operation=operation,
            actor_id=actor.actor_id,
            actor_role=actor.role.value,
            **context,
        ):
            yield

    def _require_admin(self, actor: Actor) -> None:
        if not actor.is_admin:
            self._logger.warning("service.forbidden", reason="admin role required")
            raise AuthorizationError("Admin or HR role required", actor_id=actor.actor_id, role=actor.role.value)

    def _require_candidate_access(self, actor: Actor, candidate_id: str) -> None:
        if actor.is_admin:
            return
        if actor.role != ActorRole.CANDIDATE or actor.actor_id != candidate_id:
            self._logger.warning("service.forbidden", reason="not the candidate")
            raise AuthorizationError(
                "Not allowed to act for this candidate",
                actor_id=actor.actor_id,
                candidate_id=candidate_id,
            )

    def _audit_slot(self, operation: str, actor: Actor, candidate_id: str, slot: AssignedRound) -> None:
        self._audit(
            operation,
            actor,
            candidate_id=candidate_id,
            assignment_id=slot.assignment_id,
            round_number=slot.round_number,
            role=slot.assigned_to_role.value,
            assigned_to=slot.assigned_to,
        )

    def _audit(self, operation: str, actor: Actor, **fields: Any) -> None:
        if not self._audit_logger:
            return
        self._audit_logger.append(
            {
                "timestamp": pendulum.now("UTC").to_iso8601_string(),
                "operation": operation,
                "actor_id": actor.actor_id,
                "actor_role": actor.role.value,
                "app_version": __version__,
                **fields,
            }
        )
