from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from dependency_injector import providers

from hrprogression.container import create_container
from hrprogression.errors import AuthorizationError, NotFoundError, RequestValidationError
from hrprogression.schemas import EvaluatorRole
from hrprogression.service import Actor, ActorRole, AuditLogger, PipelineService

ADMIN = Actor(actor_id="admin-1", role=ActorRole.ADMIN)
HR = Actor(actor_id="hr-1", role=ActorRole.HR)
CANDIDATE = Actor(actor_id="cand-1", role=ActorRole.CANDIDATE)
OTHER_CANDIDATE = Actor(actor_id="cand-2", role=ActorRole.CANDIDATE)
INTERVIEWER_ONE = Actor(actor_id="int-1", role=ActorRole.INTERVIEWER)
INTERVIEWER_TWO = Actor(actor_id="int-2", role=ActorRole.INTERVIEWER)

SETTINGS = {
    "catalog": {
        "domains": [
            {
                "domain_id": "backend",
                "name": "Backend",
                "rounds": [
                    {"round_id": "be-2", "sequence": 2, "name": "Coding"},
                    {"round_id": "be-1", "sequence": 1, "name": "Aptitude"},
                ],
            },
            {"domain_id": "empty", "name": "Empty"},
        ]
    }
}


def build_submission(round_id: str, correct: bool) -> dict[str, Any]:
    return {
        "domain_id": "backend",
        "domain_name": "Backend",
        "round_id": round_id,
        "round_name": round_id,
        "started_at": "2024-05-01T10:00:00Z",
        "completed_at": "2024-05-01T10:10:00Z",
        "questions": [
            {
                "question_id": "q1",
                "question": "2 + 2?",
                "candidate_answer": "4" if correct else "5",
                "correct_answer": "4",
                "type": "MCQ",
            }
        ],
    }


@pytest.fixture
def audit_path(tmp_path: Path) -> Path:
    return tmp_path / "audit" / "audit.jsonl"


@pytest.fixture
def service(audit_path: Path) -> PipelineService:
    container = create_container(settings=SETTINGS)
    container.audit_logger.override(providers.Object(AuditLogger(audit_path)))
    svc = container.service()
    svc.register_candidate(CANDIDATE, "cand-1", email="c1@example.com", domain_id="backend", domain_name="Backend")
    svc.register_interviewer(ADMIN, "int-1", name="Int One", email="int1@example.com")
    svc.register_interviewer(HR, "int-2", name="Int Two", email="int2@example.com")
    return svc


def read_audit(path: Path) -> list[dict[str, Any]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_candidates_may_only_act_for_themselves(service: PipelineService):
    with pytest.raises(AuthorizationError):
        service.submit_round_result(OTHER_CANDIDATE, "cand-1", build_submission("be-1", True))
    with pytest.raises(AuthorizationError):
        service.advance_progress(OTHER_CANDIDATE, "cand-1", 1, "Coding")
    with pytest.raises(AuthorizationError):
        service.register_candidate(
            INTERVIEWER_ONE, "cand-3", email="c3@example.com", domain_id="backend", domain_name="Backend"
        )

    assert service.candidate_detail(ADMIN, "cand-1")["attempts"] == []


def test_admin_operations_require_admin_or_hr(service: PipelineService):
    for actor in (CANDIDATE, INTERVIEWER_ONE):
        with pytest.raises(AuthorizationError):
            service.assign_next(actor, "cand-1", EvaluatorRole.INTERVIEWER, "int-1")
        with pytest.raises(AuthorizationError):
            service.register_interviewer(actor, "int-9", name="Nine", email="nine@example.com")

    service.advance_progress(CANDIDATE, "cand-1", 2, "Completed")
    slot = service.assign_next(HR, "cand-1", EvaluatorRole.INTERVIEWER, "int-1")
    assert slot.assigned_by == "hr-1"


def test_only_the_assignee_or_admin_submits_feedback(service: PipelineService):
    service.advance_progress(CANDIDATE, "cand-1", 2, "Completed")
    slot = service.assign_next(ADMIN, "cand-1", EvaluatorRole.INTERVIEWER, "int-1")

    with pytest.raises(AuthorizationError):
        service.submit_evaluator_feedback(INTERVIEWER_TWO, "cand-1", slot.assignment_id, "pass")
    with pytest.raises(AuthorizationError):
        service.submit_evaluator_feedback(CANDIDATE, "cand-1", slot.assignment_id, "pass")
    with pytest.raises(NotFoundError):
        service.submit_evaluator_feedback(INTERVIEWER_ONE, "cand-1", "missing", "pass")

    updated = service.submit_evaluator_feedback(INTERVIEWER_ONE, "cand-1", slot.assignment_id, "pass", "great")
    assert updated.feedback.notes == "great"


def test_interviewer_views_own_roster_and_assigned_candidate(service: PipelineService):
    service.advance_progress(CANDIDATE, "cand-1", 2, "Completed")
    service.assign_next(ADMIN, "cand-1", EvaluatorRole.INTERVIEWER, "int-1")

    assert service.interviewer_roster(INTERVIEWER_ONE, "int-1")["stats"]["active_interviews"] == 1
    assert service.candidate_detail(INTERVIEWER_ONE, "cand-1")["candidate"]["candidate_id"] == "cand-1"
    with pytest.raises(AuthorizationError):
        service.interviewer_roster(INTERVIEWER_TWO, "int-1")
    with pytest.raises(AuthorizationError):
        service.candidate_detail(INTERVIEWER_TWO, "cand-1")


def test_register_interviewer_keeps_existing_roster(service: PipelineService):
    service.advance_progress(CANDIDATE, "cand-1", 2, "Completed")
    service.assign_next(ADMIN, "cand-1", EvaluatorRole.INTERVIEWER, "int-1")

    updated = service.register_interviewer(ADMIN, "int-1", name="Renamed", email="int1@example.com", title="Staff")

    assert updated.name == "Renamed"
    assert updated.active_interviews == 1


def test_next_eligible_round_and_retry_status(service: PipelineService):
    assert service.get_next_eligible_round(CANDIDATE, "cand-1").round_id == "be-1"

    failed = service.submit_round_result(CANDIDATE, "cand-1", build_submission("be-1", False))
    status = service.get_retry_status(CANDIDATE, "cand-1", "be-1")
    assert status.last_result.result_id == failed.result_id
    assert service.get_next_eligible_round(CANDIDATE, "cand-1").round_id == "be-1"

    service.submit_round_result(CANDIDATE, "cand-1", build_submission("be-1", True))
    assert service.get_retry_status(CANDIDATE, "cand-1", "be-1").state.value == "passed"
    assert service.get_next_eligible_round(CANDIDATE, "cand-1").round_id == "be-2"

    service.submit_round_result(CANDIDATE, "cand-1", build_submission("be-2", True))
    assert service.get_next_eligible_round(CANDIDATE, "cand-1") is None

    assert service.get_result(CANDIDATE, "cand-1", failed.result_id).passed is False
    assert len(service.candidate_detail(CANDIDATE, "cand-1")["attempts"]) == 3


def test_next_eligible_round_for_domain_without_rounds(service: PipelineService):
    service.switch_domain(CANDIDATE, "cand-1", "empty", "Empty")

    with pytest.raises(NotFoundError):
        service.get_next_eligible_round(CANDIDATE, "cand-1")


def test_retry_status_for_unknown_candidate(service: PipelineService):
    with pytest.raises(NotFoundError):
        service.get_retry_status(ADMIN, "ghost", "be-1")


def test_state_changes_are_audited(service: PipelineService, audit_path: Path):
    service.advance_progress(CANDIDATE, "cand-1", 2, "Completed")
    slot = service.assign_next(ADMIN, "cand-1", EvaluatorRole.INTERVIEWER, "int-1")
    service.unassign(ADMIN, "cand-1", 1, EvaluatorRole.INTERVIEWER)

    records = read_audit(audit_path)
    operations = [record["operation"] for record in records]
    assert operations == [
        "register_candidate",
        "register_interviewer",
        "register_interviewer",
        "advance_progress",
        "assign_next",
        "unassign",
    ]
    assign_record = records[4]
    assert assign_record["actor_id"] == "admin-1"
    assert assign_record["assignment_id"] == slot.assignment_id
    assert assign_record["assigned_to"] == "int-1"


def test_rejected_operations_are_not_audited(service: PipelineService, audit_path: Path):
    before = len(read_audit(audit_path))

    with pytest.raises(AuthorizationError):
        service.reconcile(CANDIDATE, "cand-1")

    assert len(read_audit(audit_path)) == before


def test_freezing_period_days_follows_environment(service: PipelineService, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FREEZING_PERIOD_DAYS", "0.25")

    assert service.freezing_period_days() == 0.25


def test_malformed_evaluator_input_is_a_request_validation_error(service: PipelineService, audit_path: Path):
    service.advance_progress(CANDIDATE, "cand-1", 2, "Completed")
    slot = service.assign_next(ADMIN, "cand-1", EvaluatorRole.INTERVIEWER, "int-1")
    before = len(read_audit(audit_path))

    with pytest.raises(RequestValidationError) as excinfo:
        service.submit_evaluator_feedback(ADMIN, "cand-1", slot.assignment_id, "maybe")
    assert excinfo.value.status_code == 400
    assert excinfo.value.details["errors"][0]["loc"] == ["decision"]

    with pytest.raises(RequestValidationError):
        service.submit_evaluator_feedback(ADMIN, "cand-1", slot.assignment_id, "pass", ratings={"depth": "high"})
    with pytest.raises(RequestValidationError):
        service.reassign(ADMIN, "cand-1", 1, EvaluatorRole.INTERVIEWER, "int-2", schedule={"duration_minutes": 0})
    with pytest.raises(RequestValidationError):
        service.register_interviewer(ADMIN, "int-3", name="Three", email="three@example.com", status="sleeping")

    assert len(read_audit(audit_path)) == before
    assert service.candidate_detail(ADMIN, "cand-1")["candidate"]["assigned_rounds"][0]["assigned_to"] == "int-1"


def test_schedule_may_be_given_as_a_mapping(service: PipelineService):
    service.advance_progress(CANDIDATE, "cand-1", 2, "Completed")

    slot = service.assign_next(
        ADMIN,
        "cand-1",
        EvaluatorRole.INTERVIEWER,
        "int-1",
        schedule={"date": "2024-06-01", "duration_minutes": 45, "format": "online"},
    )

    assert slot.schedule.duration_minutes == 45
    assert slot.schedule.format.value == "online"
