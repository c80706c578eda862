from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from hrprogression.cli import app

CONFIG = """\
scoring:
  pass_threshold: 60
retry:
  freezing_period_days: 1
catalog:
  domains:
    - domain_id: backend
      name: Backend
      rounds:
        - round_id: be-1
          sequence: 1
          name: Aptitude
"""


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def base_args(tmp_path: Path) -> list[str]:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(CONFIG, encoding="utf-8")
    return [
        "--store",
        str(tmp_path / "store"),
        "--config",
        str(config_path),
        "--log-level",
        "ERROR",
        "--audit-log",
        str(tmp_path / "audit.jsonl"),
    ]


def invoke(runner: CliRunner, base_args: list[str], *args: str) -> dict:
    result = runner.invoke(app, [*base_args, *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def write_json(path: Path, payload: object) -> None:
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")


def test_cli_drives_candidate_to_interviewer_feedback(tmp_path: Path, runner: CliRunner, base_args: list[str]):
    candidate = invoke(
        runner, base_args, "register-candidate", "cand-1", "--email", "c1@example.com", "--domain-id", "backend",
        "--domain-name", "Backend",
    )
    assert candidate["status"] == "in-progress"

    invoke(runner, base_args, "register-interviewer", "int-1", "--name", "Int One", "--email", "int1@example.com")

    submission_path = tmp_path / "submission.json"
    write_json(
        submission_path,
        {
            "domain_id": "backend",
            "domain_name": "Backend",
            "round_id": "be-1",
            "round_name": "Aptitude",
            "started_at": "2024-05-01T10:00:00Z",
            "completed_at": "2024-05-01T10:15:00Z",
            "questions": [
                {"question_id": "q1", "question": "2+2", "candidate_answer": "4", "correct_answer": "4", "type": "MCQ"}
            ],
        },
    )
    result = invoke(runner, base_args, "submit-result", "cand-1", "--submission", str(submission_path))
    assert result["passed"] is True

    assert invoke(runner, base_args, "next-round", "cand-1") == {"round": None}
    assert invoke(runner, base_args, "retry-status", "cand-1", "be-1")["state"] == "passed"

    progressed = invoke(runner, base_args, "advance", "cand-1", "--index", "1", "--name", "Completed")
    assert progressed["status"] == "waiting-for-assignment"

    slot = invoke(
        runner, base_args, "assign", "cand-1", "--role", "interviewer", "--evaluator", "int-1", "--date", "2024-06-01",
        "--duration", "60", "--format", "online",
    )
    assert slot["round_number"] == 1
    assert slot["schedule"]["duration_minutes"] == 60

    roster = invoke(runner, base_args, "roster", "int-1")
    assert roster["stats"]["active_interviews"] == 1

    feedback_args = [*base_args, "--actor-id", "int-1", "--actor-role", "interviewer"]
    invoke(runner, feedback_args, "feedback", "cand-1", slot["assignment_id"], "--decision", "pass", "--notes", "good")

    detail = invoke(runner, base_args, "show", "cand-1")
    assert detail["candidate"]["status"] == "waiting-for-admin-assignment"
    assert detail["candidate"]["assigned_rounds"][0]["status"] == "completed"
    assert len(detail["attempts"]) == 1

    audit_lines = (tmp_path / "audit.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(audit_lines[-1])["operation"] == "submit_evaluator_feedback"


def test_cli_reports_errors_as_json(runner: CliRunner, base_args: list[str]):
    result = runner.invoke(app, [*base_args, "show", "ghost"])

    assert result.exit_code == 1
    assert "Candidate not found" in result.output


def test_cli_rejects_forbidden_actor(runner: CliRunner, base_args: list[str]):
    result = runner.invoke(
        app,
        [*base_args, "--actor-id", "cand-1", "--actor-role", "candidate", "reconcile", "cand-1"],
    )

    assert result.exit_code == 1
    assert "Admin or HR role required" in result.output


def test_cli_freezing_period_reads_environment(runner: CliRunner, base_args: list[str], monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FREEZING_PERIOD_DAYS", "2")

    assert invoke(runner, base_args, "freezing-period") == {"freezing_period_days": 2.0}
