"""Typer CLI entrypoint for the progression engine."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional

import typer
import yaml
from dependency_injector import providers
from pydantic import BaseModel, ValidationError

from .config import apply_env_overrides, read_yaml
from .container import create_container
from .core import RetryStatus
from .errors import PipelineError
from .logging import configure_logging
from .schemas import AvailabilityStatus, EvaluatorRole, FeedbackDecision, InterviewFormat, InterviewSchedule
from .schemas.config import load_config
from .service import Actor, ActorRole, AuditLogger, PipelineService

app = typer.Typer(help="Candidate progression and evaluator assignment CLI.")


@dataclass
class CliState:
    service: PipelineService
    actor: Actor


@app.callback()
def main_options(
    ctx: typer.Context,
    store: Optional[Path] = typer.Option(None, file_okay=False, help="JSON document store directory."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    actor_id: str = typer.Option("admin", help="Acting user id."),
    actor_role: ActorRole = typer.Option(ActorRole.ADMIN, help="Acting user role."),
    log_level: str = typer.Option("INFO", help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
) -> None:
    """Build the service once for the invoked command."""
    configure_logging(log_level)

    raw: dict[str, Any] = {}
    if config:
        try:
            raw = read_yaml(config)
        except (ValueError, yaml.YAMLError) as exc:
            raise typer.BadParameter(str(exc), param_name="config") from exc
    raw = apply_env_overrides(raw)
    if store:
        raw.setdefault("store", {})
        raw["store"]["path"] = str(store)
    try:
        settings = load_config(raw).to_settings()
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_name="config") from exc

    container = create_container(settings=settings)
    if audit_log:
        container.audit_logger.override(providers.Object(AuditLogger(audit_log)))
    ctx.obj = CliState(service=container.service(), actor=Actor(actor_id=actor_id, role=actor_role))


@app.command("register-candidate")
def register_candidate(
    ctx: typer.Context,
    candidate_id: str = typer.Argument(..., help="Candidate id."),
    email: str = typer.Option(..., help="Candidate email."),
    domain_id: str = typer.Option(..., help="Selected work domain id."),
    domain_name: Optional[str] = typer.Option(None, help="Work domain display name (defaults to the id)."),
    name: Optional[str] = typer.Option(None, help="Candidate name."),
) -> None:
    """Create a candidate or switch an existing one to another domain."""
    _run(
        ctx,
        lambda state: state.service.register_candidate(
            state.actor,
            candidate_id,
            email=email,
            domain_id=domain_id,
            domain_name=domain_name or domain_id,
            name=name,
        ),
    )


@app.command("register-interviewer")
def register_interviewer(
    ctx: typer.Context,
    interviewer_id: str = typer.Argument(..., help="Interviewer id."),
    name: str = typer.Option(..., help="Interviewer name."),
    email: str = typer.Option(..., help="Interviewer email."),
    title: Optional[str] = typer.Option(None, help="Job title."),
    status: AvailabilityStatus = typer.Option(AvailabilityStatus.ACTIVE, help="Availability."),
    skill: List[str] = typer.Option([], help="Skill tag; repeatable."),
) -> None:
    """Create or update an interviewer profile."""
    _run(
        ctx,
        lambda state: state.service.register_interviewer(
            state.actor,
            interviewer_id,
            name=name,
            email=email,
            title=title,
            status=status,
            skills=list(skill),
        ),
    )


@app.command("submit-result")
def submit_result(
    ctx: typer.Context,
    candidate_id: str = typer.Argument(..., help="Candidate id."),
    submission: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Round submission JSON path."),
) -> None:
    """Score a finished round attempt and store the result."""
    try:
        payload = json.loads(submission.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid submission JSON: {exc}", param_name="submission") from exc
    _run(ctx, lambda state: state.service.submit_round_result(state.actor, candidate_id, payload))


@app.command("retry-status")
def retry_status(
    ctx: typer.Context,
    candidate_id: str = typer.Argument(..., help="Candidate id."),
    round_id: str = typer.Argument(..., help="Catalog round id."),
) -> None:
    """Show whether a round may be attempted again."""
    _run(ctx, lambda state: state.service.get_retry_status(state.actor, candidate_id, round_id))


@app.command("next-round")
def next_round(ctx: typer.Context, candidate_id: str = typer.Argument(..., help="Candidate id.")) -> None:
    """Show the first round of the active domain not yet cleared."""
    _run(ctx, lambda state: {"round": state.service.get_next_eligible_round(state.actor, candidate_id)})


@app.command()
def advance(
    ctx: typer.Context,
    candidate_id: str = typer.Argument(..., help="Candidate id."),
    index: int = typer.Option(..., help="New round index within the active domain."),
    name: str = typer.Option(..., help="New round name."),
) -> None:
    """Move the active domain's progress pointer."""
    _run(ctx, lambda state: state.service.advance_progress(state.actor, candidate_id, index, name))


@app.command("switch-domain")
def switch_domain(
    ctx: typer.Context,
    candidate_id: str = typer.Argument(..., help="Candidate id."),
    domain_id: str = typer.Option(..., help="Target domain id."),
    domain_name: Optional[str] = typer.Option(None, help="Target domain display name (defaults to the id)."),
) -> None:
    """Abandon the current domain and continue in another."""
    _run(
        ctx,
        lambda state: state.service.switch_domain(state.actor, candidate_id, domain_id, domain_name or domain_id),
    )


@app.command()
def assign(
    ctx: typer.Context,
    candidate_id: str = typer.Argument(..., help="Candidate id."),
    role: EvaluatorRole = typer.Option(..., help="Evaluator role."),
    evaluator: str = typer.Option(..., help="Evaluator id."),
    direct: bool = typer.Option(False, "--direct", help="Bypass the round sequence (administrative override)."),
    date: Optional[str] = typer.Option(None, help="Interview date."),
    time: Optional[str] = typer.Option(None, help="Interview time."),
    duration: Optional[int] = typer.Option(None, help="Interview duration in minutes."),
    interview_format: Optional[InterviewFormat] = typer.Option(None, "--format", help="Interview format."),
    notes: str = typer.Option("", help="Notes stored on the interviewer roster."),
) -> None:
    """Assign the next evaluator round, or round 1 directly with --direct."""
    schedule = _schedule(date, time, duration, interview_format)

    def action(state: CliState) -> Any:
        operation = state.service.assign_direct if direct else state.service.assign_next
        return operation(state.actor, candidate_id, role, evaluator, schedule=schedule, notes=notes)

    _run(ctx, action)


@app.command()
def reassign(
    ctx: typer.Context,
    candidate_id: str = typer.Argument(..., help="Candidate id."),
    round_number: int = typer.Option(..., "--round", help="Assignment round number."),
    role: EvaluatorRole = typer.Option(..., help="Evaluator role of the round."),
    evaluator: str = typer.Option(..., help="New evaluator id."),
    date: Optional[str] = typer.Option(None, help="Interview date."),
    time: Optional[str] = typer.Option(None, help="Interview time."),
    duration: Optional[int] = typer.Option(None, help="Interview duration in minutes."),
    interview_format: Optional[InterviewFormat] = typer.Option(None, "--format", help="Interview format."),
) -> None:
    """Hand an existing round to another evaluator."""
    schedule = _schedule(date, time, duration, interview_format)
    _run(
        ctx,
        lambda state: state.service.reassign(
            state.actor, candidate_id, round_number, role, evaluator, schedule=schedule
        ),
    )


@app.command()
def unassign(
    ctx: typer.Context,
    candidate_id: str = typer.Argument(..., help="Candidate id."),
    round_number: int = typer.Option(..., "--round", help="Assignment round number."),
    role: EvaluatorRole = typer.Option(..., help="Evaluator role of the round."),
) -> None:
    """Remove one assignment round."""
    _run(ctx, lambda state: state.service.unassign(state.actor, candidate_id, round_number, role))


@app.command()
def feedback(
    ctx: typer.Context,
    candidate_id: str = typer.Argument(..., help="Candidate id."),
    assignment_id: str = typer.Argument(..., help="Assignment id."),
    decision: FeedbackDecision = typer.Option(..., help="Evaluator decision."),
    notes: str = typer.Option("", help="Feedback notes."),
) -> None:
    """Submit an evaluator's decision for an assignment."""
    _run(
        ctx,
        lambda state: state.service.submit_evaluator_feedback(
            state.actor, candidate_id, assignment_id, decision, notes
        ),
    )


@app.command()
def release(
    ctx: typer.Context,
    candidate_id: str = typer.Argument(..., help="Candidate id."),
    interviewer_id: str = typer.Argument(..., help="Interviewer id."),
) -> None:
    """Detach an interviewer from a candidate."""
    _run(ctx, lambda state: state.service.release_interviewer(state.actor, candidate_id, interviewer_id))


@app.command()
def reconcile(ctx: typer.Context, candidate_id: str = typer.Argument(..., help="Candidate id.")) -> None:
    """Repair interviewer rosters from the candidate's open assignment."""
    _run(ctx, lambda state: {"touched": state.service.reconcile(state.actor, candidate_id)})


@app.command()
def show(ctx: typer.Context, candidate_id: str = typer.Argument(..., help="Candidate id.")) -> None:
    """Print a candidate with its round attempts."""
    _run(ctx, lambda state: state.service.candidate_detail(state.actor, candidate_id))


@app.command()
def roster(ctx: typer.Context, interviewer_id: str = typer.Argument(..., help="Interviewer id.")) -> None:
    """Print an interviewer's assigned candidates and workload."""
    _run(ctx, lambda state: state.service.interviewer_roster(state.actor, interviewer_id))


@app.command()
def result(
    ctx: typer.Context,
    candidate_id: str = typer.Argument(..., help="Candidate id."),
    result_id: str = typer.Argument(..., help="Round result id."),
) -> None:
    """Print one stored round result."""
    _run(ctx, lambda state: state.service.get_result(state.actor, candidate_id, result_id))


@app.command("freezing-period")
def freezing_period(ctx: typer.Context) -> None:
    """Print the retry freezing period currently in effect."""
    _run(ctx, lambda state: {"freezing_period_days": state.service.freezing_period_days()})


def _schedule(
    date: str | None,
    time: str | None,
    duration: int | None,
    interview_format: InterviewFormat | None,
) -> InterviewSchedule | None:
    if not any(value is not None for value in (date, time, duration, interview_format)):
        return None
    try:
        return InterviewSchedule(date=date, time=time, duration_minutes=duration, format=interview_format)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_name="duration") from exc


def _run(ctx: typer.Context, action: Callable[[CliState], Any]) -> None:
    state: CliState = ctx.obj
    try:
        outcome = action(state)
    except PipelineError as exc:
        typer.echo(json.dumps(exc.to_dict(), ensure_ascii=False, default=str), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(_to_jsonable(outcome), ensure_ascii=False, indent=2, default=str))


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {key: _to_jsonable(item) if isinstance(item, BaseModel) else item for key, item in value.items()}
    if isinstance(value, RetryStatus):
        return value.to_dict()
    if value is None:
        return {"ok": True}
    return value


def main() -> None:
    app()


if __name__ == "__main__":
    main()
