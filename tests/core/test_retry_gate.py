from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from hrprogression.core import FreezingPeriod, RetryGate, RetryState
from hrprogression.schemas import CatalogRound, RoundResult

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def build_result(hours_ago: float, passed: bool, **kwargs: Any) -> RoundResult:
    completed = NOW - timedelta(hours=hours_ago)
    defaults: dict[str, Any] = {
        "candidate_id": "cand-1",
        "domain_id": "backend",
        "domain_name": "Backend",
        "round_id": "r1",
        "round_name": "Screening",
        "started_at": completed - timedelta(minutes=30),
        "completed_at": completed,
        "total_questions": 5,
        "correct_answers": 4 if passed else 1,
        "percentage": 80.0 if passed else 20.0,
        "passed": passed,
    }
    defaults.update(kwargs)
    return RoundResult(**defaults)


def build_gate(days: str | None = None) -> RetryGate:
    environ = {} if days is None else {"FREEZING_PERIOD_DAYS": days}
    return RetryGate(FreezingPeriod(1.0, environ=environ))


def test_no_attempts_allows_first_attempt():
    status = build_gate().evaluate([], now=NOW)

    assert status.state == RetryState.NO_RESULT
    assert status.allowed is True
    assert status.last_result is None


def test_failure_23_hours_ago_is_frozen():
    failed = build_result(23, passed=False)

    status = build_gate().evaluate([failed], now=NOW)

    assert status.state == RetryState.FROZEN
    assert status.allowed is False
    assert status.next_available_at == failed.completed_at + timedelta(days=1)
    assert status.last_result == failed


def test_failure_25_hours_ago_allows_retry():
    failed = build_result(25, passed=False)

    status = build_gate().evaluate([failed], now=NOW)

    assert status.state == RetryState.RETRY_ALLOWED
    assert status.allowed is True
    assert status.next_available_at is None
    assert status.last_result == failed


def test_pass_wins_over_later_failures():
    passed = build_result(48, passed=True)
    later_failure = build_result(1, passed=False)

    status = build_gate().evaluate([later_failure, passed], now=NOW)

    assert status.state == RetryState.PASSED
    assert status.allowed is False
    assert status.last_result == passed


def test_latest_failure_decides_the_window():
    old = build_result(72, passed=False)
    recent = build_result(2, passed=False)

    status = build_gate().evaluate([recent, old], now=NOW)

    assert status.state == RetryState.FROZEN
    assert status.last_result == recent


def test_freezing_period_comes_from_environment_at_evaluation_time():
    environ: dict[str, str] = {}
    gate = RetryGate(FreezingPeriod(1.0, environ=environ))
    failed = build_result(30, passed=False)

    assert gate.evaluate([failed], now=NOW).state == RetryState.RETRY_ALLOWED

    environ["FREEZING_PERIOD_DAYS"] = "2"
    assert gate.evaluate([failed], now=NOW).state == RetryState.FROZEN

    environ["FREEZING_PERIOD_DAYS"] = "0.5"
    assert gate.evaluate([failed], now=NOW).state == RetryState.RETRY_ALLOWED


@pytest.mark.parametrize("raw", ["abc", "-1", "nan", "inf", "  ", "5000000"])
def test_invalid_freezing_period_falls_back_to_default(raw: str):
    period = FreezingPeriod(1.5, environ={"FREEZING_PERIOD_DAYS": raw})

    assert period.days() == 1.5


def test_oversized_freezing_period_still_evaluates():
    failed = build_result(23, passed=False)

    status = build_gate("5000000").evaluate([failed], now=NOW)

    assert status.state == RetryState.FROZEN
    assert status.next_available_at == failed.completed_at + timedelta(days=1)


def test_freezing_period_reads_process_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FREEZING_PERIOD_DAYS", "3")

    assert FreezingPeriod().days() == 3.0
    assert FreezingPeriod().duration().total_seconds() == 3 * 86400


def test_clock_is_used_when_now_is_omitted():
    gate = RetryGate(FreezingPeriod(1.0, environ={}), clock=lambda: NOW)

    status = gate.evaluate([build_result(23, passed=False)])

    assert status.state == RetryState.FROZEN


def test_retry_status_serializes_to_dict():
    failed = build_result(23, passed=False)

    payload = build_gate().evaluate([failed], now=NOW).to_dict()

    assert payload["state"] == "frozen"
    assert payload["allowed"] is False
    assert payload["next_available_at"].startswith("2024-05-10T13:00:00")
    assert payload["last_result"]["result_id"] == failed.result_id


def test_next_eligible_round_orders_by_sequence():
    rounds = [
        CatalogRound(round_id="c", sequence=3),
        CatalogRound(round_id="a", sequence=1),
        CatalogRound(round_id="b", sequence=2),
    ]

    assert RetryGate.next_eligible_round(rounds, []).round_id == "a"
    assert RetryGate.next_eligible_round(rounds, ["a"]).round_id == "b"
    assert RetryGate.next_eligible_round(rounds, ["a", "b"]).round_id == "c"
    assert RetryGate.next_eligible_round(rounds, ["a", "b", "c"]) is None


def test_next_eligible_round_keeps_declared_order_for_equal_sequence():
    rounds = [CatalogRound(round_id="x", sequence=1), CatalogRound(round_id="y", sequence=1)]

    assert RetryGate.next_eligible_round(rounds, []).round_id == "x"
    assert RetryGate.next_eligible_round(rounds, ["x"]).round_id == "y"
