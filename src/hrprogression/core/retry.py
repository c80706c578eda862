"""Retry gating for failed rounds and next-round selection."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Sequence

import pendulum
import structlog

from ..schemas import CatalogRound, RoundResult


class RetryState(str, Enum):
    PASSED = "passed"
    FROZEN = "frozen"
    RETRY_ALLOWED = "retry-allowed"
    NO_RESULT = "no-result"


@dataclass(slots=True)
class RetryStatus:
    """Outcome of a retry check for one (candidate, round) pair."""

    state: RetryState
    allowed: bool
    next_available_at: datetime | None = None
    last_result: RoundResult | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "allowed": self.allowed,
            "next_available_at": self.next_available_at.isoformat() if self.next_available_at else None,
            "last_result": self.last_result.model_dump(mode="json") if self.last_result else None,
        }


class FreezingPeriod:
    """Cooldown length, re-read from the environment on every evaluation."""

    # keeps completed_at + duration inside the datetime range
    MAX_DAYS = 36500.0

    def __init__(
        self,
        default_days: float = 1.0,
        *,
        env_var: str = "FREEZING_PERIOD_DAYS",
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._default_days = default_days
        self._env_var = env_var
        self._environ = environ
        self._logger = structlog.get_logger(__name__)

    def days(self) -> float:
        env = os.environ if self._environ is None else self._environ
        raw = env.get(self._env_var)
        if raw is None or not raw.strip():
            return self._default_days
        try:
            value = float(raw)
        except ValueError:
            value = math.nan
        if not math.isfinite(value) or not 0 <= value <= self.MAX_DAYS:
            self._logger.warning("retry.invalid_freezing_period", raw=raw, fallback=self._default_days)
            return self._default_days
        return value

    def duration(self) -> timedelta:
        return pendulum.duration(seconds=self.days() * 86400)


class RetryGate:
    """Decides whether a round may be attempted again.

    Pure with respect to stored state: the verdict depends only on the
    attempt history and the current time.
    """

    def __init__(
        self,
        freezing_period: FreezingPeriod | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._freezing_period = freezing_period or FreezingPeriod()
        self._clock = clock or (lambda: pendulum.now("UTC"))

    @property
    def freezing_period(self) -> FreezingPeriod:
        return self._freezing_period

    def evaluate(self, attempts: Iterable[RoundResult], *, now: datetime | None = None) -> RetryStatus:
        history = sorted(attempts, key=lambda item: item.completed_at, reverse=True)
        if not history:
            return RetryStatus(state=RetryState.NO_RESULT, allowed=True)

        # a pass is authoritative no matter how many failures followed it
        for attempt in history:
            if attempt.passed:
                return RetryStatus(state=RetryState.PASSED, allowed=False, last_result=attempt)

        last_failed = history[0]
        current = now or self._clock()
        available_at = last_failed.completed_at + self._freezing_period.duration()
        if current < available_at:
            return RetryStatus(
                state=RetryState.FROZEN,
                allowed=False,
                next_available_at=available_at,
                last_result=last_failed,
            )
        return RetryStatus(state=RetryState.RETRY_ALLOWED, allowed=True, last_result=last_failed)

    @staticmethod
    def next_eligible_round(
        rounds: Sequence[CatalogRound],
        cleared_round_ids: Iterable[str],
    ) -> CatalogRound | None:
        cleared = set(cleared_round_ids)
        for catalog_round in sorted(rounds, key=lambda item: item.sequence):
            if catalog_round.round_id not in cleared:
                return catalog_round
        return None
