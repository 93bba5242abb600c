"""Service for recording client-reported integrity violations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from exam_app.core.models import Attempt, AttemptStatus, ViolationEvent, ViolationType


@dataclass(frozen=True, slots=True)
class ViolationOutcome:
    accepted: bool
    threshold_breached: bool
    tab_switch_count: int
    tab_switches_remaining: int | None = None


class ViolationTracker:
    """Appends violations to an attempt and reports tab switch threshold breaches.

    The tracker never closes an attempt; callers decide what a breach means.
    """

    def record(
        self,
        attempt: Attempt,
        violation_type: ViolationType,
        occurred_at: datetime,
        received_at: datetime,
    ) -> ViolationOutcome:
        limit = attempt.exam_config.security.tab_switch_limit
        if attempt.status is not AttemptStatus.IN_PROGRESS:
            return ViolationOutcome(
                accepted=False,
                threshold_breached=False,
                tab_switch_count=attempt.tab_switch_count,
                tab_switches_remaining=_remaining(limit, attempt.tab_switch_count),
            )

        attempt.violations.append(
            ViolationEvent(type=violation_type, occurred_at=occurred_at, received_at=received_at)
        )

        breached = False
        if violation_type is ViolationType.TAB_SWITCH:
            attempt.tab_switch_count += 1
            breached = limit is not None and attempt.tab_switch_count >= limit

        return ViolationOutcome(
            accepted=True,
            threshold_breached=breached,
            tab_switch_count=attempt.tab_switch_count,
            tab_switches_remaining=_remaining(limit, attempt.tab_switch_count),
        )


def _remaining(limit: int | None, count: int) -> int | None:
    if limit is None:
        return None
    return max(0, limit - count)


class EscalationPolicy(Protocol):
    """Decides whether a recorded violation should force submission."""

    def should_auto_submit(self, attempt: Attempt, outcome: ViolationOutcome) -> bool:
        ...


class SubmitOnBreachPolicy:
    """Auto-submit as soon as the tab switch threshold is reached."""

    def should_auto_submit(self, attempt: Attempt, outcome: ViolationOutcome) -> bool:
        return outcome.accepted and outcome.threshold_breached


class GraceWarningsPolicy:
    """Tolerate ``extra_warnings`` further tab switches after the threshold."""

    def __init__(self, extra_warnings: int) -> None:
        if extra_warnings < 0:
            raise ValueError("extra_warnings must not be negative.")
        self._extra_warnings = extra_warnings

    def should_auto_submit(self, attempt: Attempt, outcome: ViolationOutcome) -> bool:
        if not (outcome.accepted and outcome.threshold_breached):
            return False
        limit = attempt.exam_config.security.tab_switch_limit
        return limit is not None and outcome.tab_switch_count >= limit + self._extra_warnings
