"""Authoritative server-side timing for exam attempts."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import math
from typing import Callable

from exam_app.core.models import Attempt


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AttemptClock:
    """Pure deadline queries; the clock never mutates an attempt."""

    def __init__(self, time_source: Callable[[], datetime] = utc_now) -> None:
        self._time_source = time_source

    def now(self) -> datetime:
        return self._time_source()

    @staticmethod
    def deadline_for(started_at: datetime, duration_seconds: int) -> datetime:
        return started_at + timedelta(seconds=duration_seconds)

    def remaining(self, attempt: Attempt, now: datetime | None = None) -> int:
        """Whole seconds left before the deadline, never negative."""
        moment = now if now is not None else self.now()
        seconds = (attempt.deadline_at - moment).total_seconds()
        return max(0, math.ceil(seconds))

    def is_expired(self, attempt: Attempt, now: datetime | None = None) -> bool:
        moment = now if now is not None else self.now()
        return moment >= attempt.deadline_at


def format_remaining(seconds: int) -> str:
    """Format a countdown as ``M:SS`` or ``H:MM:SS``."""
    if seconds <= 0:
        return "0:00"
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
