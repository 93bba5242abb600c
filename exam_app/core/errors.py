"""Exceptions raised by the exam attempt engine."""

from __future__ import annotations


class ExamError(Exception):
    """Base class for recoverable exam-flow errors."""


class NotFound(ExamError):
    """Raised for unknown attempts, exams or questions."""


class InvalidTransition(ExamError):
    """Raised when an attempt is not in the state an operation requires."""

    def __init__(self, message: str, status: str | None = None) -> None:
        super().__init__(message)
        self.status = status


class DuplicateActiveAttempt(ExamError):
    """Raised when a student already has an attempt in progress for an exam."""

    def __init__(self, attempt_id: str) -> None:
        super().__init__(f"Attempt {attempt_id} is already in progress for this exam.")
        self.attempt_id = attempt_id


class ExpiredWrite(ExamError):
    """Raised when an answer arrives after the attempt deadline."""


class InvalidAnswer(ExamError):
    """Raised when a submitted value cannot be an answer to the question."""


class ExamUnavailable(ExamError):
    """Raised when an exam cannot be started at the requested time."""


class AttemptLimitReached(ExamError):
    """Raised when a student has used all permitted attempts."""


class ScoringError(Exception):
    """Raised when an attempt cannot be graded; the attempt is left open."""
