"""Attempt lifecycle shared between the API server and the deadline sweeper."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
import logging
from threading import Lock
from typing import Iterator
from uuid import uuid4

from exam_app.constants.exam_constants import (
    STUDENT_SUBMIT_REASON,
    TAB_SWITCH_LIMIT_REASON,
    TIME_UP_REASON,
)
from exam_app.core.errors import (
    AttemptLimitReached,
    DuplicateActiveAttempt,
    ExamUnavailable,
    ExpiredWrite,
    InvalidAnswer,
    InvalidTransition,
    NotFound,
    ScoringError,
)
from exam_app.core.models import Attempt, AttemptStatus, Question, ScoreResult, ViolationType
from exam_app.core.services.attempt_clock import AttemptClock
from exam_app.core.services.attempt_repository import AttemptRepository, InMemoryAttemptRepository
from exam_app.core.services.exam_catalog import ExamCatalog
from exam_app.core.services.question_bank import QuestionBank
from exam_app.core.services.question_preparer import QuestionSetPreparer, seed_for_attempt
from exam_app.core.services.scoring_engine import score_attempt
from exam_app.core.services.violation_tracker import (
    EscalationPolicy,
    SubmitOnBreachPolicy,
    ViolationOutcome,
    ViolationTracker,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ViolationReport:
    outcome: ViolationOutcome
    auto_submitted: bool = False
    result: ScoreResult | None = None


@dataclass(slots=True)
class _AttemptLock:
    """Lock plus the number of threads holding or waiting on it."""

    lock: Lock = field(default_factory=Lock)
    users: int = 0


class ExamManager:
    """The only component allowed to change an attempt's status.

    Every operation on an attempt runs under that attempt's lock and works on
    a copy loaded from the repository; nothing is saved when an operation is
    rejected. Starts are serialized by a manager-wide lock so that a student
    never ends up with two attempts in progress for the same exam.
    """

    def __init__(
        self,
        exam_catalog: ExamCatalog,
        question_bank: QuestionBank,
        repository: AttemptRepository | None = None,
        clock: AttemptClock | None = None,
        preparer: QuestionSetPreparer | None = None,
        tracker: ViolationTracker | None = None,
        escalation_policy: EscalationPolicy | None = None,
    ) -> None:
        self._start_lock = Lock()
        self._registry_lock = Lock()
        self._attempt_locks: dict[str, _AttemptLock] = {}

        self._catalog = exam_catalog
        self._bank = question_bank
        self._repository = repository if repository is not None else InMemoryAttemptRepository()
        self._clock = clock if clock is not None else AttemptClock()
        self._preparer = preparer if preparer is not None else QuestionSetPreparer()
        self._tracker = tracker if tracker is not None else ViolationTracker()
        self._policy = escalation_policy if escalation_policy is not None else SubmitOnBreachPolicy()

    @property
    def clock(self) -> AttemptClock:
        return self._clock

    @property
    def catalog(self) -> ExamCatalog:
        return self._catalog

    # --- Lifecycle transitions ---

    def start_attempt(self, student_id: str, exam_config_id: str) -> Attempt:
        exam_config = self._catalog.get_exam_config(exam_config_id)
        now = self._clock.now()
        if exam_config.schedule is not None and not exam_config.schedule.contains(now):
            raise ExamUnavailable(f"Exam {exam_config_id} is not open at {now.isoformat()}.")

        with self._start_lock:
            active = self._repository.find_active_attempt(student_id, exam_config_id)
            if active is not None:
                with self._attempt_lock(active.id):
                    active = self._load(active.id)
                    self._apply_deadline(active, self._clock.now())
                if active.status is AttemptStatus.IN_PROGRESS:
                    raise DuplicateActiveAttempt(active.id)

            if exam_config.max_attempts is not None:
                used = len(self._repository.list_attempts(student_id=student_id, exam_config_id=exam_config_id))
                if used >= exam_config.max_attempts:
                    raise AttemptLimitReached(
                        f"All {exam_config.max_attempts} attempt(s) for exam {exam_config_id} have been used."
                    )

            attempt_id = uuid4().hex
            questions = self._bank.get_questions_by_ids(exam_config.question_pool_ids)
            snapshot = self._preparer.prepare(exam_config, questions, seed_for_attempt(attempt_id))
            attempt = Attempt(
                id=attempt_id,
                exam_config=exam_config,
                student_id=student_id,
                snapshot=snapshot,
                started_at=now,
                deadline_at=self._clock.deadline_for(now, exam_config.duration_seconds),
                status=AttemptStatus.IN_PROGRESS,
            )
            self._save(attempt)

        logger.info(
            "Started attempt %s for student %s on exam %s (v%s)",
            attempt.id,
            student_id,
            exam_config_id,
            exam_config.version,
        )
        return attempt

    def answer(self, attempt_id: str, question_id: str, value: str) -> Attempt:
        """Record the final answer for a question; the last write wins."""
        with self._attempt_lock(attempt_id):
            attempt = self._load(attempt_id)
            now = self._clock.now()
            if attempt.status is not AttemptStatus.IN_PROGRESS:
                raise InvalidTransition(
                    f"Attempt {attempt_id} is {attempt.status.value}; answers are closed.",
                    status=attempt.status.value,
                )
            if attempt.needs_reconciliation:
                raise InvalidTransition(
                    f"Attempt {attempt_id} was submitted and is held for reconciliation; answers are closed.",
                    status=attempt.status.value,
                )
            if self._clock.is_expired(attempt, now):
                self._apply_deadline(attempt, now)
                raise ExpiredWrite(f"Attempt {attempt_id} passed its deadline at {attempt.deadline_at.isoformat()}.")
            if not attempt.snapshot.contains(question_id):
                raise NotFound(f"Question {question_id} is not part of attempt {attempt_id}")

            for question in self._bank.get_questions_by_ids([question_id]):
                if question.is_choice and value not in question.options:
                    raise InvalidAnswer(f"'{value}' is not an option of question {question_id}.")

            attempt.answers[question_id] = value
            self._save(attempt)
            return attempt

    def report_violation(
        self,
        attempt_id: str,
        violation_type: ViolationType,
        occurred_at: datetime | None = None,
    ) -> ViolationReport:
        with self._attempt_lock(attempt_id):
            attempt = self._load(attempt_id)
            now = self._clock.now()
            self._apply_deadline(attempt, now)

            outcome = self._tracker.record(attempt, violation_type, occurred_at or now, now)
            if not outcome.accepted:
                return ViolationReport(outcome=outcome)

            logger.info(
                "Attempt %s reported %s (tab switches: %s)",
                attempt_id,
                violation_type.value,
                outcome.tab_switch_count,
            )
            if self._policy.should_auto_submit(attempt, outcome):
                result = self._finalize(attempt, AttemptStatus.AUTO_SUBMITTED, TAB_SWITCH_LIMIT_REASON, now)
                return ViolationReport(outcome=outcome, auto_submitted=True, result=result)

            self._save(attempt)
            return ViolationReport(outcome=outcome)

    def submit(self, attempt_id: str) -> ScoreResult:
        return self._close(attempt_id, AttemptStatus.SUBMITTED, STUDENT_SUBMIT_REASON)

    def auto_submit(self, attempt_id: str, reason: str) -> ScoreResult:
        return self._close(attempt_id, AttemptStatus.AUTO_SUBMITTED, reason)

    def expire(self, attempt_id: str) -> ScoreResult:
        with self._attempt_lock(attempt_id):
            attempt = self._load(attempt_id)
            if attempt.is_terminal:
                return self._stored_result(attempt)
            now = self._clock.now()
            if not self._clock.is_expired(attempt, now):
                raise InvalidTransition(
                    f"Attempt {attempt_id} has not reached its deadline.",
                    status=attempt.status.value,
                )
            return self._finalize(attempt, AttemptStatus.EXPIRED, TIME_UP_REASON, now)

    def sweep_expired(self, now: datetime | None = None) -> list[str]:
        """Close or flag every in-progress attempt whose deadline has passed."""
        moment = now if now is not None else self._clock.now()
        touched: list[str] = []
        for candidate in self._repository.list_in_progress():
            if candidate.needs_reconciliation or not self._clock.is_expired(candidate, moment):
                continue
            with self._attempt_lock(candidate.id):
                attempt = self._load(candidate.id)
                try:
                    if self._apply_deadline(attempt, moment):
                        touched.append(attempt.id)
                except ScoringError:
                    # Already flagged on the attempt; keep sweeping the others.
                    continue
        if touched:
            logger.info("Deadline sweep handled %d attempt(s)", len(touched))
        return touched

    # --- Queries ---

    def get_attempt(self, attempt_id: str) -> Attempt:
        with self._attempt_lock(attempt_id):
            attempt = self._load(attempt_id)
            self._apply_deadline(attempt, self._clock.now())
            return attempt

    def list_attempts(
        self,
        student_id: str | None = None,
        exam_config_id: str | None = None,
    ) -> list[Attempt]:
        return self._repository.list_attempts(student_id=student_id, exam_config_id=exam_config_id)

    def get_attempt_questions(self, attempt: Attempt) -> list[Question]:
        """Questions of an attempt in the order its snapshot fixed."""
        by_id = {q.id: q for q in self._bank.get_questions_by_ids(attempt.snapshot.ordered_question_ids)}
        return [by_id[qid] for qid in attempt.snapshot.ordered_question_ids if qid in by_id]

    def remaining_seconds(self, attempt: Attempt) -> int:
        return self._clock.remaining(attempt)

    # --- Internals ---

    @contextmanager
    def _attempt_lock(self, attempt_id: str) -> Iterator[None]:
        # Entries live only while some thread holds or waits on them.
        with self._registry_lock:
            entry = self._attempt_locks.get(attempt_id)
            if entry is None:
                entry = self._attempt_locks[attempt_id] = _AttemptLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._registry_lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._attempt_locks[attempt_id]

    def _load(self, attempt_id: str) -> Attempt:
        attempt = self._repository.load_attempt(attempt_id)
        if attempt is None:
            raise NotFound(f"Attempt {attempt_id} not found")
        return attempt

    def _save(self, attempt: Attempt) -> None:
        attempt.version += 1
        self._repository.save_attempt(attempt)

    def _close(self, attempt_id: str, status: AttemptStatus, reason: str) -> ScoreResult:
        with self._attempt_lock(attempt_id):
            attempt = self._load(attempt_id)
            now = self._clock.now()
            self._apply_deadline(attempt, now)
            if attempt.is_terminal:
                return self._stored_result(attempt)
            if attempt.status is not AttemptStatus.IN_PROGRESS:
                raise InvalidTransition(
                    f"Attempt {attempt_id} is {attempt.status.value} and cannot be submitted.",
                    status=attempt.status.value,
                )
            if (
                attempt.needs_reconciliation
                and attempt.exam_config.security.auto_submit_on_time_up
                and self._clock.is_expired(attempt, now)
            ):
                # A retry after the deadline closes the attempt the way the sweep would have.
                status, reason = AttemptStatus.EXPIRED, TIME_UP_REASON
            return self._finalize(attempt, status, reason, now)

    def _apply_deadline(self, attempt: Attempt, now: datetime) -> bool:
        """Close or flag an in-progress attempt past its deadline.

        Returns True when the attempt was changed.
        """
        if attempt.status is not AttemptStatus.IN_PROGRESS or attempt.needs_reconciliation:
            return False
        if not self._clock.is_expired(attempt, now):
            return False
        if attempt.exam_config.security.auto_submit_on_time_up:
            self._finalize(attempt, AttemptStatus.EXPIRED, TIME_UP_REASON, now)
            return True
        if attempt.overdue:
            return False
        attempt.overdue = True
        self._save(attempt)
        logger.info("Attempt %s is overdue; waiting for an explicit submit", attempt.id)
        return True

    def _finalize(self, attempt: Attempt, status: AttemptStatus, reason: str, now: datetime) -> ScoreResult:
        questions = {q.id: q for q in self._bank.get_questions_by_ids(attempt.snapshot.ordered_question_ids)}
        try:
            result = score_attempt(attempt.snapshot, attempt.answers, questions, attempt.exam_config)
        except ScoringError as exc:
            attempt.needs_reconciliation = True
            attempt.reconciliation_error = str(exc)
            self._save(attempt)
            logger.error("Scoring failed for attempt %s; left open for reconciliation: %s", attempt.id, exc)
            raise

        attempt.status = status
        attempt.result = result
        attempt.submitted_at = now
        attempt.completion_reason = reason
        attempt.needs_reconciliation = False
        attempt.reconciliation_error = None
        self._save(attempt)
        logger.info(
            "Attempt %s %s (%s): %s/%s",
            attempt.id,
            status.value,
            reason,
            result.score,
            result.total_points,
        )
        return result

    @staticmethod
    def _stored_result(attempt: Attempt) -> ScoreResult:
        if attempt.result is None:
            raise InvalidTransition(f"Attempt {attempt.id} is {attempt.status.value} without a result.")
        return attempt.result
