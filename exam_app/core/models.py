"""Domain models for timed exam attempts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class ViolationType(str, Enum):
    TAB_SWITCH = "tab_switch"
    COPY_ATTEMPT = "copy_attempt"
    RIGHT_CLICK = "right_click"
    FULLSCREEN_EXIT = "fullscreen_exit"


class AttemptStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    AUTO_SUBMITTED = "auto_submitted"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset(
    {AttemptStatus.SUBMITTED, AttemptStatus.AUTO_SUBMITTED, AttemptStatus.EXPIRED}
)


class ScoreFloor(str, Enum):
    """Where negative marking is clamped at zero."""

    NONE = "none"
    QUESTION = "question"
    TOTAL = "total"


@dataclass(frozen=True, slots=True)
class SecuritySettings:
    """Per-exam integrity settings.

    The ``prevent_*``/``detect_*``/``full_screen_required`` flags are hints for
    the exam-taking client; the server only enforces the deadline and the tab
    switch threshold.
    """

    shuffle_questions: bool = False
    shuffle_options: bool = False
    max_tab_switches: int | None = None
    auto_submit_on_time_up: bool = True
    show_remaining_time: bool = True
    prevent_copy_paste: bool = False
    prevent_right_click: bool = False
    detect_tab_switch: bool = True
    full_screen_required: bool = False

    @property
    def tab_switch_limit(self) -> int | None:
        if self.max_tab_switches is None or self.max_tab_switches <= 0:
            return None
        return self.max_tab_switches


@dataclass(frozen=True, slots=True)
class ExamSchedule:
    start_time: datetime
    end_time: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start_time <= moment <= self.end_time


@dataclass(frozen=True, slots=True)
class ExamConfig:
    """Immutable exam template. Republishing creates a new version."""

    id: str
    title: str
    duration_seconds: int
    passing_percentage: float
    question_pool_ids: tuple[str, ...]
    security: SecuritySettings = field(default_factory=SecuritySettings)
    description: str = ""
    negative_marking_enabled: bool = True
    score_floor: ScoreFloor = ScoreFloor.NONE
    max_attempts: int | None = None
    schedule: ExamSchedule | None = None
    version: int = 1


@dataclass(frozen=True, slots=True)
class Question:
    """Question definition including its answer key."""

    id: str
    prompt: str
    type: QuestionType
    options: tuple[str, ...]
    correct_answer: str
    points: float = 1.0
    negative_marks: float = 0.0
    explanation: str | None = None

    @property
    def is_choice(self) -> bool:
        return self.type is not QuestionType.SHORT_ANSWER


@dataclass(frozen=True, slots=True)
class AttemptSnapshot:
    """Frozen question and option ordering shown to one attempt."""

    ordered_question_ids: tuple[str, ...]
    option_orders: Mapping[str, tuple[int, ...]]
    seed: int

    def contains(self, question_id: str) -> bool:
        return question_id in self.option_orders


@dataclass(frozen=True, slots=True)
class ViolationEvent:
    type: ViolationType
    occurred_at: datetime
    received_at: datetime


@dataclass(frozen=True, slots=True)
class QuestionOutcome:
    question_id: str
    submitted_answer: str | None
    correct: bool
    points_awarded: float
    points_possible: float


@dataclass(frozen=True, slots=True)
class ScoreResult:
    score: float
    total_points: float
    percentage: float
    passed: bool
    per_question: tuple[QuestionOutcome, ...]


@dataclass(slots=True)
class Attempt:
    """Mutable session record for one student's timed attempt."""

    id: str
    exam_config: ExamConfig
    student_id: str
    snapshot: AttemptSnapshot
    started_at: datetime
    deadline_at: datetime
    answers: dict[str, str] = field(default_factory=dict)
    violations: list[ViolationEvent] = field(default_factory=list)
    tab_switch_count: int = 0
    status: AttemptStatus = AttemptStatus.NOT_STARTED
    result: ScoreResult | None = None
    submitted_at: datetime | None = None
    completion_reason: str | None = None
    overdue: bool = False
    needs_reconciliation: bool = False
    reconciliation_error: str | None = None
    version: int = 0

    @property
    def exam_config_id(self) -> str:
        return self.exam_config.id

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def time_spent_seconds(self) -> int | None:
        if self.submitted_at is None:
            return None
        finished = min(self.submitted_at, self.deadline_at)
        return max(0, int((finished - self.started_at).total_seconds()))
