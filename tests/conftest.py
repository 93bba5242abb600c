import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from exam_app.core.exam_manager import ExamManager
from exam_app.core.models import ExamConfig, Question, QuestionType, SecuritySettings
from exam_app.core.services.attempt_clock import AttemptClock
from exam_app.core.services.exam_catalog import ExamCatalog
from exam_app.core.services.question_bank import InMemoryQuestionBank

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeTime:
    """Controllable time source for the attempt clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def fake_time():
    return FakeTime()


@pytest.fixture
def questions():
    """Two-question exam used throughout the scoring scenarios."""
    return [
        Question(
            id="q1",
            prompt="Which letter comes second?",
            type=QuestionType.MULTIPLE_CHOICE,
            options=("A", "B", "C"),
            correct_answer="B",
            points=2,
            explanation="A, B, C.",
        ),
        Question(
            id="q2",
            prompt="The sky is blue.",
            type=QuestionType.TRUE_FALSE,
            options=("True", "False"),
            correct_answer="True",
            points=1,
        ),
    ]


@pytest.fixture
def question_bank(questions):
    return InMemoryQuestionBank(questions)


@pytest.fixture
def make_exam():
    def _make(**overrides) -> ExamConfig:
        values = {
            "id": "exam-1",
            "title": "Scenario exam",
            "duration_seconds": 60,
            "passing_percentage": 50,
            "question_pool_ids": ("q1", "q2"),
            "security": SecuritySettings(),
        }
        values.update(overrides)
        return ExamConfig(**values)

    return _make


@pytest.fixture
def build_manager(question_bank, fake_time, make_exam):
    def _build(exam_config: ExamConfig | None = None, bank=None, **kwargs) -> ExamManager:
        catalog = ExamCatalog()
        catalog.publish(exam_config or make_exam())
        return ExamManager(
            exam_catalog=catalog,
            question_bank=bank or question_bank,
            clock=AttemptClock(fake_time),
            **kwargs,
        )

    return _build
