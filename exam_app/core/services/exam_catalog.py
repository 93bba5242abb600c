"""Versioned store of immutable exam configurations."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
import json
from pathlib import Path
from threading import Lock

from pydantic import BaseModel, Field, ValidationError, model_validator

from exam_app.core.errors import NotFound
from exam_app.core.models import ExamConfig, ExamSchedule, ScoreFloor, SecuritySettings


class ExamCatalogError(Exception):
    """Raised when an exam catalog file cannot be loaded."""


class ExamCatalog:
    """Keeps every published version; lookups return the latest one.

    Attempts hold on to the config object they started with, so publishing a
    new version never changes an attempt already under way.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._versions: dict[str, list[ExamConfig]] = {}

    def publish(self, exam_config: ExamConfig) -> ExamConfig:
        _validate_exam_config(exam_config)
        with self._lock:
            history = self._versions.setdefault(exam_config.id, [])
            versioned = replace(exam_config, version=len(history) + 1)
            history.append(versioned)
            return versioned

    def get_exam_config(self, exam_config_id: str) -> ExamConfig:
        with self._lock:
            history = self._versions.get(exam_config_id)
            if not history:
                raise NotFound(f"Exam {exam_config_id} not found")
            return history[-1]

    def list_exam_configs(self) -> list[ExamConfig]:
        with self._lock:
            return [history[-1] for history in self._versions.values()]


def _validate_exam_config(exam_config: ExamConfig) -> None:
    if not exam_config.id.strip():
        raise ValueError("Exam id must not be empty.")
    if exam_config.duration_seconds <= 0:
        raise ValueError("Exam duration must be a positive number of seconds.")
    if not 0 <= exam_config.passing_percentage <= 100:
        raise ValueError("Passing percentage must be between 0 and 100.")
    if not exam_config.question_pool_ids:
        raise ValueError("Exam must reference at least one question.")
    if len(set(exam_config.question_pool_ids)) != len(exam_config.question_pool_ids):
        raise ValueError("Exam must not reference the same question twice.")
    if exam_config.max_attempts is not None and exam_config.max_attempts <= 0:
        raise ValueError("max_attempts must be positive when set.")
    schedule = exam_config.schedule
    if schedule is not None and schedule.end_time <= schedule.start_time:
        raise ValueError("Exam schedule must end after it starts.")


class SecuritySettingsDocument(BaseModel):
    shuffle_questions: bool = False
    shuffle_options: bool = False
    max_tab_switches: int | None = None
    auto_submit_on_time_up: bool = True
    show_remaining_time: bool = True
    prevent_copy_paste: bool = False
    prevent_right_click: bool = False
    detect_tab_switch: bool = True
    full_screen_required: bool = False


class ScheduleDocument(BaseModel):
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def _require_timezone(self) -> "ScheduleDocument":
        if self.start_time.tzinfo is None or self.end_time.tzinfo is None:
            raise ValueError("Schedule times must include a timezone offset.")
        return self


class ExamConfigDocument(BaseModel):
    """Schema of one entry in the exam catalog JSON file."""

    id: str
    title: str
    description: str = ""
    duration_seconds: int = Field(gt=0)
    passing_percentage: float = Field(ge=0, le=100)
    question_pool_ids: list[str] = Field(min_length=1)
    security: SecuritySettingsDocument = Field(default_factory=SecuritySettingsDocument)
    negative_marking_enabled: bool = True
    score_floor: ScoreFloor = ScoreFloor.NONE
    max_attempts: int | None = Field(default=None, gt=0)
    schedule: ScheduleDocument | None = None

    def to_exam_config(self) -> ExamConfig:
        schedule = None
        if self.schedule is not None:
            schedule = ExamSchedule(start_time=self.schedule.start_time, end_time=self.schedule.end_time)
        return ExamConfig(
            id=self.id,
            title=self.title,
            description=self.description,
            duration_seconds=self.duration_seconds,
            passing_percentage=self.passing_percentage,
            question_pool_ids=tuple(self.question_pool_ids),
            security=SecuritySettings(**self.security.model_dump()),
            negative_marking_enabled=self.negative_marking_enabled,
            score_floor=self.score_floor,
            max_attempts=self.max_attempts,
            schedule=schedule,
        )


def load_exam_configs_from_file(file_path: Path) -> list[ExamConfig]:
    """Parse a JSON list of exam configurations."""
    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ExamCatalogError(f"{file_path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise ExamCatalogError("Exam catalog file must contain a JSON list.")
    try:
        return [ExamConfigDocument.model_validate(entry).to_exam_config() for entry in raw]
    except ValidationError as exc:
        raise ExamCatalogError(str(exc)) from exc
