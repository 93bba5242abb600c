"""Conversion of attempts to and from JSON-compatible dictionaries."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from exam_app.core.models import (
    Attempt,
    AttemptSnapshot,
    AttemptStatus,
    ExamConfig,
    ExamSchedule,
    QuestionOutcome,
    ScoreFloor,
    ScoreResult,
    SecuritySettings,
    ViolationEvent,
    ViolationType,
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def exam_config_to_dict(config: ExamConfig) -> dict[str, Any]:
    security = config.security
    schedule = None
    if config.schedule is not None:
        schedule = {
            "start_time": _iso(config.schedule.start_time),
            "end_time": _iso(config.schedule.end_time),
        }
    return {
        "id": config.id,
        "title": config.title,
        "description": config.description,
        "duration_seconds": config.duration_seconds,
        "passing_percentage": config.passing_percentage,
        "question_pool_ids": list(config.question_pool_ids),
        "security": {
            "shuffle_questions": security.shuffle_questions,
            "shuffle_options": security.shuffle_options,
            "max_tab_switches": security.max_tab_switches,
            "auto_submit_on_time_up": security.auto_submit_on_time_up,
            "show_remaining_time": security.show_remaining_time,
            "prevent_copy_paste": security.prevent_copy_paste,
            "prevent_right_click": security.prevent_right_click,
            "detect_tab_switch": security.detect_tab_switch,
            "full_screen_required": security.full_screen_required,
        },
        "negative_marking_enabled": config.negative_marking_enabled,
        "score_floor": config.score_floor.value,
        "max_attempts": config.max_attempts,
        "schedule": schedule,
        "version": config.version,
    }


def exam_config_from_dict(data: dict[str, Any]) -> ExamConfig:
    schedule = None
    if data.get("schedule"):
        schedule = ExamSchedule(
            start_time=_parse(data["schedule"]["start_time"]),
            end_time=_parse(data["schedule"]["end_time"]),
        )
    return ExamConfig(
        id=data["id"],
        title=data["title"],
        description=data.get("description", ""),
        duration_seconds=data["duration_seconds"],
        passing_percentage=data["passing_percentage"],
        question_pool_ids=tuple(data["question_pool_ids"]),
        security=SecuritySettings(**data["security"]),
        negative_marking_enabled=data["negative_marking_enabled"],
        score_floor=ScoreFloor(data["score_floor"]),
        max_attempts=data.get("max_attempts"),
        schedule=schedule,
        version=data.get("version", 1),
    )


def score_result_to_dict(result: ScoreResult) -> dict[str, Any]:
    return {
        "score": result.score,
        "total_points": result.total_points,
        "percentage": result.percentage,
        "passed": result.passed,
        "per_question": [
            {
                "question_id": outcome.question_id,
                "submitted_answer": outcome.submitted_answer,
                "correct": outcome.correct,
                "points_awarded": outcome.points_awarded,
                "points_possible": outcome.points_possible,
            }
            for outcome in result.per_question
        ],
    }


def score_result_from_dict(data: dict[str, Any]) -> ScoreResult:
    return ScoreResult(
        score=data["score"],
        total_points=data["total_points"],
        percentage=data["percentage"],
        passed=data["passed"],
        per_question=tuple(QuestionOutcome(**entry) for entry in data["per_question"]),
    )


def attempt_to_dict(attempt: Attempt) -> dict[str, Any]:
    return {
        "id": attempt.id,
        "exam_config": exam_config_to_dict(attempt.exam_config),
        "student_id": attempt.student_id,
        "snapshot": {
            "ordered_question_ids": list(attempt.snapshot.ordered_question_ids),
            "option_orders": {qid: list(order) for qid, order in attempt.snapshot.option_orders.items()},
            "seed": attempt.snapshot.seed,
        },
        "started_at": _iso(attempt.started_at),
        "deadline_at": _iso(attempt.deadline_at),
        "answers": dict(attempt.answers),
        "violations": [
            {
                "type": event.type.value,
                "occurred_at": _iso(event.occurred_at),
                "received_at": _iso(event.received_at),
            }
            for event in attempt.violations
        ],
        "tab_switch_count": attempt.tab_switch_count,
        "status": attempt.status.value,
        "result": score_result_to_dict(attempt.result) if attempt.result is not None else None,
        "submitted_at": _iso(attempt.submitted_at),
        "completion_reason": attempt.completion_reason,
        "overdue": attempt.overdue,
        "needs_reconciliation": attempt.needs_reconciliation,
        "reconciliation_error": attempt.reconciliation_error,
        "version": attempt.version,
    }


def attempt_from_dict(data: dict[str, Any]) -> Attempt:
    snapshot = data["snapshot"]
    return Attempt(
        id=data["id"],
        exam_config=exam_config_from_dict(data["exam_config"]),
        student_id=data["student_id"],
        snapshot=AttemptSnapshot(
            ordered_question_ids=tuple(snapshot["ordered_question_ids"]),
            option_orders={qid: tuple(order) for qid, order in snapshot["option_orders"].items()},
            seed=snapshot["seed"],
        ),
        started_at=_parse(data["started_at"]),
        deadline_at=_parse(data["deadline_at"]),
        answers=dict(data["answers"]),
        violations=[
            ViolationEvent(
                type=ViolationType(event["type"]),
                occurred_at=_parse(event["occurred_at"]),
                received_at=_parse(event["received_at"]),
            )
            for event in data["violations"]
        ],
        tab_switch_count=data["tab_switch_count"],
        status=AttemptStatus(data["status"]),
        result=score_result_from_dict(data["result"]) if data.get("result") else None,
        submitted_at=_parse(data.get("submitted_at")),
        completion_reason=data.get("completion_reason"),
        overdue=data.get("overdue", False),
        needs_reconciliation=data.get("needs_reconciliation", False),
        reconciliation_error=data.get("reconciliation_error"),
        version=data.get("version", 0),
    )
