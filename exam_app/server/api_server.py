"""FastAPI server that exposes the exam-taking endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Thread

from fastapi import Depends, FastAPI, Header, HTTPException, Response
from pydantic import BaseModel
import uvicorn

from exam_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from exam_app.constants.exam_constants import CLIENT_AUTO_SUBMIT_REASON
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, STUDENT_ID_HEADER
from exam_app.core.errors import (
    AttemptLimitReached,
    DuplicateActiveAttempt,
    ExamError,
    ExamUnavailable,
    ExpiredWrite,
    InvalidAnswer,
    InvalidTransition,
    NotFound,
    ScoringError,
)
from exam_app.core.exam_manager import ExamManager
from exam_app.core.markdown_math_renderer import renderer
from exam_app.core.models import Attempt, AttemptStatus, Question, ScoreResult, ViolationType
from exam_app.core.result_exporter import attempt_summary, export_results_csv
from exam_app.core.services.attempt_clock import format_remaining
from exam_app.core.services.question_preparer import displayed_options


class AnswerPayload(BaseModel):
    """Payload schema for a single answer write."""

    value: str


class ViolationPayload(BaseModel):
    """Payload schema for a client-observed integrity event."""

    type: ViolationType
    occurred_at: datetime | None = None


class SubmitPayload(BaseModel):
    """Optional payload for submissions the client triggers on its own."""

    auto_submit: bool = False
    reason: str | None = None


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc).isoformat()
    return value.astimezone(timezone.utc).isoformat()


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, DuplicateActiveAttempt):
        return HTTPException(
            status_code=409,
            detail={"error": "duplicate_active_attempt", "message": str(exc), "attempt_id": exc.attempt_id},
        )
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail={"error": "not_found", "message": str(exc)})
    if isinstance(exc, ExpiredWrite):
        return HTTPException(status_code=409, detail={"error": "expired", "message": str(exc)})
    if isinstance(exc, InvalidTransition):
        return HTTPException(
            status_code=409,
            detail={"error": "invalid_transition", "message": str(exc), "status": exc.status},
        )
    if isinstance(exc, InvalidAnswer):
        return HTTPException(status_code=422, detail={"error": "invalid_answer", "message": str(exc)})
    if isinstance(exc, (ExamUnavailable, AttemptLimitReached)):
        return HTTPException(status_code=403, detail={"error": "not_allowed", "message": str(exc)})
    if isinstance(exc, ScoringError):
        return HTTPException(
            status_code=500,
            detail={"error": "scoring_failed", "message": "Attempt held for manual reconciliation."},
        )
    return HTTPException(status_code=400, detail={"error": "bad_request", "message": str(exc)})


def _question_payload(question: Question, option_order: tuple[int, ...]) -> dict[str, object]:
    """Question as shown during an attempt: no answer key, no explanation."""
    options = displayed_options(question, option_order)
    return {
        "id": question.id,
        "type": question.type.value,
        "prompt": question.prompt,
        "prompt_html": renderer.render_fragment(question.prompt),
        "options": options,
        "options_html": [renderer.render_inline(option) for option in options],
        "points": question.points,
    }


def _result_payload(result: ScoreResult, questions: list[Question]) -> dict[str, object]:
    by_id = {question.id: question for question in questions}
    review = []
    for outcome in result.per_question:
        question = by_id.get(outcome.question_id)
        review.append(
            {
                "question_id": outcome.question_id,
                "prompt": question.prompt if question else None,
                "submitted_answer": outcome.submitted_answer,
                "correct": outcome.correct,
                "points_awarded": outcome.points_awarded,
                "points_possible": outcome.points_possible,
                "correct_answer": question.correct_answer if question else None,
                "explanation": question.explanation if question else None,
                "negative_marks": question.negative_marks if question else None,
            }
        )
    return {
        "score": result.score,
        "total_points": result.total_points,
        "percentage": result.percentage,
        "passed": result.passed,
        "per_question": review,
    }


def _attempt_payload(attempt: Attempt, manager: ExamManager) -> dict[str, object]:
    security = attempt.exam_config.security
    questions = manager.get_attempt_questions(attempt)
    remaining = manager.remaining_seconds(attempt) if attempt.status is AttemptStatus.IN_PROGRESS else 0
    payload: dict[str, object] = {
        "attempt_id": attempt.id,
        "exam_config_id": attempt.exam_config_id,
        "exam_title": attempt.exam_config.title,
        "exam_version": attempt.exam_config.version,
        "status": attempt.status.value,
        "started_at": _iso(attempt.started_at),
        "deadline_at": _iso(attempt.deadline_at),
        "remaining_seconds": remaining,
        "remaining_display": format_remaining(remaining) if security.show_remaining_time else None,
        "overdue": attempt.overdue,
        "tab_switch_count": attempt.tab_switch_count,
        "answers": dict(attempt.answers),
        "needs_reconciliation": attempt.needs_reconciliation,
        "submitted_at": _iso(attempt.submitted_at),
        "completion_reason": attempt.completion_reason,
        "time_spent_seconds": attempt.time_spent_seconds,
        "questions": None,
        "result": None,
    }
    if attempt.status is AttemptStatus.IN_PROGRESS:
        payload["questions"] = [
            _question_payload(question, attempt.snapshot.option_orders.get(question.id, ()))
            for question in questions
        ]
    elif attempt.result is not None:
        payload["result"] = _result_payload(attempt.result, questions)
    return payload


def _security_payload(attempt: Attempt) -> dict[str, object]:
    security = attempt.exam_config.security
    return {
        "max_tab_switches": security.tab_switch_limit,
        "show_remaining_time": security.show_remaining_time,
        "auto_submit_on_time_up": security.auto_submit_on_time_up,
        "prevent_copy_paste": security.prevent_copy_paste,
        "prevent_right_click": security.prevent_right_click,
        "detect_tab_switch": security.detect_tab_switch,
        "full_screen_required": security.full_screen_required,
    }


def _get_exam_manager_dependency(exam_manager: ExamManager):
    def dependency() -> ExamManager:
        return exam_manager

    return dependency


def create_api_app(exam_manager: ExamManager) -> FastAPI:
    """Create a FastAPI application wired to the provided exam manager."""
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    manager_dep = _get_exam_manager_dependency(exam_manager)

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"service": APP_NAME, "version": APP_VERSION, "status": "ok"}

    @app.post("/exams/{exam_config_id}/attempts", status_code=201)
    def start_attempt(
        exam_config_id: str,
        student_id: str = Header(alias=STUDENT_ID_HEADER),
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            attempt = manager.start_attempt(student_id, exam_config_id)
        except (ExamError, ScoringError, ValueError) as exc:
            raise _http_error(exc) from exc
        questions = manager.get_attempt_questions(attempt)
        return {
            "attempt_id": attempt.id,
            "exam_title": attempt.exam_config.title,
            "started_at": _iso(attempt.started_at),
            "deadline_at": _iso(attempt.deadline_at),
            "remaining_seconds": manager.remaining_seconds(attempt),
            "security": _security_payload(attempt),
            "questions": [
                _question_payload(question, attempt.snapshot.option_orders.get(question.id, ()))
                for question in questions
            ],
        }

    @app.put("/attempts/{attempt_id}/answers/{question_id}")
    def write_answer(
        attempt_id: str,
        question_id: str,
        payload: AnswerPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            attempt = manager.answer(attempt_id, question_id, payload.value)
        except (ExamError, ScoringError) as exc:
            raise _http_error(exc) from exc
        return {
            "accepted": True,
            "question_id": question_id,
            "remaining_seconds": manager.remaining_seconds(attempt),
        }

    @app.post("/attempts/{attempt_id}/violations")
    def report_violation(
        attempt_id: str,
        payload: ViolationPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            report = manager.report_violation(attempt_id, payload.type, payload.occurred_at)
        except (ExamError, ScoringError) as exc:
            raise _http_error(exc) from exc
        return {
            "accepted": report.outcome.accepted,
            "threshold_breached": report.outcome.threshold_breached,
            "tab_switch_count": report.outcome.tab_switch_count,
            "tab_switches_remaining": report.outcome.tab_switches_remaining,
            "auto_submitted": report.auto_submitted,
        }

    @app.post("/attempts/{attempt_id}/submit")
    def submit_attempt(
        attempt_id: str,
        payload: SubmitPayload | None = None,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            if payload is not None and payload.auto_submit:
                result = manager.auto_submit(attempt_id, payload.reason or CLIENT_AUTO_SUBMIT_REASON)
            else:
                result = manager.submit(attempt_id)
            attempt = manager.get_attempt(attempt_id)
        except (ExamError, ScoringError) as exc:
            raise _http_error(exc) from exc
        body = _result_payload(result, manager.get_attempt_questions(attempt))
        body.update(
            attempt_id=attempt.id,
            status=attempt.status.value,
            completion_reason=attempt.completion_reason,
            submitted_at=_iso(attempt.submitted_at),
        )
        return body

    @app.get("/attempts/{attempt_id}")
    def get_attempt(attempt_id: str, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            attempt = manager.get_attempt(attempt_id)
        except (ExamError, ScoringError) as exc:
            raise _http_error(exc) from exc
        return _attempt_payload(attempt, manager)

    @app.get("/exams/{exam_config_id}/results")
    def list_results(
        exam_config_id: str,
        format: str = "json",
        manager: ExamManager = Depends(manager_dep),
    ):
        try:
            manager.catalog.get_exam_config(exam_config_id)
        except NotFound as exc:
            raise _http_error(exc) from exc
        attempts = manager.list_attempts(exam_config_id=exam_config_id)
        if format == "csv":
            return Response(content=export_results_csv(attempts), media_type="text/csv")
        return {
            "exam_config_id": exam_config_id,
            "count": len(attempts),
            "data": [attempt_summary(attempt) for attempt in attempts],
        }

    return app


def start_api_server(
    exam_manager: ExamManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(exam_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="ExamApiServer", daemon=True)
    thread.start()
    return thread
