"""Pure grading of an attempt's answers against the answer key."""

from __future__ import annotations

from typing import Mapping

from exam_app.constants.exam_constants import PERCENTAGE_DECIMALS
from exam_app.core.errors import ScoringError
from exam_app.core.models import (
    AttemptSnapshot,
    ExamConfig,
    Question,
    QuestionOutcome,
    QuestionType,
    ScoreFloor,
    ScoreResult,
)


def is_correct_answer(question: Question, submitted: str) -> bool:
    """Short answers match exactly; choice answers must also be a listed option."""
    if question.type is QuestionType.SHORT_ANSWER:
        return submitted == question.correct_answer
    return submitted in question.options and submitted == question.correct_answer


def score_attempt(
    snapshot: AttemptSnapshot,
    answers: Mapping[str, str],
    questions: Mapping[str, Question],
    exam_config: ExamConfig,
) -> ScoreResult:
    """Grade every question of the snapshot in its frozen order.

    Raises ScoringError when a snapshot question has no definition; a partial
    result is never produced.
    """
    missing = [qid for qid in snapshot.ordered_question_ids if qid not in questions]
    if missing:
        raise ScoringError(f"Missing question definitions: {', '.join(missing)}")

    outcomes: list[QuestionOutcome] = []
    score = 0.0
    total_points = 0.0
    for question_id in snapshot.ordered_question_ids:
        question = questions[question_id]
        submitted = answers.get(question_id)
        outcome = _grade_question(question, submitted, exam_config)
        outcomes.append(outcome)
        score += outcome.points_awarded
        total_points += question.points

    if exam_config.score_floor is ScoreFloor.TOTAL:
        score = max(0.0, score)

    raw_percentage = 100 * score / total_points if total_points else 0.0
    return ScoreResult(
        score=score,
        total_points=total_points,
        percentage=round(raw_percentage, PERCENTAGE_DECIMALS),
        passed=raw_percentage >= exam_config.passing_percentage,
        per_question=tuple(outcomes),
    )


def _grade_question(question: Question, submitted: str | None, exam_config: ExamConfig) -> QuestionOutcome:
    if submitted is None:
        return QuestionOutcome(
            question_id=question.id,
            submitted_answer=None,
            correct=False,
            points_awarded=0.0,
            points_possible=question.points,
        )

    if is_correct_answer(question, submitted):
        points = question.points
        correct = True
    else:
        correct = False
        points = 0.0
        if exam_config.negative_marking_enabled and question.negative_marks:
            points = -question.negative_marks
        if exam_config.score_floor is ScoreFloor.QUESTION:
            points = max(0.0, points)

    return QuestionOutcome(
        question_id=question.id,
        submitted_answer=submitted,
        correct=correct,
        points_awarded=float(points),
        points_possible=question.points,
    )
