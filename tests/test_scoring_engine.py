import pytest

from exam_app.core.errors import ScoringError
from exam_app.core.models import AttemptSnapshot, Question, QuestionType, ScoreFloor
from exam_app.core.services.scoring_engine import is_correct_answer, score_attempt


def _snapshot(*question_ids):
    return AttemptSnapshot(
        ordered_question_ids=tuple(question_ids),
        option_orders={qid: () for qid in question_ids},
        seed=7,
    )


def _by_id(questions):
    return {q.id: q for q in questions}


def test_correct_mcq_and_wrong_true_false(questions, make_exam):
    result = score_attempt(_snapshot("q1", "q2"), {"q1": "B", "q2": "False"}, _by_id(questions), make_exam())

    assert result.score == 2
    assert result.total_points == 3
    assert result.percentage == 66.7
    assert result.passed is True
    assert [o.correct for o in result.per_question] == [True, False]


def test_negative_marking_applies_to_wrong_answer_only(questions, make_exam):
    marked = [
        Question(
            id="q1",
            prompt=questions[0].prompt,
            type=QuestionType.MULTIPLE_CHOICE,
            options=("A", "B", "C"),
            correct_answer="B",
            points=2,
            negative_marks=0.5,
        ),
        questions[1],
    ]

    result = score_attempt(_snapshot("q1", "q2"), {"q1": "A"}, _by_id(marked), make_exam())

    q1, q2 = result.per_question
    assert q1.points_awarded == -0.5
    assert q2.points_awarded == 0
    assert q2.submitted_answer is None
    assert result.score == -0.5
    assert result.total_points == 3
    assert result.percentage == -16.7
    assert result.passed is False


def test_question_floor_and_total_floor(questions, make_exam):
    marked = {
        "q1": Question(
            id="q1",
            prompt="p",
            type=QuestionType.MULTIPLE_CHOICE,
            options=("A", "B", "C"),
            correct_answer="B",
            points=2,
            negative_marks=1,
        ),
        "q2": Question(
            id="q2",
            prompt="p",
            type=QuestionType.TRUE_FALSE,
            options=("True", "False"),
            correct_answer="True",
            points=1,
            negative_marks=1,
        ),
    }
    answers = {"q1": "A", "q2": "False"}

    unclamped = score_attempt(_snapshot("q1", "q2"), answers, marked, make_exam())
    per_question = score_attempt(
        _snapshot("q1", "q2"), answers, marked, make_exam(score_floor=ScoreFloor.QUESTION)
    )
    total = score_attempt(_snapshot("q1", "q2"), answers, marked, make_exam(score_floor=ScoreFloor.TOTAL))

    assert unclamped.score == -2
    assert per_question.score == 0
    assert all(o.points_awarded == 0 for o in per_question.per_question)
    assert total.score == 0
    assert [o.points_awarded for o in total.per_question] == [-1, -1]


def test_negative_marking_can_be_disabled(make_exam):
    question = Question(
        id="q1",
        prompt="p",
        type=QuestionType.MULTIPLE_CHOICE,
        options=("A", "B"),
        correct_answer="B",
        points=1,
        negative_marks=0.25,
    )
    result = score_attempt(
        _snapshot("q1"), {"q1": "A"}, {"q1": question}, make_exam(negative_marking_enabled=False)
    )
    assert result.score == 0


def test_short_answer_is_case_sensitive():
    question = Question(
        id="s1",
        prompt="Capital of France?",
        type=QuestionType.SHORT_ANSWER,
        options=(),
        correct_answer="Paris",
    )
    assert is_correct_answer(question, "Paris")
    assert not is_correct_answer(question, "paris")
    assert not is_correct_answer(question, "Paris ")


def test_choice_answer_must_be_an_option():
    question = Question(
        id="t1",
        prompt="p",
        type=QuestionType.TRUE_FALSE,
        options=("True", "False"),
        correct_answer="True",
    )
    assert is_correct_answer(question, "True")
    assert not is_correct_answer(question, "true")


def test_scoring_is_deterministic(questions, make_exam):
    snapshot = _snapshot("q2", "q1")
    answers = {"q1": "C", "q2": "True"}
    first = score_attempt(snapshot, answers, _by_id(questions), make_exam())
    second = score_attempt(snapshot, answers, _by_id(questions), make_exam())
    assert first == second
    assert [o.question_id for o in first.per_question] == ["q2", "q1"]


def test_empty_exam_scores_zero_percent(make_exam):
    result = score_attempt(_snapshot(), {}, {}, make_exam())
    assert result.total_points == 0
    assert result.percentage == 0
    assert result.passed is False


def test_missing_question_definition_raises(questions, make_exam):
    with pytest.raises(ScoringError):
        score_attempt(_snapshot("q1", "q9"), {"q1": "B"}, _by_id(questions), make_exam())
