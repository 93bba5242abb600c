import pytest

from exam_app.core.errors import NotFound
from exam_app.core.models import ExamConfig, Question, QuestionType, SecuritySettings
from exam_app.core.services.question_preparer import (
    QuestionSetPreparer,
    displayed_options,
    seed_for_attempt,
)


def _pool():
    pool = [
        Question(
            id=f"m{i}",
            prompt=f"Question {i}",
            type=QuestionType.MULTIPLE_CHOICE,
            options=("one", "two", "three", "four", "five"),
            correct_answer="two",
        )
        for i in range(8)
    ]
    pool.append(
        Question(
            id="tf",
            prompt="True or false?",
            type=QuestionType.TRUE_FALSE,
            options=("True", "False"),
            correct_answer="False",
        )
    )
    pool.append(
        Question(id="sa", prompt="Spell it.", type=QuestionType.SHORT_ANSWER, options=(), correct_answer="it")
    )
    return pool


def _exam(shuffle_questions=True, shuffle_options=True):
    return ExamConfig(
        id="shuffled",
        title="Shuffled",
        duration_seconds=600,
        passing_percentage=40,
        question_pool_ids=tuple(q.id for q in _pool()),
        security=SecuritySettings(shuffle_questions=shuffle_questions, shuffle_options=shuffle_options),
    )


def test_same_seed_gives_same_snapshot():
    preparer = QuestionSetPreparer()
    first = preparer.prepare(_exam(), _pool(), random_seed=1234)
    second = preparer.prepare(_exam(), _pool(), random_seed=1234)
    assert first == second


def test_shuffled_snapshot_is_a_permutation_of_the_pool():
    exam = _exam()
    snapshot = QuestionSetPreparer().prepare(exam, _pool(), random_seed=99)

    assert len(snapshot.ordered_question_ids) == len(exam.question_pool_ids)
    assert sorted(snapshot.ordered_question_ids) == sorted(exam.question_pool_ids)
    for qid, order in snapshot.option_orders.items():
        if qid.startswith("m"):
            assert sorted(order) == [0, 1, 2, 3, 4]


def test_some_seed_actually_reorders_questions():
    exam = _exam()
    preparer = QuestionSetPreparer()
    orders = {preparer.prepare(exam, _pool(), random_seed=seed).ordered_question_ids for seed in range(20)}
    assert len(orders) > 1


def test_true_false_and_short_answer_are_never_reordered():
    snapshot = QuestionSetPreparer().prepare(_exam(), _pool(), random_seed=5)
    assert snapshot.option_orders["tf"] == (0, 1)
    assert snapshot.option_orders["sa"] == ()


def test_shuffling_disabled_keeps_configured_order():
    exam = _exam(shuffle_questions=False, shuffle_options=False)
    snapshot = QuestionSetPreparer().prepare(exam, _pool(), random_seed=5)
    assert snapshot.ordered_question_ids == exam.question_pool_ids
    assert snapshot.option_orders["m0"] == (0, 1, 2, 3, 4)


def test_prepare_does_not_touch_questions():
    pool = _pool()
    before = list(pool)
    QuestionSetPreparer().prepare(_exam(), pool, random_seed=3)
    assert pool == before


def test_missing_question_in_pool_is_rejected():
    with pytest.raises(NotFound):
        QuestionSetPreparer().prepare(_exam(), _pool()[:-1], random_seed=3)


def test_seed_for_attempt_is_stable():
    assert seed_for_attempt("abc") == seed_for_attempt("abc")
    assert seed_for_attempt("abc") != seed_for_attempt("abd")
    assert 0 <= seed_for_attempt("abc") < 2**64


def test_displayed_options_follow_the_permutation():
    question = _pool()[0]
    assert displayed_options(question, (4, 3, 2, 1, 0)) == ["five", "four", "three", "two", "one"]
    assert displayed_options(question, ()) == list(question.options)
