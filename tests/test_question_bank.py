import pytest

from exam_app.core.models import Question, QuestionType
from exam_app.core.services.question_bank import InMemoryQuestionBank


def _question(**overrides):
    values = {
        "id": "q",
        "prompt": "Prompt",
        "type": QuestionType.MULTIPLE_CHOICE,
        "options": ("A", "B"),
        "correct_answer": "A",
    }
    values.update(overrides)
    return Question(**values)


def test_lookup_preserves_requested_order_and_skips_unknown(questions):
    bank = InMemoryQuestionBank(questions)
    assert [q.id for q in bank.get_questions_by_ids(["q2", "zz", "q1"])] == ["q2", "q1"]
    assert bank.get_question_count() == 2


def test_true_false_gets_default_options():
    bank = InMemoryQuestionBank([_question(type=QuestionType.TRUE_FALSE, options=(), correct_answer="False")])
    (stored,) = bank.get_questions_by_ids(["q"])
    assert stored.options == ("True", "False")


def test_text_is_trimmed():
    bank = InMemoryQuestionBank([_question(id=" q ", prompt="  Prompt  ", options=(" A ", "B"))])
    (stored,) = bank.get_questions_by_ids(["q"])
    assert stored.prompt == "Prompt"
    assert stored.options == ("A", "B")


@pytest.mark.parametrize(
    "overrides",
    [
        {"id": " "},
        {"prompt": ""},
        {"options": ("A",)},
        {"options": ("A", "A")},
        {"options": ("A", " ")},
        {"correct_answer": "C"},
        {"correct_answer": ""},
        {"points": 0},
        {"negative_marks": -1},
        {"type": QuestionType.SHORT_ANSWER},
    ],
)
def test_invalid_questions_are_rejected(overrides):
    with pytest.raises(ValueError):
        InMemoryQuestionBank([_question(**overrides)])


def test_duplicate_ids_are_rejected(questions):
    bank = InMemoryQuestionBank(questions)
    with pytest.raises(ValueError):
        bank.add_question(questions[0])
    with pytest.raises(ValueError):
        bank.load_questions([])


def test_load_questions_replaces_contents(questions):
    bank = InMemoryQuestionBank(questions)
    bank.load_questions([_question(id="only")])
    assert bank.get_question_count() == 1
    assert bank.get_questions_by_ids(["q1", "only"])[0].id == "only"
