"""Service for storing question definitions and their answer keys."""

from __future__ import annotations

from dataclasses import replace
from threading import Lock
from typing import Iterable, Protocol, Sequence

from exam_app.constants.exam_constants import TRUE_FALSE_OPTIONS
from exam_app.core.models import Question, QuestionType


class QuestionBank(Protocol):
    def get_questions_by_ids(self, ids: Sequence[str]) -> list[Question]:
        ...


class InMemoryQuestionBank:
    """Validates and stores questions keyed by id."""

    def __init__(self, questions: Iterable[Question] = ()) -> None:
        self._lock = Lock()
        self._questions: dict[str, Question] = {}
        for question in questions:
            self.add_question(question)

    def load_questions(self, questions: list[Question]) -> None:
        """Replace the bank with a new list of questions."""
        if not questions:
            raise ValueError("Question bank must contain at least one question.")
        prepared = [self._prepare_question(q) for q in questions]
        with self._lock:
            self._questions = {}
            for question in prepared:
                self._store(question)

    def add_question(self, question: Question) -> None:
        prepared = self._prepare_question(question)
        with self._lock:
            self._store(prepared)

    def get_questions_by_ids(self, ids: Sequence[str]) -> list[Question]:
        """Return the known questions among ``ids``; unknown ids are skipped."""
        with self._lock:
            return [self._questions[qid] for qid in ids if qid in self._questions]

    def get_question_count(self) -> int:
        with self._lock:
            return len(self._questions)

    def _store(self, question: Question) -> None:
        if question.id in self._questions:
            raise ValueError(f"Duplicate question id: {question.id}")
        self._questions[question.id] = question

    def _prepare_question(self, question: Question) -> Question:
        """Validate and normalize a question before storage."""
        question_id = question.id.strip()
        if not question_id:
            raise ValueError("Question id must not be empty.")

        prompt = question.prompt.strip()
        if not prompt:
            raise ValueError(f"Question {question_id}: prompt must not be empty.")

        options = self._validate_options(question)
        if not question.correct_answer:
            raise ValueError(f"Question {question_id}: correct answer must not be empty.")
        if question.is_choice and question.correct_answer not in options:
            raise ValueError(f"Question {question_id}: correct answer must be one of the options.")
        if question.points < 1:
            raise ValueError(f"Question {question_id}: points must be at least 1.")
        if question.negative_marks < 0:
            raise ValueError(f"Question {question_id}: negative marks must not be negative.")

        return replace(question, id=question_id, prompt=prompt, options=options)

    @staticmethod
    def _validate_options(question: Question) -> tuple[str, ...]:
        options = tuple(option.strip() for option in question.options)
        if question.type is QuestionType.SHORT_ANSWER:
            if options:
                raise ValueError(f"Question {question.id}: short answer questions take no options.")
            return ()
        if question.type is QuestionType.TRUE_FALSE and not options:
            return TRUE_FALSE_OPTIONS
        if len(options) < 2:
            raise ValueError(f"Question {question.id}: choice questions need at least two options.")
        if any(not option for option in options):
            raise ValueError(f"Question {question.id}: option text cannot be empty.")
        if len(set(options)) != len(options):
            raise ValueError(f"Question {question.id}: options must be distinct.")
        return options
