"""Service that freezes the question and option order for one attempt."""

from __future__ import annotations

import hashlib
import random
from typing import Sequence

from exam_app.core.errors import NotFound
from exam_app.core.models import AttemptSnapshot, ExamConfig, Question, QuestionType


def seed_for_attempt(attempt_id: str) -> int:
    """Derive a stable shuffle seed from an attempt id.

    ``hash()`` is salted per process, so a digest is used to keep the
    snapshot reproducible when an attempt is audited later.
    """
    digest = hashlib.sha256(attempt_id.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


class QuestionSetPreparer:
    """Builds the ordered question list and per-question option order."""

    def prepare(
        self,
        exam_config: ExamConfig,
        question_pool: Sequence[Question],
        random_seed: int,
    ) -> AttemptSnapshot:
        questions = self._match_pool(exam_config, question_pool)
        rng = random.Random(random_seed)
        security = exam_config.security

        ordered_ids = list(exam_config.question_pool_ids)
        if security.shuffle_questions:
            rng.shuffle(ordered_ids)

        option_orders: dict[str, tuple[int, ...]] = {}
        # Option permutations follow the configured order, not the shuffled
        # one, so each question's permutation is independent of its position.
        for question_id in exam_config.question_pool_ids:
            question = questions[question_id]
            indices = list(range(len(question.options)))
            if security.shuffle_options and question.type is QuestionType.MULTIPLE_CHOICE:
                rng.shuffle(indices)
            option_orders[question_id] = tuple(indices)

        return AttemptSnapshot(
            ordered_question_ids=tuple(ordered_ids),
            option_orders=option_orders,
            seed=random_seed,
        )

    @staticmethod
    def _match_pool(exam_config: ExamConfig, question_pool: Sequence[Question]) -> dict[str, Question]:
        configured = exam_config.question_pool_ids
        if len(set(configured)) != len(configured):
            raise ValueError(f"Exam {exam_config.id} lists a question more than once.")

        by_id = {question.id: question for question in question_pool}
        missing = [question_id for question_id in configured if question_id not in by_id]
        if missing:
            raise NotFound(f"Questions not found for exam {exam_config.id}: {', '.join(missing)}")
        return {question_id: by_id[question_id] for question_id in configured}


def displayed_options(question: Question, option_order: Sequence[int]) -> list[str]:
    """Return the question options in the order the attempt shows them."""
    if not option_order:
        return list(question.options)
    return [question.options[index] for index in option_order]
