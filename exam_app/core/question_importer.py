"""Utilities for importing a question bank from a human-friendly text file.

File format (repeat blocks separated by blank lines or '---'):

    ID: unique-question-id
    TYPE: multiple_choice | true_false | short_answer   (optional)
    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question.
    A: First option text
    B: Second option text
    ...                                   (up to H; omit for other types)
    CORRECT: B | True | literal answer
    POINTS: 2                             (optional, default 1)
    NEGATIVE: 0.5                         (optional, default 0)
    EXPLANATION: Shown after grading      (optional)

Without TYPE, a block with options is multiple choice and a block without
options is short answer. For multiple choice CORRECT names the option
letter; for true/false it is True or False; for short answer it is the exact
expected text.

Example:

    ID: radians-30
    Q: What is $30^o$ in radians?
    A: $\\frac{\\pi}{2}$
    B: $\\frac{\\pi}{6}$
    C: $\\frac{\\pi}{3}$
    CORRECT: B
    POINTS: 2
    NEGATIVE: 0.5
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from exam_app.constants.exam_constants import TRUE_FALSE_OPTIONS
from exam_app.core.models import Question, QuestionType


class QuestionImportError(Exception):
    """Raised when a question bank definition cannot be parsed."""


@dataclass(slots=True)
class ImportedQuestionBank:
    """Container for imported question bank metadata and questions."""

    source_path: Path
    questions: list[Question]


_OPTION_ORDER = ["A", "B", "C", "D", "E", "F", "G", "H"]
_SCALAR_KEYS = ("ID", "TYPE", "CORRECT", "POINTS", "NEGATIVE", "EXPLANATION")


def load_questions_from_file(file_path: Path) -> ImportedQuestionBank:
    text = file_path.read_text(encoding="utf-8")
    questions = parse_question_text(text)
    if not questions:
        raise QuestionImportError("Question file did not contain any questions.")
    return ImportedQuestionBank(source_path=file_path, questions=questions)


def parse_question_text(text: str) -> list[Question]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            # Blank line encountered after content - finalize current block
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    return [_parse_block(block) for block in blocks if block]


def _parse_block(block: str) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    scalars: dict[str, str] = {}
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        key = next((k for k in _SCALAR_KEYS if upper.startswith(f"{k}:")), None)
        if key is not None:
            scalars[key] = line.split(":", 1)[1].strip()
            current_section = "EXPLANATION" if key == "EXPLANATION" else None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            scalars["EXPLANATION"] += f"\n{line}"
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuestionImportError(f"Encountered text outside of a known section: '{line}'.")

    question_id = scalars.get("ID", "")
    if not question_id:
        raise QuestionImportError("Question id missing (ID: ...)")
    if not question_lines:
        raise QuestionImportError(f"{question_id}: question text missing (Q: ...)")
    prompt = "\n".join(question_lines).strip()
    if not prompt:
        raise QuestionImportError(f"{question_id}: question text cannot be empty.")

    question_type = _parse_type(question_id, scalars.get("TYPE"), bool(options))
    option_list = _ordered_options(question_id, options)
    correct = scalars.get("CORRECT", "")
    if not correct:
        raise QuestionImportError(f"{question_id}: CORRECT is required.")

    if question_type is QuestionType.MULTIPLE_CHOICE:
        if len(option_list) < 2:
            raise QuestionImportError(f"{question_id}: multiple choice needs at least two options.")
        letter = correct.upper()
        if letter not in _OPTION_ORDER[: len(option_list)]:
            raise QuestionImportError(f"{question_id}: CORRECT must name one of the option letters.")
        correct_answer = option_list[_OPTION_ORDER.index(letter)]
    elif question_type is QuestionType.TRUE_FALSE:
        if option_list:
            raise QuestionImportError(f"{question_id}: true/false questions take no options.")
        correct_answer = next((o for o in TRUE_FALSE_OPTIONS if o.lower() == correct.lower()), "")
        if not correct_answer:
            raise QuestionImportError(f"{question_id}: CORRECT must be True or False.")
        option_list = list(TRUE_FALSE_OPTIONS)
    else:
        if option_list:
            raise QuestionImportError(f"{question_id}: short answer questions take no options.")
        correct_answer = correct

    return Question(
        id=question_id,
        prompt=prompt,
        type=question_type,
        options=tuple(option_list),
        correct_answer=correct_answer,
        points=_parse_number(question_id, "POINTS", scalars.get("POINTS"), default=1.0, minimum=1.0),
        negative_marks=_parse_number(question_id, "NEGATIVE", scalars.get("NEGATIVE"), default=0.0, minimum=0.0),
        explanation=scalars.get("EXPLANATION") or None,
    )


def _parse_type(question_id: str, raw: str | None, has_options: bool) -> QuestionType:
    if not raw:
        return QuestionType.MULTIPLE_CHOICE if has_options else QuestionType.SHORT_ANSWER
    try:
        return QuestionType(raw.strip().lower())
    except ValueError as exc:
        raise QuestionImportError(f"{question_id}: unknown TYPE '{raw}'.") from exc


def _ordered_options(question_id: str, options: dict[str, str]) -> list[str]:
    letters = _OPTION_ORDER[: len(options)]
    if sorted(options) != letters:
        raise QuestionImportError(f"{question_id}: options must be lettered consecutively from A.")
    option_list = [options[letter].strip() for letter in letters]
    if any(not opt for opt in option_list):
        raise QuestionImportError(f"{question_id}: option text cannot be empty.")
    return option_list


def _parse_number(question_id: str, key: str, raw: str | None, default: float, minimum: float) -> float:
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise QuestionImportError(f"{question_id}: {key} must be a number.") from exc
    if value < minimum:
        raise QuestionImportError(f"{question_id}: {key} must be at least {minimum:g}.")
    return value
