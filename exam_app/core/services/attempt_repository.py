"""Persistence for attempt records."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Protocol

from exam_app.core.attempt_codec import attempt_from_dict, attempt_to_dict
from exam_app.core.models import Attempt, AttemptStatus

logger = logging.getLogger(__name__)


class AttemptRepository(Protocol):
    """Storage used by the exam manager.

    Implementations hand out independent copies: mutating a loaded attempt
    has no effect until it is saved.
    """

    def save_attempt(self, attempt: Attempt) -> None:
        ...

    def load_attempt(self, attempt_id: str) -> Attempt | None:
        ...

    def find_active_attempt(self, student_id: str, exam_config_id: str) -> Attempt | None:
        ...

    def list_attempts(
        self,
        student_id: str | None = None,
        exam_config_id: str | None = None,
    ) -> list[Attempt]:
        ...

    def list_in_progress(self) -> list[Attempt]:
        ...


class InMemoryAttemptRepository:
    """Dictionary-backed repository; the default for a single server process."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._attempts: dict[str, Attempt] = {}

    def save_attempt(self, attempt: Attempt) -> None:
        with self._lock:
            self._attempts[attempt.id] = copy.deepcopy(attempt)

    def load_attempt(self, attempt_id: str) -> Attempt | None:
        with self._lock:
            stored = self._attempts.get(attempt_id)
            return copy.deepcopy(stored) if stored is not None else None

    def find_active_attempt(self, student_id: str, exam_config_id: str) -> Attempt | None:
        with self._lock:
            for attempt in self._attempts.values():
                if (
                    attempt.student_id == student_id
                    and attempt.exam_config_id == exam_config_id
                    and attempt.status is AttemptStatus.IN_PROGRESS
                ):
                    return copy.deepcopy(attempt)
        return None

    def list_attempts(
        self,
        student_id: str | None = None,
        exam_config_id: str | None = None,
    ) -> list[Attempt]:
        with self._lock:
            matches = [
                copy.deepcopy(attempt)
                for attempt in self._attempts.values()
                if (student_id is None or attempt.student_id == student_id)
                and (exam_config_id is None or attempt.exam_config_id == exam_config_id)
            ]
        return sorted(matches, key=lambda a: a.started_at)

    def list_in_progress(self) -> list[Attempt]:
        with self._lock:
            return [
                copy.deepcopy(attempt)
                for attempt in self._attempts.values()
                if attempt.status is AttemptStatus.IN_PROGRESS
            ]


class JsonAttemptRepository:
    """Stores one JSON document per attempt inside ``attempts_dir``."""

    def __init__(self, attempts_dir: Path) -> None:
        self.attempts_dir = Path(attempts_dir)
        self.attempts_dir.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    def save_attempt(self, attempt: Attempt) -> None:
        target = self._path_for(attempt.id)
        temporary = target.with_suffix(".tmp")
        with self._lock:
            temporary.write_text(json.dumps(attempt_to_dict(attempt)), encoding="utf-8")
            temporary.replace(target)
        logger.debug("Saved attempt %s (version %s)", attempt.id, attempt.version)

    def load_attempt(self, attempt_id: str) -> Attempt | None:
        if not _is_safe_id(attempt_id):
            return None
        path = self._path_for(attempt_id)
        with self._lock:
            if not path.exists():
                return None
            return attempt_from_dict(json.loads(path.read_text(encoding="utf-8")))

    def find_active_attempt(self, student_id: str, exam_config_id: str) -> Attempt | None:
        for attempt in self._iter_attempts():
            if (
                attempt.student_id == student_id
                and attempt.exam_config_id == exam_config_id
                and attempt.status is AttemptStatus.IN_PROGRESS
            ):
                return attempt
        return None

    def list_attempts(
        self,
        student_id: str | None = None,
        exam_config_id: str | None = None,
    ) -> list[Attempt]:
        matches = [
            attempt
            for attempt in self._iter_attempts()
            if (student_id is None or attempt.student_id == student_id)
            and (exam_config_id is None or attempt.exam_config_id == exam_config_id)
        ]
        return sorted(matches, key=lambda a: a.started_at)

    def list_in_progress(self) -> list[Attempt]:
        return [a for a in self._iter_attempts() if a.status is AttemptStatus.IN_PROGRESS]

    def _iter_attempts(self) -> list[Attempt]:
        with self._lock:
            documents = [path.read_text(encoding="utf-8") for path in sorted(self.attempts_dir.glob("*.json"))]
        return [attempt_from_dict(json.loads(document)) for document in documents]

    def _path_for(self, attempt_id: str) -> Path:
        if not _is_safe_id(attempt_id):
            raise ValueError(f"Invalid attempt id: {attempt_id!r}")
        return self.attempts_dir / f"{attempt_id}.json"


def _is_safe_id(attempt_id: str) -> bool:
    return bool(attempt_id) and not attempt_id.startswith(".") and "/" not in attempt_id and "\\" not in attempt_id
