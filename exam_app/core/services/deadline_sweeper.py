"""Background thread that reclaims attempts abandoned past their deadline."""

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import TYPE_CHECKING

from exam_app.constants.exam_constants import SWEEP_INTERVAL_SECONDS

if TYPE_CHECKING:
    from exam_app.core.exam_manager import ExamManager

logger = logging.getLogger(__name__)


class DeadlineSweeper:
    """Periodically asks the exam manager to expire overdue attempts."""

    def __init__(self, manager: "ExamManager", interval_seconds: float = SWEEP_INTERVAL_SECONDS) -> None:
        if interval_seconds <= 0:
            raise ValueError("Sweep interval must be positive.")
        self._manager = manager
        self._interval = interval_seconds
        self._stop_event = Event()
        self._thread: Thread | None = None

    def start(self) -> Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop_event.clear()
        self._thread = Thread(target=self._run, name="DeadlineSweeper", daemon=True)
        self._thread.start()
        logger.info("Deadline sweeper running every %.1fs", self._interval)
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_once(self) -> list[str]:
        return self._manager.sweep_expired()

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.run_once()
            except Exception:  # keep the thread alive; the next tick retries
                logger.exception("Deadline sweep failed")
