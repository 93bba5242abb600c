import time

import pytest

from exam_app.core.models import AttemptStatus
from exam_app.core.services.deadline_sweeper import DeadlineSweeper


def test_run_once_expires_due_attempts(build_manager, fake_time):
    manager = build_manager()
    attempt = manager.start_attempt("s1", "exam-1")
    sweeper = DeadlineSweeper(manager, interval_seconds=1)

    assert sweeper.run_once() == []
    fake_time.advance(61)
    assert sweeper.run_once() == [attempt.id]
    assert manager.get_attempt(attempt.id).status is AttemptStatus.EXPIRED


def test_background_thread_sweeps_until_stopped(build_manager, fake_time):
    manager = build_manager()
    attempt = manager.start_attempt("s1", "exam-1")
    fake_time.advance(61)

    sweeper = DeadlineSweeper(manager, interval_seconds=0.01)
    thread = sweeper.start()
    assert sweeper.start() is thread

    deadline = time.monotonic() + 5
    while manager.list_attempts()[0].status is AttemptStatus.IN_PROGRESS and time.monotonic() < deadline:
        time.sleep(0.01)
    sweeper.stop(timeout=1)

    assert not thread.is_alive()
    assert manager.list_attempts()[0].status is AttemptStatus.EXPIRED
    assert manager.list_attempts()[0].id == attempt.id


def test_interval_must_be_positive(build_manager):
    with pytest.raises(ValueError):
        DeadlineSweeper(build_manager(), interval_seconds=0)
