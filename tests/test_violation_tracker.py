from exam_app.core.models import Attempt, AttemptSnapshot, AttemptStatus, SecuritySettings, ViolationType
from exam_app.core.services.violation_tracker import (
    GraceWarningsPolicy,
    SubmitOnBreachPolicy,
    ViolationTracker,
)

from conftest import T0


def _attempt(exam_config, status=AttemptStatus.IN_PROGRESS):
    return Attempt(
        id="a1",
        exam_config=exam_config,
        student_id="s1",
        snapshot=AttemptSnapshot(ordered_question_ids=(), option_orders={}, seed=0),
        started_at=T0,
        deadline_at=T0,
        status=status,
    )


def _record(tracker, attempt, violation_type=ViolationType.TAB_SWITCH):
    return tracker.record(attempt, violation_type, T0, T0)


def test_third_tab_switch_breaches_limit_of_three(make_exam):
    attempt = _attempt(make_exam(security=SecuritySettings(max_tab_switches=3)))
    tracker = ViolationTracker()

    first = _record(tracker, attempt)
    second = _record(tracker, attempt)
    third = _record(tracker, attempt)

    assert (first.threshold_breached, second.threshold_breached, third.threshold_breached) == (False, False, True)
    assert second.tab_switches_remaining == 1
    assert third.tab_switches_remaining == 0
    assert attempt.tab_switch_count == 3
    assert len(attempt.violations) == 3


def test_other_violation_types_are_logged_without_counting(make_exam):
    attempt = _attempt(make_exam(security=SecuritySettings(max_tab_switches=1)))
    tracker = ViolationTracker()

    for violation_type in (ViolationType.COPY_ATTEMPT, ViolationType.RIGHT_CLICK, ViolationType.FULLSCREEN_EXIT):
        outcome = _record(tracker, attempt, violation_type)
        assert outcome.accepted
        assert not outcome.threshold_breached

    assert attempt.tab_switch_count == 0
    assert [v.type for v in attempt.violations] == [
        ViolationType.COPY_ATTEMPT,
        ViolationType.RIGHT_CLICK,
        ViolationType.FULLSCREEN_EXIT,
    ]


def test_no_limit_never_breaches(make_exam):
    attempt = _attempt(make_exam(security=SecuritySettings(max_tab_switches=0)))
    tracker = ViolationTracker()
    outcomes = [_record(tracker, attempt) for _ in range(10)]
    assert not any(o.threshold_breached for o in outcomes)
    assert outcomes[-1].tab_switches_remaining is None


def test_closed_attempt_rejects_violations(make_exam):
    attempt = _attempt(make_exam(), status=AttemptStatus.SUBMITTED)
    outcome = _record(ViolationTracker(), attempt)
    assert not outcome.accepted
    assert attempt.violations == []
    assert attempt.tab_switch_count == 0


def test_grace_policy_waits_for_extra_switches(make_exam):
    attempt = _attempt(make_exam(security=SecuritySettings(max_tab_switches=2)))
    tracker = ViolationTracker()
    policy = GraceWarningsPolicy(extra_warnings=2)

    decisions = [policy.should_auto_submit(attempt, _record(tracker, attempt)) for _ in range(4)]

    assert decisions == [False, False, False, True]
    assert SubmitOnBreachPolicy().should_auto_submit(attempt, _record(tracker, attempt))
