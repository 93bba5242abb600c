"""Utilities for exporting attempt results for review and analytics."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable

from exam_app.core.models import Attempt

_FIELDNAMES = (
    "attempt_id",
    "exam_id",
    "exam_version",
    "student_id",
    "status",
    "completion_reason",
    "started_at",
    "submitted_at",
    "time_spent_seconds",
    "score",
    "total_points",
    "percentage",
    "passed",
    "tab_switch_count",
    "violation_count",
    "needs_reconciliation",
)


def attempt_summary(attempt: Attempt) -> dict[str, object]:
    """Flatten an attempt into one export row."""
    result = attempt.result
    return {
        "attempt_id": attempt.id,
        "exam_id": attempt.exam_config_id,
        "exam_version": attempt.exam_config.version,
        "student_id": attempt.student_id,
        "status": attempt.status.value,
        "completion_reason": attempt.completion_reason or "",
        "started_at": attempt.started_at.isoformat(),
        "submitted_at": attempt.submitted_at.isoformat() if attempt.submitted_at else "",
        "time_spent_seconds": attempt.time_spent_seconds if attempt.time_spent_seconds is not None else "",
        "score": result.score if result else "",
        "total_points": result.total_points if result else "",
        "percentage": result.percentage if result else "",
        "passed": result.passed if result else "",
        "tab_switch_count": attempt.tab_switch_count,
        "violation_count": len(attempt.violations),
        "needs_reconciliation": attempt.needs_reconciliation,
    }


def export_results_csv(attempts: Iterable[Attempt]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=_FIELDNAMES)
    writer.writeheader()
    for attempt in attempts:
        writer.writerow(attempt_summary(attempt))
    return output.getvalue()


def save_results_to_file(file_path: Path, attempts: list[Attempt]) -> None:
    """Persist attempt summaries to disk as CSV."""

    if not attempts:
        raise ValueError("Cannot export an empty result set.")

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(export_results_csv(attempts), encoding="utf-8", newline="")
