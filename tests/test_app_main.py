import csv
from pathlib import Path

import app_main
from exam_app.core.models import AttemptStatus

DATA_DIR = Path(__file__).parent.parent / "data"


def _data_args(attempts_dir):
    return [
        "--questions",
        str(DATA_DIR / "questions.txt"),
        "--exams",
        str(DATA_DIR / "exams.json"),
        "--attempts-dir",
        str(attempts_dir),
    ]


def test_build_manager_loads_bundled_data(tmp_path):
    manager = app_main.build_manager(DATA_DIR / "questions.txt", DATA_DIR / "exams.json", tmp_path)

    attempt = manager.start_attempt("s1", "science-quiz")

    assert attempt.status is AttemptStatus.IN_PROGRESS
    assert sorted(attempt.snapshot.ordered_question_ids) == [
        "q-capital",
        "q-earth-round",
        "q-letter",
        "q-radians",
    ]


def test_export_results_writes_csv_and_returns(tmp_path):
    attempts_dir = tmp_path / "attempts"
    manager = app_main.build_manager(DATA_DIR / "questions.txt", DATA_DIR / "exams.json", attempts_dir)
    attempt = manager.start_attempt("s1", "science-quiz")
    manager.answer(attempt.id, "q-capital", "Paris")
    manager.submit(attempt.id)
    target = tmp_path / "results.csv"

    app_main.main(_data_args(attempts_dir) + ["--export-results", str(target)])

    with target.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert [row["attempt_id"] for row in rows] == [attempt.id]
    assert rows[0]["status"] == "submitted"
    assert rows[0]["score"] == "1.0"


def test_export_without_attempts_writes_nothing(tmp_path):
    target = tmp_path / "results.csv"

    app_main.main(_data_args(tmp_path / "attempts") + ["--export-results", str(target)])

    assert not target.exists()
