"""Application entry point for the ExamSession server."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from exam_app.constants.exam_constants import (
    DEFAULT_ATTEMPTS_DIR,
    DEFAULT_EXAM_CATALOG_PATH,
    DEFAULT_QUESTION_BANK_PATH,
    SWEEP_INTERVAL_SECONDS,
)
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.core.exam_manager import ExamManager
from exam_app.core.question_importer import load_questions_from_file
from exam_app.core.result_exporter import save_results_to_file
from exam_app.core.services.attempt_repository import InMemoryAttemptRepository, JsonAttemptRepository
from exam_app.core.services.deadline_sweeper import DeadlineSweeper
from exam_app.core.services.exam_catalog import ExamCatalog, load_exam_configs_from_file
from exam_app.core.services.question_bank import InMemoryQuestionBank
from exam_app.server.api_server import start_api_server
from exam_app.utils.logging_config import configure_logging

logger = logging.getLogger("exam_app.main")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the timed exam attempt server.")
    parser.add_argument("--questions", type=Path, default=Path(DEFAULT_QUESTION_BANK_PATH))
    parser.add_argument("--exams", type=Path, default=Path(DEFAULT_EXAM_CATALOG_PATH))
    parser.add_argument(
        "--attempts-dir",
        type=Path,
        default=Path(DEFAULT_ATTEMPTS_DIR) if DEFAULT_ATTEMPTS_DIR else None,
        help="Directory for attempt JSON files; attempts stay in memory when omitted.",
    )
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--sweep-interval", type=float, default=SWEEP_INTERVAL_SECONDS)
    parser.add_argument(
        "--export-results",
        type=Path,
        default=None,
        metavar="CSV_PATH",
        help="Write a CSV summary of the stored attempts and exit instead of serving.",
    )
    return parser.parse_args(argv)


def build_manager(questions_path: Path, exams_path: Path, attempts_dir: Path | None) -> ExamManager:
    """Load the question bank and exam catalog and wire up the exam manager."""
    bank = InMemoryQuestionBank()
    bank.load_questions(load_questions_from_file(questions_path).questions)
    logger.info("Loaded %d question(s) from %s", bank.get_question_count(), questions_path)

    catalog = ExamCatalog()
    for exam_config in load_exam_configs_from_file(exams_path):
        catalog.publish(exam_config)

    repository = JsonAttemptRepository(attempts_dir) if attempts_dir else InMemoryAttemptRepository()
    return ExamManager(exam_catalog=catalog, question_bank=bank, repository=repository)


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, load exam data, start the sweeper and serve the API."""
    args = _parse_args(argv)
    configure_logging()
    logger.info("Starting ExamSession server")

    manager = build_manager(args.questions, args.exams, args.attempts_dir)
    logger.info(
        "Loaded %d exam(s) from %s",
        len(manager.catalog.list_exam_configs()),
        args.exams,
    )

    if args.export_results is not None:
        attempts = manager.list_attempts()
        if not attempts:
            logger.warning("No stored attempts to export")
            return
        save_results_to_file(args.export_results, attempts)
        logger.info("Exported %d attempt(s) to %s", len(attempts), args.export_results)
        return

    sweeper = DeadlineSweeper(manager, interval_seconds=args.sweep_interval)
    sweeper.start()
    server_thread = start_api_server(exam_manager=manager, host=args.host, port=args.port)
    logger.info("Exam API listening on http://%s:%s/", args.host, args.port)
    try:
        while server_thread.is_alive():
            server_thread.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Shutting down ExamSession server")
    finally:
        sweeper.stop(timeout=2.0)


if __name__ == "__main__":
    main()
