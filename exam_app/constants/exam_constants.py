"""Exam-related constants shared across core and server layers."""

TRUE_FALSE_OPTIONS: tuple[str, str] = ("True", "False")
PERCENTAGE_DECIMALS: int = 1
SWEEP_INTERVAL_SECONDS: float = 5.0
DEFAULT_QUESTION_BANK_PATH: str = "data/questions.txt"
DEFAULT_EXAM_CATALOG_PATH: str = "data/exams.json"
DEFAULT_ATTEMPTS_DIR: str | None = None  # None keeps attempts in memory
TAB_SWITCH_LIMIT_REASON: str = "tab_switch_limit"
CLIENT_AUTO_SUBMIT_REASON: str = "client_auto_submit"
TIME_UP_REASON: str = "time_up"
STUDENT_SUBMIT_REASON: str = "student_submit"
