"""Static metadata describing ExamSession."""

APP_NAME = "ExamSession"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "ExamSession runs timed online exam attempts: it prepares a frozen question set per "
    "student, keeps the authoritative clock, tracks client-reported integrity violations "
    "and grades every attempt exactly once."
)
