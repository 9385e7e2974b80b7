# src/config/logging_config.py

"""Run-scoped logging for the baybot feed engine.

Every module logs under ``baybot.<area>`` (``baybot.ebay``,
``baybot.curated``, ``baybot.cache`` ...). ``setup_logging`` attaches
two handlers to the ``baybot`` parent logger: a DEBUG file named after
the launch time under ``Settings.LOGS_DIR`` and a WARNING console
stream. Dropped AI ids, corrupt cache entries and skipped keywords are
all WARNING records, so they surface on the console as well as in the
run log.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

LOGGER_NAME = "baybot"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | "
    "%(message)s"
)
_CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _configure(
    handler: logging.Handler, level: int, fmt: str,
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=_DATE_FORMAT))
    return handler


def run_log_path(started: datetime | None = None) -> Path:
    """Path of the log file for a run started at ``started``."""
    stamp = (started or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return Settings.LOGS_DIR / f"run_{stamp}.log"


def setup_logging() -> Path:
    """Attach the run's file and console handlers to ``baybot``.

    Safe to call more than once; handlers are only attached the first
    time. Returns the run's log file path.
    """
    log_file = run_log_path()
    project_logger = logging.getLogger(LOGGER_NAME)
    project_logger.setLevel(logging.DEBUG)
    if project_logger.handlers:
        return log_file

    log_file.parent.mkdir(parents=True, exist_ok=True)
    for handler in (
        _configure(
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.DEBUG,
            _FILE_FORMAT,
        ),
        _configure(
            logging.StreamHandler(sys.stderr),
            logging.WARNING,
            _CONSOLE_FORMAT,
        ),
    ):
        project_logger.addHandler(handler)

    project_logger.info("Run log opened at %s", log_file)
    return log_file
