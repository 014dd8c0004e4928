# listing_watch/config/logging_config.py

"""Per-run timestamped logging configuration for listing_watch.

Each application launch creates a dedicated log file inside ``logs/``,
named with the launch timestamp (e.g. ``logs/run_20260214_153045.log``).
All ``listing_watch.*`` loggers route through this file handler so that
every component's output lands in the same per-run log.

Components never touch ``sys.stdout``/``sys.stderr`` directly; they
receive a logger (or fall back to a named child of ``listing_watch``).
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from listing_watch.config.settings import Settings

ROOT_LOGGER_NAME = "listing_watch"

# Reusable format strings --------------------------------------------------

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(logs_dir: Path | None = None) -> Path:
    """Initialise the root ``listing_watch`` logger for the current run.

    Returns:
        The :class:`~pathlib.Path` to the log file used for this run.
    """
    logs_dir = logs_dir or Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    # Prevent duplicate handlers on repeated calls (e.g. tests)
    existing = current_log_file()
    if existing is not None:
        return existing

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"run_{timestamp}.log"

    # --- File handler (DEBUG+) -----------------------
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    # --- Console handler (WARNING+) --------------
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    root_logger.info(
        "Logging initialised, log file: %s", log_file
    )

    return log_file


def current_log_file() -> Path | None:
    """Return the file backing the project logger, if one is attached."""
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    return None


def shutdown_logging() -> Path | None:
    """Flush, close and detach every handler on the project logger.

    Writes a closing record first so the per-run file ends with a
    marker.  Returns the path of the log file that was closed.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    log_file = current_log_file()
    if log_file is not None:
        root_logger.info("Log finalised, log file: %s", log_file)

    for handler in list(root_logger.handlers):
        handler.flush()
        handler.close()
        root_logger.removeHandler(handler)

    return log_file
