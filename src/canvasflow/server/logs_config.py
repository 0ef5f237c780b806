"""Log file management and logging setup.

Log files are named ``canvasflow-logs-YYYY-MM-DD-HH-MM-SS.log`` and rotated by
size (``.log.1``, ``.log.2``, ...). Old files are pruned at startup.
"""

import logging
import os
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .settings import LOGS_DIR_ENV_VAR, get_logs_dir

__all__ = [
    "LOGS_DIR_ENV_VAR",
    "cleanup_old_logs",
    "configure_logging",
    "ensure_logs_dir",
    "get_current_log_file",
    "get_logs_dir",
    "get_most_recent_log_file",
]

logger = logging.getLogger(__name__)

LOG_FILE_PREFIX = "canvasflow-logs-"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def ensure_logs_dir() -> Path:
    """Get the logs directory path and ensure it exists."""
    logs_dir = get_logs_dir()
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def get_current_log_file() -> Path:
    """Path of a new log file stamped with the current time."""
    timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
    return get_logs_dir() / f"{LOG_FILE_PREFIX}{timestamp}.log"


def get_most_recent_log_file() -> Path | None:
    """Return the newest base log file, ignoring rotated ``.log.N`` files."""
    logs_dir = get_logs_dir()
    if not logs_dir.exists():
        return None

    log_files = sorted(logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"))
    if not log_files:
        return None
    # Timestamps in the name sort lexicographically
    return log_files[-1]


def cleanup_old_logs(max_age_days: int = 1) -> None:
    """Delete base and rotated log files last modified before the cutoff."""
    logs_dir = get_logs_dir()
    if not logs_dir.exists():
        return

    cutoff = (datetime.now() - timedelta(days=max_age_days)).timestamp()
    deleted = 0
    for log_file in logs_dir.glob(f"{LOG_FILE_PREFIX}*.log*"):
        try:
            if log_file.stat().st_mtime < cutoff:
                log_file.unlink()
                deleted += 1
        except OSError as e:
            logger.warning(f"Failed to delete old log file {log_file}: {e}")

    if deleted:
        logger.info(
            f"Cleaned up {deleted} old log file(s) older than {max_age_days} day(s)"
        )


def configure_logging(log_to_file: bool = True) -> Path | None:
    """Configure root logging for the server and CLI.

    Third-party libraries stay at WARNING; ``canvasflow`` modules log at INFO.
    Returns the log file path when file logging is enabled.
    """
    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(
            handler, RotatingFileHandler
        ):
            handler.setLevel(logging.INFO)

    log_file = None
    if log_to_file:
        ensure_logs_dir()
        cleanup_old_logs(max_age_days=1)
        log_file = get_current_log_file()
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5 MB per file
            backupCount=5,
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(file_handler)

    logging.getLogger("canvasflow").setLevel(logging.INFO)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)

    if os.getenv("VERBOSE_LOGGING"):
        logging.getLogger("canvasflow").setLevel(logging.DEBUG)
        logging.getLogger("uvicorn.access").setLevel(logging.INFO)
        logging.getLogger("fastapi").setLevel(logging.INFO)

    return log_file
