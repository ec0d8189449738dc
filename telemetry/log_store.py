"""Append-only category log files with size-based rotation."""

import fcntl
import logging
import os
import threading
from datetime import datetime, timezone

from telemetry.config import Config
from telemetry.exceptions import UnknownCategoryError
from telemetry.formatter import format_event
from telemetry.models import server_timestamp

logger = logging.getLogger(__name__)

APPLICATION = "application"
ERROR = "error"
DATABASE = "database"
CATEGORIES = (APPLICATION, ERROR, DATABASE)

ROTATED_SUFFIX = ".old"

_EVENT_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.CRITICAL,
}


def rotated_name(filename: str, now: datetime) -> str:
    """``<filename>.<YYYYmmdd_HHMMSS_ffffff>.old`` for a UTC rotation instant."""
    return f"{filename}.{now.strftime('%Y%m%d_%H%M%S_%f')}{ROTATED_SUFFIX}"


class LogStore:
    """One active file per category; a category lock serializes rotate-then-append."""

    def __init__(self, config: Config, time_func=None):
        self._config = config
        self._time_func = time_func or (lambda: datetime.now(timezone.utc))
        self._filenames = {
            APPLICATION: config.app_log_filename,
            ERROR: config.error_log_filename,
            DATABASE: config.db_log_filename,
        }
        self._locks = {category: threading.Lock() for category in CATEGORIES}

    @property
    def log_dir(self) -> str:
        return self._config.log_dir

    def path_for(self, category: str) -> str:
        try:
            filename = self._filenames[category]
        except KeyError:
            raise UnknownCategoryError(f"Unknown log category: {category}") from None
        return os.path.join(self._config.log_dir, filename)

    def _rotate_locked(self, category: str) -> str | None:
        path = self.path_for(category)
        try:
            size = os.path.getsize(path)
        except FileNotFoundError:
            return None
        if size <= self._config.max_file_size_bytes:
            return None

        rotated_path = os.path.join(
            self._config.log_dir,
            rotated_name(self._filenames[category], self._time_func()),
        )
        # rotated files are immutable, never rename over one
        stem = rotated_path[: -len(ROTATED_SUFFIX)]
        n = 1
        while os.path.exists(rotated_path):
            rotated_path = f"{stem}-{n}{ROTATED_SUFFIX}"
            n += 1
        os.rename(path, rotated_path)
        logger.info("Log file rotated to: %s", rotated_path)
        return rotated_path

    def rotate_if_oversize(self, category: str) -> str | None:
        """Rename the active file if it exceeds the size ceiling. Returns the rotated path."""
        self.path_for(category)
        with self._locks[category]:
            return self._rotate_locked(category)

    def append(self, category: str, entry: str) -> str | None:
        """Append one fully formatted entry. Returns the rotated path if rotation happened first."""
        path = self.path_for(category)
        with self._locks[category]:
            os.makedirs(self._config.log_dir, exist_ok=True)
            rotated = self._rotate_locked(category)
            with open(path, "a", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    f.write(entry)
                    f.flush()
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
            return rotated

    def log_event(self, category: str, level: str, message: str) -> bool:
        """Write a one-line event and mirror it to the process logger.

        Returns False when event logging is disabled.
        """
        if not self._config.enabled:
            return False
        level = level.upper()
        logger.log(_EVENT_LEVELS.get(level, logging.INFO), "%s: %s", level, message)
        self.append(category, format_event(level, message, server_timestamp()))
        return True

    def size_of(self, category: str) -> int:
        try:
            return os.path.getsize(self.path_for(category))
        except FileNotFoundError:
            return 0
