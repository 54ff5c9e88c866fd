"""
Logging Handler Module
Per-run log rotation and handler wiring for the steavium package logger.
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import List, Optional

DEFAULT_LOG_FILE = "steavium.log"

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '%(levelname)s: %(message)s'
MAX_LOG_BYTES = 1024 * 1024
SIZE_BACKUPS = 5


def _numbered(path: Path, index: int) -> Path:
    return path.with_name(f"{path.name}.{index}")


class LoggingHandler:
    """
    Owns <app home>/logs/.

    Each store session starts a fresh steavium.log: the previous run moves to
    steavium.log.1 and older runs shift up until backup_count is reached. While
    running, the file handler also rolls over by size. Only errors reach the
    console.
    """
    def __init__(self, log_dir: Optional[Path] = None):
        if log_dir is None:
            from steavium.shared.paths import get_logs_dir
            log_dir = get_logs_dir()
        self.log_dir = Path(log_dir)
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            print(f"Cannot create log folder {self.log_dir}: {e}")

    def rotate_log_for_logger(self, log_file: Optional[str] = None, backup_count: int = 5):
        """Shift the previous runs' logs aside. Attach file handlers only afterwards."""
        current = self.log_dir / (log_file or DEFAULT_LOG_FILE)
        if not current.exists():
            return
        _numbered(current, backup_count).unlink(missing_ok=True)
        for index in reversed(range(1, backup_count)):
            older = _numbered(current, index)
            if older.exists():
                older.rename(_numbered(current, index + 1))
        current.rename(_numbered(current, 1))

    def _has_file_handler(self, logger: logging.Logger, path: Path) -> bool:
        target = os.path.abspath(path)
        return any(
            isinstance(h, logging.handlers.RotatingFileHandler) and getattr(h, 'baseFilename', None) == target
            for h in logger.handlers
        )

    def setup_logger(self, name: str, log_file: Optional[str] = None, is_general: bool = False,
                     level: int = logging.DEBUG) -> logging.Logger:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = False

        # Plain stream handlers only; file handlers subclass StreamHandler.
        if not any(type(h) is logging.StreamHandler for h in logger.handlers):
            stderr = logging.StreamHandler()
            stderr.setLevel(logging.ERROR)
            stderr.setFormatter(logging.Formatter(CONSOLE_FORMAT))
            logger.addHandler(stderr)

        if not (log_file or is_general):
            return logger

        path = self.log_dir / (log_file or DEFAULT_LOG_FILE)
        if not self._has_file_handler(logger, path):
            rolling = logging.handlers.RotatingFileHandler(
                path, mode='a', encoding='utf-8', maxBytes=MAX_LOG_BYTES, backupCount=SIZE_BACKUPS
            )
            rolling.setLevel(level)
            rolling.setFormatter(logging.Formatter(FILE_FORMAT))
            logger.addHandler(rolling)
        return logger

    def get_log_files(self) -> List[Path]:
        """Current logs in the folder, rotated backups excluded."""
        return sorted(self.log_dir.glob("*.log"))
