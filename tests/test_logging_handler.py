import logging
import logging.handlers
from pathlib import Path

import pytest

from steavium.backend.handlers.logging_handler import DEFAULT_LOG_FILE, LoggingHandler


@pytest.fixture
def clean_logger():
    """Yield a logger name and detach whatever handlers the test attached."""
    name = "steavium.tests.logging"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_default_log_directory(tmp_path: Path) -> None:
    handler = LoggingHandler()
    assert handler.log_dir == tmp_path / "steavium-home" / "logs"
    assert handler.log_dir.is_dir()


def test_setup_logger_writes_to_file_once(tmp_path: Path, clean_logger: str) -> None:
    handler = LoggingHandler(tmp_path / "logs")

    logger = handler.setup_logger(clean_logger, is_general=True)
    handler.setup_logger(clean_logger, is_general=True)
    logger.info("profile saved")

    file_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].maxBytes == 1024 * 1024
    assert len([h for h in logger.handlers if type(h) is logging.StreamHandler]) == 1
    for h in file_handlers:
        h.flush()
    assert "profile saved" in (tmp_path / "logs" / DEFAULT_LOG_FILE).read_text(encoding="utf-8")
    assert handler.get_log_files() == [tmp_path / "logs" / DEFAULT_LOG_FILE]


def test_rotate_per_run_keeps_backups(tmp_path: Path) -> None:
    handler = LoggingHandler(tmp_path)
    log_file = tmp_path / DEFAULT_LOG_FILE

    for run in range(4):
        log_file.write_text(f"run {run}\n", encoding="utf-8")
        handler.rotate_log_for_logger(backup_count=2)

    assert not log_file.exists()
    assert (tmp_path / f"{DEFAULT_LOG_FILE}.1").read_text(encoding="utf-8") == "run 3\n"
    assert (tmp_path / f"{DEFAULT_LOG_FILE}.2").read_text(encoding="utf-8") == "run 2\n"
    assert not (tmp_path / f"{DEFAULT_LOG_FILE}.3").exists()
