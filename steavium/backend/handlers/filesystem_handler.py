"""
FileSystemHandler module for file operations shared by the store managers.
Covers atomic writes, directory creation and single-file copies.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class FileSystemHandler:

    @staticmethod
    def ensure_directory(path: Path) -> bool:
        """Create path and its parents. False when the folder cannot be made."""
        try:
            path.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Directory ready: {path}")
            return True
        except OSError as e:
            logger.error(f"Cannot create directory {path}: {e}")
            return False

    @staticmethod
    def atomic_write_text(path: Path, content: str, encoding: str = 'utf-8') -> None:
        """
        Replace path with content so readers see either the old or the new file.

        The data goes to a temporary file in the same directory, is flushed to
        disk, then renamed over the target. Raises OSError on failure, leaving
        the original file untouched.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, 'w', encoding=encoding) as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            if path.exists():
                shutil.copymode(path, temp_name)
            os.replace(temp_name, path)
        except BaseException:
            try:
                os.unlink(temp_name)
            except OSError:
                pass
            raise
        logger.debug(f"Wrote {path} atomically")

    @staticmethod
    def copy_file(src: Path, dst: Path) -> Optional[Path]:
        """Copy a single file, returning the destination or None when src is missing."""
        if not src.is_file():
            logger.debug(f"Nothing to copy at {src}")
            return None
        try:
            FileSystemHandler.ensure_directory(dst.parent)
            shutil.copy2(src, dst)
            logger.debug(f"Copied {src} -> {dst}")
            return dst
        except OSError as e:
            logger.error(f"Copy {src} -> {dst} failed: {e}")
            return None
