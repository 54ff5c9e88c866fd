#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration Handler Module
Persistent Steavium settings in <app home>/settings/config.json
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from packaging import version

from .filesystem_handler import FileSystemHandler
from .subprocess_utils import DEFAULT_COMMAND_TIMEOUT
from .wine_utils import WINE_MODES
from steavium.shared.paths import get_settings_dir

logger = logging.getLogger(__name__)

CONFIG_VERSION = "0.1.0"

# Runtime and store installers download large payloads
DEFAULT_SCRIPT_TIMEOUT = 3600


class ConfigHandler:
    """Typed access to config.json. One instance per store manager."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Start from defaults, overlay the saved file, then bring it up to CONFIG_VERSION."""
        self.config_dir = Path(config_dir) if config_dir is not None else get_settings_dir()
        self.config_file = self.config_dir / "config.json"
        self.settings = self.default_settings()

        self._load_config()
        self._migrate_config()

    @staticmethod
    def default_settings() -> Dict[str, Any]:
        return {
            "version": CONFIG_VERSION,
            "wine_mode": "auto",  # "auto", "crossover" or "wine"
            "crossover_bottles": {},  # backend value -> bottle name override
            "subprocess_timeout_seconds": DEFAULT_COMMAND_TIMEOUT,
            "script_timeout_seconds": DEFAULT_SCRIPT_TIMEOUT,
            "game_library_path": None,  # Passed to setup/launch scripts when set
            "log_level": "INFO",
        }

    def _load_config(self):
        """Load configuration from file, keeping defaults for missing keys."""
        if not self.config_file.exists():
            logger.debug(f"{self.config_file} not found, running on defaults")
            return
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                saved_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Unreadable configuration {self.config_file}: {e}")
            return
        if not isinstance(saved_config, dict):
            logger.error(f"Ignoring configuration file {self.config_file}: not a JSON object")
            return
        # Saved values win; a file without a version predates versioning
        self.settings.update(saved_config)
        if "version" not in saved_config:
            self.settings["version"] = "0.0.0"
        logger.debug(f"Loaded settings from {self.config_file}")

    def _migrate_config(self):
        """
        Upgrade settings written by older releases.
        Newer files are left untouched; upgraded ones are saved straight away.
        """
        current_version = str(self.settings.get("version") or "0.0.0")
        if current_version == CONFIG_VERSION:
            return

        try:
            current = version.parse(current_version)
        except version.InvalidVersion:
            logger.warning(f"Unrecognised config version {current_version!r}, treating as 0.0.0")
            current = version.parse("0.0.0")

        if current > version.parse(CONFIG_VERSION):
            logger.warning(f"Config version {current_version} is newer than {CONFIG_VERSION}; leaving it as is")
            return

        logger.info(f"Migrating config from {current_version} to {CONFIG_VERSION}")

        # Only one settings layout exists so far; older files just get the version stamp
        self.settings["version"] = CONFIG_VERSION
        self.save_config()
        logger.info(f"Settings now at version {CONFIG_VERSION}")

    def reload_config(self):
        """Re-read config.json, discarding unsaved in-memory changes."""
        self.settings = self.default_settings()
        self._load_config()
        self._migrate_config()

    def save_config(self) -> bool:
        """Write settings atomically. False when the file cannot be written."""
        try:
            FileSystemHandler.atomic_write_text(self.config_file, json.dumps(self.settings, indent=2) + "\n")
            logger.debug(f"Saved settings to {self.config_file}")
            return True
        except OSError as e:
            logger.error(f"Cannot write {self.config_file}: {e}")
            return False

    def get(self, key, default=None):
        return self.settings.get(key, default)

    def set(self, key, value):
        self.settings[key] = value
        return True

    def update(self, settings_dict):
        """In-memory only; call save_config to persist."""
        self.settings.update(settings_dict)
        return True

    def get_wine_mode(self) -> str:
        mode = str(self.settings.get("wine_mode") or "auto").lower()
        if mode not in WINE_MODES:
            logger.warning(f"Unknown wine_mode '{mode}', using auto")
            return "auto"
        return mode

    def set_wine_mode(self, mode: str) -> bool:
        if mode not in WINE_MODES:
            logger.error(f"Invalid wine_mode '{mode}'; expected one of {', '.join(WINE_MODES)}")
            return False
        self.settings["wine_mode"] = mode
        return self.save_config()

    def get_subprocess_timeout(self) -> float:
        value = self.settings.get("subprocess_timeout_seconds", DEFAULT_COMMAND_TIMEOUT)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            logger.warning(f"Invalid subprocess_timeout_seconds {value!r}, using {DEFAULT_COMMAND_TIMEOUT}")
            return DEFAULT_COMMAND_TIMEOUT
        return value

    def get_crossover_bottle(self, backend_value: str) -> Optional[str]:
        bottles = self.settings.get("crossover_bottles") or {}
        if not isinstance(bottles, dict):
            return None
        return bottles.get(backend_value) or None

    def get_game_library_path(self) -> Optional[str]:
        path = self.settings.get("game_library_path")
        if isinstance(path, str) and path.strip():
            return os.path.expanduser(path.strip())
        return None

    def get_log_level(self) -> int:
        level = logging.getLevelName(str(self.settings.get("log_level", "INFO")).upper())
        return level if isinstance(level, int) else logging.INFO

    def get_script_timeout(self) -> float:
        value = self.settings.get("script_timeout_seconds", DEFAULT_SCRIPT_TIMEOUT)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            logger.warning(f"Invalid script_timeout_seconds {value!r}, using {DEFAULT_SCRIPT_TIMEOUT}")
            return DEFAULT_SCRIPT_TIMEOUT
        return value
