"""
Path helpers for the Steavium application home.
"""

import os
from pathlib import Path
from typing import Optional

APP_HOME_ENV_VAR = "STEAVIUM_HOME"


def get_app_home() -> Path:
    """
    Application home directory.

    STEAVIUM_HOME overrides the default
    ~/Library/Application Support/Steavium.
    """
    override = os.environ.get(APP_HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / "Library" / "Application Support" / "Steavium"


def _home(app_home: Optional[Path]) -> Path:
    return Path(app_home) if app_home is not None else get_app_home()


def get_logs_dir(app_home: Optional[Path] = None) -> Path:
    return _home(app_home) / "logs"


def get_settings_dir(app_home: Optional[Path] = None) -> Path:
    return _home(app_home) / "settings"


def get_cache_dir(app_home: Optional[Path] = None) -> Path:
    return _home(app_home) / "cache"


def get_scripts_dir(app_home: Optional[Path] = None) -> Path:
    return _home(app_home) / "runtime" / "scripts"


def get_prefix_dir(prefix_directory: str, app_home: Optional[Path] = None) -> Path:
    """Wine prefix of one store backend, e.g. prefixes/steam."""
    return _home(app_home) / "prefixes" / prefix_directory
