#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wine Utilities Module
Locates the CrossOver/Wine runtime and runs Windows tools inside a prefix
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .subprocess_utils import (
    DEFAULT_COMMAND_TIMEOUT,
    CommandResult,
    get_clean_subprocess_env,
    run_command,
)
from ..errors import WineRuntimeNotFoundError

# Initialize logger
logger = logging.getLogger(__name__)

CROSSOVER_ROOT = "/Applications/CrossOver.app/Contents/SharedSupport/CrossOver"
CROSSOVER_WRAPPER_WINE = f"{CROSSOVER_ROOT}/CrossOver-Hosted Application/wine"
CROSSOVER_UNIX_WINE = f"{CROSSOVER_ROOT}/lib/wine/x86_64-unix/wine"

CROSSOVER_CANDIDATES = [CROSSOVER_WRAPPER_WINE, CROSSOVER_UNIX_WINE]
WINE_CANDIDATES = [
    "/Applications/Wine Crossover.app/Contents/Resources/wine/bin/wine64",
    "/Applications/Whisky.app/Contents/Resources/wine/bin/wine64",
    "/opt/homebrew/bin/wine64",
    "/opt/homebrew/bin/wine",
    "/usr/local/bin/wine64",
    "/usr/local/bin/wine",
]

WINE_MODES = ("auto", "crossover", "wine")

_SYNC_ENV = {"WINEESYNC": "1", "WINEFSYNC": "1", "WINEMSYNC": "1"}


class WineUtils:
    """
    Utilities for locating and invoking the Wine runtime
    """

    @staticmethod
    def is_executable(path: str) -> bool:
        return os.path.isfile(path) and os.access(path, os.X_OK)

    @staticmethod
    def detect_wine64(wine_mode: str = "auto") -> Optional[str]:
        """
        First usable wine binary for wine_mode (auto, crossover or wine).
        Bundled locations are checked before PATH; crossover mode never
        falls back to PATH.
        """
        if wine_mode == "crossover":
            candidates = CROSSOVER_CANDIDATES
        elif wine_mode == "wine":
            candidates = WINE_CANDIDATES
        else:
            candidates = CROSSOVER_CANDIDATES + WINE_CANDIDATES

        for candidate in candidates:
            if WineUtils.is_executable(candidate):
                logger.debug(f"Found wine runtime at {candidate}")
                return candidate

        if wine_mode != "crossover":
            for executable in ("wine", "wine64"):
                path = shutil.which(executable)
                if path:
                    logger.debug(f"Found wine runtime on PATH: {path}")
                    return path

        logger.debug(f"No wine runtime found (mode: {wine_mode})")
        return None

    @staticmethod
    def find_executable(name: str) -> Optional[str]:
        """PATH lookup followed by the Homebrew and system bin directories."""
        path = shutil.which(name)
        if path:
            return path
        for directory in ("/opt/homebrew/bin", "/usr/local/bin", "/usr/bin"):
            candidate = os.path.join(directory, name)
            if WineUtils.is_executable(candidate):
                return candidate
        return None

    @staticmethod
    def crossover_bottle_name(env_var: str, default_name: str) -> str:
        return os.environ.get(env_var) or default_name

    @staticmethod
    def crossover_bottle_path(bottle_name: str) -> Path:
        return Path.home() / "Library" / "Application Support" / "CrossOver" / "Bottles" / bottle_name

    @staticmethod
    def script_environment(app_home: Path, wine_mode: Optional[str] = None,
                           game_library_path: Optional[str] = None) -> Dict[str, str]:
        """Environment for the runtime scripts and the registry tool."""
        extra = {"STEAVIUM_HOME": str(app_home)}
        if wine_mode:
            extra["STEAVIUM_WINE_MODE"] = wine_mode
        if game_library_path and game_library_path.strip():
            extra["STEAVIUM_GAME_LIBRARY_PATH"] = game_library_path.strip()
        return get_clean_subprocess_env(extra)

    @staticmethod
    def registry_invocation(args: Sequence[str], bottle_name: str, prefix_path: Path, app_home: Path,
                            wine_mode: str = "auto") -> Tuple[List[str], Dict[str, str]]:
        """
        Command line and environment for a Windows tool run inside the store's
        prefix.

        Preference order: CrossOver's unix wine against the bottle, the
        CrossOver wrapper with --bottle, then any detected wine against the
        Steavium prefix. Raises WineRuntimeNotFoundError when none exists.
        """
        env = WineUtils.script_environment(app_home, wine_mode)
        bottle_path = WineUtils.crossover_bottle_path(bottle_name)
        bottle_exists = bottle_path.exists()

        if bottle_exists and WineUtils.is_executable(CROSSOVER_UNIX_WINE):
            env.update(_SYNC_ENV)
            env.update({
                "CX_ROOT": CROSSOVER_ROOT,
                "WINEPREFIX": str(bottle_path),
                "WINEARCH": "win64",
            })
            return [CROSSOVER_UNIX_WINE] + list(args), env

        if bottle_exists and WineUtils.is_executable(CROSSOVER_WRAPPER_WINE):
            env.update(_SYNC_ENV)
            return [CROSSOVER_WRAPPER_WINE, "--no-gui", "--bottle", bottle_name] + list(args), env

        wine = WineUtils.detect_wine64(wine_mode)
        if wine is None:
            raise WineRuntimeNotFoundError()
        env.update(_SYNC_ENV)
        env.update({"WINEPREFIX": str(prefix_path), "WINEARCH": "win64"})
        return [wine] + list(args), env

    @staticmethod
    def run_registry_command(args: Sequence[str], bottle_name: str, prefix_path: Path, app_home: Path,
                             wine_mode: str = "auto",
                             timeout: float = DEFAULT_COMMAND_TIMEOUT) -> CommandResult:
        """Run a reg invocation, raising CommandFailedError on a non-zero exit."""
        cmd, env = WineUtils.registry_invocation(args, bottle_name, prefix_path, app_home, wine_mode)
        return run_command(cmd, env=env, timeout=timeout, check=True)
