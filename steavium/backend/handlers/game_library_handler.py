#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Game Library Handler Module
Discovers installed games from a store's manifests and ranks the Windows
executables found in each install directory
"""

import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Union

from .keyvalue_handler import KeyValueDocument, KeyValueSyntaxError
from ..models.configuration import LibraryLayout, STEAM_LIBRARY_LAYOUT
from ..models.game import (
    ExecutableCandidate,
    GameLibraryFingerprint,
    InstalledGame,
    ManifestFingerprint,
)

# Initialize logger
logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

MAX_SCAN_DEPTH = 7
MAX_SCAN_ENTRIES = 12_000

# Any relative path containing one of these is skipped with its whole subtree
SKIPPED_PATH_TOKENS = ("redist", "_commonredist", "directx", "vcredist", "support")

DRIVE_C_MARKER = "/drive_c/"

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")
_TOKEN_SPLIT_PATTERN = re.compile(r"[\W_]+")


class GameLibraryScanner:
    """Read-only scans of a store's on-disk library."""

    @staticmethod
    def store_root(executable_path: PathLike) -> Path:
        """Directory containing the store client's executable."""
        return Path(executable_path).parent

    @staticmethod
    def discover_installed_games(root: PathLike,
                                 layout: LibraryLayout = STEAM_LIBRARY_LAYOUT) -> List[InstalledGame]:
        """
        Games described by the manifests under root, sorted by name then app id.

        Manifests that cannot be read or parsed are skipped. A missing manifest
        directory yields an empty list.
        """
        manifest_dir = Path(root) / layout.manifest_directory
        games = []
        for manifest_path in GameLibraryScanner._manifest_paths(manifest_dir, layout):
            try:
                content = manifest_path.read_text(encoding='utf-8')
            except (OSError, UnicodeDecodeError) as e:
                logger.debug(f"Skipping unreadable manifest {manifest_path}: {e}")
                continue

            try:
                manifest = GameLibraryScanner.parse_manifest(content, layout)
            except KeyValueSyntaxError as e:
                logger.debug(f"Skipping invalid manifest {manifest_path}: {e}")
                continue
            if manifest is None:
                logger.debug(f"Skipping incomplete manifest {manifest_path}")
                continue

            app_id, name, install_dir_name = manifest
            install_dir = manifest_dir / layout.common_directory / install_dir_name
            candidates = GameLibraryScanner.executable_candidates(install_dir, name)
            games.append(InstalledGame(
                app_id=app_id,
                name=name,
                install_directory_path=str(install_dir),
                executable_candidates=tuple(candidates),
                default_executable_relative_path=candidates[0].relative_path if candidates else None,
            ))

        games.sort(key=lambda game: (game.name.casefold(), game.app_id))
        logger.debug(f"Discovered {len(games)} installed games under {root}")
        return games

    @staticmethod
    def parse_manifest(content: str, layout: LibraryLayout = STEAM_LIBRARY_LAYOUT):
        """
        Extract (app_id, name, install_dir) from manifest text.

        Returns None when a field is missing or the app id is not an integer.
        Raises KeyValueSyntaxError for malformed text.
        """
        document = KeyValueDocument.parse(content)
        app_state = document.value([layout.manifest_root_key])
        if not isinstance(app_state, list):
            return None
        state = KeyValueDocument(entries=app_state)
        app_id_text = state.string(["appid"])
        name = state.string(["name"])
        install_dir = state.string(["installdir"])
        if app_id_text is None or name is None or install_dir is None:
            return None
        if not _INTEGER_PATTERN.fullmatch(app_id_text):
            return None
        return int(app_id_text), name, install_dir

    @staticmethod
    def locate_config_files(root: PathLike, layout: LibraryLayout = STEAM_LIBRARY_LAYOUT) -> List[Path]:
        """Existing per-user config files (userdata/<user>/config/localconfig.vdf), sorted by path."""
        user_data = Path(root) / layout.user_data_directory
        try:
            user_dirs = [entry for entry in user_data.iterdir() if not entry.name.startswith('.')]
        except OSError:
            return []

        configs = []
        for user_dir in user_dirs:
            config = user_dir.joinpath(*layout.user_config_file)
            if config.is_file():
                configs.append(config)
        return sorted(configs, key=str)

    @staticmethod
    def resolve_windows_path(unix_path: str) -> Optional[str]:
        """Translate a path inside a prefix's drive_c into a C:\\ path, or None."""
        index = unix_path.find(DRIVE_C_MARKER)
        if index < 0:
            return None
        relative = unix_path[index + len(DRIVE_C_MARKER):]
        return "C:\\" + relative.replace("/", "\\")

    @staticmethod
    def library_fingerprint(root: PathLike,
                            layout: LibraryLayout = STEAM_LIBRARY_LAYOUT) -> GameLibraryFingerprint:
        """Name, mtime and size of every manifest; unchanged fingerprints mean an unchanged library."""
        manifest_dir = Path(root) / layout.manifest_directory
        manifests = []
        for manifest_path in GameLibraryScanner._manifest_paths(manifest_dir, layout):
            try:
                stat = manifest_path.stat()
            except OSError:
                continue
            manifests.append(ManifestFingerprint(
                file_name=manifest_path.name,
                modification_time=stat.st_mtime,
                size=stat.st_size,
            ))
        return GameLibraryFingerprint(root_path=str(root), manifests=tuple(manifests))

    @staticmethod
    def executable_candidates(install_dir: PathLike, game_name: str) -> List[ExecutableCandidate]:
        """
        Score every .exe under install_dir, best first.

        The walk is bounded by depth and entry count, never leaves the
        canonical install directory and skips hidden entries and
        redistributable subtrees.
        """
        install_dir = str(install_dir)
        if not os.path.isdir(install_dir):
            return []

        canonical_root = os.path.realpath(install_dir)
        tokens = GameLibraryScanner.name_tokens(game_name)
        install_dir_name = os.path.basename(os.path.normpath(install_dir)).lower()

        candidates = []
        scanned = 0
        pending = [install_dir]
        while pending:
            directory = pending.pop()
            try:
                with os.scandir(directory) as iterator:
                    entries = sorted(iterator, key=lambda entry: entry.name)
            except OSError as e:
                logger.debug(f"Cannot list {directory}: {e}")
                continue

            subdirectories = []
            for entry in entries:
                if entry.name.startswith('.'):
                    continue
                scanned += 1
                if scanned > MAX_SCAN_ENTRIES:
                    logger.debug(f"Entry limit reached while scanning {install_dir}")
                    pending = []
                    break

                canonical = os.path.realpath(entry.path)
                if not canonical.startswith(canonical_root + os.sep):
                    continue
                relative = canonical[len(canonical_root) + 1:]
                if len(relative.split(os.sep)) > MAX_SCAN_DEPTH:
                    continue
                lower_relative = relative.lower()
                if any(token in lower_relative for token in SKIPPED_PATH_TOKENS):
                    continue

                try:
                    if entry.is_dir(follow_symlinks=False):
                        subdirectories.append(entry.path)
                        continue
                    is_file = entry.is_file()
                except OSError:
                    continue
                if is_file and lower_relative.endswith('.exe'):
                    candidates.append(ExecutableCandidate(
                        relative_path=relative,
                        absolute_path=canonical,
                        score=GameLibraryScanner.score_executable(relative, tokens, install_dir_name),
                    ))
            pending.extend(reversed(subdirectories))

        candidates.sort(key=lambda c: (-c.score, len(c.relative_path), c.relative_path.casefold()))
        return candidates

    @staticmethod
    def name_tokens(game_name: str) -> List[str]:
        """Lowercased alphanumeric runs of at least three characters."""
        return [token for token in _TOKEN_SPLIT_PATTERN.split(game_name.lower()) if len(token) >= 3]

    @staticmethod
    def score_executable(relative_path: str, tokens: List[str], install_dir_name: str) -> int:
        """Heuristic likelihood that relative_path is the game's main executable."""
        lower_path = relative_path.lower()
        file_name = os.path.basename(lower_path)
        base_name = os.path.splitext(file_name)[0]
        depth = len([part for part in relative_path.split(os.sep) if part])

        score = 100 - depth * 5
        if base_name == install_dir_name:
            score += 80
        if base_name == "game":
            score += 20
        if "shipping" in file_name:
            score += 18
        if "launcher" in file_name:
            score -= 24
        if "unins" in file_name:
            score -= 90
        if "crash" in file_name or "report" in file_name or "helper" in file_name:
            score -= 45
        if "anticheat" in lower_path:
            score -= 50
        if "redist" in lower_path or "support" in lower_path:
            score -= 70

        score += 15 * sum(1 for token in tokens if token in base_name)
        return score

    @staticmethod
    def _manifest_paths(manifest_dir: Path, layout: LibraryLayout) -> List[Path]:
        try:
            entries = list(manifest_dir.iterdir())
        except OSError:
            return []
        suffix = f".{layout.manifest_extension}"
        manifests = [
            entry for entry in entries
            if entry.name.startswith(layout.manifest_prefix)
            and entry.suffix.lower() == suffix
            and entry.is_file()
        ]
        return sorted(manifests, key=lambda entry: entry.name)
