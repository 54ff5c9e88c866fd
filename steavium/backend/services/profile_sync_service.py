#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Profile Sync Service Module
Reconciles saved compatibility profiles into the store client's launch
options and the prefix's compatibility-layer registry values
"""

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from ..errors import LocalConfigUnreadableError, LocalConfigWriteError, StoreManagerError
from ..handlers.filesystem_handler import FileSystemHandler
from ..handlers.game_library_handler import GameLibraryScanner
from ..handlers.keyvalue_handler import KeyValueDocument, KeyValueSyntaxError, splice_string
from ..handlers.launch_options_handler import LaunchOptionsComposer
from ..handlers.registry_handler import CompatibilityLayerRegistry
from ..handlers.subprocess_utils import CommandError
from ..models.configuration import LibraryLayout, STEAM_LIBRARY_LAYOUT
from ..models.game import InstalledGame
from ..models.profile import CompatibilityProfile

logger = logging.getLogger(__name__)

# Failures of one item are reported and the remaining items still run
SYNC_ERRORS = (CommandError, StoreManagerError, OSError)


class ProfileSynchronizer:
    """
    Applies profiles to both external stores of truth and reports what
    changed as human-readable lines. Never raises for a per-game failure.
    """

    def __init__(self, registry: CompatibilityLayerRegistry,
                 layout: LibraryLayout = STEAM_LIBRARY_LAYOUT, store_name: str = "Steam"):
        self.registry = registry
        self.layout = layout
        self.store_name = store_name

    def synchronize(self, store_root: Optional[Path], games: Iterable[InstalledGame],
                    profiles_by_app_id: Mapping[int, CompatibilityProfile],
                    target_app_ids: Iterable[int],
                    removed_profiles: Optional[Mapping[int, CompatibilityProfile]] = None) -> List[str]:
        """
        Synchronize every app id in target_app_ids.

        removed_profiles holds tombstones of just-deleted profiles so their
        executable can still be found to clear its registry flags.
        """
        target_app_ids = sorted(set(target_app_ids))
        if not target_app_ids:
            return []
        removed_profiles = removed_profiles or {}

        if store_root is None:
            return [f"{self.store_name} not found: profile saved and will be applied "
                    f"when {self.store_name} is available."]

        games_by_app_id = {game.app_id: game for game in games}
        config_files = GameLibraryScanner.locate_config_files(store_root, self.layout)

        output: List[str] = []
        registry_values: Dict[str, str] = {}
        try:
            registry_values = self.registry.query_all()
        except SYNC_ERRORS as e:
            self._report(output, f"[CompatLayer] Failed to read current registry state: {e}")
        if not config_files:
            config_name = self.layout.user_config_file[-1]
            self._report(output, f"{config_name} not found ({self.store_name} has not been signed into yet).")

        for app_id in target_app_ids:
            active_profile = profiles_by_app_id.get(app_id)
            profile_for_executable = active_profile or removed_profiles.get(app_id)
            force_windowed = active_profile.force_windowed if active_profile else False

            for config_file in config_files:
                try:
                    if self.synchronize_launch_options(app_id, force_windowed, config_file):
                        self._report(output, f"[LaunchOptions] AppID {app_id} updated in {config_file}.")
                except SYNC_ERRORS as e:
                    self._report(output, f"[LaunchOptions] AppID {app_id} failed in {config_file}: {e}")

            if profile_for_executable is None:
                continue

            try:
                line = self.synchronize_compatibility_layer(
                    app_id, games_by_app_id.get(app_id), profile_for_executable, active_profile, registry_values
                )
            except SYNC_ERRORS as e:
                line = f"[CompatLayer] AppID {app_id} error: {e}"
            if line:
                self._report(output, line)

        return output

    def synchronize_launch_options(self, app_id: int, force_windowed: bool, config_file: Path) -> bool:
        """Rewrite the app's launch options in one config file. Returns True when the file changed."""
        try:
            content = Path(config_file).read_text(encoding='utf-8')
            document = KeyValueDocument.parse(content)
        except (OSError, UnicodeDecodeError, KeyValueSyntaxError) as e:
            logger.debug(f"Cannot read {config_file}: {e}")
            raise LocalConfigUnreadableError(str(config_file)) from e

        path = self.layout.launch_options_path(app_id)
        existing = document.string(path) or ""
        merged = LaunchOptionsComposer.merge(existing, LaunchOptionsComposer.managed_segment(force_windowed))
        if merged == existing:
            return False

        updated = splice_string(content, path, merged or None)
        if updated == content:
            return False
        try:
            FileSystemHandler.atomic_write_text(Path(config_file), updated)
        except OSError as e:
            logger.debug(f"Cannot write {config_file}: {e}")
            raise LocalConfigWriteError(str(config_file)) from e
        return True

    def synchronize_compatibility_layer(self, app_id: int, game: Optional[InstalledGame],
                                        profile_for_executable: CompatibilityProfile,
                                        active_profile: Optional[CompatibilityProfile],
                                        registry_values: Dict[str, str]) -> Optional[str]:
        """
        Bring the registry flags of the game's executable in line with
        active_profile (no active profile means clear them). registry_values
        is updated in place after every write.
        """
        executable = self.resolve_executable_path(game, profile_for_executable.executable_relative_path)
        if executable is None:
            if active_profile is None or active_profile.compatibility_layer_flags:
                return f"[CompatLayer] AppID {app_id}: could not resolve executable to apply flags."
            return None

        windows_path = GameLibraryScanner.resolve_windows_path(executable)
        if windows_path is None:
            return f"[CompatLayer] AppID {app_id}: path outside drive_c, not applicable."

        current = CompatibilityLayerRegistry.normalized_flag_set(
            CompatibilityLayerRegistry.current_flags(registry_values, windows_path) or ""
        )
        desired = active_profile.compatibility_layer_flags if active_profile else []

        if not desired:
            if not current:
                return None
            self.registry.remove_flags(windows_path)
            CompatibilityLayerRegistry.forget(registry_values, windows_path)
            return f"[CompatLayer] AppID {app_id}: compatibility flags removed."

        if current == set(desired):
            return None
        value = CompatibilityLayerRegistry.join_flags(desired)
        self.registry.set_flags(windows_path, value)
        CompatibilityLayerRegistry.forget(registry_values, windows_path)
        registry_values[windows_path] = value
        return f"[CompatLayer] AppID {app_id}: flags applied ({value})."

    @staticmethod
    def resolve_executable_path(game: Optional[InstalledGame], selected_relative: Optional[str]) -> Optional[str]:
        """Selected executable if it exists, else the game's default candidate if that exists."""
        if game is None:
            return None
        selected = (selected_relative or "").strip()
        if selected:
            path = os.path.join(game.install_directory_path, selected)
            if os.path.exists(path):
                return path
        if game.default_executable_relative_path:
            path = os.path.join(game.install_directory_path, game.default_executable_relative_path)
            if os.path.exists(path):
                return path
        return None

    @staticmethod
    def _report(output: List[str], line: str) -> None:
        logger.info(line)
        output.append(line)
