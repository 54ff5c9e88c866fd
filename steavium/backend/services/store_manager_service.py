#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Store Manager Service Module
One manager per store backend: environment snapshot, game library,
compatibility profiles, runtime scripts and diagnostics
"""

import logging
import re
import shutil
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import psutil

from ..errors import (
    DataWipeSelectionRequiredError,
    HomebrewNotFoundError,
    MissingScriptError,
    PreflightBlockingError,
    StoreAlreadyRunningError,
    WineRuntimeNotFoundError,
)
from ..handlers.config_handler import ConfigHandler
from ..handlers.filesystem_handler import FileSystemHandler
from ..handlers.game_library_handler import GameLibraryScanner
from ..handlers.logging_handler import DEFAULT_LOG_FILE, LoggingHandler
from ..handlers.profile_store_handler import ProfileStore, ProfileStoreError
from ..handlers.registry_handler import CompatibilityLayerRegistry, RegistryRunner
from ..handlers.subprocess_utils import CommandResult, ProcessManager, run_command
from ..handlers.wine_utils import WineUtils
from ..models.configuration import (
    GraphicsBackend,
    STEAM_CONFIG,
    StoreBackendConfig,
    StoreEnvironment,
    StoreRunningPolicy,
)
from ..models.game import GameLibraryFingerprint, GameLibraryState, InstalledGame
from ..models.preflight import PreflightReport
from ..models.profile import CompatibilityProfile
from .preflight_service import PreflightService, detect_homebrew
from .profile_sync_service import ProfileSynchronizer
from steavium.shared.paths import (
    get_app_home,
    get_cache_dir,
    get_logs_dir,
    get_prefix_dir,
    get_scripts_dir,
    get_settings_dir,
)

logger = logging.getLogger(__name__)

DIAGNOSTICS_CONSOLE_LINES = 300


@dataclass(frozen=True)
class _CachedLibrary:
    fingerprint: GameLibraryFingerprint
    games: Tuple[InstalledGame, ...]


class StoreManagerService:
    """
    Manages one store client inside its own Wine prefix or CrossOver bottle.

    Public operations are serialized through an instance lock; the lock is
    re-entrant because launching synchronizes profiles, which scans the library.
    """

    def __init__(self, backend_config: StoreBackendConfig = STEAM_CONFIG,
                 app_home: Optional[Path] = None,
                 config_handler: Optional[ConfigHandler] = None,
                 registry_runner: Optional[RegistryRunner] = None,
                 preflight_service: Optional[PreflightService] = None):
        self.backend_config = backend_config
        self.app_home = Path(app_home) if app_home is not None else get_app_home()
        self.prefix_path = get_prefix_dir(backend_config.prefix_directory, self.app_home)
        self.logs_path = get_logs_dir(self.app_home)
        self.cache_path = get_cache_dir(self.app_home)
        self.settings_path = get_settings_dir(self.app_home)
        self.scripts_path = get_scripts_dir(self.app_home)
        self.profiles_path = self.settings_path / backend_config.profiles_file_name
        self.live_log_path = self.logs_path / backend_config.live_log_name

        self.config_handler = config_handler or ConfigHandler(self.settings_path)
        self.registry = CompatibilityLayerRegistry(registry_runner or self._run_registry_command)
        self.synchronizer = ProfileSynchronizer(
            self.registry,
            layout=backend_config.library_layout or STEAM_CONFIG.library_layout,
            store_name=backend_config.display_name,
        )
        self.preflight_service = preflight_service or PreflightService(
            self.app_home, wine_detector=self.detect_wine64
        )

        self._lock = threading.RLock()
        self._library_cache: Optional[_CachedLibrary] = None
        self._launch_process: Optional[ProcessManager] = None

    @property
    def store_name(self) -> str:
        return self.backend_config.display_name

    # --- Environment ---

    @property
    def bottle_name(self) -> str:
        """Environment override, then the settings override, then the backend default."""
        config = self.backend_config
        configured = self.config_handler.get_crossover_bottle(config.backend.value)
        return WineUtils.crossover_bottle_name(config.bottle_env_var, configured or config.default_bottle_name)

    @property
    def bottle_path(self) -> Path:
        return WineUtils.crossover_bottle_path(self.bottle_name)

    def detect_wine64(self) -> Optional[str]:
        return WineUtils.detect_wine64(self.config_handler.get_wine_mode())

    def locate_store_executable(self) -> Optional[str]:
        """
        Client executable in the CrossOver bottle or the Steavium prefix.
        Installs with their completion marker present win over bare executables.
        """
        candidates = []
        for root in (self.bottle_path, self.prefix_path):
            drive_c = root / "drive_c"
            for client in self.backend_config.client_executables:
                marker = drive_c / client.install_marker if client.install_marker else None
                candidates.append((drive_c / client.executable, marker))

        for executable, marker in candidates:
            if executable.exists() and (marker is None or marker.exists()):
                return str(executable)
        for executable, _ in candidates:
            if executable.exists():
                return str(executable)
        return None

    def store_root(self) -> Optional[Path]:
        executable = self.locate_store_executable()
        return GameLibraryScanner.store_root(executable) if executable else None

    def snapshot(self) -> StoreEnvironment:
        with self._lock:
            executable = self.locate_store_executable()
            return StoreEnvironment(
                app_home_path=self.app_home,
                prefix_path=self.prefix_path,
                logs_path=self.logs_path,
                wine64_path=self.detect_wine64(),
                store_app_installed=executable is not None,
                store_app_executable_path=executable,
            )

    def setup_logging(self) -> logging.Logger:
        """
        Rotate <app home>/logs/steavium.log for this run and route the whole
        package's logging into it at the configured level.
        """
        logging_handler = LoggingHandler(self.logs_path)
        logging_handler.rotate_log_for_logger(DEFAULT_LOG_FILE)
        return logging_handler.setup_logger('steavium', DEFAULT_LOG_FILE, is_general=True,
                                            level=self.config_handler.get_log_level())

    def prepare_directories(self) -> None:
        """Create the application directories. Errors propagate."""
        for path in (self.app_home, self.prefix_path, self.logs_path, self.cache_path,
                     self.settings_path, self.scripts_path):
            path.mkdir(parents=True, exist_ok=True)

    # --- Game library ---

    def game_library_state(self, force_refresh: bool = False) -> GameLibraryState:
        """Installed games plus saved profiles. An unreadable profile file yields no profiles."""
        with self._lock:
            games = self._installed_games(force_refresh)
            try:
                profiles = ProfileStore.load_profiles(self.profiles_path)
            except ProfileStoreError as e:
                logger.error(f"{e}")
                profiles = []
            return GameLibraryState(
                games=tuple(games),
                profiles=tuple(sorted(profiles, key=lambda profile: profile.app_id)),
            )

    def invalidate_library_cache(self) -> None:
        with self._lock:
            self._library_cache = None

    def _installed_games(self, force_refresh: bool = False) -> Tuple[InstalledGame, ...]:
        layout = self.backend_config.library_layout
        root = self.store_root() if layout is not None else None
        if root is None:
            self._library_cache = None
            return ()

        fingerprint = GameLibraryScanner.library_fingerprint(root, layout)
        cached = self._library_cache
        if not force_refresh and cached is not None and cached.fingerprint == fingerprint:
            logger.debug("Game library unchanged, using cached scan")
            return cached.games

        games = tuple(GameLibraryScanner.discover_installed_games(root, layout))
        self._library_cache = _CachedLibrary(fingerprint=fingerprint, games=games)
        return games

    # --- Profiles ---

    def save_profile(self, profile: CompatibilityProfile) -> str:
        """
        Persist profile (or drop its record when it has no overrides) and
        apply it to the game right away.
        """
        with self._lock:
            self.prepare_directories()
            normalized = profile.normalized()

            profiles = ProfileStore.profiles_by_app_id(self.profiles_path)
            removed = None
            if normalized.has_overrides:
                profiles[normalized.app_id] = normalized
            else:
                previous = profiles.pop(normalized.app_id, None)
                # The old record still knows which executable carries stale flags
                removed = {normalized.app_id: previous} if previous else None
            ProfileStore.save_profiles(profiles.values(), self.profiles_path)

            logs = self._synchronize(profiles, [normalized.app_id], removed)
            if normalized.has_overrides:
                message = f"Profile saved for AppID {normalized.app_id}."
            else:
                message = f"Profile reset for AppID {normalized.app_id}."
            logger.info(message)
            return "\n".join([message] + logs)

    def remove_profile(self, app_id: int) -> str:
        """Delete the saved profile and clear whatever it had applied."""
        with self._lock:
            self.prepare_directories()
            profiles = ProfileStore.profiles_by_app_id(self.profiles_path)
            removed = profiles.pop(app_id, None)
            ProfileStore.save_profiles(profiles.values(), self.profiles_path)

            logs = self._synchronize(profiles, [app_id], {app_id: removed} if removed else None)
            message = f"Profile removed for AppID {app_id}."
            logger.info(message)
            return "\n".join([message] + logs)

    def _synchronize(self, profiles: Dict[int, CompatibilityProfile], app_ids: List[int],
                     removed: Optional[Dict[int, CompatibilityProfile]] = None) -> List[str]:
        if not self.backend_config.supports_game_library:
            logger.debug(f"{self.store_name} has no game library layout; profiles stored only")
            return []
        return self.synchronizer.synchronize(
            self.store_root(), self._installed_games(), profiles, app_ids, removed
        )

    # --- Runtime preflight and scripts ---

    def runtime_preflight_report(self) -> PreflightReport:
        with self._lock:
            return self.preflight_service.run()

    def install_prerequisites(self) -> str:
        with self._lock:
            self.prepare_directories()
            script = self._materialize_script("install_prerequisites.sh")
            return self._run_script(script, []).output

    def install_runtime(self) -> str:
        """Install the Wine runtime, refusing when a blocking preflight check fails."""
        with self._lock:
            self.prepare_directories()
            report = self.preflight_service.run()
            if report.has_blocking_failures:
                raise PreflightBlockingError(kind.value for kind in report.blocking_failure_kinds)
            script = self._materialize_script("install_runtime.sh")
            return self._run_script(script, []).output

    def install_ffmpeg(self) -> str:
        with self._lock:
            self.prepare_directories()
            brew = detect_homebrew()
            if brew is None:
                raise HomebrewNotFoundError()
            result = run_command([brew, "install", "ffmpeg"], env=self._script_env(),
                                 timeout=self._script_timeout(), check=True)
            return result.output if result.output.strip() else "ffmpeg installed successfully."

    def setup_store(self, game_library_path: Optional[str] = None) -> str:
        with self._lock:
            self.prepare_directories()
            self._require_runtime()
            script = self._materialize_script(self.backend_config.script_name("setup"))
            result = self._run_script(script, [], game_library_path)
            self._library_cache = None
            return result.output

    def launch_store(self, graphics_backend: GraphicsBackend = GraphicsBackend.AUTO,
                     running_policy: StoreRunningPolicy = StoreRunningPolicy.REUSE_EXISTING,
                     game_library_path: Optional[str] = None) -> str:
        """
        Apply every saved profile, then start the launch script detached with
        its output going to the live log.
        """
        with self._lock:
            self.prepare_directories()
            self._require_runtime()
            if running_policy is StoreRunningPolicy.ASK_EVERY_TIME and self.is_store_running():
                raise StoreAlreadyRunningError(self.store_name)

            profiles = ProfileStore.profiles_by_app_id(self.profiles_path)
            sync_logs = self._synchronize(profiles, list(profiles))

            script = self._materialize_script(self.backend_config.script_name("launch"))
            env = self._script_env(game_library_path)
            env["STEAVIUM_GRAPHICS_BACKEND"] = graphics_backend.value
            self._launch_process = ProcessManager(
                ["/bin/bash", str(script), "--backend", graphics_backend.value,
                 "--if-running", running_policy.value],
                env=env,
                log_path=self.live_log_path,
            )

            message = f"{self.store_name} launched. Log: {self.live_log_path}"
            if not sync_logs:
                return message
            return "[per-game]\n" + "\n".join(sync_logs) + "\n\n" + message

    def stop_store(self) -> str:
        with self._lock:
            self.prepare_directories()
            script = self._materialize_script(self.backend_config.script_name("stop"))
            return self._run_script(script, []).output

    def is_store_running(self) -> bool:
        """True when a process command line matches the backend's client pattern."""
        pattern = re.compile(self.backend_config.process_pattern)
        for proc in psutil.process_iter(['cmdline']):
            try:
                cmdline = proc.info['cmdline']
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
            if cmdline and pattern.search(" ".join(cmdline)):
                return True
        return False

    def wipe_store_data(self, clear_account_data: bool, clear_library_data: bool) -> str:
        with self._lock:
            self.prepare_directories()
            self._require_runtime()
            if not (clear_account_data or clear_library_data):
                raise DataWipeSelectionRequiredError()
            script = self._materialize_script(self.backend_config.script_name("wipe"))
            args = []
            if clear_account_data:
                args.append("--account")
            if clear_library_data:
                args.append("--library")
            result = self._run_script(script, args)
            self._library_cache = None
            return result.output

    def _require_runtime(self) -> None:
        if self.detect_wine64() is None:
            raise WineRuntimeNotFoundError()

    def _materialize_script(self, name: str) -> Path:
        script = self.scripts_path / name
        if not script.is_file():
            raise MissingScriptError(name)
        return script

    def _script_env(self, game_library_path: Optional[str] = None) -> Dict[str, str]:
        library_path = game_library_path or self.config_handler.get_game_library_path()
        env = WineUtils.script_environment(self.app_home, self.config_handler.get_wine_mode(), library_path)
        env[self.backend_config.bottle_env_var] = self.bottle_name
        return env

    def _script_timeout(self) -> float:
        return self.config_handler.get_script_timeout()

    def _run_script(self, script: Path, args: List[str],
                    game_library_path: Optional[str] = None) -> CommandResult:
        logger.info(f"Running {script.name} for {self.store_name}")
        return run_command(["/bin/bash", str(script)] + list(args),
                           env=self._script_env(game_library_path),
                           timeout=self._script_timeout(), check=True)

    def _run_registry_command(self, args: List[str]) -> CommandResult:
        return WineUtils.run_registry_command(
            args,
            bottle_name=self.bottle_name,
            prefix_path=self.prefix_path,
            app_home=self.app_home,
            wine_mode=self.config_handler.get_wine_mode(),
            timeout=self.config_handler.get_subprocess_timeout(),
        )

    # --- Diagnostics ---

    def create_diagnostics_archive(self, selected_backend: GraphicsBackend, console_log: str,
                                   report: PreflightReport) -> Path:
        """
        Zip a text report, the tail of the in-app console, the live log and
        the profile file into <app home>/cache/diagnostics-<timestamp>.zip.
        """
        with self._lock:
            self.prepare_directories()
            timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
            folder = self.cache_path / f"diagnostics-{timestamp}"
            archive = self.cache_path / f"diagnostics-{timestamp}.zip"
            if folder.exists():
                shutil.rmtree(folder)
            if archive.exists():
                archive.unlink()
            folder.mkdir(parents=True)

            try:
                environment = self.snapshot()
                library = self.game_library_state()
                lines = [
                    "Steavium Diagnostics",
                    f"Generated at: {datetime.now().astimezone().isoformat(timespec='seconds')}",
                    "",
                    "[Environment]",
                    f"Store: {self.store_name}",
                    f"App home: {environment.app_home_path}",
                    f"Prefix: {environment.prefix_path}",
                    f"Logs: {environment.logs_path}",
                    f"{self.store_name} installed: {environment.store_app_installed}",
                    f"{self.store_name} executable: {environment.store_app_executable_path or '-'}",
                    f"Wine runtime: {environment.wine64_path or '-'}",
                    f"Wine mode: {self.config_handler.get_wine_mode()}",
                    f"Selected backend: {selected_backend.value}",
                    "",
                    "[Library]",
                    f"Installed games: {len(library.games)}",
                    f"Saved profiles: {len(library.profiles)}",
                    "",
                    "[Preflight]",
                ]
                lines.extend(f"- {check.kind.value}: {check.status.value} | {check.detail}"
                             for check in report.checks)
                FileSystemHandler.atomic_write_text(folder / "report.txt", "\n".join(lines))

                console_tail = "\n".join(console_log.splitlines()[-DIAGNOSTICS_CONSOLE_LINES:])
                if console_tail.strip():
                    FileSystemHandler.atomic_write_text(folder / "in-app-console.log", console_tail)

                FileSystemHandler.copy_file(self.live_log_path, folder / self.live_log_path.name)
                FileSystemHandler.copy_file(self.profiles_path, folder / self.profiles_path.name)

                shutil.make_archive(str(archive.with_suffix("")), "zip",
                                    root_dir=str(self.cache_path), base_dir=folder.name)
            finally:
                shutil.rmtree(folder, ignore_errors=True)

            logger.info(f"Diagnostics archive written to {archive}")
            return archive
