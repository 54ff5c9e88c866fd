"""
Configuration Data Models

Per-backend constants for the supported game stores, plus the environment
snapshot handed back to callers.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Tuple


class StoreBackend(Enum):
    """Supported game-store clients."""
    STEAM = "steam"
    BATTLE_NET = "battlenet"
    EPIC = "epic"
    GOG = "gog"


class GraphicsBackend(Enum):
    D3DMETAL = "d3dmetal"
    DXVK = "dxvk"
    AUTO = "auto"


class StoreRunningPolicy(Enum):
    """What the launch script does when the client is already running."""
    ASK_EVERY_TIME = "ask"
    REUSE_EXISTING = "reuse"
    RESTART = "restart"


@dataclass(frozen=True)
class LibraryLayout:
    """Where a store keeps its manifests, installs and per-user config files."""
    manifest_directory: str = "steamapps"
    manifest_prefix: str = "appmanifest_"
    manifest_extension: str = "acf"
    manifest_root_key: str = "AppState"
    common_directory: str = "common"
    user_data_directory: str = "userdata"
    user_config_file: Tuple[str, ...] = ("config", "localconfig.vdf")
    launch_options_root: Tuple[str, ...] = ("UserLocalConfigStore", "Software", "Valve", "Steam", "apps")
    launch_options_key: str = "LaunchOptions"

    def launch_options_path(self, app_id: int) -> Tuple[str, ...]:
        return self.launch_options_root + (str(app_id), self.launch_options_key)


STEAM_LIBRARY_LAYOUT = LibraryLayout()


@dataclass(frozen=True)
class ClientExecutable:
    """Client executable (relative to drive_c) and its optional install marker."""
    executable: str
    install_marker: Optional[str] = None


@dataclass(frozen=True)
class StoreBackendConfig:
    """
    Fixed constants that distinguish one store backend from another.
    Everything else in the store manager is shared.
    """
    backend: StoreBackend
    display_name: str
    prefix_directory: str
    profiles_file_name: str
    live_log_name: str
    client_executables: Tuple[ClientExecutable, ...]
    bottle_env_var: str
    default_bottle_name: str
    process_pattern: str
    library_layout: Optional[LibraryLayout] = None

    def script_name(self, action: str) -> str:
        """Backend script name, e.g. setup_steam.sh or wipe_gog_data.sh."""
        if action == "wipe":
            return f"wipe_{self.backend.value}_data.sh"
        return f"{action}_{self.backend.value}.sh"

    @property
    def supports_game_library(self) -> bool:
        return self.library_layout is not None


STEAM_CONFIG = StoreBackendConfig(
    backend=StoreBackend.STEAM,
    display_name="Steam",
    prefix_directory="steam",
    profiles_file_name="game-profiles.json",
    live_log_name="steam-live.log",
    client_executables=(
        ClientExecutable("Program Files (x86)/Steam/steam.exe",
                         "Program Files (x86)/Steam/package/steam_client_win64.installed"),
        ClientExecutable("Program Files/Steam/Steam.exe",
                         "Program Files/Steam/package/steam_client_win64.installed"),
    ),
    bottle_env_var="STEAVIUM_CROSSOVER_BOTTLE",
    default_bottle_name="steavium-steam",
    process_pattern=r"^C:\\Program Files( \(x86\))?\\Steam\\[sS]team\.exe( |$)",
    library_layout=STEAM_LIBRARY_LAYOUT,
)

GOG_CONFIG = StoreBackendConfig(
    backend=StoreBackend.GOG,
    display_name="GOG Galaxy",
    prefix_directory="gog",
    profiles_file_name="gog-game-profiles.json",
    live_log_name="gog-live.log",
    client_executables=(
        ClientExecutable("Program Files (x86)/GOG Galaxy/GalaxyClient.exe"),
    ),
    bottle_env_var="STEAVIUM_CROSSOVER_BOTTLE_GOG",
    default_bottle_name="steavium-gog",
    process_pattern=r"GalaxyClient",
)

BATTLE_NET_CONFIG = StoreBackendConfig(
    backend=StoreBackend.BATTLE_NET,
    display_name="Battle.net",
    prefix_directory="battlenet",
    profiles_file_name="battlenet-game-profiles.json",
    live_log_name="battlenet-live.log",
    client_executables=(
        ClientExecutable("Program Files (x86)/Battle.net/Battle.net Launcher.exe"),
        ClientExecutable("Program Files (x86)/Battle.net/Battle.net.exe"),
    ),
    bottle_env_var="STEAVIUM_CROSSOVER_BOTTLE_BATTLENET",
    default_bottle_name="steavium-battlenet",
    process_pattern=r"Battle\.net",
)

EPIC_CONFIG = StoreBackendConfig(
    backend=StoreBackend.EPIC,
    display_name="Epic Games",
    prefix_directory="epic",
    profiles_file_name="epic-game-profiles.json",
    live_log_name="epic-live.log",
    client_executables=(
        ClientExecutable("Program Files (x86)/Epic Games/Launcher/Portal/Binaries/Win64/EpicGamesLauncher.exe"),
        ClientExecutable("Program Files/Epic Games/Launcher/Portal/Binaries/Win64/EpicGamesLauncher.exe"),
    ),
    bottle_env_var="STEAVIUM_CROSSOVER_BOTTLE_EPIC",
    default_bottle_name="steavium-epic",
    process_pattern=r"EpicGamesLauncher",
)

STORE_BACKEND_CONFIGS: Dict[StoreBackend, StoreBackendConfig] = {
    config.backend: config
    for config in (STEAM_CONFIG, BATTLE_NET_CONFIG, EPIC_CONFIG, GOG_CONFIG)
}


@dataclass
class StoreEnvironment:
    """Snapshot of one store manager's directories and detected tools."""
    app_home_path: Path
    prefix_path: Path
    logs_path: Path
    wine64_path: Optional[str] = None
    store_app_installed: bool = False
    store_app_executable_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'app_home_path': str(self.app_home_path),
            'prefix_path': str(self.prefix_path),
            'logs_path': str(self.logs_path),
            'wine64_path': self.wine64_path,
            'store_app_installed': self.store_app_installed,
            'store_app_executable_path': self.store_app_executable_path,
        }
