"""
Game Library Models

Snapshots produced by a library scan. Nothing here is persisted; every scan
rebuilds the list from the filesystem.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .profile import CompatibilityProfile


@dataclass(frozen=True)
class ExecutableCandidate:
    """A Windows executable inside a game's install directory."""
    relative_path: str
    absolute_path: str
    score: int

    @property
    def id(self) -> str:
        return self.relative_path.lower()


@dataclass(frozen=True)
class InstalledGame:
    """An installed game with its executable candidates, best first."""
    app_id: int
    name: str
    install_directory_path: str
    executable_candidates: Tuple[ExecutableCandidate, ...] = ()
    default_executable_relative_path: Optional[str] = None


@dataclass(frozen=True)
class ManifestFingerprint:
    file_name: str
    modification_time: float
    size: int


@dataclass(frozen=True)
class GameLibraryFingerprint:
    """Cache key: equal fingerprints mean the manifest set is unchanged."""
    root_path: str
    manifests: Tuple[ManifestFingerprint, ...] = ()


@dataclass(frozen=True)
class GameLibraryState:
    games: Tuple[InstalledGame, ...] = ()
    profiles: Tuple[CompatibilityProfile, ...] = ()

    @classmethod
    def empty(cls) -> "GameLibraryState":
        return cls()
