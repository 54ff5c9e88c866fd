from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from steavium.backend.handlers.subprocess_utils import CommandFailedError, CommandResult

STEAM_SUBPATH = Path("drive_c") / "Program Files (x86)" / "Steam"

MISSING_OUTPUT = "ERROR: The system was unable to find the specified registry key or value."


class FakeRegistry:
    """In-memory stand-in for the runtime's reg tool."""

    def __init__(self, values: Optional[Dict[str, str]] = None) -> None:
        self.values: Dict[str, str] = dict(values or {})
        self.commands: List[List[str]] = []
        self.query_error: Optional[Exception] = None
        self.add_error: Optional[Exception] = None

    def __call__(self, args: List[str]) -> CommandResult:
        self.commands.append(list(args))
        text = " ".join(args)
        action = args[1]
        if action == "query":
            if self.query_error is not None:
                raise self.query_error
            if not self.values:
                raise CommandFailedError(text, 1, MISSING_OUTPUT)
            lines = [r"HKEY_CURRENT_USER\Software\Microsoft\Windows NT\CurrentVersion\AppCompatFlags\Layers"]
            lines += [f"    {name}    REG_SZ    {data}" for name, data in self.values.items()]
            return CommandResult(text, 0, "\n".join(lines) + "\n\n")

        name = args[args.index("/v") + 1]
        if action == "add":
            if self.add_error is not None:
                raise self.add_error
            self.values[name] = args[args.index("/d") + 1]
            return CommandResult(text, 0, "The operation completed successfully.\n")
        if action == "delete":
            if name not in self.values:
                raise CommandFailedError(text, 1, MISSING_OUTPUT)
            del self.values[name]
            return CommandResult(text, 0, "The operation completed successfully.\n")
        raise AssertionError(f"unexpected reg command: {text}")

    def actions(self) -> List[str]:
        return [command[1] for command in self.commands]


def write_manifest(store_root: Path, app_id: int, name: str, install_dir: str) -> Path:
    steamapps = store_root / "steamapps"
    steamapps.mkdir(parents=True, exist_ok=True)
    manifest = steamapps / f"appmanifest_{app_id}.acf"
    manifest.write_text(
        '"AppState"\n'
        "{\n"
        f'\t"appid"\t\t"{app_id}"\n'
        f'\t"name"\t\t"{name}"\n'
        f'\t"installdir"\t\t"{install_dir}"\n'
        '\t"StateFlags"\t\t"4"\n'
        "}\n",
        encoding="utf-8",
    )
    return manifest


def touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"MZ")
    return path


LOCALCONFIG_TEMPLATE = """"UserLocalConfigStore"
{
\t// managed by the client
\t"Software"
\t{
\t\t"Valve"
\t\t{
\t\t\t"Steam"
\t\t\t{
\t\t\t\t"apps"
\t\t\t\t{
\t\t\t\t\t"220"
\t\t\t\t\t{
\t\t\t\t\t\t"LaunchOptions"\t\t"-novid"
\t\t\t\t\t\t"LastPlayed"\t\t"1700000000"
\t\t\t\t\t}
\t\t\t\t}
\t\t\t}
\t\t}
\t}
}
"""


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep CrossOver bottle lookups and app home away from the real user directory."""
    home = tmp_path / "user"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("STEAVIUM_HOME", str(tmp_path / "steavium-home"))
    for var in ("STEAVIUM_CROSSOVER_BOTTLE", "STEAVIUM_CROSSOVER_BOTTLE_GOG",
                "STEAVIUM_CROSSOVER_BOTTLE_BATTLENET", "STEAVIUM_CROSSOVER_BOTTLE_EPIC"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def fake_registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def steam_library(tmp_path: Path) -> Callable[..., Path]:
    """
    Build a Steam install with Half-Life 2 (app 220) under a prefix's drive_c.
    Returns the store root.
    """

    def build(prefix: Optional[Path] = None, with_config: bool = True) -> Path:
        root = (prefix or tmp_path / "prefix") / STEAM_SUBPATH
        touch(root / "steam.exe")
        write_manifest(root, 220, "Half-Life 2", "Half-Life 2")
        game_dir = root / "steamapps" / "common" / "Half-Life 2"
        touch(game_dir / "hl2.exe")
        touch(game_dir / "launcher.exe")
        touch(game_dir / "_CommonRedist" / "vcredist_x64.exe")
        if with_config:
            config = root / "userdata" / "12345" / "config" / "localconfig.vdf"
            config.parent.mkdir(parents=True)
            config.write_text(LOCALCONFIG_TEMPLATE, encoding="utf-8")
        return root

    return build


@pytest.fixture
def make_manifest() -> Callable[..., Path]:
    return write_manifest


@pytest.fixture
def make_file() -> Callable[[Path], Path]:
    return touch


@pytest.fixture
def localconfig_text() -> str:
    return LOCALCONFIG_TEMPLATE
