"""
Unit tests for manifest discovery, executable ranking and path helpers.
"""

import os
from pathlib import Path

from steavium.backend.handlers.game_library_handler import GameLibraryScanner


def test_discover_installed_games_parses_manifest_and_ranks_executables(steam_library) -> None:
    root = steam_library()

    games = GameLibraryScanner.discover_installed_games(root)

    assert len(games) == 1
    game = games[0]
    assert game.app_id == 220
    assert game.name == "Half-Life 2"
    assert game.install_directory_path == str(root / "steamapps" / "common" / "Half-Life 2")
    assert [c.relative_path for c in game.executable_candidates] == ["hl2.exe", "launcher.exe"]
    assert [c.score for c in game.executable_candidates] == [95, 71]
    assert game.default_executable_relative_path == "hl2.exe"


def test_discover_sorts_by_name_and_skips_bad_manifests(tmp_path: Path, make_manifest, make_file) -> None:
    root = tmp_path / "Steam"
    make_manifest(root, 400, "portal", "Portal")
    make_manifest(root, 220, "Half-Life 2", "Half-Life 2")
    make_file(root / "steamapps" / "common" / "Portal" / "portal.exe")

    steamapps = root / "steamapps"
    (steamapps / "appmanifest_1.acf").write_text('"AppState" {', encoding="utf-8")
    (steamapps / "appmanifest_2.acf").write_text('"AppState" { "appid" "x2" "name" "X" "installdir" "X" }',
                                                 encoding="utf-8")
    (steamapps / "appmanifest_3.acf").write_text('"AppState" { "appid" "3" }', encoding="utf-8")
    (steamapps / "libraryfolders.vdf").write_text('"libraryfolders" {}', encoding="utf-8")

    games = GameLibraryScanner.discover_installed_games(root)

    assert [(g.app_id, g.name) for g in games] == [(220, "Half-Life 2"), (400, "portal")]
    assert games[0].executable_candidates == ()
    assert games[0].default_executable_relative_path is None
    assert games[1].default_executable_relative_path == "portal.exe"


def test_discover_without_manifest_directory(tmp_path: Path) -> None:
    assert GameLibraryScanner.discover_installed_games(tmp_path / "missing") == []


def test_parse_manifest_requires_every_field() -> None:
    manifest = '"AppState"\n{\n\t"appid"\t\t"+7"\n\t"name"\t\t"N"\n\t"installdir"\t\t"D"\n}\n'
    assert GameLibraryScanner.parse_manifest(manifest) == (7, "N", "D")
    assert GameLibraryScanner.parse_manifest('"AppState" { "appid" "7" "name" "N" }') is None
    assert GameLibraryScanner.parse_manifest('"Other" { }') is None
    assert GameLibraryScanner.parse_manifest('"AppState" "flat"') is None


def test_install_directory_name_bonus(tmp_path: Path, make_file) -> None:
    """An executable named like its install directory outranks everything else."""
    install_dir = tmp_path / "Portal"
    make_file(install_dir / "portal.exe")
    make_file(install_dir / "bin" / "crashhandler.exe")
    make_file(install_dir / "uninstall.exe")

    candidates = GameLibraryScanner.executable_candidates(install_dir, "Portal")

    assert [(c.relative_path, c.score) for c in candidates] == [
        ("portal.exe", 190),
        (os.path.join("bin", "crashhandler.exe"), 45),
        ("uninstall.exe", 5),
    ]
    assert candidates[0].absolute_path == os.path.realpath(install_dir / "portal.exe")
    assert candidates[1].id == os.path.join("bin", "crashhandler.exe")


def test_scan_skips_hidden_redistributable_and_non_executable_entries(tmp_path: Path, make_file) -> None:
    install_dir = tmp_path / "Game"
    make_file(install_dir / "game.exe")
    make_file(install_dir / ".hidden.exe")
    make_file(install_dir / ".cache" / "inner.exe")
    make_file(install_dir / "DirectX" / "dxsetup.exe")
    make_file(install_dir / "Support" / "tool.exe")
    make_file(install_dir / "readme.txt")

    candidates = GameLibraryScanner.executable_candidates(install_dir, "Game")

    assert [c.relative_path for c in candidates] == ["game.exe"]
    # +80 for matching the directory, +20 for "game", +15 for the name token
    assert candidates[0].score == 95 + 80 + 20 + 15


def test_scan_depth_limit(tmp_path: Path, make_file) -> None:
    install_dir = tmp_path / "Deep"
    make_file(install_dir.joinpath("a", "b", "c", "d", "e", "f", "seven.exe"))
    make_file(install_dir.joinpath("a", "b", "c", "d", "e", "f", "g", "eight.exe"))

    candidates = GameLibraryScanner.executable_candidates(install_dir, "Deep")

    assert [os.path.basename(c.relative_path) for c in candidates] == ["seven.exe"]


def test_scan_does_not_follow_links_outside_install_directory(tmp_path: Path, make_file) -> None:
    install_dir = tmp_path / "Game"
    make_file(install_dir / "main.exe")
    outside = make_file(tmp_path / "elsewhere" / "outside.exe")
    os.symlink(outside, install_dir / "linked.exe")
    os.symlink(outside.parent, install_dir / "linked_dir")

    candidates = GameLibraryScanner.executable_candidates(install_dir, "Game")

    assert [c.relative_path for c in candidates] == ["main.exe"]


def test_scan_of_missing_directory(tmp_path: Path) -> None:
    assert GameLibraryScanner.executable_candidates(tmp_path / "nope", "Nope") == []


def test_name_tokens() -> None:
    assert GameLibraryScanner.name_tokens("Half-Life 2: Episode_One") == ["half", "life", "episode", "one"]


def test_locate_config_files(tmp_path: Path) -> None:
    for user in ("2", "1", ".hidden"):
        config = tmp_path / "userdata" / user / "config" / "localconfig.vdf"
        config.parent.mkdir(parents=True)
        config.write_text('"UserLocalConfigStore"{}', encoding="utf-8")
    (tmp_path / "userdata" / "3" / "config").mkdir(parents=True)

    files = GameLibraryScanner.locate_config_files(tmp_path)

    assert files == [
        tmp_path / "userdata" / "1" / "config" / "localconfig.vdf",
        tmp_path / "userdata" / "2" / "config" / "localconfig.vdf",
    ]
    assert GameLibraryScanner.locate_config_files(tmp_path / "missing") == []


def test_resolve_windows_path() -> None:
    unix_path = ("/Users/test/Library/Application Support/CrossOver/Bottles/steavium-steam/"
                 "drive_c/Program Files (x86)/Steam/steamapps/common/Game/game.exe")
    assert GameLibraryScanner.resolve_windows_path(unix_path) == \
        "C:\\Program Files (x86)\\Steam\\steamapps\\common\\Game\\game.exe"
    assert GameLibraryScanner.resolve_windows_path("/tmp/Game/game.exe") is None


def test_store_root() -> None:
    assert GameLibraryScanner.store_root("/p/drive_c/Steam/steam.exe") == Path("/p/drive_c/Steam")


def test_library_fingerprint_tracks_manifest_changes(tmp_path: Path, make_manifest) -> None:
    root = tmp_path / "Steam"
    make_manifest(root, 220, "Half-Life 2", "Half-Life 2")

    first = GameLibraryScanner.library_fingerprint(root)
    assert first == GameLibraryScanner.library_fingerprint(root)
    assert [m.file_name for m in first.manifests] == ["appmanifest_220.acf"]

    make_manifest(root, 400, "Portal", "Portal")
    second = GameLibraryScanner.library_fingerprint(root)
    assert second != first
    assert len(second.manifests) == 2


def test_equal_scores_prefer_shorter_then_case_insensitive_path(tmp_path: Path, make_manifest, make_file) -> None:
    root = tmp_path / "Steam"
    make_manifest(root, 10, "X", "X")
    make_manifest(root, 20, "Alpha Game", "Alpha")
    for name in ("bb.exe", "a.exe", "C.exe"):
        make_file(root / "steamapps" / "common" / "X" / name)
    make_file(root / "steamapps" / "common" / "Alpha" / "bin" / "alpha.exe")

    first = GameLibraryScanner.discover_installed_games(root)
    second = GameLibraryScanner.discover_installed_games(root)

    assert first == second
    assert [g.app_id for g in first] == [20, 10]
    tied = first[1]
    assert [c.relative_path for c in tied.executable_candidates] == ["a.exe", "C.exe", "bb.exe"]
    assert {c.score for c in tied.executable_candidates} == {95}


def test_uninstaller_never_becomes_default(tmp_path: Path, make_manifest, make_file) -> None:
    root = tmp_path / "Steam"
    make_manifest(root, 220, "Half-Life 2", "Half-Life 2")
    game_dir = root / "steamapps" / "common" / "Half-Life 2"
    make_file(game_dir / "uninstall.exe")
    make_file(game_dir / "hl2.exe")

    game = GameLibraryScanner.discover_installed_games(root)[0]

    assert game.default_executable_relative_path == "hl2.exe"
    assert [(c.relative_path, c.score) for c in game.executable_candidates] == [("hl2.exe", 95), ("uninstall.exe", 5)]
