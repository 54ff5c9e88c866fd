import json
from pathlib import Path

import pytest

from steavium.backend.handlers.profile_store_handler import (
    PROFILE_COLLECTION_VERSION,
    ProfileStore,
    ProfileStoreError,
)
from steavium.backend.models.profile import CompatibilityMode, CompatibilityPreset, CompatibilityProfile


def test_missing_file_means_no_profiles(tmp_path: Path) -> None:
    assert ProfileStore.load_profiles(tmp_path / "game-profiles.json") == []


def test_save_then_load_sorted_by_app_id(tmp_path: Path) -> None:
    path = tmp_path / "settings" / "game-profiles.json"
    profiles = [
        CompatibilityProfile(app_id=400, force_windowed=True, preset=CompatibilityPreset.CUSTOM),
        CompatibilityProfile(app_id=220, compatibility_mode=CompatibilityMode.WINXP_SP3,
                             executable_relative_path="hl2.exe"),
    ]

    ProfileStore.save_profiles(profiles, path)

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["version"] == PROFILE_COLLECTION_VERSION
    assert [record["appID"] for record in payload["profiles"]] == [220, 400]
    assert ProfileStore.load_profiles(path) == sorted(profiles, key=lambda p: p.app_id)
    assert list(path.parent.iterdir()) == [path]


def test_output_is_stable(tmp_path: Path) -> None:
    """Saving the same profiles twice produces identical bytes."""
    path = tmp_path / "game-profiles.json"
    profiles = [CompatibilityProfile(app_id=220, run_as_admin=True)]
    ProfileStore.save_profiles(profiles, path)
    first = path.read_bytes()
    ProfileStore.save_profiles(ProfileStore.load_profiles(path), path)
    assert path.read_bytes() == first
    assert first.endswith(b"\n")


@pytest.mark.parametrize("content", [
    "{not json",
    "[]",
    '{"version": 1}',
    '{"version": 1, "profiles": ["x"]}',
    '{"version": 1, "profiles": [{"preset": "custom"}]}',
    '{"version": 1, "profiles": [{"appID": "220"}]}',
])
def test_malformed_file_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "game-profiles.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ProfileStoreError) as excinfo:
        ProfileStore.load_profiles(path)
    assert excinfo.value.path == path


def test_newer_version_is_read_best_effort(tmp_path: Path, caplog) -> None:
    path = tmp_path / "game-profiles.json"
    path.write_text(json.dumps({"version": 9, "profiles": [{"appID": 5, "futureField": 1}]}), encoding="utf-8")
    assert ProfileStore.load_profiles(path) == [CompatibilityProfile(app_id=5)]
    assert "newer" in caplog.text


def test_profiles_by_app_id_last_duplicate_wins(tmp_path: Path) -> None:
    path = tmp_path / "game-profiles.json"
    path.write_text(json.dumps({"version": 1, "profiles": [
        {"appID": 5, "runAsAdmin": False},
        {"appID": 5, "runAsAdmin": True},
    ]}), encoding="utf-8")
    assert ProfileStore.profiles_by_app_id(path)[5].run_as_admin is True


def test_save_into_unwritable_location_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(ProfileStoreError):
        ProfileStore.save_profiles([CompatibilityProfile(app_id=1)], blocker / "game-profiles.json")
