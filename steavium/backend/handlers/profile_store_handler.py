#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Profile Store Handler Module
Loads and saves the per-store collection of compatibility profiles
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Union

from .filesystem_handler import FileSystemHandler
from ..models.profile import CompatibilityProfile

# Initialize logger
logger = logging.getLogger(__name__)

PROFILE_COLLECTION_VERSION = 1


class ProfileStoreError(Exception):
    """The profile file exists but cannot be decoded or written."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Could not use profile file {self.path}: {reason}")


class ProfileStore:
    """JSON envelope {"version": 1, "profiles": [...]} of CompatibilityProfile records."""

    @staticmethod
    def load_profiles(path: Union[str, Path]) -> List[CompatibilityProfile]:
        """
        Read every saved profile. An absent file means no profiles.

        Raises ProfileStoreError for malformed JSON or a record without a
        valid appID.
        """
        path = Path(path)
        if not path.exists():
            return []

        try:
            with open(path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ProfileStoreError(path, str(e)) from e

        if not isinstance(payload, dict) or not isinstance(payload.get("profiles"), list):
            raise ProfileStoreError(path, "missing profiles list")

        version = payload.get("version")
        if isinstance(version, int) and version > PROFILE_COLLECTION_VERSION:
            logger.warning(f"Profile file {path} has version {version}, newer than "
                           f"{PROFILE_COLLECTION_VERSION}; reading it best-effort")

        profiles = []
        for index, record in enumerate(payload["profiles"]):
            if not isinstance(record, dict):
                raise ProfileStoreError(path, f"profile #{index} is not an object")
            try:
                profiles.append(CompatibilityProfile.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                raise ProfileStoreError(path, f"profile #{index} has no valid appID ({e})") from e
        logger.debug(f"Loaded {len(profiles)} profiles from {path}")
        return profiles

    @staticmethod
    def save_profiles(profiles: Iterable[CompatibilityProfile], path: Union[str, Path]) -> None:
        """Write profiles sorted by app id, replacing the file atomically."""
        path = Path(path)
        ordered = sorted(profiles, key=lambda profile: profile.app_id)
        payload = {
            "version": PROFILE_COLLECTION_VERSION,
            "profiles": [profile.to_dict() for profile in ordered],
        }
        content = json.dumps(payload, indent=2, sort_keys=True) + "\n"
        try:
            FileSystemHandler.atomic_write_text(path, content)
        except OSError as e:
            raise ProfileStoreError(path, str(e)) from e
        logger.debug(f"Saved {len(ordered)} profiles to {path}")

    @staticmethod
    def profiles_by_app_id(path: Union[str, Path]) -> Dict[int, CompatibilityProfile]:
        """Saved profiles keyed by app id; later duplicates win."""
        return {profile.app_id: profile for profile in ProfileStore.load_profiles(path)}
