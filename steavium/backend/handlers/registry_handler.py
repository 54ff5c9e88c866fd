#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Registry Handler Module
Reads and writes per-executable AppCompatFlags layers in a Wine prefix
through the runtime's reg tool
"""

import logging
from typing import Callable, Dict, Iterable, List, Set

from .subprocess_utils import CommandFailedError, CommandResult

# Initialize logger
logger = logging.getLogger(__name__)

COMPATIBILITY_LAYERS_KEY = r"HKCU\Software\Microsoft\Windows NT\CurrentVersion\AppCompatFlags\Layers"

# Substrings of reg output meaning the key or value does not exist
MISSING_OBJECT_PHRASES = ("unable to find", "cannot find", "could not find", "no se pudo encontrar")

RegistryRunner = Callable[[List[str]], CommandResult]


class CompatibilityLayerRegistry:
    """
    Compatibility layer values keyed by Windows executable path.

    runner receives the reg arguments (starting with "reg") and must raise
    CommandFailedError for a non-zero exit.
    """

    def __init__(self, runner: RegistryRunner):
        self.runner = runner

    def query_all(self) -> Dict[str, str]:
        """Every value under the Layers key; a missing key yields {}."""
        try:
            result = self.runner(["reg", "query", COMPATIBILITY_LAYERS_KEY])
        except CommandFailedError as e:
            if self.is_missing_object_output(e.output):
                logger.debug("Compatibility layers key does not exist yet")
                return {}
            raise
        return self.parse_query_output(result.output)

    def set_flags(self, windows_path: str, flags: str) -> None:
        """Write flags for windows_path, dropping any legacy escaped-name value first."""
        escaped = self.escaped_value_name(windows_path)
        if escaped != windows_path:
            self._delete_value(escaped)
        self.runner(["reg", "add", COMPATIBILITY_LAYERS_KEY,
                     "/v", windows_path, "/t", "REG_SZ", "/d", flags, "/f"])
        logger.debug(f"Set compatibility flags for {windows_path}: {flags}")

    def remove_flags(self, windows_path: str) -> None:
        """Delete both the canonical and the escaped value; absent values are fine."""
        self._delete_value(windows_path)
        escaped = self.escaped_value_name(windows_path)
        if escaped != windows_path:
            self._delete_value(escaped)
        logger.debug(f"Removed compatibility flags for {windows_path}")

    def _delete_value(self, value_name: str) -> None:
        try:
            self.runner(["reg", "delete", COMPATIBILITY_LAYERS_KEY, "/v", value_name, "/f"])
        except CommandFailedError as e:
            if not self.is_missing_object_output(e.output):
                raise

    @staticmethod
    def parse_query_output(output: str) -> Dict[str, str]:
        """Parse `name    REG_SZ    data` lines, skipping blanks and HKEY_ headers."""
        values = {}
        for line in output.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("HKEY_"):
                continue
            name, separator, data = stripped.partition("REG_SZ")
            if not separator:
                continue
            name = name.strip()
            if name:
                values[name] = data.strip()
        return values

    @staticmethod
    def current_flags(values: Dict[str, str], windows_path: str):
        """Flags stored under the canonical name, else under the legacy escaped name."""
        if windows_path in values:
            return values[windows_path]
        return values.get(CompatibilityLayerRegistry.escaped_value_name(windows_path))

    @staticmethod
    def forget(values: Dict[str, str], windows_path: str) -> None:
        values.pop(windows_path, None)
        values.pop(CompatibilityLayerRegistry.escaped_value_name(windows_path), None)

    @staticmethod
    def normalized_flag_set(flags: str) -> Set[str]:
        return set(flags.split())

    @staticmethod
    def join_flags(flags: Iterable[str]) -> str:
        return " ".join(flags)

    @staticmethod
    def escaped_value_name(windows_path: str) -> str:
        """Value name written by older releases, with every backslash doubled."""
        return windows_path.replace("\\", "\\\\")

    @staticmethod
    def is_missing_object_output(output: str) -> bool:
        lowered = output.lower()
        return any(phrase in lowered for phrase in MISSING_OBJECT_PHRASES)
