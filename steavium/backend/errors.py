"""
Store manager errors.

Configuration errors (missing tooling, invalid requests) abort the requested
action and are surfaced to the caller verbatim. Per-game resolution and I/O
problems during profile synchronization never reach this layer; they are
reported as log lines instead.
"""

from typing import Iterable


class StoreManagerError(Exception):
    """Base class for failures of a store manager operation."""


class MissingScriptError(StoreManagerError):
    def __init__(self, script_name: str):
        self.script_name = script_name
        super().__init__(f"Required script not found: {script_name}")


class HomebrewNotFoundError(StoreManagerError):
    def __init__(self):
        super().__init__("Homebrew was not found. Install Homebrew from https://brew.sh and try again.")


class WineRuntimeNotFoundError(StoreManagerError):
    def __init__(self):
        super().__init__("No Wine/CrossOver runtime was found. Run Install Runtime first.")


class PreflightBlockingError(StoreManagerError):
    def __init__(self, failing_checks: Iterable[str]):
        self.failing_checks = list(failing_checks)
        super().__init__(f"Preflight checks failed: {', '.join(self.failing_checks)}")


class DataWipeSelectionRequiredError(StoreManagerError):
    def __init__(self):
        super().__init__("Select at least one category of data to wipe.")


class StoreAlreadyRunningError(StoreManagerError):
    def __init__(self, store_name: str):
        super().__init__(f"{store_name} is already running.")


class LocalConfigUnreadableError(StoreManagerError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Could not read {path}")


class LocalConfigWriteError(StoreManagerError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Could not write {path}")
