"""
Runtime Preflight Models

Results of the checks run before installing the runtime or a store client.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class PreflightCheckKind(Enum):
    HOMEBREW = "homebrew"
    DISK_SPACE = "diskSpace"
    FFMPEG = "ffmpeg"
    RUNTIME = "runtime"

    @property
    def is_blocking(self) -> bool:
        return self in (PreflightCheckKind.HOMEBREW, PreflightCheckKind.DISK_SPACE)


class PreflightStatus(Enum):
    OK = "ok"
    WARNING = "warning"
    FAILED = "failed"


@dataclass(frozen=True)
class PreflightCheck:
    kind: PreflightCheckKind
    status: PreflightStatus
    detail: str


@dataclass(frozen=True)
class PreflightReport:
    generated_at: datetime
    checks: List[PreflightCheck] = field(default_factory=list)

    @property
    def overall_status(self) -> PreflightStatus:
        """Worst status across the checks; an empty report is a warning."""
        if not self.checks:
            return PreflightStatus.WARNING
        statuses = {check.status for check in self.checks}
        if PreflightStatus.FAILED in statuses:
            return PreflightStatus.FAILED
        if PreflightStatus.WARNING in statuses:
            return PreflightStatus.WARNING
        return PreflightStatus.OK

    @property
    def blocking_failure_kinds(self) -> List[PreflightCheckKind]:
        return [check.kind for check in self.checks
                if check.status is PreflightStatus.FAILED and check.kind.is_blocking]

    @property
    def has_blocking_failures(self) -> bool:
        return bool(self.blocking_failure_kinds)

    def check(self, kind: PreflightCheckKind) -> Optional[PreflightCheck]:
        for check in self.checks:
            if check.kind is kind:
                return check
        return None
