#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Preflight Service Module
Checks the host for what runtime installation needs before it starts
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import psutil

from ..handlers.wine_utils import WineUtils
from ..models.preflight import PreflightCheck, PreflightCheckKind, PreflightReport, PreflightStatus

logger = logging.getLogger(__name__)

HOMEBREW_CANDIDATES = ["/opt/homebrew/bin/brew", "/usr/local/bin/brew"]

MINIMUM_DISK_GB = 10
RECOMMENDED_DISK_GB = 20

_BYTES_PER_GB = 1024 ** 3


def detect_homebrew() -> Optional[str]:
    for candidate in HOMEBREW_CANDIDATES:
        if WineUtils.is_executable(candidate):
            return candidate
    return WineUtils.find_executable("brew")


def available_disk_space_gb(path: Path) -> Optional[int]:
    """Free space on the volume holding path (or its nearest existing parent)."""
    probe = Path(path)
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    try:
        usage = psutil.disk_usage(str(probe))
    except OSError as e:
        logger.warning(f"Could not read disk usage for {probe}: {e}")
        return None
    return max(0, usage.free // _BYTES_PER_GB)


class PreflightService:
    """
    Builds a PreflightReport. Detection functions are injectable so callers
    can point them at a specific runtime mode or stub them out.
    """

    def __init__(self, app_home: Path,
                 wine_detector: Optional[Callable[[], Optional[str]]] = None,
                 homebrew_detector: Callable[[], Optional[str]] = detect_homebrew,
                 ffmpeg_detector: Optional[Callable[[], Optional[str]]] = None,
                 disk_space_probe: Callable[[Path], Optional[int]] = available_disk_space_gb):
        self.app_home = Path(app_home)
        self.wine_detector = wine_detector or WineUtils.detect_wine64
        self.homebrew_detector = homebrew_detector
        self.ffmpeg_detector = ffmpeg_detector or (lambda: WineUtils.find_executable("ffmpeg"))
        self.disk_space_probe = disk_space_probe

    def run(self) -> PreflightReport:
        checks = [
            self.check_homebrew(),
            self.check_disk_space(),
            self.check_ffmpeg(),
            self.check_runtime(),
        ]
        report = PreflightReport(generated_at=datetime.now(), checks=checks)
        logger.info(f"Preflight finished: {report.overall_status.value}")
        for check in checks:
            logger.debug(f"Preflight {check.kind.value}: {check.status.value} | {check.detail}")
        return report

    def check_homebrew(self) -> PreflightCheck:
        path = self.homebrew_detector()
        if path:
            return PreflightCheck(PreflightCheckKind.HOMEBREW, PreflightStatus.OK, f"Detected at {path}.")
        return PreflightCheck(PreflightCheckKind.HOMEBREW, PreflightStatus.FAILED,
                              "Not detected. Runtime installation requires Homebrew.")

    def check_disk_space(self) -> PreflightCheck:
        kind = PreflightCheckKind.DISK_SPACE
        available = self.disk_space_probe(self.app_home)
        if available is None:
            return PreflightCheck(kind, PreflightStatus.WARNING, "Could not determine available disk space.")
        if available < MINIMUM_DISK_GB:
            return PreflightCheck(kind, PreflightStatus.FAILED,
                                  f"Only {available} GB available (recommended: at least {RECOMMENDED_DISK_GB} GB).")
        if available < RECOMMENDED_DISK_GB:
            return PreflightCheck(kind, PreflightStatus.WARNING,
                                  f"{available} GB available (recommended: at least {RECOMMENDED_DISK_GB} GB).")
        return PreflightCheck(kind, PreflightStatus.OK, f"{available} GB available.")

    def check_ffmpeg(self) -> PreflightCheck:
        path = self.ffmpeg_detector()
        if path:
            return PreflightCheck(PreflightCheckKind.FFMPEG, PreflightStatus.OK, f"Detected at {path}.")
        return PreflightCheck(PreflightCheckKind.FFMPEG, PreflightStatus.WARNING,
                              "Not detected. Multimedia fixes will be unavailable until installed.")

    def check_runtime(self) -> PreflightCheck:
        path = self.wine_detector()
        if path:
            return PreflightCheck(PreflightCheckKind.RUNTIME, PreflightStatus.OK, f"Detected at {path}.")
        return PreflightCheck(PreflightCheckKind.RUNTIME, PreflightStatus.WARNING,
                              "Not detected yet. Install Runtime will set it up.")
