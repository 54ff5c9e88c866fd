#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Launch Options Handler Module
Composes the managed part of a game's launch options string
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class LaunchOptionsComposer:
    """
    Owns a marker-delimited segment inside a user's launch options.
    Everything outside the markers belongs to the user and is kept.
    """

    BEGIN_MARKER = "__STEAVIUM_PROFILE_BEGIN__"
    END_MARKER = "__STEAVIUM_PROFILE_END__"

    @staticmethod
    def managed_segment(force_windowed: bool) -> Optional[str]:
        if not force_windowed:
            return None
        return f"{LaunchOptionsComposer.BEGIN_MARKER} -windowed {LaunchOptionsComposer.END_MARKER}"

    @staticmethod
    def strip_managed_segment(value: str) -> str:
        """
        Remove every managed segment from value.

        A begin marker without a matching end marker drops everything up to
        the end of the string.
        """
        begin, end = LaunchOptionsComposer.BEGIN_MARKER, LaunchOptionsComposer.END_MARKER
        text = value
        start = text.find(begin)
        while start != -1:
            stop = text.find(end, start + len(begin))
            if stop == -1:
                logger.debug("Launch options have an unterminated managed segment; truncating")
                text = text[:start]
            else:
                text = text[:start] + text[stop + len(end):]
            start = text.find(begin)
        return LaunchOptionsComposer.normalize_whitespace(text)

    @staticmethod
    def merge(existing: str, segment: Optional[str]) -> str:
        """User options with the managed segment appended (or removed when segment is None)."""
        base = LaunchOptionsComposer.strip_managed_segment(existing)
        if not segment:
            return base
        if not base:
            return segment
        return LaunchOptionsComposer.normalize_whitespace(f"{base} {segment}")

    @staticmethod
    def normalize_whitespace(value: str) -> str:
        return " ".join(value.split())
