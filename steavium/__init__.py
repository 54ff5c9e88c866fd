"""
Steavium - run Windows game stores on macOS through Wine/CrossOver,
with per-game compatibility profiles.
"""

__version__ = "0.4.0"
