"""
Compatibility Profile Models

Per-game compatibility overrides and the flag tokens they map to in the
runtime's AppCompatFlags registry layer.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class CompatibilityPreset(Enum):
    """Classification derived from the override flags."""
    AUTOMATIC = "automatic"
    LEGACY_VIDEO_SAFE = "legacyVideoSafe"
    WINDOWED_SAFE = "windowedSafe"
    CUSTOM = "custom"


class CompatibilityMode(Enum):
    NONE = "none"
    WIN95 = "windows95"
    WIN98_ME = "windows98Me"
    WINXP_SP2 = "windowsXPServicePack2"
    WINXP_SP3 = "windowsXPServicePack3"
    VISTA_SP2 = "windowsVistaServicePack2"
    WIN7 = "windows7"
    WIN8 = "windows8"

    @property
    def layer_flag(self) -> Optional[str]:
        return _COMPATIBILITY_MODE_FLAGS.get(self)


class ReducedColorMode(Enum):
    NONE = "none"
    COLORS_256 = "colors256"
    COLORS_16BIT = "colors16Bit"

    @property
    def layer_flag(self) -> Optional[str]:
        return _REDUCED_COLOR_FLAGS.get(self)


class HighDPIOverrideMode(Enum):
    NONE = "none"
    APPLICATION = "application"

    @property
    def layer_flags(self) -> List[str]:
        if self is HighDPIOverrideMode.APPLICATION:
            return ["HIGHDPIAWARE"]
        return []


_COMPATIBILITY_MODE_FLAGS = {
    CompatibilityMode.WIN95: "WIN95",
    CompatibilityMode.WIN98_ME: "WIN98",
    CompatibilityMode.WINXP_SP2: "WINXPSP2",
    CompatibilityMode.WINXP_SP3: "WINXPSP3",
    CompatibilityMode.VISTA_SP2: "VISTASP2",
    CompatibilityMode.WIN7: "WIN7RTM",
    CompatibilityMode.WIN8: "WIN8RTM",
}

_REDUCED_COLOR_FLAGS = {
    ReducedColorMode.COLORS_256: "256COLOR",
    ReducedColorMode.COLORS_16BIT: "16BITCOLOR",
}

FLAG_640X480 = "640X480"
FLAG_DISABLE_FULLSCREEN_OPTIMIZATIONS = "DISABLEDXMAXIMIZEDWINDOWEDMODE"
FLAG_RUN_AS_ADMIN = "RUNASADMIN"


def _decode_enum(enum_cls, raw, default):
    try:
        return enum_cls(raw)
    except ValueError:
        return default


def _decode_bool(raw) -> bool:
    return raw if isinstance(raw, bool) else False


@dataclass
class CompatibilityProfile:
    """User-authored overrides for one game, keyed by app id."""
    app_id: int
    preset: CompatibilityPreset = CompatibilityPreset.AUTOMATIC
    executable_relative_path: Optional[str] = None
    compatibility_mode: CompatibilityMode = CompatibilityMode.NONE
    force_windowed: bool = False
    force_640x480: bool = False
    reduced_color_mode: ReducedColorMode = ReducedColorMode.NONE
    high_dpi_override_mode: HighDPIOverrideMode = HighDPIOverrideMode.NONE
    disable_fullscreen_optimizations: bool = False
    run_as_admin: bool = False

    @classmethod
    def defaults(cls, app_id: int, default_executable_relative_path: Optional[str] = None) -> "CompatibilityProfile":
        """Profile with no overrides, pointing at the detected executable."""
        return cls(app_id=app_id, executable_relative_path=default_executable_relative_path)

    def apply_preset(self, preset: CompatibilityPreset) -> None:
        """Overwrite the flags with the canonical combination of preset."""
        self.preset = preset
        if preset is CompatibilityPreset.CUSTOM:
            return

        self.compatibility_mode = CompatibilityMode.NONE
        self.high_dpi_override_mode = HighDPIOverrideMode.NONE
        self.run_as_admin = False
        self.force_windowed = preset is CompatibilityPreset.WINDOWED_SAFE
        self.force_640x480 = preset is CompatibilityPreset.LEGACY_VIDEO_SAFE
        self.reduced_color_mode = (ReducedColorMode.COLORS_16BIT
                                   if preset is CompatibilityPreset.LEGACY_VIDEO_SAFE
                                   else ReducedColorMode.NONE)
        self.disable_fullscreen_optimizations = preset is not CompatibilityPreset.AUTOMATIC

    def derived_preset(self) -> CompatibilityPreset:
        if not self.has_overrides:
            return CompatibilityPreset.AUTOMATIC

        shared = (self.compatibility_mode is CompatibilityMode.NONE
                  and self.high_dpi_override_mode is HighDPIOverrideMode.NONE
                  and self.disable_fullscreen_optimizations
                  and not self.run_as_admin)
        if not shared:
            return CompatibilityPreset.CUSTOM

        if (not self.force_windowed and self.force_640x480
                and self.reduced_color_mode is ReducedColorMode.COLORS_16BIT):
            return CompatibilityPreset.LEGACY_VIDEO_SAFE
        if (self.force_windowed and not self.force_640x480
                and self.reduced_color_mode is ReducedColorMode.NONE):
            return CompatibilityPreset.WINDOWED_SAFE
        return CompatibilityPreset.CUSTOM

    def refresh_preset_from_flags(self) -> None:
        self.preset = self.derived_preset()

    def normalized(self) -> "CompatibilityProfile":
        """Copy with the preset recomputed from the flags."""
        profile = replace(self)
        profile.refresh_preset_from_flags()
        return profile

    @property
    def has_overrides(self) -> bool:
        return (self.compatibility_mode is not CompatibilityMode.NONE
                or self.force_windowed
                or self.force_640x480
                or self.reduced_color_mode is not ReducedColorMode.NONE
                or self.high_dpi_override_mode is not HighDPIOverrideMode.NONE
                or self.disable_fullscreen_optimizations
                or self.run_as_admin)

    @property
    def compatibility_layer_flags(self) -> List[str]:
        """Registry flag tokens in their fixed order."""
        flags = []
        if self.compatibility_mode.layer_flag:
            flags.append(self.compatibility_mode.layer_flag)
        if self.force_640x480:
            flags.append(FLAG_640X480)
        if self.reduced_color_mode.layer_flag:
            flags.append(self.reduced_color_mode.layer_flag)
        flags.extend(self.high_dpi_override_mode.layer_flags)
        if self.disable_fullscreen_optimizations:
            flags.append(FLAG_DISABLE_FULLSCREEN_OPTIMIZATIONS)
        if self.run_as_admin:
            flags.append(FLAG_RUN_AS_ADMIN)
        return flags

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the on-disk record keys."""
        data = {
            'appID': self.app_id,
            'preset': self.preset.value,
            'compatibilityMode': self.compatibility_mode.value,
            'forceWindowed': self.force_windowed,
            'force640x480': self.force_640x480,
            'reducedColorMode': self.reduced_color_mode.value,
            'highDPIOverrideMode': self.high_dpi_override_mode.value,
            'disableFullscreenOptimizations': self.disable_fullscreen_optimizations,
            'runAsAdmin': self.run_as_admin,
        }
        if self.executable_relative_path is not None:
            data['executableRelativePath'] = self.executable_relative_path
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompatibilityProfile":
        """
        Decode a persisted record. Missing or unknown fields fall back to
        their defaults; the legacy force16BitColor flag maps onto the
        reduced color mode when no valid mode is stored.

        Raises KeyError/TypeError/ValueError when appID is missing or invalid.
        """
        app_id = data['appID']
        if isinstance(app_id, bool) or not isinstance(app_id, int):
            raise TypeError(f"appID must be an integer, got {app_id!r}")

        reduced_color_mode = _decode_enum(ReducedColorMode, data.get('reducedColorMode'), None)
        if reduced_color_mode is None:
            if data.get('force16BitColor') is True:
                reduced_color_mode = ReducedColorMode.COLORS_16BIT
            else:
                reduced_color_mode = ReducedColorMode.NONE

        executable = data.get('executableRelativePath')
        return cls(
            app_id=app_id,
            preset=_decode_enum(CompatibilityPreset, data.get('preset'), CompatibilityPreset.AUTOMATIC),
            executable_relative_path=executable if isinstance(executable, str) else None,
            compatibility_mode=_decode_enum(CompatibilityMode, data.get('compatibilityMode'), CompatibilityMode.NONE),
            force_windowed=_decode_bool(data.get('forceWindowed')),
            force_640x480=_decode_bool(data.get('force640x480')),
            reduced_color_mode=reduced_color_mode,
            high_dpi_override_mode=_decode_enum(HighDPIOverrideMode, data.get('highDPIOverrideMode'),
                                                HighDPIOverrideMode.NONE),
            disable_fullscreen_optimizations=_decode_bool(data.get('disableFullscreenOptimizations')),
            run_as_admin=_decode_bool(data.get('runAsAdmin')),
        )
