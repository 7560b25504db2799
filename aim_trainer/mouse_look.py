"""Mouse-look: converts raw mouse counts into a crosshair direction.

Sensitivity is expressed the way players configure it, as mouse DPI and the
physical distance (cm) that turns the view a full 360 degrees.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .aim_core import Vec3, clamp

DEFAULT_DPI = 1600.0
DEFAULT_CM_360 = 38.0
DEFAULT_FOV_DEG = 103.0

CM_PER_INCH = 2.54


@dataclass(frozen=True, slots=True)
class LookSettings:
    dpi: float = DEFAULT_DPI
    cm_360: float = DEFAULT_CM_360
    fov_deg: float = DEFAULT_FOV_DEG  # horizontal

    def __post_init__(self) -> None:
        if self.dpi <= 0.0:
            raise ValueError("dpi must be > 0")
        if self.cm_360 <= 0.0:
            raise ValueError("cm_360 must be > 0")
        if not (0.0 < self.fov_deg < 180.0):
            raise ValueError("fov_deg must be in (0, 180)")


def mouse_sensitivity(settings: LookSettings) -> float:
    """Radians of rotation per mouse count."""

    counts_per_360 = (settings.cm_360 / CM_PER_INCH) * settings.dpi
    return (2.0 * math.pi) / counts_per_360


def vertical_fov_rad(horizontal_fov_deg: float, aspect_ratio: float) -> float:
    h = math.radians(horizontal_fov_deg)
    return 2.0 * math.atan(math.tan(h / 2.0) / aspect_ratio)


def look_direction(yaw: float, pitch: float) -> Vec3:
    """Rotate -Z by pitch about X, then by yaw about Y."""

    cp = math.cos(pitch)
    return Vec3(-math.sin(yaw) * cp, math.sin(pitch), -math.cos(yaw) * cp)


class MouseLook:
    def __init__(self, settings: LookSettings | None = None) -> None:
        self._settings = settings or LookSettings()
        self._sensitivity = mouse_sensitivity(self._settings)
        self._yaw = 0.0
        self._pitch = 0.0

    @property
    def settings(self) -> LookSettings:
        return self._settings

    @property
    def yaw(self) -> float:
        return self._yaw

    @property
    def pitch(self) -> float:
        return self._pitch

    def reset(self) -> None:
        self._yaw = 0.0
        self._pitch = 0.0

    def apply_motion(self, dx: float, dy: float) -> Vec3:
        """Accumulate a mouse delta (screen counts, +y down) and return the new aim."""

        if dx != 0.0 or dy != 0.0:
            self._yaw -= float(dx) * self._sensitivity
            self._pitch -= float(dy) * self._sensitivity
            self._pitch = clamp(self._pitch, -math.pi / 2.0, math.pi / 2.0)
        return self.direction()

    def direction(self) -> Vec3:
        return look_direction(self._yaw, self._pitch)
