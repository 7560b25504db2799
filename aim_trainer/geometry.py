"""Geometry helpers shared by the trial session and the analysis pass.

Everything here is pure math over pygame vectors. Zero-length inputs are
normalized to zero instead of raising, so degenerate camera data yields a
collapsed (all-zero) basis rather than a crash.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .aim_core import FORWARD, WORLD_UP, Vec2, Vec3, clamp, normalize_or_zero


@dataclass(frozen=True, slots=True)
class CameraBasis:
    right: Vec3
    up: Vec3
    forward: Vec3

    @classmethod
    def from_forward(cls, forward: Vec3) -> CameraBasis:
        f = normalize_or_zero(forward)
        r = normalize_or_zero(f.cross(WORLD_UP))
        u = normalize_or_zero(r.cross(f))
        return cls(right=r, up=u, forward=f)

    @property
    def is_degenerate(self) -> bool:
        return self.forward.length() == 0.0 or self.right.length() == 0.0

    def to_local(self, rel: Vec3) -> Vec3:
        """Project a camera-relative vector onto (right, up, forward)."""

        return Vec3(rel.dot(self.right), rel.dot(self.up), rel.dot(self.forward))

    def local_xy(self, rel: Vec3) -> Vec2:
        return Vec2(rel.dot(self.right), rel.dot(self.up))

    def to_world(self, local: Vec3) -> Vec3:
        return self.right * local.x + self.up * local.y + self.forward * local.z


DEFAULT_BASIS = CameraBasis.from_forward(FORWARD)


def ray_sphere_intersection(origin: Vec3, direction: Vec3, center: Vec3, radius: float) -> bool:
    """Binary hit test of the infinite line through ``origin`` along ``direction``."""

    oc = origin - center
    a = direction.dot(direction)
    b = 2.0 * oc.dot(direction)
    c = oc.dot(oc) - radius * radius
    return b * b - 4.0 * a * c >= 0.0


def angle_between_deg(a: Vec3 | Vec2, b: Vec3 | Vec2) -> float:
    """Angle between two vectors in degrees; either being zero gives 90."""

    d = clamp(normalize_or_zero(a).dot(normalize_or_zero(b)), -1.0, 1.0)
    return math.degrees(math.acos(d))


def angular_error_deg(target_position: Vec3, camera_position: Vec3, crosshair_direction: Vec3) -> float:
    return angle_between_deg(target_position - camera_position, crosshair_direction)


def heading_deg(v: Vec2) -> float:
    """Heading of a local XY vector in degrees; near-zero vectors read as 0."""

    r, phi = v.as_polar()
    if r <= 0.01:
        return 0.0
    return phi


def heading_difference_deg(a_deg: float, b_deg: float) -> float:
    """Unsigned circular difference in [0, 180]."""

    diff = abs(a_deg - b_deg) % 360.0
    return min(diff, 360.0 - diff)
