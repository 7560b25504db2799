from __future__ import annotations

import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from pygame.math import Vector2, Vector3

# Vectors are pygame's; the core never mutates one in place, so sharing them
# between samples and constants is safe.
Vec2 = Vector2
Vec3 = Vector3

V = TypeVar("V", Vector2, Vector3)


class Phase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


WORLD_UP = Vec3(0.0, 1.0, 0.0)
FORWARD = Vec3(0.0, 0.0, -1.0)


def normalize_or_zero(v: V) -> V:
    """Unit vector along ``v``; zero or non-finite input maps to zero."""

    n = v.length()
    if n <= 0.0 or not math.isfinite(n):
        return type(v)()
    return v.normalize()


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x <= lo else hi if x >= hi else float(x)


def mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def median(values: list[float]) -> float:
    """Median of ``values``; even counts average the two middle values."""

    if not values:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2.0


@dataclass(frozen=True, slots=True)
class Sample:
    """One recorded tick of a running trial.

    ``time`` is seconds since trial start. The local XY fields are projections
    onto the camera's right/up axes frozen at trial start.
    """

    time: float
    target_position: Vec3
    target_local_xy: Vec2
    crosshair_direction: Vec3
    crosshair_local_xy: Vec2
    camera_position: Vec3
