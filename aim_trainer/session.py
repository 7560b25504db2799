from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from .aim_core import FORWARD, Phase, Sample, SeededRng, Vec3, clamp, normalize_or_zero
from .analysis import AnalysisConfig, TrialStatistics, analyze_samples
from .geometry import (
    DEFAULT_BASIS,
    CameraBasis,
    angular_error_deg,
    heading_deg,
    ray_sphere_intersection,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrialConfig:
    trial_duration_s: float = 20.0
    tick_hz: float = 1000.0

    target_speed: float = 7.0
    target_radius: float = 0.5
    target_distance: float = 15.0

    shot_interval_s: float = 1.0 / 30.0

    # Box in front of the camera, in its frozen local (right, up, forward) frame.
    bound_x: float = 6.0
    bound_y: float = 4.0
    bound_z_min: float = 8.0
    bound_z_max: float = 16.0

    first_direction_change_s: float = 0.1
    change_interval_min_s: float = 0.2
    change_interval_max_s: float = 0.5
    min_turn_deg: float = 45.0


@dataclass(frozen=True, slots=True)
class TargetRedirect:
    time: float
    previous_heading_deg: float
    rolled_heading_deg: float
    boundary_triggered: bool
    inward_normal: Vec3
    velocity: Vec3


@dataclass(frozen=True, slots=True)
class TrialSnapshot:
    """View model for the host (pure data)."""

    phase: Phase
    prompt: str
    time_remaining_s: float | None
    hits: int
    misses: int
    accuracy_pct: float
    angular_error_deg: float
    target_position: Vec3
    crosshair_direction: Vec3


class TrialSession:
    """Single timed aiming trial: idle -> running -> completed.

    The host owns the instance, calls ``tick`` once per fixed simulation step
    while a trial runs, and reads target position, counters and (after
    completion) statistics back out. The camera pose captured by ``start`` is
    frozen for the whole trial; all boundary math uses that basis even when
    the player's view rotates.
    """

    def __init__(
        self,
        *,
        rng: SeededRng | None = None,
        seed: int = 0,
        config: TrialConfig | None = None,
        analysis_config: AnalysisConfig | None = None,
        on_hit: Callable[[], None] | None = None,
    ) -> None:
        cfg = config or TrialConfig()

        if cfg.trial_duration_s <= 0.0:
            raise ValueError("trial_duration_s must be > 0")
        if cfg.tick_hz <= 0.0:
            raise ValueError("tick_hz must be > 0")
        if cfg.shot_interval_s <= 0.0:
            raise ValueError("shot_interval_s must be > 0")
        if cfg.target_speed <= 0.0:
            raise ValueError("target_speed must be > 0")
        if cfg.bound_x <= 0.0 or cfg.bound_y <= 0.0:
            raise ValueError("bound_x and bound_y must be > 0")
        if not (0.0 < cfg.bound_z_min < cfg.bound_z_max):
            raise ValueError("bound_z_min must be in (0, bound_z_max)")
        if not (0.0 < cfg.change_interval_min_s <= cfg.change_interval_max_s):
            raise ValueError("change interval range must be positive and ordered")
        if not (0.0 <= cfg.min_turn_deg <= 180.0):
            raise ValueError("min_turn_deg must be in [0, 180]")

        self._cfg = cfg
        self._analysis_cfg = analysis_config or AnalysisConfig()
        self._rng = rng if rng is not None else SeededRng(seed)
        self._on_hit = on_hit

        self._phase = Phase.IDLE
        self._samples: list[Sample] = []
        self._redirects: list[TargetRedirect] = []
        self._statistics: TrialStatistics | None = None
        self._reset_state()

    # -- host-facing state -------------------------------------------------

    @property
    def config(self) -> TrialConfig:
        return self._cfg

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def running(self) -> bool:
        return self._phase is Phase.RUNNING

    @property
    def completed(self) -> bool:
        return self._phase is Phase.COMPLETED

    @property
    def start_time(self) -> float:
        return self._start_time

    @property
    def target_position(self) -> Vec3:
        return self._target_position

    @property
    def target_velocity(self) -> Vec3:
        return self._target_velocity

    @property
    def crosshair_direction(self) -> Vec3:
        return self._crosshair_direction

    @property
    def target_distance(self) -> float:
        return self._cfg.target_distance

    @property
    def camera_origin(self) -> Vec3:
        return self._camera_origin

    @property
    def camera_forward(self) -> Vec3:
        return self._camera_forward

    @property
    def basis(self) -> CameraBasis:
        return self._basis

    @property
    def next_direction_change(self) -> float:
        return self._next_direction_change

    @property
    def change_interval(self) -> float:
        return self._change_interval

    @property
    def last_shot_time(self) -> float:
        return self._last_shot_time

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def statistics(self) -> TrialStatistics | None:
        """Aggregate statistics; ``None`` until the trial has completed."""

        if self._phase is not Phase.COMPLETED:
            return None
        return self._statistics

    def samples(self) -> list[Sample]:
        return list(self._samples)

    def redirects(self) -> list[TargetRedirect]:
        return list(self._redirects)

    def accuracy_pct(self) -> float:
        shots = self._hits + self._misses
        return 0.0 if shots == 0 else self._hits / shots * 100.0

    def elapsed_s(self, now: float) -> float | None:
        if self._phase is not Phase.RUNNING:
            return None
        return now - self._start_time

    def time_remaining_s(self, now: float) -> float | None:
        elapsed = self.elapsed_s(now)
        if elapsed is None:
            return None
        return max(0.0, self._cfg.trial_duration_s - elapsed)

    def set_crosshair_direction(self, direction: Vec3) -> None:
        # Copied: pygame vectors are mutable and samples keep a reference.
        self._crosshair_direction = Vec3(direction)

    # -- lifecycle ---------------------------------------------------------

    def start(self, now: float, *, camera_position: Vec3, camera_forward: Vec3 = FORWARD) -> bool:
        """Begin a trial at ``now``. Returns False if one is already running."""

        if self._phase is Phase.RUNNING:
            return False

        basis = CameraBasis.from_forward(camera_forward)
        if basis.is_degenerate:
            logger.warning(
                f"Degenerate camera forward {camera_forward}; target boundary math collapses to the origin"
            )

        self._phase = Phase.RUNNING
        self._start_time = float(now)
        self._samples.clear()
        self._redirects.clear()
        self._statistics = None
        self._hits = 0
        self._misses = 0
        self._last_shot_time = 0.0

        self._camera_origin = Vec3(camera_position)
        self._camera_forward = Vec3(camera_forward)
        self._basis = basis

        self._crosshair_direction = basis.forward if not basis.is_degenerate else FORWARD
        self._target_position = camera_position + basis.forward * self._cfg.target_distance

        angle = self._rng.uniform(0.0, 2.0 * math.pi)
        self._target_velocity = self._heading_velocity(angle)

        self._next_direction_change = self._cfg.first_direction_change_s
        self._change_interval = self._cfg.first_direction_change_s

        logger.info(f"Trial started at t={self._start_time:.3f}s from camera {camera_position}")
        return True

    def reset(self) -> None:
        """Abort or clear any trial and return to idle."""

        self._phase = Phase.IDLE
        self._samples.clear()
        self._redirects.clear()
        self._statistics = None
        self._reset_state()

    def tick(self, dt: float, now: float, camera_position: Vec3) -> bool:
        """Advance one simulation step. Returns True if a shot hit this tick."""

        if self._phase is not Phase.RUNNING:
            return False

        camera_position = Vec3(camera_position)
        elapsed = now - self._start_time
        if elapsed >= self._cfg.trial_duration_s:
            self._finish()
            return False

        hit = False
        if elapsed - self._last_shot_time >= self._cfg.shot_interval_s:
            hit = self._fire(camera_position)
            self._last_shot_time = elapsed

        self._move_target(dt, elapsed, camera_position)
        self._record(elapsed, camera_position)
        return hit

    def snapshot(self, now: float) -> TrialSnapshot:
        return TrialSnapshot(
            phase=self._phase,
            prompt=self.current_prompt(),
            time_remaining_s=self.time_remaining_s(now),
            hits=self._hits,
            misses=self._misses,
            accuracy_pct=self.accuracy_pct(),
            angular_error_deg=self.live_angular_error_deg(),
            target_position=self._target_position,
            crosshair_direction=self._crosshair_direction,
        )

    def current_prompt(self) -> str:
        if self._phase is Phase.IDLE:
            return "Press SPACE to start"
        if self._phase is Phase.COMPLETED:
            return "SPACE - new test\nESC - reset"
        return "Track the target."

    def live_angular_error_deg(self) -> float:
        if self._phase is not Phase.RUNNING:
            return 0.0
        camera = self._samples[-1].camera_position if self._samples else self._camera_origin
        return angular_error_deg(self._target_position, camera, self._crosshair_direction)

    # -- internals ---------------------------------------------------------

    def _reset_state(self) -> None:
        self._start_time = 0.0
        self._hits = 0
        self._misses = 0
        self._last_shot_time = 0.0
        self._camera_origin = Vec3()
        self._camera_forward = FORWARD
        self._basis = DEFAULT_BASIS
        self._crosshair_direction = FORWARD
        self._target_position = Vec3()
        self._target_velocity = normalize_or_zero(Vec3(1.0, 0.5, 0.5)) * self._cfg.target_speed
        self._next_direction_change = self._cfg.first_direction_change_s
        self._change_interval = self._cfg.first_direction_change_s

    def _finish(self) -> None:
        self._phase = Phase.COMPLETED
        self._statistics = analyze_samples(self._samples, self._analysis_cfg)
        s = self._statistics
        logger.info(
            f"Trial completed: {len(self._samples)} samples, hits={self._hits} misses={self._misses}, "
            f"mean delay {s.mean_delay_ms:.1f} ms over {s.matched_reaction_count}/{s.direction_change_count} changes"
        )

    def _fire(self, camera_position: Vec3) -> bool:
        hit = ray_sphere_intersection(
            camera_position,
            self._crosshair_direction,
            self._target_position,
            self._cfg.target_radius,
        )
        if hit:
            self._hits += 1
            if self._on_hit is not None:
                self._on_hit()
        else:
            self._misses += 1
        return hit

    def _heading_velocity(self, angle_rad: float) -> Vec3:
        b = self._basis
        direction = b.right * math.cos(angle_rad) + b.up * math.sin(angle_rad)
        return direction * self._cfg.target_speed

    def _out_of_bounds(self, local: Vec3) -> bool:
        cfg = self._cfg
        return (
            local.x < -cfg.bound_x
            or local.x > cfg.bound_x
            or local.y < -cfg.bound_y
            or local.y > cfg.bound_y
            or local.z < cfg.bound_z_min
            or local.z > cfg.bound_z_max
        )

    def _clamp_local(self, local: Vec3) -> Vec3:
        cfg = self._cfg
        return Vec3(
            clamp(local.x, -cfg.bound_x, cfg.bound_x),
            clamp(local.y, -cfg.bound_y, cfg.bound_y),
            clamp(local.z, cfg.bound_z_min, cfg.bound_z_max),
        )

    def _move_target(self, dt: float, elapsed: float, camera_position: Vec3) -> None:
        b = self._basis
        candidate = self._target_position + self._target_velocity * dt
        rel = candidate - camera_position
        hit_boundary = self._out_of_bounds(b.to_local(rel))

        if elapsed >= self._next_direction_change or hit_boundary:
            self._redirect(elapsed, rel, hit_boundary)

        candidate = self._target_position + self._target_velocity * dt
        local = self._clamp_local(b.to_local(candidate - camera_position))
        self._target_position = camera_position + b.to_world(local)

    def _redirect(self, elapsed: float, rel: Vec3, hit_boundary: bool) -> None:
        cfg = self._cfg
        previous = heading_deg(self._basis.local_xy(self._target_velocity))

        min_turn = math.radians(cfg.min_turn_deg)
        offset = self._rng.uniform(0.0, 2.0 * math.pi - 2.0 * min_turn)
        new_angle = math.radians(previous) + min_turn + offset
        velocity = self._heading_velocity(new_angle)

        inward = Vec3()
        if hit_boundary:
            inward = normalize_or_zero(-rel)
            if velocity.dot(inward) < 0.0:
                # Reflection about a unit normal keeps speed; renormalize to drop float drift.
                velocity = normalize_or_zero(velocity.reflect(inward)) * cfg.target_speed

        self._target_velocity = velocity
        self._change_interval = self._rng.uniform(cfg.change_interval_min_s, cfg.change_interval_max_s)
        self._next_direction_change = elapsed + self._change_interval

        self._redirects.append(
            TargetRedirect(
                time=elapsed,
                previous_heading_deg=previous,
                rolled_heading_deg=math.degrees(new_angle),
                boundary_triggered=hit_boundary,
                inward_normal=inward,
                velocity=velocity,
            )
        )

    def _record(self, elapsed: float, camera_position: Vec3) -> None:
        b = self._basis
        self._samples.append(
            Sample(
                time=elapsed,
                target_position=self._target_position,
                target_local_xy=b.local_xy(self._target_position - camera_position),
                crosshair_direction=self._crosshair_direction,
                crosshair_local_xy=b.local_xy(self._crosshair_direction),
                camera_position=camera_position,
            )
        )


class Clock(Protocol):
    """Time source for ``FixedStepRunner``; must be monotonic seconds."""

    def now(self) -> float: ...


class RealClock:
    def now(self) -> float:
        return time.monotonic()


class FixedStepRunner:
    """Drives a ``TrialSession`` at a fixed tick rate from a real or fake clock.

    Wall-clock time between ``update`` calls is accumulated and consumed in
    ``1 / tick_hz`` steps, so the session sees the same cadence regardless of
    how often the host renders.
    """

    _MAX_UPDATE_DT_S = 0.50

    def __init__(self, session: TrialSession, *, clock: Clock, tick_hz: float | None = None) -> None:
        hz = session.config.tick_hz if tick_hz is None else float(tick_hz)
        if hz <= 0.0:
            raise ValueError("tick_hz must be > 0")

        self._session = session
        self._clock = clock
        self._tick_dt = 1.0 / hz
        self._last_update_at_s = clock.now()
        self._accumulator_s = 0.0
        self._sim_now = 0.0

    @property
    def session(self) -> TrialSession:
        return self._session

    @property
    def sim_now(self) -> float:
        return self._sim_now

    @property
    def tick_dt(self) -> float:
        return self._tick_dt

    def start(self, *, camera_position: Vec3, camera_forward: Vec3 = FORWARD) -> bool:
        self._sync()
        return self._session.start(
            self._sim_now, camera_position=camera_position, camera_forward=camera_forward
        )

    def update(self, camera_position: Vec3) -> int:
        """Run all due fixed steps; returns the number of hits they produced."""

        now = self._clock.now()
        dt = now - self._last_update_at_s
        self._last_update_at_s = now
        if dt <= 0.0:
            return 0

        self._accumulator_s += min(float(dt), self._MAX_UPDATE_DT_S)
        hits = 0
        while self._accumulator_s >= self._tick_dt:
            self._accumulator_s -= self._tick_dt
            self._sim_now += self._tick_dt
            if self._session.tick(self._tick_dt, self._sim_now, camera_position):
                hits += 1
        return hits

    def time_remaining_s(self) -> float | None:
        return self._session.time_remaining_s(self._sim_now)

    def _sync(self) -> None:
        # Drop time that passed while no trial was being stepped.
        self._last_update_at_s = self._clock.now()
        self._accumulator_s = 0.0
