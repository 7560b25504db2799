"""Post-trial reaction analysis.

The pass runs once over the complete sample series of a finished trial:

* target direction changes are found by comparing the smoothed local-XY target
  velocity before and after each sample,
* each change is matched to the first subsequent crosshair turn that both
  departs from the player's prior heading and lines up better with the
  target's new heading,
* the matched delays and the per-sample angular error are aggregated.

Short series are not an error: below ``min_samples`` every statistic stays at
its default, and below ``min_samples_for_delays`` only the angular error is
computed.
"""

from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .aim_core import Sample, Vec2, mean, median, normalize_or_zero
from .geometry import angle_between_deg, angular_error_deg

logger = logging.getLogger(__name__)

# Nominal fixed-step dts land a few ulps either side of min_dt_s.
_DT_EPS = 1e-9


@dataclass(frozen=True, slots=True)
class AnalysisConfig:
    # Tuned for a 7 units/s target inside the default arena box.
    min_samples: int = 50
    min_samples_for_delays: int = 100
    min_dt_s: float = 0.001

    window: int = 7
    min_target_angle_deg: float = 35.0
    min_target_speed: float = 0.2
    target_step_min_speed: float = 0.1
    dedup_window_s: float = 0.08

    search_start_s: float = 0.07
    search_end_s: float = 0.8
    pre_change_window_s: float = 0.15
    pre_change_min_samples: int = 3
    crosshair_window: int = 3
    crosshair_step_min_speed: float = 0.05
    min_crosshair_speed: float = 0.1
    min_reaction_angle_deg: float = 25.0
    alignment_margin: float = 0.05


@dataclass(frozen=True, slots=True)
class DirectionChangeEvent:
    time: float
    new_direction: Vec2


@dataclass(frozen=True, slots=True)
class TrialStatistics:
    mean_angular_error: float = 0.0
    peak_angular_error: float = 0.0
    mean_delay_ms: float = 0.0
    median_delay_ms: float = 0.0
    direction_change_count: int = 0
    matched_reaction_count: int = 0


RATING_TABLE: tuple[tuple[float, str], ...] = (
    (125.0, "Supreme"),
    (135.0, "Grandmaster"),
    (150.0, "Master"),
    (165.0, "Diamond"),
    (180.0, "Platinum"),
    (200.0, "Gold"),
    (220.0, "Silver"),
    (250.0, "Bronze"),
)
FALLBACK_RATING = "Keep practicing"


def rating_for_delay(mean_delay_ms: float) -> str:
    for upper, label in RATING_TABLE:
        if mean_delay_ms < upper:
            return label
    return FALLBACK_RATING


def _smoothed_direction(
    points: Sequence[Sample],
    start: int,
    end: int,
    *,
    xy: Callable[[Sample], Vec2],
    step_min_speed: float,
    min_dt_s: float,
) -> tuple[Vec2, int]:
    """Average per-step velocity over consecutive pairs in ``points[start:end]``.

    Returns the average and the number of steps that qualified. Steps with a
    dt below ``min_dt_s`` or a speed at or below ``step_min_speed`` are dropped.
    """

    total = Vec2()
    count = 0
    for k in range(start, end - 1):
        dt = points[k + 1].time - points[k].time
        if dt <= min_dt_s - _DT_EPS:
            continue
        step = (xy(points[k + 1]) - xy(points[k])) / dt
        if step.length() > step_min_speed:
            total = total + step
            count += 1
    if count == 0:
        return Vec2(), 0
    return total / count, count


def _target_xy(s: Sample) -> Vec2:
    return s.target_local_xy


def _crosshair_xy(s: Sample) -> Vec2:
    return s.crosshair_local_xy


def smoothed_target_direction(
    samples: Sequence[Sample], start: int, end: int, config: AnalysisConfig | None = None
) -> Vec2:
    cfg = config or AnalysisConfig()
    if start >= end or end >= len(samples):
        return Vec2()
    direction, _ = _smoothed_direction(
        samples,
        start,
        end,
        xy=_target_xy,
        step_min_speed=cfg.target_step_min_speed,
        min_dt_s=cfg.min_dt_s,
    )
    return direction


def smoothed_crosshair_direction(
    samples: Sequence[Sample], start: int, end: int, config: AnalysisConfig | None = None
) -> Vec2:
    cfg = config or AnalysisConfig()
    if start >= end or end >= len(samples):
        return Vec2()
    direction, _ = _smoothed_direction(
        samples,
        start,
        end,
        xy=_crosshair_xy,
        step_min_speed=cfg.crosshair_step_min_speed,
        min_dt_s=cfg.min_dt_s,
    )
    return direction


def find_target_direction_changes(
    samples: Sequence[Sample], config: AnalysisConfig | None = None
) -> list[DirectionChangeEvent]:
    cfg = config or AnalysisConfig()
    w = cfg.window
    events: list[DirectionChangeEvent] = []

    for i in range(w, len(samples) - w):
        old = smoothed_target_direction(samples, i - w, i, cfg)
        new = smoothed_target_direction(samples, i, i + w, cfg)
        if old.length() < cfg.min_target_speed or new.length() < cfg.min_target_speed:
            continue

        if angle_between_deg(old, new) < cfg.min_target_angle_deg:
            continue

        t = samples[i].time
        # Events are appended in time order, so the last one is the nearest.
        if events and abs(events[-1].time - t) < cfg.dedup_window_s:
            continue
        events.append(DirectionChangeEvent(time=t, new_direction=normalize_or_zero(new)))

    return events


def crosshair_direction_before(
    samples: Sequence[Sample],
    t: float,
    config: AnalysisConfig | None = None,
    *,
    times: Sequence[float] | None = None,
) -> Vec2 | None:
    """Player's crosshair heading over the window just before ``t``.

    ``None`` when the window is too sparse or its qualifying steps average
    out to a zero vector.
    """

    cfg = config or AnalysisConfig()
    ts = times if times is not None else [s.time for s in samples]
    lo = bisect_left(ts, t - cfg.pre_change_window_s)
    hi = bisect_left(ts, t)
    if hi - lo < cfg.pre_change_min_samples:
        return None

    direction, count = _smoothed_direction(
        samples,
        lo,
        hi,
        xy=_crosshair_xy,
        step_min_speed=cfg.crosshair_step_min_speed,
        min_dt_s=cfg.min_dt_s,
    )
    if count == 0 or direction.length() <= 0.0:
        return None
    return direction


def find_player_reaction(
    samples: Sequence[Sample],
    event: DirectionChangeEvent,
    config: AnalysisConfig | None = None,
    *,
    times: Sequence[float] | None = None,
) -> float | None:
    """Time of the first corrective crosshair turn after ``event``, if any."""

    cfg = config or AnalysisConfig()
    ts = times if times is not None else [s.time for s in samples]

    start_idx = bisect_left(ts, event.time + cfg.search_start_s)
    end_idx = bisect_right(ts, event.time + cfg.search_end_s) - 1
    if start_idx >= len(ts) or end_idx < 0 or start_idx >= end_idx:
        return None

    before = crosshair_direction_before(samples, event.time, cfg, times=ts)
    if before is None:
        return None
    old_dir = normalize_or_zero(before)
    old_alignment = old_dir.dot(event.new_direction)

    w = cfg.crosshair_window
    for i in range(start_idx, end_idx - w):
        current = smoothed_crosshair_direction(samples, i, i + w, cfg)
        if current.length() < cfg.min_crosshair_speed:
            continue

        current_dir = normalize_or_zero(current)
        if angle_between_deg(old_dir, current_dir) < cfg.min_reaction_angle_deg:
            continue

        if current_dir.dot(event.new_direction) > old_alignment + cfg.alignment_margin:
            return samples[i].time

    return None


def calculate_reaction_delays(
    samples: Sequence[Sample],
    events: Sequence[DirectionChangeEvent],
    config: AnalysisConfig | None = None,
) -> list[float]:
    """Reaction delays in seconds; unmatched events are left out."""

    cfg = config or AnalysisConfig()
    times = [s.time for s in samples]
    delays: list[float] = []
    for event in events:
        reaction_time = find_player_reaction(samples, event, cfg, times=times)
        if reaction_time is not None:
            delays.append(reaction_time - event.time)
    return delays


def calculate_angular_errors(samples: Sequence[Sample]) -> list[float]:
    return [
        angular_error_deg(s.target_position, s.camera_position, s.crosshair_direction)
        for s in samples
    ]


def analyze_samples(samples: Sequence[Sample], config: AnalysisConfig | None = None) -> TrialStatistics:
    cfg = config or AnalysisConfig()
    n = len(samples)
    if n < cfg.min_samples:
        logger.debug(f"Skipping analysis: {n} samples < {cfg.min_samples}")
        return TrialStatistics()

    errors = calculate_angular_errors(samples)
    mean_error = mean(errors)
    peak_error = max(errors)

    if n < cfg.min_samples_for_delays:
        logger.debug(f"Skipping reaction analysis: {n} samples < {cfg.min_samples_for_delays}")
        return TrialStatistics(mean_angular_error=mean_error, peak_angular_error=peak_error)

    events = find_target_direction_changes(samples, cfg)
    delays = calculate_reaction_delays(samples, events, cfg)
    logger.debug(f"Matched {len(delays)} of {len(events)} target direction changes")

    return TrialStatistics(
        mean_angular_error=mean_error,
        peak_angular_error=peak_error,
        mean_delay_ms=mean(delays) * 1000.0,
        median_delay_ms=median(delays) * 1000.0,
        direction_change_count=len(events),
        matched_reaction_count=len(delays),
    )
