from __future__ import annotations

from dataclasses import dataclass

from .analysis import TrialStatistics, rating_for_delay
from .session import TrialSession, TrialSnapshot


@dataclass(frozen=True, slots=True)
class TrialResult:
    """Display-ready summary of a completed trial."""

    duration_s: float
    samples: int
    hits: int
    misses: int
    accuracy_pct: float

    mean_delay_ms: float
    median_delay_ms: float
    direction_change_count: int
    matched_reaction_count: int

    mean_angular_error_deg: float
    peak_angular_error_deg: float

    rating: str | None


def trial_result_from_session(session: TrialSession) -> TrialResult:
    """Build a TrialResult from a finished TrialSession."""

    stats = session.statistics
    if stats is None:
        raise ValueError("trial has not completed")
    return trial_result_from_statistics(
        stats,
        duration_s=session.config.trial_duration_s,
        samples=len(session.samples()),
        hits=session.hits,
        misses=session.misses,
    )


def trial_result_from_statistics(
    stats: TrialStatistics,
    *,
    duration_s: float,
    samples: int,
    hits: int,
    misses: int,
) -> TrialResult:
    shots = hits + misses
    accuracy = 0.0 if shots == 0 else hits / shots * 100.0

    # No matched reaction means the mean is a placeholder zero, not a real 0 ms.
    rating = rating_for_delay(stats.mean_delay_ms) if stats.matched_reaction_count > 0 else None

    return TrialResult(
        duration_s=float(duration_s),
        samples=int(samples),
        hits=int(hits),
        misses=int(misses),
        accuracy_pct=float(accuracy),
        mean_delay_ms=float(stats.mean_delay_ms),
        median_delay_ms=float(stats.median_delay_ms),
        direction_change_count=int(stats.direction_change_count),
        matched_reaction_count=int(stats.matched_reaction_count),
        mean_angular_error_deg=float(stats.mean_angular_error),
        peak_angular_error_deg=float(stats.peak_angular_error),
        rating=rating,
    )


def format_results_text(result: TrialResult) -> str:
    rating = "n/a" if result.rating is None else result.rating
    return "\n".join(
        [
            "TEST RESULTS",
            f"Avg Reaction: {result.mean_delay_ms:.1f} ms",
            f"Median Reaction: {result.median_delay_ms:.1f} ms",
            f"Count Dirs: {result.direction_change_count}",
            f"React Dirs: {result.matched_reaction_count}",
            f"Accuracy: {result.accuracy_pct:.2f}%",
            f"Hits: {result.hits}",
            f"Miss: {result.misses}",
            f"Avg error: {result.mean_angular_error_deg:.4f}°",
            f"Peak error: {result.peak_angular_error_deg:.4f}°",
            "",
            f"Rating: {rating}",
        ]
    )


def format_hud_text(snap: TrialSnapshot) -> str:
    remaining = 0.0 if snap.time_remaining_s is None else snap.time_remaining_s
    return "\n".join(
        [
            f"Time remaining: {remaining:.1f}s",
            f"Accuracy: {snap.accuracy_pct:.2f}",
            f"Hits: {snap.hits}",
            f"Misses: {snap.misses}",
            f"Angular error: {snap.angular_error_deg:.1f}°",
        ]
    )
