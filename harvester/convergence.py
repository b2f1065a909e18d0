"""Convergence detection over successive per-date item counts."""

from datetime import date
from typing import Optional, Sequence
from harvester.exceptions import CutoffNeverObserved
from harvester.models import CrawlOptions, Snapshot
from utils.logger import get_logger

logger = get_logger(__name__)


def simple_check(
    latest: Snapshot,
    cutoff: date,
    today: date,
    count_tolerance: int = 1,
    time_window: int = 3
) -> bool:
    """
    First-iteration check comparing the cutoff count with recent activity.

    The cutoff date's count is compared with the rounded mean count of dates
    within ``time_window`` days of today. A cutoff count far from that mean
    means the cutoff day is probably only partially loaded.

    Args:
        latest: Current snapshot
        cutoff: Cutoff date
        today: Today's date
        count_tolerance: Allowed deviation from the recent mean
        time_window: Days around today used for the mean

    Returns:
        True to keep expanding, False if a stop may be considered
    """
    if cutoff not in latest:
        return True

    recent = [
        count for day, count in latest.counts.items()
        if abs((day - today).days) <= time_window
    ]
    if not recent:
        return True

    recent_mean = round(sum(recent) / len(recent))
    return abs(latest.count(cutoff) - recent_mean) > count_tolerance


def historical_check(
    history: Sequence[Snapshot],
    latest: Snapshot,
    cutoff: date,
    iteration_tolerance: int = 3,
    required_observations: int = 5,
    stable_window: int = 4
) -> bool:
    """
    Steady-state check: has the cutoff date's count stopped moving?

    Only snapshots that contain the cutoff date are considered. With fewer than
    ``required_observations`` of them the evidence is insufficient. Otherwise
    the last ``stable_window`` counts must all differ from their predecessor by
    at most ``iteration_tolerance``.

    Args:
        history: All snapshots so far, oldest first (including latest)
        latest: Current snapshot
        cutoff: Cutoff date
        iteration_tolerance: Allowed change between successive observations
        required_observations: Observations of the cutoff needed before stopping
        stable_window: Number of most recent observations that must be stable

    Returns:
        True to keep expanding, False when the cutoff count is stable
    """
    if cutoff not in latest:
        return True

    observed = [snapshot.count(cutoff) for snapshot in history if cutoff in snapshot]
    if len(observed) < required_observations:
        return True

    window = observed[-stable_window:]
    steps = [abs(b - a) for a, b in zip(window, window[1:])]
    return not all(step <= iteration_tolerance for step in steps)


def should_continue(
    history: Sequence[Snapshot],
    latest: Snapshot,
    cutoff: date,
    options: CrawlOptions,
    today: date,
    first_iteration: bool = False
) -> bool:
    """
    Decide whether to keep expanding the page.

    On the first iteration the simple check runs as a fast path; the
    historical check always has the final word on stopping.

    Args:
        history: All snapshots so far, oldest first (including latest)
        latest: Current snapshot
        cutoff: Effective cutoff date
        options: Crawl options with the tolerances
        today: Today's date
        first_iteration: Whether this is the first evaluation of the crawl

    Returns:
        True to continue, False to stop
    """
    if first_iteration and simple_check(
        latest, cutoff, today,
        count_tolerance=options.count_tolerance,
        time_window=options.time_window_days
    ):
        logger.debug(f"Simple check: cutoff {cutoff} not settled relative to recent days")
        return True

    return historical_check(
        history, latest, cutoff,
        iteration_tolerance=options.iteration_tolerance,
        required_observations=options.required_observations,
        stable_window=options.stable_window
    )


def clamp_bound(cutoff: date, today: date, min_iterations: int = 10, per_day: int = 1) -> int:
    """Iterations allowed before an unseen cutoff is clamped."""
    days_back = max((today - cutoff).days, 0)
    return max(min_iterations, days_back * per_day)


def ensure_cutoff_observed(history: Sequence[Snapshot], cutoff: date, iterations: int, bound: int) -> None:
    """
    Raise CutoffNeverObserved once the budget is spent without seeing the cutoff.

    While the latest snapshot has not reached past the cutoff the page is still
    loading towards it, so the budget does not apply yet.

    Raises:
        CutoffNeverObserved: If ``iterations >= bound``, no snapshot holds the
            cutoff and the latest snapshot already shows older dates
    """
    if iterations < bound or not history:
        return
    if any(cutoff in snapshot for snapshot in history):
        return
    if not passed_cutoff(history[-1], cutoff):
        return
    raise CutoffNeverObserved(cutoff, iterations)


def nearest_observed_date(snapshot: Snapshot, cutoff: date) -> Optional[date]:
    """Date in the snapshot closest to the cutoff; ties go to the newer date."""
    if not snapshot.counts:
        return None
    return min(snapshot.counts, key=lambda day: (abs((day - cutoff).days), -day.toordinal()))


def passed_cutoff(snapshot: Snapshot, cutoff: date) -> bool:
    """True when the listing already shows items older than the cutoff."""
    oldest = snapshot.oldest
    return oldest is not None and oldest < cutoff
