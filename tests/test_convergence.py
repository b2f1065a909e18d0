"""Tests for convergence detection."""

import pytest
from datetime import date, timedelta
from harvester.convergence import (
    clamp_bound,
    ensure_cutoff_observed,
    historical_check,
    nearest_observed_date,
    passed_cutoff,
    should_continue,
    simple_check,
)
from harvester.exceptions import CutoffNeverObserved
from harvester.models import CrawlOptions, Snapshot

TODAY = date(2023, 12, 1)
CUTOFF = date(2023, 11, 20)


def _recent(count=3):
    """Counts for today and the three days before."""
    return {TODAY - timedelta(days=n): count for n in range(4)}


def _history(cutoff_counts):
    history = []
    for i, count in enumerate(cutoff_counts, start=1):
        counts = _recent()
        if count is not None:
            counts[CUTOFF] = count
        history.append(Snapshot(iteration=i, counts=counts))
    return history


def test_historical_check_stable_counts_stop():
    """The same count over the last four observations is stable."""
    history = _history([2, 5, 5, 5, 5])
    assert historical_check(history, history[-1], CUTOFF) is False


def test_historical_check_oscillating_counts_continue():
    """Counts jumping by more than the tolerance are not trusted."""
    history = _history([5, 5, 9, 5, 9])
    assert historical_check(history, history[-1], CUTOFF, iteration_tolerance=1) is True


def test_historical_check_within_tolerance_stop():
    history = _history([1, 4, 6, 6, 7])
    assert historical_check(history, history[-1], CUTOFF, iteration_tolerance=3) is False


@pytest.mark.parametrize("counts", [[5], [5, 5], [5, 5, 5, 5], [None, 5, None, 5, 5, 5]])
def test_historical_check_insufficient_observations(counts):
    """Fewer than five snapshots containing the cutoff always continue."""
    history = _history(counts)
    assert historical_check(history, history[-1], CUTOFF) is True


def test_historical_check_cutoff_absent_continue():
    history = _history([5, 5, 5, 5, 5, None])
    assert historical_check(history, history[-1], CUTOFF) is True


def test_historical_check_ignores_snapshots_without_cutoff():
    """Only snapshots that contain the cutoff count as observations."""
    history = _history([5, None, 5, None, 5, 5, 5])
    assert historical_check(history, history[-1], CUTOFF) is False


def test_simple_check_matching_recent_mean():
    """Cutoff count close to the recent mean allows a stop."""
    snapshot = Snapshot(iteration=1, counts={**_recent(3), CUTOFF: 3})
    assert simple_check(snapshot, CUTOFF, TODAY, count_tolerance=1) is False


def test_simple_check_partial_cutoff_day():
    """A cutoff day far below the recent mean is probably partially loaded."""
    snapshot = Snapshot(iteration=1, counts={**_recent(6), CUTOFF: 1})
    assert simple_check(snapshot, CUTOFF, TODAY, count_tolerance=1) is True


def test_simple_check_no_recent_dates():
    snapshot = Snapshot(iteration=1, counts={CUTOFF: 3})
    assert simple_check(snapshot, CUTOFF, TODAY) is True


def test_should_continue_simple_check_cannot_stop_alone():
    """On the first iteration a passing simple check still defers to history."""
    history = _history([3])
    options = CrawlOptions()
    assert should_continue(history, history[-1], CUTOFF, options, TODAY, first_iteration=True) is True


def test_should_continue_simple_check_failing_continues():
    snapshot = Snapshot(iteration=1, counts={**_recent(6), CUTOFF: 1})
    options = CrawlOptions()
    assert should_continue([snapshot], snapshot, CUTOFF, options, TODAY, first_iteration=True) is True


def test_should_continue_uses_historical_tolerance():
    history = _history([5, 5, 9, 5, 9])
    assert should_continue(history, history[-1], CUTOFF, CrawlOptions(iteration_tolerance=1), TODAY) is True
    assert should_continue(history, history[-1], CUTOFF, CrawlOptions(iteration_tolerance=4), TODAY) is False


def test_clamp_bound():
    """The budget grows with the distance to the cutoff."""
    assert clamp_bound(CUTOFF, TODAY) == 11
    assert clamp_bound(date(2023, 11, 28), TODAY) == 10
    assert clamp_bound(date(2023, 10, 2), TODAY, min_iterations=10, per_day=2) == 120


def test_ensure_cutoff_observed():
    history = _history([None, None, None])
    history[-1].counts[date(2023, 11, 19)] = 2

    ensure_cutoff_observed(history, CUTOFF, iterations=3, bound=4)

    with pytest.raises(CutoffNeverObserved):
        ensure_cutoff_observed(history, CUTOFF, iterations=4, bound=4)

    history.append(Snapshot(iteration=4, counts={CUTOFF: 1}))
    ensure_cutoff_observed(history, CUTOFF, iterations=4, bound=4)


def test_ensure_cutoff_observed_waits_while_page_is_loading():
    """An unseen cutoff is not given up on while the oldest visible date is still newer."""
    history = _history([None] * 20)

    ensure_cutoff_observed(history, CUTOFF, iterations=20, bound=4)
    ensure_cutoff_observed([], CUTOFF, iterations=20, bound=4)


def test_nearest_observed_date_prefers_newer_on_tie():
    snapshot = Snapshot(iteration=1, counts={date(2023, 11, 19): 2, date(2023, 11, 21): 3, TODAY: 3})
    assert nearest_observed_date(snapshot, CUTOFF) == date(2023, 11, 21)


def test_nearest_observed_date_closest():
    snapshot = Snapshot(iteration=1, counts={date(2023, 11, 19): 2, date(2023, 11, 25): 3})
    assert nearest_observed_date(snapshot, CUTOFF) == date(2023, 11, 19)
    assert nearest_observed_date(Snapshot(iteration=1), CUTOFF) is None


def test_passed_cutoff():
    assert passed_cutoff(Snapshot(iteration=1, counts={date(2023, 11, 19): 1}), CUTOFF) is True
    assert passed_cutoff(Snapshot(iteration=1, counts={CUTOFF: 1}), CUTOFF) is False
    assert passed_cutoff(Snapshot(iteration=1), CUTOFF) is False
