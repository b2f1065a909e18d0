"""Tests for the recovery ladder schedule and retry helper."""

import random
import pytest
from selenium.common.exceptions import WebDriverException
from harvester.escalation import (
    EscalationAction,
    escalation_action,
    pause_duration,
    retry_with_backoff,
)
from harvester.models import EscalationPolicy


def test_escalation_schedule_without_stalls():
    """Extra scrolls and pauses recur on their periods."""
    actions = [escalation_action(i) for i in range(1, 15)]

    assert actions[0] is EscalationAction.NONE
    assert actions[2] is EscalationAction.EXTRA_SCROLL   # iteration 3
    assert actions[5] is EscalationAction.EXTRA_SCROLL   # iteration 6
    assert actions[6] is EscalationAction.PAUSE          # iteration 7
    assert actions[13] is EscalationAction.PAUSE         # iteration 14


def test_escalation_reload_after_stalls():
    """Consecutive stalls trigger a reload, ahead of any periodic action."""
    policy = EscalationPolicy(reload_every_stalls=3)

    assert escalation_action(7, stalls=3, policy=policy) is EscalationAction.RELOAD
    assert escalation_action(8, stalls=6, policy=policy) is EscalationAction.RELOAD
    assert escalation_action(4, stalls=2, policy=policy) is EscalationAction.NONE


def test_escalation_action_is_pure():
    policy = EscalationPolicy()
    assert [escalation_action(i, 0, policy) for i in range(20)] == \
        [escalation_action(i, 0, policy) for i in range(20)]


def test_stall_limit():
    assert EscalationPolicy(reload_every_stalls=3, max_reloads=2).stall_limit == 9


def test_policy_from_dict_ignores_unknown_keys():
    policy = EscalationPolicy.from_dict({'pause_every': 5, 'unknown': 1})
    assert policy.pause_every == 5
    assert policy.scroll_every == 3
    assert EscalationPolicy.from_dict(None) == EscalationPolicy()


def test_pause_duration_uses_injected_rng():
    """Jitter comes from the rng, so a seeded rng reproduces it."""
    policy = EscalationPolicy(pause_seconds=1.0, pause_jitter=1.5)

    first = pause_duration(policy, random.Random(42))
    second = pause_duration(policy, random.Random(42))

    assert first == second
    assert 1.0 <= first <= 2.5


def test_retry_with_backoff_recovers():
    """A transient driver failure is retried."""
    calls = []
    slept = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise WebDriverException("stale")
        return "ok"

    result = retry_with_backoff(flaky, attempts=3, retry_on=(WebDriverException,), sleep=slept.append)

    assert result == "ok"
    assert len(calls) == 3
    assert len(slept) == 2


def test_retry_with_backoff_reraises_when_exhausted():
    def broken():
        raise WebDriverException("gone")

    with pytest.raises(WebDriverException, match="gone"):
        retry_with_backoff(broken, attempts=2, retry_on=(WebDriverException,), sleep=lambda s: None)


def test_retry_with_backoff_on_exhausted():
    """The exhaustion callback gets the last error and supplies the result."""
    seen = []

    def broken():
        raise WebDriverException("gone")

    def exhausted(error, result):
        seen.append(error)
        return "fallback"

    result = retry_with_backoff(
        broken, attempts=2, retry_on=(WebDriverException,),
        on_exhausted=exhausted, sleep=lambda s: None
    )

    assert result == "fallback"
    assert isinstance(seen[0], WebDriverException)


def test_retry_with_backoff_retries_on_result():
    """Unwanted results are retried and the last one is returned."""
    calls = []

    def not_yet():
        calls.append(1)
        return len(calls)

    result = retry_with_backoff(not_yet, attempts=3, retry_result=lambda r: r < 10, sleep=lambda s: None)

    assert result == 3
    assert len(calls) == 3


def test_retry_with_backoff_does_not_retry_other_errors():
    calls = []

    def wrong():
        calls.append(1)
        raise KeyError("bug")

    with pytest.raises(KeyError):
        retry_with_backoff(wrong, attempts=3, retry_on=(WebDriverException,), sleep=lambda s: None)
    assert len(calls) == 1
