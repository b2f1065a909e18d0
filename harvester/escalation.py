"""Recovery ladder: escalation schedule and retry-with-backoff."""

import random
import time
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Type
from tenacity import (
    Retrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)
from harvester.models import EscalationPolicy
from utils.logger import get_logger

logger = get_logger(__name__)


class EscalationAction(Enum):
    NONE = "none"
    EXTRA_SCROLL = "extra_scroll"
    PAUSE = "pause"
    RELOAD = "reload"


def escalation_action(iteration: int, stalls: int = 0, policy: Optional[EscalationPolicy] = None) -> EscalationAction:
    """
    Pick the recovery action to run before the next expansion trigger.

    A reload is due after every ``reload_every_stalls`` consecutive stalls; pauses
    and extra scrolls recur on fixed iteration periods. The result depends on
    its arguments only.

    Args:
        iteration: 1-based expansion iteration
        stalls: Consecutive iterations without page growth
        policy: Escalation thresholds

    Returns:
        EscalationAction
    """
    policy = policy or EscalationPolicy()

    if stalls > 0 and policy.reload_every_stalls > 0 and stalls % policy.reload_every_stalls == 0:
        return EscalationAction.RELOAD
    if policy.pause_every > 0 and iteration > 0 and iteration % policy.pause_every == 0:
        return EscalationAction.PAUSE
    if policy.scroll_every > 0 and iteration > 0 and iteration % policy.scroll_every == 0:
        return EscalationAction.EXTRA_SCROLL
    return EscalationAction.NONE


def pause_duration(policy: EscalationPolicy, rng: random.Random) -> float:
    """Base pause plus uniform jitter drawn from the injected rng."""
    return policy.pause_seconds + rng.uniform(0, policy.pause_jitter)


def retry_with_backoff(
    operation: Callable[[], Any],
    attempts: int = 3,
    delay: float = 0.5,
    max_delay: float = 4.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    retry_result: Optional[Callable[[Any], bool]] = None,
    on_exhausted: Optional[Callable[[Optional[BaseException], Any], Any]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Run an operation, retrying with exponential backoff.

    Args:
        operation: Zero-argument callable
        attempts: Total attempts
        delay: Backoff multiplier in seconds
        max_delay: Upper bound of a single wait
        retry_on: Exception types that trigger a retry
        retry_result: Predicate on the return value that triggers a retry
        on_exhausted: Called with (last exception, last result) when attempts
            run out; its return value is returned. Without it the last
            exception is re-raised, or the last result returned.
        sleep: Sleep function used between attempts

    Returns:
        The operation's result
    """
    retry = retry_if_exception_type(retry_on)
    if retry_result is not None:
        retry = retry | retry_if_result(retry_result)

    def _exhausted(retry_state: RetryCallState):
        outcome = retry_state.outcome
        error = outcome.exception() if outcome.failed else None
        result = None if outcome.failed else outcome.result()
        logger.debug(f"Gave up after {retry_state.attempt_number} attempts: {error or result}")
        if on_exhausted is not None:
            return on_exhausted(error, result)
        if error is not None:
            raise error
        return result

    retrying = Retrying(
        stop=stop_after_attempt(max(attempts, 1)),
        wait=wait_exponential(multiplier=delay, max=max_delay),
        retry=retry,
        retry_error_callback=_exhausted,
        sleep=sleep,
    )
    return retrying(operation)
