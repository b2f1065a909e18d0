"""Data model shared by the locator, detector and expansion controller."""

import random
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple


class AffordanceKind(Enum):
    """Attribute a reveal-more control is identified by."""

    CLASS = "class"
    ID = "id"

    @property
    def attribute(self) -> str:
        return self.value


@dataclass(frozen=True)
class AffordanceDescriptor:
    """A reusable handle on the page control that reveals more items."""

    kind: AffordanceKind
    value: str

    def __str__(self) -> str:
        return f"{self.kind.attribute}='{self.value}'"

    def to_dict(self) -> Dict[str, str]:
        return {'kind': self.kind.attribute, 'value': self.value}


@dataclass(frozen=True)
class RawItem:
    """One listing teaser as read from the page."""

    url: Optional[str]
    headline: Optional[str]
    topic: Optional[str]
    raw_date: Optional[str]
    published: Optional[date] = None

    @property
    def key(self) -> Tuple[Optional[str], Optional[date]]:
        return (self.url, self.published)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'headline': self.headline,
            'topic': self.topic,
            'raw_date': self.raw_date,
            'date': self.published.isoformat() if self.published else None,
        }


@dataclass
class Snapshot:
    """
    Per-date item counts of one sampling pass over the page.

    ``indeterminate`` counts items whose date could not be normalized; they
    never enter ``counts`` so they cannot influence convergence.
    """

    iteration: int
    counts: Dict[date, int] = field(default_factory=dict)
    indeterminate: int = 0

    def __contains__(self, day: date) -> bool:
        return day in self.counts

    def count(self, day: date) -> int:
        return self.counts.get(day, 0)

    @property
    def item_total(self) -> int:
        return sum(self.counts.values()) + self.indeterminate

    @property
    def oldest(self) -> Optional[date]:
        return min(self.counts) if self.counts else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'iteration': self.iteration,
            'counts': {day.isoformat(): n for day, n in sorted(self.counts.items())},
            'indeterminate': self.indeterminate,
        }


class TerminationReason(Enum):
    CONVERGED = "converged"
    CUTOFF_PASSED = "cutoff_passed"
    ITERATION_LIMIT = "iteration_limit"


class Phase(Enum):
    IDLE = "idle"
    LOCATING = "locating_affordance"
    EXPANDING = "expanding"
    SAMPLING = "sampling"
    EVALUATING = "evaluating"
    CONVERGED = "converged"
    FAILED = "failed"


@dataclass(frozen=True)
class EscalationPolicy:
    """
    Iteration and stall thresholds for the recovery ladder.

    Attributes:
        scroll_every: Extra scroll-and-settle on every n-th iteration
        pause_every: Jittered pause on every n-th iteration
        pause_seconds: Base length of a pause
        pause_jitter: Upper bound of the random part added to a pause
        reload_every_stalls: Reload the page after this many consecutive stalls
        max_reloads: Reloads allowed before the ladder is exhausted
    """

    scroll_every: int = 3
    pause_every: int = 7
    pause_seconds: float = 1.0
    pause_jitter: float = 1.5
    reload_every_stalls: int = 3
    max_reloads: int = 2

    @property
    def stall_limit(self) -> int:
        return self.reload_every_stalls * (self.max_reloads + 1)

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> "EscalationPolicy":
        values = values or {}
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class CrawlOptions:
    """Tunables of a single crawl. ``from_config`` fills them from YAML."""

    count_tolerance: int = 1
    iteration_tolerance: int = 3
    time_window_days: int = 3
    verbose: bool = False
    debug: bool = False
    required_observations: int = 5
    stable_window: int = 4
    settle_seconds: float = 0.2
    locator_settle_seconds: float = 0.3
    locator_tokens: Tuple[str, ...] = ('more', 'load', 'expan')
    max_iterations: int = 200
    progress_every: int = 5
    trigger_attempts: int = 3
    retry_delay: float = 0.5
    retry_max_delay: float = 4.0
    clamp_min_iterations: int = 10
    clamp_iterations_per_day: int = 1
    override: Optional[AffordanceDescriptor] = None
    escalation: EscalationPolicy = field(default_factory=EscalationPolicy)
    today: Callable[[], date] = date.today
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def from_config(cls, config, **overrides) -> "CrawlOptions":
        """
        Build options from the ``expansion`` and ``locator`` configuration sections.

        Args:
            config: Config instance
            **overrides: Option values that win over the configuration

        Returns:
            CrawlOptions
        """
        values = {
            'count_tolerance': config.get('expansion.count_tolerance', 1),
            'iteration_tolerance': config.get('expansion.iteration_tolerance', 3),
            'time_window_days': config.get('expansion.time_window_days', 3),
            'required_observations': config.get('expansion.required_observations', 5),
            'stable_window': config.get('expansion.stable_window', 4),
            'settle_seconds': config.get('expansion.settle_seconds', 0.2),
            'locator_settle_seconds': config.get('locator.settle_seconds', 0.3),
            'locator_tokens': tuple(config.get('locator.tokens', ['more', 'load', 'expan'])),
            'max_iterations': config.get('expansion.max_iterations', 200),
            'progress_every': config.get('expansion.progress_every', 5),
            'trigger_attempts': config.get('expansion.trigger_attempts', 3),
            'retry_delay': config.get('expansion.retry_delay', 0.5),
            'retry_max_delay': config.get('expansion.retry_max_delay', 4.0),
            'clamp_min_iterations': config.get('expansion.clamp_min_iterations', 10),
            'clamp_iterations_per_day': config.get('expansion.clamp_iterations_per_day', 1),
            'escalation': EscalationPolicy.from_dict(config.get('expansion.escalation')),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class ControllerState:
    """Mutable per-crawl state, owned by one ExpansionController."""

    cutoff: date
    requested_cutoff: date
    phase: Phase = Phase.IDLE
    descriptor: Optional[AffordanceDescriptor] = None
    using_override: bool = False
    history: List[Snapshot] = field(default_factory=list)
    cutoff_clamped: bool = False
    iteration: int = 0
    stalls: int = 0
    reloads: int = 0
    last_error: Optional[Exception] = None


@dataclass
class CrawlDebug:
    """History and last raw snapshot, returned when debug mode is on."""

    history: Tuple[Snapshot, ...]
    last_snapshot_items: Tuple[RawItem, ...]
    requested_cutoff: date
    effective_cutoff: date
    cutoff_clamped: bool
    iterations: int
    descriptor: Optional[AffordanceDescriptor]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'history': [snapshot.to_dict() for snapshot in self.history],
            'last_snapshot_items': [item.to_dict() for item in self.last_snapshot_items],
            'requested_cutoff': self.requested_cutoff.isoformat(),
            'effective_cutoff': self.effective_cutoff.isoformat(),
            'cutoff_clamped': self.cutoff_clamped,
            'iterations': self.iterations,
            'descriptor': self.descriptor.to_dict() if self.descriptor else None,
        }


@dataclass
class CrawlOutcome:
    """Items at or after the cutoff plus why the crawl stopped."""

    items: List[RawItem]
    termination_reason: TerminationReason
    debug: Optional[CrawlDebug] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'termination_reason': self.termination_reason.value,
            'total_items': len(self.items),
            'items': [item.to_dict() for item in self.items],
        }
        if self.debug is not None:
            result['debug'] = self.debug.to_dict()
        return result
