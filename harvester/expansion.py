"""
Content expansion controller.

Drives one browser session: finds the "show more" control, keeps triggering
it while sampling the per-date teaser counts, and stops once the count for the
cutoff date has been stable over several expansions. Then it returns every
visible item dated on or after the cutoff.
"""

from dataclasses import replace
from datetime import date
from typing import List, Optional
from selenium.common.exceptions import WebDriverException
from harvester.affordance import TriggerStatus, locate, trigger, validate
from harvester.convergence import (
    clamp_bound,
    ensure_cutoff_observed,
    nearest_observed_date,
    passed_cutoff,
    should_continue,
)
from harvester.escalation import EscalationAction, escalation_action, pause_duration, retry_with_backoff
from harvester.exceptions import (
    AffordanceNotFound,
    CutoffNeverObserved,
    DateIndeterminate,
    SessionUnresponsive,
)
from harvester.models import (
    ControllerState,
    CrawlDebug,
    CrawlOptions,
    CrawlOutcome,
    Phase,
    RawItem,
    Snapshot,
    TerminationReason,
)
from harvester.sites import SiteAdapter
from utils.logger import PACKAGE_LOGGER, get_logger, log_milestone, set_verbose
from config.settings import get_config

logger = get_logger(__name__)


class ExpansionController:
    """
    State machine for one crawl of one listing page.

    The session must already show the listing (navigation and cookie consent
    happen before the controller takes over). The controller owns the session
    for the duration of ``run`` and keeps all crawl state in ``self.state``.
    """

    def __init__(self, session, site: SiteAdapter, cutoff: date, options: Optional[CrawlOptions] = None):
        self.session = session
        self.site = site
        self.options = options or CrawlOptions.from_config(get_config())
        self.state = ControllerState(cutoff=cutoff, requested_cutoff=cutoff)
        self.today = self.options.today()
        self.clamp_after = clamp_bound(
            cutoff, self.today,
            min_iterations=self.options.clamp_min_iterations,
            per_day=self.options.clamp_iterations_per_day
        )

    def run(self) -> CrawlOutcome:
        """
        Expand the page until convergence and extract the items.

        Returns:
            CrawlOutcome

        Raises:
            AffordanceNotFound: If no working show more button can be found
                while items at the cutoff are still missing
            SessionUnresponsive: If the browser keeps failing after reloads
        """
        package_logger = get_logger(PACKAGE_LOGGER)
        previous_level = package_logger.level
        if self.options.verbose:
            set_verbose(True)

        try:
            logger.info(f"Crawling {self.site.name} for items since {self.state.cutoff}")

            reason = self._locate_affordance()
            if reason is None:
                reason = self._expand_until_converged()

            return self._finish(reason)
        finally:
            package_logger.setLevel(previous_level)

    # Locating

    def _locate_affordance(self) -> Optional[TerminationReason]:
        self.state.phase = Phase.LOCATING
        override = self.options.override

        if override is not None:
            if validate(self.session, override, self.options.locator_settle_seconds):
                self.state.descriptor = override
                self.state.using_override = True
                return None
            self.state.phase = Phase.FAILED
            raise AffordanceNotFound(
                f"Manually supplied show more button {override} did not load more content"
            )

        descriptor = locate(self.session, self.options.locator_tokens, self.options.locator_settle_seconds)
        if descriptor is not None:
            self.state.descriptor = descriptor
            return None

        return self._conclude_without_affordance()

    def _conclude_without_affordance(self) -> TerminationReason:
        """
        No working control: fine if the page already reaches past the cutoff.

        Raises:
            AffordanceNotFound: If items at or after the cutoff may still be missing
        """
        snapshot = self._sample()
        if snapshot is not None and passed_cutoff(snapshot, self.state.cutoff):
            self.state.history.append(snapshot)
            logger.info(
                f"No show more button needed: page already reaches {snapshot.oldest}, "
                f"before cutoff {self.state.cutoff}"
            )
            self.state.phase = Phase.CONVERGED
            return TerminationReason.CUTOFF_PASSED

        self.state.phase = Phase.FAILED
        raise AffordanceNotFound(url=getattr(self.session, 'current_url', None))

    def _relocate(self) -> Optional[TerminationReason]:
        """Find a replacement control: manual override first, then a fresh search."""
        override = self.options.override
        if override is not None and not self.state.using_override:
            if validate(self.session, override, self.options.locator_settle_seconds):
                self.state.descriptor = override
                self.state.using_override = True
                self.state.stalls = 0
                return None

        descriptor = locate(self.session, self.options.locator_tokens, self.options.locator_settle_seconds)
        if descriptor is not None:
            self.state.descriptor = descriptor
            self.state.using_override = False
            self.state.stalls = 0
            return None

        self.state.descriptor = None
        return self._conclude_without_affordance()

    # Expanding

    def _expand_until_converged(self) -> TerminationReason:
        while self.state.iteration < self.options.max_iterations:
            self.state.iteration += 1

            reason = self._expand()
            if reason is not None:
                return reason

            snapshot = self._sample()
            if snapshot is None:
                self.state.stalls += 1
                continue

            reason = self._evaluate(snapshot)
            if reason is not None:
                return reason

        logger.warning(
            f"Stopped after {self.state.iteration} iterations without convergence "
            f"(cutoff {self.state.cutoff})"
        )
        return TerminationReason.ITERATION_LIMIT

    def _expand(self) -> Optional[TerminationReason]:
        state = self.state
        state.phase = Phase.EXPANDING

        self._escalate()

        result = retry_with_backoff(
            lambda: trigger(self.session, state.descriptor, self.options.settle_seconds),
            attempts=self.options.trigger_attempts,
            delay=self.options.retry_delay,
            max_delay=self.options.retry_max_delay,
            retry_on=(WebDriverException,),
            retry_result=lambda r: r.status is TriggerStatus.NOT_FOUND,
            on_exhausted=self._trigger_exhausted,
            sleep=self.session.sleep,
        )

        if result is None:
            state.stalls += 1
        elif result.grew:
            state.stalls = 0
            state.last_error = None
        elif result.status is TriggerStatus.NOT_FOUND:
            logger.warning(f"Show more button {state.descriptor} not found on page")
            return self._relocate()
        else:
            state.stalls += 1
            logger.debug(f"Show more button did not load new content (stall {state.stalls})")

        if state.stalls >= self.options.escalation.stall_limit:
            return self._ladder_exhausted()
        return None

    def _trigger_exhausted(self, error, result):
        if error is not None:
            logger.debug(f"Triggering show more button failed: {type(error).__name__}: {error}")
            self.state.last_error = error
            return None
        return result

    def _escalate(self) -> None:
        state = self.state
        policy = self.options.escalation
        action = escalation_action(state.iteration, state.stalls, policy)

        if action is EscalationAction.RELOAD and state.reloads >= policy.max_reloads:
            action = EscalationAction.EXTRA_SCROLL

        try:
            if action is EscalationAction.EXTRA_SCROLL:
                self.session.scroll_to_bottom()
                self.session.sleep(self.options.settle_seconds)
            elif action is EscalationAction.PAUSE:
                seconds = pause_duration(policy, self.options.rng)
                logger.debug(f"Pausing {seconds:.1f}s")
                self.session.sleep(seconds)
            elif action is EscalationAction.RELOAD:
                state.reloads += 1
                logger.warning(
                    f"No new content for {state.stalls} iterations, reloading page "
                    f"({state.reloads}/{policy.max_reloads})"
                )
                self.session.reload()
                for _ in range(3):
                    self.session.scroll_to_bottom()
                    self.session.sleep(self.options.settle_seconds)
        except WebDriverException as e:
            logger.debug(f"Escalation step {action.value} failed: {e}")
            state.last_error = e

    def _ladder_exhausted(self) -> Optional[TerminationReason]:
        state = self.state

        if state.last_error is not None:
            state.phase = Phase.FAILED
            raise SessionUnresponsive(
                f"Browser stopped responding after {state.stalls} stalled iterations "
                f"and {state.reloads} reloads",
                cause=state.last_error
            )

        logger.warning(f"Show more button {state.descriptor} stopped loading content, searching again")
        state.descriptor = None
        state.using_override = False
        state.stalls = 0
        return self._relocate()

    # Sampling and evaluating

    def _read_page(self) -> Optional[str]:
        return retry_with_backoff(
            self.session.page_source,
            attempts=self.options.trigger_attempts,
            delay=self.options.retry_delay,
            max_delay=self.options.retry_max_delay,
            retry_on=(WebDriverException,),
            on_exhausted=self._read_exhausted,
            sleep=self.session.sleep,
        )

    def _read_exhausted(self, error, result):
        logger.warning(f"Could not read page source: {error}")
        self.state.last_error = error
        return None

    def _sample(self) -> Optional[Snapshot]:
        self.state.phase = Phase.SAMPLING

        page = self._read_page()
        if page is None:
            return None

        items = self.site.extract_items(page)
        snapshot = Snapshot(iteration=self.state.iteration)

        for item in items:
            try:
                day = self.site.require_item_date(item, self.today)
            except DateIndeterminate:
                snapshot.indeterminate += 1
                continue
            snapshot.counts[day] = snapshot.counts.get(day, 0) + 1

        return snapshot

    def _apply_clamp(self, snapshot: Snapshot) -> None:
        state = self.state
        if state.cutoff_clamped:
            return

        try:
            ensure_cutoff_observed(state.history, state.cutoff, state.iteration, self.clamp_after)
        except CutoffNeverObserved as e:
            nearest = nearest_observed_date(snapshot, state.cutoff)
            if nearest is None:
                logger.warning(f"{e}; no dated items to clamp to")
                return
            logger.warning(f"{e}; clamping cutoff to nearest observed date {nearest}")
            state.cutoff = nearest
            state.cutoff_clamped = True

    def _evaluate(self, snapshot: Snapshot) -> Optional[TerminationReason]:
        state = self.state
        state.phase = Phase.EVALUATING
        state.history.append(snapshot)

        self._apply_clamp(snapshot)

        keep_going = should_continue(
            state.history, snapshot, state.cutoff, self.options, self.today,
            first_iteration=len(state.history) == 1
        )

        logger.debug(
            f"Iteration {state.iteration}: {snapshot.item_total} items, oldest {snapshot.oldest}, "
            f"cutoff count {snapshot.count(state.cutoff)}, stalls {state.stalls}"
        )
        if self.options.progress_every and state.iteration % self.options.progress_every == 0:
            logger.info(
                f"Iteration {state.iteration}: {snapshot.item_total} teasers loaded, "
                f"oldest {snapshot.oldest}"
            )

        if keep_going:
            return None

        state.phase = Phase.CONVERGED
        logger.info(
            f"Converged after {state.iteration} iterations: "
            f"{snapshot.count(state.cutoff)} items on {state.cutoff}"
        )
        return TerminationReason.CONVERGED

    # Final pass

    def _finish(self, reason: TerminationReason) -> CrawlOutcome:
        page = self._read_page()
        if page is None:
            raise SessionUnresponsive("Could not read the page for the final extraction",
                                      cause=self.state.last_error)

        items = self.site.extract_items(page)
        selected = self._select(items)

        log_milestone(
            f"Collected {len(selected)} items from {self.site.name} since {self.state.cutoff} "
            f"({reason.value})"
        )

        debug = None
        if self.options.debug:
            debug = CrawlDebug(
                history=tuple(self.state.history),
                last_snapshot_items=tuple(items),
                requested_cutoff=self.state.requested_cutoff,
                effective_cutoff=self.state.cutoff,
                cutoff_clamped=self.state.cutoff_clamped,
                iterations=self.state.iteration,
                descriptor=self.state.descriptor,
            )

        return CrawlOutcome(items=selected, termination_reason=reason, debug=debug)

    def _select(self, items: List[RawItem]) -> List[RawItem]:
        """Items on or after the effective cutoff, dated and without duplicates."""
        selected = []
        seen = set()
        skipped = 0

        for item in items:
            try:
                day = self.site.require_item_date(item, self.today)
            except DateIndeterminate:
                skipped += 1
                continue

            if day < self.state.cutoff:
                continue

            dated = replace(item, published=day)
            if dated.key in seen:
                continue
            seen.add(dated.key)
            selected.append(dated)

        if skipped:
            logger.debug(f"Skipped {skipped} items without a recognisable date")
        return selected


def crawl(session, site: SiteAdapter, cutoff: date, options: Optional[CrawlOptions] = None) -> CrawlOutcome:
    """
    Expand a listing page and collect the items dated on or after ``cutoff``.

    Args:
        session: BrowserSession showing the listing page
        site: Adapter reading the site's teasers
        cutoff: Earliest date wanted
        options: Crawl options (from configuration if None)

    Returns:
        CrawlOutcome
    """
    return ExpansionController(session, site, cutoff, options).run()
