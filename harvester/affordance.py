"""Locating and triggering the page control that reveals more listing items."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence
from selenium.common.exceptions import WebDriverException
from harvester.models import AffordanceDescriptor, AffordanceKind
from utils.logger import get_logger, timed_operation

logger = get_logger(__name__)

QUERY_TOKENS = ('more', 'load', 'expan')


class TriggerStatus(Enum):
    GREW = "grew"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class TriggerResult:
    """Outcome of activating a control: did the page get longer?"""

    status: TriggerStatus
    before: int = 0
    after: int = 0

    @property
    def grew(self) -> bool:
        return self.status is TriggerStatus.GREW


def matches_vocabulary(value: str, tokens: Iterable[str] = QUERY_TOKENS) -> bool:
    lowered = value.lower()
    return any(token in lowered for token in tokens)


def minimal_token(value: str, tokens: Sequence[str] = QUERY_TOKENS) -> str:
    """
    Reduce an attribute value to the shortest space-delimited part that matches.

    "btn btn--secondary load-more-button" becomes "load-more-button", so the
    descriptor still resolves when other classes on the control change. Equal
    lengths keep the part that comes first.
    """
    matching = [part for part in value.split() if matches_vocabulary(part, tokens)]
    if not matching:
        return value.strip()
    return min(matching, key=len)


def _click_and_measure(session, element, settle: float) -> TriggerResult:
    """Click an element and report whether the page length strictly increased."""
    before = session.page_length()
    session.scroll_to_bottom()
    session.click(element)
    session.sleep(settle)
    session.scroll_to_bottom()
    after = session.page_length()

    status = TriggerStatus.GREW if after > before else TriggerStatus.UNCHANGED
    return TriggerResult(status, before, after)


@timed_operation("Show more button search")
def locate(session, tokens: Sequence[str] = QUERY_TOKENS, settle: float = 0.3) -> Optional[AffordanceDescriptor]:
    """
    Find a button whose class or id means "show more" and that actually works.

    Buttons are tried in DOM order, first by class then by id. A candidate is
    accepted only if clicking it makes the page longer.

    Args:
        session: BrowserSession
        tokens: Substrings that mark a reveal-more control
        settle: Seconds to wait after each click

    Returns:
        Descriptor of the first working control, or None
    """
    for kind in (AffordanceKind.CLASS, AffordanceKind.ID):
        logger.debug(f"Searching for show more button using {kind.attribute} attribute")

        try:
            buttons = session.find_buttons()
        except WebDriverException as e:
            logger.warning(f"Could not list buttons: {e}")
            continue

        candidates = 0
        for button in buttons:
            try:
                value = session.attribute(button, kind.attribute)
            except WebDriverException as e:
                logger.debug(f"Could not read {kind.attribute} of button: {e}")
                continue

            if not value or not matches_vocabulary(value, tokens):
                continue

            candidates += 1
            try:
                result = _click_and_measure(session, button, settle)
            except WebDriverException as e:
                logger.debug(f"Clicking button {kind.attribute}='{value}' failed: {e}")
                continue

            if result.grew:
                descriptor = AffordanceDescriptor(kind, minimal_token(value, tokens))
                logger.info(f"Found show more button: {descriptor}")
                return descriptor

            logger.debug(f"Button {kind.attribute}='{value}' did not load more content")

        logger.debug(f"Tried {candidates} candidates by {kind.attribute}")

    logger.warning("Could not find show more button")
    return None


def trigger(session, descriptor: AffordanceDescriptor, settle: float = 0.2) -> TriggerResult:
    """
    Activate the control described by ``descriptor`` once.

    The live element is looked up again on every call because the page replaces
    it whenever new items load. A class descriptor holding several classes
    tries each class in turn until one makes the page grow.

    Args:
        session: BrowserSession
        descriptor: Cached descriptor
        settle: Seconds to wait after the click

    Returns:
        TriggerResult

    Raises:
        WebDriverException: If the driver fails while clicking or measuring
    """
    if descriptor.kind is AffordanceKind.CLASS:
        values = descriptor.value.split() or [descriptor.value]
    else:
        values = [descriptor.value]

    result = TriggerResult(TriggerStatus.NOT_FOUND)
    for value in values:
        elements = session.find_elements(descriptor.kind, value)
        if not elements:
            continue

        result = _click_and_measure(session, elements[0], settle)
        if result.grew:
            return result

    return result


def validate(session, descriptor: AffordanceDescriptor, settle: float = 0.3) -> bool:
    """Trigger a manually supplied descriptor once and check that it loads content."""
    try:
        result = trigger(session, descriptor, settle)
    except WebDriverException as e:
        logger.warning(f"Validating show more button {descriptor} failed: {e}")
        return False

    if result.grew:
        logger.info(f"✓ Show more button {descriptor} works")
        return True

    logger.warning(f"Show more button {descriptor} did not load more content ({result.status.value})")
    return False
