"""Error taxonomy of the harvester."""

from datetime import date
from typing import Optional


class HarvesterError(Exception):
    """Base class for errors surfaced to the caller of a crawl."""


class AffordanceNotFound(HarvesterError):
    """No reveal-more control could be located or validated."""

    def __init__(self, message: Optional[str] = None, url: Optional[str] = None):
        if message is None:
            message = (
                "Could not find a working 'show more' button"
                + (f" on {url}" if url else "")
                + ". Supply one manually with --show-more-class or --show-more-id."
            )
        super().__init__(message)
        self.url = url


class SessionUnresponsive(HarvesterError):
    """The browser session stopped responding and the recovery ladder is exhausted."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class DateIndeterminate(HarvesterError):
    """A single item's date could not be normalized."""

    def __init__(self, raw_date: Optional[str]):
        super().__init__(f"Could not determine date from {raw_date!r}")
        self.raw_date = raw_date


class CutoffNeverObserved(HarvesterError):
    """The cutoff date did not show up within the iteration budget."""

    def __init__(self, cutoff: date, iterations: int):
        super().__init__(f"Cutoff {cutoff.isoformat()} not observed after {iterations} iterations")
        self.cutoff = cutoff
        self.iterations = iterations
