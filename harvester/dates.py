"""Normalization of teaser timestamps into calendar dates."""

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Tuple
from urllib.parse import urlparse
from dateutil import parser as date_parser

ISO_DATE_PATTERN = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_DAY_PATTERN = re.compile(r"^(\d{1,2})\.?$")


@dataclass(frozen=True)
class DateVocabulary:
    """
    Locale words used by a site's relative and abbreviated timestamps.

    Attributes:
        today: Regex alternatives meaning "today" or "a moment ago"
        yesterday: Regex alternatives meaning "yesterday"
        months: The twelve three-letter month abbreviations, January first
    """

    today: Tuple[str, ...]
    yesterday: Tuple[str, ...]
    months: Tuple[str, ...]

    def __post_init__(self):
        if len(self.months) != 12:
            raise ValueError(f"Month table must have 12 entries, got {len(self.months)}")

    @property
    def today_pattern(self):
        return re.compile("|".join(self.today), re.IGNORECASE)

    @property
    def yesterday_pattern(self):
        return re.compile("|".join(self.yesterday), re.IGNORECASE)

    def month_index(self, token: str) -> Optional[int]:
        token = token.strip(".,").lower()
        if token in self.months:
            return self.months.index(token) + 1
        return None


DANISH = DateVocabulary(
    today=(r"i dag", r"minut", r"sekund", r"min\. siden"),
    yesterday=(r"i går",),
    months=("jan", "feb", "mar", "apr", "maj", "jun",
            "jul", "aug", "sep", "okt", "nov", "dec"),
)

ENGLISH = DateVocabulary(
    today=(r"today", r"minute", r"second", r"just now"),
    yesterday=(r"yesterday",),
    months=("jan", "feb", "mar", "apr", "may", "jun",
            "jul", "aug", "sep", "oct", "nov", "dec"),
)

_VOCABULARIES = {'da': DANISH, 'en': ENGLISH}


def get_vocabulary(locale: str) -> DateVocabulary:
    """
    Look up the date vocabulary of a locale.

    Args:
        locale: Two-letter locale code ('da' or 'en')

    Returns:
        DateVocabulary

    Raises:
        ValueError: If the locale has no vocabulary
    """
    try:
        return _VOCABULARIES[locale.lower()]
    except KeyError:
        raise ValueError(
            f"No date vocabulary for locale '{locale}'. Choose one of: {', '.join(sorted(_VOCABULARIES))}"
        )


def _from_month_abbreviation(raw: str, now_date: date, vocabulary: DateVocabulary) -> Optional[date]:
    """Parse '<day>. <mon>' into a date in the current year."""
    tokens = raw.split()
    month = None
    day = None

    for token in tokens:
        if month is None:
            month = vocabulary.month_index(token)
            if month is not None:
                continue
        if day is None:
            match = _DAY_PATTERN.match(token)
            if match:
                day = int(match.group(1))

    if month is None or day is None:
        return None

    try:
        return date(now_date.year, month, day)
    except ValueError:
        return None


def _from_iso(raw: str) -> Optional[date]:
    match = ISO_DATE_PATTERN.search(raw)
    if not match:
        return None
    try:
        return date_parser.isoparse(match.group(0)).date()
    except ValueError:
        return None


def normalize(raw: Optional[str], now_date: date, vocabulary: DateVocabulary = DANISH) -> Optional[date]:
    """
    Convert a raw teaser timestamp into a calendar date.

    Cases are tried in order: relative "today" words, "yesterday" words,
    '<day>. <month abbreviation>' in the current year, and an embedded
    YYYY-MM-DD. Anything else is indeterminate.

    Args:
        raw: Timestamp text as shown on the page (or a URL)
        now_date: The date "today" refers to
        vocabulary: Locale words for relative dates and months

    Returns:
        The date, or None if it cannot be determined

    Example:
        >>> normalize("I går", date(2023, 12, 24))
        datetime.date(2023, 12, 23)
        >>> normalize("5. jun", date(2023, 12, 24))
        datetime.date(2023, 6, 5)
    """
    if not raw or not raw.strip():
        return None

    raw = raw.strip()

    if vocabulary.today_pattern.search(raw):
        return now_date
    if vocabulary.yesterday_pattern.search(raw):
        return now_date - timedelta(days=1)

    parsed = _from_month_abbreviation(raw, now_date, vocabulary)
    if parsed is not None:
        return parsed

    return _from_iso(raw)


def date_from_url(url: Optional[str]) -> Optional[date]:
    """
    Extract a YYYY-MM-DD date from the last path segment of a URL.

    Args:
        url: Article URL, absolute or relative

    Returns:
        The embedded date, or None

    Example:
        >>> date_from_url("https://nyheder.tv2.dk/samfund/2023-11-20-some-headline")
        datetime.date(2023, 11, 20)
    """
    if not url:
        return None

    path = urlparse(url).path.rstrip("/")
    last_segment = path.rsplit("/", 1)[-1]
    return _from_iso(last_segment)

