"""Top-level entry point: open a topic page and harvest its news items."""

from datetime import date, datetime, timedelta
from typing import Optional, Union
from dateutil import parser as date_parser
from harvester.browser import BrowserSession, accept_cookies
from harvester.expansion import crawl
from harvester.models import CrawlOptions, CrawlOutcome
from harvester.sites import get_site_adapter
from utils.logger import get_logger, timed_operation
from config.settings import get_config

logger = get_logger(__name__)


def resolve_cutoff(since: Union[date, str, None], today: Optional[date] = None) -> date:
    """
    Turn a user supplied "since" value into a cutoff date.

    Args:
        since: A date, a date string, or None for the default lookback
        today: Reference date (defaults to today)

    Returns:
        Cutoff date

    Raises:
        ValueError: If the string cannot be parsed as a date
    """
    today = today or date.today()

    if since is None:
        lookback = get_config().get('expansion.default_lookback_days', 14)
        return today - timedelta(days=lookback)
    if isinstance(since, datetime):
        return since.date()
    if isinstance(since, date):
        return since

    try:
        return date_parser.parse(since).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{since}': {e}")


@timed_operation("News retrieval")
def retrieve_news_items(
    site_name: str,
    topic: str,
    since: Union[date, str, None] = None,
    headless: Optional[bool] = None,
    handle_cookie_prompt: bool = True,
    options: Optional[CrawlOptions] = None
) -> CrawlOutcome:
    """
    Harvest the news items of one topic published since a date.

    Args:
        site_name: Configured site ('dr', 'tv2')
        topic: Topic of that site
        since: Cutoff date (defaults to ``expansion.default_lookback_days`` ago)
        headless: Run the browser without a window (uses config default if None)
        handle_cookie_prompt: Click the consent dialog's accept button
        options: Crawl options (from configuration if None)

    Returns:
        CrawlOutcome

    Raises:
        ValueError: If the site or topic is unknown, or ``since`` is unparseable
        HarvesterError: If the crawl fails
    """
    config = get_config()
    options = options or CrawlOptions.from_config(config)

    site = get_site_adapter(site_name)
    url = site.topic_url(topic)
    cutoff = resolve_cutoff(since, options.today())

    session = BrowserSession.start(headless=headless)
    try:
        session.navigate(url)
        session.sleep(config.get('selenium.initial_wait', 2))

        if handle_cookie_prompt:
            accept_cookies(session, site.cookie_selectors)

        outcome = crawl(session, site, cutoff, options)
    finally:
        session.quit()

    logger.info(f"Finished crawling {topic} from {site_name.upper()}: {len(outcome.items)} items")
    return outcome
