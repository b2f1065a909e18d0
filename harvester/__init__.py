"""Harvester package initialization."""

from .models import (
    AffordanceDescriptor,
    AffordanceKind,
    RawItem,
    Snapshot,
    TerminationReason,
    CrawlOptions,
    CrawlOutcome,
    CrawlDebug,
)
from .exceptions import (
    HarvesterError,
    AffordanceNotFound,
    SessionUnresponsive,
    DateIndeterminate,
    CutoffNeverObserved,
)
from .dates import normalize, date_from_url, get_vocabulary
from .affordance import locate, trigger, validate
from .convergence import should_continue, simple_check, historical_check
from .sites import SiteAdapter, load_sites_from_yaml, get_site_adapter
from .browser import BrowserSession, create_webdriver, accept_cookies
from .expansion import ExpansionController, crawl
from .articles import ArticleScraper, fetch_article
from .news import retrieve_news_items

__all__ = [
    'AffordanceDescriptor',
    'AffordanceKind',
    'RawItem',
    'Snapshot',
    'TerminationReason',
    'CrawlOptions',
    'CrawlOutcome',
    'CrawlDebug',
    'HarvesterError',
    'AffordanceNotFound',
    'SessionUnresponsive',
    'DateIndeterminate',
    'CutoffNeverObserved',
    'normalize',
    'date_from_url',
    'get_vocabulary',
    'locate',
    'trigger',
    'validate',
    'should_continue',
    'simple_check',
    'historical_check',
    'SiteAdapter',
    'load_sites_from_yaml',
    'get_site_adapter',
    'BrowserSession',
    'create_webdriver',
    'accept_cookies',
    'ExpansionController',
    'crawl',
    'ArticleScraper',
    'fetch_article',
    'retrieve_news_items',
]
