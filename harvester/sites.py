"""Site adapters: where a news outlet's teasers are and how to read them."""

import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin
import yaml
from bs4 import BeautifulSoup
from bs4.element import Tag
from harvester.dates import DateVocabulary, date_from_url, get_vocabulary, normalize
from harvester.exceptions import DateIndeterminate
from harvester.models import RawItem
from utils.logger import get_logger
from config.settings import get_config

logger = get_logger(__name__)

DATE_SOURCES = ('text', 'url')
REQUIRED_SELECTORS = ('item', 'url', 'headline')
_HAS_DIGIT = re.compile(r"\d")


def _text(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    text = node.get_text(" ", strip=True)
    return text or None


@dataclass
class SiteAdapter:
    """
    Site-specific DOM query over a rendered listing page.

    Attributes:
        name: Site identifier ('dr', 'tv2')
        base_url: Prefix for relative teaser links
        topics: Topic name -> listing URL
        selectors: CSS selectors for item, url, headline, topic, date
        date_source: 'text' to read a visible timestamp, 'url' to take the
            YYYY-MM-DD segment of the teaser link
        locale: Locale of the visible timestamps
        cookie_selectors: Accept buttons of the consent dialog
        article_selectors: Selectors used by the article scraper
    """

    name: str
    base_url: str
    topics: Dict[str, str]
    selectors: Dict[str, str]
    date_source: str = 'text'
    locale: str = 'da'
    cookie_selectors: List[str] = field(default_factory=list)
    article_selectors: Dict[str, str] = field(default_factory=dict)

    @property
    def vocabulary(self) -> DateVocabulary:
        return get_vocabulary(self.locale)

    def topic_url(self, topic: str) -> str:
        """
        Listing URL of a topic.

        Raises:
            ValueError: If the site has no such topic
        """
        if topic not in self.topics:
            raise ValueError(
                f"Invalid topic '{topic}' for {self.name}. "
                f"Please choose between {', '.join(repr(t) for t in self.topics)}."
            )
        return self.topics[topic]

    def _absolute(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        if url.startswith(('http://', 'https://')):
            return url
        return urljoin(self.base_url + '/', url)

    def _raw_date(self, node: Tag, url: Optional[str]) -> Optional[str]:
        if self.date_source == 'url':
            return url

        date_selector = self.selectors.get('date')
        if not date_selector:
            return None

        # The timestamp is the last meta part that contains a digit
        # ("Politik · 5. jun"), or a relative phrase when it has none.
        parts = [_text(part) for part in node.select(date_selector)]
        parts = [part for part in parts if part]
        with_digits = [part for part in parts if _HAS_DIGIT.search(part)]
        if with_digits:
            return with_digits[-1]
        return parts[-1] if len(parts) > 1 else None

    def extract_item(self, node: Tag) -> RawItem:
        link = node.select_one(self.selectors['url'])
        if link is None and node.name == 'a':
            link = node
        url = self._absolute(link.get('href') if link is not None else None)

        topic_selector = self.selectors.get('topic')
        return RawItem(
            url=url,
            headline=_text(node.select_one(self.selectors['headline'])),
            topic=_text(node.select_one(topic_selector)) if topic_selector else None,
            raw_date=self._raw_date(node, url),
        )

    def extract_items(self, page_source: str) -> List[RawItem]:
        """
        Read every visible teaser from a page snapshot.

        Args:
            page_source: Rendered HTML of the listing page

        Returns:
            Items in page order
        """
        soup = BeautifulSoup(page_source, 'html.parser')
        nodes = soup.select(self.selectors['item'])
        items = [self.extract_item(node) for node in nodes]
        logger.debug(f"Extracted {len(items)} teasers from {self.name} page")
        return items

    def item_date(self, item: RawItem, today: date) -> Optional[date]:
        """Normalized date of an item, or None if it cannot be determined."""
        if self.date_source == 'url':
            return date_from_url(item.raw_date)
        return normalize(item.raw_date, today, self.vocabulary)

    def require_item_date(self, item: RawItem, today: date) -> date:
        """
        Normalized date of an item.

        Raises:
            DateIndeterminate: If the date cannot be determined
        """
        day = self.item_date(item, today)
        if day is None:
            raise DateIndeterminate(item.raw_date)
        return day


def _adapter_from_dict(idx: int, site_config: Dict[str, Any]) -> SiteAdapter:
    for required in ('name', 'base_url', 'topics', 'selectors'):
        if required not in site_config:
            raise ValueError(f"Site at index {idx} missing required field: {required}")

    name = site_config['name']

    topics = site_config['topics']
    if not isinstance(topics, dict) or not topics:
        raise ValueError(f"Site '{name}': 'topics' must be a non-empty mapping")

    selectors = site_config['selectors']
    if not isinstance(selectors, dict):
        raise ValueError(f"Site '{name}': 'selectors' must be a mapping, got {type(selectors)}")
    missing = [key for key in REQUIRED_SELECTORS if not selectors.get(key)]
    if missing:
        raise ValueError(f"Site '{name}': missing selectors: {', '.join(missing)}")

    date_source = site_config.get('date_source', 'text')
    if date_source not in DATE_SOURCES:
        raise ValueError(f"Site '{name}': 'date_source' must be one of {DATE_SOURCES}, got '{date_source}'")
    if date_source == 'text' and not selectors.get('date'):
        raise ValueError(f"Site '{name}': date_source 'text' needs a 'date' selector")

    locale = site_config.get('locale', 'da')
    get_vocabulary(locale)

    return SiteAdapter(
        name=name,
        base_url=site_config['base_url'].rstrip('/'),
        topics=dict(topics),
        selectors=dict(selectors),
        date_source=date_source,
        locale=locale,
        cookie_selectors=list(site_config.get('cookies') or []),
        article_selectors=dict(site_config.get('article') or {}),
    )


def load_sites_from_yaml(yaml_path: Path) -> Dict[str, SiteAdapter]:
    """
    Load site adapters from a YAML file.

    Args:
        yaml_path: Path to sites.yaml file

    Returns:
        Mapping of site name to adapter

    Raises:
        FileNotFoundError: If YAML file not found
        ValueError: If YAML is malformed or missing required fields

    Example YAML format:
        sites:
          - name: dr
            base_url: https://www.dr.dk
            date_source: text
            topics:
              politik: https://www.dr.dk/nyheder/politik
            selectors:
              item: "div[class*='dre-teaser-content']"
              url: "a[class*='dre-teaser-title']"
              headline: "span[class*='dre-title-text']"
              date: "span[class*='dre-teaser-meta__part']"
    """
    if not yaml_path.exists():
        raise FileNotFoundError(f"Sites YAML file not found: {yaml_path}")

    logger.debug(f"Loading sites from YAML: {yaml_path}")

    try:
        with open(yaml_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML file {yaml_path}: {e}")

    if not data or 'sites' not in data:
        raise ValueError("YAML file must contain 'sites' key at root level")

    sites_list = data['sites']
    if not isinstance(sites_list, list):
        raise ValueError(f"'sites' must be a list, got {type(sites_list)}")

    sites: Dict[str, SiteAdapter] = {}
    for idx, site_config in enumerate(sites_list):
        adapter = _adapter_from_dict(idx, site_config)
        if adapter.name in sites:
            raise ValueError(f"Duplicate site name: {adapter.name}")
        sites[adapter.name] = adapter

    logger.debug(f"Loaded {len(sites)} sites: {', '.join(sites)}")
    return sites


def get_site_adapter(name: str, yaml_path: Optional[Path] = None) -> SiteAdapter:
    """
    Look up a configured site by name.

    Raises:
        ValueError: If the site is not configured
    """
    if yaml_path is None:
        yaml_path = get_config().sites_file

    sites = load_sites_from_yaml(yaml_path)
    if name not in sites:
        raise ValueError(f"Invalid news outlet '{name}'. Please choose between {', '.join(repr(s) for s in sites)}.")
    return sites[name]
