"""Article page scraping: body text, quotes, captions and authors."""

from typing import Any, Dict, List, Optional
import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from harvester.sites import SiteAdapter
from utils.logger import get_logger, timed_operation
from config.settings import get_config

logger = get_logger(__name__)


def create_session() -> requests.Session:
    """
    Create a requests session with retry strategy and proper headers.

    Returns:
        Configured requests Session
    """
    config = get_config()
    session = requests.Session()

    retry_strategy = Retry(
        total=config.get('http.retries', 2),
        backoff_factor=config.get('http.backoff_factor', 0.3),
        status_forcelist=[429, 500, 502, 503, 504],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        'User-Agent': config.get(
            'http.user_agent',
            'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'
        )
    })

    return session


class ArticleScraper:
    """
    Reads the contents of one article page using the site's article selectors.

    Missing selectors or elements give empty results rather than errors, since
    not every article carries quotes, captions or a byline.
    """

    def __init__(self, html: str, site: SiteAdapter):
        self.site = site
        self.selectors = site.article_selectors
        self.soup = BeautifulSoup(html, 'html.parser')

    def _select(self, key: str) -> List:
        selector = self.selectors.get(key)
        if not selector:
            return []
        return self.soup.select(selector)

    def _select_one(self, key: str, root) -> Optional[str]:
        selector = self.selectors.get(key)
        if not selector:
            return None
        node = root.select_one(selector)
        return node.get_text(" ", strip=True) if node is not None else None

    def text(self) -> str:
        """Body paragraphs joined by single spaces."""
        parts = [node.get_text(" ", strip=True) for node in self._select('body')]
        return " ".join(part for part in parts if part)

    def quotes(self) -> List[Dict[str, str]]:
        """Highlighted quotes with their attributed speaker."""
        quotes = []
        for block in self._select('quote'):
            quotes.append({
                'quote_text': self._select_one('quote_text', block) or "",
                'quote_author': self._select_one('quote_author', block) or "",
            })
        return quotes

    def image_captions(self) -> List[str]:
        captions = [node.get_text(" ", strip=True) for node in self._select('caption')]
        return [caption for caption in captions if caption]

    def authors(self) -> List[str]:
        names = []
        for node in self._select('author'):
            name = node.get_text(" ", strip=True)
            if name and name not in names:
                names.append(name)
        return names

    def to_dict(self) -> Dict[str, Any]:
        return {
            'site': self.site.name,
            'text': self.text(),
            'quotes': self.quotes(),
            'image_captions': self.image_captions(),
            'authors': self.authors(),
        }


@timed_operation("Article download")
def fetch_article(url: str, site: SiteAdapter, session: Optional[requests.Session] = None,
                  timeout: Optional[int] = None) -> Dict[str, Any]:
    """
    Download an article and scrape its contents.

    Args:
        url: Article URL
        site: Adapter of the outlet the article belongs to
        session: requests Session (a retrying one is created if None)
        timeout: Request timeout in seconds (uses config default if None)

    Returns:
        Dictionary with url, site, text, quotes, image_captions and authors

    Raises:
        ValueError: If the site has no article selectors
        requests.RequestException: If the download fails
    """
    if not site.article_selectors:
        raise ValueError(f"Site '{site.name}' has no article selectors configured")

    if timeout is None:
        timeout = get_config().get('http.timeout', 15)

    session = session or create_session()

    logger.info(f"Fetching article {url}")
    response = session.get(url, timeout=timeout)
    response.raise_for_status()

    article = ArticleScraper(response.text, site).to_dict()
    article['url'] = url

    logger.debug(f"Article has {len(article['text'])} characters, {len(article['quotes'])} quotes")
    return article
