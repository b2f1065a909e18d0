"""Test configuration and fixtures."""

import random
from datetime import date, timedelta
from pathlib import Path
import pytest
from selenium.common.exceptions import WebDriverException
from harvester.dates import date_from_url
from harvester.models import AffordanceKind, CrawlOptions
from harvester.sites import SiteAdapter, load_sites_from_yaml

TODAY = date(2023, 12, 1)
SITES_YAML = Path(__file__).parent.parent / "config" / "sites.yaml"


class FakeButton:
    """Stands in for a WebElement button on the simulated page."""

    def __init__(self, session, css_class="", element_id="", grows=True):
        self.session = session
        self.css_class = css_class
        self.element_id = element_id
        self.grows = grows
        self.clicks = 0

    def get_attribute(self, name):
        return {'class': self.css_class, 'id': self.element_id}.get(name, "")

    def click(self):
        self.clicks += 1
        self.session.on_click(self)


class FakeSession:
    """
    In-memory listing page with the BrowserSession interface.

    ``feed`` holds every item the site would ever show, newest first. A growing
    button reveals ``per_click`` more of them; the page length is proportional
    to the number of visible items.
    """

    current_url = "https://news.example/all"

    def __init__(self, feed, visible, per_click=10, fail_clicks_after=None):
        self.feed = feed
        self.visible = visible
        self.per_click = per_click
        self.fail_clicks_after = fail_clicks_after
        self.buttons = []
        self.total_clicks = 0
        self.reloads = 0
        self.slept = []

    def add_button(self, css_class="", element_id="", grows=True):
        button = FakeButton(self, css_class, element_id, grows)
        self.buttons.append(button)
        return button

    def on_click(self, button):
        self.total_clicks += 1
        if self.fail_clicks_after is not None and self.total_clicks > self.fail_clicks_after:
            raise WebDriverException("browser crashed")
        if button.grows:
            self.visible = min(self.visible + self.per_click, len(self.feed))

    def render(self):
        teasers = [
            f'<article class="teaser">'
            f'<a class="teaser-link" href="{url}"><h3>{headline}</h3></a>'
            f'<span class="label">Nyheder</span>'
            f'</article>'
            for url, headline in self.feed[:self.visible]
        ]
        return "<html><body>" + "".join(teasers) + "</body></html>"

    def page_source(self):
        return self.render()

    def page_length(self):
        return 500 + 100 * self.visible

    def scroll_to_bottom(self):
        pass

    def find_buttons(self):
        return list(self.buttons)

    def find_elements(self, kind, value):
        if kind is AffordanceKind.CLASS:
            return [b for b in self.buttons if value in b.css_class.split()]
        return [b for b in self.buttons if b.element_id == value]

    def attribute(self, element, name):
        return element.get_attribute(name) or ""

    def click(self, element):
        element.click()

    def reload(self):
        self.reloads += 1

    def sleep(self, seconds):
        self.slept.append(seconds)

    def quit(self):
        pass


def make_feed(today=TODAY, days=60, per_day=3, skip=()):
    """Teasers newest first, ``per_day`` per day, with the date in the URL."""
    feed = []
    for offset in range(days):
        day = today - timedelta(days=offset)
        if day in skip:
            continue
        for n in range(per_day):
            feed.append((f"/nyheder/{day.isoformat()}-story-{n}", f"Story {n} of {day.isoformat()}"))
    return feed


def visible_through(feed, oldest):
    """Number of leading feed items down to the first one older than ``oldest``."""
    count = 0
    for url, _ in feed:
        day = date_from_url(url)
        if day is not None and day < oldest:
            break
        count += 1
    return count


@pytest.fixture
def test_site():
    """Site adapter for the simulated page, dates taken from the URL."""
    return SiteAdapter(
        name='example',
        base_url='https://news.example',
        topics={'all': 'https://news.example/all'},
        selectors={
            'item': 'article.teaser',
            'url': 'a.teaser-link',
            'headline': 'h3',
            'topic': 'span.label',
        },
        date_source='url',
    )


@pytest.fixture
def options():
    """Crawl options with a fixed today and a seeded rng."""
    return CrawlOptions(today=lambda: TODAY, rng=random.Random(0))


@pytest.fixture
def feed():
    return make_feed()


@pytest.fixture
def scrolling_session(feed):
    """Page showing 2023-11-19 to 2023-12-01 with a working show more button."""
    session = FakeSession(feed, visible_through(feed, date(2023, 11, 19)))
    session.add_button(css_class="share-button", grows=False)
    session.add_button(css_class="btn btn--primary load-more", grows=True)
    return session


@pytest.fixture
def sites():
    return load_sites_from_yaml(SITES_YAML)


@pytest.fixture
def make_session():
    """Factory for simulated pages showing the feed down to ``oldest``."""
    def _make(feed=None, oldest=date(2023, 11, 19), **kwargs):
        feed = feed if feed is not None else make_feed()
        return FakeSession(feed, visible_through(feed, oldest), **kwargs)
    return _make


@pytest.fixture
def feed_builder():
    return make_feed
