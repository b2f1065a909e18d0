"""Tests for the news retrieval entry point and the CLI."""

import json
import pytest
from datetime import date
from unittest.mock import MagicMock, patch
import main
from harvester.exceptions import AffordanceNotFound
from harvester.models import AffordanceDescriptor, AffordanceKind, CrawlOutcome, RawItem, TerminationReason
from harvester.news import resolve_cutoff, retrieve_news_items


def _outcome():
    item = RawItem("https://www.dr.dk/a", "Headline", "Politik", "I dag", published=date(2023, 12, 1))
    return CrawlOutcome(items=[item], termination_reason=TerminationReason.CONVERGED)


def test_resolve_cutoff():
    today = date(2023, 12, 1)

    assert resolve_cutoff(None, today) == date(2023, 11, 17)
    assert resolve_cutoff(date(2023, 11, 20), today) == date(2023, 11, 20)
    assert resolve_cutoff("2023-11-20", today) == date(2023, 11, 20)

    with pytest.raises(ValueError, match="Could not parse date"):
        resolve_cutoff("not a date", today)


def test_retrieve_news_items_drives_session(options):
    session = MagicMock()

    with patch('harvester.news.BrowserSession.start', return_value=session) as start, \
            patch('harvester.news.accept_cookies') as cookies, \
            patch('harvester.news.crawl', return_value=_outcome()) as crawl:
        outcome = retrieve_news_items('dr', 'politik', since="2023-11-20", headless=True, options=options)

    start.assert_called_once_with(headless=True)
    session.navigate.assert_called_once_with("https://www.dr.dk/nyheder/politik")
    cookies.assert_called_once()
    assert crawl.call_args[0][2] == date(2023, 11, 20)
    session.quit.assert_called_once()
    assert len(outcome.items) == 1


def test_retrieve_news_items_quits_on_failure(options):
    """The browser is closed even when the crawl fails."""
    session = MagicMock()

    with patch('harvester.news.BrowserSession.start', return_value=session), \
            patch('harvester.news.crawl', side_effect=AffordanceNotFound()):
        with pytest.raises(AffordanceNotFound):
            retrieve_news_items('tv2', 'klima', handle_cookie_prompt=False, options=options)

    session.quit.assert_called_once()


def test_retrieve_news_items_invalid_topic(options):
    with patch('harvester.news.BrowserSession.start') as start:
        with pytest.raises(ValueError, match="Invalid topic"):
            retrieve_news_items('dr', 'sport', options=options)

    start.assert_not_called()


def test_cli_crawl_writes_output(tmp_path):
    output = tmp_path / "out.json"

    with patch('main.retrieve_news_items', return_value=_outcome()) as retrieve:
        code = main.main([
            'crawl', 'dr', 'politik', '--since', '2023-11-20',
            '--show-more-class', 'load-more', '--iteration-tolerance', '2', '-o', str(output)
        ])

    assert code == 0
    options = retrieve.call_args.kwargs['options']
    assert options.override == AffordanceDescriptor(AffordanceKind.CLASS, 'load-more')
    assert options.iteration_tolerance == 2
    assert retrieve.call_args.kwargs['since'] == date(2023, 11, 20)

    data = json.loads(output.read_text(encoding='utf-8'))
    assert data['site'] == 'dr'
    assert data['since'] == '2023-11-20'
    assert data['termination_reason'] == 'converged'
    assert data['items'][0]['date'] == '2023-12-01'


def test_cli_crawl_failure_returns_1():
    with patch('main.retrieve_news_items', side_effect=AffordanceNotFound()):
        assert main.main(['crawl', 'dr', 'politik', '--since', '2023-11-20']) == 1


def test_cli_crawl_bad_date_returns_1():
    assert main.main(['crawl', 'dr', 'politik', '--since', 'yesterday-ish']) == 1


def test_cli_topics(capsys):
    assert main.main(['topics', 'tv2']) == 0

    out = capsys.readouterr().out
    assert 'klima' in out
    assert 'indland' not in out


def test_cli_topics_unknown_site():
    assert main.main(['topics', 'bbc']) == 1


def test_cli_article(tmp_path):
    output = tmp_path / "article.json"
    article = {'url': 'https://www.dr.dk/a', 'site': 'dr', 'text': 'Tekst', 'quotes': [],
               'image_captions': [], 'authors': []}

    with patch('main.fetch_article', return_value=article):
        assert main.main(['article', 'https://www.dr.dk/a', '--site', 'dr', '-o', str(output)]) == 0

    assert json.loads(output.read_text(encoding='utf-8'))['text'] == 'Tekst'


def test_cli_without_command():
    assert main.main([]) == 1
