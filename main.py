"""Main CLI entry point for Feed Harvester."""

import sys
import json
import argparse
from pathlib import Path
import requests
from config import get_config
from utils import setup_logger, get_logger, save_json, outcome_filename
from harvester import (
    AffordanceDescriptor,
    AffordanceKind,
    CrawlOptions,
    HarvesterError,
    fetch_article,
    get_site_adapter,
    load_sites_from_yaml,
    retrieve_news_items,
)
from harvester.news import resolve_cutoff

# Setup logger
logger = get_logger(__name__)


def _override_from_args(args):
    """Manually supplied show more button, if any."""
    if getattr(args, 'show_more_class', None):
        return AffordanceDescriptor(AffordanceKind.CLASS, args.show_more_class)
    if getattr(args, 'show_more_id', None):
        return AffordanceDescriptor(AffordanceKind.ID, args.show_more_id)
    return None


def cmd_crawl(args):
    """Execute the crawl command."""
    logger.info(f"=== Crawling {args.site} / {args.topic} ===")

    config = get_config()

    try:
        options = CrawlOptions.from_config(
            config,
            count_tolerance=args.count_tolerance,
            iteration_tolerance=args.iteration_tolerance,
            time_window_days=args.time_window,
            verbose=args.verbose,
            debug=args.debug,
            override=_override_from_args(args),
        )
        cutoff = resolve_cutoff(args.since, options.today())

        outcome = retrieve_news_items(
            args.site,
            args.topic,
            since=cutoff,
            headless=False if args.headed else None,
            handle_cookie_prompt=not args.no_cookie,
            options=options
        )
    except (HarvesterError, ValueError) as e:
        logger.error(f"Crawl failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Crawl failed: {e}", exc_info=True)
        return 1

    if args.output:
        output_file = Path(args.output)
    else:
        output_file = config.get_full_path('paths.output_dir') / outcome_filename(args.site, args.topic, cutoff)

    result = outcome.to_dict()
    result.update({'site': args.site, 'topic': args.topic, 'since': cutoff.isoformat()})
    save_json(result, output_file)

    logger.info("=== Crawl Complete ===")
    logger.info(f"Items: {len(outcome.items)}")
    logger.info(f"Stopped: {outcome.termination_reason.value}")
    logger.info(f"Results saved to {output_file}")

    return 0


def cmd_topics(args):
    """List configured sites and their topics."""
    config = get_config()

    try:
        sites = load_sites_from_yaml(config.sites_file)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to load sites: {e}")
        return 1

    if args.site:
        if args.site not in sites:
            logger.error(f"Unknown site '{args.site}'. Configured sites: {', '.join(sites)}")
            return 1
        sites = {args.site: sites[args.site]}

    for name, site in sites.items():
        print(f"{name} ({site.base_url})")
        for topic, url in site.topics.items():
            print(f"  {topic:<12} {url}")

    return 0


def cmd_article(args):
    """Scrape the contents of a single article."""
    logger.info(f"=== Fetching article from {args.site} ===")

    try:
        site = get_site_adapter(args.site)
        article = fetch_article(args.url, site)
    except ValueError as e:
        logger.error(f"Article scraping failed: {e}")
        return 1
    except requests.RequestException as e:
        logger.error(f"Could not download {args.url}: {e}")
        return 1

    if args.output:
        save_json(article, Path(args.output))
    else:
        print(json.dumps(article, indent=2, ensure_ascii=False))

    return 0


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Feed Harvester - collect news teasers from infinite-scroll listings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Everything on DR politics from the last two weeks
  python main.py crawl dr politik

  # TV2 climate news since a given date, with a visible browser
  python main.py crawl tv2 klima --since 2023-11-20 --headed

  # List topics
  python main.py topics

  # Scrape a single article
  python main.py article https://www.dr.dk/nyheder/politik/some-article --site dr
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # Crawl command
    parser_crawl = subparsers.add_parser('crawl', help='Harvest news items of a topic')
    parser_crawl.add_argument('site', help='Configured site (e.g. dr, tv2)')
    parser_crawl.add_argument('topic', help='Topic of the site')
    parser_crawl.add_argument(
        '--since',
        help='Earliest publication date to collect (default: expansion.default_lookback_days ago)'
    )
    parser_crawl.add_argument(
        '--headed',
        action='store_true',
        help='Show the browser window'
    )
    parser_crawl.add_argument(
        '--no-cookie',
        action='store_true',
        help='Do not click the cookie consent dialog'
    )
    button_group = parser_crawl.add_mutually_exclusive_group()
    button_group.add_argument(
        '--show-more-class',
        help='Class of the show more button, when it cannot be found automatically'
    )
    button_group.add_argument(
        '--show-more-id',
        help='Id of the show more button, when it cannot be found automatically'
    )
    parser_crawl.add_argument(
        '--count-tolerance',
        type=int,
        help='Allowed deviation of the cutoff count from the recent mean (default: from config)'
    )
    parser_crawl.add_argument(
        '--iteration-tolerance',
        type=int,
        help='Allowed change of the cutoff count between iterations (default: from config)'
    )
    parser_crawl.add_argument(
        '--time-window',
        type=int,
        help='Days around today used for the recent mean (default: from config)'
    )
    parser_crawl.add_argument(
        '--debug',
        action='store_true',
        help='Include the snapshot history in the output'
    )
    parser_crawl.add_argument(
        '-o', '--output',
        help='Output JSON file (default: <output_dir>/<site>_<topic>_since_<date>.json)'
    )
    parser_crawl.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging (DEBUG level)'
    )

    # Topics command
    parser_topics = subparsers.add_parser('topics', help='List configured sites and topics')
    parser_topics.add_argument('site', nargs='?', help='Only list this site')

    # Article command
    parser_article = subparsers.add_parser('article', help='Scrape the contents of an article')
    parser_article.add_argument('url', help='Article URL')
    parser_article.add_argument('--site', required=True, help='Site the article belongs to')
    parser_article.add_argument(
        '-o', '--output',
        help='Output JSON file (default: print to stdout)'
    )

    # Parse arguments
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Setup logging - use DEBUG level if verbose flag is set for any command
    log_level = 'DEBUG' if (hasattr(args, 'verbose') and args.verbose) else None
    setup_logger('harvester', level=log_level)

    # Execute command
    commands = {
        'crawl': cmd_crawl,
        'topics': cmd_topics,
        'article': cmd_article
    }

    return commands[args.command](args)


if __name__ == '__main__':
    sys.exit(main())
