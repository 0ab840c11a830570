#!/usr/bin/env python3
"""
Command line entry point

    python main.py sync --site asura
    python main.py search --site novelfire "shadow slave" --page 2
    python main.py series https://asuracomic.net/series/some-series-1a2b3c
    python main.py chapter https://asuracomic.net/series/some-series-1a2b3c/chapter/12
    python main.py show --site asura
    python main.py watch --site asura --site novelfire
"""

import sys
import json
import asyncio
import logging
import argparse

from dotenv import load_dotenv

from cache import DiscoveryCache
from client import SourceClient
from discovery import DiscoveryAggregator, DiscoveryCancelled, DiscoveryError
from document import ParseError
from fetcher import Fetcher, FetchError
from settings import get_settings
from sites import SITES, NOVEL, get_site, site_for_url
from sync_service import SyncService

load_dotenv()  # Loads variables from .env

logger = logging.getLogger(__name__)


def build_client(site, settings) -> SourceClient:
    site = site.with_overrides(noise_tokens=settings.noise_tokens, reserved_words=settings.reserved_words)
    fetcher = Fetcher(timeout=settings.timeout, mobile=bool(settings.get('mobile_user_agent')))
    return SourceClient(
        site,
        fetcher=fetcher,
        relays=settings.relays,
        retries_per_route=int(settings.get('retries_per_route')),
        retry_backoff=float(settings.get('retry_backoff')),
    )


def build_aggregator(site, settings, cache) -> DiscoveryAggregator:
    return DiscoveryAggregator(
        build_client(site, settings),
        cache=cache,
        bucket_caps=settings.bucket_caps,
        concurrency=settings.concurrency,
    )


def _print_json(data):
    json.dump(data, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write('\n')


def _print_progress(task: str, current: int, total: int):
    print(f"[{current}/{total}] {task}", file=sys.stderr)


async def cmd_sync(args, settings, cache) -> int:
    aggregator = build_aggregator(get_site(args.site), settings, cache)
    try:
        payload = await aggregator.run(_print_progress)
    except (DiscoveryError, DiscoveryCancelled) as e:
        logger.error(f"Sync failed: {e}")
        return 1
    _print_json(payload.to_dict())
    return 0


async def cmd_search(args, settings, cache) -> int:
    site = get_site(args.site)
    cached = cache.get_search_results(site.key, args.query, args.page)
    if cached is not None and not args.refresh:
        _print_json(cached)
        return 0
    client = build_client(site, settings)
    records = await client.search(args.query, args.page)
    results = [r.to_dict() for r in records]
    cache.set_search_results(site.key, args.query, results, args.page)
    _print_json(results)
    return 0


async def cmd_series(args, settings, cache) -> int:
    cached = cache.get_series(args.url)
    if cached is not None and not args.refresh:
        cached.pop('_cached_at', None)
        _print_json(cached)
        return 0
    client = build_client(site_for_url(args.url), settings)
    details = (await client.series_details(args.url)).to_dict()
    cache.set_series(args.url, details)
    _print_json(details)
    return 0


async def cmd_chapter(args, settings, cache) -> int:
    site = site_for_url(args.url)
    client = build_client(site, settings)
    if site.kind == NOVEL:
        _print_json({'url': args.url, 'content': await client.chapter_text(args.url)})
    else:
        _print_json(await client.chapter_images(args.url))
    return 0


async def cmd_show(args, settings, cache) -> int:
    aggregator = build_aggregator(get_site(args.site), settings, cache)
    payload = aggregator.load_cached()
    if payload is None:
        logger.error(f"No cached discovery data for {args.site}; run 'sync' first")
        return 1
    _print_json(payload.to_dict())
    return 0


async def cmd_watch(args, settings, cache) -> int:
    aggregators = [build_aggregator(get_site(key), settings, cache) for key in args.site or ['asura', 'novelfire']]
    service = SyncService(aggregators, threshold=settings.sync_threshold)
    service.on_complete(lambda payloads: logger.info(f"Synced: {', '.join(payloads)}"))
    try:
        await service.run_periodic(args.interval)
    except asyncio.CancelledError:
        service.stop()
    return 0


COMMANDS = {
    'sync': cmd_sync,
    'search': cmd_search,
    'series': cmd_series,
    'chapter': cmd_chapter,
    'show': cmd_show,
    'watch': cmd_watch,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manga and novel discovery scraper")
    parser.add_argument('-v', '--verbose', action='store_true', help="debug logging")
    sub = parser.add_subparsers(dest='command', required=True)
    site_choices = sorted(SITES)

    p = sub.add_parser('sync', help="run a discovery sync and cache the payload")
    p.add_argument('--site', choices=site_choices, default='asura')

    p = sub.add_parser('search', help="search a site")
    p.add_argument('--site', choices=site_choices, default='asura')
    p.add_argument('query')
    p.add_argument('--page', type=int, default=1)
    p.add_argument('--refresh', action='store_true', help="ignore cached results")

    p = sub.add_parser('series', help="series details and chapter list")
    p.add_argument('url')
    p.add_argument('--refresh', action='store_true', help="ignore cached details")

    p = sub.add_parser('chapter', help="page image URLs of a chapter")
    p.add_argument('url')

    p = sub.add_parser('show', help="print the cached discovery payload")
    p.add_argument('--site', choices=site_choices, default='asura')

    p = sub.add_parser('watch', help="keep discovery payloads fresh in the background")
    p.add_argument('--site', choices=site_choices, action='append')
    p.add_argument('--interval', type=float, default=None)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    verbose = args.verbose or bool(settings.get('debug'))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )
    cache = DiscoveryCache(settings.get('cache_dir'))
    try:
        return asyncio.run(COMMANDS[args.command](args, settings, cache))
    except (FetchError, ParseError, ValueError, KeyError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == '__main__':
    sys.exit(main())
