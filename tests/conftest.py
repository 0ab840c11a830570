import asyncio
from pathlib import Path

import pytest

from document import parse
from fetcher import FetchError

FIXTURES = Path(__file__).parent / 'fixtures'


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding='utf-8')


def listing_html(slugs, base='/series/'):
    """A minimal grid page with one series card per slug."""
    cards = '\n'.join(
        f'<a href="{base}{slug}"><img src="/covers/{slug}.webp">'
        f'<span class="font-bold">Story {slug.replace("-", " ").title()}</span></a>'
        for slug in slugs
    )
    return f'<html><body><div class="grid">{cards}</div></body></html>'


class FakeFetcher:
    """Stands in for fetcher.Fetcher: answers from a url -> text/exception table."""

    def __init__(self, pages=None, delays=None):
        self.pages = dict(pages or {})
        self.delays = dict(delays or {})
        self.calls = []

    def _lookup(self, url):
        for key, value in self.pages.items():
            if url == key or url.endswith(key):
                return value
        return FetchError(url, FetchError.STATUS, status=404)

    async def fetch_async(self, url, proxy=None, accept=None, **kwargs):
        self.calls.append((url, proxy))
        delay = next((d for key, d in self.delays.items() if url.endswith(key)), 0)
        if delay:
            await asyncio.sleep(delay)
        value = self._lookup(url)
        if isinstance(value, Exception):
            raise value
        return value

    def close(self):
        pass


@pytest.fixture
def fixture_doc():
    def _load(name, url='https://asuracomic.net/'):
        return parse(load_fixture(name), url)
    return _load
