"""
Site profiles

One SiteProfile per source site: where series live (URL pattern), which
selectors mark grids, carousels and sections, which strategy chains serve each
page archetype, and which categories a discovery sync fetches.
"""

import re
import logging
from dataclasses import dataclass, field, replace
from functools import cached_property
from typing import Callable, Dict, List, Optional, Sequence
from urllib.parse import quote_plus

import strategies as st
from field_rules import Rule, TITLE_RULES, COVER_RULES, STATUS_RULES, text_of, attr_of
from normalizer import Normalizer, DEFAULT_NOISE_TOKENS, DEFAULT_RESERVED_WORDS, DEFAULT_CHAPTER_PATTERNS

logger = logging.getLogger(__name__)

HTML = 'html'
MANGADEX_API = 'mangadex'
NOVEL = 'novel'


@dataclass
class Category:
    """One page fetch of a discovery sync, feeding one or more buckets.

    path may contain '{page}'. Multi-section pages list several buckets in
    sections; every section chain runs against the same document.
    """
    task: str
    path: str
    sections: Dict[str, Sequence[st.Strategy]]
    paginated: bool = False
    max_pages: int = 1
    min_page_records: Optional[int] = None
    ranked: bool = False

    @property
    def buckets(self) -> List[str]:
        return list(self.sections)

    @property
    def page_budget(self) -> int:
        return self.max_pages if self.paginated else 1

    def url(self, base_url: str, page: int = 1) -> str:
        path = self.path.replace('{page}', str(page))
        return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


@dataclass
class SiteProfile:
    key: str
    name: str
    base_url: str
    series_pattern: str
    series_path: str = '/series/'
    kind: str = HTML
    page_size: int = 20
    cache_key: str = ''
    max_chapter_pages: int = 50

    # Normalizer tuning
    noise_tokens: Sequence[str] = DEFAULT_NOISE_TOKENS
    reserved_words: Sequence[str] = DEFAULT_RESERVED_WORDS
    chapter_patterns: Sequence[str] = DEFAULT_CHAPTER_PATTERNS

    # Markup landmarks
    grid_selector: str = 'div.grid'
    carousel_selector: str = 'li.slide'
    section_selector: str = 'div.text-white'
    section_labels: Sequence[str] = ()
    image_host: str = ''
    cover_base: str = ''
    api_url: str = ''

    title_rules: Sequence[Rule] = field(default_factory=lambda: list(TITLE_RULES))
    cover_rules: Sequence[Rule] = field(default_factory=lambda: list(COVER_RULES))
    status_rules: Sequence[Rule] = field(default_factory=lambda: list(STATUS_RULES))

    # Page archetypes
    search_path: str = ''
    search_chain: Sequence[st.Strategy] = ()
    detail_parser: Optional[Callable] = None
    image_chain: Sequence[st.ImageStrategy] = ()
    categories: List[Category] = field(default_factory=list)
    bucket_caps: Dict[str, int] = field(default_factory=dict)

    @cached_property
    def normalizer(self) -> Normalizer:
        return Normalizer(
            self.base_url,
            noise_tokens=self.noise_tokens,
            reserved_words=self.reserved_words,
            chapter_patterns=self.chapter_patterns,
        )

    @cached_property
    def _series_re(self) -> 're.Pattern':
        return re.compile(self.series_pattern, re.I)

    def is_series_href(self, href: Optional[str]) -> bool:
        href = (href or '').strip()
        if not href or not self._series_re.search(href):
            return False
        return not self.normalizer.is_chapter_url(href)

    def series_url(self, slug: str) -> str:
        return f"{self.base_url.rstrip('/')}/{self.series_path.strip('/')}/{slug.strip('/')}"

    def search_url(self, query: str, page: int = 1) -> str:
        path = self.search_path.replace('{query}', quote_plus(query)).replace('{page}', str(page))
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    @property
    def buckets(self) -> List[str]:
        names: List[str] = []
        for category in self.categories:
            for name in category.buckets:
                if name not in names:
                    names.append(name)
        return names

    def with_overrides(self, noise_tokens: Optional[Sequence[str]] = None,
                       reserved_words: Optional[Sequence[str]] = None) -> 'SiteProfile':
        """Copy of this profile with extra denylist entries (from settings)."""
        changes = {}
        if noise_tokens:
            changes['noise_tokens'] = tuple(dict.fromkeys(list(self.noise_tokens) + list(noise_tokens)))
        if reserved_words:
            changes['reserved_words'] = tuple(dict.fromkeys(list(self.reserved_words) + list(reserved_words)))
        if not changes:
            return self
        return replace(self, **changes)


SEARCH_CHAIN = [st.grid_anchors, st.all_series_anchors, st.json_island_series]
LISTING_CHAIN = SEARCH_CHAIN

CHAPTER_IMAGE_CHAIN = [
    st.images_from_next_data,
    st.images_from_flight,
    st.images_from_reader,
    st.images_from_raw_urls,
]


# === Asura Scans ===

ASURA = SiteProfile(
    key='asura',
    name='Asura Scans',
    base_url='https://asuracomic.net',
    series_pattern=r'(?:^|/)series/[\w-]+',
    series_path='/series/',
    page_size=15,
    cache_key='manhwaDiscoveryData',
    noise_tokens=('Chapter', 'MANHWA', 'MANHUA', 'MANGA'),
    reserved_words=('home', 'series', 'bookmark', 'bookmarks', 'asura scans'),
    section_labels=('Trending', 'Popular Today', 'Latest Update'),
    image_host='gg.asuracomic.net',
    search_path='/series?page={page}&name={query}',
    search_chain=SEARCH_CHAIN,
    detail_parser=st.asura_series_details,
    image_chain=CHAPTER_IMAGE_CHAIN,
    categories=[
        Category(
            task='Home page',
            path='/',
            sections={
                'trending': [st.carousel_slides] + st.section_chain('Trending'),
                'popular': st.section_chain('Popular Today'),
                'latest': st.section_chain('Latest Update'),
            },
        ),
        Category(
            task='Browse series',
            path='/series?page={page}',
            sections={'browse': LISTING_CHAIN},
            paginated=True,
            max_pages=3,
        ),
    ],
    bucket_caps={'trending': 10, 'popular': 10, 'latest': 30},
)


# === NovelFire ===

NOVELFIRE_TITLE_RULES: List[Rule] = [
    text_of('.novel-title'),
    attr_of(None, 'title'),
    text_of('h4'),
] + list(TITLE_RULES)

NOVELFIRE_COVER_RULES: List[Rule] = [
    attr_of('img', 'data-src'),
] + list(COVER_RULES)

NOVELFIRE = SiteProfile(
    key='novelfire',
    name='NovelFire',
    base_url='https://novelfire.net',
    series_pattern=r'(?:^|/)book/[\w-]+/?$',
    series_path='/book/',
    kind=NOVEL,
    page_size=20,
    cache_key='homeData',
    noise_tokens=('Chapter', 'Rank'),
    reserved_words=('home', 'bookmark', 'bookmarks', 'novelfire'),
    chapter_patterns=(r'/chapter-', r'/chapters', r'[?&]genres?='),
    grid_selector='ul.novel-list',
    carousel_selector='div.swiper-slide',
    section_selector='section',
    section_labels=('Recommends', 'Ranking', 'Latest'),
    title_rules=NOVELFIRE_TITLE_RULES,
    cover_rules=NOVELFIRE_COVER_RULES,
    search_path='/search?keyword={query}&page={page}',
    search_chain=SEARCH_CHAIN,
    detail_parser=st.novel_series_details,
    categories=[
        Category(
            task='Recommended',
            path='/home',
            sections={'recommended': st.section_chain('Recommends') + [st.carousel_slides]},
        ),
        Category(
            task='Ranking',
            path='/ranking?page={page}',
            sections={'ranking': LISTING_CHAIN},
            paginated=True,
            max_pages=2,
            ranked=True,
        ),
        Category(
            task='Latest releases',
            path='/latest-release-novels?page={page}',
            sections={'latest': LISTING_CHAIN},
        ),
        Category(
            task='Recently added',
            path='/genre-all/sort-new/status-all/all-novel?page={page}',
            sections={'recentlyAdded': LISTING_CHAIN},
        ),
        Category(
            task='Completed',
            path='/genre-all/sort-popular/status-completed/all-novel?page={page}',
            sections={'completed': LISTING_CHAIN},
            paginated=True,
            max_pages=2,
        ),
    ],
    bucket_caps={'recommended': 10, 'ranking': 40, 'latest': 20, 'recentlyAdded': 20, 'completed': 40},
)


# === Generic WordPress/Madara reader ===

MADARA = SiteProfile(
    key='madara',
    name='Madara reader',
    base_url='',
    series_pattern=r'/(?:manga|series|comics|webtoon)/[\w-]+/?$',
    series_path='/manga/',
    grid_selector='.c-tabs-item, .page-listing-item, .listupd',
    section_selector='.c-blog__heading, .bixbox',
    search_path='/?s={query}&post_type=wp-manga',
    search_chain=[st.grid_anchors, st.all_series_anchors],
    detail_parser=st.madara_series_details,
    image_chain=[st.images_from_reader, st.images_from_raw_urls],
)


# === MangaDex JSON API ===

MANGADEX = SiteProfile(
    key='mangadex',
    name='MangaDex',
    base_url='https://mangadex.org',
    series_pattern=r'/title/[0-9a-f-]{36}',
    series_path='/title/',
    kind=MANGADEX_API,
    page_size=20,
    api_url='https://api.mangadex.org',
    cover_base='https://uploads.mangadex.org/covers',
    reserved_words=('home', 'bookmark', 'bookmarks'),
)


SITES: Dict[str, SiteProfile] = {site.key: site for site in (ASURA, NOVELFIRE, MADARA, MANGADEX)}


def get_site(key: str) -> SiteProfile:
    try:
        return SITES[key.lower()]
    except KeyError:
        raise KeyError(f"Unknown site '{key}'. Known sites: {', '.join(sorted(SITES))}")


def site_for_url(url: str) -> SiteProfile:
    """Best profile for a series/chapter URL; unknown hosts get the Madara profile rebased."""
    for site in SITES.values():
        if site.base_url and url.startswith(site.base_url):
            return site
    match = re.match(r'^(https?://[^/]+)', url)
    if not match:
        raise ValueError(f"Not an absolute URL: {url}")
    return replace(MADARA, base_url=match.group(1))
