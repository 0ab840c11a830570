"""
Source client - fetch, parse and extract for one site profile

The client owns the per-page retry policy: every page is tried through the
configured routes in order ('' means direct, anything else is a relay), each
route with a few extra attempts and a fixed backoff.
"""

import re
import asyncio
import logging
from typing import Dict, List, Optional, Sequence
from urllib.parse import quote_plus

from document import RawDocument, ParseError, parse, parse_json
from fetcher import Fetcher, FetchError
from merger import build_records
from models import ChapterLink, NormalizedRecord, SeriesDetails
from sites import SiteProfile, Category, MANGADEX_API, NOVEL
import strategies as st

logger = logging.getLogger(__name__)

DIRECT = ''

CHAPTER_PAGE_DELAY = 0.5  # seconds between chapter-list pages

_CHAPTERS_SUFFIX_RE = re.compile(r'/chapters/?(?:\?.*)?$')
_UUID_RE = re.compile(r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}', re.I)


class SourceClient:
    """Search, listing, series detail and chapter images for one site."""

    def __init__(self, site: SiteProfile,
                 fetcher: Optional[Fetcher] = None,
                 relays: Optional[Sequence[str]] = None,
                 retries_per_route: int = 0,
                 retry_backoff: float = 1.0):
        self.site = site
        self.fetcher = fetcher or Fetcher()
        self.routes: List[str] = list(relays) if relays else [DIRECT]
        self.retries_per_route = max(0, retries_per_route)
        self.retry_backoff = retry_backoff

    # === Transport ===

    async def fetch_text(self, url: str, accept: Optional[str] = None) -> str:
        """Try every route; raise the last FetchError when all of them fail."""
        last_error: Optional[FetchError] = None
        for route in self.routes:
            for attempt in range(self.retries_per_route + 1):
                if attempt:
                    await asyncio.sleep(self.retry_backoff)
                try:
                    return await self.fetcher.fetch_async(url, proxy=route or None, accept=accept)
                except FetchError as e:
                    last_error = e
                    logger.debug(f"[{self.site.name}] {e} (route {route or 'direct'}, attempt {attempt + 1})")
        raise last_error or FetchError(url, FetchError.NETWORK, message='no routes configured')

    async def fetch_document(self, url: str) -> RawDocument:
        text = await self.fetch_text(url)
        return parse(text, url)

    async def fetch_json(self, url: str):
        text = await self.fetch_text(url, accept='application/json')
        return parse_json(text, url)

    # === Extraction ===

    def extract(self, doc: RawDocument, chain: Sequence[st.Strategy], label: str = '',
                rank_offset: Optional[int] = None) -> List[NormalizedRecord]:
        candidates = st.run_chain(doc, chain, self.site, label)
        records = build_records(candidates, self.site.normalizer, rank_offset=rank_offset)
        logger.debug(f"[{self.site.name}] {label or 'page'}: {len(candidates)} candidates -> {len(records)} records")
        return records

    def rank_offset(self, page: int) -> int:
        return (max(page, 1) - 1) * self.site.page_size

    def extract_sections(self, doc: RawDocument, category: Category,
                         page: int = 1) -> Dict[str, List[NormalizedRecord]]:
        """Run every section chain of a category against the same document."""
        offset = self.rank_offset(page) if category.ranked else None
        return {
            bucket: self.extract(doc, chain, label=bucket, rank_offset=offset)
            for bucket, chain in category.sections.items()
        }

    async def fetch_category_page(self, category: Category, page: int = 1) -> Dict[str, List[NormalizedRecord]]:
        doc = await self.fetch_document(category.url(self.site.base_url, page))
        return self.extract_sections(doc, category, page)

    # === Search ===

    async def search(self, query: str, page: int = 1) -> List[NormalizedRecord]:
        """Ranked search results for query; rank continues across pages."""
        query = (query or '').strip()
        if not query:
            return []
        if self.site.kind == MANGADEX_API:
            return await self._search_mangadex(query, page)
        doc = await self.fetch_document(self.site.search_url(query, page))
        records = self.extract(doc, self.site.search_chain, label='search', rank_offset=self.rank_offset(page))
        logger.info(f"[{self.site.name}] Found {len(records)} results for '{query}' (page {page})")
        return records

    async def _search_mangadex(self, query: str, page: int) -> List[NormalizedRecord]:
        url = (f"{self.site.api_url}/manga?title={quote_plus(query)}"
               f"&limit={self.site.page_size}&offset={self.rank_offset(page)}"
               f"&includes[]=cover_art&includes[]=author"
               f"&contentRating[]=safe&contentRating[]=suggestive&order[relevance]=desc")
        data = await self.fetch_json(url)
        candidates = st.mangadex_search_results(data, self.site)
        records = build_records(candidates, self.site.normalizer, rank_offset=self.rank_offset(page))
        logger.info(f"[{self.site.name}] Found {len(records)} results for '{query}' (page {page})")
        return records

    # === Series / chapters ===

    async def series_details(self, url: str) -> SeriesDetails:
        if self.site.kind == MANGADEX_API:
            return await self._mangadex_details(url)
        if self.site.detail_parser is None:
            raise ValueError(f"{self.site.name} has no series detail parser")
        if self.site.kind == NOVEL:
            details = await self._novel_details(url)
        else:
            doc = await self.fetch_document(url)
            details = self.site.detail_parser(doc, self.site)
        logger.info(f"[{self.site.name}] {details.title}: {len(details.chapters)} chapters")
        return details

    async def _novel_details(self, url: str) -> SeriesDetails:
        """Book metadata from the info page, chapters from every page of the chapter list."""
        info_url = _CHAPTERS_SUFFIX_RE.sub('', url)
        list_url = url if info_url != url else None

        doc = await self.fetch_document(info_url)
        details = self.site.detail_parser(doc, self.site)
        if details.title == st.UNKNOWN_TITLE or not details.cover_url:
            book_url = st.novel_info_url(doc)
            if book_url and book_url != info_url:
                logger.debug(f"[{self.site.name}] Metadata incomplete, following {book_url}")
                try:
                    book_doc = await self.fetch_document(book_url)
                except (FetchError, ParseError) as e:
                    logger.warning(f"[{self.site.name}] Could not load book page {book_url}: {e}")
                else:
                    doc = book_doc
                    details = self.site.detail_parser(doc, self.site)

        list_url = list_url or st.novel_chapter_list_url(doc) or doc.base_url
        first_doc = doc if list_url == doc.base_url else None
        chapters = await self._walk_chapter_list(list_url, first_doc)
        if chapters:
            details.chapters = chapters
        return details

    async def _walk_chapter_list(self, start_url: str,
                                 first_doc: Optional[RawDocument] = None) -> List[ChapterLink]:
        """Follow next-page links from start_url, collecting chapters until a page adds none."""
        chapters: List[ChapterLink] = []
        seen_urls = set()
        visited = set()
        url: Optional[str] = start_url
        doc = first_doc
        while url and url not in visited and len(visited) < self.site.max_chapter_pages:
            visited.add(url)
            if doc is None:
                if len(visited) > 1:
                    await asyncio.sleep(CHAPTER_PAGE_DELAY)
                try:
                    doc = await self.fetch_document(url)
                except (FetchError, ParseError) as e:
                    logger.warning(f"[{self.site.name}] Chapter list stopped at {url}: {e}")
                    break

            page = st.novel_chapters(doc)
            if not page:
                break
            for chapter in page:
                if chapter.url not in seen_urls:
                    seen_urls.add(chapter.url)
                    chapters.append(chapter)
            logger.debug(f"[{self.site.name}] Chapter page {len(visited)}: {len(page)} links")

            url = st.novel_next_page(doc)
            doc = None
        return chapters

    async def _mangadex_details(self, url: str) -> SeriesDetails:
        manga_id = _mangadex_id(url)
        data = await self.fetch_json(f"{self.site.api_url}/manga/{manga_id}?includes[]=cover_art&includes[]=author")
        feed = await self.fetch_json(
            f"{self.site.api_url}/manga/{manga_id}/feed?translatedLanguage[]=en"
            f"&order[chapter]=asc&limit=500&includes[]=scanlation_group"
        )
        return st.mangadex_series_details(data, self.site, st.mangadex_chapters(feed, self.site))

    async def chapter_images(self, url: str) -> List[str]:
        if self.site.kind == MANGADEX_API:
            data = await self.fetch_json(f"{self.site.api_url}/at-home/server/{_mangadex_id(url)}")
            return st.mangadex_images(data)
        if self.site.kind == NOVEL:
            raise ValueError(f"{self.site.name} chapters are text; use chapter_text()")
        doc = await self.fetch_document(url)
        images = st.run_image_chain(doc, self.site.image_chain, self.site)
        if not images:
            logger.warning(f"[{self.site.name}] No page images found on {url}")
        return images

    async def chapter_text(self, url: str) -> str:
        """Cleaned chapter body HTML for novel sites; '' when no content block is found."""
        doc = await self.fetch_document(url)
        content = st.novel_chapter_text(doc)
        if not content:
            logger.warning(f"[{self.site.name}] No chapter content found on {url}")
        return content

    def close(self):
        self.fetcher.close()


def _mangadex_id(url: str) -> str:
    match = _UUID_RE.search(url or '')
    if not match:
        raise ValueError(f"No MangaDex id in {url!r}")
    return match.group(0)
