"""
Extraction strategies

Each listing strategy is a plain function (doc, site) -> List[ExtractionCandidate]
scoped to one page archetype. Strategies are grouped into fallback chains; the
first strategy that yields anything wins. Home pages run one chain per section.

Scanning is anchor-first: an anchor counts when its href matches the site's
series path, which survives CSS class churn far better than class names do.
"""

import re
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import urljoin

from bs4 import Tag

from document import (
    RawDocument, clone_without, extract_next_data, extract_flight_payload, iter_json_dicts, iter_json_values,
)
from field_rules import (
    resolve, text_of, attr_of, is_real_image, LAZY_SRC_ATTRS,
)
from models import ExtractionCandidate, SeriesDetails, ChapterLink
from normalizer import collapse_whitespace, resolve_url

logger = logging.getLogger(__name__)

Strategy = Callable[[RawDocument, Any], List[ExtractionCandidate]]
ImageStrategy = Callable[[RawDocument, Any], List[str]]

HEADING_TAGS = ['h1', 'h2', 'h3', 'h4']

IMAGE_URL_RE = re.compile(r'https?://[^"\'\s\\]+\.(?:jpg|jpeg|png|webp|avif)', re.I)
IMAGE_NOISE_WORDS = ('logo', 'icon', 'thumb', 'avatar', 'cover', 'ads', 'banner')
PAGE_NAME_PATTERNS = [
    re.compile(r'^\d+$'),                            # 01
    re.compile(r'^[a-zA-Z0-9_-]{0,15}[-_]?\d+$'),    # page-01, img_3
    re.compile(r'^[0-7][0-9A-HJKMNP-TV-Z]{25}$'),    # ULID
    re.compile(r'^[a-f0-9]{8}$', re.I),              # short hash
]


def _named(fn: Callable, name: str) -> Callable:
    fn.__name__ = name
    fn.__qualname__ = name
    return fn


# === Chain runners ===

def run_chain(doc: RawDocument, chain: Sequence[Strategy], site: Any, label: str = '') -> List[ExtractionCandidate]:
    """Try strategies in order; a failing strategy counts as zero candidates."""
    for strategy in chain:
        name = getattr(strategy, '__name__', repr(strategy))
        try:
            candidates = strategy(doc, site)
        except Exception as e:
            logger.warning(f"[Strategy] {label or 'chain'}: {name} failed on {doc.base_url}: {e}")
            continue
        if candidates:
            logger.debug(f"[Strategy] {label or 'chain'}: {name} yielded {len(candidates)} candidates")
            return candidates
        logger.debug(f"[Strategy] {label or 'chain'}: {name} yielded nothing")
    return []


def run_image_chain(doc: RawDocument, chain: Sequence[ImageStrategy], site: Any) -> List[str]:
    for strategy in chain:
        try:
            images = strategy(doc, site)
        except Exception as e:
            logger.warning(f"[Strategy] {getattr(strategy, '__name__', strategy)} failed: {e}")
            continue
        if images:
            return images
    return []


# === Anchor helpers ===

def series_anchors(root: Tag, site: Any) -> List[Tag]:
    return [a for a in root.find_all('a', href=True) if site.is_series_href(a['href'])]


def candidate_from_anchor(anchor: Tag, site: Any, scope: Optional[Tag] = None,
                          title_rules: Optional[Sequence] = None,
                          cover_rules: Optional[Sequence] = None) -> Optional[ExtractionCandidate]:
    href = (anchor.get('href') or '').strip()
    if not href:
        return None
    node = scope if scope is not None else anchor
    return ExtractionCandidate(
        source_url=href,
        title=resolve(node, title_rules or site.title_rules, accept=site.normalizer.has_title_text),
        cover_url=resolve(node, cover_rules or site.cover_rules, accept=is_real_image),
        status=resolve(node, site.status_rules),
    )


def candidates_from_anchors(anchors: Sequence[Tag], site: Any) -> List[ExtractionCandidate]:
    candidates = []
    for anchor in anchors:
        candidate = candidate_from_anchor(anchor, site)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


# === Listing strategies ===

def grid_anchors(doc: RawDocument, site: Any) -> List[ExtractionCandidate]:
    """Series anchors inside the site's result grid containers."""
    anchors: List[Tag] = []
    seen = set()
    for container in doc.select(site.grid_selector):
        for anchor in series_anchors(container, site):
            if id(anchor) not in seen:
                seen.add(id(anchor))
                anchors.append(anchor)
    return candidates_from_anchors(anchors, site)


def all_series_anchors(doc: RawDocument, site: Any) -> List[ExtractionCandidate]:
    """Every series anchor on the page, wherever it sits."""
    return candidates_from_anchors(series_anchors(doc.soup, site), site)


def carousel_slides(doc: RawDocument, site: Any) -> List[ExtractionCandidate]:
    """Trending carousel: one slide per series, title and poster live beside the anchor."""
    candidates = []
    for slide in doc.select(site.carousel_selector):
        anchors = series_anchors(slide, site)
        if not anchors:
            continue
        candidate = candidate_from_anchor(
            anchors[0], site, scope=slide,
            title_rules=[text_of('.ellipsis a')] + list(site.title_rules),
            cover_rules=[attr_of('img[alt="poster"]', 'src')] + list(site.cover_rules),
        )
        if candidate is not None:
            candidates.append(candidate)
    return candidates


_JSON_TITLE_KEYS = ('title', 'name', 'series_name')
_JSON_URL_KEYS = ('url', 'href', 'link', 'permalink')
_JSON_SLUG_KEYS = ('series_slug', 'slug')
_JSON_COVER_KEYS = ('cover', 'cover_url', 'coverUrl', 'thumbnail', 'image', 'poster')
_JSON_STATUS_KEYS = ('status', 'series_status')


def _first_str(data: Dict[str, Any], keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, dict):
            value = value.get('name') or value.get('en')
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _candidate_from_json(data: Dict[str, Any], site: Any) -> Optional[ExtractionCandidate]:
    title = _first_str(data, _JSON_TITLE_KEYS)
    if not title:
        return None
    url = _first_str(data, _JSON_URL_KEYS)
    if not url or not site.is_series_href(url):
        slug = _first_str(data, _JSON_SLUG_KEYS)
        if not slug:
            return None
        url = site.series_url(slug)
    return ExtractionCandidate(
        source_url=url,
        title=title,
        cover_url=_first_str(data, _JSON_COVER_KEYS),
        status=_first_str(data, _JSON_STATUS_KEYS),
    )


def _json_islands(doc: RawDocument) -> List[Any]:
    islands: List[Any] = []
    next_data = extract_next_data(doc.raw_text)
    if next_data is not None:
        islands.append(next_data)
    payload = extract_flight_payload(doc.raw_text)
    if payload:
        islands.extend(iter_json_values(payload))
    return islands


def json_island_series(doc: RawDocument, site: Any) -> List[ExtractionCandidate]:
    """Series objects embedded in server-rendered JSON, used when markup yields nothing."""
    candidates = []
    for island in _json_islands(doc):
        for data in iter_json_dicts(island):
            candidate = _candidate_from_json(data, site)
            if candidate is not None:
                candidates.append(candidate)
    return candidates


# === Section-scoped strategies (home pages) ===

def _heading_text(container: Tag) -> str:
    heading = container.find(HEADING_TAGS)
    return collapse_whitespace(heading.get_text(' ')) if heading else ''


def _is_inside(node: Tag, container: Tag) -> bool:
    return any(parent is container for parent in node.parents)


def section_by_container(label: str) -> Strategy:
    """Containers of the site's section class whose first heading mentions label."""
    def strategy(doc: RawDocument, site: Any) -> List[ExtractionCandidate]:
        wanted = label.lower()
        matches = [c for c in doc.select(site.section_selector) if wanted in _heading_text(c).lower()]
        # Nested wrappers repeat the match; keep the innermost ones
        innermost = [c for c in matches if not any(o is not c and _is_inside(o, c) for o in matches)]
        anchors: List[Tag] = []
        for container in innermost:
            anchors.extend(series_anchors(container, site))
        return candidates_from_anchors(anchors, site)
    return _named(strategy, f"section_by_container({label!r})")


def _mentions_other_section(node: Tag, label: str, site: Any) -> bool:
    others = [l.lower() for l in site.section_labels if l.lower() != label.lower()]
    for heading in node.find_all(HEADING_TAGS):
        text = heading.get_text(' ').lower()
        if any(other in text for other in others):
            return True
    return False


def _section_root(heading: Tag, label: str, site: Any) -> Optional[Tag]:
    node = heading
    while node.parent is not None and node.parent.name != '[document]':
        parent = node.parent
        if _mentions_other_section(parent, label, site):
            return None
        node = parent
        if series_anchors(node, site):
            return node
    return None


def section_by_heading(label: str) -> Strategy:
    """Walk up from a heading mentioning label to the nearest ancestor holding series anchors."""
    def strategy(doc: RawDocument, site: Any) -> List[ExtractionCandidate]:
        wanted = label.lower()
        anchors: List[Tag] = []
        for heading in doc.soup.find_all(HEADING_TAGS):
            if wanted not in heading.get_text(' ').lower():
                continue
            root = _section_root(heading, label, site)
            if root is not None:
                anchors.extend(series_anchors(root, site))
        return candidates_from_anchors(anchors, site)
    return _named(strategy, f"section_by_heading({label!r})")


def section_chain(label: str) -> List[Strategy]:
    return [section_by_container(label), section_by_heading(label)]


# === Series detail ===

def _labelled_value(doc: RawDocument, selector: str, label: str) -> Optional[str]:
    """Value of a label/value pair rendered as sibling <h3> elements."""
    for el in doc.select(selector):
        headings = el.find_all('h3')
        if len(headings) < 2:
            continue
        if label.lower() in headings[0].get_text(' ', strip=True).lower():
            value = collapse_whitespace(headings[-1].get_text(' '))
            if value:
                return value
    return None


def _chapter_url(href: str, doc: RawDocument, site: Any) -> str:
    href = href.strip()
    if href.startswith(('http://', 'https://')) or href.startswith('/'):
        return resolve_url(href, doc.origin)
    # Chapter hrefs on series pages are relative to /series/
    return resolve_url(f"{site.series_path.strip('/')}/{href}", doc.origin)


def asura_series_details(doc: RawDocument, site: Any) -> SeriesDetails:
    root = doc.soup
    title = resolve(root, [text_of('span.text-xl.font-bold'), text_of('h1')]) or 'Unknown Title'
    cover = resolve(root, [attr_of('img[alt="poster"]', 'src'), attr_of('img[alt="poster"]', 'data-src')]) or ''
    status = _labelled_value(doc, r'div.bg-\[\#343434\], .grid div', 'Status') or 'Unknown'
    author = _labelled_value(doc, '.grid div', 'Author') or 'Unknown'
    summary = collapse_whitespace(' '.join(p.get_text(' ') for p in doc.select('span.font-medium.text-sm p')))

    chapters: List[ChapterLink] = []
    seen = set()
    for a in doc.select('div.overflow-y-auto a[href]'):
        url = _chapter_url(a['href'], doc, site)
        if url in seen:
            continue
        seen.add(url)
        chapter_title = resolve(a, [text_of('h3.text-sm'), text_of('h3')]) or collapse_whitespace(a.get_text(' '))
        date = resolve(a, [text_of('h3.text-xs')])
        chapters.append(ChapterLink(title=collapse_whitespace(chapter_title), url=url, date=date))

    return SeriesDetails(
        title=collapse_whitespace(title),
        source_url=doc.base_url,
        cover_url=resolve_url(cover, doc.origin) if cover else '',
        author=author,
        status=status,
        summary=summary,
        category='Manhwa',
        chapters=chapters,
    )


MADARA_CHAPTER_SELECTORS = [
    '#chapterlist li a',
    '.wp-manga-chapter a',
    '.eph-num a',
    '.listing-chapters_wrap a',
    '.version-chap a',
    'ul.main li a',
]


def madara_chapters(doc: RawDocument) -> List[ChapterLink]:
    """First chapter selector with hits wins; lists are newest-first, so reverse."""
    for selector in MADARA_CHAPTER_SELECTORS:
        chapters: List[ChapterLink] = []
        seen = set()
        for a in doc.select(selector):
            href = (a.get('href') or '').strip()
            title = resolve(a, [text_of('.chapternum'), text_of('.chapter-manhwa-title')]) \
                or collapse_whitespace(a.get_text(' '))
            if not href or not title:
                continue
            url = resolve_url(href, doc.origin)
            if url in seen:
                continue
            seen.add(url)
            chapters.append(ChapterLink(title=collapse_whitespace(title), url=url))
        if chapters:
            chapters.reverse()
            return chapters
    return []


def madara_series_details(doc: RawDocument, site: Any) -> SeriesDetails:
    root = doc.soup
    title = resolve(root, [text_of('h1.entry-title'), text_of('.post-title h1'), text_of('h1')])
    cover_rules = []
    for selector in ('.thumb img', '.summary_image img'):
        cover_rules += [attr_of(selector, 'data-src'), attr_of(selector, 'src')]
    cover_rules += [attr_of('img.wp-post-image', 'src'), attr_of('img[src*="cover"]', 'src')]
    cover = resolve(root, cover_rules, accept=is_real_image)
    author = resolve(root, [text_of('.author-content a'), text_of('.author-content')])
    status = resolve(root, [text_of('.post-status .summary-content'), text_of('.status .summary-content')])
    summary = resolve(root, [text_of('.summary__content p'), text_of('.description-summary .summary__content')])

    return SeriesDetails(
        title=collapse_whitespace(title) or 'Unknown Title',
        source_url=doc.base_url,
        cover_url=resolve_url(cover, doc.origin) if cover else '',
        author=author or 'Unknown',
        status=status or 'Ongoing',
        summary=summary or '',
        category='Manhwa',
        chapters=madara_chapters(doc),
    )


# === Novel pages ===

UNKNOWN_TITLE = 'Unknown Title'
UNKNOWN_AUTHOR = 'Unknown Author'

NOVEL_TITLE_SELECTORS = [
    '.novel-info .novel-title', '.title', 'h1', 'h2.title', '.book-name', '.truyen-title',
]
NOVEL_AUTHOR_SELECTORS = [
    '.author', '.info-author', '.book-author', 'span[itemprop="author"]', '.txt-author',
]
NOVEL_COVER_SELECTORS = [
    '.novel-cover img', '.book img', '.book-cover img', '.img-cover',
    'meta[property="og:image"]', '.summary_image img',
]
NOVEL_COVER_ATTRS = ['data-src', 'data-original', 'src', 'content']

NOVEL_CHAPTER_SELECTORS = [
    '.chapter-list a', 'ul.chapter-list li a', '.list-chapter li a', '#chapter-list a',
    '.chapters a', '.list-chapters a', '#list-chapter .row a',
]
NOVEL_NEXT_PAGE_SELECTORS = [
    'a[rel="next"]', '.pagination .next a', '.pager .next a',
    '.pagination a:-soup-contains("Next")', '.pagination a:-soup-contains("»")',
    '.pager a:-soup-contains("Next")', 'li.next a', '.nav-next a',
]

NOVEL_CONTENT_SELECTORS = [
    '#chapter-content', '.chapter-content', '#chr-content', '.read-content',
    '.reading-content', '.text-left', '#content', '.entry-content',
]
NOVEL_JUNK_SELECTORS = ['script', 'style', '.ads', '.ad-container', 'iframe', '.hidden', '.announcement']


def _looks_like_chapter_link(a: Tag) -> bool:
    href = (a.get('href') or '').strip()
    if len(href) <= 5 or href.startswith(('javascript', '#')):
        return False
    text = a.get_text(' ').lower()
    return 'chapter' in text or 'episode' in text or 'chapter' in href


def novel_chapters(doc: RawDocument) -> List[ChapterLink]:
    """Chapter links of one chapter-list page, in page order."""
    anchors: List[Tag] = []
    for selector in NOVEL_CHAPTER_SELECTORS:
        anchors = doc.select(selector)
        if anchors:
            break
    if not anchors:
        anchors = [a for a in doc.soup.find_all('a', href=True) if _looks_like_chapter_link(a)]

    chapters: List[ChapterLink] = []
    seen = set()
    for a in anchors:
        href = (a.get('href') or '').strip()
        if not href:
            continue
        url = resolve_url(href, doc.origin)
        if url in seen:
            continue
        seen.add(url)
        title = resolve(a, [text_of('.chapter-title')]) or collapse_whitespace(a.get_text(' '))
        date = resolve(a, [text_of('.chapter-update'), text_of('time')])
        chapters.append(ChapterLink(title=collapse_whitespace(title) or url, url=url, date=date))
    return chapters


def novel_next_page(doc: RawDocument) -> Optional[str]:
    for selector in NOVEL_NEXT_PAGE_SELECTORS:
        el = doc.select_one(selector)
        href = (el.get('href') or '').strip() if el is not None else ''
        if href:
            return urljoin(doc.base_url, href)
    return None


def novel_chapter_list_url(doc: RawDocument) -> Optional[str]:
    """The book page's link to its full chapter list, if it has one."""
    link = doc.select_one('a[href*="/chapters"]')
    if link is None:
        return None
    return resolve_url(link['href'], doc.origin)


def novel_info_url(doc: RawDocument) -> Optional[str]:
    """From a chapter page: the titled link back to the book page."""
    for a in doc.select('a[title][href]'):
        href = a['href']
        if '/novel/' in href or '/book/' in href:
            return resolve_url(href, doc.origin)
    return None


def novel_series_details(doc: RawDocument, site: Any) -> SeriesDetails:
    root = doc.soup
    title = resolve(root, [text_of(s) for s in NOVEL_TITLE_SELECTORS]
                    + [attr_of('meta[property="og:title"]', 'content')])
    title = (title or '').split(' Novel - Read')[0].strip()
    author = resolve(root, [text_of(s) for s in NOVEL_AUTHOR_SELECTORS])
    author = (author or '').replace('Author:', '').strip()
    cover = resolve(root, [attr_of(s, attr) for s in NOVEL_COVER_SELECTORS for attr in NOVEL_COVER_ATTRS],
                    accept=is_real_image)
    summary = resolve(root, [text_of('.summary .content'), text_of('.description'),
                             attr_of('meta[property="og:description"]', 'content')])

    return SeriesDetails(
        title=collapse_whitespace(title) or UNKNOWN_TITLE,
        source_url=doc.base_url,
        cover_url=resolve_url(cover, doc.origin) if cover else '',
        author=collapse_whitespace(author) or UNKNOWN_AUTHOR,
        status=resolve(root, site.status_rules) or 'Ongoing',
        summary=summary or '',
        category='Novel',
        chapters=novel_chapters(doc),
    )


def novel_chapter_text(doc: RawDocument) -> str:
    """Inner HTML of the chapter body with scripts, ads and hidden blocks removed."""
    root = clone_without(doc.soup, NOVEL_JUNK_SELECTORS)
    for selector in NOVEL_CONTENT_SELECTORS:
        node = root.select_one(selector)
        if node is not None and node.get_text(strip=True):
            return node.decode_contents().strip()
    return ''


# === Chapter images ===

def is_page_image_name(url: str) -> bool:
    """Reader pages use numeric, prefixed-numeric, ULID or short-hash file names."""
    filename = url.split('?', 1)[0].rstrip('/').split('/')[-1]
    name = re.sub(r'\.(jpg|jpeg|png|webp|avif|gif)$', '', filename, flags=re.I)
    name = re.sub(r'[-_]optimized$', '', name, flags=re.I)
    return any(p.match(name) for p in PAGE_NAME_PATTERNS)


def _is_noise_image(url: str) -> bool:
    lowered = url.lower()
    if '.gif' in lowered:
        return True
    filename = lowered.split('?', 1)[0].split('/')[-1]
    return any(word in filename for word in IMAGE_NOISE_WORDS)


def _unique(urls: Sequence[str]) -> List[str]:
    seen = set()
    result = []
    for url in urls:
        if url not in seen:
            seen.add(url)
            result.append(url)
    return result


def images_from_next_data(doc: RawDocument, site: Any) -> List[str]:
    """Trust the page's own image list when __NEXT_DATA__ carries one."""
    data = extract_next_data(doc.raw_text)
    if not data:
        return []
    page_props = (data.get('props') or {}).get('pageProps') or {}
    for holder in (page_props.get('chapter'), page_props.get('data'), page_props):
        if isinstance(holder, dict) and isinstance(holder.get('images'), list):
            images = []
            for item in holder['images']:
                url = item.get('url') if isinstance(item, dict) else item
                if isinstance(url, str) and url and not _is_noise_image(url):
                    images.append(url)
            return _unique(images)
    return []


def _filter_raw_image_urls(urls: Sequence[str], site: Any) -> List[str]:
    accepted = []
    for url in urls:
        if site.image_host and site.image_host not in url:
            continue
        if _is_noise_image(url) or not is_page_image_name(url):
            continue
        accepted.append(url)
    return _unique(accepted)


def images_from_flight(doc: RawDocument, site: Any) -> List[str]:
    payload = extract_flight_payload(doc.raw_text)
    if not payload:
        return []
    return _filter_raw_image_urls(IMAGE_URL_RE.findall(payload), site)


def images_from_raw_urls(doc: RawDocument, site: Any) -> List[str]:
    """Last resort: any image URL anywhere in the raw text, filtered hard."""
    return _filter_raw_image_urls(IMAGE_URL_RE.findall(doc.raw_text), site)


READER_IMAGE_SELECTORS = [
    '#readerarea img',
    '.reading-content img',
    '.vung-doc img',
    '.container-chapter-reader img',
    '.chapter-content img',
    '.entry-content img',
    '.text-left img',
    'article img',
]

_READER_HINTS = ('.jpg', '.jpeg', '.png', '.webp', 'cdn', 'img', 'upload')

# Whole path segments only: 'uploads' is not an ad
_READER_NOISE_RE = re.compile(r'(?:^|[/_.-])(?:ads?|logo|icon|avatar)(?:[/_.-]|$)')


def images_from_reader(doc: RawDocument, site: Any) -> List[str]:
    """Reader-area <img> tags, preferring lazy-load attributes over src."""
    junk = doc.select('iframe, noscript, .ads, .banner')
    src_rules = [attr_of(None, attr) for attr in LAZY_SRC_ATTRS] + [attr_of(None, 'src')]
    for selector in READER_IMAGE_SELECTORS:
        found = []
        for img in doc.select(selector):
            if any(_is_inside(img, j) for j in junk):
                continue
            src = resolve(img, src_rules, accept=is_real_image)
            if not src:
                continue
            lowered = src.lower()
            if _READER_NOISE_RE.search(lowered.split('?', 1)[0]):
                continue
            if not any(hint in lowered for hint in _READER_HINTS):
                continue
            found.append(resolve_url(src, doc.origin))
        if found:
            return _unique(found)
    return []


# === MangaDex JSON API ===

def mangadex_search_results(data: Dict[str, Any], site: Any) -> List[ExtractionCandidate]:
    candidates = []
    for manga in data.get('data') or []:
        manga_id = manga.get('id')
        attrs = manga.get('attributes') or {}
        titles = attrs.get('title') or {}
        title = titles.get('en') or next(iter(titles.values()), None)
        if not manga_id or not title:
            continue
        cover = None
        for rel in manga.get('relationships') or []:
            if rel.get('type') == 'cover_art':
                file_name = (rel.get('attributes') or {}).get('fileName')
                if file_name:
                    cover = f"{site.cover_base}/{manga_id}/{file_name}.256.jpg"
        candidates.append(ExtractionCandidate(
            source_url=site.series_url(manga_id),
            title=title,
            cover_url=cover,
            status=(attrs.get('status') or '').capitalize() or None,
        ))
    return candidates


def mangadex_chapters(data: Dict[str, Any], site: Any) -> List[ChapterLink]:
    chapters = []
    for ch in data.get('data') or []:
        attrs = ch.get('attributes') or {}
        number = attrs.get('chapter') or 'Oneshot'
        title = f"Ch. {number}"
        if attrs.get('title'):
            title += f" - {attrs['title']}"
        group = next((
            (rel.get('attributes') or {}).get('name')
            for rel in ch.get('relationships') or []
            if rel.get('type') == 'scanlation_group'
        ), None)
        if group:
            title += f" [{group}]"
        published = attrs.get('publishAt')
        chapters.append(ChapterLink(
            title=title,
            url=f"{site.base_url}/chapter/{ch.get('id')}",
            date=published[:10] if published else None,
        ))
    return chapters


def mangadex_images(data: Dict[str, Any]) -> List[str]:
    chapter = data.get('chapter') or {}
    base = data.get('baseUrl')
    digest = chapter.get('hash')
    files = chapter.get('data') or []
    if not base or not digest:
        return []
    return [f"{base}/data/{digest}/{name}" for name in files]


def mangadex_series_details(data: Dict[str, Any], site: Any,
                            chapters: Optional[List[ChapterLink]] = None) -> SeriesDetails:
    manga = data.get('data') or {}
    manga_id = manga.get('id') or ''
    attrs = manga.get('attributes') or {}
    titles = attrs.get('title') or {}
    descriptions = attrs.get('description') or {}
    cover = ''
    author = 'Unknown Author'
    for rel in manga.get('relationships') or []:
        rel_attrs = rel.get('attributes') or {}
        if rel.get('type') == 'cover_art' and rel_attrs.get('fileName'):
            cover = f"{site.cover_base}/{manga_id}/{rel_attrs['fileName']}.256.jpg"
        elif rel.get('type') == 'author' and rel_attrs.get('name'):
            author = rel_attrs['name']
    return SeriesDetails(
        title=titles.get('en') or next(iter(titles.values()), None) or 'Unknown Title',
        source_url=site.series_url(manga_id),
        cover_url=cover,
        author=author,
        status=(attrs.get('status') or 'unknown').capitalize(),
        summary=descriptions.get('en') or next(iter(descriptions.values()), ''),
        category='Manhwa',
        chapters=chapters or [],
    )
