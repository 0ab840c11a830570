"""
Normalizer - turns extraction candidates into clean, absolute, validated records

- Relative hrefs are joined onto the site origin with exactly one '/'
- Titles get whitespace collapsed and denylisted noise tokens stripped
- Navigation links, chapter links and near-empty titles are rejected silently
"""

import re
import logging
from typing import Iterable, Optional, Union, Tuple

from models import ExtractionCandidate, NormalizedRecord, DEFAULT_STATUS, PLACEHOLDER_TITLE

logger = logging.getLogger(__name__)

# Words that leak into titles from malformed markup
DEFAULT_NOISE_TOKENS = ('Chapter',)

# Link texts that belong to site navigation, not to a series
DEFAULT_RESERVED_WORDS = ('home', 'series', 'bookmark', 'bookmarks')

# Decoys that look like series links but point at chapters or genre filters
DEFAULT_CHAPTER_PATTERNS = (
    r'/chapter/',
    r'[?&]genres?=',
)

MIN_TITLE_LENGTH = 3

_WHITESPACE = re.compile(r'\s+')
_SCHEME = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*:')

Candidate = Union[ExtractionCandidate, NormalizedRecord]


def collapse_whitespace(text: Optional[str]) -> str:
    if not text:
        return ''
    return _WHITESPACE.sub(' ', text).strip()


def _token_pattern(tokens: Iterable[str]) -> Optional['re.Pattern']:
    tokens = [t for t in tokens if t]
    if not tokens:
        return None
    alternatives = '|'.join(re.escape(t) for t in sorted(tokens, key=len, reverse=True))
    return re.compile(rf'(?<!\w)(?:{alternatives})(?!\w)')


def clean_text(text: Optional[str], noise_tokens: Iterable[str] = DEFAULT_NOISE_TOKENS) -> str:
    """Collapse whitespace and strip whole-word noise tokens until nothing changes."""
    cleaned = collapse_whitespace(text)
    pattern = _token_pattern(noise_tokens)
    if pattern is None:
        return cleaned
    while True:
        stripped = collapse_whitespace(pattern.sub(' ', cleaned))
        if stripped == cleaned:
            return cleaned
        cleaned = stripped


def has_scheme(url: str) -> bool:
    return bool(_SCHEME.match(url))


def resolve_url(href: Optional[str], base_origin: str) -> str:
    """Make href absolute against base_origin; absolute URLs come back unchanged."""
    href = (href or '').strip()
    if not href:
        return ''
    if has_scheme(href):
        return href
    if href.startswith('//'):
        scheme = base_origin.split(':', 1)[0] if has_scheme(base_origin) else 'https'
        return f"{scheme}:{href}"
    return f"{base_origin.rstrip('/')}/{href.lstrip('/')}"


def canonicalize_url(url: str) -> str:
    """Drop fragments and surrounding whitespace; everything else is kept as served."""
    url = (url or '').strip()
    if '#' in url:
        url = url.split('#', 1)[0]
    return url


class Normalizer:
    """Site-tuned normalizer. Pure: the same candidate always yields the same result."""

    def __init__(self,
                 base_origin: str,
                 noise_tokens: Iterable[str] = DEFAULT_NOISE_TOKENS,
                 reserved_words: Iterable[str] = DEFAULT_RESERVED_WORDS,
                 chapter_patterns: Iterable[str] = DEFAULT_CHAPTER_PATTERNS,
                 default_status: str = DEFAULT_STATUS,
                 min_title_length: int = MIN_TITLE_LENGTH):
        self.base_origin = base_origin.rstrip('/')
        self.noise_tokens: Tuple[str, ...] = tuple(noise_tokens)
        self.reserved_words: Tuple[str, ...] = tuple(w.lower() for w in reserved_words if w)
        self.chapter_patterns = [re.compile(p, re.I) for p in chapter_patterns]
        self.default_status = default_status
        self.min_title_length = min_title_length

    # === Field helpers ===

    def resolve_url(self, href: Optional[str]) -> str:
        return canonicalize_url(resolve_url(href, self.base_origin))

    def resolve_cover(self, src: Optional[str]) -> Optional[str]:
        src = (src or '').strip()
        if not src or src.startswith('data:'):
            return None
        return resolve_url(src, self.base_origin)

    def clean_title(self, title: Optional[str]) -> str:
        return clean_text(title, self.noise_tokens)

    def is_chapter_url(self, url: str) -> bool:
        return any(p.search(url) for p in self.chapter_patterns)

    def is_rejected_title(self, title: str) -> bool:
        if len(title) < self.min_title_length:
            return True
        if title == PLACEHOLDER_TITLE:
            return True
        # Reserved words match anywhere in the lowercased title
        lowered = title.lower()
        return any(word in lowered for word in self.reserved_words)

    def has_title_text(self, raw_title: Optional[str]) -> bool:
        """False for nodes made only of noise tokens, e.g. a lone "MANHWA" tag."""
        return bool(self.clean_title(raw_title))

    def is_valid_source(self, url: str) -> bool:
        if not url or not has_scheme(url):
            return False
        if not url.lower().startswith(('http://', 'https://')):
            return False
        return not self.is_chapter_url(url)

    # === Pipeline stages ===

    def prepare(self, candidate: Candidate) -> Optional[ExtractionCandidate]:
        """Resolve and clean a candidate without requiring a usable title yet.

        Titles that fail the rejection predicate are blanked so that another
        node for the same URL can still fill them in during merging. Returns
        None when the URL itself is unusable or nothing at all was extracted.
        """
        url = self.resolve_url(candidate.source_url)
        if not self.is_valid_source(url):
            logger.debug(f"[Normalizer] Rejected URL: {candidate.source_url!r}")
            return None

        title = self.clean_title(candidate.title)
        if self.is_rejected_title(title):
            title = ''
        cover = self.resolve_cover(candidate.cover_url)
        status = collapse_whitespace(candidate.status) or None

        if not title and not cover:
            return None
        return ExtractionCandidate(
            source_url=url,
            title=title or None,
            cover_url=cover,
            status=status,
            rank=candidate.rank,
        )

    def normalize(self, candidate: Candidate) -> Optional[NormalizedRecord]:
        """Return a NormalizedRecord, or None when the candidate is rejected."""
        url = self.resolve_url(candidate.source_url)
        if not self.is_valid_source(url):
            return None

        title = self.clean_title(candidate.title)
        if self.is_rejected_title(title):
            logger.debug(f"[Normalizer] Rejected title {candidate.title!r} for {url}")
            return None

        return NormalizedRecord(
            source_url=url,
            title=title,
            cover_url=self.resolve_cover(candidate.cover_url),
            status=collapse_whitespace(candidate.status) or self.default_status,
            rank=candidate.rank,
        )


def normalize(candidate: Candidate, base_origin: str, **options) -> Optional[NormalizedRecord]:
    """Functional form: normalize(candidate, base_origin) -> record or None."""
    return Normalizer(base_origin, **options).normalize(candidate)
