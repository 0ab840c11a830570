"""
Document parser - thin adapter over BeautifulSoup plus JSON data-island helpers

Next.js sites ship their page data twice: once as markup and once inside
<script> tags (__NEXT_DATA__ or self.__next_f.push chunks). The JSON side is a
secondary source for when the markup strategies find nothing.
"""

import re
import json
import copy
import logging
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

NEXT_DATA_RE = re.compile(r'<script[^>]*id=["\']__NEXT_DATA__["\'][^>]*>(.*?)</script>', re.S | re.I)
FLIGHT_CHUNK_RE = re.compile(r'self\.__next_f\.push\(\[1,\s*"((?:[^"\\]|\\.)*)"\]\)', re.S)


class ParseError(Exception):
    """Raised for input that cannot be turned into a document or JSON value."""

    def __init__(self, message: str, url: str = ''):
        super().__init__(message)
        self.url = url


class RawDocument:
    """Parsed HTML tree plus the URL it was fetched from."""

    def __init__(self, soup: BeautifulSoup, base_url: str, raw_text: str = ''):
        self.soup = soup
        self.base_url = base_url
        self.raw_text = raw_text

    @property
    def origin(self) -> str:
        parsed = urlparse(self.base_url)
        if not parsed.scheme or not parsed.netloc:
            return self.base_url.rstrip('/')
        return f"{parsed.scheme}://{parsed.netloc}"

    def select(self, selector: str) -> List[Tag]:
        return self.soup.select(selector)

    def select_one(self, selector: str) -> Optional[Tag]:
        return self.soup.select_one(selector)

    def __repr__(self) -> str:
        return f"RawDocument({self.base_url!r}, {len(self.raw_text)} chars)"


def _as_text(raw: Any) -> str:
    if isinstance(raw, bytes):
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ParseError(f"Undecodable document: {e}")
    if not isinstance(raw, str):
        raise ParseError(f"Expected text, got {type(raw).__name__}")
    return raw


def parse(raw_text: Any, base_url: str) -> RawDocument:
    """Parse raw HTML into a RawDocument."""
    text = _as_text(raw_text)
    if not text.strip():
        raise ParseError("Empty document", base_url)
    soup = BeautifulSoup(text, 'html.parser')
    if soup.find() is None:
        raise ParseError("No markup found in document", base_url)
    return RawDocument(soup, base_url, text)


def parse_json(raw_text: Any, url: str = '') -> Any:
    text = _as_text(raw_text)
    try:
        return json.loads(text)
    except ValueError as e:
        raise ParseError(f"Malformed JSON: {e}", url)


def extract_next_data(raw_text: str) -> Optional[Dict[str, Any]]:
    """Return the __NEXT_DATA__ JSON object, or None when absent or broken."""
    match = NEXT_DATA_RE.search(raw_text or '')
    if not match:
        return None
    try:
        return json.loads(match.group(1))
    except ValueError as e:
        logger.debug(f"[Document] Broken __NEXT_DATA__ payload: {e}")
        return None


def extract_flight_payload(raw_text: str) -> str:
    """Concatenate the unescaped string chunks pushed into self.__next_f."""
    parts = []
    for match in FLIGHT_CHUNK_RE.finditer(raw_text or ''):
        chunk = match.group(1)
        try:
            parts.append(json.loads(f'"{chunk}"'))
        except ValueError:
            parts.append(chunk.replace('\\"', '"').replace('\\\\', '\\'))
    return ''.join(parts)


def iter_json_values(payload: str) -> Iterator[Any]:
    """Yield every JSON object/array embedded in a flight payload line stream."""
    decoder = json.JSONDecoder()
    for line in payload.splitlines():
        # Flight lines look like  1a:["$","div",null,{...}]  or  2:{...}
        _, sep, body = line.partition(':')
        if not sep:
            continue
        body = body.strip()
        if not body or body[0] not in '[{':
            continue
        try:
            value, _ = decoder.raw_decode(body)
        except ValueError:
            continue
        yield value


def iter_json_dicts(obj: Any) -> Iterator[Dict[str, Any]]:
    """Depth-first walk over every dict nested anywhere inside obj."""
    stack = [obj]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            yield current
            stack.extend(reversed(list(current.values())))
        elif isinstance(current, list):
            stack.extend(reversed(current))


def clone_without(node: Tag, selectors: List[str]) -> Tag:
    """Deep copy of node with every subtree matching selectors removed."""
    clone = copy.copy(node)
    for selector in selectors:
        for el in clone.select(selector):
            el.decompose()
    return clone


def text_lines(node: Optional[Tag]) -> List[str]:
    if node is None:
        return []
    lines = []
    for piece in node.get_text('\n').split('\n'):
        piece = piece.strip()
        if piece:
            lines.append(piece)
    return lines
