"""
Field rule cascades

Every field (title, cover, status) is resolved by an ordered list of small
rules. A rule takes a node and returns a string or None; the first rule whose
value is accepted wins.
"""

import logging
from typing import Callable, List, Optional, Sequence

from bs4 import Tag

from document import clone_without, text_lines

logger = logging.getLogger(__name__)

Rule = Callable[[Tag], Optional[str]]

# Subtrees that carry badges, type tags and pills rather than the title
TITLE_NOISE_SELECTORS = [
    '.status',
    '[class*="status"]',
    '[class*="badge"]',
    '[class*="type"]',
    '[class*="pill"]',
    '[class*="rounded-full"]',
    'span.text-xs',
    'img', 'svg', 'script', 'style', 'noscript',
]

LAZY_SRC_ATTRS = ['data-src', 'data-lazy-src', 'data-original', 'data-cfsrc']


def _named(rule: Rule, name: str) -> Rule:
    rule.__name__ = name
    rule.__qualname__ = name
    return rule


def _node_text(el: Optional[Tag]) -> Optional[str]:
    if el is None:
        return None
    text = el.get_text(' ', strip=True)
    return text or None


def text_of(selector: str) -> Rule:
    """Text of the first descendant matching selector."""
    def rule(node: Tag) -> Optional[str]:
        return _node_text(node.select_one(selector))
    return _named(rule, f"text_of({selector!r})")


def first_line_without(noise_selectors: Sequence[str] = TITLE_NOISE_SELECTORS) -> Rule:
    """Clone the node, drop noise subtrees, take the first remaining line."""
    def rule(node: Tag) -> Optional[str]:
        lines = text_lines(clone_without(node, list(noise_selectors)))
        return lines[0] if lines else None
    return _named(rule, 'first_line_without_noise')


def first_line() -> Rule:
    def rule(node: Tag) -> Optional[str]:
        lines = text_lines(node)
        return lines[0] if lines else None
    return _named(rule, 'first_line')


def attr_of(selector: Optional[str], attr: str) -> Rule:
    """Attribute of the first descendant matching selector (or of the node itself)."""
    def rule(node: Tag) -> Optional[str]:
        el = node.select_one(selector) if selector else node
        if el is None:
            return None
        value = el.get(attr)
        if isinstance(value, list):
            value = ' '.join(value)
        value = (value or '').strip()
        return value or None
    return _named(rule, f"attr_of({selector!r}, {attr!r})")


def srcset_first(selector: str, attr: str = 'srcset') -> Rule:
    """First URL token of a srcset-style attribute."""
    get_attr = attr_of(selector, attr)

    def rule(node: Tag) -> Optional[str]:
        value = get_attr(node)
        if not value:
            return None
        first = value.split(',')[0].strip()
        return first.split()[0] if first else None
    return _named(rule, f"srcset_first({selector!r}, {attr!r})")


def resolve(node: Tag, rules: Sequence[Rule],
            accept: Optional[Callable[[str], bool]] = None) -> Optional[str]:
    """Evaluate rules in order; first non-empty, accepted value wins."""
    for rule in rules:
        try:
            value = rule(node)
        except Exception as e:
            logger.debug(f"[Rules] {getattr(rule, '__name__', rule)} failed: {e}")
            continue
        if not value:
            continue
        if accept is not None and not accept(value):
            continue
        return value
    return None


def is_real_image(url: str) -> bool:
    return not url.startswith('data:')


TITLE_RULES: List[Rule] = [
    text_of('span.font-bold'),
    text_of('.text-white'),
    text_of('h1, h2, h3, h4, h5, h6'),
    text_of('[class*="bold"]'),
    first_line_without(),
    first_line(),
]

COVER_RULES: List[Rule] = [
    attr_of('img', 'src'),
    attr_of('img', 'data-src'),
    attr_of('img', 'data-lazy-src'),
    srcset_first('img', 'srcset'),
    srcset_first('img', 'data-srcset'),
]

STATUS_RULES: List[Rule] = [
    text_of('.status'),
    text_of('[class*="status"]'),
    text_of('[class*="badge"]'),
]
