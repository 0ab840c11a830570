"""
Fetcher - HTTP GET with a browser-like identity, optionally through a CORS relay

No retries happen here; the discovery aggregator owns the retry policy and
treats every FetchError as "this source produced nothing".
"""

import json
import random
import asyncio
import logging
import functools
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse, quote, parse_qs

import requests
from requests.adapters import HTTPAdapter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20

USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 14_2) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0',
]

MOBILE_USER_AGENTS = [
    'Mozilla/5.0 (Linux; Android 14; Pixel 8 Pro) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.6167.178 Mobile Safari/537.36',
    'Mozilla/5.0 (Linux; Android 10; K) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36',
    'Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Mobile/15E148 Safari/604.1',
]

# Markers of anti-bot interstitials that arrive with a 200 status
CHALLENGE_MARKERS = [
    'cf-browser-verification',
    'Checking your browser',
    'Just a moment',
    'Enable JavaScript and cookies',
    'Attention Required',
    'Access denied',
    '403 Forbidden',
    'cf-challenge',
    '_cf_chl',
    'Verifying you are human',
]

MIN_DOCUMENT_LENGTH = 500


class FetchError(Exception):
    """Recoverable fetch failure; callers treat it as zero results."""

    STATUS = 'status'
    NETWORK = 'network'
    BLOCKED = 'blocked'

    def __init__(self, url: str, kind: str, status: Optional[int] = None, message: str = ''):
        self.url = url
        self.kind = kind
        self.status = status
        detail = message or (f"HTTP {status}" if status else kind)
        super().__init__(f"{kind} error fetching {url}: {detail}")


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def is_challenge_page(text: str) -> bool:
    if not text or len(text) < MIN_DOCUMENT_LENGTH:
        return True
    head = text[:20000]
    return any(marker in head for marker in CHALLENGE_MARKERS)


# === Relay contract ===

def build_relay_url(relay: str, target: str) -> str:
    """Route target through relay.

    Supports '{url}' templates, prefix relays ending in '=' (corsproxy.io/?url=,
    codetabs ...?quest=) and bare relay endpoints, which get a url= parameter.
    """
    encoded = quote(target, safe='')
    if '{url}' in relay:
        return relay.replace('{url}', encoded)
    if relay.endswith('='):
        return f"{relay}{encoded}"
    joiner = '&' if '?' in relay else '?'
    return f"{relay}{joiner}url={encoded}"


def relay_target_headers(target: str) -> Dict[str, str]:
    """Headers a relay must send upstream: identity of the target, never of the relay."""
    parsed = urlparse(target)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    return {
        'Host': parsed.netloc,
        'Referer': f"{origin}/",
        'Origin': origin,
    }


def rewrite_relay_request(path: str, headers: Optional[Dict[str, str]] = None) -> Tuple[str, Dict[str, str]]:
    """Relay side: turn '/api/proxy?url=<target>' into (target, outbound headers)."""
    query = urlparse(path).query
    targets = parse_qs(query).get('url')
    if not targets:
        raise ValueError(f"Relay request without url parameter: {path}")
    target = targets[0]
    parsed = urlparse(target)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValueError(f"Relay target is not an absolute http(s) URL: {target}")
    outbound = {k: v for k, v in (headers or {}).items() if k.lower() not in ('host', 'referer', 'origin')}
    outbound.update(relay_target_headers(target))
    return target, outbound


def unwrap_relay_body(text: str) -> str:
    """Some relays wrap the document as JSON: {"contents": "<html>..."}."""
    stripped = text.lstrip()
    if not stripped.startswith('{'):
        return text
    try:
        data = json.loads(stripped)
    except ValueError:
        return text
    if isinstance(data, dict) and isinstance(data.get('contents'), str):
        return data['contents']
    return text


class Fetcher:
    """One browser identity per instance, shared session and connection pool."""

    def __init__(self,
                 timeout: float = DEFAULT_TIMEOUT,
                 user_agent: Optional[str] = None,
                 mobile: bool = False,
                 session: Optional[requests.Session] = None,
                 detect_challenges: bool = True):
        self.timeout = timeout
        self.user_agent = user_agent or random.choice(MOBILE_USER_AGENTS if mobile else USER_AGENTS)
        self.detect_challenges = detect_challenges
        self.session = session or requests.Session()
        if session is None:
            adapter = HTTPAdapter(max_retries=0, pool_connections=10, pool_maxsize=20)
            self.session.mount('http://', adapter)
            self.session.mount('https://', adapter)

    def _get_headers(self, url: str, user_agent: Optional[str] = None,
                     referer: Optional[str] = None, accept: Optional[str] = None) -> Dict[str, str]:
        origin = origin_of(url)
        return {
            'User-Agent': user_agent or self.user_agent,
            'Accept': accept or 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
            'Referer': referer or f"{origin}/",
            'Origin': origin,
            'Cache-Control': 'no-cache',
        }

    def fetch(self, url: str, user_agent: Optional[str] = None, referer: Optional[str] = None,
              proxy: Optional[str] = None, accept: Optional[str] = None) -> str:
        """GET url and return the document text, or raise FetchError."""
        headers = self._get_headers(url, user_agent, referer, accept)
        final_url = build_relay_url(proxy, url) if proxy else url
        route = urlparse(proxy).netloc or proxy if proxy else 'direct'
        logger.debug(f"[Fetcher] GET {url} via {route}")

        try:
            resp = self.session.get(final_url, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise FetchError(url, FetchError.NETWORK, message='timeout')
        except requests.exceptions.RequestException as e:
            raise FetchError(url, FetchError.NETWORK, message=type(e).__name__)

        if not 200 <= resp.status_code < 300:
            logger.debug(f"[Fetcher] HTTP {resp.status_code} for {url} via {route}")
            raise FetchError(url, FetchError.STATUS, status=resp.status_code)

        text = resp.text or ''
        if proxy:
            text = unwrap_relay_body(text)
        if self.detect_challenges and accept is None and is_challenge_page(text):
            logger.debug(f"[Fetcher] Challenge page for {url} via {route} ({len(text)} chars)")
            raise FetchError(url, FetchError.BLOCKED, status=resp.status_code, message='anti-bot challenge')
        return text

    def fetch_json_text(self, url: str, proxy: Optional[str] = None) -> str:
        return self.fetch(url, proxy=proxy, accept='application/json')

    async def fetch_async(self, url: str, **kwargs) -> str:
        """Run the blocking fetch in the loop's executor so callers can await it."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self.fetch, url, **kwargs))

    def close(self):
        self.session.close()
