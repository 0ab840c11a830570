import asyncio
import json
from urllib.parse import unquote

import pytest
import requests

from fetcher import (
    Fetcher, FetchError, USER_AGENTS, build_relay_url, is_challenge_page, relay_target_headers,
    rewrite_relay_request,
)

PAGE = '<html><body>' + '<div class="grid"><a href="/series/a">A story</a></div>' * 20 + '</body></html>'
TARGET = 'https://asuracomic.net/series?page=1&name=solo'


class FakeResponse:
    def __init__(self, status_code=200, text=PAGE):
        self.status_code = status_code
        self.text = text


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.requests = []

    def get(self, url, headers=None, timeout=None):
        self.requests.append({'url': url, 'headers': headers, 'timeout': timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        pass


def test_fetch_sends_browser_identity_for_target_origin():
    session = FakeSession()
    fetcher = Fetcher(timeout=15, session=session)
    assert fetcher.fetch(TARGET) == PAGE
    sent = session.requests[0]
    assert sent['url'] == TARGET
    assert sent['timeout'] == 15
    assert sent['headers']['User-Agent'] in USER_AGENTS
    assert sent['headers']['Referer'] == 'https://asuracomic.net/'
    assert sent['headers']['Origin'] == 'https://asuracomic.net'


def test_identity_is_stable_per_fetcher():
    session = FakeSession()
    fetcher = Fetcher(session=session)
    fetcher.fetch(TARGET)
    fetcher.fetch(TARGET)
    agents = {r['headers']['User-Agent'] for r in session.requests}
    assert agents == {fetcher.user_agent}


def test_explicit_user_agent_and_referer():
    session = FakeSession()
    Fetcher(session=session).fetch(TARGET, user_agent='TestAgent/1.0', referer='https://asuracomic.net/series')
    headers = session.requests[0]['headers']
    assert headers['User-Agent'] == 'TestAgent/1.0'
    assert headers['Referer'] == 'https://asuracomic.net/series'


@pytest.mark.parametrize('status', [403, 404, 500, 503])
def test_non_2xx_raises_status_error(status):
    fetcher = Fetcher(session=FakeSession(FakeResponse(status)))
    with pytest.raises(FetchError) as info:
        fetcher.fetch(TARGET)
    assert info.value.kind == FetchError.STATUS
    assert info.value.status == status


@pytest.mark.parametrize('error', [
    requests.exceptions.ConnectionError('refused'),
    requests.exceptions.Timeout('slow'),
    requests.exceptions.TooManyRedirects('loop'),
])
def test_transport_failures_raise_network_error(error):
    with pytest.raises(FetchError) as info:
        Fetcher(session=FakeSession(error=error)).fetch(TARGET)
    assert info.value.kind == FetchError.NETWORK
    assert info.value.status is None


def test_challenge_page_raises_blocked_error():
    body = '<html><head><title>Just a moment...</title></head><body>' + ' ' * 600 + '</body></html>'
    with pytest.raises(FetchError) as info:
        Fetcher(session=FakeSession(FakeResponse(200, body))).fetch(TARGET)
    assert info.value.kind == FetchError.BLOCKED


def test_json_requests_skip_challenge_detection():
    fetcher = Fetcher(session=FakeSession(FakeResponse(200, '{"data": []}')))
    assert fetcher.fetch_json_text('https://api.mangadex.org/manga?title=x') == '{"data": []}'


@pytest.mark.parametrize('text, expected', [
    ('', True),
    ('<html>tiny</html>', True),
    (PAGE, False),
    (PAGE.replace('A story', 'Checking your browser'), True),
])
def test_is_challenge_page(text, expected):
    assert is_challenge_page(text) is expected


def test_proxy_routes_request_through_relay():
    session = FakeSession()
    Fetcher(session=session).fetch(TARGET, proxy='https://corsproxy.io/?url=')
    sent = session.requests[0]
    assert sent['url'].startswith('https://corsproxy.io/?url=https%3A%2F%2Fasuracomic.net')
    assert unquote(sent['url'].split('?url=', 1)[1]) == TARGET
    # Identity headers still describe the target, not the relay
    assert sent['headers']['Referer'] == 'https://asuracomic.net/'
    assert sent['headers']['Origin'] == 'https://asuracomic.net'


def test_json_wrapped_relay_body_is_unwrapped():
    session = FakeSession(FakeResponse(200, json.dumps({'contents': PAGE, 'status': {'http_code': 200}})))
    assert Fetcher(session=session).fetch(TARGET, proxy='https://api.allorigins.win/get?url=') == PAGE


@pytest.mark.parametrize('relay, expected_prefix', [
    ('https://relay.example/fetch/{url}', 'https://relay.example/fetch/https%3A%2F%2F'),
    ('https://api.codetabs.com/v1/proxy?quest=', 'https://api.codetabs.com/v1/proxy?quest=https%3A%2F%2F'),
    ('http://localhost:5173/api/proxy', 'http://localhost:5173/api/proxy?url=https%3A%2F%2F'),
    ('http://localhost:5173/api/proxy?mode=html', 'http://localhost:5173/api/proxy?mode=html&url=https%3A%2F%2F'),
])
def test_build_relay_url(relay, expected_prefix):
    assert build_relay_url(relay, TARGET).startswith(expected_prefix)


def test_relay_side_rewrites_identity_headers():
    path = '/api/proxy?url=' + requests.utils.quote(TARGET, safe='')
    target, headers = rewrite_relay_request(path, {
        'Host': 'localhost:5173', 'Origin': 'http://localhost:5173', 'Accept': 'text/html',
    })
    assert target == TARGET
    assert headers == {
        'Accept': 'text/html',
        'Host': 'asuracomic.net',
        'Referer': 'https://asuracomic.net/',
        'Origin': 'https://asuracomic.net',
    }
    assert relay_target_headers('https://novelfire.net/book/x')['Host'] == 'novelfire.net'


@pytest.mark.parametrize('path', ['/api/proxy', '/api/proxy?url=ftp://example.com/x', '/api/proxy?url=relative'])
def test_relay_side_rejects_bad_targets(path):
    with pytest.raises(ValueError):
        rewrite_relay_request(path)


def test_fetch_async_runs_in_executor():
    session = FakeSession()
    assert asyncio.run(Fetcher(session=session).fetch_async(TARGET)) == PAGE
    assert len(session.requests) == 1
