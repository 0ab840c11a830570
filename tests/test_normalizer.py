import pytest

from models import ExtractionCandidate, NormalizedRecord, PLACEHOLDER_TITLE
from normalizer import Normalizer, clean_text, collapse_whitespace, normalize, resolve_url

BASE = 'https://example.com'


def candidate(url='/series/abc-123', title='Blade of the Fallen', **kwargs):
    return ExtractionCandidate(source_url=url, title=title, **kwargs)


def test_relative_href_is_joined_with_one_separator():
    assert resolve_url('series/abc-123', BASE) == 'https://example.com/series/abc-123'
    assert resolve_url('/series/abc-123', BASE + '/') == 'https://example.com/series/abc-123'


def test_absolute_href_is_returned_unchanged():
    url = 'https://other.example.net/series/abc-123?x=1'
    assert resolve_url(url, BASE) == url


def test_protocol_relative_href_takes_base_scheme():
    assert resolve_url('//cdn.example.com/a.webp', BASE) == 'https://cdn.example.com/a.webp'


def test_normalize_resolves_source_url():
    record = normalize(candidate('series/abc-123'), BASE)
    assert record.source_url == 'https://example.com/series/abc-123'


def test_whitespace_is_collapsed():
    assert collapse_whitespace('  Solo\n\n  Leveling\t ') == 'Solo Leveling'


def test_noise_token_is_stripped_as_whole_word():
    assert clean_text('Chapter Return of the Sect') == 'Return of the Sect'
    assert clean_text('Chaptered Lives') == 'Chaptered Lives'


def test_noise_tokens_are_configurable():
    assert clean_text('MANHWA Nano Machine', ['MANHWA']) == 'Nano Machine'
    assert clean_text('Chapter One', []) == 'Chapter One'


@pytest.mark.parametrize('title', ['', 'a', 'ab', '  ab  ', 'Chapter 12', 'Chapter'])
def test_short_titles_are_rejected(title):
    assert normalize(candidate(title=title), BASE) is None


@pytest.mark.parametrize('title', ['Home', 'Bookmarks', 'All Series', 'home'])
def test_reserved_words_are_rejected(title):
    assert normalize(candidate(title=title), BASE) is None


@pytest.mark.parametrize('title', ['Homecoming King', 'Bookmarked Fate', 'Seriesly Strong', 'Homeland Chronicles'])
def test_reserved_words_match_inside_longer_words(title):
    assert normalize(candidate(title=title), BASE) is None


def test_titles_without_reserved_words_pass():
    assert normalize(candidate(title='Tower of God'), BASE).title == 'Tower of God'


def test_placeholder_title_is_rejected():
    assert normalize(candidate(title=PLACEHOLDER_TITLE), BASE) is None


@pytest.mark.parametrize('url', [
    '/series/abc-123/chapter/5',
    'https://example.com/series/abc-123/chapter/5',
    '/series?genres=action',
    '/series?page=1&genre=drama',
])
def test_chapter_and_genre_links_are_rejected(url):
    assert normalize(candidate(url=url), BASE) is None


def test_status_defaults_to_ongoing():
    assert normalize(candidate(), BASE).status == 'Ongoing'
    assert normalize(candidate(status=' Completed '), BASE).status == 'Completed'


def test_data_uri_cover_is_dropped():
    record = normalize(candidate(cover_url='data:image/gif;base64,AAAA'), BASE)
    assert record.cover_url is None


@pytest.mark.parametrize('raw', [
    candidate('series/abc-123', '  Chapter   Blade of\nthe Fallen ', cover_url='/c/1.webp'),
    candidate('https://example.com/series/x#top', 'Chapter Chapter Tower of God', status='Hiatus'),
    candidate('//example.com/series/y', 'Omniscient Reader'),
])
def test_normalize_is_idempotent(raw):
    once = normalize(raw, BASE)
    twice = normalize(once, BASE)
    assert once is not None
    assert twice == once


def test_fragment_is_dropped_from_source_url():
    record = normalize(candidate('https://example.com/series/x#top'), BASE)
    assert record.source_url == 'https://example.com/series/x'


def test_prepare_blanks_rejected_title_but_keeps_cover():
    normalizer = Normalizer(BASE)
    prepared = normalizer.prepare(candidate(title='ab', cover_url='/c.webp'))
    assert prepared.title is None
    assert prepared.cover_url == 'https://example.com/c.webp'
    assert normalizer.prepare(candidate(title='ab')) is None


def test_normalizer_accepts_normalized_records():
    record = NormalizedRecord(source_url='https://example.com/series/z', title='Tower of God')
    assert Normalizer(BASE).normalize(record) == NormalizedRecord(
        source_url='https://example.com/series/z', title='Tower of God', status='Ongoing',
    )
