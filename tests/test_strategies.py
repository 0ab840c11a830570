import json

import pytest

import strategies as st
from client import SourceClient
from document import parse
from merger import build_records
from sites import ASURA, MADARA, MANGADEX, NOVELFIRE
from conftest import FakeFetcher

HOME_URL = 'https://asuracomic.net/'
SEARCH_URL = 'https://asuracomic.net/series?page=1&name=solo'


def records_for(doc, chain, site=ASURA, rank_offset=None):
    return build_records(st.run_chain(doc, chain, site), site.normalizer, rank_offset=rank_offset)


@pytest.fixture
def home(fixture_doc):
    return fixture_doc('asura_home.html', HOME_URL)


def test_latest_section_excludes_chapter_links(home):
    records = records_for(home, st.section_chain('Latest Update'))
    assert [r.source_url for r in records] == [
        'https://asuracomic.net/series/nano-machine-9c0d1e2f',
        'https://asuracomic.net/series/swordmasters-youngest-son-7e8f9a0b',
        'https://asuracomic.net/series/return-of-the-mount-hua-sect-1c2d3e4f',
    ]
    assert all('/chapter/' not in r.source_url for r in records)
    assert records[1].title == "Swordmaster's Youngest Son"
    assert records[1].status == 'Completed'
    assert records[1].cover_url == 'https://gg.asuracomic.net/storage/media/105/thumb-small.webp'


def test_sections_are_scoped_to_their_heading(home):
    popular = records_for(home, st.section_chain('Popular Today'))
    assert [r.title for r in popular] == ['Nano Machine', 'The Greatest Estate Developer']
    assert popular[1].cover_url == 'https://gg.asuracomic.net/storage/media/104/thumb.webp'


def test_trending_carousel(home):
    records = records_for(home, [st.carousel_slides])
    assert [(r.title, r.cover_url) for r in records] == [
        ('Solo Leveling: Ragnarok', 'https://gg.asuracomic.net/storage/media/101/poster.webp'),
        ("Omniscient Reader's Viewpoint", 'https://gg.asuracomic.net/storage/media/102/poster.webp'),
    ]


def test_home_category_fills_every_bucket(home):
    client = SourceClient(ASURA, fetcher=FakeFetcher())
    results = client.extract_sections(home, ASURA.categories[0])
    assert {name: len(records) for name, records in results.items()} == {'trending': 2, 'popular': 2, 'latest': 3}


def test_section_by_heading_without_section_class():
    html = """
    <main>
      <section><h2>Popular Today</h2>
        <ul><li><a href="/series/alpha-one"><b class="font-bold">Alpha One</b></a></li></ul>
      </section>
      <section><h2>Latest Update</h2>
        <ul><li><a href="/series/beta-two"><b class="font-bold">Beta Two</b></a></li>
            <li><a href="/series/gamma-three"><b class="font-bold">Gamma Three</b></a></li></ul>
      </section>
    </main>
    """
    doc = parse(html, HOME_URL)
    assert st.section_by_container('Latest Update')(doc, ASURA) == []
    latest = records_for(doc, st.section_chain('Latest Update'))
    assert [r.title for r in latest] == ['Beta Two', 'Gamma Three']


def test_search_grid_merges_split_title_and_cover(fixture_doc):
    doc = fixture_doc('asura_search.html', SEARCH_URL)
    records = records_for(doc, ASURA.search_chain, rank_offset=0)
    assert len(records) == 4
    newbie = next(r for r in records if 'solo-max-level-newbie' in r.source_url)
    assert newbie.title == 'Solo Max-Level Newbie'
    assert newbie.cover_url == 'https://gg.asuracomic.net/storage/media/107/thumb.webp'
    assert [r.rank for r in records] == [1, 2, 3, 4]
    assert records[0].status == 'Ongoing'
    assert records[2].status == 'Completed'
    assert records[2].cover_url == 'https://gg.asuracomic.net/storage/media/108/thumb.webp'


def test_failing_strategy_falls_through_to_next():
    def broken(doc, site):
        raise ValueError('markup changed')
    doc = parse('<div><a href="/series/alpha-one">Alpha One</a></div>', HOME_URL)
    candidates = st.run_chain(doc, [broken, st.grid_anchors, st.all_series_anchors], ASURA)
    assert [c.title for c in candidates] == ['Alpha One']


def test_json_island_fallback_when_markup_is_empty():
    data = {'props': {'pageProps': {'series': [
        {'name': 'Alpha One', 'series_slug': 'alpha-one-1a2b', 'thumbnail': 'https://gg.asuracomic.net/a.webp'},
        {'name': 'Beta Two', 'url': '/series/beta-two-3c4d', 'status': 'Completed'},
        {'name': 'No Link'},
    ]}}}
    raw = f'<html><body><div id="root"></div><script id="__NEXT_DATA__">{json.dumps(data)}</script></body></html>'
    doc = parse(raw, SEARCH_URL)
    records = records_for(doc, ASURA.search_chain)
    assert [(r.source_url, r.title) for r in records] == [
        ('https://asuracomic.net/series/alpha-one-1a2b', 'Alpha One'),
        ('https://asuracomic.net/series/beta-two-3c4d', 'Beta Two'),
    ]
    assert records[1].status == 'Completed'


def test_asura_series_details(fixture_doc):
    url = 'https://asuracomic.net/series/nano-machine-9c0d1e2f'
    details = st.asura_series_details(fixture_doc('asura_series.html', url), ASURA)
    assert details.title == 'Nano Machine'
    assert details.cover_url == 'https://gg.asuracomic.net/storage/media/103/poster.webp'
    assert details.status == 'Ongoing'
    assert details.author == 'Hanjung Wolya'
    assert details.summary.startswith('After being held in disdain')
    assert [c.url for c in details.chapters] == [
        'https://asuracomic.net/series/nano-machine-9c0d1e2f/chapter/231',
        'https://asuracomic.net/series/nano-machine-9c0d1e2f/chapter/230',
        'https://asuracomic.net/series/nano-machine-9c0d1e2f/chapter/229',
    ]
    assert details.chapters[0].title == 'Chapter 231'
    assert details.chapters[0].date == 'January 5th 2025'
    assert details.chapters[2].date is None


def test_asura_chapter_images_from_flight_payload(fixture_doc):
    doc = fixture_doc('asura_chapter.html', 'https://asuracomic.net/series/nano-machine-9c0d1e2f/chapter/231')
    images = st.run_image_chain(doc, ASURA.image_chain, ASURA)
    assert images == [
        'https://gg.asuracomic.net/storage/media/300/01KBCDEFGHJKMNPQRSTVWXYZ12.webp',
        'https://gg.asuracomic.net/storage/media/301/02.webp',
        'https://gg.asuracomic.net/storage/media/302/03-optimized.webp',
    ]


def test_next_data_images_take_priority():
    data = {'props': {'pageProps': {'chapter': {'images': [
        {'url': 'https://gg.asuracomic.net/storage/media/1/a.webp'},
        'https://gg.asuracomic.net/storage/media/1/loading.gif',
        'https://gg.asuracomic.net/storage/media/1/b.webp',
    ]}}}}
    raw = f'<script id="__NEXT_DATA__">{json.dumps(data)}</script><p>https://gg.asuracomic.net/x/01.webp</p>'
    doc = parse(raw, 'https://asuracomic.net/series/x/chapter/1')
    assert st.run_image_chain(doc, ASURA.image_chain, ASURA) == [
        'https://gg.asuracomic.net/storage/media/1/a.webp',
        'https://gg.asuracomic.net/storage/media/1/b.webp',
    ]


@pytest.mark.parametrize('url, expected', [
    ('https://x/01.webp', True),
    ('https://x/page-12.jpg', True),
    ('https://x/01J8ZK5Q6W7X8Y9Z0ABCDEFGHJ.webp', True),
    ('https://x/a1b2c3d4.png', True),
    ('https://x/this-is-a-long-descriptive-banner-name.png', False),
])
def test_page_image_names(url, expected):
    assert st.is_page_image_name(url) is expected


def test_madara_series_details(fixture_doc):
    url = 'https://reader.example.org/manga/the-archmage-returns/'
    details = st.madara_series_details(fixture_doc('madara_series.html', url), MADARA)
    assert details.title == 'The Archmage Returns'
    assert details.cover_url == 'https://reader.example.org/wp-content/uploads/2024/01/archmage-cover.jpg'
    assert details.author == 'Kim Jun'
    assert details.status == 'Completed'
    assert [c.title for c in details.chapters] == ['Chapter 1', 'Chapter 2', 'Chapter 3']
    assert details.chapters[0].url == 'https://reader.example.org/manga/the-archmage-returns/chapter-1/'


def test_madara_reader_images_skip_ads_and_icons(fixture_doc):
    doc = fixture_doc('madara_chapter.html', 'https://reader.example.org/manga/the-archmage-returns/chapter-1/')
    assert st.images_from_reader(doc, MADARA) == [
        'https://reader.example.org/wp-content/uploads/WP-manga/data/manga_1/ch1/01.jpg',
        'https://reader.example.org/wp-content/uploads/WP-manga/data/manga_1/ch1/02.jpg',
        'https://reader.example.org/wp-content/uploads/WP-manga/data/manga_1/ch1/03.jpg',
    ]


def test_mangadex_search_results():
    data = {'data': [
        {
            'id': 'a1b2c3d4-0000-4000-8000-123456789abc',
            'attributes': {'title': {'en': 'Blue Lock'}, 'status': 'ongoing'},
            'relationships': [{'type': 'cover_art', 'attributes': {'fileName': 'cover.png'}}],
        },
        {'id': 'no-title', 'attributes': {'title': {}}, 'relationships': []},
    ]}
    [candidate] = st.mangadex_search_results(data, MANGADEX)
    assert candidate.source_url == 'https://mangadex.org/title/a1b2c3d4-0000-4000-8000-123456789abc'
    assert candidate.cover_url == (
        'https://uploads.mangadex.org/covers/a1b2c3d4-0000-4000-8000-123456789abc/cover.png.256.jpg'
    )
    assert candidate.status == 'Ongoing'


def test_mangadex_chapters_and_images():
    feed = {'data': [{
        'id': 'c1',
        'attributes': {'chapter': '12', 'title': 'The Match', 'publishAt': '2024-03-01T00:00:00+00:00'},
        'relationships': [{'type': 'scanlation_group', 'attributes': {'name': 'Team X'}}],
    }, {'id': 'c2', 'attributes': {}, 'relationships': []}]}
    chapters = st.mangadex_chapters(feed, MANGADEX)
    assert chapters[0].title == 'Ch. 12 - The Match [Team X]'
    assert chapters[0].url == 'https://mangadex.org/chapter/c1'
    assert chapters[0].date == '2024-03-01'
    assert chapters[1].title == 'Ch. Oneshot'

    server = {'baseUrl': 'https://node.example', 'chapter': {'hash': 'h1', 'data': ['1.png', '2.png']}}
    assert st.mangadex_images(server) == ['https://node.example/data/h1/1.png', 'https://node.example/data/h1/2.png']
    assert st.mangadex_images({}) == []


def test_first_non_empty_title_wins_even_when_rejected():
    anchor = parse('<a href="/series/nav-1a2b"><span class="font-bold">Home</span><h3>Other Text</h3></a>', HOME_URL).select_one('a')
    assert st.candidate_from_anchor(anchor, ASURA).title == 'Home'
    assert build_records([st.candidate_from_anchor(anchor, ASURA)], ASURA.normalizer) == []


def test_noise_only_title_node_falls_through():
    anchor = parse('<a href="/series/nano-9c0d"><span class="font-bold">MANHWA</span><h3>Nano Machine</h3></a>',
                   HOME_URL).select_one('a')
    assert st.candidate_from_anchor(anchor, ASURA).title == 'Nano Machine'


BOOK_URL = 'https://novelfire.net/book/shadow-slave'


def test_novel_series_details(fixture_doc):
    doc = fixture_doc('novelfire_book.html', BOOK_URL)
    details = st.novel_series_details(doc, NOVELFIRE)
    assert details.title == 'Shadow Slave'
    assert details.author == 'Guiltythree'
    # The lazy placeholder is skipped in favour of og:image
    assert details.cover_url == 'https://novelfire.net/server-1/shadow-slave.jpg'
    assert details.status == 'Ongoing'
    assert details.category == 'Novel'
    assert [c.url for c in details.chapters] == [
        'https://novelfire.net/book/shadow-slave/chapter-2500',
        'https://novelfire.net/book/shadow-slave/chapter-2499',
    ]
    assert details.chapters[0].title == 'Chapter 2500 Nightfall'
    assert details.chapters[0].date == '2 hours ago'
    assert st.novel_chapter_list_url(doc) == 'https://novelfire.net/book/shadow-slave/chapters'


def test_novel_details_fall_back_to_og_title_and_defaults():
    doc = parse('<html><head><meta property="og:title" content="Lord of Mysteries Novel - Read Free">'
                '</head><body><p>nothing</p></body></html>', 'https://novelfire.net/book/lord-of-mysteries')
    details = st.novel_series_details(doc, NOVELFIRE)
    assert details.title == 'Lord of Mysteries'
    assert details.author == st.UNKNOWN_AUTHOR
    assert details.status == 'Ongoing'
    assert details.cover_url == ''
    assert details.chapters == []


def test_novel_chapter_pagination_links(fixture_doc):
    doc = fixture_doc('novelfire_chapters.html', BOOK_URL + '/chapters')
    assert st.novel_next_page(doc) == BOOK_URL + '/chapters?page=2'
    assert [c.title for c in st.novel_chapters(doc)] == ['Chapter 1 Nightmare Begins', 'Chapter 2 Shadow Slave']
    assert st.novel_info_url(doc) == BOOK_URL


def test_novel_chapters_fallback_scans_chapter_anchors():
    doc = parse('<div><a href="/book/x/chapter-1">Chapter 1</a><a href="/book/x/chapter-1">Chapter 1</a>'
                '<a href="#top">Chapter top</a><a href="javascript:void(0)">Chapter js</a>'
                '<a href="/book/x/episode-2">Episode 2</a><a href="/about">About</a></div>',
                'https://novelfire.net/book/x')
    assert [c.url for c in st.novel_chapters(doc)] == [
        'https://novelfire.net/book/x/chapter-1',
        'https://novelfire.net/book/x/episode-2',
    ]


def test_novel_chapter_text_strips_junk(fixture_doc):
    doc = fixture_doc('novelfire_chapter.html', BOOK_URL + '/chapter-1')
    content = st.novel_chapter_text(doc)
    assert content.startswith('<p>Sunny was sitting')
    assert 'The Nightmare Spell had chosen him.' in content
    for junk in ('<script', 'Advertisement', '<iframe', 'novelfire dot net'):
        assert junk not in content
    # The page itself is left untouched
    assert doc.select_one('#chapter-content script') is not None


def test_novel_chapter_text_skips_empty_content_blocks():
    doc = parse('<div id="chapter-content"><div class="ads">Sponsored</div></div>'
                '<div class="text-left"><p>Real text</p></div>', BOOK_URL + '/chapter-9')
    assert st.novel_chapter_text(doc) == '<p>Real text</p>'
    assert st.novel_chapter_text(parse('<div><p>menu</p></div>', BOOK_URL + '/chapter-9')) == ''
