import random

import httpx
import pytest

from services.generator.app.context import UniquenessIndex
from services.generator.app.keys import KeyKind
from services.generator.app.sources.base import (NoStrategySucceeded,
                                                 SourceAdapter, first_success)
from services.generator.app.sources.book import BookAdapter
from services.generator.app.sources.history import (HistoryAdapter,
                                                    OnThisDayAdapter,
                                                    by_richness, derived_title)
from services.generator.app.sources.news import (NewsAdapter, matches_keywords,
                                                 strip_html)
from services.generator.app.sources.trend import (SEASONAL_TRENDS,
                                                  TrendAdapter,
                                                  season_for_month)
from services.generator.app.sources.video import VideoAdapter, watch_url
from shared.config.settings import get_settings
from shared.schemas.feed import Category

VIDEO_A = "dQw4w9WgXcQ"
VIDEO_B = "9bZkp7q19f0"


def _results_page(*ids):
    return "".join(f'<script>{{"videoId":"{video_id}","x":1}}</script>' for video_id in ids)


def _index(titles=(), provider_ids=(), urls=(), years=()):
    return UniquenessIndex(
        titles={t.lower() for t in titles}, provider_ids=set(provider_ids), urls=set(urls), years=set(years)
    )


# --- base -----------------------------------------------------------------

class ExplodingAdapter(SourceAdapter):
    name = "exploding"
    category = Category.NEWS

    async def fetch(self, ctx):
        raise RuntimeError("provider melted")


async def test_adapter_failure_becomes_empty_result(make_ctx):
    result = await ExplodingAdapter().run(make_ctx(lambda r: httpx.Response(404)))
    assert result.failed
    assert result.entries == []
    assert "provider melted" in result.error


async def test_first_success_skips_failures_and_empty_results():
    async def broken():
        raise ValueError("nope")

    async def empty():
        return []

    async def good():
        return ["hit"]

    assert await first_success([broken, empty, good]) == ["hit"]
    with pytest.raises(NoStrategySucceeded) as exc:
        await first_success([broken, empty], label="search")
    assert len(exc.value.errors) == 2


# --- videos ---------------------------------------------------------------

async def test_video_scrapes_search_page_and_enriches_with_oembed(make_ctx):
    def handler(request):
        if request.url.path == "/results":
            return httpx.Response(200, text=_results_page(VIDEO_A, VIDEO_A, VIDEO_B))
        if request.url.path == "/oembed":
            return httpx.Response(200, json={"title": "Salsa Night", "author_name": "Dance Hall"})
        return httpx.Response(404)

    ctx = make_ctx(handler)
    entries = await VideoAdapter().fetch(ctx)

    assert len(entries) == 1
    entry = entries[0]
    assert entry.category is Category.VIDEO
    assert entry.provider_id == VIDEO_A
    assert entry.title == "Salsa Night"
    assert entry.description == "By Dance Hall"
    assert entry.links[0].url == watch_url(VIDEO_A)
    assert entry.image_url == f"https://img.youtube.com/vi/{VIDEO_A}/hqdefault.jpg"
    assert entry.metadata["query"] in ctx.settings.video_queries


async def test_video_never_reemits_a_known_id(make_ctx):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if request.url.path == "/results":
            return httpx.Response(200, text=_results_page(VIDEO_A))
        return httpx.Response(200, json={"title": "Fresh title", "author_name": "x"})

    ctx = make_ctx(handler, index=_index(provider_ids=[VIDEO_A]))
    assert await VideoAdapter().fetch(ctx) == []
    assert "/oembed" not in calls


async def test_video_takes_next_hit_when_first_is_known(make_ctx):
    def handler(request):
        if request.url.path == "/results":
            return httpx.Response(200, text=_results_page(VIDEO_A, VIDEO_B))
        video = request.url.params["url"]
        return httpx.Response(200, json={"title": f"Title for {video[-11:]}", "author_name": "Chan"})

    ctx = make_ctx(handler, index=_index(provider_ids=[VIDEO_A]))
    entries = await VideoAdapter().fetch(ctx)
    assert [e.provider_id for e in entries] == [VIDEO_B]


async def test_video_skips_hit_whose_title_is_known(make_ctx):
    titles = {VIDEO_A: "Already Featured", VIDEO_B: "Brand New"}

    def handler(request):
        if request.url.path == "/results":
            return httpx.Response(200, text=_results_page(VIDEO_A, VIDEO_B))
        return httpx.Response(200, json={"title": titles[request.url.params["url"][-11:]], "author_name": ""})

    ctx = make_ctx(handler, index=_index(titles=["already featured"]))
    entries = await VideoAdapter().fetch(ctx)
    assert [e.title for e in entries] == ["Brand New"]


async def test_video_falls_back_to_invidious(make_ctx):
    def handler(request):
        if request.url.host == "www.youtube.com":
            return httpx.Response(503)
        assert request.url.path == "/api/v1/search"
        return httpx.Response(200, json=[{"videoId": VIDEO_B, "title": "Street Food Tour", "author": "Eats"}])

    entries = await VideoAdapter().fetch(make_ctx(handler))
    assert entries[0].provider_id == VIDEO_B
    assert entries[0].title == "Street Food Tour"
    assert entries[0].metadata["channelName"] == "Eats"


async def test_video_uses_query_as_title_when_metadata_unavailable(make_ctx):
    def handler(request):
        if request.url.path == "/results":
            return httpx.Response(200, text=_results_page(VIDEO_A))
        return httpx.Response(500)

    entries = await VideoAdapter().fetch(make_ctx(handler))
    assert entries[0].title == entries[0].metadata["query"]
    assert entries[0].description == ""


async def test_video_search_failure_yields_nothing(make_ctx):
    entries = await VideoAdapter().fetch(make_ctx(lambda r: httpx.Response(503)))
    assert entries == []


def test_video_queries_rotate_by_day(make_ctx):
    adapter = VideoAdapter()
    first = adapter.queries_for(make_ctx(lambda r: None, group_key="2024-03-01"))
    second = adapter.queries_for(make_ctx(lambda r: None, group_key="2024-03-02"))
    assert len(first) == 1
    assert first != second


# --- books ----------------------------------------------------------------

def _volume(title, **info):
    return {"volumeInfo": {"title": title, "authors": ["Someone"], **info}}


async def test_books_from_search_skip_known_titles(make_ctx):
    def handler(request):
        assert request.url.params["q"] == "subject:self-help"
        assert request.url.params["orderBy"] == "newest"
        return httpx.Response(200, json={"items": [
            _volume("Known Book"),
            _volume("Fresh Book", description="Good read", previewLink="https://b.example/p", infoLink="https://b.example/i"),
            _volume("Second Fresh"),
            _volume("Third Fresh"),
        ]})

    ctx = make_ctx(handler, index=_index(titles=["known book"]))
    entries = await BookAdapter().fetch(ctx)

    assert [e.title for e in entries] == ["Fresh Book", "Second Fresh"]
    assert [l.label for l in entries[0].links] == ["Preview on Google Books", "More Info"]
    assert entries[0].metadata["source"] == "Google Books"
    assert entries[0].metadata["author"] == "Someone"


async def test_books_fill_from_catalog_when_search_fails(make_ctx):
    catalog = [
        {"title": "Atomic Habits", "author": "James Clear", "description": "Habits.", "quotes": ["q"]},
        {"title": "Deep Work", "author": "Cal Newport", "description": "Focus.", "quotes": []},
        {"title": "Meditations", "author": "Marcus Aurelius", "description": "Stoic.", "quotes": []},
    ]
    ctx = make_ctx(lambda r: httpx.Response(500), index=_index(titles=["Atomic Habits"]))
    entries = await BookAdapter(catalog=catalog, rng=random.Random(7)).fetch(ctx)

    assert {e.title for e in entries} == {"Deep Work", "Meditations"}
    assert all(e.metadata["source"] == "Curated catalog" for e in entries)


async def test_books_top_up_short_search(make_ctx):
    catalog = [{"title": "Deep Work", "author": "Cal Newport", "description": "Focus.", "quotes": []}]
    ctx = make_ctx(lambda r: httpx.Response(200, json={"items": [_volume("Only One")]}))
    entries = await BookAdapter(catalog=catalog).fetch(ctx)
    assert [e.title for e in entries] == ["Only One", "Deep Work"]


# --- trends ---------------------------------------------------------------

@pytest.mark.parametrize("month,season", [(1, "winter"), (4, "spring"), (7, "summer"), (10, "fall"), (12, "winter")])
def test_season_for_month(month, season):
    assert season_for_month(month) == season


async def test_trend_picks_first_unfeatured(make_ctx):
    winter = SEASONAL_TRENDS["winter"]
    ctx = make_ctx(lambda r: None, group_key="2024-01-15", index=_index(titles=[winter[0][0]]))
    entries = await TrendAdapter().fetch(ctx)
    assert [e.title for e in entries] == [winter[1][0]]
    assert entries[0].metadata["season"] == "winter"


async def test_trend_exhausted_season_yields_nothing(make_ctx):
    summer = [title for title, _ in SEASONAL_TRENDS["summer"]]
    ctx = make_ctx(lambda r: None, group_key="2024-07-01", index=_index(titles=summer))
    assert await TrendAdapter().fetch(ctx) == []


# --- news -----------------------------------------------------------------

def _hn(stories, failing=()):
    def handler(request):
        if request.url.path == "/v0/topstories.json":
            return httpx.Response(200, json=list(stories))
        story_id = int(request.url.path.rsplit("/", 1)[-1].split(".")[0])
        if story_id in failing:
            return httpx.Response(500)
        return httpx.Response(200, json=stories[story_id])
    return handler


STORIES = {
    1: {"id": 1, "title": "Rust 2.0 Released", "score": 500},
    2: {"id": 2, "title": "GPT-5 outage postmortem", "score": 300},
    3: {"id": 3, "title": "New LLM beats benchmarks", "score": 120, "descendants": 42, "url": "https://news.example/llm"},
}


def test_keyword_matching_and_html_stripping():
    assert matches_keywords("Open-source LLM released", ["llm"])
    assert not matches_keywords("Rust 2.0 Released", ["llm", "gpt"])
    assert strip_html("<p>Hello <b>world</b></p>") == "Hello world"


async def test_news_first_matching_story_wins(make_ctx):
    entries = await NewsAdapter().fetch(make_ctx(_hn(STORIES, failing={2})))
    assert len(entries) == 1
    entry = entries[0]
    assert entry.title == "New LLM beats benchmarks"
    assert entry.summary == "HN Score: 120 | 42 comments"
    assert [l.label for l in entry.links] == ["Read Article", "HN Discussion"]
    assert entry.links[1].url == "https://news.ycombinator.com/item?id=3"


async def test_news_skips_known_title_and_known_thread(make_ctx):
    index = _index(titles=["GPT-5 outage postmortem"], urls=["https://news.ycombinator.com/item?id=3"])
    assert await NewsAdapter().fetch(make_ctx(_hn(STORIES), index=index)) == []


async def test_news_respects_lookahead(make_ctx):
    assert await NewsAdapter().fetch(make_ctx(_hn(STORIES), news_lookahead=1)) == []


async def test_news_text_post_uses_stripped_body(make_ctx):
    stories = {7: {"id": 7, "title": "Ask HN: AI pair programming?", "text": "<p>Does it <i>help</i>?</p>"}}
    entries = await NewsAdapter().fetch(make_ctx(_hn(stories)))
    assert entries[0].description == "Does it help ?"
    assert [l.label for l in entries[0].links] == ["HN Discussion"]


async def test_news_timeout_is_not_retried(make_ctx, monkeypatch):
    monkeypatch.setattr(get_settings().service, "max_retries", 2)
    calls = []

    def handler(request):
        calls.append(request.url.path)
        raise httpx.ReadTimeout("timed out", request=request)

    result = await NewsAdapter().run(make_ctx(handler))
    assert result.failed
    assert result.entries == []
    assert calls == ["/v0/topstories.json"]


async def test_news_connection_errors_are_retried(make_ctx, monkeypatch):
    monkeypatch.setattr(get_settings().service, "max_retries", 2)
    calls = []

    def handler(request):
        calls.append(request.url.path)
        raise httpx.ConnectError("connection refused", request=request)

    result = await NewsAdapter().run(make_ctx(handler))
    assert result.failed
    assert len(calls) == 3


# --- history / on this day -----------------------------------------------

def _page(title, extract=None, thumbnail=None):
    page = {"title": title, "titles": {"normalized": title.replace("_", " ")},
            "content_urls": {"desktop": {"page": f"https://en.wikipedia.org/wiki/{title}"}}}
    if extract:
        page["extract"] = extract
    if thumbnail:
        page["thumbnail"] = {"source": thumbnail}
    return page


EVENTS = [
    {"year": 1900, "text": "A quiet thing happened.", "pages": [_page("Quiet")]},
    {"year": 1950, "text": "A big thing happened.", "pages": [_page("Big", extract="Big summary"), _page("Thing"), _page("Happened")]},
]


def test_history_helpers():
    assert derived_title({"year": 1815, "text": "x" * 150}) == "1815: " + "x" * 100
    assert [r["year"] for r in by_richness(EVENTS)] == [1950, 1900]


async def test_history_picks_richest_unfeatured_event(make_ctx):
    def handler(request):
        assert request.url.path == "/api/rest_v1/feed/onthisday/events/03/01"
        return httpx.Response(200, json={"events": EVENTS})

    entries = await HistoryAdapter().fetch(make_ctx(handler))
    assert entries[0].title == "1950: A big thing happened."
    assert entries[0].summary == "Big summary"
    assert entries[0].metadata["wikiUrl"] == "https://en.wikipedia.org/wiki/Big"

    ctx = make_ctx(handler, index=_index(titles=["1950: A big thing happened."]))
    entries = await HistoryAdapter().fetch(ctx)
    assert entries[0].title == "1900: A quiet thing happened."


async def test_on_this_day_events_keep_whole_list_without_extract_lookups(make_ctx):
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json={"events": EVENTS})

    ctx = make_ctx(handler, group_key="03-01", key_kind=KeyKind.MONTH_DAY)
    entries = await OnThisDayAdapter(Category.EVENT).fetch(ctx)

    assert [e.event_year for e in entries] == ["1950", "1900"]
    assert entries[0].metadata["pages"][0] == {"title": "Big", "thumbnail": None, "url": "https://en.wikipedia.org/wiki/Big"}
    assert paths == ["/api/rest_v1/feed/onthisday/events/03/01"]


async def test_on_this_day_births_are_enriched_with_extracts(make_ctx):
    births = [
        {"year": 1815, "text": "Ada Lovelace, English mathematician", "pages": [_page("Ada_Lovelace")]},
        {"year": 1912, "text": "Alan Turing, English computer scientist", "pages": [_page("Alan_Turing", extract="Already there")]},
        {"year": 1906, "text": "Grace Hopper, American computer scientist", "pages": [_page("Grace_Hopper")]},
    ]
    summaries = []

    def handler(request):
        if request.url.path.startswith("/api/rest_v1/page/summary/"):
            title = request.url.path.rsplit("/", 1)[-1]
            summaries.append(title)
            if title == "Grace_Hopper":
                return httpx.Response(404)
            return httpx.Response(200, json={"extract": f"About {title}", "thumbnail": {"source": "https://img.example/a.jpg"}})
        assert request.url.path == "/api/rest_v1/feed/onthisday/births/03/01"
        return httpx.Response(200, json={"births": births})

    ctx = make_ctx(handler, group_key="03-01", key_kind=KeyKind.MONTH_DAY, extract_batch_size=1)
    entries = await OnThisDayAdapter(Category.BIRTH).fetch(ctx)

    by_year = {e.event_year: e for e in entries}
    assert sorted(summaries) == ["Ada_Lovelace", "Grace_Hopper"]
    assert by_year["1815"].summary == "About Ada_Lovelace"
    assert by_year["1815"].image_url == "https://img.example/a.jpg"
    assert by_year["1912"].summary == "Already there"
    assert by_year["1906"].summary == "Grace Hopper, American computer scientist"
    assert all(e.category is Category.BIRTH for e in entries)


async def test_on_this_day_is_capped_and_skips_known(make_ctx):
    deaths = [{"year": 1900 + i, "text": f"Person {i}", "pages": []} for i in range(5)]
    ctx = make_ctx(
        lambda r: httpx.Response(200, json={"deaths": deaths}),
        group_key="03-01",
        key_kind=KeyKind.MONTH_DAY,
        index=_index(titles=["1900: Person 0"]),
        history_max_per_kind=2,
    )
    entries = await OnThisDayAdapter(Category.DEATH).fetch(ctx)
    assert [e.title for e in entries] == ["1901: Person 1", "1902: Person 2"]
    assert OnThisDayAdapter(Category.DEATH).name == "deaths"


async def test_on_this_day_keeps_one_record_per_year(make_ctx):
    births = [
        {"year": 1950, "text": "Alice, painter", "pages": [_page("Alice", extract="a"), _page("Paris"), _page("Art")]},
        {"year": 1960, "text": "Carol, chemist", "pages": [_page("Carol", extract="c"), _page("Lab")]},
        {"year": 1950, "text": "Bob, poet", "pages": [_page("Bob", extract="b")]},
        {"year": 1970, "text": "Dave, pilot", "pages": []},
    ]
    ctx = make_ctx(
        lambda r: httpx.Response(200, json={"births": births}),
        group_key="03-01",
        key_kind=KeyKind.MONTH_DAY,
        index=_index(years=[("birth", "1970")]),
    )
    entries = await OnThisDayAdapter(Category.BIRTH).fetch(ctx)
    assert [e.title for e in entries] == ["1950: Alice, painter", "1960: Carol, chemist"]

def test_on_this_day_rejects_feed_categories():
    with pytest.raises(ValueError):
        OnThisDayAdapter(Category.VIDEO)
