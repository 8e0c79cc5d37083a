"""Tests for per-topic source fetching."""

import asyncio

import httpx
import pytest
from playwright.async_api import Error as PlaywrightError

from autodidact.acquire.fetcher import (
    POLITENESS_DELAY,
    USER_AGENT,
    FetchReport,
    PageRenderer,
    RenderedPage,
    Source,
    SourceFetcher,
    load_page,
)
from autodidact.errors import FetchFailure, StorageUnavailable
from autodidact.models.entry import MAX_CONTENT_CHARS
from tests.conftest import RecordingSleep, RendererFactory, html_page

SOURCES = (
    Source("one", "https://one.test/wiki/{topic}", "p"),
    Source("two", "https://two.test/search?q={topic}", ".result"),
    Source("three", "https://three.test/q/{topic}", ".summary"),
    Source("four", "https://four.test/s/{topic}", ".story"),
)

PAGES = {
    "one.test": "<p>Python is a programming language.</p><p>It is popular.</p>",
    "two.test": "<div class='result'>two</div>",
    "three.test": "<div class='summary'>Questions about Python</div>",
    "four.test": "<div class='story'>Python articles</div>",
}


def serve(pages: dict[str, str], failing: dict[str, Exception] | None = None):
    failing = failing or {}

    def handler(request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host in failing:
            raise failing[host]
        if host in pages:
            return html_page(pages[host])
        return httpx.Response(404)

    return handler


def make_fetcher(store, handler, sources=SOURCES):
    factory = RendererFactory(handler)
    sleep = RecordingSleep()
    fetcher = SourceFetcher(store, sources, renderer_factory=factory, timeout=5.0, sleep=sleep)
    return fetcher, factory, sleep


@pytest.mark.asyncio
async def test_all_sources_saved(store):
    fetcher, factory, sleep = make_fetcher(store, serve(PAGES))
    report = await fetcher.fetch_topic("Python")

    assert report.ok
    assert not report.partial
    assert report.saved == [s.url_for("Python") for s in SOURCES]
    entries = await store.get_entries("Python")
    assert len(entries) == 4
    assert entries[0].content == "Python is a programming language.\nIt is popular."
    assert factory.all_closed


@pytest.mark.asyncio
async def test_one_source_timing_out_does_not_abort_topic(store):
    """Second source times out: the other three are stored and the run is partial."""
    handler = serve(PAGES, failing={"two.test": httpx.ReadTimeout("timed out")})
    fetcher, factory, _ = make_fetcher(store, handler)

    report = await fetcher.fetch_topic("Python")

    assert report.partial
    assert len(report.saved) == 3
    assert [url for url, _ in report.failed] == ["https://two.test/search?q=Python"]
    entries = await store.get_entries("Python")
    assert sorted(e.source for e in entries) == sorted(
        SOURCES[i].url_for("Python") for i in (0, 2, 3)
    )
    assert factory.all_closed


@pytest.mark.asyncio
async def test_selector_matching_nothing_is_a_source_failure(store):
    pages = {**PAGES, "three.test": "<div>no summary here</div>"}
    fetcher, _, _ = make_fetcher(store, serve(pages))
    report = await fetcher.fetch_topic("Python")
    assert len(report.saved) == 3
    assert "matched no text" in report.failed[0][1]


@pytest.mark.asyncio
async def test_http_error_status_is_a_source_failure(store):
    pages = {k: v for k, v in PAGES.items() if k != "four.test"}
    fetcher, _, _ = make_fetcher(store, serve(pages))
    report = await fetcher.fetch_topic("Python")
    assert len(report.saved) == 3
    assert report.failed[0][0] == "https://four.test/s/Python"


@pytest.mark.asyncio
async def test_all_sources_failing(store):
    fetcher, factory, _ = make_fetcher(store, serve({}))
    report = await fetcher.fetch_topic("Python")
    assert not report.ok
    assert len(report.failed) == 4
    assert await store.exists("Python") is False
    assert factory.all_closed


@pytest.mark.asyncio
async def test_refetch_bumps_confidence(store):
    fetcher, _, _ = make_fetcher(store, serve(PAGES), sources=SOURCES[:1])
    await fetcher.fetch_topic("Python")
    first = await store.get_entry("Python", SOURCES[0].url_for("Python"))
    await fetcher.fetch_topic("Python")
    second = await store.get_entry("Python", SOURCES[0].url_for("Python"))
    assert second.id == first.id
    assert second.confidence > first.confidence


@pytest.mark.asyncio
async def test_content_truncated(store):
    pages = {"one.test": f"<p>{'a' * (MAX_CONTENT_CHARS * 2)}</p>"}
    fetcher, _, _ = make_fetcher(store, serve(pages), sources=SOURCES[:1])
    await fetcher.fetch_topic("Long")
    [entry] = await store.get_entries("Long")
    assert len(entry.content) == MAX_CONTENT_CHARS


@pytest.mark.asyncio
async def test_politeness_delay_before_each_source(store):
    fetcher, _, sleep = make_fetcher(store, serve(PAGES))
    await fetcher.fetch_topic("Python")
    low, high = POLITENESS_DELAY
    assert len(sleep.delays) == 4
    assert all(low <= d <= high for d in sleep.delays)


@pytest.mark.asyncio
async def test_user_agent_sent(store):
    agents: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        agents.append(request.headers["User-Agent"])
        return html_page("<p>text</p>")

    fetcher, _, _ = make_fetcher(store, handler, sources=SOURCES[:1])
    await fetcher.fetch_topic("Python")
    assert agents == [USER_AGENT]


@pytest.mark.asyncio
async def test_storage_failure_propagates_and_closes_session(store, monkeypatch):
    async def broken_upsert(*args, **kwargs):
        raise StorageUnavailable("disk full")

    monkeypatch.setattr(store, "upsert", broken_upsert)
    fetcher, factory, _ = make_fetcher(store, serve(PAGES))
    with pytest.raises(StorageUnavailable):
        await fetcher.fetch_topic("Python")
    assert factory.all_closed


class FakeResponse:
    def __init__(self, status: int):
        self.status = status
        self.ok = 200 <= status < 300


class FakePage:
    def __init__(self, browser: "FakeBrowser"):
        self.browser = browser
        self.url = "about:blank"
        self.closed = False

    async def goto(self, url: str, **kwargs):
        self.browser.visits.append((url, kwargs))
        if self.browser.error is not None:
            raise self.browser.error
        self.url = url
        return FakeResponse(self.browser.status)

    async def content(self) -> str:
        return self.browser.html

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, browser: "FakeBrowser"):
        self.browser = browser

    async def new_page(self) -> FakePage:
        page = FakePage(self.browser)
        self.browser.pages.append(page)
        return page


class FakeBrowser:
    """Chromium stand-in serving one canned document."""

    def __init__(self, html: str = "", status: int = 200, error: Exception | None = None):
        self.html = html
        self.status = status
        self.error = error
        self.visits: list[tuple[str, dict]] = []
        self.pages: list[FakePage] = []
        self.context_options: dict | None = None
        self.closed = False

    async def new_context(self, **kwargs) -> FakeContext:
        self.context_options = kwargs
        return FakeContext(self)

    async def close(self) -> None:
        self.closed = True


class FakePlaywright:
    def __init__(self, browser: FakeBrowser):
        self.browser = browser
        self.chromium = self
        self.launches: list[dict] = []
        self.started = 0
        self.stopped = False

    async def start(self) -> "FakePlaywright":
        self.started += 1
        return self

    async def launch(self, **kwargs) -> FakeBrowser:
        self.launches.append(kwargs)
        return self.browser

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def fake_browser(monkeypatch):
    browser = FakeBrowser("<html><body><p class='late'>Inserted by script</p></body></html>")
    playwright = FakePlaywright(browser)
    monkeypatch.setattr("autodidact.acquire.fetcher.async_playwright", lambda: playwright)
    return playwright


@pytest.mark.asyncio
async def test_page_renderer_waits_for_dom_content(fake_browser):
    renderer = PageRenderer()
    page = await renderer.render("https://docs.test/search?q=rust", timeout=2.5)

    assert page.select_text(".late") == "Inserted by script"
    [(url, options)] = fake_browser.browser.visits
    assert url == "https://docs.test/search?q=rust"
    assert options == {"wait_until": "domcontentloaded", "timeout": 2500}
    assert fake_browser.launches == [{"headless": True}]
    assert fake_browser.browser.context_options == {"user_agent": USER_AGENT}
    assert fake_browser.browser.pages[0].closed
    await renderer.close()


@pytest.mark.asyncio
async def test_page_renderer_reuses_one_browser_until_closed(fake_browser):
    renderer = PageRenderer()
    await renderer.render("https://a.test/", timeout=1.0)
    await renderer.render("https://b.test/", timeout=1.0)
    assert fake_browser.started == 1
    assert len(fake_browser.launches) == 1
    assert renderer.is_open

    await renderer.close()

    assert not renderer.is_open
    assert fake_browser.browser.closed
    assert fake_browser.stopped


@pytest.mark.asyncio
async def test_page_renderer_close_without_render_is_noop(fake_browser):
    renderer = PageRenderer()
    await renderer.close()
    assert fake_browser.started == 0


@pytest.mark.asyncio
async def test_page_renderer_error_status_is_fetch_failure(fake_browser):
    fake_browser.browser.status = 503
    renderer = PageRenderer()
    try:
        with pytest.raises(FetchFailure, match="HTTP 503"):
            await load_page(renderer, "https://down.test/", 1.0)
        assert fake_browser.browser.pages[0].closed
    finally:
        await renderer.close()


@pytest.mark.asyncio
async def test_load_page_maps_browser_error(fake_browser):
    fake_browser.browser.error = PlaywrightError("net::ERR_CONNECTION_REFUSED")
    renderer = PageRenderer()
    try:
        with pytest.raises(FetchFailure, match="ERR_CONNECTION_REFUSED"):
            await load_page(renderer, "https://down.test/", 1.0)
    finally:
        await renderer.close()


@pytest.mark.asyncio
async def test_load_page_enforces_deadline():
    class StalledRenderer:
        async def render(self, url: str, timeout: float) -> RenderedPage:
            await asyncio.sleep(10)
            raise AssertionError("unreachable")

        async def close(self) -> None:
            pass

    with pytest.raises(FetchFailure, match="timed out"):
        await load_page(StalledRenderer(), "https://slow.test/", 0.05)


def test_url_for_quotes_topic():
    source = Source("wiki", "https://en.wikipedia.org/wiki/{topic}", "p")
    assert source.url_for("C++ (language)") == (
        "https://en.wikipedia.org/wiki/C%2B%2B%20%28language%29"
    )


def test_invalid_selector_is_fetch_failure():
    page = RenderedPage("https://x.test/", "<p>hi</p>")
    with pytest.raises(FetchFailure, match="rejected"):
        page.select("p[")


def test_rendered_element_text_is_normalized():
    page = RenderedPage("https://x.test/", "<div class='a'>  Hello\n   <b>world</b> </div>")
    assert page.select_text(".a") == "Hello world"


def test_fetch_report_flags():
    assert not FetchReport("t").ok
    assert FetchReport("t", saved=["a"]).ok
    assert FetchReport("t", saved=["a"], failed=[("b", "x")]).partial
