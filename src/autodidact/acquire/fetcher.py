"""Per-topic harvesting from a fixed list of reference sources."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import quote

from bs4 import BeautifulSoup
from playwright.async_api import (
    Browser,
    BrowserContext,
    Playwright,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from soupsieve import SelectorSyntaxError

from autodidact.config import get_fetch_timeout
from autodidact.errors import FetchFailure
from autodidact.models.entry import MAX_CONTENT_CHARS
from autodidact.store.knowledge_store import KnowledgeStore

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "Chrome/110.0.0.0 Safari/537.36"
)

POLITENESS_DELAY = (1.0, 3.0)


@dataclass(frozen=True)
class Source:
    """A reference site: URL template with a ``{topic}`` slot and a CSS selector."""

    name: str
    url_template: str
    selector: str

    def url_for(self, topic: str) -> str:
        """Build the page URL for a topic."""
        return self.url_template.format(topic=quote(topic))


DEFAULT_SOURCES: tuple[Source, ...] = (
    Source("wikipedia", "https://en.wikipedia.org/wiki/{topic}", "#mw-content-text p"),
    Source(
        "mdn",
        "https://developer.mozilla.org/en-US/search?q={topic}",
        ".result-list .result p",
    ),
    Source("stackoverflow", "https://stackoverflow.com/search?q={topic}", ".js-post-summary"),
    Source("devto", "https://dev.to/search?q={topic}", ".crayons-story__body"),
)


class RenderedPage:
    """A loaded document that can be queried by CSS selector."""

    def __init__(self, url: str, html: str) -> None:
        """Parse the document once for repeated selection."""
        self.url = url
        self._soup = BeautifulSoup(html, "html.parser")

    def select(self, selector: str) -> list[RenderedElement]:
        """Return elements matching the selector."""
        try:
            matched = self._soup.select(selector)
        except SelectorSyntaxError as exc:
            raise FetchFailure(f"selector {selector!r} rejected: {exc}") from exc
        return [RenderedElement(el) for el in matched]

    def select_text(self, selector: str) -> str:
        """Visible text of each matching element, one element per line."""
        return "\n".join(el.text for el in self.select(selector))


class RenderedElement:
    """One matched element; text and nested selection only."""

    def __init__(self, tag: object) -> None:
        self._tag = tag

    @property
    def text(self) -> str:
        """Whitespace-normalized visible text."""
        return " ".join(self._tag.get_text(" ").split())  # type: ignore[attr-defined]

    def select_one_text(self, selector: str) -> str:
        """Text of the first nested match, or an empty string."""
        found = self._tag.select_one(selector)  # type: ignore[attr-defined]
        return " ".join(found.get_text(" ").split()) if found is not None else ""


class PageRenderer:
    """Headless Chromium session that loads pages and lets their scripts run.

    The browser starts on the first ``render`` and lives until ``close``;
    every page is opened in a fresh tab that is closed once its document
    has been captured.
    """

    def __init__(self, *, headless: bool = True) -> None:
        """Initialize without launching anything."""
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    async def render(self, url: str, timeout: float) -> RenderedPage:
        """Load a page and return its DOM once content has been parsed."""
        context = await self._get_context()
        page = await context.new_page()
        try:
            response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout * 1000)
            if response is not None and not response.ok:
                raise FetchFailure(f"HTTP {response.status} for {url}")
            return RenderedPage(page.url, await page.content())
        finally:
            await page.close()

    async def _get_context(self) -> BrowserContext:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        if self._browser is None:
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
        if self._context is None:
            self._context = await self._browser.new_context(user_agent=USER_AGENT)
        return self._context

    async def close(self) -> None:
        """Shut down the browser session if one was started."""
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._context = None
        self._browser = None
        self._playwright = None

    @property
    def is_open(self) -> bool:
        """A browser session is running."""
        return self._playwright is not None


class Renderer(Protocol):
    """Anything that can turn a URL into a queryable document."""

    async def render(self, url: str, timeout: float) -> RenderedPage:
        """Load ``url`` within ``timeout`` seconds."""
        ...

    async def close(self) -> None:
        """Release the session."""
        ...


async def load_page(renderer: Renderer, url: str, timeout: float) -> RenderedPage:
    """Render a page with a hard deadline, mapping browser errors to FetchFailure."""
    try:
        return await asyncio.wait_for(renderer.render(url, timeout=timeout), timeout=timeout)
    except TimeoutError as exc:
        raise FetchFailure(f"timed out after {timeout:g}s") from exc
    except PlaywrightError as exc:
        raise FetchFailure(exc.message or type(exc).__name__) from exc


@dataclass
class FetchReport:
    """Outcome of one topic's pass over its sources."""

    topic: str
    saved: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """At least one source yielded content."""
        return bool(self.saved)

    @property
    def partial(self) -> bool:
        """Some, but not all, sources yielded content."""
        return bool(self.saved) and bool(self.failed)


class SourceFetcher:
    """Extracts a topic from each source in order and upserts what it finds."""

    def __init__(
        self,
        store: KnowledgeStore,
        sources: tuple[Source, ...] | list[Source] = DEFAULT_SOURCES,
        *,
        renderer_factory: Callable[[], Renderer] = PageRenderer,
        timeout: float | None = None,
        delay_range: tuple[float, float] = POLITENESS_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize with a store and the ordered sources to consult."""
        self.store = store
        self.sources = tuple(sources)
        self._renderer_factory = renderer_factory
        self.timeout = timeout if timeout is not None else get_fetch_timeout()
        self.delay_range = delay_range
        self._sleep = sleep

    async def fetch_topic(self, topic: str) -> FetchReport:
        """Harvest one topic. A failing source is logged and skipped.

        Storage errors propagate; the renderer session is closed on every path.
        """
        logger.info("Fetching %s from %d sources", topic, len(self.sources))
        report = FetchReport(topic=topic)
        renderer = self._renderer_factory()
        try:
            for source in self.sources:
                url = source.url_for(topic)
                await self._sleep(random.uniform(*self.delay_range))
                try:
                    content = await self._extract(renderer, url, source.selector)
                except FetchFailure as exc:
                    logger.warning("Source %s failed for %s: %s", source.name, topic, exc.message)
                    report.failed.append((url, exc.message))
                    continue
                await self.store.upsert(topic, url, content)
                report.saved.append(url)
                logger.info("Saved %s from %s", topic, url)
        finally:
            await renderer.close()

        if report.partial:
            logger.info(
                "Partial fetch for %s: %d of %d sources",
                topic,
                len(report.saved),
                len(self.sources),
            )
        elif not report.ok:
            logger.warning("No source yielded content for %s", topic)
        return report

    async def _extract(self, renderer: Renderer, url: str, selector: str) -> str:
        page = await load_page(renderer, url, self.timeout)
        text = page.select_text(selector)[:MAX_CONTENT_CHARS]
        if not text.strip():
            raise FetchFailure(f"selector {selector!r} matched no text")
        return text
