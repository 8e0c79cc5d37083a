"""Topic discovery from technology trend pages."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from autodidact.acquire.fetcher import (
    FetchReport,
    PageRenderer,
    RenderedPage,
    Renderer,
    SourceFetcher,
    load_page,
)
from autodidact.config import get_fetch_timeout
from autodidact.errors import FetchFailure
from autodidact.store.knowledge_store import KnowledgeStore

logger = logging.getLogger(__name__)

MAX_NEW_TOPICS = 10

STOPWORDS = frozenset({"the", "and", "this", "that", "what", "when", "why", "how", "who"})

_REPOSITORY_TOKEN = re.compile(r"^[A-Za-z0-9_]+$")
_HEADLINE_TOKEN = re.compile(r"^[A-Za-z0-9]+$")
_NUMERIC = re.compile(r"^\d+$")


@dataclass(frozen=True)
class TrendSource:
    """A trend page. ``kind`` picks the extraction rule: repository or headline."""

    name: str
    url: str
    selector: str
    kind: str = "headline"


DEFAULT_TREND_SOURCES: tuple[TrendSource, ...] = (
    TrendSource("github", "https://github.com/trending", ".Box-row", kind="repository"),
    TrendSource("hackernews", "https://news.ycombinator.com/", ".titleline"),
    TrendSource("techcrunch", "https://techcrunch.com/", "article h2"),
)


def normalize_tokens(text: str, min_length: int, pattern: re.Pattern[str]) -> list[str]:
    """Split on whitespace, keep long-enough tokens matching pattern, capitalize."""
    return [
        word[0].upper() + word[1:]
        for word in text.split()
        if len(word) >= min_length and pattern.match(word)
    ]


def repository_candidates(page: RenderedPage, selector: str) -> list[str]:
    """Repository rows: keywords from the description, then the repository name."""
    candidates: list[str] = []
    for row in page.select(selector):
        name = "_".join(row.select_one_text("h2").split())
        description = row.select_one_text("p")
        candidates.extend(normalize_tokens(description, 4, _REPOSITORY_TOKEN))
        if name:
            candidates.append(name)
    return candidates


def headline_candidates(page: RenderedPage, selector: str) -> list[str]:
    """Headline elements: capitalized words of five or more characters."""
    candidates: list[str] = []
    for element in page.select(selector):
        candidates.extend(normalize_tokens(element.text, 5, _HEADLINE_TOKEN))
    return candidates


_EXTRACTORS: dict[str, Callable[[RenderedPage, str], list[str]]] = {
    "repository": repository_candidates,
    "headline": headline_candidates,
}


def filter_candidates(candidates: list[str], limit: int = MAX_NEW_TOPICS) -> list[str]:
    """Deduplicate in discovery order and drop noise, keeping at most ``limit``."""
    kept = [
        topic
        for topic in dict.fromkeys(candidates)
        if topic.lower() not in STOPWORDS and len(topic) > 3 and not _NUMERIC.match(topic)
    ]
    return kept[:limit]


@dataclass
class DiscoveryReport:
    """Outcome of one discovery pass."""

    candidates: list[str] = field(default_factory=list)
    learned: list[FetchReport] = field(default_factory=list)
    known: list[str] = field(default_factory=list)
    failed_sources: list[tuple[str, str]] = field(default_factory=list)


class TopicDiscovery:
    """Mines trend pages for unknown topics and hands them to the fetcher."""

    def __init__(
        self,
        store: KnowledgeStore,
        fetcher: SourceFetcher,
        sources: tuple[TrendSource, ...] | list[TrendSource] = DEFAULT_TREND_SOURCES,
        *,
        renderer_factory: Callable[[], Renderer] = PageRenderer,
        timeout: float | None = None,
        limit: int = MAX_NEW_TOPICS,
    ) -> None:
        """Initialize with the store to deduplicate against and the fetcher to learn with."""
        self.store = store
        self.fetcher = fetcher
        self.sources = tuple(sources)
        self._renderer_factory = renderer_factory
        self.timeout = timeout if timeout is not None else get_fetch_timeout()
        self.limit = limit

    async def collect_candidates(self, report: DiscoveryReport | None = None) -> list[str]:
        """Visit every trend source; a failing source contributes nothing."""
        candidates: list[str] = []
        renderer = self._renderer_factory()
        try:
            for source in self.sources:
                extract = _EXTRACTORS.get(source.kind, headline_candidates)
                try:
                    page = await load_page(renderer, source.url, self.timeout)
                    found = extract(page, source.selector)
                except FetchFailure as exc:
                    logger.warning("Discovery source %s failed: %s", source.name, exc.message)
                    if report is not None:
                        report.failed_sources.append((source.url, exc.message))
                    continue
                logger.debug("%s offered %d candidates", source.name, len(found))
                candidates.extend(found)
        finally:
            await renderer.close()
        return candidates

    async def discover_topics(self) -> DiscoveryReport:
        """Find new topics and fetch those the store has never seen."""
        logger.info("Discovering new topics from %d trend sources", len(self.sources))
        report = DiscoveryReport()
        raw = await self.collect_candidates(report)
        report.candidates = filter_candidates(raw, self.limit)
        logger.info("Discovered %d potential new topics", len(report.candidates))

        for topic in report.candidates:
            if await self.store.exists(topic):
                report.known.append(topic)
                continue
            logger.info("Learning about new topic: %s", topic)
            report.learned.append(await self.fetcher.fetch_topic(topic))
        return report
