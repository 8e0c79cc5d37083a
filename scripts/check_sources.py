"""Quick check that every knowledge and trend source renders and its selector matches."""

import asyncio
import sys

from autodidact.acquire.discovery import DEFAULT_TREND_SOURCES
from autodidact.acquire.fetcher import DEFAULT_SOURCES, PageRenderer, load_page
from autodidact.config import get_fetch_timeout
from autodidact.errors import FetchFailure


async def check(renderer: PageRenderer, name: str, url: str, selector: str) -> bool:
    """Render one page and report how many elements the selector matched."""
    try:
        page = await load_page(renderer, url, get_fetch_timeout())
        matched = page.select(selector)
    except FetchFailure as e:
        print(f"  {name}: {url} failed: {e.message}")
        return False
    if not matched:
        print(f"  {name}: {url} returned no elements for {selector!r}")
        return False
    print(f"  {name}: {len(matched)} element(s) for {selector!r}")
    return True


async def run(topic: str) -> bool:
    ok = True
    renderer = PageRenderer()
    try:
        print(f"Knowledge sources for {topic}:")
        for source in DEFAULT_SOURCES:
            ok = await check(renderer, source.name, source.url_for(topic), source.selector) and ok
        print("Trend sources:")
        for trend in DEFAULT_TREND_SOURCES:
            ok = await check(renderer, trend.name, trend.url, trend.selector) and ok
    finally:
        await renderer.close()
    return ok


def main() -> None:
    """Check each source for a sample topic (default: Python)."""
    topic = sys.argv[1] if len(sys.argv) > 1 else "Python"
    if not asyncio.run(run(topic)):
        sys.exit(1)


if __name__ == "__main__":
    main()
