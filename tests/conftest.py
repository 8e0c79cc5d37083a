"""Shared test fixtures."""

from collections.abc import Callable

import httpx
import pytest_asyncio

from autodidact.acquire.fetcher import USER_AGENT, RenderedPage
from autodidact.db.connection import create_connection
from autodidact.errors import FetchFailure
from autodidact.improve.artifact import ProgramArtifact
from autodidact.improve.deployer import REQUIRED_MARKERS
from autodidact.improve.sandbox import SandboxResult
from autodidact.store.knowledge_store import KnowledgeStore
from autodidact.store.query_log import QueryLog
from autodidact.store.revision_store import RevisionStore


@pytest_asyncio.fixture
async def db():
    """In-memory database with full schema."""
    conn = await create_connection(":memory:")
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def store(db):
    """Knowledge store backed by in-memory DB."""
    return KnowledgeStore(db)


@pytest_asyncio.fixture
async def query_log(db):
    """Query log backed by in-memory DB."""
    return QueryLog(db)


@pytest_asyncio.fixture
async def revisions(db):
    """Revision store backed by in-memory DB."""
    return RevisionStore(db)


class FakeLLM:
    """Controllable fake LLM for testing."""

    def __init__(self, response: str | None = "", available: bool = True):
        self.response = response
        self._available = available
        self.last_prompt: str | None = None
        self.last_system: str | None = None
        self.generate_count = 0

    async def is_available(self) -> bool:
        return self._available

    async def generate(self, prompt: str, *, system: str | None = None) -> str | None:
        self.last_prompt = prompt
        self.last_system = system
        self.generate_count += 1
        if not self._available:
            return None
        return self.response

    async def close(self) -> None:
        pass


class FakeSandbox:
    """Sandbox returning canned results and recording what it ran."""

    def __init__(
        self,
        isolated: SandboxResult | None = None,
        restricted: SandboxResult | None = None,
    ):
        self.isolated = isolated or SandboxResult(returncode=0)
        self.restricted = restricted or SandboxResult(returncode=0)
        self.isolated_runs: list[str] = []
        self.restricted_runs: list[str] = []

    async def run_isolated(self, code: str) -> SandboxResult:
        self.isolated_runs.append(code)
        return self.isolated

    async def evaluate_restricted(self, code: str) -> SandboxResult:
        self.restricted_runs.append(code)
        return self.restricted


class FakeSupervisor:
    """Supervisor whose restart outcomes are scripted, one per call."""

    def __init__(self, results: list[bool] | None = None):
        self.results = list(results) if results is not None else [True]
        self.calls = 0

    async def restart(self) -> bool:
        self.calls += 1
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


class FakeSourceControl:
    """Source control recording publish calls."""

    def __init__(self, result: bool = True):
        self.result = result
        self.published: list[tuple[str, str]] = []

    async def publish(self, path, message: str) -> bool:
        self.published.append((str(path), message))
        return self.result


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


Handler = Callable[[httpx.Request], httpx.Response]


class HttpRenderer:
    """Renderer that serves pages from an httpx mock transport instead of a browser."""

    def __init__(self, handler: Handler):
        self._http: httpx.AsyncClient | None = httpx.AsyncClient(
            transport=httpx.MockTransport(handler)
        )

    async def render(self, url: str, timeout: float) -> RenderedPage:
        assert self._http is not None, "render after close"
        try:
            resp = await self._http.get(
                url, headers={"User-Agent": USER_AGENT}, timeout=timeout, follow_redirects=True
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchFailure(str(exc) or type(exc).__name__) from exc
        return RenderedPage(str(resp.url), resp.text)

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None


class RendererFactory:
    """Builds HttpRenderers and tracks whether each was closed."""

    def __init__(self, handler: Handler):
        self.handler = handler
        self.renderers: list[HttpRenderer] = []

    def __call__(self) -> HttpRenderer:
        renderer = HttpRenderer(self.handler)
        self.renderers.append(renderer)
        return renderer

    @property
    def all_closed(self) -> bool:
        return all(renderer._http is None for renderer in self.renderers)


def html_page(body: str) -> httpx.Response:
    """200 response with an HTML body."""
    return httpx.Response(200, text=f"<html><body>{body}</body></html>")


def make_program(extra: str = "", *, exclude: tuple[str, ...] = ()) -> str:
    """Program text mentioning every required marker except ``exclude``."""
    lines = [f"# uses {marker}" for marker in REQUIRED_MARKERS if marker not in exclude]
    lines.append(extra)
    return "\n".join(lines) + "\n"


@pytest_asyncio.fixture
async def fake_llm():
    """Controllable fake LLM client."""
    return FakeLLM()


@pytest_asyncio.fixture
async def artifact(tmp_path):
    """Program artifact seeded with a valid running program."""
    program = ProgramArtifact(tmp_path / "agent_program.py")
    program.write(make_program("# running"))
    return program
