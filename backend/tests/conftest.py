"""Pytest configuration and shared fixtures."""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RESCUEGROUPS_API_KEY", "test-key")

from typing import Callable, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from palbase.models.base import Base  # noqa: E402
import palbase.models  # noqa: E402,F401
from palbase.scrapers.base import BaseAdapter, ScrapedPet, ScrapeResult  # noqa: E402


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


# ============================================================================
# ADAPTER DOUBLES
# ============================================================================

def make_pet(source_id: str, **fields) -> ScrapedPet:
    fields.setdefault("name", f"Pet {source_id}")
    fields.setdefault("species", "dog")
    return ScrapedPet(source_id=source_id, **fields)


class StaticAdapter(BaseAdapter):
    """Adapter returning a prepared result (or raising) and recording its lifecycle."""

    adapter_type = "api"

    def __init__(self, source: str, result: Optional[ScrapeResult] = None, error: Optional[Exception] = None):
        self.source = source
        super().__init__()
        self.result = result or ScrapeResult()
        self.error = error
        self.calls: List[str] = []

    async def initialize(self) -> None:
        self.calls.append("initialize")

    async def scrape(self) -> ScrapeResult:
        self.calls.append("scrape")
        if self.error is not None:
            raise self.error
        return self.result

    async def cleanup(self) -> None:
        self.calls.append("cleanup")


class StubAdapterFactory:
    """Stands in for AdapterFactory; builds adapters from per-source callables."""

    def __init__(self, builders: Dict[str, Callable[[], BaseAdapter]]):
        self.builders = builders
        self.created: List[BaseAdapter] = []

    def create_adapter(self, source: str) -> Optional[BaseAdapter]:
        builder = self.builders.get(source)
        if builder is None:
            return None
        adapter = builder()
        self.created.append(adapter)
        return adapter


class FakeElement:
    def __init__(self, on_click: Callable[[], None], href: Optional[str] = None):
        self._on_click = on_click
        self.href = href
        self.clicks = 0

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.href if name == "href" else None

    async def click(self, **kwargs) -> None:
        self.clicks += 1
        self._on_click()


class FakePage:
    """Minimal async Playwright Page double.

    ``heights`` is the sequence of document heights returned by successive
    scrollHeight evaluations; the last value repeats.
    """

    def __init__(self, html: str = "<html><body></body></html>", heights: Optional[List[int]] = None):
        self.html = html
        self.heights = list(heights or [1000])
        self.visited: List[str] = []
        self.scrolls = 0
        self.closed = False
        self.load_more: Optional[FakeElement] = None
        self.handlers: Dict[str, List[Callable]] = {}

    def _height(self) -> int:
        if len(self.heights) > 1:
            return self.heights.pop(0)
        return self.heights[0]

    async def goto(self, url: str, **kwargs) -> None:
        self.visited.append(url)

    async def evaluate(self, script: str, *args):
        if "scrollTo" in script:
            self.scrolls += 1
            return None
        if "scrollHeight" in script:
            return self._height()
        return None

    async def wait_for_selector(self, selector: str, **kwargs) -> None:
        return None

    async def wait_for_function(self, script: str, **kwargs) -> None:
        return None

    async def query_selector(self, selector: str):
        return self.load_more

    async def click(self, selector: str, **kwargs) -> None:
        return None

    async def content(self) -> str:
        return self.html

    def on(self, event: str, handler: Callable) -> None:
        self.handlers.setdefault(event, []).append(handler)

    async def close(self) -> None:
        self.closed = True


class FakeBrowserManager:
    """Hands out FakePages in order and records context lifecycle."""

    def __init__(self, pages: Optional[List[FakePage]] = None):
        self.pages = list(pages or [])
        self.opened: List[FakePage] = []
        self.closed_contexts: List[str] = []
        self.started = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def new_page(self, name: str = "default") -> FakePage:
        page = self.pages.pop(0) if self.pages else FakePage()
        self.opened.append(page)
        return page

    async def close_context(self, name: str) -> None:
        self.closed_contexts.append(name)


class AllowAllRobots:
    loaded = True

    def __init__(self, disallowed=()):
        self.disallowed = set(disallowed)

    async def load(self, client=None) -> None:
        return None

    def is_allowed(self, url: str) -> bool:
        return url not in self.disallowed

    def crawl_delay(self) -> float:
        return 0.0


class NoWaitThrottle:
    crawl_delay = 0.0

    def __init__(self):
        self.waits = 0

    async def wait(self) -> float:
        self.waits += 1
        return 0.0


@pytest.fixture
def browser_kwargs():
    """Constructor kwargs that keep a browser adapter fully offline."""
    def _build(pages=None, disallowed=()):
        return {
            "browser_manager": FakeBrowserManager(pages),
            "throttle": NoWaitThrottle(),
            "robots": AllowAllRobots(disallowed),
        }
    return _build
