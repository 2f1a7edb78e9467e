"""Tests for the adapter base classes and the crawling utilities they use."""

import httpx
import pytest

from conftest import FakeBrowserManager, FakeElement, FakePage, make_pet
from palbase.core.exceptions import FetchError, RateLimitBackoff, RobotsPolicyBlock
from palbase.scrapers.adapters import ASPCAAdapter
from palbase.scrapers.base import BaseAdapter, ScrapedPet, ScrapeResult, ShelterRecord
from palbase.scrapers.utils.rate_limiter import DomainConcurrencyLimiter, RequestThrottle
from palbase.scrapers.utils.retry import http_retry
from palbase.scrapers.utils.robots import RobotsPolicy


# ============================================================================
# RESULT TYPES
# ============================================================================

class TestScrapedPet:
    def test_defaults(self):
        pet = ScrapedPet(source_id="1", name="Rex")
        assert pet.species == "other"
        assert pet.gender == "unknown"
        assert pet.photos == []

    @pytest.mark.parametrize(
        "fields",
        [
            {"source_id": "", "name": "Rex"},
            {"source_id": "1", "name": ""},
            {"source_id": "1", "name": "Rex", "species": "dragon"},
            {"source_id": "1", "name": "Rex", "gender": "m"},
            {"source_id": "1", "name": "Rex", "age": "old"},
            {"source_id": "1", "name": "Rex", "size": "huge"},
        ],
    )
    def test_rejects_invalid_values(self, fields):
        with pytest.raises(ValueError):
            ScrapedPet(**fields)

    def test_record_drops_shelter_reference(self):
        record = make_pet("1", shelter_source_id="org-9").to_record()
        assert "shelter_source_id" not in record
        assert record["source_id"] == "1"


class TestScrapeResult:
    def test_pets_deduplicated_by_source_id(self):
        result = ScrapeResult()
        assert result.add_pet(make_pet("1", name="First")) is True
        assert result.add_pet(make_pet("1", name="Second")) is False
        assert [p.name for p in result.pets] == ["First"]
        assert result.has_pet("1")

    def test_shelters_deduplicated_by_source_id(self):
        result = ScrapeResult()
        result.add_shelter(ShelterRecord(source_id="s1", name="One"))
        result.add_shelter(ShelterRecord(source_id="s1", name="One again"))
        assert len(result.shelters) == 1


# ============================================================================
# SUB-UNIT CONTAINMENT
# ============================================================================

class ThreeUnitAdapter(BaseAdapter):
    source = "units"

    def __init__(self, failure: Exception):
        super().__init__()
        self.failure = failure

    async def _good(self, result: ScrapeResult, source_id: str) -> None:
        result.add_pet(make_pet(source_id))

    async def _bad(self) -> None:
        raise self.failure

    async def scrape(self) -> ScrapeResult:
        result = ScrapeResult()
        await self._run_subunit(result, "first", "https://example.org/1", self._good, result, "1")
        await self._run_subunit(result, "second", "https://example.org/2", self._bad)
        await self._run_subunit(result, "third", "https://example.org/3", self._good, result, "3")
        return result


class TestSubunitContainment:
    async def test_fetch_failure_recorded_and_siblings_continue(self):
        result = await ThreeUnitAdapter(FetchError("units", "HTTP 503")).scrape()

        assert [p.source_id for p in result.pets] == ["1", "3"]
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.error_type == "fetch_error"
        assert error.url == "https://example.org/2"
        assert error.message.startswith("second:")
        assert "FetchError" in error.stack_trace

    async def test_unexpected_exception_is_a_fetch_error(self):
        result = await ThreeUnitAdapter(KeyError("missing")).scrape()
        assert [e.error_type for e in result.errors] == ["fetch_error"]

    async def test_rate_limit_recorded_as_rate_limited(self):
        result = await ThreeUnitAdapter(RateLimitBackoff("units", 3)).scrape()
        assert [e.error_type for e in result.errors] == ["rate_limited"]
        assert len(result.pets) == 2

    async def test_robots_block_is_skipped_silently(self):
        result = await ThreeUnitAdapter(RobotsPolicyBlock("https://example.org/2")).scrape()
        assert result.errors == []
        assert len(result.pets) == 2


# ============================================================================
# PACING
# ============================================================================

class FakeClock:
    def __init__(self, *times: float):
        self.times = list(times)

    def __call__(self) -> float:
        if len(self.times) > 1:
            return self.times.pop(0)
        return self.times[0]


class TestRequestThrottle:
    @pytest.fixture
    def sleeps(self):
        return []

    def _throttle(self, sleeps, clock, min_delay=2.0, max_delay=2.0):
        async def fake_sleep(seconds):
            sleeps.append(seconds)

        return RequestThrottle(min_delay, max_delay, clock=clock, sleep=fake_sleep)

    async def test_first_request_not_delayed(self, sleeps):
        throttle = self._throttle(sleeps, FakeClock(100.0))
        assert await throttle.wait() == 0.0
        assert sleeps == []

    async def test_sleeps_only_remaining_delay(self, sleeps):
        throttle = self._throttle(sleeps, FakeClock(100.0, 100.5, 102.0))
        await throttle.wait()
        slept = await throttle.wait()
        assert slept == pytest.approx(1.5)
        assert sleeps == [pytest.approx(1.5)]

    async def test_no_sleep_when_enough_time_passed(self, sleeps):
        throttle = self._throttle(sleeps, FakeClock(100.0, 110.0))
        await throttle.wait()
        assert await throttle.wait() == 0.0
        assert sleeps == []

    async def test_crawl_delay_raises_lower_bound(self, sleeps):
        throttle = self._throttle(sleeps, FakeClock(100.0, 100.0, 105.0))
        throttle.crawl_delay = 5.0
        await throttle.wait()
        await throttle.wait()
        assert sleeps == [pytest.approx(5.0)]

    def test_delay_drawn_within_bounds(self):
        throttle = RequestThrottle(2.0, 5.0)
        for _ in range(50):
            assert 2.0 <= throttle.next_delay() <= 5.0


class TestDomainConcurrencyLimiter:
    def test_one_semaphore_per_domain(self):
        limiter = DomainConcurrencyLimiter(2)
        assert limiter.slot("https://Example.org/a") is limiter.slot("https://example.org/b")
        assert limiter.slot("https://example.org/a") is not limiter.slot("https://other.org/a")

    def test_minimum_of_one(self):
        assert DomainConcurrencyLimiter(0).max_concurrent == 1


# ============================================================================
# RETRY
# ============================================================================

class TestHttpRetry:
    async def test_retries_transport_errors_then_succeeds(self):
        calls = []
        sleeps = []

        @http_retry
        async def fetch():
            calls.append(1)
            if len(calls) < 3:
                raise httpx.ConnectError("connection refused")
            return "ok"

        async def no_sleep(seconds):
            sleeps.append(seconds)

        assert await fetch.retry_with(sleep=no_sleep)() == "ok"
        assert len(calls) == 3
        assert len(sleeps) == 2

    async def test_gives_up_after_three_attempts(self):
        calls = []

        @http_retry
        async def fetch():
            calls.append(1)
            raise httpx.ReadTimeout("timed out")

        async def no_sleep(seconds):
            return None

        with pytest.raises(httpx.ReadTimeout):
            await fetch.retry_with(sleep=no_sleep)()
        assert len(calls) == 3


# ============================================================================
# ROBOTS
# ============================================================================

ROBOTS_TXT = """
User-agent: *
Disallow: /private/
Crawl-delay: 3
"""


class TestRobotsPolicy:
    def test_robots_url_from_base(self):
        assert RobotsPolicy("https://www.aspca.org/nyc/x").robots_url == "https://www.aspca.org/robots.txt"

    def test_unloaded_policy_allows_everything(self):
        policy = RobotsPolicy("https://example.org")
        assert policy.is_allowed("https://example.org/private/1")
        assert policy.crawl_delay() == 0.0

    def test_parsed_rules(self):
        policy = RobotsPolicy("https://example.org")
        policy.load_text(ROBOTS_TXT)
        assert policy.loaded
        assert not policy.is_allowed("https://example.org/private/1")
        assert policy.is_allowed("https://example.org/pets/1")
        assert policy.crawl_delay() == 3.0

    async def test_load_from_server(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/robots.txt"
            return httpx.Response(200, text=ROBOTS_TXT)

        policy = RobotsPolicy("https://example.org")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await policy.load(client)
        assert not policy.is_allowed("https://example.org/private/1")

    async def test_missing_robots_allows_everything(self):
        policy = RobotsPolicy("https://example.org")
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        async with httpx.AsyncClient(transport=transport) as client:
            await policy.load(client)
        assert policy.loaded
        assert policy.is_allowed("https://example.org/private/1")


# ============================================================================
# BROWSER ADAPTER PLUMBING
# ============================================================================

class FailingPage(FakePage):
    async def goto(self, url: str, **kwargs) -> None:
        raise RuntimeError("renderer crashed")


@pytest.fixture
def make_aspca(browser_kwargs):
    def _build(pages=None, disallowed=()):
        adapter = ASPCAAdapter(**browser_kwargs(pages, disallowed))
        adapter.scroll_pause = 0
        return adapter
    return _build


class TestBrowserAdapter:
    async def test_initialize_uses_crawl_delay_and_starts_browser(self, make_aspca):
        adapter = make_aspca()
        adapter.robots.crawl_delay = lambda: 4.0
        await adapter.initialize()
        assert adapter.browser_manager.started
        assert adapter.throttle.crawl_delay == 4.0

    async def test_navigate_waits_for_throttle(self, make_aspca):
        adapter = make_aspca()
        page = FakePage()
        await adapter.navigate(page, "https://www.aspca.org/a")
        assert page.visited == ["https://www.aspca.org/a"]
        assert adapter.throttle.waits == 1

    async def test_navigate_refuses_disallowed_url(self, make_aspca):
        adapter = make_aspca(disallowed={"https://www.aspca.org/private"})
        page = FakePage()
        with pytest.raises(RobotsPolicyBlock):
            await adapter.navigate(page, "https://www.aspca.org/private")
        assert page.visited == []
        assert adapter.throttle.waits == 0

    async def test_scroll_stops_when_height_settles(self, make_aspca):
        adapter = make_aspca()
        page = FakePage(heights=[1000, 2000, 3000, 3000])
        assert await adapter.scroll_to_bottom(page, max_attempts=10) == 3
        assert page.scrolls == 3

    async def test_scroll_bounded_by_max_attempts(self, make_aspca):
        adapter = make_aspca()
        page = FakePage(heights=list(range(1000, 10000, 500)))
        assert await adapter.scroll_to_bottom(page, max_attempts=4) == 4

    async def test_scroll_clicks_load_more(self, make_aspca):
        adapter = make_aspca()
        page = FakePage(heights=[1000])

        def grow():
            page.heights = [2000]
            page.load_more = None

        button = FakeElement(grow)
        page.load_more = button

        attempts = await adapter.scroll_to_bottom(page, max_attempts=10, load_more_selector=".load-more")
        assert button.clicks == 1
        assert attempts == 2

    async def test_parse_single_page(self, make_aspca):
        html = "<html><body><h1>Biscuit</h1><p>Dog, Male, 2 years</p></body></html>"
        adapter = make_aspca(pages=[FakePage(html)])
        pet = await adapter.parse_single_page("https://www.aspca.org/nyc/adoption/dogs/biscuit")
        assert pet.name == "Biscuit"
        assert pet.source_id == "biscuit"
        assert pet.species == "dog"
        assert adapter.browser_manager.opened[0].closed

    async def test_parse_single_page_without_data_gives_none(self, make_aspca):
        adapter = make_aspca(pages=[FakePage("<html><body><p>Nothing here</p></body></html>")])
        assert await adapter.parse_single_page("https://www.aspca.org/nyc/adoption/dogs/x") is None

    async def test_parse_single_page_failure_gives_none(self, make_aspca):
        adapter = make_aspca(pages=[FailingPage()])
        assert await adapter.parse_single_page("https://www.aspca.org/nyc/adoption/dogs/x") is None

    async def test_cleanup_closes_context_once(self, make_aspca):
        adapter = make_aspca()
        await adapter.cleanup()
        assert adapter.browser_manager.closed_contexts == []

        await adapter.new_page()
        await adapter.cleanup()
        await adapter.cleanup()
        assert adapter.browser_manager.closed_contexts == ["aspca"]

    async def test_falls_back_to_process_browser_manager(self, monkeypatch, browser_kwargs):
        shared = FakeBrowserManager()
        monkeypatch.setattr(
            "palbase.scrapers.utils.browser_manager.get_browser_manager",
            lambda: shared,
        )
        kwargs = browser_kwargs()
        kwargs["browser_manager"] = None
        adapter = ASPCAAdapter(**kwargs)
        await adapter.initialize()
        assert adapter.browser_manager is shared
