"""Base source adapter interface.

Every upstream source is implemented as an adapter exposing the same
capabilities: initialize(), scrape(), parse_single_page() and cleanup().
API-backed sources inherit BaseAPIAdapter; rendered sites inherit
BaseBrowserAdapter. Per-run state (throttle, robots policy, browser context,
seen ids) belongs to the adapter instance; a fresh instance is created for
every run.
"""

import asyncio
import traceback
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import httpx
import structlog
from bs4 import BeautifulSoup
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from palbase.config import settings
from palbase.core.exceptions import ParseError, RateLimitBackoff, RobotsPolicyBlock
from palbase.models.enums import AgeClass, ErrorType, Gender, SizeClass, Species
from palbase.scrapers.utils.rate_limiter import DomainConcurrencyLimiter, RequestThrottle
from palbase.scrapers.utils.retry import navigation_retry
from palbase.scrapers.utils.robots import RobotsPolicy
from palbase.scrapers.utils.user_agents import BOT_USER_AGENT

logger = structlog.get_logger(__name__)

_SPECIES = {s.value for s in Species}
_AGES = {a.value for a in AgeClass}
_SIZES = {s.value for s in SizeClass}
_GENDERS = {g.value for g in Gender}


@dataclass
class ScrapedPet:
    """Normalized pet listing returned by all adapters."""

    source_id: str
    name: str
    source_url: Optional[str] = None
    species: str = "other"
    breed_primary: Optional[str] = None
    breed_secondary: Optional[str] = None
    age: Optional[str] = None
    size: Optional[str] = None
    gender: str = "unknown"
    color: Optional[str] = None
    description: Optional[str] = None
    photos: List[str] = field(default_factory=list)
    location_city: Optional[str] = None
    location_state: Optional[str] = None
    location_zip: Optional[str] = None
    shelter_source_id: Optional[str] = None  # Resolved to shelter_id by the sync service
    shelter_name: Optional[str] = None
    shelter_email: Optional[str] = None
    shelter_phone: Optional[str] = None
    good_with_kids: Optional[bool] = None
    good_with_dogs: Optional[bool] = None
    good_with_cats: Optional[bool] = None
    house_trained: Optional[bool] = None
    spayed_neutered: Optional[bool] = None
    special_needs: Optional[bool] = None
    adoption_fee: Optional[Decimal] = None

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.source_id:
            raise ValueError("source_id is required")
        if not self.name:
            raise ValueError("name is required")
        if self.species not in _SPECIES:
            raise ValueError(f"Invalid species: {self.species}")
        if self.gender not in _GENDERS:
            raise ValueError(f"Invalid gender: {self.gender}")
        if self.age is not None and self.age not in _AGES:
            raise ValueError(f"Invalid age: {self.age}")
        if self.size is not None and self.size not in _SIZES:
            raise ValueError(f"Invalid size: {self.size}")

    def to_record(self) -> Dict[str, Any]:
        """Column values for the pets table (without source or timestamps)."""
        record = asdict(self)
        record.pop("shelter_source_id")
        return record


@dataclass
class ShelterRecord:
    """Shelter discovered while scraping a source."""

    source_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None

    def __post_init__(self):
        if not self.source_id:
            raise ValueError("source_id is required")
        if not self.name:
            raise ValueError("name is required")

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StructuredError:
    """A recoverable failure of one sub-unit of a scrape."""

    error_type: str
    message: str
    url: Optional[str] = None
    stack_trace: Optional[str] = None


@dataclass
class ScrapeResult:
    """Everything one adapter run produced.

    Pets and shelters are deduplicated by source_id for the lifetime of the
    result, so nested location/species loops never emit the same pet twice.
    """

    pets: List[ScrapedPet] = field(default_factory=list)
    shelters: List[ShelterRecord] = field(default_factory=list)
    errors: List[StructuredError] = field(default_factory=list)
    _seen_pets: Set[str] = field(default_factory=set, repr=False)
    _seen_shelters: Set[str] = field(default_factory=set, repr=False)

    def add_pet(self, pet: ScrapedPet) -> bool:
        """Add a pet unless its source_id was already seen. Returns True if added."""
        if pet.source_id in self._seen_pets:
            return False
        self._seen_pets.add(pet.source_id)
        self.pets.append(pet)
        return True

    def add_shelter(self, shelter: ShelterRecord) -> bool:
        if shelter.source_id in self._seen_shelters:
            return False
        self._seen_shelters.add(shelter.source_id)
        self.shelters.append(shelter)
        return True

    def add_error(
        self,
        error_type: ErrorType,
        message: str,
        url: Optional[str] = None,
        stack_trace: Optional[str] = None,
    ) -> None:
        self.errors.append(
            StructuredError(
                error_type=error_type.value,
                message=message,
                url=url,
                stack_trace=stack_trace,
            )
        )

    def has_pet(self, source_id: str) -> bool:
        return source_id in self._seen_pets


class BaseAdapter(ABC):
    """Abstract base class for all source adapters (API and browser).

    Lifecycle per run: initialize() -> scrape() -> cleanup(). cleanup() must
    be safe to call even if initialize() failed part way.
    """

    source: str = ""  # Must be overridden in subclass (e.g., "petfinder")
    source_name: str = ""
    adapter_type: str = ""  # 'api' or 'browser'

    def __init__(self):
        self.logger = logger.bind(adapter=self.source)

    async def initialize(self) -> None:
        """Acquire resources needed for scraping."""

    @abstractmethod
    async def scrape(self) -> ScrapeResult:
        """Fetch every listing for this source.

        Sub-unit failures are recorded in ScrapeResult.errors and never abort
        sibling sub-units.
        """

    async def parse_single_page(self, url: str) -> Optional[ScrapedPet]:
        """Parse one listing detail page. Returns None when nothing is produced."""
        return None

    async def cleanup(self) -> None:
        """Release resources. Idempotent."""

    async def _run_subunit(
        self,
        result: ScrapeResult,
        label: str,
        url: Optional[str],
        func: Callable[..., Awaitable[None]],
        *args: Any,
    ) -> None:
        """Run one sub-unit, capturing any failure as a structured error."""
        try:
            await func(*args)
        except RobotsPolicyBlock as e:
            self.logger.info("robots_disallowed", subunit=label, url=e.url)
        except RateLimitBackoff as e:
            self.logger.warning("subunit_rate_limited", subunit=label, attempts=e.attempts)
            result.add_error(ErrorType.RATE_LIMITED, f"{label}: {e.message}", url or e.url)
        except Exception as e:
            self.logger.error("subunit_failed", subunit=label, url=url, error=str(e))
            result.add_error(
                ErrorType.FETCH_ERROR,
                f"{label}: {e}",
                url,
                traceback.format_exc(),
            )


class BaseAPIAdapter(BaseAdapter):
    """Base class for adapters backed by a JSON HTTP API."""

    adapter_type = "api"
    timeout: float = 30.0

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        super().__init__()
        self._client = client
        self._owns_client = client is None

    def _default_headers(self) -> Dict[str, str]:
        return {"User-Agent": BOT_USER_AGENT, "Accept": "application/json"}

    async def initialize(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self._default_headers(),
            )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(f"{self.source} adapter used before initialize()")
        return self._client

    async def cleanup(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class BaseBrowserAdapter(BaseAdapter):
    """Base class for adapters that drive a headless browser.

    Provides robots-aware, throttled navigation, bounded infinite scrolling
    and HTML parsing. Subclasses implement scrape() and optionally
    extract_pet_detail() for detail-page enrichment.
    """

    adapter_type = "browser"
    base_url: str = ""
    scroll_pause: float = 1.5

    def __init__(
        self,
        browser_manager=None,
        throttle: Optional[RequestThrottle] = None,
        concurrency: Optional[DomainConcurrencyLimiter] = None,
        robots: Optional[RobotsPolicy] = None,
    ):
        super().__init__()
        self.browser_manager = browser_manager
        self.throttle = throttle or RequestThrottle(
            settings.SCRAPER_RATE_LIMIT_MIN_MS / 1000.0,
            settings.SCRAPER_RATE_LIMIT_MAX_MS / 1000.0,
        )
        self.concurrency = concurrency or DomainConcurrencyLimiter(settings.SCRAPER_MAX_CONCURRENT)
        self.robots = robots or RobotsPolicy(self.base_url)
        self._context_open = False

    async def initialize(self) -> None:
        """Load robots.txt once and make sure the browser is available."""
        if self.browser_manager is None:
            from palbase.scrapers.utils.browser_manager import get_browser_manager

            self.browser_manager = get_browser_manager()
        if not self.robots.loaded:
            await self.robots.load()
        self.throttle.crawl_delay = self.robots.crawl_delay()
        await self.browser_manager.start()
        self.logger.info("adapter_initialized", crawl_delay=self.throttle.crawl_delay)

    async def cleanup(self) -> None:
        if self._context_open and self.browser_manager is not None:
            await self.browser_manager.close_context(self.source)
            self._context_open = False

    async def new_page(self) -> Page:
        page = await self.browser_manager.new_page(self.source)
        self._context_open = True
        return page

    async def navigate(self, page: Page, url: str, wait_until: str = "networkidle") -> None:
        """Navigate after the robots check and the politeness delay.

        Raises:
            RobotsPolicyBlock: If robots.txt disallows the URL
        """
        if not self.robots.is_allowed(url):
            raise RobotsPolicyBlock(url)
        await self.throttle.wait()
        async with self.concurrency.slot(url):
            await self._goto(page, url, wait_until)

    @navigation_retry
    async def _goto(self, page: Page, url: str, wait_until: str) -> None:
        await page.goto(url, wait_until=wait_until)

    async def wait_for_selector(self, page: Page, selector: str, timeout_ms: int = 10000) -> bool:
        """Wait for a selector; False on timeout instead of raising."""
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            self.logger.debug("selector_wait_timeout", selector=selector)
            return False

    async def wait_for_content(
        self,
        page: Page,
        link_selector: str,
        min_text_length: int = 5000,
        timeout_ms: int = 15000,
    ) -> bool:
        """Wait until listing links appear or the body holds enough text."""
        script = (
            "([sel, minLen]) => document.querySelectorAll(sel).length > 0"
            " || document.body.innerText.length > minLen"
        )
        try:
            await page.wait_for_function(script, arg=[link_selector, min_text_length], timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            self.logger.debug("content_wait_timeout", selector=link_selector)
            return False

    async def scroll_to_bottom(
        self,
        page: Page,
        max_attempts: int,
        load_more_selector: Optional[str] = None,
    ) -> int:
        """Scroll until the page height stops growing or attempts run out.

        When the height is unchanged and ``load_more_selector`` matches a
        visible button it is clicked and scrolling continues.

        Returns:
            Number of scroll attempts made
        """
        last_height = await page.evaluate("document.body.scrollHeight")
        attempts = 0
        while attempts < max_attempts:
            attempts += 1
            await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
            await asyncio.sleep(self.scroll_pause)
            height = await page.evaluate("document.body.scrollHeight")
            if height == last_height and load_more_selector:
                if await self._click_load_more(page, load_more_selector):
                    await asyncio.sleep(self.scroll_pause)
                    height = await page.evaluate("document.body.scrollHeight")
            if height == last_height:
                break
            last_height = height
        self.logger.debug("scroll_finished", attempts=attempts, height=last_height)
        return attempts

    async def _click_load_more(self, page: Page, selector: str) -> bool:
        button = await page.query_selector(selector)
        if button is None:
            return False
        try:
            await button.click()
            return True
        except PlaywrightTimeoutError:
            return False

    async def page_soup(self, page: Page) -> BeautifulSoup:
        html = await page.content()
        return BeautifulSoup(html, "lxml")

    async def parse_single_page(self, url: str) -> Optional[ScrapedPet]:
        """Parse one detail page; failures are logged and give None."""
        try:
            return await self._scrape_pet_page(url)
        except RobotsPolicyBlock:
            self.logger.info("robots_disallowed", url=url)
            return None
        except Exception as e:
            self.logger.warning("pet_page_parse_failed", url=url, error=str(e))
            return None

    async def _scrape_pet_page(self, url: str) -> ScrapedPet:
        """Navigate to a detail page and extract it.

        Raises:
            ParseError: If the page cannot be parsed or yields no usable record
        """
        page = await self.new_page()
        try:
            await self.navigate(page, url)
            soup = await self.page_soup(page)
        finally:
            await page.close()
        try:
            pet = self.extract_pet_detail(soup, url)
        except Exception as e:
            raise ParseError(self.source, url, str(e) or e.__class__.__name__) from e
        if pet is None:
            raise ParseError(self.source, url, "no pet data found on page")
        return pet

    def extract_pet_detail(self, soup: BeautifulSoup, url: str) -> Optional[ScrapedPet]:
        """Build a pet from a detail page. Sources without detail parsing return None."""
        return None
