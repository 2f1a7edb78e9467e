"""robots.txt policy for one source host."""

from typing import Optional
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import httpx
import structlog

from palbase.scrapers.utils.retry import http_retry
from palbase.scrapers.utils.user_agents import BOT_NAME, BOT_USER_AGENT

logger = structlog.get_logger(__name__)


class RobotsPolicy:
    """Allow/deny and crawl-delay decisions for a single site.

    The policy is loaded once per run. A missing or unreachable robots.txt
    allows everything.
    """

    def __init__(self, base_url: str, user_agent: str = BOT_NAME, timeout: float = 10.0):
        parsed = urlparse(base_url)
        self.robots_url = f"{parsed.scheme}://{parsed.netloc}/robots.txt"
        self.user_agent = user_agent
        self.timeout = timeout
        self._parser: Optional[RobotFileParser] = None
        self.loaded = False

    @http_retry
    async def _fetch(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.get(self.robots_url, follow_redirects=True)

    async def load(self, client: Optional[httpx.AsyncClient] = None) -> None:
        """Fetch and parse robots.txt."""
        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"User-Agent": BOT_USER_AGENT},
            )
        try:
            response = await self._fetch(client)
            if response.status_code == 200:
                self.load_text(response.text)
            else:
                logger.info(
                    "robots_not_found",
                    robots_url=self.robots_url,
                    status_code=response.status_code,
                )
                self._parser = None
        except httpx.HTTPError as e:
            logger.warning("robots_fetch_failed", robots_url=self.robots_url, error=str(e))
            self._parser = None
        finally:
            self.loaded = True
            if owns_client:
                await client.aclose()

    def load_text(self, text: str) -> None:
        """Parse robots.txt content directly."""
        parser = RobotFileParser()
        parser.parse(text.splitlines())
        self._parser = parser
        self.loaded = True

    def is_allowed(self, url: str) -> bool:
        if self._parser is None:
            return True
        return self._parser.can_fetch(self.user_agent, url)

    def crawl_delay(self) -> float:
        """Crawl-delay in seconds for our user agent, 0.0 when unset."""
        if self._parser is None:
            return 0.0
        delay = self._parser.crawl_delay(self.user_agent)
        return float(delay) if delay else 0.0
