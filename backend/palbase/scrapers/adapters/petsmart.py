"""PetSmart Charities adapter.

The find-a-pet page lists partner-shelter animals. The species is picked by
clicking a filter link and further results are reached through numbered
pagination links on the same page.
"""

import asyncio
import re
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from palbase.scrapers.base import BaseBrowserAdapter, ScrapedPet, ScrapeResult
from palbase.scrapers.utils.dom import first_text, image_urls, iter_links, node_text
from palbase.scrapers.utils.ids import fallback_id, id_from_url
from palbase.scrapers.utils.normalizer import (
    normalize_age,
    normalize_breed,
    normalize_description,
    normalize_gender,
    normalize_size,
    normalize_species,
    normalize_state,
    split_city_state,
)

PET_ID_RE = re.compile(r"/find-a-pet/results/(\d+)")
# Partner locations are printed as "CITY NAME ST"
_LOCATION_RE = re.compile(r"\b([A-Z][A-Z\s]+?)\s+([A-Z]{2})\b")
_ALL_CAPS_RE = re.compile(r"^[A-Z\s]+$")
PARTNER_SHELTER_NAME = "PetSmart Charities Partner"


class PetSmartAdapter(BaseBrowserAdapter):
    """Scrapes dogs and cats listed by PetSmart Charities partners."""

    source = "petsmart"
    source_name = "PetSmart Charities"
    base_url = "https://www.petsmartcharities.org"
    find_url = "https://www.petsmartcharities.org/adopt-a-pet/find-a-pet"

    SPECIES_FILTERS = [("dogs", "dog"), ("cats", "cat")]
    MAX_PAGES = 10
    LINK_SELECTOR = 'a[href*="/find-a-pet/results/"]'
    NEXT_PAGE_SELECTOR = 'a[href*="page_number"]:last-of-type, .pagination a:last-child'

    filter_timeout_ms: int = 10000
    results_timeout_ms: int = 15000
    settle_seconds: float = 2.0

    async def scrape(self) -> ScrapeResult:
        result = ScrapeResult()
        for label, species in self.SPECIES_FILTERS:
            await self._run_subunit(
                result,
                label,
                self.find_url,
                self._scrape_species,
                result,
                label,
                species,
            )
        return result

    async def _scrape_species(self, result: ScrapeResult, label: str, species: str) -> None:
        page = await self.new_page()
        try:
            await self.navigate(page, self.find_url)
            await self._apply_species_filter(page, label)
            await self.wait_for_selector(page, self.LINK_SELECTOR, self.results_timeout_ms)

            for page_num in range(1, self.MAX_PAGES + 1):
                soup = await self.page_soup(page)
                pets = self.extract_from_listing(soup, species)
                if not pets:
                    self.logger.info("no_pets_on_page", species=label, page=page_num)
                    break
                added = sum(1 for pet in pets if result.add_pet(pet))
                self.logger.info("results_page_scraped", species=label, page=page_num, found=len(pets), added=added)

                if page_num == self.MAX_PAGES or not await self._next_page(page):
                    break
        finally:
            await page.close()

    async def _apply_species_filter(self, page: Page, label: str) -> None:
        try:
            await page.click(f"text={label}", timeout=self.filter_timeout_ms)
            await asyncio.sleep(self.settle_seconds)
        except PlaywrightTimeoutError:
            self.logger.info("species_filter_not_found", species=label)

    async def _next_page(self, page: Page) -> bool:
        """Follow the pagination link. False when there is no further page or robots.txt disallows it."""
        next_link = await page.query_selector(self.NEXT_PAGE_SELECTOR)
        if next_link is None:
            return False
        href = await next_link.get_attribute("href")
        url = urljoin(self.find_url, href) if href else self.find_url
        if not self.robots.is_allowed(url):
            self.logger.info("robots_disallowed", url=url)
            return False
        await self.throttle.wait()
        async with self.concurrency.slot(url):
            try:
                await next_link.click()
            except PlaywrightTimeoutError:
                return False
        await asyncio.sleep(self.settle_seconds)
        return True

    @staticmethod
    def _breed_from_card(card: Tag, name: str) -> Optional[str]:
        """First card line that is not the name, a call to action or an all-caps location."""
        for line in card.get_text("\n", strip=True).split("\n"):
            line = line.strip()
            if not line or line == name:
                continue
            if "HI!" in line or "learn more" in line.lower():
                continue
            if _ALL_CAPS_RE.match(line):
                continue
            if 2 < len(line) < 50:
                return line
        return None

    def extract_from_listing(self, soup: BeautifulSoup, species: str) -> List[ScrapedPet]:
        pets: List[ScrapedPet] = []
        for link, url in iter_links(soup, self.LINK_SELECTOR, self.base_url):
            card = link.find_parent("div") or link.parent
            if card is None:
                continue
            name = first_text(card, 'h4, strong, [class*="name"]')
            if not name:
                continue

            city = state = None
            match = _LOCATION_RE.search(node_text(card))
            if match:
                city = match.group(1).strip().title()
                state = normalize_state(match.group(2))

            pets.append(
                ScrapedPet(
                    source_id=id_from_url(url, PET_ID_RE) or fallback_id("ps", url),
                    name=name,
                    source_url=url,
                    species=species,
                    breed_primary=normalize_breed(self._breed_from_card(card, name)),
                    location_city=city,
                    location_state=state,
                    shelter_name=PARTNER_SHELTER_NAME,
                )
            )
        return pets

    def extract_pet_detail(self, soup: BeautifulSoup, url: str) -> Optional[ScrapedPet]:
        name = first_text(soup, 'h1, h2, [class*="name"]')
        if not name:
            return None
        page_text = node_text(soup.body or soup)
        lowered = page_text.lower()
        city, state = split_city_state(first_text(soup, '[class*="location"]'))

        photos = [
            src
            for src in image_urls(soup, self.base_url)
            if any(hint in src.lower() for hint in ("pet", "animal", "adopt"))
        ]
        return ScrapedPet(
            source_id=id_from_url(url, PET_ID_RE) or fallback_id("ps", url),
            name=name,
            source_url=url,
            species="cat" if normalize_species(lowered) == "cat" else "dog",
            breed_primary=normalize_breed(first_text(soup, '[class*="breed"]')),
            age=normalize_age(lowered),
            size=normalize_size(lowered),
            gender=normalize_gender(lowered),
            description=normalize_description(
                first_text(soup, '[class*="description"], [class*="about"], [class*="bio"]')
            ),
            photos=photos,
            location_city=city,
            location_state=state,
            shelter_name=PARTNER_SHELTER_NAME,
        )
