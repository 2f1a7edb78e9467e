"""Petfinder adapter.

Petfinder's search pages are a React app that loads animals from its own JSON
API. Two extraction strategies are used per page:

1. Structured-response capture: listen to background network responses and
   keep any JSON payload carrying an ``animals`` list (preferred).
2. DOM fallback: when nothing was captured within the timeout, parse the
   rendered listing cards.
"""

import asyncio
import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from playwright.async_api import Page, Response

from palbase.scrapers.base import BaseBrowserAdapter, ScrapedPet, ScrapeResult
from palbase.scrapers.utils.dom import (
    age_hint,
    find_card,
    first_text,
    gender_hint,
    image_urls,
    iter_links,
)
from palbase.scrapers.utils.ids import fallback_id, id_from_url
from palbase.scrapers.utils.normalizer import (
    normalize_age,
    normalize_boolean,
    normalize_breed,
    normalize_description,
    normalize_gender,
    normalize_size,
    normalize_state,
)

PET_ID_RE = re.compile(r"/pet/[^/]+-(\d+)")


class StructuredResponseCapture:
    """Collects animal objects from Petfinder API responses seen by a page."""

    URL_MARKERS = ("/v2/animals", "api.petfinder.com")

    def __init__(self, logger):
        self.animals: List[Dict[str, Any]] = []
        self.logger = logger

    def attach(self, page: Page) -> None:
        page.on("response", self._on_response)

    def matches(self, url: str) -> bool:
        return any(marker in url for marker in self.URL_MARKERS)

    async def _on_response(self, response: Response) -> None:
        if not self.matches(response.url):
            return
        try:
            payload = await response.json()
        except Exception as e:
            # Body can be gone after navigation or not be JSON at all
            self.logger.debug("response_capture_skipped", url=response.url, error=str(e))
            return
        self.add_payload(payload)

    def add_payload(self, payload: Any) -> int:
        """Keep the ``animals`` list of a decoded payload. Returns how many were added."""
        if not isinstance(payload, dict):
            return 0
        animals = payload.get("animals")
        if not isinstance(animals, list):
            return 0
        found = [a for a in animals if isinstance(a, dict)]
        self.animals.extend(found)
        self.logger.info("api_response_captured", animals=len(found))
        return len(found)

    async def wait(self, timeout: float, poll_interval: float = 0.25) -> bool:
        """Wait until at least one animal was captured or the timeout passes."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not self.animals and loop.time() < deadline:
            await asyncio.sleep(poll_interval)
        return bool(self.animals)


class PetfinderAdapter(BaseBrowserAdapter):
    """Scrapes dogs and cats from Petfinder's national search."""

    source = "petfinder"
    source_name = "Petfinder"
    base_url = "https://www.petfinder.com"

    SEARCH_PATH = "/search/{key}-for-adoption/us/?page={page}"
    SPECIES_KEYS = [("dogs", "dog"), ("cats", "cat")]
    MAX_PAGES = 3
    LINK_SELECTOR = 'a[href*="/pet/"]'

    capture_timeout: float = 5.0
    dom_wait_ms: int = 15000

    def search_url(self, key: str, page: int) -> str:
        return self.base_url + self.SEARCH_PATH.format(key=key, page=page)

    async def scrape(self) -> ScrapeResult:
        result = ScrapeResult()
        for key, species in self.SPECIES_KEYS:
            for page_num in range(1, self.MAX_PAGES + 1):
                before = len(result.pets)
                errors_before = len(result.errors)
                url = self.search_url(key, page_num)
                await self._run_subunit(
                    result,
                    f"{key}:page{page_num}",
                    url,
                    self._scrape_search_page,
                    result,
                    url,
                    species,
                )
                if len(result.pets) == before:
                    self.logger.info(
                        "no_new_pets_stopping",
                        species=key,
                        page=page_num,
                        failed=len(result.errors) > errors_before,
                    )
                    break
        return result

    async def _scrape_search_page(self, result: ScrapeResult, url: str, species: str) -> None:
        page = await self.new_page()
        capture = StructuredResponseCapture(self.logger)
        capture.attach(page)
        try:
            await self.navigate(page, url)
            if await capture.wait(self.capture_timeout):
                pets = [p for p in (self.map_animal(a, species) for a in capture.animals) if p]
                strategy = "structured"
            else:
                await self.wait_for_selector(page, self.LINK_SELECTOR, self.dom_wait_ms)
                soup = await self.page_soup(page)
                pets = self.extract_from_listing(soup, species)
                strategy = "dom"
        finally:
            await page.close()

        added = sum(1 for pet in pets if result.add_pet(pet))
        self.logger.info("search_page_scraped", url=url, strategy=strategy, found=len(pets), added=added)

    def map_animal(self, animal: Dict[str, Any], species: str) -> Optional[ScrapedPet]:
        """Map one captured Petfinder API animal to a pet."""
        animal_id = animal.get("id")
        name = (animal.get("name") or "").strip()
        if not animal_id or not name:
            return None

        photos = []
        for photo in animal.get("photos") or []:
            url = photo.get("large") or photo.get("full") or photo.get("medium") or photo.get("small")
            if url:
                photos.append(url)

        breeds = animal.get("breeds") or {}
        colors = animal.get("colors") or {}
        contact = animal.get("contact") or {}
        address = contact.get("address") or {}
        environment = animal.get("environment") or {}
        attributes = animal.get("attributes") or {}

        return ScrapedPet(
            source_id=str(animal_id),
            name=name,
            source_url=animal.get("url") or f"{self.base_url}/pet/{name}-{animal_id}/",
            species=species,
            breed_primary=normalize_breed(breeds.get("primary")),
            breed_secondary=normalize_breed(breeds.get("secondary")),
            age=normalize_age(animal.get("age")),
            size=normalize_size(animal.get("size")),
            gender=normalize_gender(animal.get("gender")),
            color=colors.get("primary"),
            description=normalize_description(animal.get("description")),
            photos=photos,
            location_city=address.get("city"),
            location_state=normalize_state(address.get("state")),
            location_zip=address.get("postcode"),
            shelter_email=contact.get("email"),
            shelter_phone=contact.get("phone"),
            good_with_kids=normalize_boolean(environment.get("children")),
            good_with_dogs=normalize_boolean(environment.get("dogs")),
            good_with_cats=normalize_boolean(environment.get("cats")),
            house_trained=normalize_boolean(attributes.get("house_trained")),
            spayed_neutered=normalize_boolean(attributes.get("spayed_neutered")),
            special_needs=normalize_boolean(attributes.get("special_needs")),
        )

    def extract_from_listing(self, soup: BeautifulSoup, species: str) -> List[ScrapedPet]:
        """DOM fallback: parse rendered search result cards."""
        pets: List[ScrapedPet] = []
        for link, url in iter_links(soup, self.LINK_SELECTOR, self.base_url):
            card = find_card(link, class_hints=("rounded-lg", "overflow-hidden"))
            name = first_text(card, '[class*="font-secondary"], [class*="font-bold"]')
            if not name or name == "Loading..." or len(name) >= 50:
                continue
            text = card.get_text(" ", strip=True)
            photos = image_urls(card, self.base_url, 'img[src*="cloudfront"], img[src*="petfinder"]', limit=1)
            pets.append(
                ScrapedPet(
                    source_id=id_from_url(url, PET_ID_RE) or fallback_id("pf", url),
                    name=name,
                    source_url=url,
                    species=species,
                    age=normalize_age(age_hint(text)),
                    gender=normalize_gender(gender_hint(text)),
                    photos=photos,
                )
            )
        return pets
