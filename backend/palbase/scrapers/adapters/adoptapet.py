"""AdoptAPet adapter.

Searches a fixed set of large US metro areas for dogs and cats. Result pages
are rendered client-side and lazily extend on scroll.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from bs4 import BeautifulSoup

from palbase.scrapers.base import BaseBrowserAdapter, ScrapedPet, ScrapeResult
from palbase.scrapers.utils.dom import (
    age_hint,
    breed_hint,
    find_card,
    first_text,
    gender_hint,
    image_urls,
    iter_links,
    node_text,
    phrase_flag,
    size_hint,
)
from palbase.scrapers.utils.ids import fallback_id, id_from_url
from palbase.scrapers.utils.normalizer import (
    humanize_slug,
    normalize_age,
    normalize_breed,
    normalize_description,
    normalize_gender,
    normalize_size,
    normalize_species,
    split_city_state,
)

PET_ID_RE = re.compile(r"/pet/(\d+)")
_KNOWN_BREEDS_RE = re.compile(
    r"((?:Labrador|Golden|German|Pit Bull|Chihuahua|Beagle|Bulldog|Poodle|Husky|Boxer|"
    r"Terrier|Shepherd|Retriever|Spaniel|Collie|Dachshund|Shih Tzu|Yorkshire|"
    r"Domestic Short ?Hair|Domestic Medium ?Hair|Domestic Long ?Hair|Siamese|Tabby)[A-Za-z &/]*)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class SearchLocation:
    city: str  # URL slug, e.g. "los-angeles"
    state: str  # URL slug, e.g. "california"
    state_code: str


class AdoptAPetAdapter(BaseBrowserAdapter):
    """Scrapes AdoptAPet search results for several metro areas."""

    source = "adoptapet"
    source_name = "Adopt-a-Pet"
    base_url = "https://www.adoptapet.com"

    LOCATIONS: List[SearchLocation] = [
        SearchLocation("new-york", "new-york", "NY"),
        SearchLocation("los-angeles", "california", "CA"),
        SearchLocation("chicago", "illinois", "IL"),
        SearchLocation("houston", "texas", "TX"),
        SearchLocation("phoenix", "arizona", "AZ"),
    ]
    SPECIES_KEYS = [("dog", "dog"), ("cat", "cat")]
    MAX_SCROLL_ATTEMPTS = 3
    LINK_SELECTOR = 'a[href*="/pet/"]'

    def search_url(self, key: str, location: SearchLocation) -> str:
        return f"{self.base_url}/s/adopt-a-{key}/{location.city}/{location.state}"

    async def scrape(self) -> ScrapeResult:
        result = ScrapeResult()
        for key, species in self.SPECIES_KEYS:
            for location in self.LOCATIONS:
                url = self.search_url(key, location)
                await self._run_subunit(
                    result,
                    f"{key}:{location.city}-{location.state_code}",
                    url,
                    self._scrape_location,
                    result,
                    url,
                    species,
                    location,
                )
        return result

    async def _scrape_location(
        self,
        result: ScrapeResult,
        url: str,
        species: str,
        location: SearchLocation,
    ) -> None:
        page = await self.new_page()
        try:
            await self.navigate(page, url)
            await self.wait_for_content(page, self.LINK_SELECTOR, min_text_length=5000, timeout_ms=20000)
            await self.scroll_to_bottom(page, self.MAX_SCROLL_ATTEMPTS)
            soup = await self.page_soup(page)
        finally:
            await page.close()

        pets = self.extract_from_listing(soup, species, location)
        added = sum(1 for pet in pets if result.add_pet(pet))
        self.logger.info("location_scraped", url=url, found=len(pets), added=added)

    def extract_from_listing(
        self,
        soup: BeautifulSoup,
        species: str,
        location: SearchLocation,
    ) -> List[ScrapedPet]:
        """Parse link-anchored pet cards from a search results page."""
        pets: List[ScrapedPet] = []
        for link, url in iter_links(soup, "a[href]", self.base_url):
            if "/pet/" not in url and "adopt-a-" not in url:
                continue
            if "/s/adopt-a-" in url:
                continue

            card = find_card(link)
            name = first_text(card, 'h2, h3, h4, [class*="name"], [class*="title"]')
            if not name:
                link_text = node_text(link)
                if 1 < len(link_text) < 50 and "View" not in link_text and "More" not in link_text:
                    name = link_text
            if not name or len(name) <= 1:
                continue

            text = node_text(card)
            breed = breed_hint(text)
            if not breed:
                match = _KNOWN_BREEDS_RE.search(text)
                breed = match.group(1).strip() if match else None

            pets.append(
                ScrapedPet(
                    source_id=id_from_url(url, PET_ID_RE) or fallback_id("aap", url),
                    name=name,
                    source_url=url,
                    species=species,
                    breed_primary=normalize_breed(breed),
                    age=normalize_age(age_hint(text)),
                    size=normalize_size(size_hint(text)),
                    gender=normalize_gender(gender_hint(text)),
                    photos=image_urls(card, self.base_url, limit=1),
                    location_city=humanize_slug(location.city),
                    location_state=location.state_code,
                )
            )
        return pets

    def extract_pet_detail(self, soup: BeautifulSoup, url: str) -> Optional[ScrapedPet]:
        """Parse an AdoptAPet pet profile page."""
        name = first_text(soup, 'h1, [class*="petName"], [class*="name"]')
        if not name:
            return None

        page_text = node_text(soup.body or soup)
        lowered = page_text.lower()
        location = first_text(soup, '[class*="location"]')
        city, state = split_city_state(location)

        if "dog" in lowered:
            species_text = "dog"
        elif "cat" in lowered:
            species_text = "cat"
        else:
            species_text = None

        return ScrapedPet(
            source_id=id_from_url(url, PET_ID_RE) or fallback_id("aap", url),
            name=name,
            source_url=url,
            species=normalize_species(species_text),
            breed_primary=normalize_breed(first_text(soup, '[class*="breed"]')),
            age=normalize_age(age_hint(page_text)),
            size=normalize_size(size_hint(page_text)),
            gender=normalize_gender(gender_hint(page_text)),
            description=normalize_description(
                first_text(soup, '[class*="description"], [class*="about"], [class*="bio"]')
            ),
            photos=image_urls(soup, self.base_url, '[class*="photo"] img, [class*="gallery"] img, [class*="image"] img'),
            location_city=city,
            location_state=state,
            shelter_name=first_text(soup, '[class*="shelter"], [class*="organization"]'),
            good_with_kids=phrase_flag(page_text, "good with kids", "good with children"),
            good_with_dogs=phrase_flag(page_text, "good with dogs"),
            good_with_cats=phrase_flag(page_text, "good with cats"),
            house_trained=phrase_flag(page_text, "house trained", "housetrained"),
            spayed_neutered=phrase_flag(page_text, "spayed", "neutered"),
        )
