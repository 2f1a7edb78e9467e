"""ASPCA adapter.

ASPCA's national adoption pages hand off to other aggregators; the only
listings it hosts itself belong to its New York City adoption center.
"""

from typing import List, Optional

from bs4 import BeautifulSoup

from palbase.scrapers.base import BaseBrowserAdapter, ScrapedPet, ScrapeResult, ShelterRecord
from palbase.scrapers.utils.dom import (
    age_hint,
    find_card,
    first_text,
    gender_hint,
    image_urls,
    iter_links,
    node_text,
    size_hint,
)
from palbase.scrapers.utils.ids import fallback_id
from palbase.scrapers.utils.normalizer import (
    normalize_age,
    normalize_breed,
    normalize_description,
    normalize_gender,
    normalize_size,
    normalize_species,
)


class ASPCAAdapter(BaseBrowserAdapter):
    """Scrapes adoptable dogs and cats at the ASPCA Adoption Center in NYC."""

    source = "aspca"
    source_name = "ASPCA"
    base_url = "https://www.aspca.org"
    center_url = "https://www.aspca.org/nyc/aspca-adoption-center"

    SHELTER = ShelterRecord(
        source_id="aspca-nyc",
        name="ASPCA Adoption Center",
        phone="212-876-7700",
        website="https://www.aspca.org/nyc/aspca-adoption-center",
        address="424 E 92nd St",
        city="New York",
        state="NY",
        zip="10128",
    )
    LISTINGS = [("adoptable-dogs", "dog"), ("adoptable-cats", "cat")]
    MAX_SCROLL_ATTEMPTS = 5
    LINK_SELECTOR = 'a[href*="/nyc/adoption/"]'
    CONTENT_SELECTOR = 'a[href*="/nyc/adoption/"], .pet-card, .animal-card, [class*="pet"]'

    async def scrape(self) -> ScrapeResult:
        result = ScrapeResult()
        result.add_shelter(self.SHELTER)
        for path, species in self.LISTINGS:
            url = f"{self.center_url}/{path}"
            await self._run_subunit(result, path, url, self._scrape_listing, result, url, species)
        return result

    async def _scrape_listing(self, result: ScrapeResult, url: str, species: str) -> None:
        page = await self.new_page()
        try:
            await self.navigate(page, url)
            await self.wait_for_selector(page, self.CONTENT_SELECTOR, 15000)
            await self.scroll_to_bottom(page, self.MAX_SCROLL_ATTEMPTS)
            soup = await self.page_soup(page)
        finally:
            await page.close()

        pets = self.extract_from_listing(soup, species)
        added = sum(1 for pet in pets if result.add_pet(pet))
        self.logger.info("listing_scraped", url=url, found=len(pets), added=added)

    @staticmethod
    def source_id_for(url: str) -> str:
        """The last path segment identifies an ASPCA listing."""
        segment = url.rstrip("/").rsplit("/", 1)[-1]
        return segment or fallback_id("aspca", url)

    def _with_shelter(self, **fields) -> ScrapedPet:
        return ScrapedPet(
            location_city=self.SHELTER.city,
            location_state=self.SHELTER.state,
            location_zip=self.SHELTER.zip,
            shelter_source_id=self.SHELTER.source_id,
            shelter_name=self.SHELTER.name,
            shelter_phone=self.SHELTER.phone,
            **fields,
        )

    def extract_from_listing(self, soup: BeautifulSoup, species: str) -> List[ScrapedPet]:
        pets: List[ScrapedPet] = []
        for link, url in iter_links(soup, self.LINK_SELECTOR, self.base_url):
            card = find_card(link, class_hints=("pet", "animal", "card"))
            name = first_text(card, 'h2, h3, h4, [class*="name"]')
            if not name:
                continue
            text = node_text(card)
            pets.append(
                self._with_shelter(
                    source_id=self.source_id_for(url),
                    name=name,
                    source_url=url,
                    species=species,
                    breed_primary=normalize_breed(first_text(card, '[class*="breed"]')),
                    age=normalize_age(age_hint(text)),
                    gender=normalize_gender(gender_hint(text)),
                    photos=image_urls(card, self.base_url, limit=1),
                )
            )
        return pets

    def extract_pet_detail(self, soup: BeautifulSoup, url: str) -> Optional[ScrapedPet]:
        name = first_text(soup, 'h1, [class*="petName"], [class*="name"]')
        if not name:
            return None
        page_text = node_text(soup.body or soup)
        species = normalize_species(first_text(soup, '[class*="species"]') or page_text)
        return self._with_shelter(
            source_id=self.source_id_for(url),
            name=name,
            source_url=url,
            species=species,
            breed_primary=normalize_breed(first_text(soup, '[class*="breed"]')),
            age=normalize_age(age_hint(page_text)),
            size=normalize_size(size_hint(page_text)),
            gender=normalize_gender(gender_hint(page_text)),
            description=normalize_description(
                first_text(soup, '[class*="description"], [class*="about"], [class*="bio"], .pet-story')
            ),
            photos=image_urls(soup, self.base_url, '.pet-photos img, .gallery img, img[src*="pet"], img[src*="animal"]'),
        )
