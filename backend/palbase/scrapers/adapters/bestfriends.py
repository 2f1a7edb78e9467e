"""Best Friends Animal Society adapter.

The sanctuary adoption page lists every animal at the Kanab, Utah sanctuary
behind a "Load More" button. Listing cards carry little data, so each
animal's detail page is visited (up to a per-run cap).
"""

import re
from typing import List, Optional

from bs4 import BeautifulSoup

from palbase.core.exceptions import ParseError, RobotsPolicyBlock
from palbase.models.enums import ErrorType
from palbase.scrapers.base import BaseBrowserAdapter, ScrapedPet, ScrapeResult, ShelterRecord
from palbase.scrapers.utils.dom import first_text, image_urls, iter_links
from palbase.scrapers.utils.ids import fallback_id
from palbase.scrapers.utils.normalizer import (
    humanize_slug,
    normalize_age,
    normalize_breed,
    normalize_description,
    normalize_gender,
    normalize_size,
    normalize_species,
)

PET_URL_RE = re.compile(r"/sanctuary/adopt/(\d+)/([^/?#]+)")
_SPECIES_WORDS = re.compile(
    r"\b(dog|cat|rabbit|bird|horse|pig|goat|guinea pig|hamster|turtle|snake|lizard)\b",
    re.IGNORECASE,
)
_BREED_RE = re.compile(r"(?:Breed|Looks like)[:\s]+([A-Za-z ,]+?)(?:\n|$|\.)", re.IGNORECASE)
_AGE_RE = re.compile(
    r"(?:Age|Years?|Months?)[:\s]*(\d+\s*(?:years?|months?|yrs?|mos?)|\w+)",
    re.IGNORECASE,
)
_AGE_CLASS_RE = re.compile(r"\b(Baby|Young|Adult|Senior)\b")
_SIZE_RE = re.compile(r"\b(X-Large|Extra Large|Large|Medium|Small)\b")
_GENDER_RE = re.compile(r"\b(Female|Male)\b")
_COLOR_RE = re.compile(r"(?:Color|Coat)[:\s]+([A-Za-z ,/]+?)(?:\n|$|\.)", re.IGNORECASE)


class BestFriendsAdapter(BaseBrowserAdapter):
    """Scrapes the Best Friends sanctuary adoption listings."""

    source = "bestfriends"
    source_name = "Best Friends Animal Society"
    base_url = "https://bestfriends.org"
    listing_url = "https://bestfriends.org/adopt/adopt-our-sanctuary"

    SHELTER = ShelterRecord(
        source_id="bestfriends-sanctuary",
        name="Best Friends Animal Sanctuary",
        phone="435-644-2001",
        website="https://bestfriends.org/adopt/adopt-our-sanctuary",
        address="5001 Angel Canyon Road",
        city="Kanab",
        state="UT",
        zip="84741",
    )
    LINK_SELECTOR = 'a[href*="/sanctuary/adopt/"]'
    LOAD_MORE_SELECTOR = 'button:has-text("Load More"), a:has-text("Load More"), [class*="load-more"]'
    MAX_SCROLL_ATTEMPTS = 10
    MAX_DETAIL_PAGES = 100
    MAX_PHOTOS = 10

    async def scrape(self) -> ScrapeResult:
        result = ScrapeResult()
        result.add_shelter(self.SHELTER)
        await self._run_subunit(
            result,
            "sanctuary",
            self.listing_url,
            self._scrape_sanctuary,
            result,
        )
        return result

    async def _scrape_sanctuary(self, result: ScrapeResult) -> None:
        page = await self.new_page()
        try:
            await self.navigate(page, self.listing_url)
            await self.wait_for_selector(page, self.LINK_SELECTOR, 30000)
            await self.scroll_to_bottom(
                page,
                self.MAX_SCROLL_ATTEMPTS,
                load_more_selector=self.LOAD_MORE_SELECTOR,
            )
            soup = await self.page_soup(page)
        finally:
            await page.close()

        links = self.extract_pet_links(soup)
        self.logger.info("pet_links_found", count=len(links), limit=self.MAX_DETAIL_PAGES)

        for url in links[: self.MAX_DETAIL_PAGES]:
            try:
                pet = await self._scrape_pet_page(url)
            except RobotsPolicyBlock:
                self.logger.info("robots_disallowed", url=url)
                continue
            except ParseError as e:
                self.logger.warning("pet_page_parse_failed", url=url, error=e.message)
                result.add_error(ErrorType.PARSE_ERROR, e.message, url)
                continue
            except Exception as e:
                self.logger.warning("pet_page_fetch_failed", url=url, error=str(e))
                result.add_error(ErrorType.FETCH_ERROR, str(e) or e.__class__.__name__, url)
                continue
            result.add_pet(pet)

    def extract_pet_links(self, soup: BeautifulSoup) -> List[str]:
        return [url for _, url in iter_links(soup, self.LINK_SELECTOR, self.base_url) if PET_URL_RE.search(url)]

    def extract_pet_detail(self, soup: BeautifulSoup, url: str) -> Optional[ScrapedPet]:
        match = PET_URL_RE.search(url)
        source_id = match.group(1) if match else fallback_id("bf", url)
        name = first_text(soup, 'h1, .pet-name, .animal-name, [class*="pet-name"], [class*="animal-name"]')
        if not name and match:
            name = humanize_slug(match.group(2))
        if not name:
            return None

        body = soup.body or soup
        page_text = body.get_text("\n", strip=True)

        species_match = _SPECIES_WORDS.search(page_text)
        breed_match = _BREED_RE.search(page_text)
        age_match = _AGE_RE.search(page_text) or _AGE_CLASS_RE.search(page_text)
        size_match = _SIZE_RE.search(page_text)
        gender_match = _GENDER_RE.search(page_text)
        color_match = _COLOR_RE.search(page_text)

        photos = [
            src
            for src in image_urls(body, self.base_url)
            if any(hint in src.lower() for hint in ("animal", "pet", "adopt"))
        ][: self.MAX_PHOTOS]

        return ScrapedPet(
            source_id=source_id,
            name=name,
            source_url=url,
            species=normalize_species(species_match.group(1) if species_match else None),
            breed_primary=normalize_breed(breed_match.group(1) if breed_match else None),
            age=normalize_age(age_match.group(1) if age_match else None),
            size=normalize_size(size_match.group(1) if size_match else None),
            gender=normalize_gender(gender_match.group(1) if gender_match else None),
            color=color_match.group(1).strip() if color_match else None,
            description=normalize_description(
                first_text(soup, '[class*="description"], [class*="bio"], [class*="about"], .body-text, article p')
            ),
            photos=photos,
            location_city=self.SHELTER.city,
            location_state=self.SHELTER.state,
            location_zip=self.SHELTER.zip,
            shelter_source_id=self.SHELTER.source_id,
            shelter_name=self.SHELTER.name,
            shelter_phone=self.SHELTER.phone,
        )
