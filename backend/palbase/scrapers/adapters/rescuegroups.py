"""RescueGroups.org v5 API adapter.

RescueGroups aggregates listings from thousands of shelters and is the
upstream for several marketplace sites. The public search endpoint returns
JSON:API documents whose related resources (breeds, pictures, orgs, species,
colors) arrive in the top-level ``included`` array.
Documentation: https://api.rescuegroups.org/v5/public/docs
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import httpx

from palbase.config import settings
from palbase.core.exceptions import ConfigurationError, FetchError, RateLimitBackoff
from palbase.models.enums import ErrorType
from palbase.scrapers.base import BaseAPIAdapter, ScrapedPet, ScrapeResult, ShelterRecord
from palbase.scrapers.utils.normalizer import (
    normalize_age,
    normalize_boolean,
    normalize_breed,
    normalize_description,
    normalize_fee,
    normalize_gender,
    normalize_size,
    normalize_species,
    normalize_state,
    split_city_state,
)
from palbase.scrapers.utils.retry import http_retry
from palbase.scrapers.utils.user_agents import BOT_USER_AGENT


def _refs(relationships: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    """Relationship references as a list, whether the API sent one or many."""
    data = (relationships.get(name) or {}).get("data")
    if not data:
        return []
    return data if isinstance(data, list) else [data]


class RescueGroupsAdapter(BaseAPIAdapter):
    """Fetches available dogs and cats from the RescueGroups public API.

    Requires RESCUEGROUPS_API_KEY.
    """

    source = "rescuegroups"
    source_name = "RescueGroups.org"

    API_BASE_URL = "https://api.rescuegroups.org/v5"
    SEARCH_PATH = "/public/animals/search/available/{view}/"
    INCLUDE = "breeds,colors,orgs,pictures,species"
    PAGE_LIMIT = 250
    MAX_PAGES = 20
    MAX_RATE_LIMIT_ATTEMPTS = 3

    SPECIES_VIEWS: List[Tuple[str, str]] = [
        ("dogs", "dog"),
        ("cats", "cat"),
    ]

    rate_limit_cooldown: float = 10.0
    page_delay: float = 0.5

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key if api_key is not None else settings.RESCUEGROUPS_API_KEY
        if not self.api_key:
            raise ConfigurationError(
                "Missing required environment variables: RESCUEGROUPS_API_KEY",
                missing=["RESCUEGROUPS_API_KEY"],
            )
        super().__init__(client=client)

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/vnd.api+json",
            "Authorization": self.api_key,
            "User-Agent": BOT_USER_AGENT,
        }

    def _search_url(self, view: str) -> str:
        return self.API_BASE_URL + self.SEARCH_PATH.format(view=view)

    async def scrape(self) -> ScrapeResult:
        result = ScrapeResult()
        for view, species in self.SPECIES_VIEWS:
            await self._run_subunit(
                result,
                f"species:{view}",
                self._search_url(view),
                self._fetch_species,
                result,
                view,
                species,
            )
        self.logger.info(
            "scrape_finished",
            pets=len(result.pets),
            shelters=len(result.shelters),
            errors=len(result.errors),
        )
        return result

    async def _fetch_species(self, result: ScrapeResult, view: str, species: str) -> None:
        """Page through one species view until the API runs out of results."""
        page = 1
        added = 0
        while page <= self.MAX_PAGES:
            payload = await self._fetch_page(view, page)
            animals = payload.get("data") or []
            if not animals:
                self.logger.debug("no_more_animals", view=view, page=page)
                break

            included = self._index_included(payload.get("included") or [])
            for animal in animals:
                try:
                    pet, shelter = self._map_animal(animal, included, species)
                except Exception as e:
                    animal_id = animal.get("id") if isinstance(animal, dict) else None
                    self.logger.warning("animal_parse_failed", view=view, animal_id=animal_id, error=str(e))
                    result.add_error(
                        ErrorType.PARSE_ERROR,
                        f"animal {animal_id}: {e}",
                        self._search_url(view),
                    )
                    continue
                if shelter is not None:
                    result.add_shelter(shelter)
                if pet is not None and result.add_pet(pet):
                    added += 1

            self.logger.info("page_fetched", view=view, page=page, animals=len(animals), total=added)

            pages = (payload.get("meta") or {}).get("pages")
            if pages and page >= int(pages):
                break
            page += 1
            await asyncio.sleep(self.page_delay)

    async def _fetch_page(self, view: str, page: int) -> Dict[str, Any]:
        """Fetch one search page, cooling down and retrying the same page on 429.

        Raises:
            RateLimitBackoff: If every attempt was throttled
            FetchError: On any other non-success status
        """
        url = self._search_url(view)
        params = {
            "limit": self.PAGE_LIMIT,
            "page": page,
            "sort": "random",
            "include": self.INCLUDE,
        }
        for attempt in range(1, self.MAX_RATE_LIMIT_ATTEMPTS + 1):
            response = await self._get(url, params)
            if response.status_code == 429:
                if attempt == self.MAX_RATE_LIMIT_ATTEMPTS:
                    raise RateLimitBackoff(self.source, attempt, url)
                self.logger.warning(
                    "rate_limited",
                    view=view,
                    page=page,
                    attempt=attempt,
                    cooldown=self.rate_limit_cooldown,
                )
                await asyncio.sleep(self.rate_limit_cooldown)
                continue
            if response.status_code >= 400:
                raise FetchError(
                    self.source,
                    f"API returned {response.status_code}: {response.text[:200]}",
                    str(response.url),
                )
            return response.json()
        raise RateLimitBackoff(self.source, self.MAX_RATE_LIMIT_ATTEMPTS, url)

    @http_retry
    async def _get(self, url: str, params: Dict[str, Any]) -> httpx.Response:
        return await self.client.get(url, params=params)

    @staticmethod
    def _index_included(included: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        return {f"{item.get('type')}-{item.get('id')}": item for item in included}

    @staticmethod
    def _included_attrs(
        included: Dict[str, Dict[str, Any]], kind: str, ref: Dict[str, Any]
    ) -> Dict[str, Any]:
        return (included.get(f"{kind}-{ref.get('id')}") or {}).get("attributes") or {}

    def _map_animal(
        self,
        animal: Dict[str, Any],
        included: Dict[str, Dict[str, Any]],
        default_species: str,
    ) -> Tuple[Optional[ScrapedPet], Optional[ShelterRecord]]:
        """Map one API animal (plus its included resources) to a pet and shelter."""
        attrs = animal.get("attributes") or {}
        animal_id = animal.get("id")
        name = str(attrs.get("name") or "").strip()
        if not animal_id or not name:
            return None, None
        relationships = animal.get("relationships") or {}

        breeds = [
            self._included_attrs(included, "breeds", ref).get("name")
            for ref in _refs(relationships, "breeds")[:2]
        ]
        breeds += [None, None]

        photos: List[str] = []
        for ref in _refs(relationships, "pictures"):
            pic = self._included_attrs(included, "pictures", ref)
            url = (
                (pic.get("large") or {}).get("url")
                or (pic.get("original") or {}).get("url")
                or (pic.get("small") or {}).get("url")
            )
            if url:
                photos.append(url)

        species = default_species
        species_refs = _refs(relationships, "species")
        if species_refs:
            singular = self._included_attrs(included, "species", species_refs[0]).get("singular")
            if singular:
                species = normalize_species(singular)

        color = None
        color_refs = _refs(relationships, "colors")
        if color_refs:
            color = self._included_attrs(included, "colors", color_refs[0]).get("name")

        shelter = None
        org_refs = _refs(relationships, "orgs")
        if org_refs:
            org = self._included_attrs(included, "orgs", org_refs[0])
            if org.get("name"):
                shelter = ShelterRecord(
                    source_id=str(org_refs[0].get("id")),
                    name=org["name"],
                    email=org.get("email"),
                    phone=org.get("phone"),
                    website=org.get("url"),
                    address=org.get("street"),
                    city=org.get("city"),
                    state=normalize_state(org.get("state")),
                    zip=org.get("postalcode"),
                )

        city, state = split_city_state(attrs.get("locationCitystate"))
        if state is None:
            state = normalize_state(attrs.get("locationState"))

        pet = ScrapedPet(
            source_id=str(animal_id),
            name=name,
            source_url=attrs.get("url") or f"https://www.rescuegroups.org/animals/{animal_id}",
            species=species,
            breed_primary=normalize_breed(breeds[0]),
            breed_secondary=normalize_breed(breeds[1]),
            age=normalize_age(attrs.get("ageGroup") or attrs.get("ageString")),
            size=normalize_size(attrs.get("sizeGroup") or attrs.get("sizeCurrent")),
            gender=normalize_gender(attrs.get("sex")),
            color=color,
            description=normalize_description(attrs.get("descriptionText") or attrs.get("description")),
            photos=photos,
            location_city=city,
            location_state=state,
            location_zip=attrs.get("locationPostalcode"),
            shelter_source_id=shelter.source_id if shelter else None,
            shelter_name=shelter.name if shelter else None,
            shelter_email=shelter.email if shelter else None,
            shelter_phone=shelter.phone if shelter else None,
            good_with_kids=normalize_boolean(attrs.get("isKidsOk")),
            good_with_dogs=normalize_boolean(attrs.get("isDogsOk")),
            good_with_cats=normalize_boolean(attrs.get("isCatsOk")),
            house_trained=normalize_boolean(attrs.get("isHousetrained")),
            spayed_neutered=normalize_boolean(attrs.get("isAltered")),
            special_needs=normalize_boolean(attrs.get("isSpecialNeeds")),
            adoption_fee=normalize_fee(attrs.get("adoptionFeeString")),
        )
        return pet, shelter
