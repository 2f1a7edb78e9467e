"""BeautifulSoup helpers for link-anchored listing cards.

Shelter sites rarely expose stable class names, so listings are found by
their profile links and the surrounding card is located by walking up the
tree until an ancestor looks like a card.
"""

import re
from typing import Iterable, Iterator, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

CARD_CLASS_HINTS = ("card", "pet", "item", "result", "animal", "tile")

_AGE_WORDS = re.compile(r"\b(puppy|kitten|baby|young|adult|senior)\b", re.IGNORECASE)
_AGE_NUMBER = re.compile(r"\d+\s*(?:years?|yrs?|months?|mos?|weeks?|wks?)\b", re.IGNORECASE)
_GENDER_WORDS = re.compile(r"\b(female|male)\b", re.IGNORECASE)
_SIZE_WORDS = re.compile(r"\b(extra[\s-]*large|x-large|xl|large|medium|small)\b", re.IGNORECASE)
_BREED_LABEL = re.compile(r"(?:Breed|Mix):\s*([A-Za-z\s&/]+)", re.IGNORECASE)
_IMAGE_SKIP = ("placeholder", "logo", "icon", "sprite")


def iter_links(soup: BeautifulSoup, selector: str, base_url: str) -> Iterator[Tuple[Tag, str]]:
    """Yield (anchor, absolute_url) pairs for ``selector``, each URL once."""
    seen = set()
    for link in soup.select(selector):
        href = link.get("href")
        if not href:
            continue
        url = urljoin(base_url, href).split("#")[0]
        if url in seen:
            continue
        seen.add(url)
        yield link, url


def find_card(link: Tag, max_levels: int = 5, class_hints: Iterable[str] = CARD_CLASS_HINTS) -> Tag:
    """Walk up from a link to the nearest ancestor whose class looks like a card."""
    card = link
    for _ in range(max_levels):
        parent = card.parent
        if parent is None or parent.name in ("body", "html", "[document]"):
            break
        card = parent
        classes = " ".join(card.get("class") or []).lower()
        if any(hint in classes for hint in class_hints):
            break
    return card


def first_text(node: Tag, selectors: str) -> Optional[str]:
    """Text of the first element matching any of the comma-separated selectors, in order."""
    for selector in (s.strip() for s in selectors.split(",")):
        if not selector:
            continue
        el = node.select_one(selector)
        if el is not None:
            text = el.get_text(" ", strip=True)
            if text:
                return text
    return None


def node_text(node: Tag) -> str:
    return node.get_text(" ", strip=True)


def image_urls(node: Tag, base_url: str, selector: str = "img", limit: Optional[int] = None) -> List[str]:
    """Absolute image URLs under ``node``, skipping placeholders and logos."""
    urls: List[str] = []
    for img in node.select(selector):
        src = img.get("src") or img.get("data-src") or ""
        if not src or src.startswith("data:"):
            continue
        if any(skip in src.lower() for skip in _IMAGE_SKIP):
            continue
        src = urljoin(base_url, src)
        if src not in urls:
            urls.append(src)
        if limit is not None and len(urls) >= limit:
            break
    return urls


def age_hint(text: str) -> Optional[str]:
    """Age phrase from card text: a numeric age first, then a life-stage word."""
    match = _AGE_NUMBER.search(text) or _AGE_WORDS.search(text)
    return match.group(0) if match else None


def gender_hint(text: str) -> Optional[str]:
    match = _GENDER_WORDS.search(text)
    return match.group(1) if match else None


def size_hint(text: str) -> Optional[str]:
    match = _SIZE_WORDS.search(text)
    return match.group(1) if match else None


def breed_hint(text: str) -> Optional[str]:
    match = _BREED_LABEL.search(text)
    return match.group(1).strip() if match else None


def phrase_flag(text: str, *phrases: str) -> Optional[bool]:
    """True when any phrase appears; None otherwise (absence is not a no)."""
    lowered = text.lower()
    return True if any(p in lowered for p in phrases) else None
