"""Normalization of loosely formatted listing fields into canonical values.

Every function here is pure and total: it accepts any input (including None
and non-strings), never raises, and returns an explicit unknown (None, or
"unknown" for gender) when nothing matches confidently.
"""

import html
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple


def _text(value: Any) -> str:
    """Coerce any input to a stripped lowercase string."""
    if value is None:
        return ""
    try:
        return str(value).strip().lower()
    except Exception:
        return ""


# ---------------------------------------------------------------------------
# Age
# ---------------------------------------------------------------------------

_AGE_KEYWORDS = [
    ("baby", re.compile(r"\b(baby|babies|puppy|puppies|kitten|kittens|newborn|infant)\b")),
    ("young", re.compile(r"\b(young|juvenile|adolescent)\b")),
    ("adult", re.compile(r"\b(adult|mature)\b")),
    ("senior", re.compile(r"\b(senior|elder|elderly|geriatric)\b")),
]
_YEARS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:years?|yrs?|y/o)\b")
_MONTHS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:months?|mos?)\b")
_WEEKS_RE = re.compile(r"(\d+)\s*(?:weeks?|wks?)\b")


def normalize_age(value: Any) -> Optional[str]:
    """Map free-text age to baby/young/adult/senior.

    Life-stage keywords win over numbers. Years: <1 baby, <3 young, <8 adult,
    else senior. Months: <6 baby, <24 young, else adult. Weeks are always baby.
    """
    text = _text(value)
    if not text:
        return None

    for age_class, pattern in _AGE_KEYWORDS:
        if pattern.search(text):
            return age_class

    match = _YEARS_RE.search(text)
    if match:
        years = float(match.group(1))
        if years < 1:
            return "baby"
        if years < 3:
            return "young"
        if years < 8:
            return "adult"
        return "senior"

    match = _MONTHS_RE.search(text)
    if match:
        months = float(match.group(1))
        if months < 6:
            return "baby"
        if months < 24:
            return "young"
        return "adult"

    if _WEEKS_RE.search(text):
        return "baby"

    return None


# ---------------------------------------------------------------------------
# Size
# ---------------------------------------------------------------------------

_SIZE_KEYWORDS = [
    ("xlarge", re.compile(r"\b(extra[\s-]*large|x[\s-]?large|xl|giant|huge)\b")),
    ("large", re.compile(r"\b(large|lg|big)\b")),
    ("medium", re.compile(r"\b(medium|med|md|average)\b")),
    ("small", re.compile(r"\b(small|sm|tiny|petite|mini|toy)\b")),
]
_POUNDS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:lbs?|pounds?)\b")
_KILOS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:kgs?|kilos?|kilograms?)\b")
_LB_PER_KG = 2.20462


def normalize_size(value: Any) -> Optional[str]:
    """Map free-text size or weight to small/medium/large/xlarge.

    Weight buckets in pounds: <20 small, <50 medium, <90 large, else xlarge.
    """
    text = _text(value)
    if not text:
        return None

    for size_class, pattern in _SIZE_KEYWORDS:
        if pattern.search(text):
            return size_class

    pounds: Optional[float] = None
    match = _POUNDS_RE.search(text)
    if match:
        pounds = float(match.group(1))
    else:
        match = _KILOS_RE.search(text)
        if match:
            pounds = float(match.group(1)) * _LB_PER_KG

    if pounds is None:
        return None
    if pounds < 20:
        return "small"
    if pounds < 50:
        return "medium"
    if pounds < 90:
        return "large"
    return "xlarge"


# ---------------------------------------------------------------------------
# Gender
# ---------------------------------------------------------------------------

_FEMALE_RE = re.compile(r"\b(female|girl|f|spayed female)\b")
_MALE_RE = re.compile(r"\b(male|boy|m|neutered male)\b")
_FEMALE_PRONOUN_RE = re.compile(r"\b(she|her|hers)\b")
_MALE_PRONOUN_RE = re.compile(r"\b(he|him|his)\b")


def normalize_gender(value: Any) -> str:
    """Return male, female or unknown. Conflicting signals give unknown."""
    text = _text(value)
    if not text:
        return "unknown"

    female = bool(_FEMALE_RE.search(text))
    male = bool(_MALE_RE.search(text))
    if female != male:
        return "female" if female else "male"
    if female and male:
        return "unknown"

    female = bool(_FEMALE_PRONOUN_RE.search(text))
    male = bool(_MALE_PRONOUN_RE.search(text))
    if female != male:
        return "female" if female else "male"
    return "unknown"


# ---------------------------------------------------------------------------
# Species
# ---------------------------------------------------------------------------

_SPECIES_KEYWORDS = [
    ("dog", re.compile(r"\b(dogs?|canine|pupp(?:y|ies)|pups?)\b")),
    ("cat", re.compile(r"\b(cats?|feline|kittens?|kitty|kitties)\b")),
    ("rabbit", re.compile(r"\b(rabbits?|bunny|bunnies)\b")),
    ("bird", re.compile(r"\b(birds?|parrots?|parakeets?|cockatiels?|budgies?|finch(?:es)?|avian)\b")),
    (
        "small_animal",
        re.compile(
            r"\b(small\s*[&_-]?\s*(?:animal|furry|mammal)s?|guinea[\s-]?pigs?|hamsters?|gerbils?|"
            r"mice|mouse|rats?|ferrets?|chinchillas?|hedgehogs?)\b"
        ),
    ),
    ("horse", re.compile(r"\b(horses?|pony|ponies|equine|donkeys?|mules?|barnyard)\b")),
    ("reptile", re.compile(r"\b(reptiles?|snakes?|lizards?|turtles?|tortoises?|geckos?|iguanas?)\b")),
    ("fish", re.compile(r"\b(fish|fishes|goldfish|aquatic)\b")),
]


def normalize_species(value: Any) -> str:
    """Map a species label to one of the nine canonical species; default other."""
    text = _text(value)
    if not text:
        return "other"
    for species, pattern in _SPECIES_KEYWORDS:
        if pattern.search(text):
            return species
    return "other"


# ---------------------------------------------------------------------------
# Booleans
# ---------------------------------------------------------------------------

_TRUE_VALUES = frozenset({"yes", "true", "1", "y"})
_FALSE_VALUES = frozenset({"no", "false", "0", "n"})


def normalize_boolean(value: Any) -> Optional[bool]:
    """Tri-state boolean: True, False, or None when the value is not a clear yes/no."""
    if isinstance(value, bool):
        return value
    text = _text(value)
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


# ---------------------------------------------------------------------------
# Breed
# ---------------------------------------------------------------------------

_MIX_TOKEN = r"(?:mixed\s+breed|mixed|mix)"
_LEADING_MIX_RE = re.compile(rf"^\s*{_MIX_TOKEN}\b[\s/,-]*", re.IGNORECASE)
_TRAILING_MIX_RE = re.compile(rf"[\s/,-]*\b{_MIX_TOKEN}\s*$", re.IGNORECASE)


def normalize_breed(value: Any) -> Optional[str]:
    """Strip leading/trailing mix tokens and title-case each word."""
    if value is None:
        return None
    try:
        text = str(value).strip()
    except Exception:
        return None
    text = _TRAILING_MIX_RE.sub("", text)
    text = _LEADING_MIX_RE.sub("", text)
    words = text.split()
    if not words:
        return None
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


# ---------------------------------------------------------------------------
# US states
# ---------------------------------------------------------------------------

STATE_CODES = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR",
    "california": "CA", "colorado": "CO", "connecticut": "CT", "delaware": "DE",
    "florida": "FL", "georgia": "GA", "hawaii": "HI", "idaho": "ID",
    "illinois": "IL", "indiana": "IN", "iowa": "IA", "kansas": "KS",
    "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD",
    "massachusetts": "MA", "michigan": "MI", "minnesota": "MN", "mississippi": "MS",
    "missouri": "MO", "montana": "MT", "nebraska": "NE", "nevada": "NV",
    "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM", "new york": "NY",
    "north carolina": "NC", "north dakota": "ND", "ohio": "OH", "oklahoma": "OK",
    "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI", "south carolina": "SC",
    "south dakota": "SD", "tennessee": "TN", "texas": "TX", "utah": "UT",
    "vermont": "VT", "virginia": "VA", "washington": "WA", "west virginia": "WV",
    "wisconsin": "WI", "wyoming": "WY",
    "district of columbia": "DC", "washington dc": "DC", "washington d.c.": "DC",
    "puerto rico": "PR",
}
_VALID_CODES = frozenset(STATE_CODES.values())


def normalize_state(value: Any) -> Optional[str]:
    """Return a two-letter US state code, or None for anything unrecognized."""
    text = _text(value)
    if not text:
        return None
    text = re.sub(r"\s+", " ", text)
    if len(text) == 2 and text.upper() in _VALID_CODES:
        return text.upper()
    return STATE_CODES.get(text)


# ---------------------------------------------------------------------------
# Free text and money
# ---------------------------------------------------------------------------

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_description(value: Any) -> Optional[str]:
    """Unescape HTML entities and collapse whitespace. Content is never truncated."""
    if value is None:
        return None
    try:
        text = html.unescape(str(value))
    except Exception:
        return None
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text or None


_FEE_RE = re.compile(r"\$?\s*(\d{1,3}(?:,\d{3})+|\d+)(?:\.(\d{1,2}))?")


def normalize_fee(value: Any) -> Optional[Decimal]:
    """Extract the first currency-like amount as a Decimal."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
        if not amount.is_finite():
            return None
        return amount if amount >= 0 else None

    match = _FEE_RE.search(_text(value))
    if not match:
        return None
    whole = match.group(1).replace(",", "")
    cents = match.group(2) or "0"
    try:
        return Decimal(f"{whole}.{cents}")
    except InvalidOperation:
        return None


# ---------------------------------------------------------------------------
# Location helpers
# ---------------------------------------------------------------------------

def split_city_state(value: Any) -> Tuple[Optional[str], Optional[str]]:
    """Split "City, ST" (or "City, State") into (city, state_code)."""
    if value is None:
        return None, None
    try:
        text = str(value).strip()
    except Exception:
        return None, None
    if not text:
        return None, None
    parts = [p.strip() for p in text.split(",")]
    city = parts[0] or None
    state = normalize_state(parts[1]) if len(parts) > 1 else None
    return city, state


def humanize_slug(value: Any) -> Optional[str]:
    """Turn a URL slug like "los-angeles" into "Los Angeles"."""
    text = _text(value)
    if not text:
        return None
    return " ".join(word.capitalize() for word in re.split(r"[-_\s]+", text) if word) or None
