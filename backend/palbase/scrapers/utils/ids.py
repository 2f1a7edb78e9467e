"""Natural-key helpers for listings."""

import hashlib
import re
from typing import Optional


def id_from_url(url: Optional[str], pattern: "re.Pattern[str]") -> Optional[str]:
    """Return the first capture group of ``pattern`` in ``url``."""
    if not url:
        return None
    match = pattern.search(url)
    return match.group(1) if match else None


def fallback_id(prefix: str, *parts: Optional[str]) -> str:
    """Content-derived id for listings that expose no stable identifier.

    The same listing URL/name/location hashes to the same id on every run.
    """
    material = "|".join((p or "").strip().lower() for p in parts)
    digest = hashlib.sha1(material.encode("utf-8")).hexdigest()[:16]
    return f"{prefix}-h{digest}"
