"""Scraper utilities for pacing, robots policy, browsers and normalization."""

from .rate_limiter import DomainConcurrencyLimiter, RequestThrottle
from .robots import RobotsPolicy
from .user_agents import BOT_NAME, BOT_USER_AGENT, get_random_user_agent
from .retry import http_retry, navigation_retry
from .ids import fallback_id, id_from_url
from .normalizer import (
    humanize_slug,
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


__all__ = [
    # Pacing
    "DomainConcurrencyLimiter",
    "RequestThrottle",
    # Robots
    "RobotsPolicy",
    # User agents
    "BOT_NAME",
    "BOT_USER_AGENT",
    "get_random_user_agent",
    # Retry decorators
    "http_retry",
    "navigation_retry",
    # Ids
    "fallback_id",
    "id_from_url",
    # Normalization
    "humanize_slug",
    "normalize_age",
    "normalize_boolean",
    "normalize_breed",
    "normalize_description",
    "normalize_fee",
    "normalize_gender",
    "normalize_size",
    "normalize_species",
    "normalize_state",
    "split_city_state",
]
