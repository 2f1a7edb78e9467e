"""Retry decorators with exponential backoff for network calls."""

import logging

import httpx
import structlog
from playwright.async_api import Error as PlaywrightError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)


# Transport-level failures only; HTTP status handling stays with the caller
http_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(
        (
            httpx.ConnectError,
            httpx.TimeoutException,
            httpx.RemoteProtocolError,
        )
    ),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


# Page navigation. PlaywrightTimeoutError subclasses PlaywrightError.
navigation_retry = retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(PlaywrightError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
