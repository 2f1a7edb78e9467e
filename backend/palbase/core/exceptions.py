"""Custom exception classes for the ingestion pipeline."""

from typing import List, Optional


class PalbaseException(Exception):
    """Base exception for all Palbase errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(PalbaseException):
    """Raised at boot when configuration is missing or invalid."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        self.missing = missing or []
        super().__init__(message)


class FetchError(PalbaseException):
    """Raised when one sub-unit (page, location, species) of a source fails."""

    def __init__(self, source: str, message: str, url: Optional[str] = None):
        self.source = source
        self.url = url
        super().__init__(f"Fetch error for {source}: {message}")


class ParseError(PalbaseException):
    """Raised when a single detail page cannot be turned into a record."""

    def __init__(self, source: str, url: str, message: str):
        self.source = source
        self.url = url
        super().__init__(f"Parse error for {source} at {url}: {message}")


class RobotsPolicyBlock(PalbaseException):
    """Raised when robots.txt disallows a URL. The URL is skipped, not retried."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Disallowed by robots.txt: {url}")


class RateLimitBackoff(PalbaseException):
    """Raised when an upstream keeps throttling after all cool-down attempts."""

    def __init__(self, source: str, attempts: int, url: Optional[str] = None):
        self.source = source
        self.attempts = attempts
        self.url = url
        super().__init__(f"Rate limit exceeded for {source} after {attempts} attempts")


class RunFailure(PalbaseException):
    """Raised when a run ends in the failed state."""

    def __init__(self, source: str, run_log_id=None, cause: Optional[BaseException] = None):
        self.source = source
        self.run_log_id = run_log_id
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Run failed for {source}{detail}")


class RunInProgressError(PalbaseException):
    """Raised when a trigger arrives while a run for the same source is active."""

    def __init__(self, sources: List[str]):
        self.sources = sources
        super().__init__(f"Sync already in progress for: {', '.join(sources)}")
