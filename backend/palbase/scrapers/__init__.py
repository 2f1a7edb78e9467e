"""Source adapters and the sync machinery that drives them.

This package provides:
- Base adapter classes and the normalized ScrapedPet record
- Utility modules for pacing, robots policy, browsers and normalization
- Factory for creating per-run adapter instances
- Sync service and scheduler for automated runs
"""

from .base import (
    BaseAdapter,
    BaseAPIAdapter,
    BaseBrowserAdapter,
    ScrapedPet,
    ScrapeResult,
    ShelterRecord,
)
from .factory import AdapterFactory, adapter_factory, get_adapter_factory

__all__ = [
    # Base classes
    "BaseAdapter",
    "BaseAPIAdapter",
    "BaseBrowserAdapter",
    # Data structures
    "ScrapedPet",
    "ScrapeResult",
    "ShelterRecord",
    # Factory
    "AdapterFactory",
    "adapter_factory",
    "get_adapter_factory",
]
