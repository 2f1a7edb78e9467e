"""Factory for creating per-run adapter instances."""

from typing import Dict, List, Optional, Type

import structlog

from palbase.config import settings
from palbase.scrapers.base import BaseAdapter, BaseBrowserAdapter
from palbase.scrapers.utils import DomainConcurrencyLimiter

logger = structlog.get_logger(__name__)


class AdapterFactory:
    """Factory for creating and configuring adapter instances.

    Adapter instances hold per-run state, so a fresh one is created for every
    run. The per-domain concurrency limiter and the browser manager are
    shared by all browser adapters of the process.
    """

    def __init__(self, browser_manager=None, max_concurrent: Optional[int] = None):
        self.concurrency = DomainConcurrencyLimiter(
            max_concurrent if max_concurrent is not None else settings.SCRAPER_MAX_CONCURRENT
        )
        # None lets browser adapters fall back to the process-wide manager
        self.browser_manager = browser_manager
        self._adapter_registry: Dict[str, Type[BaseAdapter]] = {}

    def register_adapter(self, source: str, adapter_class: Type[BaseAdapter]) -> None:
        """Register an adapter class for a source slug.

        Raises:
            ValueError: If the class is not a BaseAdapter
        """
        if not issubclass(adapter_class, BaseAdapter):
            raise ValueError(f"Adapter class must inherit from BaseAdapter: {adapter_class}")
        self._adapter_registry[source] = adapter_class
        logger.debug("adapter_registered", source=source, adapter_type=adapter_class.adapter_type)

    def create_adapter(self, source: str) -> Optional[BaseAdapter]:
        """Create a configured adapter instance, or None if not registered.

        Raises:
            ConfigurationError: If the adapter is missing required credentials
        """
        adapter_class = self._adapter_registry.get(source)
        if not adapter_class:
            logger.warning("adapter_not_found", source=source)
            return None

        if issubclass(adapter_class, BaseBrowserAdapter):
            adapter = adapter_class(
                browser_manager=self.browser_manager,
                concurrency=self.concurrency,
            )
        else:
            adapter = adapter_class()

        logger.debug("adapter_created", source=source, adapter_type=adapter.adapter_type)
        return adapter

    def get_registered_sources(self) -> List[str]:
        return list(self._adapter_registry.keys())

    def has_adapter(self, source: str) -> bool:
        return source in self._adapter_registry


# Global factory instance
adapter_factory = AdapterFactory()


def get_adapter_factory() -> AdapterFactory:
    """Get the global adapter factory instance."""
    return adapter_factory
