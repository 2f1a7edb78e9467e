"""Register all source adapters with the factory.

Called once during application and CLI startup.
"""

import structlog

from palbase.scrapers.adapters import (
    # API adapters
    RescueGroupsAdapter,
    # Browser adapters
    PetfinderAdapter,
    AdoptAPetAdapter,
    ASPCAAdapter,
    BestFriendsAdapter,
    PetSmartAdapter,
)
from palbase.scrapers.factory import AdapterFactory, get_adapter_factory

logger = structlog.get_logger(__name__)


def register_all_adapters(factory: AdapterFactory = None) -> AdapterFactory:
    """Register every available adapter with the (global) factory."""
    factory = factory or get_adapter_factory()

    adapters = [
        ("rescuegroups", RescueGroupsAdapter),
        ("petfinder", PetfinderAdapter),
        ("adoptapet", AdoptAPetAdapter),
        ("aspca", ASPCAAdapter),
        ("bestfriends", BestFriendsAdapter),
        ("petsmart", PetSmartAdapter),
    ]

    for source, adapter_class in adapters:
        factory.register_adapter(source, adapter_class)

    logger.info(
        "all_adapters_registered",
        count=len(factory.get_registered_sources()),
        sources=factory.get_registered_sources(),
    )
    return factory
