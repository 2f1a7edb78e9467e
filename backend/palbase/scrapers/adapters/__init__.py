"""Source-specific adapter implementations.

Each adapter module implements a class that inherits from BaseAPIAdapter
(JSON APIs) or BaseBrowserAdapter (rendered sites).
"""

# API adapters
from .rescuegroups import RescueGroupsAdapter

# Browser adapters
from .petfinder import PetfinderAdapter
from .adoptapet import AdoptAPetAdapter
from .aspca import ASPCAAdapter
from .bestfriends import BestFriendsAdapter
from .petsmart import PetSmartAdapter

__all__ = [
    # API adapters
    "RescueGroupsAdapter",
    # Browser adapters
    "PetfinderAdapter",
    "AdoptAPetAdapter",
    "ASPCAAdapter",
    "BestFriendsAdapter",
    "PetSmartAdapter",
]
