"""SQLAlchemy models for Palbase.

All models are imported here so metadata.create_all can discover them.
"""

from palbase.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from palbase.models.enums import (
    AgeClass,
    ErrorType,
    Gender,
    PetStatus,
    RunStatus,
    SizeClass,
    Species,
)
from palbase.models.shelter import Shelter
from palbase.models.pet import Pet
from palbase.models.run_log import RunLog
from palbase.models.run_error import RunError

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "AgeClass",
    "ErrorType",
    "Gender",
    "PetStatus",
    "RunStatus",
    "SizeClass",
    "Species",
    "Shelter",
    "Pet",
    "RunLog",
    "RunError",
]
