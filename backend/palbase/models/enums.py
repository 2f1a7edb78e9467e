"""Canonical enumerations stored as plain strings."""

from enum import Enum


class Species(str, Enum):
    DOG = "dog"
    CAT = "cat"
    RABBIT = "rabbit"
    BIRD = "bird"
    SMALL_ANIMAL = "small_animal"
    HORSE = "horse"
    REPTILE = "reptile"
    FISH = "fish"
    OTHER = "other"


class AgeClass(str, Enum):
    BABY = "baby"
    YOUNG = "young"
    ADULT = "adult"
    SENIOR = "senior"


class SizeClass(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XLARGE = "xlarge"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


class PetStatus(str, Enum):
    ACTIVE = "active"
    ADOPTED = "adopted"
    REMOVED = "removed"


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorType(str, Enum):
    """Kinds of error recorded against a run."""

    FETCH_ERROR = "fetch_error"
    PARSE_ERROR = "parse_error"
    RATE_LIMITED = "rate_limited"
    RUN_FAILURE = "run_failure"
