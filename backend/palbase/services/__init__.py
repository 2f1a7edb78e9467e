"""Persistence services."""

from .repository import PetRepository

__all__ = ["PetRepository"]
