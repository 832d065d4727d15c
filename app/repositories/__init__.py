"""
Repository layer for data access operations.
Provides database operations for properties, photos and atomic multi-row procedures.
"""

from app.repositories.base import BaseRepository
from app.repositories.property import PropertyRepository, PropertySearchFilters
from app.repositories.photo import PhotoRepository
from app.repositories.store import AtomicStore

__all__ = [
    "BaseRepository",
    "PropertyRepository",
    "PropertySearchFilters",
    "PhotoRepository",
    "AtomicStore"
]
