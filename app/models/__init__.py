"""
Database models for the Property Photo Sync API.
Includes Property and Photo models.
"""

from app.models.property import Property
from app.models.photo import Photo

# Export all models for easy importing
__all__ = [
    "Property",
    "Photo",
]
