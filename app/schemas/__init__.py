"""
Pydantic schemas for request/response validation.
"""

# Property schemas
from .property import (
    PropertyBase,
    PropertyCreate,
    PropertyUpdate,
    PropertyResponse,
    PropertyListResponse,
    PaginationMeta
)

# Photo schemas
from .photo import (
    PhotoResponse,
    ReconciledPhoto,
    ReconcileResponse
)

__all__ = [
    # Property schemas
    "PropertyBase",
    "PropertyCreate",
    "PropertyUpdate",
    "PropertyResponse",
    "PropertyListResponse",
    "PaginationMeta",

    # Photo schemas
    "PhotoResponse",
    "ReconciledPhoto",
    "ReconcileResponse",
]
