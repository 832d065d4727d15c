"""
Utility modules for the Property Photo Sync API.
"""

from .cache import TTLCache, get_cache

from .exceptions import (
    APIException,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    ForbiddenError,
    StoreError,
    InvalidTokenError,
    InsufficientPermissionsError,
    PropertyNotFoundError,
    PropertyOwnershipError
)

from .validators import validate_image_urls

# Auth helpers and dependencies are imported directly where needed to avoid circular imports

__all__ = [
    # Cache
    "TTLCache",
    "get_cache",

    # Exceptions
    "APIException",
    "ValidationError",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "StoreError",
    "InvalidTokenError",
    "InsufficientPermissionsError",
    "PropertyNotFoundError",
    "PropertyOwnershipError",

    # Validators
    "validate_image_urls",
]
