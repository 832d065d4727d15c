"""
FastAPI dependency injection utilities for authentication, caches and services.
Provides reusable dependencies for route protection and service construction.
"""

from typing import Optional
import uuid

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.repositories.property import PropertyRepository
from app.services.property import PropertyService
from app.services.reconciler import PhotoReconciler
from app.utils.auth import TokenPayload, verify_token
from app.utils.cache import TTLCache, get_cache
from app.utils.exceptions import (
    UnauthorizedError,
    InvalidTokenError,
    InsufficientPermissionsError,
    PropertyNotFoundError,
    PropertyOwnershipError,
    StoreError
)
from app.utils.ownership import OwnershipCache


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_ttl_cache() -> TTLCache:
    """Process-wide read cache."""
    return get_cache()


def get_ownership_cache(cache: TTLCache = Depends(get_ttl_cache)) -> OwnershipCache:
    return OwnershipCache(cache)


async def get_property_service(
    db: AsyncSession = Depends(get_db),
    cache: TTLCache = Depends(get_ttl_cache),
    ownership_cache: OwnershipCache = Depends(get_ownership_cache)
) -> PropertyService:
    """
    Get property service instance.

    Args:
        db: Database session
        cache: Shared read cache
        ownership_cache: Ownership lookups

    Returns:
        PropertyService instance
    """
    return PropertyService(db, cache=cache, ownership_cache=ownership_cache)


async def get_photo_reconciler(db: AsyncSession = Depends(get_db)) -> PhotoReconciler:
    return PhotoReconciler(db)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenPayload:
    """
    Get current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer credentials

    Returns:
        Verified token claims

    Raises:
        UnauthorizedError: If no token provided
        InvalidTokenError: If token is invalid or expired
    """
    if not credentials:
        raise UnauthorizedError("Authentication token required")

    try:
        return verify_token(credentials.credentials)
    except JWTError as e:
        raise InvalidTokenError(f"Invalid token: {str(e)}")


async def get_current_admin_user(
    current_user: TokenPayload = Depends(get_current_user)
) -> TokenPayload:
    """
    Get current user with admin role.

    Raises:
        InsufficientPermissionsError: If user is not an admin
    """
    if not current_user.is_admin:
        raise InsufficientPermissionsError("access admin resources")

    return current_user


async def require_property_owner(
    property_id: uuid.UUID,
    current_user: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ownership_cache: OwnershipCache = Depends(get_ownership_cache)
) -> TokenPayload:
    """
    Require that the current user owns the property in the path, or is an admin.

    The owner is read from the ownership cache and falls back to the store on a miss.
    The service re-checks ownership against the store before mutating.

    Raises:
        PropertyNotFoundError: If the property doesn't exist
        PropertyOwnershipError: If the user does not own the property
        StoreError: If the owner lookup fails
    """
    # Admin users can manage all properties
    if current_user.is_admin:
        return current_user

    owner_id = ownership_cache.get_owner("property", str(property_id))
    if owner_id is None:
        try:
            property_obj = await PropertyRepository(db).get_property(property_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to retrieve property: {e}") from e

        if property_obj is None:
            raise PropertyNotFoundError(str(property_id))

        owner_id = property_obj.owner_id
        ownership_cache.set_owner("property", str(property_id), owner_id)

    if owner_id != current_user.user_id:
        raise PropertyOwnershipError()

    return current_user
