"""
Property service coordinating store writes, photo association and cache consistency.
Handles create/read/update/delete of properties, read-through caching with scoped
invalidation, and ownership enforcement against the store.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Set
from urllib.parse import quote
import math
import uuid
import logging

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.photo import PHOTO_SOURCE_UPDATE
from app.repositories.photo import PhotoRepository
from app.repositories.property import PropertyRepository, PropertySearchFilters
from app.repositories.store import AtomicStore
from app.schemas.property import PropertyCreate, PropertyUpdate
from app.utils.cache import TTLCache, get_cache
from app.utils.exceptions import (
    PropertyNotFoundError,
    PropertyOwnershipError,
    StoreError,
    ValidationError
)
from app.utils.ownership import OwnershipCache
from app.utils.validators import validate_image_urls

logger = logging.getLogger(__name__)

PROPERTY_CACHE_PREFIX = "property:"
PROPERTIES_CACHE_NAMESPACE = "properties:"
LISTING_FILTER_KEYS = ("property_type", "city", "min_price", "max_price", "status", "owner_id")


@dataclass
class PropertyResult:
    """Outcome of a property creation: either data or an error message, never both."""

    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def property_cache_key(property_id: Any) -> str:
    return f"{PROPERTY_CACHE_PREFIX}{property_id}"


def listing_cache_key(filters: Dict[str, Any], page: int, limit: int) -> str:
    """
    Build the cache key for one listing query.
    Every component is percent-encoded so the ``:`` separator cannot appear inside
    a value, which keeps distinct filter tuples on distinct keys.
    """
    parts = []
    for key in LISTING_FILTER_KEYS:
        value = filters.get(key)
        parts.append(quote("" if value is None else str(value), safe=""))
    parts.extend([str(page), str(limit)])
    return PROPERTIES_CACHE_NAMESPACE + ":".join(parts)


def _coerce_int(value: Any, default: int) -> int:
    """
    Parse an integer query value; missing, zero or malformed input yields default.
    Fractional input such as ``"2.5"`` is malformed: it falls back to default, it is not truncated.
    """
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number or default


def _parse_uuid(value: Any) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _first_error_message(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid input"
    error = errors[0]
    field = ".".join(str(loc) for loc in error.get("loc", ()))
    message = error.get("msg", "Invalid input")
    return f"{field}: {message}" if field else message


def _field_errors(exc: PydanticValidationError) -> List[Dict[str, str]]:
    return [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", ())),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]


class PropertyService:
    """
    Property service keeping property rows, photo rows and the read cache consistent.

    Reads go through the cache; every successful write invalidates the affected
    detail entry, the listing namespace and, for update/delete, the ownership entry.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        cache: Optional[TTLCache] = None,
        ownership_cache: Optional[OwnershipCache] = None
    ):
        self.db = db_session
        self.property_repo = PropertyRepository(db_session)
        self.photo_repo = PhotoRepository(db_session)
        self.store = AtomicStore(db_session)
        self.cache = cache if cache is not None else get_cache()
        self.ownership_cache = ownership_cache if ownership_cache is not None else OwnershipCache(self.cache)

    async def create_property(self, body: Dict[str, Any], owner_id: str) -> PropertyResult:
        """
        Create a property and link all of its image URLs as photo rows, atomically.

        Args:
            body: Raw property fields, including an optional ``images`` URL list
            owner_id: ID of the user who will own the property

        Returns:
            PropertyResult with the created record, or with an error message and
            ``VALIDATION_ERROR`` / ``STORE_ERROR`` code. Faults are returned, not raised.
        """
        logger.info(f"Creating property for user {owner_id}")

        if not isinstance(body, dict):
            return PropertyResult(error="Property body must be an object", error_code="VALIDATION_ERROR")

        try:
            validate_image_urls(body.get("images"))
            property_data = PropertyCreate.model_validate(body)
        except ValueError as e:
            message = _first_error_message(e) if isinstance(e, PydanticValidationError) else str(e)
            logger.warning(f"Property validation failed for user {owner_id}: {message}")
            return PropertyResult(error=message, error_code="VALIDATION_ERROR")

        property_fields = property_data.model_dump()
        property_fields["owner_id"] = owner_id
        image_urls = list(property_data.images)

        try:
            property_obj = await self.store.execute_atomic(
                "create_property_with_photos",
                property_fields=property_fields,
                image_urls=image_urls
            )
        except StoreError as e:
            logger.error(f"Failed to create property for user {owner_id}: {e.detail}")
            return PropertyResult(error=e.detail, error_code="STORE_ERROR")

        self.cache.invalidate(PROPERTIES_CACHE_NAMESPACE)

        logger.info(
            f"Property created by user {owner_id}: {property_obj.title} "
            f"(ID: {property_obj.id}, {len(image_urls)} photos)"
        )
        return PropertyResult(data=property_obj.to_dict())

    async def get_property_by_id(self, property_id: Any) -> Optional[Dict[str, Any]]:
        """
        Get a property through the detail cache.

        Args:
            property_id: UUID (or UUID string) of the property

        Returns:
            Property record, or None when it does not exist

        Raises:
            StoreError: If the store read fails
        """
        pid = _parse_uuid(property_id)
        if pid is None:
            return None

        cache_key = property_cache_key(pid)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for {cache_key}")
            return cached

        try:
            property_obj = await self.property_repo.get_property(pid)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to retrieve property: {e}") from e

        if property_obj is None:
            return None

        data = property_obj.to_dict()
        self.cache.set(cache_key, data, settings.cache_ttl_property_detail)
        return data

    async def get_properties(
        self,
        filters: Optional[Dict[str, Any]] = None,
        page: Any = None,
        limit: Any = None
    ) -> Dict[str, Any]:
        """
        List properties through the listing cache.

        Args:
            filters: property_type, city, min_price, max_price, status
                (defaults to "active"; "" lists every status), owner_id
            page: Page number, clamped to >= 1
            limit: Page size, clamped to [1, max_page_size]

        Returns:
            Dictionary with ``properties`` and ``pagination`` keys

        Raises:
            ValidationError: If a price bound is malformed or min exceeds max
            StoreError: If the store query fails
        """
        filters = dict(filters or {})
        if filters.get("status") is None:
            filters["status"] = "active"

        page = max(1, _coerce_int(page, 1))
        limit = min(settings.max_page_size, max(1, _coerce_int(limit, settings.default_page_size)))

        min_price = self._parse_price(filters.get("min_price"), "min_price")
        max_price = self._parse_price(filters.get("max_price"), "max_price")
        if min_price is not None and max_price is not None and min_price > max_price:
            raise ValidationError("Minimum price cannot be greater than maximum price")

        cache_key = listing_cache_key(filters, page, limit)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for {cache_key}")
            return cached

        search_filters = PropertySearchFilters(
            property_type=filters.get("property_type") or None,
            city=filters.get("city") or None,
            min_price=min_price,
            max_price=max_price,
            status=filters["status"],
            owner_id=filters.get("owner_id") or None
        )

        try:
            properties, total = await self.property_repo.search_properties(
                filters=search_filters,
                skip=(page - 1) * limit,
                limit=limit
            )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch properties: {e}") from e

        total_pages = math.ceil(total / limit)
        result = {
            "properties": [property_obj.to_dict() for property_obj in properties],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": total_pages,
                "has_next_page": page < total_pages,
                "has_prev_page": page > 1,
            },
        }

        self.cache.set(cache_key, result, settings.cache_ttl_properties_list)
        return result

    async def update_property(
        self,
        property_id: Any,
        patch: Dict[str, Any],
        requester_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Update a property, link any new image URLs to photo rows and invalidate caches.

        Ownership is checked against the store, never the cache. Photo association
        is best-effort: its failures are logged and do not undo the update.

        Args:
            property_id: UUID of the property to update
            patch: Fields to change
            requester_id: ID of the requesting user; None skips the ownership check

        Returns:
            Updated property record

        Raises:
            ValidationError: If the patch is invalid
            PropertyNotFoundError: If the property doesn't exist
            PropertyOwnershipError: If the requester does not own the property
            StoreError: If the store read or update fails
        """
        update_data = self._validate_patch(patch)

        pid = _parse_uuid(property_id)
        if pid is None:
            raise PropertyNotFoundError(str(property_id))

        existing = await self._load_for_mutation(pid)
        self._check_ownership(existing.owner_id, requester_id, pid, "update")

        try:
            updated = await self.property_repo.update_property(pid, update_data)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update property: {e}") from e

        if updated is None:
            raise PropertyNotFoundError(str(pid))

        result = updated.to_dict()

        images = update_data.get("images")
        if images:
            await self._associate_update_photos(pid, images, requester_id)

        self._invalidate_property(pid)

        logger.info(f"Property updated by user {requester_id}: {pid}")
        return result

    async def delete_property(self, property_id: Any, requester_id: Optional[str] = None) -> None:
        """
        Delete a property (and its photo rows) and invalidate caches.

        Raises:
            PropertyNotFoundError: If the property doesn't exist
            PropertyOwnershipError: If the requester does not own the property
            StoreError: If the store operation fails
        """
        pid = _parse_uuid(property_id)
        if pid is None:
            raise PropertyNotFoundError(str(property_id))

        existing = await self._load_for_mutation(pid)
        self._check_ownership(existing.owner_id, requester_id, pid, "delete")

        try:
            deleted = await self.property_repo.delete_property_with_photos(pid)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete property: {e}") from e

        if not deleted:
            raise PropertyNotFoundError(str(pid))

        self._invalidate_property(pid)
        logger.info(f"Property deleted by user {requester_id}: {pid}")

    async def record_property_view(self, property_id: Any) -> None:
        """Increment the view counter; failures are logged and ignored."""
        pid = _parse_uuid(property_id)
        if pid is None:
            return
        try:
            await self.property_repo.increment_view_count(pid)
        except Exception as e:
            logger.warning(f"Failed to record view for property {pid}: {e}")

    async def get_property_photos(self, property_id: Any) -> List[Dict[str, Any]]:
        """
        Get the photo rows linked to a property.

        Raises:
            StoreError: If the store query fails
        """
        pid = _parse_uuid(property_id)
        if pid is None:
            return []
        try:
            photos = await self.photo_repo.get_by_property_id(pid)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch photos: {e}") from e
        return [photo.to_dict() for photo in photos]

    # Private helpers

    def _validate_patch(self, patch: Dict[str, Any]) -> Dict[str, Any]:
        """Validate an update patch before any store access."""
        if not isinstance(patch, dict):
            raise ValidationError("Update body must be an object")
        try:
            validate_image_urls(patch.get("images"))
        except ValueError as e:
            raise ValidationError(str(e))
        try:
            update_data = PropertyUpdate.model_validate(patch).model_dump(exclude_unset=True)
        except PydanticValidationError as e:
            raise ValidationError(_first_error_message(e), field_errors=_field_errors(e))
        if not update_data:
            raise ValidationError("No valid fields provided for update")
        return update_data

    def _parse_price(self, value: Any, field: str) -> Optional[Decimal]:
        if value is None or value == "":
            return None
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"Invalid {field}: {value}")

    async def _load_for_mutation(self, pid: uuid.UUID):
        """Read the current row from the store, bypassing the cache."""
        try:
            existing = await self.property_repo.get_property(pid)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to retrieve property: {e}") from e
        if existing is None:
            raise PropertyNotFoundError(str(pid))
        return existing

    def _check_ownership(
        self,
        owner_id: str,
        requester_id: Optional[str],
        pid: uuid.UUID,
        action: str
    ) -> None:
        if requester_id is not None and owner_id != requester_id:
            logger.error(f"Unauthorized {action} attempt on property {pid}. User={requester_id}, Owner={owner_id}")
            raise PropertyOwnershipError()

    async def _associate_update_photos(
        self,
        pid: uuid.UUID,
        images: List[str],
        requester_id: Optional[str]
    ) -> None:
        """
        Link image URLs from an update to photo rows.
        Orphan rows with the same URL are re-pointed; other URLs get new rows.
        URLs already linked to this property are left alone.
        """
        try:
            linked: Set[str] = {photo.url for photo in await self.photo_repo.get_by_property_id(pid)}
        except Exception as e:
            logger.warning(f"Could not load photos of property {pid}: {e}")
            await self.db.rollback()
            linked = set()

        to_insert: List[Dict[str, Any]] = []
        for url in dict.fromkeys(images):
            if url in linked:
                continue
            try:
                orphan = await self.photo_repo.find_orphan_by_url(url)
                # False when another writer linked the orphan first
                if orphan is not None and await self.photo_repo.assign_property(orphan.id, pid):
                    continue
            except Exception as e:
                logger.warning(f"Orphan lookup failed for {url}, inserting a new photo row: {e}")
                await self.db.rollback()

            to_insert.append({
                "imagekit_file_id": url,
                "url": url,
                "thumbnail_url": url,
                "category": "property",
                "uploader_id": requester_id,
                "property_id": pid,
                "photo_metadata": {"source": PHOTO_SOURCE_UPDATE},
            })

        if to_insert:
            try:
                await self.photo_repo.bulk_create(to_insert)
            except Exception as e:
                logger.warning(f"Failed to insert associated photos on update of {pid}: {e}")

    def _invalidate_property(self, pid: uuid.UUID) -> None:
        self.cache.invalidate(property_cache_key(pid))
        self.cache.invalidate(PROPERTIES_CACHE_NAMESPACE)
        self.ownership_cache.invalidate("property", str(pid))
