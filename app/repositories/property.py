"""
Property repository for managing property listings with filtering and image lookups.
Provides database operations for property management and orphan photo matching.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func, desc, delete, update, cast, true
from sqlalchemy.dialects.postgresql import JSONB
from app.repositories.base import BaseRepository
from app.models.property import Property
from app.models.photo import Photo
from typing import Optional, List, Dict, Any, Tuple
from decimal import Decimal
import uuid
import logging

logger = logging.getLogger(__name__)


class PropertySearchFilters:
    """Data class for property listing filters."""

    def __init__(
        self,
        property_type: Optional[str] = None,
        city: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        status: Optional[str] = "active",
        owner_id: Optional[str] = None
    ):
        self.property_type = property_type
        self.city = city
        self.min_price = min_price
        self.max_price = max_price
        self.status = status
        self.owner_id = owner_id


class PropertyRepository(BaseRepository[Property]):
    """
    Repository for property management with filtering and image URL matching.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Property, db)

    async def get_property(self, property_id: uuid.UUID) -> Optional[Property]:
        """Read a property straight from the store."""
        return await self.get_by_id(property_id)

    async def search_properties(
        self,
        filters: PropertySearchFilters,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Property], int]:
        """
        Search properties with filtering and pagination.

        Args:
            filters: PropertySearchFilters instance with search criteria
            skip: Number of records to skip for pagination
            limit: Maximum number of records to return

        Returns:
            Tuple of (properties list, total count)
        """
        try:
            query = select(Property)
            count_query = select(func.count(Property.id))

            conditions = self._build_filter_conditions(filters)
            if conditions:
                query = query.where(and_(*conditions))
                count_query = count_query.where(and_(*conditions))

            count_result = await self.db.execute(count_query)
            total_count = count_result.scalar() or 0

            query = query.order_by(desc(Property.created_at), desc(Property.id)).offset(skip).limit(limit)

            result = await self.db.execute(query)
            properties = result.scalars().all()

            logger.debug(f"Property search returned {len(properties)} of {total_count} total results")
            return list(properties), total_count
        except Exception as e:
            logger.error(f"Failed to search properties: {e}")
            raise

    def _build_filter_conditions(self, filters: PropertySearchFilters) -> List:
        """
        Build SQLAlchemy filter conditions from search filters.

        Args:
            filters: PropertySearchFilters instance

        Returns:
            List of SQLAlchemy conditions
        """
        conditions = []

        if filters.status:
            conditions.append(Property.status == filters.status)

        if filters.property_type:
            conditions.append(Property.property_type == filters.property_type)

        # City filter (case-insensitive partial match)
        if filters.city:
            conditions.append(Property.city.ilike(f"%{filters.city}%"))

        # Price range filters
        if filters.min_price is not None:
            conditions.append(Property.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Property.price <= filters.max_price)

        if filters.owner_id:
            conditions.append(Property.owner_id == filters.owner_id)

        return conditions

    async def update_property(self, property_id: uuid.UUID, update_data: Dict[str, Any]) -> Optional[Property]:
        """
        Apply a patch to a property.

        Args:
            property_id: UUID of the property
            update_data: Column values to change

        Returns:
            Updated property or None if not found
        """
        updated_property = await self.update(property_id, update_data)
        if updated_property:
            logger.info(f"Updated property {property_id} ({', '.join(sorted(update_data))})")
        return updated_property

    async def delete_property_with_photos(self, property_id: uuid.UUID) -> bool:
        """
        Delete a property and all photo rows that reference it in one transaction.

        Args:
            property_id: UUID of the property to delete

        Returns:
            True if property was deleted, False if not found
        """
        try:
            photos_result = await self.db.execute(
                delete(Photo).where(Photo.property_id == property_id)
            )
            result = await self.db.execute(
                delete(Property).where(Property.id == property_id)
            )
            await self.db.commit()

            deleted = result.rowcount > 0
            if deleted:
                logger.info(f"Deleted property {property_id} with {photos_result.rowcount} photos")
            return deleted
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete property with photos {property_id}: {e}")
            raise

    async def increment_view_count(self, property_id: uuid.UUID) -> bool:
        """
        Increment the view counter in the store.

        Returns:
            True if a property row was updated
        """
        try:
            stmt = (
                update(Property)
                .where(Property.id == property_id)
                .values(view_count=Property.view_count + 1)
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount > 0
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to increment view count for {property_id}: {e}")
            raise

    async def find_by_image_url(self, url: str) -> Optional[Property]:
        """
        Find one property whose image list contains the given URL.

        Args:
            url: Exact image URL to look for

        Returns:
            First matching property or None
        """
        try:
            if self.db.get_bind().dialect.name == "postgresql":
                query = (
                    select(Property)
                    .where(cast(Property.images, JSONB).contains([url]))
                    .limit(1)
                )
            else:
                # SQLite: expand the JSON array with json_each
                elements = func.json_each(Property.images).table_valued("value")
                query = (
                    select(Property)
                    .join(elements, true())
                    .where(elements.c.value == url)
                    .limit(1)
                )

            result = await self.db.execute(query)
            return result.scalars().first()
        except Exception as e:
            logger.error(f"Failed to find property by image url {url}: {e}")
            raise
