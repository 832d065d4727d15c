"""
Repository for Photo model operations.
Handles photo lookups by property, orphan queries and re-pointing photos to properties.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.photo import Photo
from app.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class PhotoRepository(BaseRepository[Photo]):
    """Repository for Photo database operations."""

    def __init__(self, db_session: AsyncSession):
        super().__init__(Photo, db_session)

    async def get_by_property_id(self, property_id: uuid.UUID) -> List[Photo]:
        """
        Get all photos linked to a property.

        Args:
            property_id: ID of the property

        Returns:
            List of photos ordered by creation time
        """
        query = (
            select(Photo)
            .where(Photo.property_id == property_id)
            .order_by(Photo.created_at.asc(), Photo.url.asc())
        )

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_orphan_photos(self, limit: int = 200) -> List[Photo]:
        """
        Get photos that are not linked to any property.

        Orphans never examined by a sweep come first, then those checked
        longest ago, oldest upload first within each group.

        Args:
            limit: Maximum number of photos to return

        Returns:
            List of orphan photos
        """
        query = (
            select(Photo)
            .where(Photo.property_id.is_(None))
            .order_by(
                Photo.reconcile_checked_at.asc().nulls_first(),
                Photo.created_at.asc()
            )
            .limit(limit)
        )

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_orphan_by_url(self, url: str) -> Optional[Photo]:
        """
        Find one orphan photo with exactly this URL.

        Args:
            url: Public URL of the photo

        Returns:
            Orphan photo or None if not found
        """
        query = (
            select(Photo)
            .where(and_(Photo.url == url, Photo.property_id.is_(None)))
            .limit(1)
        )

        result = await self.db.execute(query)
        return result.scalars().first()

    async def assign_property(
        self,
        photo_id: uuid.UUID,
        property_id: uuid.UUID,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Point an orphan photo at a property.

        Photos already linked elsewhere are left alone, so a concurrent link
        made after the orphan was read wins.

        Args:
            photo_id: ID of the photo
            property_id: ID of the property to link
            metadata: Optional replacement metadata map

        Returns:
            True if the photo was still an orphan and is now linked
        """
        values: Dict[Any, Any] = {Photo.property_id: property_id}
        if metadata is not None:
            values[Photo.photo_metadata] = metadata

        try:
            result = await self.db.execute(
                update(Photo)
                .where(and_(Photo.id == photo_id, Photo.property_id.is_(None)))
                .values(values)
            )
            await self.db.commit()
            updated = result.rowcount > 0
            if updated:
                logger.debug(f"Linked photo {photo_id} to property {property_id}")
            else:
                logger.debug(f"Photo {photo_id} is missing or already linked; left unchanged")
            return updated
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to link photo {photo_id} to property {property_id}: {e}")
            raise

    async def mark_reconcile_checked(
        self,
        photo_ids: Sequence[uuid.UUID],
        checked_at: Optional[datetime] = None
    ) -> int:
        """
        Stamp orphans that a sweep examined without linking.

        Stamped rows move behind unchecked ones in the next orphan batch.

        Returns:
            Number of rows stamped
        """
        if not photo_ids:
            return 0

        checked_at = checked_at or datetime.now(timezone.utc)
        try:
            result = await self.db.execute(
                update(Photo)
                .where(and_(Photo.id.in_(list(photo_ids)), Photo.property_id.is_(None)))
                .values({Photo.reconcile_checked_at: checked_at})
            )
            await self.db.commit()
            return result.rowcount
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to stamp {len(photo_ids)} orphan photos as checked: {e}")
            raise
