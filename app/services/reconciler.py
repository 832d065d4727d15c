"""
Orphan photo reconciliation.
Links photo rows that have no property to the property whose images list contains
their URL.
"""

from typing import Dict, List, Optional
import uuid
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.photo import PHOTO_LINKED_BY_RECONCILIATION
from app.repositories.photo import PhotoRepository
from app.repositories.property import PropertyRepository
from app.utils.exceptions import StoreError

logger = logging.getLogger(__name__)


class PhotoReconciler:
    """Background sweep that repairs photo rows left without a property."""

    def __init__(self, db_session: AsyncSession, batch_size: Optional[int] = None):
        self.db = db_session
        self.photo_repo = PhotoRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.batch_size = batch_size or settings.reconcile_batch_size

    async def reconcile_orphan_photos(self, batch_size: Optional[int] = None) -> List[Dict[str, str]]:
        """
        Run one reconciliation sweep over a batch of orphan photos.

        Photos whose URL is not referenced by any property stay orphaned. They are
        stamped as checked so later sweeps rotate through the rest of the orphans
        before examining them again. Per-photo failures are logged and skipped;
        the session is rolled back after each failure so the next photo starts
        on a clean transaction.

        Args:
            batch_size: Maximum number of orphans to examine

        Returns:
            List of ``{"photo_id", "property_id"}`` pairs that were linked

        Raises:
            StoreError: If the orphan batch cannot be fetched
        """
        limit = batch_size or self.batch_size

        try:
            orphans = await self.photo_repo.get_orphan_photos(limit=limit)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch orphan photos: {e}")
            raise StoreError(f"Failed to fetch orphan photos: {e}") from e

        # A rollback expires loaded rows
        pending = [(photo.id, photo.url, dict(photo.photo_metadata or {})) for photo in orphans]

        reconciled: List[Dict[str, str]] = []
        unlinked: List[uuid.UUID] = []
        for photo_id, url, metadata in pending:
            try:
                match = await self.property_repo.find_by_image_url(url)
                if match is None:
                    unlinked.append(photo_id)
                    continue

                property_id = match.id
                metadata["linked_by"] = PHOTO_LINKED_BY_RECONCILIATION
                if await self.photo_repo.assign_property(photo_id, property_id, metadata):
                    reconciled.append({"photo_id": str(photo_id), "property_id": str(property_id)})
            except Exception as e:
                logger.warning(f"Failed to reconcile photo {photo_id}: {e}")
                unlinked.append(photo_id)
                await self.db.rollback()

        try:
            await self.photo_repo.mark_reconcile_checked(unlinked)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to stamp {len(unlinked)} unlinked orphan photos: {e}")

        logger.info(f"Reconciled {len(reconciled)} of {len(pending)} orphan photos")
        return reconciled
