"""
Atomic store procedures.
Multi-row writes run as one named unit of work inside a single database transaction,
so a failure part-way through never leaves partial state behind.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging

from app.models.property import Property
from app.models.photo import Photo, PHOTO_SOURCE_CREATION
from app.utils.exceptions import StoreError

logger = logging.getLogger(__name__)

AtomicProcedure = Callable[..., Awaitable[Any]]


class AtomicStore:
    """
    Registry and runner for named atomic procedures.
    Each procedure receives the session and its parameters; commit or rollback
    of the whole unit is handled here.
    """

    _procedures: Dict[str, AtomicProcedure] = {}

    def __init__(self, db: AsyncSession):
        self.db = db

    @classmethod
    def register(cls, name: str) -> Callable[[AtomicProcedure], AtomicProcedure]:
        """Register a coroutine function as an atomic procedure under name."""
        def decorator(procedure: AtomicProcedure) -> AtomicProcedure:
            cls._procedures[name] = procedure
            return procedure
        return decorator

    @classmethod
    def procedure_names(cls) -> List[str]:
        return sorted(cls._procedures)

    async def execute_atomic(self, name: str, **params: Any) -> Any:
        """
        Run a registered procedure as one indivisible unit of work.

        Args:
            name: Registered procedure name
            **params: Procedure parameters

        Returns:
            Whatever the procedure returns

        Raises:
            StoreError: If the procedure is unknown or any statement fails
        """
        procedure = self._procedures.get(name)
        if procedure is None:
            raise StoreError(f"Unknown atomic procedure: {name}")

        try:
            result = await procedure(self.db, **params)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Atomic procedure {name} failed and was rolled back: {e}")
            raise StoreError(str(e) or f"Atomic procedure {name} failed") from e

        logger.debug(f"Atomic procedure {name} committed")
        return result


def build_creation_photo(url: str, property_obj: Property) -> Photo:
    """Build the photo row that links an image URL to a newly created property."""
    return Photo(
        imagekit_file_id=url,
        url=url,
        thumbnail_url=url,
        category="property",
        uploader_id=property_obj.owner_id,
        property_id=property_obj.id,
        photo_metadata={"source": PHOTO_SOURCE_CREATION},
    )


@AtomicStore.register("create_property_with_photos")
async def create_property_with_photos(
    db: AsyncSession,
    property_fields: Dict[str, Any],
    image_urls: Optional[List[str]] = None
) -> Property:
    """
    Insert a property row and one photo row per image URL.

    Args:
        db: Session whose transaction wraps the whole procedure
        property_fields: Validated property columns including owner_id
        image_urls: Image URLs to link to the new property

    Returns:
        The created property with server-generated fields loaded
    """
    property_obj = Property(**property_fields)
    db.add(property_obj)
    await db.flush()

    for url in image_urls or []:
        db.add(build_creation_photo(url, property_obj))
    await db.flush()

    await db.refresh(property_obj)
    return property_obj
