"""
Base repository with the generic reads and writes shared by property and photo access.
Each write commits its own transaction and rolls back on failure.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from app.database import Base
from typing import TypeVar, Generic, Optional, List, Dict, Any, Type
import uuid
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository bound to one model class and one session.
    Errors are logged and re-raised for the service layer to translate.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    @property
    def model_name(self) -> str:
        return self.model.__name__

    async def get_by_id(self, id: uuid.UUID) -> Optional[ModelType]:
        """
        Get a record by its ID.
        Rows already in the session are overwritten with current store values,
        so a read after a bulk UPDATE never sees stale attributes.

        Args:
            id: UUID of the record to retrieve

        Returns:
            Model instance if found, None otherwise
        """
        try:
            result = await self.db.execute(
                select(self.model)
                .where(self.model.id == id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except Exception as e:
            logger.error(f"Failed to get {self.model_name} by id {id}: {e}")
            raise

    async def update(self, id: uuid.UUID, obj_in: Dict[str, Any]) -> Optional[ModelType]:
        """
        Apply a column patch to one record.

        None and empty-string values are ignored; an empty list is a real value.

        Args:
            id: UUID of the record to update
            obj_in: Column values to write

        Returns:
            Updated model instance, or None if no row has this ID
        """
        values = {k: v for k, v in obj_in.items() if v is not None and v != ""}
        if not values:
            logger.warning(f"Empty patch for {self.model_name} {id}")
            return await self.get_by_id(id)

        try:
            result = await self.db.execute(
                update(self.model).where(self.model.id == id).values(**values)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                return None
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to update {self.model_name} {id}: {e}")
            raise

        return await self.get_by_id(id)

    async def bulk_create(self, objects_in: List[Dict[str, Any]]) -> List[ModelType]:
        """
        Insert several records in one transaction.

        Args:
            objects_in: Column values per record

        Returns:
            Created model instances with generated IDs and timestamps loaded
        """
        db_objects = [self.model(**obj_data) for obj_data in objects_in]
        try:
            self.db.add_all(db_objects)
            await self.db.commit()
            for obj in db_objects:
                await self.db.refresh(obj)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to bulk create {len(db_objects)} {self.model_name} records: {e}")
            raise

        logger.debug(f"Bulk created {len(db_objects)} {self.model_name} records")
        return db_objects
