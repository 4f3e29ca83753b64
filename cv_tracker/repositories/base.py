"""
Generic write helpers shared by the repositories.

The caller owns the AsyncSession and the commit; a failed flush is rolled
back here so the session stays usable for the caller's error path.
"""

from __future__ import annotations
from typing import Any, Dict, Generic, Type, TypeVar
from uuid import UUID
from sqlalchemy import delete as sql_delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    """
    Insert, update and delete for one model.

    Example:
        class JobApplicationRepository(BaseRepository[JobApplication]):
            def __init__(self):
                super().__init__(JobApplication)
    """

    def __init__(self, model: Type[ModelT]):
        self.model = model

    @property
    def name(self) -> str:
        return self.model.__name__

    async def _flush(self, db: AsyncSession, action: str) -> None:
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error {action} {self.name}: {e}")
            await db.rollback()
            raise

    async def create(self, db: AsyncSession, obj_in: Dict[str, Any]) -> ModelT:
        """
        Insert a row and return it with server-side values loaded.

        Raises:
            SQLAlchemyError: the insert failed (session rolled back)
        """
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        await self._flush(db, "creating")
        await db.refresh(db_obj)
        return db_obj

    async def update(self, db: AsyncSession, db_obj: ModelT, obj_in: Dict[str, Any]) -> ModelT:
        """Set the given columns (unknown keys are ignored) and flush."""
        for field, value in obj_in.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        await self._flush(db, "updating")
        await db.refresh(db_obj)
        return db_obj

    async def delete(self, db: AsyncSession, id: UUID) -> bool:
        """
        Returns:
            True if a row was deleted, False if none matched
        """
        try:
            result = await db.execute(sql_delete(self.model).where(self.model.id == id))
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {self.name} {id}: {e}")
            await db.rollback()
            raise
        await self._flush(db, "deleting")
        return result.rowcount > 0
