"""
Repository for job application records.

Every read is scoped by owner. Listing fetches unordered and sorts in
Python so the store needs no composite (user_id, created_at) index.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
import logging

from cv_tracker.models.application import JobApplication, utcnow
from .base import BaseRepository

logger = logging.getLogger(__name__)


class JobApplicationRepository(BaseRepository[JobApplication]):
    """
    Repository for JobApplication with owner-scoped queries.
    """

    def __init__(self):
        super().__init__(JobApplication)

    async def create(
        self,
        db: AsyncSession,
        obj_in: dict
    ) -> JobApplication:
        """Create a record with matching created_at / updated_at stamps."""
        if not obj_in.get("user_id"):
            raise ValueError("user_id is required to create a job application")
        now = utcnow()
        return await super().create(db, {**obj_in, "created_at": now, "updated_at": now})

    async def update(
        self,
        db: AsyncSession,
        db_obj: JobApplication,
        obj_in: dict
    ) -> JobApplication:
        """Apply field values and bump updated_at. Ownership and id are never rewritten."""
        values = {k: v for k, v in obj_in.items() if k not in ("id", "user_id", "created_at")}
        values["updated_at"] = max(utcnow(), _aware(db_obj.created_at))
        return await super().update(db, db_obj, values)

    async def get_for_owner(
        self,
        db: AsyncSession,
        id: UUID,
        owner_id: str
    ) -> Optional[JobApplication]:
        """
        Get a single application if it belongs to owner_id.

        Returns:
            The record, or None if it does not exist or belongs to someone else
        """
        try:
            stmt = select(JobApplication).where(
                JobApplication.id == id,
                JobApplication.user_id == owner_id
            )
            result = await db.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching job application {id} for owner {owner_id}: {e}")
            raise

    async def list_for_owner(
        self,
        db: AsyncSession,
        owner_id: str
    ) -> list[JobApplication]:
        """
        All applications of owner_id, newest first (created_at descending).
        """
        if not owner_id:
            return []
        try:
            stmt = select(JobApplication).where(JobApplication.user_id == owner_id)
            result = await db.execute(stmt)
            applications = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing job applications for owner {owner_id}: {e}")
            raise

        applications.sort(key=lambda app: _aware(app.created_at), reverse=True)
        return applications


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
