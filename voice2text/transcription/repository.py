"""
Transcription repository - Data Access Layer for transcripts.
All reads filter by user_id.
"""

import logging
from typing import Sequence
from uuid import uuid4

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voice2text.core.exceptions import StorageError
from voice2text.database import get_db
from voice2text.transcription.models import Transcription

logger = logging.getLogger(__name__)


class TranscriptRepository:
    """Repository for append-only transcript records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, user_id: str, filename: str, transcript: str) -> Transcription:
        """
        Insert and commit a single transcript row.

        Args:
            user_id: Owner user ID
            filename: Stored upload file name
            transcript: Transcribed text

        Returns:
            Created Transcription entity

        Raises:
            StorageError: If the insert or commit fails
        """
        record = Transcription(
            id=str(uuid4()),
            user_id=user_id,
            filename=filename,
            transcript=transcript,
        )

        try:
            self.db.add(record)
            await self.db.commit()
            await self.db.refresh(record)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[TranscriptRepository] Insert failed: {e}")
            raise StorageError(f"Database error: {type(e).__name__}") from e

        logger.info(f"[TranscriptRepository] Created transcript: {record.id} for user: {user_id}")
        return record

    async def list_by_user(self, user_id: str) -> Sequence[Transcription]:
        """
        Get all transcripts for a user, newest first.

        Raises:
            StorageError: If the query fails
        """
        stmt = (
            select(Transcription)
            .where(Transcription.user_id == user_id)
            .order_by(Transcription.created_at.desc(), Transcription.id.desc())
        )

        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"[TranscriptRepository] Select failed: {e}")
            raise StorageError(f"Database error: {type(e).__name__}") from e

        return result.scalars().all()


async def get_transcript_repository(db: AsyncSession = Depends(get_db)) -> TranscriptRepository:
    """Dependency provider for TranscriptRepository."""
    return TranscriptRepository(db)
