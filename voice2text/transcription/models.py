"""
SQLAlchemy models for transcription module.
Defines the transcriptions table structure.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from voice2text.database import Base


class Transcription(Base):
    """
    A stored transcript.
    Append-only: rows are never updated or deleted by the application.
    """

    __tablename__ = "transcriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    filename: Mapped[str] = mapped_column(String(512), nullable=False)
    transcript: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Transcription(id={self.id}, user_id={self.user_id}, filename={self.filename})>"
