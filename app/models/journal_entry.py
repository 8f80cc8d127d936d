from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    Enum,
    Index,
    JSON,
    Uuid,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
import uuid

from app.database import Base


class EntryType(str, enum.Enum):
    """Kind of event a journal entry (and its analysis) describes."""
    MEAL = "meal"
    POOP = "poop"
    EMOTION = "emotion"


class JournalEntry(Base):
    """One timestamped event about a subject, optionally with a photo."""

    __tablename__ = "journal_entries"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # No FK: placeholder entries fall back to the owner's id when no subject exists
    subject_id = Column(Uuid(as_uuid=True), nullable=False)
    type = Column(Enum(EntryType), nullable=False)
    timestamp = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    content = Column(Text, nullable=False, default="")
    photo_ref = Column(String(1024))  # Object storage key or URL
    tags = Column(JSON)  # ["walk", "new food"]
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    subject = relationship(
        "Subject",
        primaryjoin="foreign(JournalEntry.subject_id) == Subject.id",
        back_populates="entries",
        viewonly=True,
    )
    analysis_records = relationship("AnalysisRecord", back_populates="journal_entry")

    __table_args__ = (
        Index("idx_journal_entries_subject_id", "subject_id"),
        Index("idx_journal_entries_timestamp", "timestamp"),
        Index("idx_journal_entries_photo_ref", "photo_ref"),
        Index("idx_journal_entries_subject_type", "subject_id", "type"),
    )
