from sqlalchemy import (
    Column,
    String,
    Text,
    Date,
    DateTime,
    Float,
    Boolean,
    ForeignKey,
    Index,
    JSON,
    Uuid,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid

from app.database import Base


class Subject(Base):
    """A tracked dog whose meals, eliminations and moods are journaled."""

    __tablename__ = "subjects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(100), nullable=False)
    breed = Column(String(100))
    birth_date = Column(Date)
    weight_kg = Column(Float)
    medical_history = Column(JSON, default=list)  # ["allergy: chicken", ...]
    notes = Column(Text)
    is_deleted = Column(Boolean, nullable=False, default=False)  # Soft delete
    last_used_at = Column(DateTime(timezone=True))  # Bumped whenever an entry is logged
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    owner = relationship("User", back_populates="subjects")
    entries = relationship(
        "JournalEntry",
        primaryjoin="foreign(JournalEntry.subject_id) == Subject.id",
        back_populates="subject",
        viewonly=True,
    )

    __table_args__ = (
        Index("idx_subjects_owner_id", "owner_id"),
        Index("idx_subjects_owner_last_used", "owner_id", "last_used_at"),
    )
