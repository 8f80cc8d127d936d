from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Float,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    JSON,
    Uuid,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid

from app.database import Base
from app.models.journal_entry import EntryType


class AnalysisRecord(Base):
    """AI health assessment of a journal photo.

    Records accumulate: an entry may be analyzed again after its latest
    record is deleted, so there is no uniqueness on journal_entry_id.
    """

    __tablename__ = "analysis_records"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    journal_entry_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("journal_entries.id", ondelete="SET NULL"),
        nullable=True,
    )
    user_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    image_ref = Column(String(1024), nullable=False, default="")
    analysis_type = Column(Enum(EntryType), nullable=False)

    health_score = Column(Integer, nullable=False)  # 1-10
    confidence = Column(Float, nullable=False)  # 0.0-1.0
    observations = Column(JSON, nullable=False, default=list)
    recommendations = Column(JSON, nullable=False, default=list)
    warnings = Column(JSON, nullable=False, default=list)
    encouragement = Column(Text)
    details = Column(JSON)  # {color, consistency, amount, appetite, mood}
    model = Column(String(100))  # Model id that produced the analysis

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="analysis_records")
    journal_entry = relationship("JournalEntry", back_populates="analysis_records")

    __table_args__ = (
        Index("idx_analysis_records_entry_id", "journal_entry_id"),
        Index("idx_analysis_records_user_id", "user_id"),
        Index("idx_analysis_records_created_at", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "journal_entry_id": str(self.journal_entry_id)
            if self.journal_entry_id
            else None,
            "user_id": str(self.user_id) if self.user_id else None,
            "image_ref": self.image_ref,
            "analysis_type": self.analysis_type.value if self.analysis_type else None,
            "health_score": self.health_score,
            "confidence": self.confidence,
            "observations": list(self.observations or []),
            "recommendations": list(self.recommendations or []),
            "warnings": list(self.warnings or []),
            "encouragement": self.encouragement,
            "details": self.details,
            "model": self.model,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
