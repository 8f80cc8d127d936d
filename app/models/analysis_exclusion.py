from sqlalchemy import Column, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.sql import func

from app.database import Base


class AnalysisExclusion(Base):
    """Tombstone re-admitting an entry to the analysis candidate list.

    Written when the entry's latest analysis is deleted, removed when the
    entry is analyzed again.
    """

    __tablename__ = "analysis_exclusions"

    journal_entry_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_analysis_exclusions_user_id", "user_id"),)
