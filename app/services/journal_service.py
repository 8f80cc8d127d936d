"""Business logic for journal entries (the journal store)."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.journal_entry import JournalEntry, EntryType
from app.models.subject import Subject


def parse_entry_id(value) -> Optional[UUID]:
    """Coerce a string id to UUID, None if it is not one."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


class JournalService:
    """Service for journal entry operations."""

    @staticmethod
    def create_entry(
        db: Session,
        subject_id: UUID,
        entry_type: EntryType,
        content: str = "",
        photo_ref: Optional[str] = None,
        tags: Optional[List[str]] = None,
        timestamp: Optional[datetime] = None,
    ) -> JournalEntry:
        """
        Create a new journal entry.

        Args:
            db: Database session
            subject_id: Subject the entry is about
            entry_type: meal, poop or emotion
            content: Free-text description
            photo_ref: Object storage reference of the attached photo
            tags: Optional tag list
            timestamp: Event time (defaults to now)

        Returns:
            Created JournalEntry object
        """
        entry = JournalEntry(
            subject_id=subject_id,
            type=entry_type,
            content=content,
            photo_ref=photo_ref,
            tags=tags,
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        db.add(entry)

        subject = db.query(Subject).filter(Subject.id == subject_id).first()
        if subject:
            subject.last_used_at = datetime.now(timezone.utc)

        db.commit()
        db.refresh(entry)
        return entry

    @staticmethod
    def get_entry(db: Session, entry_id) -> Optional[JournalEntry]:
        """Get an entry by id; None for unknown or non-UUID ids."""
        parsed = parse_entry_id(entry_id)
        if parsed is None:
            return None
        return db.query(JournalEntry).filter(JournalEntry.id == parsed).first()

    @staticmethod
    def find_by_photo_ref(db: Session, photo_ref: str) -> Optional[JournalEntry]:
        """Newest entry whose stored photo reference equals photo_ref exactly."""
        if not photo_ref:
            return None
        return (
            db.query(JournalEntry)
            .filter(JournalEntry.photo_ref == photo_ref)
            .order_by(JournalEntry.timestamp.desc())
            .first()
        )

    @staticmethod
    def get_entries_since(
        db: Session, subject_id: UUID, since: datetime
    ) -> List[JournalEntry]:
        """Entries for a subject with timestamp >= since, oldest first."""
        return (
            db.query(JournalEntry)
            .filter(
                JournalEntry.subject_id == subject_id,
                JournalEntry.timestamp >= since,
            )
            .order_by(JournalEntry.timestamp.asc())
            .all()
        )


def period_start(days: int, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=days)


journal_service = JournalService()
