"""
Persistence for analysis records and the candidate-list exclusion set.

Records accumulate per entry; nothing enforces one analysis per entry in
the database. Instead, list_candidates hides entries that already have an
analysis, unless the entry sits in the ExclusionSet (its latest analysis
was deleted, so it needs a new one).

Every mutating method commits before returning, so a list query on the same
session observes it.
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete as sql_delete, exists
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.analysis_exclusion import AnalysisExclusion
from app.models.analysis_record import AnalysisRecord
from app.models.journal_entry import EntryType, JournalEntry
from app.services.analysis_errors import PersistenceError, RecordNotFoundError
from app.services.journal_service import parse_entry_id

logger = logging.getLogger(__name__)

# Fields copied when a record is re-saved in place
MUTABLE_FIELDS = (
    "image_ref",
    "analysis_type",
    "health_score",
    "confidence",
    "observations",
    "recommendations",
    "warnings",
    "encouragement",
    "details",
    "model",
)


def _insert_ignoring_conflicts(db: Session, values: dict):
    """Single-statement INSERT ... ON CONFLICT DO NOTHING for the bound dialect."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(AnalysisExclusion)
    elif dialect == "sqlite":
        stmt = sqlite.insert(AnalysisExclusion)
    else:
        raise NotImplementedError(f"Unsupported database dialect: {dialect}")
    return stmt.values(**values).on_conflict_do_nothing(
        index_elements=[AnalysisExclusion.journal_entry_id]
    )


class ExclusionSet:
    """
    Entries re-admitted to the candidate list after their analysis was deleted.

    Stored as one tombstone row per entry. Membership changes are single
    statements, never read-modify-write, so concurrent deletes and inserts
    for the same subject cannot lose updates.
    """

    def add(self, db: Session, journal_entry_id: UUID, user_id: UUID, commit: bool = True) -> None:
        db.execute(
            _insert_ignoring_conflicts(
                db, {"journal_entry_id": journal_entry_id, "user_id": user_id}
            )
        )
        if commit:
            db.commit()

    def discard(self, db: Session, journal_entry_id: UUID, commit: bool = True) -> None:
        db.execute(
            sql_delete(AnalysisExclusion).where(
                AnalysisExclusion.journal_entry_id == journal_entry_id
            )
        )
        if commit:
            db.commit()


class AnalysisStore:
    """Service for analysis record persistence and candidate queries."""

    def __init__(self, exclusions: Optional[ExclusionSet] = None):
        self.exclusions = exclusions or ExclusionSet()

    async def insert(
        self, db: Session, record: AnalysisRecord, journal_entry_id: UUID
    ) -> AnalysisRecord:
        """
        Store a record linked to an entry and drop the entry from the exclusion set.

        Raises:
            PersistenceError: The write failed; the session is rolled back
        """
        record.journal_entry_id = journal_entry_id
        try:
            entry = db.get(JournalEntry, journal_entry_id)
            if entry is not None and entry.type != EntryType(record.analysis_type):
                logger.warning(
                    "Analysis type %s does not match entry %s type %s",
                    EntryType(record.analysis_type).value,
                    journal_entry_id,
                    entry.type.value,
                )
            db.add(record)
            self.exclusions.discard(db, journal_entry_id, commit=False)
            db.commit()
            db.refresh(record)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to store analysis for entry %s: %s", journal_entry_id, e)
            raise PersistenceError() from e

        logger.info("Stored analysis %s for entry %s", record.id, journal_entry_id)
        return record

    async def save(
        self, db: Session, record: AnalysisRecord, journal_entry_id: UUID
    ) -> AnalysisRecord:
        """
        Explicit save from the presentation layer.

        Updates the entry's newest record in place when it has the same id
        (a re-save), otherwise inserts a new record.
        """
        newest = self.latest_for_entry(db, journal_entry_id)
        if newest is None or newest.id != record.id:
            return await self.insert(db, record, journal_entry_id)

        for field in MUTABLE_FIELDS:
            setattr(newest, field, getattr(record, field))
        try:
            db.commit()
            db.refresh(newest)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to re-save analysis %s: %s", newest.id, e)
            raise PersistenceError() from e

        logger.info("Re-saved analysis %s for entry %s", newest.id, journal_entry_id)
        return newest

    async def delete(
        self, db: Session, record_id, user_id: Optional[UUID] = None
    ) -> Optional[UUID]:
        """
        Delete a record.

        Returns:
            The record's journal_entry_id (None when it was not linked).
            The caller re-admits the entry via ExclusionSet.add.

        Raises:
            RecordNotFoundError: Unknown id, or not owned by user_id
        """
        parsed = parse_entry_id(record_id)
        if parsed is None:
            raise RecordNotFoundError()
        query = db.query(AnalysisRecord).filter(AnalysisRecord.id == parsed)
        if user_id is not None:
            query = query.filter(AnalysisRecord.user_id == user_id)
        record = query.first()
        if record is None:
            raise RecordNotFoundError()

        journal_entry_id = record.journal_entry_id
        try:
            db.delete(record)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to delete analysis %s: %s", record_id, e)
            raise PersistenceError("The analysis could not be deleted. Please try again.") from e

        logger.info("Deleted analysis %s (entry %s)", parsed, journal_entry_id)
        return journal_entry_id

    async def list_candidates(
        self, db: Session, subject_id: UUID, entry_type: EntryType, limit: int = 20
    ) -> List[JournalEntry]:
        """
        Entries eligible for a new analysis, newest first.

        An entry qualifies when it has a photo, matches entry_type, and either
        has no analysis yet or sits in the exclusion set.
        """
        analyzed = exists().where(AnalysisRecord.journal_entry_id == JournalEntry.id)
        readmitted = exists().where(AnalysisExclusion.journal_entry_id == JournalEntry.id)
        return (
            db.query(JournalEntry)
            .filter(
                JournalEntry.subject_id == subject_id,
                JournalEntry.type == EntryType(entry_type),
                JournalEntry.photo_ref.isnot(None),
                JournalEntry.photo_ref != "",
                ~analyzed | readmitted,
            )
            .order_by(JournalEntry.timestamp.desc())
            .limit(limit)
            .all()
        )

    async def list_history(
        self, db: Session, subject_id: UUID, limit: int = 50
    ) -> List[Tuple[AnalysisRecord, JournalEntry]]:
        """Records joined with their entries for a subject, newest first."""
        return (
            db.query(AnalysisRecord, JournalEntry)
            .join(JournalEntry, AnalysisRecord.journal_entry_id == JournalEntry.id)
            .filter(JournalEntry.subject_id == subject_id)
            .order_by(AnalysisRecord.created_at.desc())
            .limit(limit)
            .all()
        )

    def latest_for_entry(self, db: Session, journal_entry_id: UUID) -> Optional[AnalysisRecord]:
        return (
            db.query(AnalysisRecord)
            .filter(AnalysisRecord.journal_entry_id == journal_entry_id)
            .order_by(AnalysisRecord.created_at.desc())
            .first()
        )

    def records_for_entries(self, db: Session, entry_ids: List[UUID]) -> List[AnalysisRecord]:
        """Records linked to any of entry_ids, newest first."""
        if not entry_ids:
            return []
        return (
            db.query(AnalysisRecord)
            .filter(AnalysisRecord.journal_entry_id.in_(entry_ids))
            .order_by(AnalysisRecord.created_at.desc())
            .all()
        )


analysis_store = AnalysisStore()
