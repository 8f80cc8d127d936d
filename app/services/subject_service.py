"""Subject (dog) profile lookups used by the analysis pipeline."""

from datetime import date, datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.subject import Subject
from app.services.ai_schemas import SubjectInfo


def subject_age_years(birth_date: Optional[date], now: Optional[datetime] = None) -> Optional[int]:
    """Whole years since birth_date, counted in 365-day years."""
    if birth_date is None:
        return None
    now = now or datetime.now(timezone.utc)
    days = (now.date() - birth_date).days
    if days < 0:
        return None
    return days // 365


class SubjectService:
    """Service for subject profile operations."""

    @staticmethod
    def get_active_subjects(db: Session, owner_id: UUID) -> List[Subject]:
        """Non-deleted subjects, most recently used first."""
        return (
            db.query(Subject)
            .filter(Subject.owner_id == owner_id, Subject.is_deleted.is_(False))
            .order_by(
                Subject.last_used_at.desc().nulls_last(),
                Subject.created_at.desc(),
            )
            .all()
        )

    @staticmethod
    def get_most_recent_subject(db: Session, owner_id: UUID) -> Optional[Subject]:
        """The owner's most recently used active subject, if any."""
        subjects = SubjectService.get_active_subjects(db, owner_id)
        return subjects[0] if subjects else None

    @staticmethod
    def get_owned_subject(db: Session, owner_id: UUID, subject_id) -> Optional[Subject]:
        try:
            parsed = subject_id if isinstance(subject_id, UUID) else UUID(str(subject_id))
        except (TypeError, ValueError):
            return None
        return (
            db.query(Subject)
            .filter(Subject.id == parsed, Subject.owner_id == owner_id)
            .first()
        )

    @staticmethod
    def build_subject_info(
        subject: Subject, now: Optional[datetime] = None
    ) -> SubjectInfo:
        """Profile metadata in the shape the prompt builder embeds."""
        return SubjectInfo(
            breed=subject.breed,
            age_years=subject_age_years(subject.birth_date, now),
            weight_kg=subject.weight_kg,
            medical_history=list(subject.medical_history or []),
        )


subject_service = SubjectService()
