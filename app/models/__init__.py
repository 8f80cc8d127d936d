"""
Database models for Pawlog.

Import all models here so Alembic can detect them for migrations.
"""

from app.database import Base
from app.models.user import User
from app.models.session import Session
from app.models.subject import Subject
from app.models.journal_entry import JournalEntry, EntryType
from app.models.analysis_record import AnalysisRecord
from app.models.analysis_exclusion import AnalysisExclusion

__all__ = [
    "Base",
    "User",
    "Session",
    "Subject",
    "JournalEntry",
    "EntryType",
    "AnalysisRecord",
    "AnalysisExclusion",
]
