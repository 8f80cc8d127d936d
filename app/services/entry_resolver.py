"""
Map an analysis request to a concrete journal entry.

Resolution is an ordered chain of named strategies. Each strategy proposes
a candidate id (or None); the resolver verifies the candidate exists in the
journal store before accepting it and otherwise moves on. When nothing
verifies, a placeholder entry is created for the user's most recently used
subject.

    resolver = EntryResolver()
    resolution = await resolver.resolve(db, context, request)
    resolution.entry_id, resolution.strategy

The pipeline calls find() before the model call and create_placeholder()
only once a parsed analysis is ready to store, so failed analyses leave no
entries behind.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.journal_entry import EntryType
from app.services.ai_schemas import AnalysisRequest
from app.services.analysis_errors import ResolutionError
from app.services.auth.context import AnalysisContext
from app.services.journal_service import journal_service
from app.services.subject_service import subject_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    entry_id: UUID
    strategy: str


class ResolutionStrategy:
    """One way of deriving a candidate entry id from a request."""

    name = "base"

    def candidate(self, db: Session, request: AnalysisRequest) -> Optional[str]:
        raise NotImplementedError


class ExplicitIdStrategy(ResolutionStrategy):
    """Caller supplied the entry id directly."""

    name = "explicit_id"

    def candidate(self, db, request):
        return request.journal_entry_id or None


class PathPatternStrategy(ResolutionStrategy):
    """Extract the id segment that follows a known prefix in the image reference."""

    def __init__(self, name: str, prefix: str):
        self.name = name
        self.pattern = re.compile(rf"(?:^|/){re.escape(prefix)}/([^/]+)/")

    def candidate(self, db, request):
        if not request.image_ref:
            return None
        match = self.pattern.search(request.image_ref)
        return match.group(1) if match else None


class PhotoRefStrategy(ResolutionStrategy):
    """Entry whose stored photo reference equals the request's image reference."""

    name = "photo_ref"

    def candidate(self, db, request):
        if not request.image_ref:
            return None
        entry = journal_service.find_by_photo_ref(db, request.image_ref)
        return str(entry.id) if entry else None


def default_strategies() -> list[ResolutionStrategy]:
    namespace = settings.entry_path_namespace
    # Every nested_path match is also a primary_path match with the same id;
    # nested_path only resolves on its own in chains without primary_path.
    return [
        ExplicitIdStrategy(),
        PathPatternStrategy("primary_path", namespace),
        PathPatternStrategy("nested_path", f"{settings.entry_path_bucket}/{namespace}"),
        PhotoRefStrategy(),
    ]


class EntryResolver:
    """Resolve (or create) the journal entry an analysis belongs to."""

    PLACEHOLDER = "placeholder"

    def __init__(
        self,
        strategies: Optional[Sequence[ResolutionStrategy]] = None,
        placeholder_content: str = settings.placeholder_content,
    ):
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.placeholder_content = placeholder_content

    async def resolve(
        self, db: Session, context: AnalysisContext, request: AnalysisRequest
    ) -> Resolution:
        """
        Return a verified, existing entry id for the request.

        Raises:
            ResolutionError: placeholder creation failed
        """
        return self.find(db, request) or self.create_placeholder(db, context, request)

    def find(self, db: Session, request: AnalysisRequest) -> Optional[Resolution]:
        """First verified candidate from the strategy chain, or None."""
        for strategy in self.strategies:
            candidate = strategy.candidate(db, request)
            if not candidate:
                continue

            entry = journal_service.get_entry(db, candidate)
            if entry is None:
                logger.info(
                    "Discarding unverified entry id %s from strategy %s",
                    candidate,
                    strategy.name,
                )
                continue

            logger.info("Resolved entry %s via %s", entry.id, strategy.name)
            return Resolution(entry_id=entry.id, strategy=strategy.name)
        return None

    def create_placeholder(
        self, db: Session, context: AnalysisContext, request: AnalysisRequest
    ) -> Resolution:
        """
        Create a minimal entry for the user's most recently used subject.

        Raises:
            ResolutionError: the entry could not be written
        """
        subject = subject_service.get_most_recent_subject(db, context.user_id)
        subject_id = subject.id if subject else context.user_id

        try:
            entry = journal_service.create_entry(
                db,
                subject_id=subject_id,
                entry_type=EntryType(request.analysis_type),
                content=self.placeholder_content,
                photo_ref=request.image_ref or "",
            )
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Placeholder entry creation failed: %s", e)
            raise ResolutionError() from e

        logger.info(
            "Created placeholder entry %s for subject %s", entry.id, subject_id
        )
        return Resolution(entry_id=entry.id, strategy=self.PLACEHOLDER)


entry_resolver = EntryResolver()
