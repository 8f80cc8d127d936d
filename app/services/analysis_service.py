"""
Journal photo analysis pipeline.

    validate -> find entry -> build prompt -> call model -> parse
             -> placeholder entry if none found -> store

Validation and auth failures short-circuit before any external call. Model
and parse failures propagate as AnalysisError subclasses. A store failure
after a successful parse does not hide the result: the outcome carries the
analysis with save_failed set so the caller can retry the save on its own.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import pydantic
from sqlalchemy.orm import Session

from app.config import settings
from app.models.analysis_record import AnalysisRecord
from app.models.journal_entry import EntryType
from app.services.ai_schemas import (
    AnalysisRequest,
    HealthAnalysisSchema,
    SubjectInfo,
)
from app.services.ai_service import VisionModelService, vision_model_service
from app.services.analysis_card import (
    AnalysisCard,
    CardRegistry,
    card_key,
    card_registry,
)
from app.services.analysis_errors import PersistenceError, ValidationError
from app.services.analysis_store import AnalysisStore, analysis_store
from app.services.auth.context import AnalysisContext
from app.services.entry_resolver import EntryResolver, Resolution, entry_resolver
from app.services.image_store import ImageStore, image_store
from app.services.journal_service import journal_service, parse_entry_id
from app.services.prompts import (
    build_analysis_prompt,
    interpret_confidence,
    interpret_health_score,
)
from app.services.request_validator import RequestValidator, request_validator
from app.services.response_parser import ResponseParser, build_record, response_parser
from app.services.subject_service import subject_service

logger = logging.getLogger(__name__)


@dataclass
class AnalysisOutcome:
    record: AnalysisRecord
    resolution: Resolution
    saved: bool = False
    save_error: Optional[PersistenceError] = None

    @property
    def save_failed(self) -> bool:
        return self.save_error is not None

    def to_response(self) -> dict:
        details = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "strategy": self.resolution.strategy,
        }
        if self.save_failed:
            details["save_failed"] = True
        analysis = present_record(self.record)
        analysis["journal_entry_id"] = str(self.resolution.entry_id)
        return {"success": True, "analysis": analysis, "details": details}


class AnalysisService:
    """Runs the analysis pipeline for one request."""

    def __init__(
        self,
        validator: RequestValidator = request_validator,
        resolver: EntryResolver = entry_resolver,
        model_service: Optional[VisionModelService] = None,
        parser: ResponseParser = response_parser,
        store: AnalysisStore = analysis_store,
        images: ImageStore = image_store,
        cards: CardRegistry = card_registry,
    ):
        self.validator = validator
        self.resolver = resolver
        self.model_service = model_service or vision_model_service
        self.parser = parser
        self.store = store
        self.images = images
        self.cards = cards

    async def analyze(
        self, db: Session, context: AnalysisContext, raw: Any
    ) -> AnalysisOutcome:
        """
        Validate, analyze and auto-save one photo.

        Raises:
            ValidationError: Malformed request (before any external call)
            CardBusyError: An analysis for the same card is in flight
            ResolutionError, ServiceError, RateLimitError, RefusalError,
            EmptyResponseError, UnparsableResponseError,
            IncompleteResponseError, AnalysisCancelledError
        """
        request = self.validator.validate(raw)

        key = card_key(request.journal_entry_id, request.image_ref)
        card = self.cards.get(context.user_id, key) if key else AnalysisCard("inline")
        try:
            outcome = await card.analyze(
                lambda cancel_event: self.run_analysis(db, context, request, cancel_event)
            )
            try:
                await card.save(
                    lambda: self.store.insert(db, outcome.record, outcome.resolution.entry_id)
                )
                outcome.saved = True
            except PersistenceError as e:
                logger.warning(
                    "Analysis for entry %s computed but not saved", outcome.resolution.entry_id
                )
                outcome.save_error = e
            return outcome
        finally:
            if key:
                self.cards.release(context.user_id, key)

    async def run_analysis(
        self,
        db: Session,
        context: AnalysisContext,
        request: AnalysisRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AnalysisOutcome:
        """
        Find the entry, call the model and parse.

        A placeholder entry is written only after a successful parse; the
        record itself is stored by the caller.
        """
        found = self.resolver.find(db, request)

        subject_info = self.subject_info_for(db, context, request)
        prompt = build_analysis_prompt(request.analysis_type, subject_info)

        if request.image_data:
            image_data = request.image_data
            mime_type = request.image_mime_type or self.images.detect_inline_media_type(
                image_data
            )
        else:
            loaded = await self.images.load(request.image_ref, request.image_mime_type)
            image_data, mime_type = loaded.data, loaded.mime_type

        text = await self.model_service.invoke(
            prompt,
            image_data,
            mime_type,
            request.analysis_type,
            cancel_event=cancel_event,
        )
        record = self.parser.parse(text, request, context, self.model_service.model)
        resolution = found or self.resolver.create_placeholder(db, context, request)
        logger.info(
            "Analyzed %s photo for entry %s: score %d, confidence %.2f",
            EntryType(request.analysis_type).value,
            resolution.entry_id,
            record.health_score,
            record.confidence,
        )
        return AnalysisOutcome(record=record, resolution=resolution)

    def subject_info_for(
        self, db: Session, context: AnalysisContext, request: AnalysisRequest
    ) -> Optional[SubjectInfo]:
        if request.subject_info is not None:
            return request.subject_info
        if not request.include_subject_info:
            return None
        subject = subject_service.get_most_recent_subject(db, context.user_id)
        if subject is None:
            return None
        return subject_service.build_subject_info(subject)

    async def save(
        self,
        db: Session,
        context: AnalysisContext,
        analysis: dict,
        journal_entry_id: str,
    ) -> AnalysisRecord:
        """
        Explicit save of an analysis the caller already holds.

        Raises:
            ValidationError: Analysis payload or entry id is invalid
            CardBusyError: A save for the same entry is in flight
            PersistenceError: The write failed
        """
        entry = journal_service.get_entry(db, journal_entry_id)
        if entry is None or not self.owns_entry(db, context, entry):
            raise ValidationError(
                "malformed_request", "journal_entry_id does not match a journal entry."
            )
        record = record_from_payload(analysis, context)

        key = str(entry.id)
        card = self.cards.get(context.user_id, key)
        try:
            return await card.save(lambda: self.store.save(db, record, entry.id))
        finally:
            self.cards.release(context.user_id, key)

    @staticmethod
    def owns_entry(db: Session, context: AnalysisContext, entry) -> bool:
        # Placeholder entries for subject-less users use the user id as subject id
        if entry.subject_id == context.user_id:
            return True
        return subject_service.get_owned_subject(db, context.user_id, entry.subject_id) is not None

    def cancel(self, context: AnalysisContext, key: str) -> bool:
        """Signal the in-flight analysis for a card. False when none is running."""
        card = self.cards.find(context.user_id, key)
        if card is None:
            return False
        return card.cancel()


def present_record(record: AnalysisRecord) -> dict:
    """Record fields plus the display labels for its score and confidence."""
    item = record.to_dict()
    item["health_label"] = interpret_health_score(record.health_score)
    item["confidence_label"] = interpret_confidence(record.confidence)
    return item


def record_from_payload(analysis: dict, context: AnalysisContext) -> AnalysisRecord:
    """Rebuild a transient AnalysisRecord from a client-held analysis dict."""
    try:
        payload = HealthAnalysisSchema.model_validate(analysis)
    except pydantic.ValidationError as e:
        raise ValidationError(
            "malformed_request", "Analysis payload is incomplete or out of range."
        ) from e

    try:
        analysis_type = EntryType(analysis.get("analysis_type"))
    except ValueError as e:
        raise ValidationError("invalid_type") from e

    request = AnalysisRequest(
        analysis_type=analysis_type, image_ref=analysis.get("image_ref") or None
    )
    record = build_record(
        payload, request, context, analysis.get("model") or settings.vision_model
    )
    record.id = parse_entry_id(analysis.get("id")) or uuid.uuid4()
    return record


analysis_service = AnalysisService()
