"""
Decode vision model text into an AnalysisRecord.

Model output is untrusted: it is decoded as a single JSON object and then
validated against HealthAnalysisSchema without type coercion. No markdown
stripping or comma repair is attempted; a response that is not a clean JSON
object is a failure.

    result = response_parser.decode(text)
    if isinstance(result, ParseOk):
        result.payload.health_score
    else:
        raise result.error
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

import pydantic

from app.config import settings
from app.models.analysis_record import AnalysisRecord
from app.models.journal_entry import EntryType
from app.services.ai_schemas import AnalysisRequest, HealthAnalysisSchema
from app.services.analysis_errors import (
    AnalysisError,
    IncompleteResponseError,
    UnparsableResponseError,
)
from app.services.auth.context import AnalysisContext

logger = logging.getLogger(__name__)

# Raw model text is logged truncated, never returned to callers
LOG_PREVIEW_CHARS = 500


@dataclass(frozen=True)
class ParseOk:
    payload: HealthAnalysisSchema


@dataclass(frozen=True)
class ParseErr:
    error: AnalysisError


ParseResult = Union[ParseOk, ParseErr]


class ResponseParser:
    """Strict decoder for the analysis output contract."""

    def decode(self, text: Optional[str]) -> ParseResult:
        raw_text = text or ""
        stripped = raw_text.strip()

        try:
            data = json.loads(stripped)
        except json.JSONDecodeError as e:
            logger.warning(
                "Model response is not JSON (%s): %r", e.msg, stripped[:LOG_PREVIEW_CHARS]
            )
            return ParseErr(UnparsableResponseError(raw_text))

        if not isinstance(data, dict):
            logger.warning(
                "Model response is JSON %s, not an object: %r",
                type(data).__name__,
                stripped[:LOG_PREVIEW_CHARS],
            )
            return ParseErr(UnparsableResponseError(raw_text))

        try:
            payload = HealthAnalysisSchema.model_validate(data)
        except pydantic.ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'response'}: {err['msg']}"
                for err in e.errors()
            )
            logger.warning(
                "Model response failed schema validation: %s | %r",
                problems,
                stripped[:LOG_PREVIEW_CHARS],
            )
            return ParseErr(IncompleteResponseError(raw_text, problems))

        return ParseOk(payload)

    def parse(
        self,
        text: Optional[str],
        request: AnalysisRequest,
        context: AnalysisContext,
        model: str = settings.vision_model,
    ) -> AnalysisRecord:
        """
        Build an unsaved AnalysisRecord from model text.

        journal_entry_id is left unset; AnalysisStore links it at insert time.

        Raises:
            UnparsableResponseError: Not a single JSON object
            IncompleteResponseError: Missing, mistyped or out-of-range fields
        """
        result = self.decode(text)
        if isinstance(result, ParseErr):
            raise result.error
        return build_record(result.payload, request, context, model)


def build_record(
    payload: HealthAnalysisSchema,
    request: AnalysisRequest,
    context: AnalysisContext,
    model: str,
) -> AnalysisRecord:
    now = datetime.now(timezone.utc)
    return AnalysisRecord(
        id=uuid.uuid4(),
        journal_entry_id=None,
        user_id=context.user_id,
        image_ref=request.image_ref or "",
        analysis_type=EntryType(request.analysis_type),
        health_score=payload.health_score,
        confidence=float(payload.confidence),
        observations=list(payload.observations),
        recommendations=list(payload.recommendations),
        warnings=list(payload.warnings),
        encouragement=payload.encouragement,
        details=payload.details.model_dump() if payload.details else None,
        model=model,
        created_at=now,
        updated_at=now,
    )


response_parser = ResponseParser()
