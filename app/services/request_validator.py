"""Well-formedness checks for inbound analysis requests."""

import re
from typing import Any

import pydantic

from app.config import settings
from app.models.journal_entry import EntryType
from app.services.ai_schemas import SUPPORTED_MIME_TYPES, AnalysisRequest
from app.services.analysis_errors import ValidationError

BASE64_PATTERN = re.compile(r"[A-Za-z0-9+/]*={0,2}")

ANALYSIS_TYPES = {t.value for t in EntryType}


class RequestValidator:
    """
    Check an analysis request before any expensive work happens.

    Raises ValidationError whose `reason` names the first failed constraint:
    missing_type, invalid_type, missing_image, unsupported_mime_type,
    malformed_encoding, too_short, too_large or malformed_request.
    """

    def __init__(
        self,
        min_length: int = settings.image_data_min_length,
        max_length: int = settings.image_data_max_length,
    ):
        self.min_length = min_length
        self.max_length = max_length

    def validate(self, raw: Any) -> AnalysisRequest:
        if not isinstance(raw, dict):
            raise ValidationError("malformed_request")

        analysis_type = raw.get("analysis_type")
        if not analysis_type:
            raise ValidationError("missing_type")
        if not isinstance(analysis_type, str) or analysis_type not in ANALYSIS_TYPES:
            raise ValidationError("invalid_type")

        image_data = raw.get("image_data")
        image_ref = raw.get("image_ref") or raw.get("image_url")
        if not image_data and not image_ref:
            raise ValidationError("missing_image")

        mime_type = raw.get("image_mime_type")
        if mime_type is not None and (
            not isinstance(mime_type, str) or mime_type not in SUPPORTED_MIME_TYPES
        ):
            raise ValidationError("unsupported_mime_type")

        if image_data:
            self.check_encoding(image_data)

        try:
            return AnalysisRequest.model_validate(raw)
        except pydantic.ValidationError as e:
            raise ValidationError(
                "malformed_request", f"Request body is malformed: {e.error_count()} invalid field(s)."
            ) from e

    def check_encoding(self, image_data: Any) -> None:
        if not isinstance(image_data, str) or not BASE64_PATTERN.fullmatch(image_data):
            raise ValidationError("malformed_encoding")
        if len(image_data) < self.min_length:
            raise ValidationError("too_short")
        if len(image_data) > self.max_length:
            raise ValidationError("too_large")


request_validator = RequestValidator()
