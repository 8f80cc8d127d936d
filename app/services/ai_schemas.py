"""
Pydantic models for the photo analysis pipeline.

AnalysisRequest is the inbound request contract; HealthAnalysisSchema
validates the structured JSON the vision model returns. The model's
output is untrusted, so HealthAnalysisSchema does not coerce types on its
required fields.
"""

import math
from typing import Literal, Optional, get_args

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    StrictStr,
    field_validator,
    model_validator,
)

from app.models.journal_entry import EntryType


# --- Inbound request (POST /ai-analysis) ---

# Media types the vision model accepts for image blocks
ImageMimeType = Literal["image/jpeg", "image/png", "image/gif", "image/webp"]
SUPPORTED_MIME_TYPES = frozenset(get_args(ImageMimeType))


class SubjectInfo(BaseModel):
    breed: Optional[str] = None
    age_years: Optional[int] = Field(default=None, ge=0)
    weight_kg: Optional[float] = Field(default=None, gt=0)
    medical_history: list[str] = []


class AnalysisRequest(BaseModel):
    image_data: Optional[str] = None  # Base64, no data: URL prefix
    image_mime_type: Optional[ImageMimeType] = None
    image_ref: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("image_ref", "image_url")
    )
    analysis_type: EntryType
    journal_entry_id: Optional[str] = None
    subject_info: Optional[SubjectInfo] = None
    include_subject_info: bool = False


# --- Model output (analyze) ---

# Fixed values of the off-topic branch of the output contract
DEGENERATE_HEALTH_SCORE = 5
DEGENERATE_CONFIDENCE = 0.9


class AnalysisDetailsSchema(BaseModel):
    color: Optional[str] = None
    consistency: Optional[str] = None
    amount: Optional[str] = None
    appetite: Optional[str] = None
    mood: Optional[str] = None


class HealthAnalysisSchema(BaseModel):
    health_score: int = Field(ge=1, le=10)
    confidence: float = Field(ge=0, le=1)
    observations: list[StrictStr]
    recommendations: list[StrictStr] = []
    warnings: list[StrictStr] = []
    encouragement: Optional[str] = None
    details: Optional[AnalysisDetailsSchema] = None

    @field_validator("health_score", mode="before")
    @classmethod
    def health_score_is_integer(cls, value):
        # No coercion from "7", 7.5 or true
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("health_score must be an integer")
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def confidence_is_number(cls, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("confidence must be a number")
        if not math.isfinite(value):
            raise ValueError("confidence must be finite")
        return value

    @property
    def is_off_topic(self) -> bool:
        """True when the response matches the fixed content-mismatch branch."""
        return (
            self.health_score == DEGENERATE_HEALTH_SCORE
            and self.confidence == DEGENERATE_CONFIDENCE
            and bool(self.warnings)
        )

    @model_validator(mode="after")
    def observations_required_on_topic(self):
        if not self.observations and not self.is_off_topic:
            raise ValueError("observations must not be empty")
        return self


# --- Explicit save (POST /ai-analysis/save) ---


class AnalysisSaveRequest(BaseModel):
    analysis: dict
    journal_entry_id: str
