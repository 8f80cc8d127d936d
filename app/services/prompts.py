"""
AI prompt templates for journal photo health analysis.

All prompts follow veterinary ethics guidelines:
- Use qualified language ("may indicate", not "is caused by")
- Never diagnose conditions
- Recommend a veterinarian when something looks wrong
- Acknowledge limitations of a single photo
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.models.journal_entry import EntryType
from app.services.ai_schemas import (
    DEGENERATE_CONFIDENCE,
    DEGENERATE_HEALTH_SCORE,
    SubjectInfo,
)

# =============================================================================
# JOURNAL PHOTO ANALYSIS
# =============================================================================

ANALYSIS_SYSTEM_PROMPT = """You are an experienced veterinary assistant for a dog health journal application.

Observe the dog photo carefully and assess the dog's physical and emotional condition.
If the expected content is shown, always analyze it. Only use the content-mismatch
response when the photo clearly shows something other than the expected content.

Respond with a single JSON object only. No markdown, no commentary."""

# Per-type framing: (record description, expected content, observation focus, closing note)
TYPE_GUIDANCE = {
    EntryType.POOP: (
        "an elimination record, one of the main indicators of digestive health",
        "a photo of the dog's stool",
        "Observe color, shape, quantity and firmness, and assess digestive health. "
        "Healthy stool is brown and moderately firm.",
        "Thank the owner for their careful observation. Daily records are the "
        "foundation of health care.",
    ),
    EntryType.MEAL: (
        "a meal record",
        "a photo of the dog's meal or the dog eating",
        "Observe what and how much was served, appetite cues and eating manner, and "
        "assess nutrition and appetite. The dog's expression while eating matters too.",
        "Praise the owner's care with meals. A dog's health is built from what it eats.",
    ),
    EntryType.EMOTION: (
        "a mood and behavior record",
        "a photo showing the dog's expression or behavior",
        "Observe facial expression, posture, gaze, ear position and tail position, and "
        "assess mood. Judge whether the dog looks relaxed, excited or anxious.",
        "Acknowledge the owner for caring about their dog's feelings. Emotional "
        "health matters too.",
    ),
}

ANALYSIS_INSTRUCTION_TEMPLATE = """This photo is a health journal record about a dog.

Expected content: {expected_content}
Record type: {type_description}

{focus}

OUTPUT CONTRACT:

A) If the photo shows the expected content, analyze it and respond with:
{{
  "health_score": <integer 1-10>,
  "confidence": <number 0.0-1.0>,
  "observations": ["specific observed features"],
  "recommendations": ["specific suggestions or things going well"],
  "warnings": ["points that need attention"],
  "encouragement": "a warm message for the owner",
  "details": {{
    "color": "color description (if applicable)",
    "consistency": "firmness or condition (if applicable)",
    "amount": "quantity assessment (if applicable)",
    "appetite": "appetite assessment (if applicable)",
    "mood": "mood assessment (if applicable)"
  }}
}}

B) Only if the photo mainly shows something other than the expected content, respond with exactly:
{{
  "health_score": {degenerate_score},
  "confidence": {degenerate_confidence},
  "observations": ["what the photo actually shows"],
  "recommendations": ["Please upload a photo that matches the record type."],
  "warnings": ["{mismatch_warning}"],
  "encouragement": "a warm message for the owner",
  "details": {{
    "color": "unknown",
    "consistency": "unknown",
    "amount": "unknown",
    "appetite": "unknown",
    "mood": "unknown"
  }}
}}

{closing}

CRITICAL: Return valid JSON only."""

MISMATCH_WARNING = (
    "This photo does not match the expected content. "
    "Please choose a photo for the right record type."
)

SUBJECT_INFO_TEMPLATE = """

About this dog:
- Breed: {breed}
- Age: {age}
- Weight: {weight}
- Medical history: {medical_history}

Take this information into account in your analysis."""


@dataclass(frozen=True)
class AnalysisPrompt:
    """Everything the vision model call needs besides the image."""

    system: str
    instruction: str
    temperature: float = 0.0
    prefill: str = "{"


def format_subject_info(subject_info: SubjectInfo) -> str:
    """Render the optional subject metadata block."""
    age = f"{subject_info.age_years} years" if subject_info.age_years is not None else "unknown"
    weight = f"{subject_info.weight_kg} kg" if subject_info.weight_kg is not None else "unknown"
    return SUBJECT_INFO_TEMPLATE.format(
        breed=subject_info.breed or "unknown",
        age=age,
        weight=weight,
        medical_history=", ".join(subject_info.medical_history) or "none",
    )


def build_analysis_prompt(
    analysis_type: EntryType,
    subject_info: Optional[SubjectInfo] = None,
    now: Optional[datetime] = None,
) -> AnalysisPrompt:
    """
    Build the type-specific prompt for one journal photo.

    Args:
        analysis_type: meal, poop or emotion
        subject_info: Optional subject metadata; omitted from the prompt when None
        now: Reference time, stamped into the instruction so records are comparable

    Returns:
        AnalysisPrompt with system text, user instruction, temperature and prefill
    """
    analysis_type = EntryType(analysis_type)
    type_description, expected_content, focus, closing = TYPE_GUIDANCE[analysis_type]

    instruction = ANALYSIS_INSTRUCTION_TEMPLATE.format(
        expected_content=expected_content,
        type_description=type_description,
        focus=focus,
        degenerate_score=DEGENERATE_HEALTH_SCORE,
        degenerate_confidence=DEGENERATE_CONFIDENCE,
        mismatch_warning=MISMATCH_WARNING,
        closing=closing,
    )

    if subject_info is not None:
        instruction += format_subject_info(subject_info)

    if now is not None:
        instruction += f"\n\nRecorded on: {now.date().isoformat()}"

    return AnalysisPrompt(system=ANALYSIS_SYSTEM_PROMPT, instruction=instruction)


# =============================================================================
# RESULT LABELS
# =============================================================================


def interpret_health_score(score: int) -> str:
    """Human label for a 1-10 health score."""
    if score >= 8:
        return "excellent"
    if score >= 6:
        return "good"
    if score >= 4:
        return "fair"
    if score >= 2:
        return "needs attention"
    return "monitor closely"


def interpret_confidence(confidence: float) -> str:
    """Human label for a 0-1 model confidence."""
    if confidence >= 0.8:
        return "high"
    if confidence >= 0.6:
        return "medium"
    return "low"
