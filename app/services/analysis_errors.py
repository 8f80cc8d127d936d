"""
Error taxonomy for the photo analysis pipeline.

Every error carries the HTTP status it maps to and a user-safe message.
Internal detail (raw model text, SQL errors) stays on the exception for
server-side logging and is never rendered to the caller.
"""

from typing import Optional


class AnalysisError(Exception):
    """Base class for pipeline failures."""

    status_code = 500
    user_message = "AI analysis failed. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if message:
            self.user_message = message


class ValidationError(AnalysisError):
    """Request is malformed; raised before any external call."""

    status_code = 400

    REASON_MESSAGES = {
        "missing_type": "analysis_type is required.",
        "invalid_type": "analysis_type must be one of: meal, poop, emotion.",
        "missing_image": "Image data or an image reference is required.",
        "unsupported_mime_type": "Image must be JPEG, PNG, GIF or WebP.",
        "malformed_encoding": "Image data is not valid base64. Please try again.",
        "too_short": "Image data is too small. Please try a different image.",
        "too_large": "Image is too large. Please use an image under 7MB.",
        "malformed_request": "Request body is malformed.",
        "invalid_period": "period must be one of: week, month, quarter.",
    }

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or self.REASON_MESSAGES.get(reason, "Invalid request."))


class AuthError(AnalysisError):
    """Missing or invalid caller identity."""

    status_code = 401
    user_message = "Authentication required."


class ResolutionError(AnalysisError):
    """No journal entry could be found or created for the analysis."""

    user_message = "Could not link the analysis to a journal entry. Please try again."


class ServiceError(AnalysisError):
    """AI service unreachable, timed out, or returned a non-success status."""

    user_message = "AI service is temporarily unavailable. Please try again later."


class RateLimitError(AnalysisError):
    """Provider rate limit or quota reached."""

    user_message = "AI analysis usage limit reached. Please wait a minute and try again."


class RefusalError(AnalysisError):
    """Model declined to analyze the image."""

    user_message = (
        "AI analysis is restricted for this image. Please try a different image."
    )


class EmptyResponseError(AnalysisError):
    """Model call succeeded but returned no text."""

    user_message = "AI analysis returned no result. Please try again."


class UnparsableResponseError(AnalysisError):
    """Model text is not a single JSON object."""

    user_message = "Could not read the AI analysis result. Please try again."

    def __init__(self, raw_text: str = "", message: Optional[str] = None):
        self.raw_text = raw_text
        super().__init__(message)


class IncompleteResponseError(AnalysisError):
    """Model JSON is missing required fields or has out-of-range values."""

    user_message = "The AI analysis result was incomplete. Please try again."

    def __init__(self, raw_text: str = "", problems: Optional[str] = None):
        self.raw_text = raw_text
        self.problems = problems
        super().__init__()


class PersistenceError(AnalysisError):
    """Store write failed after a successful analysis (non-fatal to the result)."""

    user_message = "The analysis could not be saved. You can retry saving it."


class RecordNotFoundError(AnalysisError):
    status_code = 404
    user_message = "Analysis not found."


class CardBusyError(AnalysisError):
    """An analyze/save is already in flight for this card."""

    status_code = 409
    user_message = "An analysis is already in progress for this photo."


class AnalysisCancelledError(AnalysisError):
    """Caller cancelled the in-flight model call."""

    status_code = 409
    user_message = "Analysis was cancelled."
