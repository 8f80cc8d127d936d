"""
Mock services for testing AI functionality.

These mocks provide deterministic responses for testing without API calls.
"""

import asyncio
import base64
import io
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

from PIL import Image


def make_jpeg_base64(size: tuple = (96, 96), color: tuple = (120, 80, 40)) -> str:
    """Encode a small solid-color JPEG as base64."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="JPEG")
    return base64.standard_b64encode(buffer.getvalue()).decode("utf-8")


def analysis_payload(**overrides) -> Dict[str, Any]:
    """A well-formed on-topic model response."""
    payload = {
        "health_score": 8,
        "confidence": 0.85,
        "observations": ["Brown, well-formed stool", "Normal amount"],
        "recommendations": ["Keep the current diet"],
        "warnings": [],
        "encouragement": "Great job keeping track!",
        "details": {
            "color": "brown",
            "consistency": "firm",
            "amount": "normal",
            "appetite": None,
            "mood": None,
        },
    }
    payload.update(overrides)
    return payload


def off_topic_payload() -> Dict[str, Any]:
    """The fixed content-mismatch response."""
    return {
        "health_score": 5,
        "confidence": 0.9,
        "observations": [],
        "recommendations": ["Please upload a photo that matches the record type."],
        "warnings": ["This photo does not match the expected content."],
        "encouragement": "Thanks for recording!",
        "details": {
            "color": "unknown",
            "consistency": "unknown",
            "amount": "unknown",
            "appetite": "unknown",
            "mood": "unknown",
        },
    }


def make_anthropic_response(text: Optional[str], stop_reason: str = "end_turn"):
    """Build an object shaped like an anthropic Message."""
    response = MagicMock()
    response.stop_reason = stop_reason
    if text is None:
        response.content = []
    else:
        block = MagicMock()
        block.type = "text"
        block.text = text
        response.content = [block]
    return response


class MockVisionModelService:
    """
    Mock vision model service for testing the analysis pipeline.

    Configure responses per-test by calling the set_* methods.
    """

    def __init__(self):
        self.model = "claude-test-model"

        # Track method calls for assertions
        self.calls: List[Dict] = []

        # Configurable response (set per test)
        self._response_text: str = json.dumps(analysis_payload())

        # Error simulation
        self._raise_error: Optional[Exception] = None

        # Block until cancelled (for cancellation tests)
        self._hang = False

    def set_response(self, response):
        """Set the raw text (or a dict, serialized as JSON) the model returns."""
        self._response_text = response if isinstance(response, str) else json.dumps(response)

    def set_error(self, error: Exception):
        """Set an error to raise on the next call."""
        self._raise_error = error

    def hang_until_cancelled(self):
        self._hang = True

    async def invoke(
        self,
        prompt,
        image_data: str,
        mime_type: str,
        analysis_type,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        self.calls.append(
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "prompt": prompt,
                "image_data": image_data,
                "mime_type": mime_type,
                "analysis_type": analysis_type,
                "cancel_event": cancel_event,
            }
        )

        if self._raise_error:
            error = self._raise_error
            self._raise_error = None
            raise error

        if self._hang and cancel_event is not None:
            from app.services.analysis_errors import AnalysisCancelledError

            await cancel_event.wait()
            raise AnalysisCancelledError()

        return self._response_text
