"""Test fixtures for Pawlog."""

from tests.fixtures.mocks import (
    MockVisionModelService,
    analysis_payload,
    make_anthropic_response,
    make_jpeg_base64,
    off_topic_payload,
)

__all__ = [
    "MockVisionModelService",
    "analysis_payload",
    "make_anthropic_response",
    "make_jpeg_base64",
    "off_topic_payload",
]
