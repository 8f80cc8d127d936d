"""
Claude vision integration for journal photo health analysis.

VisionModelService sends one image + instruction to the model and returns
the raw response text. It classifies failures into distinct error kinds and
never retries: callers decide whether a failure is worth another attempt.
It never parses JSON; that is ResponseParser's job.
"""

import asyncio
import logging
import time
from typing import Optional

import anthropic
import httpx
from anthropic import AsyncAnthropic

from app.config import settings
from app.models.journal_entry import EntryType
from app.services.analysis_errors import (
    AnalysisCancelledError,
    EmptyResponseError,
    RateLimitError,
    RefusalError,
    ServiceError,
)
from app.services.prompts import AnalysisPrompt


logger = logging.getLogger(__name__)

POOP_REFUSAL_MESSAGE = (
    "Stool photo analysis is restricted by the AI provider's policy. "
    "Please record the color, amount and shape manually instead."
)
GENERIC_REFUSAL_MESSAGE = (
    "AI analysis is restricted for this image. Please try a different image."
)


def refusal_message(analysis_type: EntryType) -> str:
    if EntryType(analysis_type) == EntryType.POOP:
        return POOP_REFUSAL_MESSAGE
    return GENERIC_REFUSAL_MESSAGE


class VisionModelService:
    """Single-shot Claude vision call with failure classification."""

    def __init__(self, client: Optional[AsyncAnthropic] = None):
        timeout = httpx.Timeout(
            timeout=settings.anthropic_timeout,
            connect=settings.anthropic_connect_timeout,
        )
        # max_retries=0: the SDK retries 429/5xx by default
        self.client = client or AsyncAnthropic(
            api_key=settings.anthropic_api_key, timeout=timeout, max_retries=0
        )
        self.model = settings.vision_model
        self.timeout = settings.anthropic_timeout

    async def invoke(
        self,
        prompt: AnalysisPrompt,
        image_data: str,
        mime_type: str,
        analysis_type: EntryType,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Send one vision request and return the raw response text.

        Args:
            prompt: Built by build_analysis_prompt
            image_data: Base64 image bytes (no data: URL prefix)
            mime_type: image/jpeg, image/png, image/gif or image/webp
            analysis_type: Used to word refusal messages
            cancel_event: When set before the call completes, the call is abandoned

        Returns:
            Response text with the prefill re-attached

        Raises:
            ServiceError: Connection failure, timeout or non-success status
            RateLimitError: Provider rate limit or quota
            RefusalError: Model declined to analyze the image
            EmptyResponseError: Call succeeded without any text
            AnalysisCancelledError: cancel_event fired first
        """
        messages = [
            {
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": mime_type,
                            "data": image_data,
                        },
                    },
                    {"type": "text", "text": prompt.instruction},
                ],
            }
        ]
        if prompt.prefill:
            messages.append({"role": "assistant", "content": prompt.prefill})

        started = time.monotonic()
        try:
            response = await self._call(
                dict(
                    model=self.model,
                    max_tokens=settings.analysis_max_tokens,
                    temperature=prompt.temperature,
                    system=prompt.system,
                    messages=messages,
                ),
                cancel_event,
            )
        except anthropic.RateLimitError as e:
            logger.warning("Vision model rate limited: %s", e)
            raise RateLimitError() from e
        except (anthropic.APIConnectionError, anthropic.APITimeoutError) as e:
            logger.error("Vision model unreachable: %s", e)
            raise ServiceError() from e
        except anthropic.APIStatusError as e:
            if e.status_code == 429:
                raise RateLimitError() from e
            logger.error("Vision model returned status %s: %s", e.status_code, e.message)
            raise ServiceError() from e
        except asyncio.TimeoutError as e:
            logger.error("Vision model call timed out after %ss", self.timeout)
            raise ServiceError() from e

        logger.info(
            "Vision model call for %s completed in %.2fs (stop_reason=%s)",
            EntryType(analysis_type).value,
            time.monotonic() - started,
            response.stop_reason,
        )

        if response.stop_reason == "refusal":
            logger.warning("Vision model refused %s analysis", EntryType(analysis_type).value)
            raise RefusalError(refusal_message(analysis_type))

        response_text = ""
        for block in response.content:
            if getattr(block, "type", None) == "text":
                response_text += block.text

        if not response_text.strip():
            raise EmptyResponseError()

        return (prompt.prefill or "") + response_text

    async def _call(self, request_params: dict, cancel_event: Optional[asyncio.Event]):
        """Run the API call under a hard timeout, racing the cancel signal."""
        call = asyncio.ensure_future(
            asyncio.wait_for(
                self.client.messages.create(**request_params), timeout=self.timeout
            )
        )
        if cancel_event is None:
            return await call

        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _pending = await asyncio.wait(
                {call, cancelled}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancelled.cancel()
            if not call.done():
                call.cancel()

        if call not in done:
            logger.info("Vision model call cancelled by caller")
            raise AnalysisCancelledError()
        return call.result()


vision_model_service = VisionModelService()
