"""Object storage access: resolve an image reference to base64 bytes."""
import base64
import binascii
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
from PIL import Image, UnidentifiedImageError

from app.config import settings
from app.services.analysis_errors import ServiceError, ValidationError

logger = logging.getLogger(__name__)

# Pillow format name -> media type accepted by the vision model
PIL_MEDIA_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}

EXTENSION_MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


@dataclass(frozen=True)
class LoadedImage:
    data: str  # Base64, no data: URL prefix
    mime_type: str


class ImageStore:
    """Reads images from the local upload directory or an HTTP(S) URL."""

    def __init__(self, upload_dir: str = settings.upload_dir):
        self.upload_dir = Path(upload_dir)

    async def load(self, image_ref: str, mime_type: Optional[str] = None) -> LoadedImage:
        """
        Load the image behind a reference.

        Args:
            image_ref: http(s) URL, or a path relative to the upload directory
            mime_type: Caller-declared media type; sniffed when absent

        Returns:
            LoadedImage with base64 data and media type

        Raises:
            ValidationError: Reference points outside the upload directory
            ServiceError: Image could not be fetched or read
        """
        if image_ref.startswith(("http://", "https://")):
            raw = await self._fetch(image_ref)
        else:
            raw = self._read_local(image_ref)

        return LoadedImage(
            data=base64.standard_b64encode(raw).decode("utf-8"),
            mime_type=mime_type or self.detect_media_type(raw, image_ref),
        )

    async def _fetch(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(timeout=settings.image_fetch_timeout) as client:
                response = await client.get(url, follow_redirects=True)
                response.raise_for_status()
                return response.content
        except httpx.HTTPError as e:
            logger.error("Failed to fetch image %s: %s", url, e)
            raise ServiceError("Could not load the image. Please try again.") from e

    def _read_local(self, image_ref: str) -> bytes:
        base = self.upload_dir.resolve()
        path = (base / image_ref.lstrip("/")).resolve()
        if base not in path.parents:
            raise ValidationError("missing_image", "Image reference is not a stored upload.")
        try:
            return path.read_bytes()
        except OSError as e:
            logger.error("Failed to read image %s: %s", path, e)
            raise ServiceError("Could not load the image. Please try again.") from e

    def detect_inline_media_type(self, image_data: str) -> str:
        """Media type of an inline base64 payload."""
        try:
            raw = base64.b64decode(image_data, validate=True)
        except (binascii.Error, ValueError):
            return "image/jpeg"
        return self.detect_media_type(raw)

    def detect_media_type(self, raw: bytes, image_ref: str = "") -> str:
        """Sniff the media type with Pillow, falling back to the file extension."""
        try:
            with Image.open(io.BytesIO(raw)) as img:
                media_type = PIL_MEDIA_TYPES.get(img.format or "")
                if media_type:
                    return media_type
        except (UnidentifiedImageError, OSError):
            logger.info("Pillow could not identify %s, using extension", image_ref)

        suffix = Path(image_ref.split("?", 1)[0]).suffix.lower()
        return EXTENSION_MEDIA_TYPES.get(suffix, "image/jpeg")


image_store = ImageStore()
