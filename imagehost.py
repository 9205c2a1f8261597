"""
ImgBB upload client

Images are not stored locally: each file is posted to ImgBB and only the
returned display URL is kept on the product row.
"""
import os
from typing import Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)

IMGBB_API_KEY = os.getenv("IMGBB_API_KEY", "")
IMGBB_UPLOAD_URL = os.getenv("IMGBB_UPLOAD_URL", "https://api.imgbb.com/1/upload")

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB
ACCEPTED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")


class ImageUploadError(Exception):
    pass


def check_image(content_type: Optional[str], size: int) -> Optional[str]:
    """Return an error message for a file the host should not receive, else None."""
    if size > MAX_FILE_SIZE:
        return "Max file size is 5MB."
    if content_type not in ACCEPTED_IMAGE_TYPES:
        return "Only .jpg, .png, and .webp formats are supported."
    return None


class ImageHostClient:
    def __init__(self, api_key: str = IMGBB_API_KEY, upload_url: str = IMGBB_UPLOAD_URL, transport: Optional[httpx.BaseTransport] = None, timeout: float = 30.0):
        self.api_key = api_key
        self.upload_url = upload_url
        self._transport = transport
        self._timeout = timeout

    def upload(self, filename: str, content: bytes, content_type: str) -> str:
        if not self.api_key:
            raise ImageUploadError("Image host API key is not configured")
        try:
            with httpx.Client(transport=self._transport, timeout=self._timeout) as client:
                response = client.post(
                    self.upload_url,
                    params={"key": self.api_key},
                    files={"image": (filename, content, content_type)},
                )
        except httpx.HTTPError as e:
            logger.warning("image_upload_failed", url=self.upload_url, error=str(e))
            raise ImageUploadError("Failed to upload image to ImgBB") from e

        try:
            result = response.json()
        except ValueError:
            result = {}
        if response.status_code >= 400 or not result.get("success"):
            logger.warning("image_upload_rejected", filename=filename, status=response.status_code)
            raise ImageUploadError("Failed to upload image to ImgBB")
        url = (result.get("data") or {}).get("display_url")
        if not url:
            raise ImageUploadError("Image host response has no display_url")
        logger.info("image_uploaded", filename=filename, url=url)
        return url
