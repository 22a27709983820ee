"""Image host client for payment proofs, result images and game logos.

httpx + tenacity: uploads are retried on timeouts and network errors, then
surfaced as a transient failure.
"""

import logging
from enum import Enum

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from arena.config import Settings, get_settings
from arena.utils.errors import ErrorCode, TransientError, ValidationError

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 10  # seconds


class ImageKind(str, Enum):
    """Upload categories with their own size caps."""

    PROOF = "proof"
    LOGO = "logo"


class ImageHostClient:
    """Unsigned uploads to the image host; returns the public HTTPS URL.

    Usage:
        client = ImageHostClient()
        url = await client.upload(content, "receipt.png", "image/png", ImageKind.PROOF)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_wait: wait_base | None = None,
    ):
        self.settings = settings or get_settings()
        self._timeout = httpx.Timeout(timeout, connect=5.0)
        self._transport = transport
        self._retry_wait = retry_wait or wait_exponential(
            multiplier=1, min=DEFAULT_MIN_WAIT, max=DEFAULT_MAX_WAIT
        )

    def max_bytes(self, kind: ImageKind) -> int:
        if kind is ImageKind.LOGO:
            return self.settings.max_logo_image_bytes
        return self.settings.max_proof_image_bytes

    def validate(self, content: bytes, content_type: str | None, kind: ImageKind) -> None:
        """Reject non-image or oversized uploads before any network call.

        Raises:
            ValidationError: INVALID_IMAGE
        """
        if content_type not in self.settings.allowed_image_types:
            raise ValidationError(
                code=ErrorCode.INVALID_IMAGE,
                message="Please upload a valid image file (JPEG, PNG, GIF or WebP)",
                details={"contentType": content_type},
            )
        if not content:
            raise ValidationError(
                code=ErrorCode.INVALID_IMAGE,
                message="The uploaded file is empty",
            )
        limit = self.max_bytes(kind)
        if len(content) > limit:
            raise ValidationError(
                code=ErrorCode.INVALID_IMAGE,
                message=f"Image must be smaller than {limit // (1024 * 1024)}MB",
                details={"size": len(content), "maxSize": limit},
            )

    async def upload(
        self,
        content: bytes,
        filename: str,
        content_type: str | None,
        kind: ImageKind = ImageKind.PROOF,
    ) -> str:
        """Validate and upload an image, returning its ``secure_url``.

        Raises:
            ValidationError: Bad type or size
            TransientError: UPLOAD_FAILED after retries or on a bad response
        """
        self.validate(content, content_type, kind)

        try:
            response = await self._post(content, filename or "upload", content_type)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            logger.error(f"Image upload failed after {DEFAULT_MAX_RETRIES} attempts: {e}")
            raise TransientError(
                message="Image upload failed, please try again",
                code=ErrorCode.UPLOAD_FAILED,
            ) from e

        if response.status_code >= 400:
            logger.error(f"Image host rejected upload: status={response.status_code}")
            raise TransientError(
                message="Image upload failed, please try again",
                code=ErrorCode.UPLOAD_FAILED,
                details={"status": response.status_code},
            )

        try:
            url = response.json().get("secure_url")
        except ValueError:
            url = None

        if not isinstance(url, str) or not url.startswith("https://"):
            logger.error("Image host response missing a secure URL")
            raise TransientError(
                message="Image upload failed, please try again",
                code=ErrorCode.UPLOAD_FAILED,
            )

        logger.info(f"Image uploaded: kind={kind.value} size={len(content):,} bytes")
        return url

    async def _post(self, content: bytes, filename: str, content_type: str) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(DEFAULT_MAX_RETRIES),
                wait=self._retry_wait,
                retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    return await client.post(
                        self.settings.image_host_upload_url,
                        data={"upload_preset": self.settings.image_host_upload_preset},
                        files={"file": (filename, content, content_type)},
                    )
