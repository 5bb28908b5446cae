"""
fal.ai try-on provider implementation.

Uses the official fal-client Python SDK (pip install fal-client) for both
storage uploads and the queued `fashn/tryon` model.
API key: set FAL_KEY env var or pass via ProviderConfig.
"""
import os
import logging
from typing import Optional

import fal_client
import httpx

from tryon_provider import (
    TryOnProvider, ProviderConfig, TryOnRequest, TryOnResult,
    ProviderError, ProviderUploadError, ProviderAPIError,
    ProviderTimeoutError, ProviderRateLimitError, ProgressCallback,
    extract_image_urls,
)

logger = logging.getLogger(__name__)

UPLOAD_FAILED_MESSAGE = "Failed to upload image to FAL storage"


def resolve_api_key(explicit: Optional[str] = None) -> str:
    """API key from an explicit value, then FAL_KEY, then FAL_API_KEY."""
    key = (explicit or "").strip()
    if key:
        return key
    return (os.environ.get("FAL_KEY") or os.environ.get("FAL_API_KEY") or "").strip()


def _status_code(exc: BaseException) -> Optional[int]:
    """Best-effort HTTP status of an SDK exception or its cause."""
    for candidate in (exc, exc.__cause__):
        if candidate is None:
            continue
        code = getattr(candidate, "status_code", None)
        if isinstance(code, int):
            return code
        response = getattr(candidate, "response", None)
        code = getattr(response, "status_code", None)
        if isinstance(code, int):
            return code
    return None


def format_queue_update(update) -> Optional[str]:
    """Map a fal queue status to progress text, or None to leave it as is."""
    if isinstance(update, fal_client.InProgress):
        messages = [log.get("message", "") for log in (update.logs or [])]
        messages = [m for m in messages if m]
        return "\n".join(messages) if messages else None
    if isinstance(update, fal_client.Queued):
        return f"Queued (position {update.position})..."
    return None


class FalTryOnProvider(TryOnProvider):
    """Try-on provider backed by fal.ai storage and queue APIs."""

    def __init__(self, config: ProviderConfig, client=None):
        super().__init__(config)
        self.client = client or fal_client.SyncClient(
            key=config.api_key,
            default_timeout=config.timeout_seconds,
        )

    @property
    def name(self) -> str:
        return "fal"

    def upload_image(self, image_path):
        if not os.path.isfile(image_path):
            logger.warning("Image file not found: %s", image_path)
            raise ProviderError("Image file not found")

        logger.info("Uploading %s to fal storage", image_path)
        try:
            return self.client.upload_file(image_path)
        except Exception as e:
            logger.error("Upload error for %s: %s", image_path, e)
            raise ProviderUploadError(UPLOAD_FAILED_MESSAGE) from e

    def submit(self, request: TryOnRequest,
               on_progress: Optional[ProgressCallback] = None) -> TryOnResult:
        def _on_queue_update(update):
            text = format_queue_update(update)
            if text is None:
                return
            logger.debug("Queue update: %s", text)
            if on_progress:
                on_progress(text)

        logger.info(
            "Submitting %s job (category=%s, samples=%d)",
            self.config.endpoint, request.category, request.options.num_samples,
        )
        try:
            response = self.client.subscribe(
                self.config.endpoint,
                arguments=request.to_arguments(),
                with_logs=True,
                on_queue_update=_on_queue_update,
            )
        except (TimeoutError, httpx.TimeoutException) as e:
            raise ProviderTimeoutError(
                f"Try-on request timed out after {self.config.timeout_seconds}s"
            ) from e
        except Exception as e:
            raise self._wrap_error(e) from e

        logger.debug("API response: %s", response)
        urls = extract_image_urls(response)
        request_id = ""
        if isinstance(response, dict):
            request_id = str(response.get("request_id") or "")
        return TryOnResult(
            image_urls=urls,
            request_id=request_id,
            provider_name=self.name,
            metadata={"endpoint": self.config.endpoint, "seed": request.options.seed},
        )

    def _wrap_error(self, exc: Exception) -> ProviderError:
        """Translate an SDK/HTTP exception into the provider hierarchy."""
        status = _status_code(exc)
        if status == 429:
            return ProviderRateLimitError("fal.ai rate limit exceeded")
        if status in (401, 403):
            return ProviderAPIError(
                f"fal.ai authentication failed ({status}). Check your FAL_KEY.",
                status_code=status,
            )
        return ProviderAPIError(str(exc) or type(exc).__name__, status_code=status)
