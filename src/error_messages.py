"""Map try-on failures to the short messages shown to the user."""
from typing import Optional

CONTENT_FLAGGED = "Content flagged as inappropriate. Please try different images."
UNSUPPORTED_SIZE = "Image size or dimensions not supported. Please try different images."
RATE_LIMITED = "Too many requests. Please wait and try again later."
GENERIC_FAILURE = "Failed to process images. Please try again."


def _http_status(exc: BaseException) -> Optional[int]:
    code = getattr(exc, "status_code", None)
    if isinstance(code, int):
        return code
    code = getattr(getattr(exc, "response", None), "status_code", None)
    return code if isinstance(code, int) else None


def friendly_error_message(exc: BaseException) -> str:
    """First matching rule wins; matching is case-sensitive."""
    message = str(exc)
    if "NSFW" in message:
        return CONTENT_FLAGGED
    if "size" in message or "dimension" in message:
        return UNSUPPORTED_SIZE
    if _http_status(exc) == 429:
        return RATE_LIMITED
    if message:
        return message
    return GENERIC_FAILURE
