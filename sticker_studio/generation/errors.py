# sticker_studio/generation/errors.py
"""
Generation error taxonomy.

Every failure that leaves the generation client is one of these classes.
`retryable` drives both the client's model fallback and the scheduler's
retry budget; `user_message` is what gets attached to failed ledger items.
"""

import logging

import httpx
from google.genai import errors as genai_errors

logger = logging.getLogger(__name__)

RETRYABLE_SIGNALS = (
    "429",
    "503",
    "resource_exhausted",
    "exhausted",
    "quota",
    "overloaded",
    "unavailable",
    "rate limit",
)


class StickerStudioError(Exception):
    """Base class for classified generation failures."""

    retryable: bool = False

    def __init__(self, message: str, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or message


class QuotaExceeded(StickerStudioError):
    """Rate limit or quota exhausted on the current model."""

    retryable = True

    def __init__(self, message: str) -> None:
        super().__init__(
            message,
            user_message="Rate limit reached (quota exhausted). Wait about a minute and retry.",
        )


class SafetyBlocked(StickerStudioError):
    """The model refused the request for content-safety reasons."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(
            f"Generation blocked by safety filter: {reason}",
            user_message=f"Blocked by safety filter ({reason}). Try a different caption.",
        )


class NoImageReturned(StickerStudioError):
    """The response carried no image part."""

    def __init__(self, message: str = "Model returned no image") -> None:
        super().__init__(message, user_message="Generation failed: the model returned no image.")


class InvalidCredential(StickerStudioError):
    """API key missing, malformed or rejected. Fatal to a run."""


class PlanParseError(StickerStudioError):
    """Plan response missing or not matching the declared schema."""


class TransientOrUnknown(StickerStudioError):
    """
    Anything else. Retryable only when its text carries a known
    retryable signal or it wraps a transport failure.
    """

    def __init__(self, message: str, retryable: bool | None = None) -> None:
        super().__init__(message, user_message=f"Generation failed: {message}")
        if retryable is None:
            retryable = _has_retryable_signal(message)
        self.retryable = retryable


def _has_retryable_signal(text: str) -> bool:
    lowered = text.lower()
    return any(signal in lowered for signal in RETRYABLE_SIGNALS)


def _is_credential_message(text: str) -> bool:
    lowered = text.lower()
    return (
        "api key not valid" in lowered
        or "api_key_invalid" in lowered
        or "permission_denied" in lowered
        or "unauthenticated" in lowered
    )


def classify_error(exc: BaseException) -> StickerStudioError:
    """
    Resolve a low-level exception into the taxonomy.

    Already-classified errors pass through unchanged.
    """
    if isinstance(exc, StickerStudioError):
        return exc

    message = str(exc) or type(exc).__name__

    if isinstance(exc, genai_errors.APIError):
        code = getattr(exc, "code", None)
        status = (getattr(exc, "status", None) or "").upper()

        if code == 429 or status == "RESOURCE_EXHAUSTED":
            return QuotaExceeded(message)
        if code in (401, 403) or status in ("UNAUTHENTICATED", "PERMISSION_DENIED"):
            return InvalidCredential(
                message,
                user_message="API key rejected. Check the configured Gemini API key.",
            )
        if code == 400 and _is_credential_message(message):
            return InvalidCredential(
                message,
                user_message="API key invalid. Check the configured Gemini API key.",
            )
        if code in (500, 502, 503, 504) or status in ("UNAVAILABLE", "INTERNAL"):
            return TransientOrUnknown(message, retryable=True)
        return TransientOrUnknown(message, retryable=False)

    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return TransientOrUnknown(message, retryable=True)

    if _is_credential_message(message):
        return InvalidCredential(message)
    if "429" in message or "quota" in message.lower() or "resource_exhausted" in message.lower():
        return QuotaExceeded(message)

    return TransientOrUnknown(message)


def is_retryable(exc: BaseException) -> bool:
    """
    Returns True if the exception should be retried.

    Retryable conditions:
    - QuotaExceeded (429 / RESOURCE_EXHAUSTED)
    - TransientOrUnknown flagged retryable (overload, 5xx, transport errors)
    """
    if isinstance(exc, StickerStudioError):
        return exc.retryable
    return classify_error(exc).retryable


def is_quota_error(exc: BaseException) -> bool:
    return isinstance(classify_error(exc), QuotaExceeded)


def describe_error(exc: BaseException) -> str:
    """Human-readable cause attached to failed ledger items."""
    return classify_error(exc).user_message
