# sticker_studio/generation/__init__.py
"""Gemini integration: request construction, error taxonomy, retry and model fallback."""

from .client import GeminiStickerClient, extract_image, validate_api_key
from .errors import (
    InvalidCredential,
    NoImageReturned,
    PlanParseError,
    QuotaExceeded,
    SafetyBlocked,
    StickerStudioError,
    TransientOrUnknown,
    classify_error,
    describe_error,
    is_quota_error,
    is_retryable,
)
from .factory import create_generation_client
from .retry import RetryPolicy, constant_backoff, linear_backoff, with_model_fallback

__all__ = [
    "GeminiStickerClient",
    "create_generation_client",
    "extract_image",
    "validate_api_key",
    "RetryPolicy",
    "linear_backoff",
    "constant_backoff",
    "with_model_fallback",
    "StickerStudioError",
    "QuotaExceeded",
    "SafetyBlocked",
    "NoImageReturned",
    "InvalidCredential",
    "PlanParseError",
    "TransientOrUnknown",
    "classify_error",
    "describe_error",
    "is_quota_error",
    "is_retryable",
]
