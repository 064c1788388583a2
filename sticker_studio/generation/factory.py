# sticker_studio/generation/factory.py
"""Factory for creating the configured generation client."""

from sticker_studio.config.schema import StickerStudioConfig

from .client import GeminiStickerClient
from .retry import RetryPolicy, linear_backoff


def create_generation_client(config: StickerStudioConfig) -> GeminiStickerClient:
    """
    Create a GeminiStickerClient from config.

    Raises:
        InvalidCredential: If the API key is missing or malformed
    """
    gemini = config.gemini
    return GeminiStickerClient(
        api_key=gemini.api_key,
        text_model=gemini.text_model,
        image_models=gemini.image_models,
        retry_policy=RetryPolicy(
            max_attempts=gemini.attempts_per_model,
            backoff=linear_backoff(gemini.backoff_step, gemini.backoff_offset),
        ),
        timeout=gemini.timeout,
        api_key_env=gemini.api_key_env,
        primary_language=config.planning.primary_language,
        alternate_language=config.planning.alternate_language,
        default_context=config.planning.default_context,
        preview_caption=config.planning.preview_caption,
    )
