# sticker_studio/generation/client.py
"""Gemini client for caption plans, single stickers and 2x2 sticker grids."""

import logging
import os
from collections.abc import Sequence

from google import genai
from google.genai import types
from pydantic import ValidationError

from sticker_studio.cancellation import CancellationToken
from sticker_studio.models.images import ImagePayload
from sticker_studio.planning.schemas import CaptionPair, CaptionPlan

from .errors import (
    InvalidCredential,
    NoImageReturned,
    PlanParseError,
    SafetyBlocked,
    StickerStudioError,
    classify_error,
)
from .prompts import load_prompt
from .retry import RetryPolicy, linear_backoff, with_model_fallback

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MODELS = ("gemini-2.5-flash-image", "gemini-2.0-flash-exp")

SAFETY_FINISH_REASONS = frozenset(
    {
        "SAFETY",
        "PROHIBITED_CONTENT",
        "BLOCKLIST",
        "SPII",
        "IMAGE_SAFETY",
        "IMAGE_PROHIBITED_CONTENT",
    }
)

# Fills empty quadrants so the model still draws four poses
PLACEHOLDER_EMOTIONS = ("Happy", "Sad", "Angry", "Excited")

GRID_POSITIONS = ("top_left", "top_right", "bottom_left", "bottom_right")

_SAFETY_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)


def validate_api_key(api_key: str | None, env_name: str = "GEMINI_API_KEY") -> str:
    """
    Check that an API key is present and shaped like a Gemini key.

    Raises:
        InvalidCredential: If the key is missing, or looks like a project
            identifier or anything else that is not an "AIza..." key
    """
    if not api_key or not api_key.strip():
        raise InvalidCredential(
            f"Gemini API key not configured ({env_name} is unset)",
            user_message=f"API key not configured. Set the {env_name} environment variable.",
        )

    key = api_key.strip()
    if key.startswith("gen-lang-client") or not key.startswith("AIza"):
        raise InvalidCredential(
            f"Gemini API key has the wrong shape ({key[:10]}...)",
            user_message=(
                f'The configured key ({key[:10]}...) is not an API key. '
                'Copy the key that starts with "AIza", not the project ID.'
            ),
        )
    return key


def _reason_name(value) -> str:
    if value is None:
        return "UNKNOWN"
    return getattr(value, "name", None) or str(value)


def extract_image(response) -> ImagePayload:
    """
    Return the first inline image of the first candidate.

    Raises:
        SafetyBlocked: If the prompt or candidate was blocked for safety
        NoImageReturned: If no image part is present
    """
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None) if feedback else None
    if block_reason:
        raise SafetyBlocked(_reason_name(block_reason))

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        raise NoImageReturned("Response had no candidates")

    candidate = candidates[0]
    content = getattr(candidate, "content", None)
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            return ImagePayload(data=inline.data, mime_type=inline.mime_type or "image/png")

    reason = _reason_name(getattr(candidate, "finish_reason", None))
    if reason in SAFETY_FINISH_REASONS:
        raise SafetyBlocked(reason)
    raise NoImageReturned(f"Model returned no image (finish_reason={reason})")


class GeminiStickerClient:
    """
    Async Gemini client for sticker generation.

    Handles:
    - API key validation at construction (fails fast, never retried)
    - Request construction for single images, 2x2 grids and caption plans
    - Error classification into the generation taxonomy
    - Retry with backoff and fallback across image models
    """

    def __init__(
        self,
        api_key: str | None = None,
        text_model: str = "gemini-2.5-flash",
        image_models: Sequence[str] = DEFAULT_IMAGE_MODELS,
        retry_policy: RetryPolicy | None = None,
        timeout: int = 120,
        api_key_env: str = "GEMINI_API_KEY",
        primary_language: str = "Traditional Chinese",
        alternate_language: str = "English",
        default_context: str = "General daily conversation",
        preview_caption: str = "開心 (Happy)",
    ):
        """
        Initialize the client.

        Args:
            api_key: Gemini API key (None = read from api_key_env)
            text_model: Model used for plan generation
            image_models: Image models in fallback order
            retry_policy: Per-model retry policy (default: 3 attempts, 7s/12s backoff)
            timeout: Request timeout in seconds
            api_key_env: Environment variable consulted when api_key is None
            primary_language: Language of caption_local in plans
            alternate_language: Language of caption_alt in plans
            default_context: Usage context used when none is given
            preview_caption: Caption drawn for style previews

        Raises:
            InvalidCredential: If the key is missing or malformed
        """
        key = api_key if api_key is not None else os.environ.get(api_key_env)
        self._api_key = validate_api_key(key, api_key_env)
        if not image_models:
            raise ValueError("At least one image model is required")

        self.text_model = text_model
        self.image_models = list(image_models)
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=3, backoff=linear_backoff(5.0, 2.0)
        )
        self._primary_language = primary_language
        self._alternate_language = alternate_language
        self._default_context = default_context
        self._preview_caption = preview_caption
        self._client = genai.Client(
            api_key=self._api_key, http_options={"timeout": timeout * 1000}
        )

    def _image_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_modalities=["TEXT", "IMAGE"],
            image_config=types.ImageConfig(aspect_ratio="1:1"),
            safety_settings=[
                types.SafetySetting(
                    category=category,
                    threshold=types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
                )
                for category in _SAFETY_CATEGORIES
            ],
        )

    def _build_parts(
        self,
        prompt: str,
        reference_image: ImagePayload | None,
        reference_prompt: str,
    ) -> list[types.Part]:
        parts: list[types.Part] = []
        if reference_image is not None:
            parts.append(
                types.Part.from_bytes(
                    data=reference_image.data, mime_type=reference_image.mime_type
                )
            )
            parts.append(types.Part.from_text(text=load_prompt(reference_prompt).strip()))
        parts.append(types.Part.from_text(text=prompt))
        return parts

    async def _generate_image(self, model: str, parts: list[types.Part]) -> ImagePayload:
        """
        One image request against one model.

        Raises:
            StickerStudioError: Classified failure (retry decisions happen above)
        """
        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=parts,
                config=self._image_config(),
            )
        except StickerStudioError:
            raise
        except Exception as e:
            raise classify_error(e) from e

        image = extract_image(response)
        logger.info(f"Received {len(image.data)} byte image from {model}")
        return image

    async def _generate_with_fallback(
        self, parts: list[types.Part], token: CancellationToken | None
    ) -> ImagePayload:
        async def _operation(model: str) -> ImagePayload:
            return await self._generate_image(model, parts)

        return await with_model_fallback(
            _operation, self.image_models, self.retry_policy, token=token
        )

    async def generate_single(
        self,
        caption: str,
        style_prompt: str,
        reference_image: ImagePayload | None = None,
        token: CancellationToken | None = None,
    ) -> ImagePayload:
        """
        Generate one text-free sticker illustration for a caption.

        Args:
            caption: Caption whose meaning the character expresses
            style_prompt: Style modifier ("" for none)
            reference_image: Optional subject reference
            token: Cancellation token observed during backoff waits

        Returns:
            Raw generated image

        Raises:
            ValueError: If caption is empty
            StickerStudioError: After retries and model fallback are exhausted
        """
        if not caption or not caption.strip():
            raise ValueError("Caption must not be empty")

        prompt = load_prompt("single").format(
            caption=caption.strip(),
            style=style_prompt.strip() or "no specific style",
            primary_language=self._primary_language,
        )
        parts = self._build_parts(prompt, reference_image, "reference_single")
        logger.info(f"generate_single: caption={caption!r}, reference={reference_image is not None}")
        return await self._generate_with_fallback(parts, token)

    async def generate_grid(
        self,
        captions: Sequence[str],
        style_prompt: str,
        reference_image: ImagePayload | None = None,
        token: CancellationToken | None = None,
    ) -> ImagePayload:
        """
        Generate one 2x2 sheet with a pose per caption in reading order.

        Fewer than four captions are padded with placeholder emotions so the
        layout still has four quadrants.

        Raises:
            ValueError: If captions is empty, longer than 4, or has blanks
            StickerStudioError: After retries and model fallback are exhausted
        """
        if not 1 <= len(captions) <= 4:
            raise ValueError(f"Grid requests take 1 to 4 captions, got {len(captions)}")
        if any(not c or not c.strip() for c in captions):
            raise ValueError("Grid captions must not be empty")

        filled = list(captions) + list(PLACEHOLDER_EMOTIONS[len(captions):])
        prompt = load_prompt("grid").format(
            style=style_prompt.strip() or "no specific style",
            **dict(zip(GRID_POSITIONS, (c.strip() for c in filled))),
        )
        parts = self._build_parts(prompt, reference_image, "reference_grid")
        logger.info(f"generate_grid: {len(captions)} captions, reference={reference_image is not None}")
        return await self._generate_with_fallback(parts, token)

    async def generate_preview(
        self,
        style_prompt: str,
        reference_image: ImagePayload | None = None,
        token: CancellationToken | None = None,
    ) -> ImagePayload:
        """Single sticker for the preview caption, to try a style on a reference."""
        return await self.generate_single(
            self._preview_caption, style_prompt, reference_image, token=token
        )

    async def generate_plan(self, count: int, context_text: str = "") -> list[CaptionPair]:
        """
        Ask the text model for `count` caption pairs.

        Not retried: a failed plan is reported to the operator directly.

        Raises:
            ValueError: If count < 1
            PlanParseError: If the response is empty or violates the schema
            StickerStudioError: Classified transport failure
        """
        if count < 1:
            raise ValueError(f"count must be positive, got {count}")

        system_prompt = load_prompt("plan").format(
            count=count,
            context=context_text.strip() or self._default_context,
            primary_language=self._primary_language,
            alternate_language=self._alternate_language,
        )
        logger.info(f"generate_plan: count={count}, model={self.text_model}")

        try:
            response = await self._client.aio.models.generate_content(
                model=self.text_model,
                contents="Generate the sticker plan now.",
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    response_mime_type="application/json",
                    response_schema=list[CaptionPair],
                ),
            )
        except StickerStudioError:
            raise
        except Exception as e:
            raise classify_error(e) from e

        raw_json = getattr(response, "text", None)
        if not raw_json:
            raise PlanParseError("Empty response from plan model")

        try:
            pairs = CaptionPlan.validate_json(raw_json)
        except ValidationError as e:
            raise PlanParseError(f"Plan response did not match schema: {e}") from e

        if not pairs:
            raise PlanParseError("Plan response contained no captions")
        if len(pairs) > count:
            logger.info(f"Plan returned {len(pairs)} captions, keeping {count}")
            pairs = pairs[:count]
        elif len(pairs) < count:
            logger.warning(f"Plan returned {len(pairs)} captions, expected {count}")

        return pairs
