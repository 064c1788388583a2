# sticker_studio/compositor/image_ops.py
"""
Pure image transformations for sticker post-processing.

No network access and no shared state: every function takes an image and
returns a new one, so calls can run concurrently in worker threads.
"""

import io
import logging
import math
import random

from PIL import Image, ImageDraw, ImageFilter, ImageFont, ImageOps

from sticker_studio.models.images import ImagePayload

logger = logging.getLogger(__name__)

CANVAS_SIZE = 320
PADDING = 20
LUMINANCE_THRESHOLD = 240
MAX_FONT_SIZE = 34
MIN_FONT_SIZE = 20
FONT_STEP = 2
SIDE_MARGIN = 10
BOTTOM_MARGIN = 20
STROKE_WIDTH = 4
FILL_COLOR = (51, 51, 51, 255)
STROKE_COLOR = (255, 255, 255, 255)
SHADOW_COLOR = (0, 0, 0, 102)
SHADOW_OFFSET = (2, 2)
SHADOW_BLUR = 2.0

# Reading order: top-left, top-right, bottom-left, bottom-right
_QUADRANTS = ((0, 0), (1, 0), (0, 1), (1, 1))


def decode_image(payload: ImagePayload) -> Image.Image:
    """Decode a payload into an RGBA image."""
    with Image.open(io.BytesIO(payload.data)) as img:
        img.load()
        return img.convert("RGBA")


def encode_png(image: Image.Image) -> ImagePayload:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return ImagePayload(data=buffer.getvalue(), mime_type="image/png")


def remove_near_white_background(
    image: Image.Image, threshold: int = LUMINANCE_THRESHOLD
) -> Image.Image:
    """
    Make near-white pixels fully transparent.

    A pixel is removed when R, G and B are all strictly greater than
    `threshold` (241 is removed, 240 is kept). Other pixels, including
    their alpha, are untouched. No edge smoothing.
    """
    rgba = image.convert("RGBA")
    r, g, b, alpha = rgba.split()

    def _above(channel: Image.Image) -> Image.Image:
        return channel.point(lambda v: 255 if v > threshold else 0)

    white = _above(r)
    white.paste(0, mask=_above(g).point(lambda v: 255 - v))
    white.paste(0, mask=_above(b).point(lambda v: 255 - v))

    alpha.paste(0, mask=white)
    rgba.putalpha(alpha)
    return rgba


def load_font(size: int, font_path: str | None = None) -> ImageFont.FreeTypeFont:
    """Load the caption font at `size` (Pillow's scalable default when no path)."""
    if font_path:
        return ImageFont.truetype(font_path, size)
    return ImageFont.load_default(size=size)


def fit_font(
    draw: ImageDraw.ImageDraw,
    text: str,
    max_width: float,
    max_size: int = MAX_FONT_SIZE,
    min_size: int = MIN_FONT_SIZE,
    step: int = FONT_STEP,
    font_path: str | None = None,
    stroke_width: int = STROKE_WIDTH,
):
    """Shrink from max_size in `step` decrements until `text` fits, stopping at min_size."""
    size = max_size
    font = load_font(size, font_path)
    while (
        draw.textlength(text, font=font) + 2 * stroke_width > max_width
        and size > min_size
    ):
        size = max(size - step, min_size)
        font = load_font(size, font_path)
    return font


def _fit_into_canvas(image: Image.Image, canvas_size: int, padding: int) -> Image.Image:
    box = max(canvas_size - 2 * padding, 1)
    art = ImageOps.contain(image.convert("RGBA"), (box, box), Image.Resampling.LANCZOS)
    canvas = Image.new("RGBA", (canvas_size, canvas_size), (0, 0, 0, 0))
    offset = ((canvas_size - art.width) // 2, (canvas_size - art.height) // 2)
    canvas.paste(art, offset, art)
    return canvas


def composite_caption(
    image: Image.Image,
    text: str,
    canvas_size: int = CANVAS_SIZE,
    padding: int = PADDING,
    threshold: int = LUMINANCE_THRESHOLD,
    max_font_size: int = MAX_FONT_SIZE,
    min_font_size: int = MIN_FONT_SIZE,
    font_step: int = FONT_STEP,
    max_rotation: float = 4.0,
    font_path: str | None = None,
    rng: random.Random | None = None,
) -> Image.Image:
    """
    Turn a raw illustration into a finished square sticker.

    Steps: fit the artwork with padding into the canvas, remove the white
    background, then draw the caption centred near the bottom with a small
    random tilt, a soft shadow, a thick white outline and a dark fill.
    Empty text skips the caption.
    """
    canvas = _fit_into_canvas(image, canvas_size, padding)
    canvas = remove_near_white_background(canvas, threshold)

    if not text or not text.strip():
        return canvas

    rng = rng or random.Random()
    angle = rng.uniform(-max_rotation, max_rotation)

    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    font = fit_font(
        draw,
        text,
        max_width=canvas_size - 2 * SIDE_MARGIN,
        max_size=max_font_size,
        min_size=min_font_size,
        step=font_step,
        font_path=font_path,
    )
    anchor_xy = (canvas_size / 2, canvas_size - BOTTOM_MARGIN)

    shadow = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    ImageDraw.Draw(shadow).text(
        (anchor_xy[0] + SHADOW_OFFSET[0], anchor_xy[1] + SHADOW_OFFSET[1]),
        text,
        font=font,
        anchor="ms",
        fill=SHADOW_COLOR,
        stroke_width=STROKE_WIDTH,
        stroke_fill=SHADOW_COLOR,
    )
    shadow = shadow.filter(ImageFilter.GaussianBlur(SHADOW_BLUR))

    draw.text(
        anchor_xy,
        text,
        font=font,
        anchor="ms",
        fill=FILL_COLOR,
        stroke_width=STROKE_WIDTH,
        stroke_fill=STROKE_COLOR,
    )

    caption = Image.alpha_composite(shadow, layer)
    if not math.isclose(angle, 0.0):
        caption = caption.rotate(
            angle, resample=Image.Resampling.BICUBIC, center=anchor_xy
        )

    return Image.alpha_composite(canvas, caption)


def slice_grid(image: Image.Image, n: int = 4) -> list[Image.Image]:
    """
    Cut a 2x2 sheet into equal quadrants and return the first `n`.

    Quadrants come in reading order (top-left, top-right, bottom-left,
    bottom-right). Odd pixel rows/columns are dropped so all tiles match.

    Raises:
        ValueError: If n is not between 1 and 4
    """
    if not 1 <= n <= 4:
        raise ValueError(f"n must be between 1 and 4, got {n}")

    half_w = image.width // 2
    half_h = image.height // 2
    tiles = []
    for col, row in _QUADRANTS[:n]:
        left, top = col * half_w, row * half_h
        tiles.append(image.crop((left, top, left + half_w, top + half_h)))
    return tiles


def resize_to(image: Image.Image, width: int, height: int) -> Image.Image:
    """High-quality resize to exactly width x height (aspect ratio not kept)."""
    if width < 1 or height < 1:
        raise ValueError(f"Invalid target size {width}x{height}")
    return image.resize((width, height), Image.Resampling.LANCZOS)


def downscale_for_upload(
    image: Image.Image, max_dimension: int = 800, quality: int = 85
) -> ImagePayload:
    """
    Cap the longer side at max_dimension (aspect kept) and re-encode as JPEG.

    Transparent areas are flattened onto white, matching the backgrounds the
    prompts ask for.
    """
    flattened = Image.new("RGB", image.size, (255, 255, 255))
    rgba = image.convert("RGBA")
    flattened.paste(rgba, mask=rgba.getchannel("A"))

    if max(flattened.size) > max_dimension:
        flattened.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    flattened.save(buffer, format="JPEG", quality=quality)
    logger.info(f"Reference image downscaled to {flattened.width}x{flattened.height}")
    return ImagePayload(data=buffer.getvalue(), mime_type="image/jpeg")
