# sticker_studio/tools/list_styles.py
"""list_styles tool implementation."""

from sticker_studio.background.lifecycle import StudioLifecycle
from sticker_studio.models.responses import StyleInfo, StylesResponse


def list_styles(lifecycle: StudioLifecycle) -> dict:
    """
    List the art styles available for generation.

    Returns:
        StylesResponse as dict
    """
    catalog = lifecycle.catalog
    response = StylesResponse(
        styles=[
            StyleInfo(id=s.id, name=s.name, prompt_modifier=s.prompt_modifier)
            for s in catalog.list()
        ],
        default_style=catalog.default_style,
    )
    return response.model_dump()
