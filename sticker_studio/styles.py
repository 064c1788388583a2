# sticker_studio/styles.py
"""Style catalog: style id -> display name and prompt modifier."""

import logging
from collections.abc import Iterable

from sticker_studio.config.schema import StickerStudioConfig, StickerStyle

logger = logging.getLogger(__name__)


class UnknownStyleError(ValueError):
    """Raised when a style id is not in the catalog."""


class StyleCatalog:
    """Lookup over an injected list of styles (from config or a test fixture)."""

    def __init__(self, styles: Iterable[StickerStyle], default_style: str | None = None) -> None:
        self._styles = {style.id: style for style in styles}
        if default_style is not None and default_style not in self._styles:
            raise UnknownStyleError(f"Default style '{default_style}' not in catalog")
        self._default = default_style

    @classmethod
    def from_config(cls, config: StickerStudioConfig) -> "StyleCatalog":
        return cls(config.styles, default_style=config.default_style)

    @property
    def default_style(self) -> str | None:
        return self._default

    def get(self, style_id: str) -> StickerStyle:
        try:
            return self._styles[style_id]
        except KeyError:
            raise UnknownStyleError(
                f"Unknown style '{style_id}'. Available: {', '.join(self._styles)}"
            ) from None

    def resolve_prompt(self, style_id: str | None) -> str:
        """
        Prompt modifier for style_id.

        None falls back to the default style, or to "" (no modifier) when the
        catalog has no default.
        """
        style_id = style_id or self._default
        if style_id is None:
            return ""
        return self.get(style_id).prompt_modifier

    def list(self) -> list[StickerStyle]:
        return list(self._styles.values())

    def __contains__(self, style_id: object) -> bool:
        return style_id in self._styles

    def __len__(self) -> int:
        return len(self._styles)
