# sticker_studio/export/__init__.py
"""Sticker pack packaging."""

from .archive import StickerArchiveBuilder

__all__ = ["StickerArchiveBuilder"]
