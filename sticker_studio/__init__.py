# sticker_studio/__init__.py
"""Sticker pack generation: caption plans, Gemini image batches, local compositing."""

__version__ = "0.1.0"
