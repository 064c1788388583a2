# sticker_studio/tools/__init__.py
"""MCP tool implementations. Each tool takes the StudioLifecycle explicitly."""
