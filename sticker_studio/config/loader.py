# sticker_studio/config/loader.py
"""
Configuration loading with auto-creation of defaults.

Uses platformdirs for cross-platform config directory management.
"""

import logging
from pathlib import Path

import yaml
from platformdirs import user_config_path

from .schema import StickerStudioConfig

logger = logging.getLogger(__name__)


def get_config_path() -> Path:
    """Get path to config file, ensuring config directory exists."""
    config_dir = user_config_path("sticker-studio", ensure_exists=True)
    return config_dir / "config.yaml"


def load_config(path: Path | None = None) -> StickerStudioConfig:
    """
    Load configuration from YAML file.

    If config file doesn't exist, creates it with defaults.
    The API key is never written to the generated file; it is read from
    the environment at client construction time.

    Args:
        path: Explicit config file (defaults to get_config_path())

    Returns:
        Validated StickerStudioConfig
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        default_config = StickerStudioConfig()
        config_dict = default_config.model_dump(mode="json")

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(
                config_dict,
                f,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )

        logger.info(f"Created default config at {config_path}")
        return default_config

    with config_path.open("r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    config = StickerStudioConfig(**config_data)
    logger.info(f"Loaded config from {config_path}")
    return config
