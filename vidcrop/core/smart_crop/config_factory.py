"""
Configuration factory for smart crop presets.

This module provides factory functions to create configurations for
different kinds of footage and to apply environment overrides.
"""

import os
import logging

from vidcrop.core.smart_crop.config import (
    SmartCropConfig,
    TargetObject,
    FAST_CONFIG,
    STABLE_CONFIG,
    SPORTS_CONFIG,
)
from vidcrop.core.smart_crop.models import AspectRatio

logger = logging.getLogger(__name__)

PRESETS = {
    "default": SmartCropConfig(),
    "fast": FAST_CONFIG,
    "stable": STABLE_CONFIG,
    "sports": SPORTS_CONFIG,
}


def get_preset_config(preset: str) -> SmartCropConfig:
    """
    Get a copy of a preset configuration.

    Unknown preset names fall back to the default configuration.
    """
    base = PRESETS.get(preset.lower())
    if base is None:
        logger.warning(f"Unknown preset '{preset}', using default")
        base = PRESETS["default"]
    return base.model_copy(deep=True)


def _env_float(name: str):
    value = os.getenv(name)
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid {name}: {value}")
        return None


def _env_bool(name: str):
    value = os.getenv(name)
    if not value:
        return None
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    logger.warning(f"Invalid {name}: {value}")
    return None


def get_config_from_env() -> SmartCropConfig:
    """
    Get configuration from environment variables.

    Environment variables:
        SMART_CROP_CONFIG_MODE: "default", "fast", "stable" or "sports"
        SMART_CROP_TARGET_OBJECT: Override target_object (str)
        SMART_CROP_SMOOTH_PERCENTAGE: Override smooth_percentage (float)
        SMART_CROP_SMOOTH_DURATION: Override smooth_duration (float, seconds)
        SMART_CROP_SIMPLE_SMOOTHING: Override use_simple_smoothing (bool)
        SMART_CROP_CUT_SIMILARITY: Override cut_similarity (float)
        SMART_CROP_CUT_START: Override cut_start (float)
        SMART_CROP_ASPECT: Override aspect_ratio (e.g. "9:16")
        SMART_CROP_MODEL: Override model_path (str)
        SMART_CROP_DEVICE: Override device (str)

    Invalid values are logged and ignored.

    Returns:
        Configured SmartCropConfig instance.
    """
    config = get_preset_config(os.getenv("SMART_CROP_CONFIG_MODE", "default"))

    if target := os.getenv("SMART_CROP_TARGET_OBJECT"):
        try:
            config.target_object = TargetObject(target.lower())
        except ValueError:
            logger.warning(f"Invalid SMART_CROP_TARGET_OBJECT: {target}")

    if (value := _env_float("SMART_CROP_SMOOTH_PERCENTAGE")) is not None:
        config.smooth_percentage = value

    if (value := _env_float("SMART_CROP_SMOOTH_DURATION")) is not None:
        config.smooth_duration = value

    if (value := _env_bool("SMART_CROP_SIMPLE_SMOOTHING")) is not None:
        config.use_simple_smoothing = value

    if (value := _env_float("SMART_CROP_CUT_SIMILARITY")) is not None:
        if 0.0 <= value <= 1.0:
            config.cut_similarity = value
        else:
            logger.warning(f"Invalid SMART_CROP_CUT_SIMILARITY: {value}")

    if (value := _env_float("SMART_CROP_CUT_START")) is not None:
        if 0.0 <= value <= 1.0:
            config.cut_start = value
        else:
            logger.warning(f"Invalid SMART_CROP_CUT_START: {value}")

    if aspect := os.getenv("SMART_CROP_ASPECT"):
        try:
            config.aspect_ratio = AspectRatio.from_string(aspect)
        except ValueError:
            logger.warning(f"Invalid SMART_CROP_ASPECT: {aspect}")

    if model_path := os.getenv("SMART_CROP_MODEL"):
        config.model_path = model_path

    if device := os.getenv("SMART_CROP_DEVICE"):
        config.device = device

    return config
