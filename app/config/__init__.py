"""Configuration module."""

# Import settings
from app.config.settings import Settings, get_settings

# Import model registry
from app.config.model_registry import (
    MODEL_SETTING_PREFIXES,
    ConfigurationError,
    build_model_descriptors,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Model registry
    "MODEL_SETTING_PREFIXES",
    "ConfigurationError",
    "build_model_descriptors",
]
