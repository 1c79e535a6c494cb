"""
Model descriptor registry.

Turns the flat `<ID>_MODEL_ID` / `<ID>_TEMPERATURE` / `<ID>_MAX_TOKENS`
settings into the ordered, immutable tuple of `ModelDescriptor` the
sequencer consumes.
"""

from __future__ import annotations

import logging
from typing import Any

from app.config.settings import Settings
from app.models.chat import GenerationParameters, ModelDescriptor

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when the model sequence cannot be built from settings."""


# Known descriptor ids and the settings prefix each one reads
MODEL_SETTING_PREFIXES: dict[str, str] = {
    "deepseek": "deepseek",
    "nova": "nova",
}


def get_model_settings(settings: Settings, model_id: str) -> dict[str, Any]:
    """Return the raw settings for one descriptor id."""
    prefix = MODEL_SETTING_PREFIXES.get(model_id)
    if prefix is None:
        raise ConfigurationError(
            f"Unknown model '{model_id}' in MODEL_SEQUENCE. "
            f"Known models: {', '.join(sorted(MODEL_SETTING_PREFIXES))}"
        )
    return {
        "model_ref": getattr(settings, f"{prefix}_model_id"),
        "temperature": getattr(settings, f"{prefix}_temperature"),
        "max_tokens": getattr(settings, f"{prefix}_max_tokens"),
        "provider": getattr(settings, f"{prefix}_provider"),
    }


def build_model_descriptors(settings: Settings) -> tuple[ModelDescriptor, ...]:
    """
    Build the model sequence from settings.

    Order follows MODEL_SEQUENCE, starting at 1.

    Raises:
        ConfigurationError: if the sequence is empty, repeats an id or
            names an unknown model
    """
    model_ids = settings.model_sequence_list
    if not model_ids:
        raise ConfigurationError("MODEL_SEQUENCE must name at least one model")
    if len(set(model_ids)) != len(model_ids):
        raise ConfigurationError(f"MODEL_SEQUENCE repeats a model: {settings.model_sequence}")

    descriptors = []
    for order, model_id in enumerate(model_ids, start=1):
        raw = get_model_settings(settings, model_id)
        descriptors.append(
            ModelDescriptor(
                id=model_id,
                model_ref=raw["model_ref"],
                parameters=GenerationParameters(
                    temperature=raw["temperature"],
                    max_tokens=raw["max_tokens"],
                ),
                order=order,
                provider=raw["provider"],
            )
        )

    logger.info(
        "Model sequence configured: "
        + " -> ".join(f"{d.order}:{d.id} ({d.model_ref})" for d in descriptors)
    )
    return tuple(descriptors)
