"""
Configuration validation and logging.

Provides functions for validating configuration schema and startup logging.
"""

import logging

from .cache import clear_cache, get_cached_config
from .loaders import CONVERSATION_CONTEXT_CONFIG, DEFAULT_CONVERSATION_CONTEXT

logger = logging.getLogger(__name__)

# Placeholders each template must contain
REQUIRED_PLACEHOLDERS = {
    "speaker_format": ("{name}", "{content}"),
    "command_format": ("{targets}", "{content}"),
    "narration_format": ("{content}",),
}


def reload_all_configs():
    """Force reload all configuration files by clearing the cache."""
    clear_cache()
    logger.info("Reloaded all configuration files")


def validate_config_schema() -> list[str]:
    """
    Validate configuration files have required keys and structure.

    Returns:
        List of validation errors (empty if all valid)
    """
    errors = []

    context_config = get_cached_config(CONVERSATION_CONTEXT_CONFIG)
    if not context_config:
        errors.append("conversation_context.yaml is empty or missing")
        return errors

    for key in DEFAULT_CONVERSATION_CONTEXT:
        if key not in context_config:
            errors.append(f"conversation_context.yaml missing '{key}' field")
        elif not isinstance(context_config[key], str):
            errors.append(f"conversation_context.yaml '{key}' must be a string")

    for key, placeholders in REQUIRED_PLACEHOLDERS.items():
        template = context_config.get(key)
        if not isinstance(template, str):
            continue
        for placeholder in placeholders:
            if placeholder not in template:
                errors.append(f"conversation_context.yaml '{key}' missing placeholder {placeholder}")

    return errors


def log_config_validation():
    """
    Validate and log configuration status at startup.

    This should be called once during application initialization.
    """
    logger.info("Validating YAML configuration files...")

    errors = validate_config_schema()

    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"   - {error}")
        logger.error("Fix configuration files in backend/config/")
    else:
        logger.info("All configuration files validated successfully")


__all__ = [
    "reload_all_configs",
    "validate_config_schema",
    "log_config_validation",
]
