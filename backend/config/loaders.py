"""
Configuration file loaders.

Configuration files are cached with mtime-based invalidation. The cache is
automatically refreshed when the underlying YAML file is modified.
"""

import logging
from pathlib import Path
from typing import Any, Dict

from .cache import get_cached_config

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent
CONVERSATION_CONTEXT_CONFIG = CONFIG_DIR / "conversation_context.yaml"

# Fallback formats if conversation_context.yaml is missing keys
DEFAULT_CONVERSATION_CONTEXT: Dict[str, Any] = {
    "speaker_format": "{name}: {content}",
    "command_format": "[Command -> {targets}]: {content}",
    "command_no_target": "no specific target",
    "narration_format": "[Narration]: {content}",
    "director_name": "Director Command",
    "narrator_name": "Narrator",
}


def get_conversation_context_config() -> Dict[str, Any]:
    """
    Load the conversation context configuration from conversation_context.yaml.

    Missing keys are filled from DEFAULT_CONVERSATION_CONTEXT.

    Returns:
        Dictionary containing conversation formatting templates
    """
    config = get_cached_config(CONVERSATION_CONTEXT_CONFIG)
    return {**DEFAULT_CONVERSATION_CONTEXT, **config}


__all__ = [
    "CONFIG_DIR",
    "CONVERSATION_CONTEXT_CONFIG",
    "DEFAULT_CONVERSATION_CONTEXT",
    "get_conversation_context_config",
]
