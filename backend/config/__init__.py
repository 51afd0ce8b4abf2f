"""
YAML configuration loading for conversation formatting.
"""

from .cache import clear_cache, get_cached_config
from .loaders import get_conversation_context_config
from .validation import log_config_validation, reload_all_configs, validate_config_schema

__all__ = [
    "clear_cache",
    "get_cached_config",
    "get_conversation_context_config",
    "log_config_validation",
    "reload_all_configs",
    "validate_config_schema",
]
