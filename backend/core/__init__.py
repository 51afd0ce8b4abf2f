"""
Core application services: settings and logging.
"""

from .logging import get_logger, setup_logging
from .settings import get_settings, reset_settings

__all__ = ["get_settings", "reset_settings", "get_logger", "setup_logging"]
