"""
Logging setup shared by the orchestration components.

Every component logs through a named standard-library logger
(``logging.getLogger("TurnCoordinator")`` and so on). ``setup_logging``
installs a single stream handler on the root logger.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging once.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL setting.
    """
    global _configured
    if _configured:
        return

    if level is None:
        from .settings import get_settings

        level = get_settings().log_level

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a named component logger."""
    return logging.getLogger(name)
