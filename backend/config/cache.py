"""
YAML configuration cache with mtime-based invalidation.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

logger = logging.getLogger(__name__)

# path -> (mtime, parsed config)
_config_cache: Dict[str, Tuple[float, Dict[str, Any]]] = {}
_cache_lock = threading.Lock()


def _get_file_mtime(file_path: Path) -> float:
    """Return the modification time of a file, or 0.0 if it does not exist."""
    try:
        return file_path.stat().st_mtime
    except OSError:
        return 0.0


def _load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """
    Load a YAML file.

    Returns:
        Parsed mapping, or an empty dict if the file is missing or empty
    """
    if not file_path.exists():
        logger.warning(f"Config file not found: {file_path}")
        return {}

    with open(file_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def get_cached_config(file_path: Path, force_reload: bool = False) -> Dict[str, Any]:
    """
    Load a YAML config file, reusing the cached copy while its mtime is unchanged.

    Args:
        file_path: Path to the YAML file
        force_reload: Ignore the cache and read the file again

    Returns:
        Parsed configuration mapping
    """
    key = str(file_path)
    mtime = _get_file_mtime(file_path)

    with _cache_lock:
        cached = _config_cache.get(key)
        if not force_reload and cached is not None and cached[0] == mtime:
            return cached[1]

        config = _load_yaml_file(file_path)
        _config_cache[key] = (mtime, config)
        logger.debug(f"Loaded config {file_path.name} (mtime={mtime})")
        return config


def clear_cache() -> None:
    """Drop every cached configuration file."""
    with _cache_lock:
        _config_cache.clear()
