from __future__ import annotations

import logging
import os
from typing import Optional

from .config_loader import DirectoryConfig

LOG_LEVEL_ENV = "CONTACTS_DIRECTORY_LOG_LEVEL"


def resolve_level(level_name: Optional[str]) -> int:
    """Numeric level for a level name or number; unknown names map to INFO."""
    normalized = (level_name or "INFO").strip().upper()
    if normalized.isdigit():
        return int(normalized)
    level = logging.getLevelName(normalized)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(config: DirectoryConfig, level_override: Optional[str] = None) -> int:
    """
    Set the root logger level, picking the first of:

    1. ``CONTACTS_DIRECTORY_LOG_LEVEL`` from the environment
    2. ``level_override`` (the ``--log-level`` flag)
    3. ``logging.level`` from the YAML config
    4. ``WARNING``

    Handlers are only installed when the root logger has none yet. Returns the
    level that was applied.
    """
    level_name = os.getenv(LOG_LEVEL_ENV) or level_override or config.logging.level or "WARNING"
    level_value = resolve_level(level_name)

    root_logger = logging.getLogger()
    if root_logger.handlers:
        root_logger.setLevel(level_value)
    else:
        logging.basicConfig(level=level_value, format=config.logging.format)
    return level_value
