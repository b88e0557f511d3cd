"""
Centralized logging configuration for the application.
"""

import logging
import sys
from typing import Optional

from establishment.config import Settings


def setup_logging(config: Optional[Settings] = None) -> None:
    """
    Setup centralized logging configuration.

    Args:
        config: Settings instance, uses the module default if None
    """
    if config is None:
        from establishment.config import settings as default_settings
        config = default_settings

    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                        handlers=[logging.StreamHandler(sys.stdout)])


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Level and handlers come from the root logger configured by setup_logging.

    Args:
        name: Logger name (usually __name__)
    """
    return logging.getLogger(name)
