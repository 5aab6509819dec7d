"""
Centralized logging configuration for the application.
"""

import logging
import sys
from typing import Optional

from eind.core.config import AppConfig, load_config


def setup_logging(config: Optional[AppConfig] = None) -> None:
    """
    Setup centralized logging configuration.

    Args:
        config: AppConfig instance, loaded from disk if None
    """
    if config is None:
        config = load_config()

    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                        handlers=[logging.StreamHandler(sys.stdout)])


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance; level and handlers come from setup_logging
    """
    return logging.getLogger(name)
