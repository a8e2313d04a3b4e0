"""
Logger factory used by relay components.

Thin wrapper over the LoggingManager: the first call applies
``logging.yaml``; later calls only pick a level and, optionally, add a
per-component log file.
"""

import logging
from typing import Optional

from .logging_manager import setup_logging as _setup_logging


def setup_logging(
    component_name: str,
    log_file: Optional[str] = None,
    log_level: Optional[str] = None,
) -> logging.Logger:
    """
    Return the logger for a relay component.

    Args:
        component_name: Logger name, e.g. 'relay_server' or 'relay_coordinator'
        log_file: Extra file receiving this component's records
        log_level: Level name; defaults to the level for ENVIRONMENT

    Returns:
        logging.Logger: The component logger
    """
    return _setup_logging(component_name, log_level, log_file)


def get_logger(component_name: str) -> logging.Logger:
    """Return an existing component logger without touching its configuration."""
    return logging.getLogger(component_name)
