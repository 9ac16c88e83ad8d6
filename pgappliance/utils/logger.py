"""
Logging setup shared by all appliance administration components.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(
    name: str,
    log_file: Optional[Path] = None,
    verbose: bool = False
) -> logging.Logger:
    """
    Create or reconfigure a named logger.

    Args:
        name: Logger name
        log_file: Optional file to log to in addition to the console
        verbose: Log at DEBUG level instead of INFO

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)

    if not any(getattr(h, '_pgappliance_console', False) for h in logger.handlers):
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(formatter)
        console._pgappliance_console = True
        logger.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for handler in logger.handlers:
        handler.setLevel(level)

    logger.propagate = False
    return logger
