"""
Handler setup for the simransac logger hierarchy.

Library modules only call logging.getLogger(__name__). Scripts and tests
attach handlers once, at the package root, through setup_logger().
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(
    name: str = "simransac",
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    force: bool = False
) -> logging.Logger:
    """
    Attach console and/or file handlers to a logger of the package.

    A logger that already has handlers is returned untouched unless force
    is set; with force, the previous handlers are closed and replaced.

    Example:
        >>> setup_logger(level='DEBUG', log_file='runs/registration.log')
        >>> logging.getLogger('simransac.ransac.core').debug("now visible")
    """
    logger = logging.getLogger(name)
    if logger.handlers and not force:
        return logger

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
