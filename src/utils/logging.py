"""
Logging helpers shared by the API, the RBAC layer and the CLI.

Every module obtains its logger through get_logger(__name__) so that all
output lands under a single 'lms_access' hierarchy and can be configured
in one place.
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "lms_access"

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
CLI_LOG_FORMAT = "%(levelname)s: %(message)s"

# verbosity 0-4, same scale as the CLI flag
VERBOSITY_LEVELS = {
    0: logging.CRITICAL,
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
    4: logging.DEBUG,
}


def _level_for(verbosity: int) -> int:
    verbosity = max(0, min(4, int(verbosity)))
    return VERBOSITY_LEVELS[verbosity]


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return a logger nested under the application root logger.

    Module paths such as 'src.utils.rbac.guards' become
    'lms_access.src.utils.rbac.guards'.
    """
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def _configure(verbosity: int, fmt: str) -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(_level_for(verbosity))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)
    root.propagate = False
    return root


def setup_logging(verbosity: int = 3) -> logging.Logger:
    """Configure logging for the web service."""
    return _configure(verbosity, LOG_FORMAT)


def setup_cli_logging(verbosity: int = 3) -> logging.Logger:
    """Configure terser logging for command line usage."""
    return _configure(verbosity, CLI_LOG_FORMAT)
