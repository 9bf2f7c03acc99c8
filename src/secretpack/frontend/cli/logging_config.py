"""Logging for the secretpack command line.

Diagnostics always go to stderr, since stdout may carry the ciphertext or
the decrypted document.
"""

import logging
import sys

LOG_FORMAT = "secretpack %(levelname)s %(name)s: %(message)s"

# -v count -> level
_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def level_for(verbosity: int) -> int:
    return _LEVELS[min(max(verbosity, 0), len(_LEVELS) - 1)]


def configure_logging(verbosity: int = 0) -> int:
    """Attach a single stderr handler to the package logger; return its level."""
    level = level_for(verbosity)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger("secretpack")
    logger.handlers[:] = [handler]
    logger.setLevel(level)
    logger.propagate = False
    return level
