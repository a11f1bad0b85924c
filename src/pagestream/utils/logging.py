"""Logging helpers shared by every pagestream module."""

import logging
import os

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return
    level_name = os.environ.get("PAGESTREAM_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=_LOG_FORMAT)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    The root handler is configured once, on first use. The level can be
    overridden with the PAGESTREAM_LOG_LEVEL environment variable.

    Args:
        name: Logger name, normally ``__name__``

    Returns:
        Configured logger
    """
    _configure_root()
    return logging.getLogger(name)
