"""Logging configuration shared by every nodeflow module."""
import logging
import sys

DEFAULT_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def setup_logger(
    name: str = "nodeflow",
    level: int | str | None = None,
    format_string: str | None = None,
) -> logging.Logger:
    """Attach a stdout handler to ``name`` once and set its level.

    Level defaults to DEBUG when ``settings.debug`` is on, otherwise
    ``settings.log_level``.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if level is None:
        # Imported here so config can itself log without a cycle
        from ..config import settings
        level = logging.DEBUG if settings.debug else settings.log_level.upper()
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child of the ``nodeflow`` logger, e.g. ``nodeflow.engine.executor``."""
    setup_logger()
    if not name.startswith("nodeflow"):
        name = f"nodeflow.{name}"
    return logging.getLogger(name)
