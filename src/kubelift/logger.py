import logging

from rich.logging import RichHandler

from .config import get_settings


def setup_logger(name: str = "kubelift", level: int = logging.INFO) -> logging.Logger:
    """Configures and returns a logger with RichHandler."""

    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers if setup is called multiple times

    if not logger.handlers:
        logger.setLevel(level)

        handler = RichHandler(rich_tracebacks=True, markup=True)

        handler.setFormatter(logging.Formatter("%(message)s"))

        logger.addHandler(handler)

    else:
        logger.setLevel(level)

    return logger


# Global logger instance, level taken from KUBELIFT_LOG_LEVEL


_level = logging.getLevelName(get_settings().log_level.upper())
logger = setup_logger(level=_level if isinstance(_level, int) else logging.INFO)
