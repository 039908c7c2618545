import sys

from loguru import logger

from .settings import config_settings


def setup_logger(level: str | None = None, log_file: str | None = None) -> None:
    """Configure loguru sinks: coloured stdout plus an optional rotating file."""
    level = level or config_settings.LOG_LEVEL
    log_file = log_file if log_file is not None else config_settings.LOG_FILE

    logger.remove()

    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True,
    )

    if log_file:
        logger.add(
            log_file,
            rotation="100 MB",
            retention="10 days",
            compression="zip",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level=level,
        )

    logger.debug("Logger configured at level {}", level)
