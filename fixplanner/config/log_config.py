import sys
from loguru import logger


def configure_logging(level: str = "WARNING", log_file: str = "") -> None:
    """Route loguru output to stderr (stdout carries the plan) and an optional file."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(),
               format="<green>{time:HH:mm:ss}</green> | <level>{level:<8}</level> | {message}",
               colorize=True)
    if log_file:
        logger.add(log_file, level="DEBUG", rotation="10 MB",
                   format="{time} | {level} | {message}")
