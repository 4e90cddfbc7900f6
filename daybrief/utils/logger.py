"""
Logging configuration
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from daybrief.utils.config import LoggingConfig
from daybrief.utils.constants import LoggingConstants


class InterceptHandler(logging.Handler):
    """Routes standard logging records (SQLAlchemy, asyncio) through loguru"""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Install the console sink and, when configured, the rotating file sink"""
    config = config or LoggingConfig()
    logger.remove()

    # stdout carries the printed brief
    logger.add(
        sys.stderr,
        level=config.level,
        format=LoggingConstants.CONSOLE_FORMAT,
        colorize=True,
    )

    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            config.file,
            level=config.level,
            format=LoggingConstants.FILE_FORMAT,
            rotation=config.rotation,
            retention=config.retention,
            encoding="utf-8",
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logger.debug(f"Logging at {config.level}" + (f" to {config.file}" if config.file else ""))
