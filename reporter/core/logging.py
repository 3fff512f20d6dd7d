import logging
import sys
from typing import Any

from loguru import logger

from reporter.config import get_settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:{function}:{line} | "
    "<level>{message}</level> | {extra}"
)

# uvicorn installs its own handlers before the app starts
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


class InterceptHandler(logging.Handler):
    """Route stdlib log records (uvicorn, apscheduler, alembic) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging's own frames so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging() -> None:
    """Send everything to stderr through loguru; DEBUG and colors in debug mode."""
    settings = get_settings()

    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if settings.debug else "INFO",
        format=LOG_FORMAT,
        colorize=settings.debug,
        backtrace=True,
        diagnose=settings.debug,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [InterceptHandler()]
        uvicorn_logger.propagate = False


def get_logger(name: str) -> Any:
    """Loguru logger bound to a module name."""
    return logger.bind(name=name)
