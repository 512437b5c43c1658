"""Structured logging for location resolution.

Library modules log through ``logging.getLogger(__name__)``; structlog
renders those records and the session loggers alike.
"""

import logging
from typing import cast

import structlog
from structlog import dev, processors, stdlib
from structlog.stdlib import BoundLogger
from structlog.types import Processor

from listing_location.core.config import settings

PACKAGE_LOGGER = "listing_location"

LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def resolve_level(level: str | None = None) -> int:
    """Translate a level name into a stdlib logging level.

    Args:
        level: Level name, case-insensitive. Defaults to ``settings.LOG_LEVEL``.

    Returns:
        Numeric logging level, INFO for unknown names
    """
    name = (level or settings.LOG_LEVEL).lower()
    return LOG_LEVELS.get(name, logging.INFO)


def _pre_chain() -> list[Processor]:
    return [
        stdlib.add_logger_name,
        stdlib.add_log_level,
        stdlib.PositionalArgumentsFormatter(),
        processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S.%f"),
        processors.dict_tracebacks,
    ]


def configure_logging(testing: bool = False, level: str | None = None) -> None:
    """Route structlog and stdlib logging through one handler.

    Args:
        testing: Render key-value/console output instead of JSON
        level: Optional level name overriding ``settings.LOG_LEVEL``
    """
    log_level = resolve_level(level)
    use_json = settings.JSON_LOGS and not testing
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[
            stdlib.filter_by_level,
            *pre_chain,
            processors.format_exc_info,
            processors.JSONRenderer() if use_json else processors.KeyValueRenderer(),
        ],
        context_class=dict,
        logger_factory=stdlib.LoggerFactory(),
        wrapper_class=stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(
        stdlib.ProcessorFormatter(
            processor=processors.JSONRenderer() if use_json else dev.ConsoleRenderer(),
            foreign_pre_chain=pre_chain,
        )
    )

    # Replace handlers so repeated calls do not duplicate output
    for logger in (logging.getLogger(), logging.getLogger(PACKAGE_LOGGER)):
        logger.setLevel(log_level)
        logger.handlers = [handler]
    logging.getLogger(PACKAGE_LOGGER).propagate = False


def get_logger() -> BoundLogger:
    return cast(BoundLogger, structlog.get_logger())


def get_session_logger(session_id: str | None = None) -> BoundLogger:
    """Get a logger bound to one location form session.

    Args:
        session_id: Optional form session ID to bind to every entry

    Returns:
        Configured logger with session context
    """
    logger = get_logger()
    if session_id:
        logger = logger.bind(session_id=session_id)
    return logger
