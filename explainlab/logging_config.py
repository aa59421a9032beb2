"""
Console logging setup shared by the service and the headless scripts.

Uses uvicorn's colored "LEVEL:" formatter for all loggers so application and
server lines look the same on the console.
"""

import logging

from uvicorn.logging import DefaultFormatter

from explainlab.config import Settings


class EndpointFilter(logging.Filter):
    """Filter out high-frequency endpoints from access logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        if "/health" in msg:
            return False
        return True


def configure_logging(settings: Settings) -> logging.Handler:
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(DefaultFormatter(fmt=settings.LOG_FORMAT, use_colors=True))

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        handlers=[console_handler],
    )

    # asyncpg logs every server NOTICE at INFO.
    logging.getLogger("asyncpg").setLevel(logging.WARNING)

    access_logger = logging.getLogger("uvicorn.access")
    if not any(isinstance(f, EndpointFilter) for f in access_logger.filters):
        access_logger.addFilter(EndpointFilter())

    return console_handler
