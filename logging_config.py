"""Logging setup for applications embedding the invoice toolkit.

Modules only call ``structlog.get_logger``; nothing is configured on import.
"""

import logging
import sys

import structlog

from config import settings


def setup_stdlib_logging(level: str) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    # openpyxl is chatty on workbook load
    logging.getLogger("openpyxl").setLevel(logging.WARNING)


def setup_structlog(json_output: bool = False) -> None:
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.contextvars.merge_contextvars,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(level: str = None, json_output: bool = False) -> None:
    """Configure stdlib and structlog output; level defaults to settings.LOG_LEVEL."""
    level = (level or settings.LOG_LEVEL).upper()
    setup_stdlib_logging(level)
    setup_structlog(json_output=json_output)

