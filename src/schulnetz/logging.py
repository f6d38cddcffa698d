"""Structured logging configuration using structlog.

JSON output for production, console output for development. Every module
logs through get_logger(); parser and linker exceptions go through
log_exception() so their severity picks the channel.
"""

import logging
import sys

import structlog

from src.schulnetz.errors import ExceptionLevel, RecordException

# Stdlib loggers of the HTTP stack that log every request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog with appropriate processors and output format.

    Args:
        json_output: If True, output JSON (production). If False, console format (dev).
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging (httpx) to the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )
    logging.getLogger().handlers = []
    logging.getLogger().addHandler(logging.StreamHandler(sys.stderr))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance bound with the module name.

    Args:
        name: Logger name (typically __name__ from calling module).

    Returns:
        Configured structlog logger with module name context.
    """
    return structlog.get_logger(name)


def log_exception(logger: structlog.BoundLogger, exc: RecordException) -> None:
    """Log a parser/linker exception on the channel matching its level."""
    method = {
        ExceptionLevel.INFO: logger.info,
        ExceptionLevel.WARN: logger.warning,
        ExceptionLevel.ERROR: logger.error,
        ExceptionLevel.FATAL: logger.critical,
    }[exc.level]
    method(
        "record_exception",
        kind=exc.kind,
        function=exc.function,
        severity=exc.level.name,
        message=exc.message,
    )
