"""Structured logging setup for applications embedding tailrisk."""

import logging

import structlog


def configure_logging(level: int = logging.INFO) -> None:
    """Set up structlog with human-readable console output.

    Events below `level` are dropped. Library modules only call
    structlog.get_logger(); configuring output is left to the caller.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
