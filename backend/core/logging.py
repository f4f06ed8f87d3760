"""
Structured logging setup (structlog).
"""

import logging

import structlog

from core.config import Settings, is_local_env


def configure_logging(settings: Settings) -> None:
    """Configure structlog once at process start."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    renderer = structlog.dev.ConsoleRenderer() if is_local_env(settings) else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
