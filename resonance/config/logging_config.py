"""Logging configuration for uvicorn when the host surface is served."""

import logging
import os

import structlog


def get_uvicorn_log_level():
    """Get log level for uvicorn from environment."""
    level = os.getenv("UVICORN_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level, logging.INFO)


class RenameLoggerProcessor:
    """Processor to rename confusing logger names."""

    def __call__(self, logger, name, event_dict):
        if event_dict.get("logger") == "uvicorn.error":
            event_dict["logger"] = "uvicorn.server"
        elif event_dict.get("logger") == "uvicorn.access":
            event_dict["logger"] = "uvicorn.http"
        return event_dict


def get_logging_config(log_format: str | None = None, log_colors: bool | None = None):
    """Build a dictConfig for uvicorn that renders through structlog."""
    fmt = (log_format or os.getenv("LOG_FORMAT", "pretty")).lower()
    if log_colors is None:
        log_colors = os.getenv("LOG_COLORS", "true").lower() in (
            "true",
            "1",
            "yes",
            "on",
        )

    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=log_colors)

    uvicorn_level = get_uvicorn_log_level()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processor": renderer,
                "foreign_pre_chain": [
                    structlog.stdlib.add_logger_name,
                    structlog.stdlib.add_log_level,
                    RenameLoggerProcessor(),
                    structlog.stdlib.PositionalArgumentsFormatter(),
                    structlog.processors.TimeStamper(fmt="iso"),
                    structlog.processors.StackInfoRenderer(),
                    structlog.processors.UnicodeDecoder(),
                ],
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            name: {"handlers": ["default"], "level": uvicorn_level, "propagate": False}
            for name in ("uvicorn", "uvicorn.access", "uvicorn.error")
        },
    }
