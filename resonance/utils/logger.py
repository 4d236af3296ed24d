"""Structured logging for the Resonance agent core using structlog.

Everything goes through stdlib logging so records from uvicorn, httpx and
watchdog share one renderer with ours. ``LOG_FORMAT`` picks pretty or JSON
output, ``LOG_COLORS`` toggles colours and ``LOG_LEVEL`` sets the root level.
"""

import logging
import os

import structlog
from structlog.types import FilteringBoundLogger, Processor

_TRUTHY = ("true", "1", "yes", "on")

# Applied to records from third-party stdlib loggers before rendering
_FOREIGN_PRE_CHAIN: list[Processor] = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]

_QUIET_LIBRARIES = ("httpx", "httpcore", "openai", "watchdog")


def _renderer() -> Processor:
    if os.getenv("LOG_FORMAT", "pretty").lower() == "json":
        return structlog.processors.JSONRenderer()
    colors = os.getenv("LOG_COLORS", "true").lower() in _TRUTHY
    return structlog.dev.ConsoleRenderer(colors=colors)


def configure_structlog() -> None:
    """Route structlog and stdlib logging through one ProcessorFormatter."""
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(), foreign_pre_chain=_FOREIGN_PRE_CHAIN
        )
    )
    logging.root.handlers = [handler]
    set_log_level(os.getenv("LOG_LEVEL", "INFO"))
    logging.captureWarnings(True)
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_FOREIGN_PRE_CHAIN,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def set_log_level(level: str) -> None:
    """Set the root level by name (``DEBUG``, ``info``...); unknown names mean INFO."""
    logging.root.setLevel(getattr(logging, str(level).upper(), logging.INFO))


def request_log(
    logger: FilteringBoundLogger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **kwargs,
):
    logger.info(
        f"{method} {path} - {status_code}",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        **kwargs,
    )


def stream_log(
    logger: FilteringBoundLogger, event_type: str, content: str | None = None, **kwargs
):
    """Log a thread event sent to an SSE client (content clipped to 300 chars)."""
    logger.debug(
        f"Thread Event: {event_type}",
        event_type=event_type,
        content=content[:300] if content else None,
        **kwargs,
    )


def get_logger(name: str, level: int = logging.INFO) -> FilteringBoundLogger:
    logging.getLogger(name).setLevel(level)
    return structlog.get_logger(name)


configure_structlog()

api_logger = get_logger("resonance.api", level=logging.DEBUG)
agent_logger = get_logger("resonance.agent", level=logging.DEBUG)
tool_logger = get_logger("resonance.tools", level=logging.DEBUG)
