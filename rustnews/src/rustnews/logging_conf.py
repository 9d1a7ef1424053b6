"""
Logging setup for rustnews.

Every rustnews event goes through structlog. Stdlib logging only carries the
output of the libraries underneath (httpx, APScheduler, SQLAlchemy, uvicorn),
which are kept at WARNING so a pass reads as a handful of events.
"""

import logging
import sys

import structlog
from structlog.types import Processor

QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "apscheduler",
    "sqlalchemy.engine",
    "uvicorn.access",
)


def _render_processors(json_output: bool) -> list[Processor]:
    if json_output:
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR)
        json_output: One JSON object per line instead of console output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout)
    logging.getLogger().setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            *_render_processors(json_output),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None) -> structlog.BoundLogger:
    """
    Get a logger tagged with `logger_name`.

    The logger is resolved on first use, so module-level loggers pick up
    whatever setup_logging configured later.
    """
    if name:
        return structlog.get_logger(logger_name=name)
    return structlog.get_logger()


def bind_context(**kwargs) -> None:
    """Attach fields (e.g. pass_id) to every event in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)
