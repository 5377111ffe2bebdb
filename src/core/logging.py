"""
Structured logging for the retrieval layer, built on structlog.

Console output in development, one JSON object per line in production.
Every event is key-value:

    logger = get_logger(__name__)
    logger.info("Stored product embedding", product_id="p1", backend="chroma")
    logger.info("Query served", source="fallback", reason="primary_empty")

Raw embedding vectors never reach the output: any float list longer than
MAX_LOGGED_VECTOR_LENGTH is replaced by a short summary.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# SDK loggers that are chatty at INFO
NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "chromadb",
    "sentence_transformers",
    "pinecone",
    "openai",
)

MAX_LOGGED_VECTOR_LENGTH = 8


def summarize_vectors(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace long float lists (embeddings) with '<vector dim=N>'."""
    for key, value in event_dict.items():
        if (
            isinstance(value, (list, tuple))
            and len(value) > MAX_LOGGED_VECTOR_LENGTH
            and all(isinstance(v, float) for v in value)
        ):
            event_dict[key] = f"<vector dim={len(value)}>"
    return event_dict


def configure_logging(
    json_logs: bool = False,
    log_level: str = "INFO",
    include_timestamp: bool = True,
) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        json_logs: JSON lines (production) instead of colored console output
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_timestamp: Prefix events with an ISO timestamp
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        summarize_vectors,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if include_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        ))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging_from_settings(settings: Any) -> None:
    """Configure logging from a Settings instance (json_logs, log_level)."""
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach key-values to every subsequent event in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """
    Bind key-values for the duration of a block, e.g. one indexing run.

    Usage:
        with log_context(backend="chroma", run_id="abc"):
            logger.info("Indexed product", product_id="p1")  # carries backend, run_id
    """
    bind_context(**kwargs)
    try:
        yield
    finally:
        unbind_context(*kwargs)


class LoggerMixin:
    """Gives a class a `logger` named after the class."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        return get_logger(self.__class__.__name__)
