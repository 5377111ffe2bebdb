"""
Cross-cutting helpers: structlog setup and value coercion.
"""

from core.logging import LoggerMixin, configure_logging, get_logger, log_context
from core.utils import as_string_list, read_field, to_float_list

__all__ = [
    "LoggerMixin",
    "configure_logging",
    "get_logger",
    "log_context",
    "as_string_list",
    "read_field",
    "to_float_list",
]
