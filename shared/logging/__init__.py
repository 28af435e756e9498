"""Structured logging module using structlog."""

from .structured_logger import bind_context, configure_logging, get_logger, unbind_context

__all__ = ["get_logger", "configure_logging", "bind_context", "unbind_context"]
