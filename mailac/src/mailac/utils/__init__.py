"""Shared helpers: structured logging and MIME header-block access."""

from .logging import JsonLogger, get_logger

__all__ = ["JsonLogger", "get_logger"]
