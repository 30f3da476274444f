"""Logging and metrics for buildshare."""

from .logging import configure_logging, get_logger, request_id_ctx

__all__ = ["configure_logging", "get_logger", "request_id_ctx"]
