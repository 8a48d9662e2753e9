"""Middleware components for request processing.

This module provides middleware for cross-cutting concerns like request
correlation ID tracking and error-to-JSON translation.
"""

from .correlation_id import CORRELATION_ID_KEY, correlation_id_middleware, get_request_id
from .error_handler import error_middleware

__all__ = [
    "CORRELATION_ID_KEY",
    "correlation_id_middleware",
    "error_middleware",
    "get_request_id",
]
