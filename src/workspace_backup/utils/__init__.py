"""
Utility modules for workspace backup and restore operations.

This package contains shared utilities: logging setup and the retrying
transport used by remote storage adapters.
"""

from .logger import setup_logger, get_logger, TransportLogger, ProgressLogger
from .transport import RetryingTransport, CircuitBreaker, CircuitBreakerOpen

__all__ = [
    "setup_logger",
    "get_logger",
    "TransportLogger",
    "ProgressLogger",
    "RetryingTransport",
    "CircuitBreaker",
    "CircuitBreakerOpen",
]
