"""
Core middleware package.

- Exception handlers mapping engine errors to the JSON error envelope
- Structured logging with request id tracking
"""

from core.middleware.error_handling import (
    sanitize_error_message,
    setup_error_handlers,
)
from core.middleware.logging import (
    StructuredFormatter,
    StructuredLoggingMiddleware,
    setup_logging,
)

__all__ = [
    # Error handling
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredFormatter",
    "StructuredLoggingMiddleware",
    "setup_logging",
]
