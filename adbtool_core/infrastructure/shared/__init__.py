"""
Shared infrastructure utilities.
"""

from .error_handling import (
    ErrorSeverity,
    ErrorContext,
    ErrorInfo,
    ErrorHandler,
    LoggingErrorHandler,
    ErrorHandlingService,
    get_error_service,
    safe_execute,
    log_and_continue
)

__all__ = [
    'ErrorSeverity',
    'ErrorContext',
    'ErrorInfo',
    'ErrorHandler',
    'LoggingErrorHandler',
    'ErrorHandlingService',
    'get_error_service',
    'safe_execute',
    'log_and_continue'
]
