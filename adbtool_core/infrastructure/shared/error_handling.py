"""
Shared Error Handling Utilities - Centralized error reporting and logging.

The APK readers degrade every structural problem to "no data"; this module
gives those swallowed failures one consistent place to be logged and counted
instead of disappearing silently.
"""

import logging
import traceback
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Callable, TypeVar
from enum import Enum

T = TypeVar('T')


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for error handling."""
    operation: str
    component: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ErrorInfo:
    """Information about an error that occurred."""
    severity: ErrorSeverity
    message: str
    exception: Optional[Exception]
    context: ErrorContext
    stack_trace: Optional[str] = None

    def __post_init__(self):
        if self.exception is not None and not self.stack_trace:
            self.stack_trace = ''.join(traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            ))


class ErrorHandler(ABC):
    """Abstract base class for error handlers."""

    @abstractmethod
    def can_handle(self, error_info: ErrorInfo) -> bool:
        """Check if this handler can handle the given error."""
        pass

    @abstractmethod
    def handle(self, error_info: ErrorInfo) -> bool:
        """Handle the error. Return True if the error is fully dealt with."""
        pass


class LoggingErrorHandler(ErrorHandler):
    """Error handler that logs errors."""

    def __init__(self, logger_name: str = "error.handler"):
        self.logger = logging.getLogger(logger_name)

    def can_handle(self, error_info: ErrorInfo) -> bool:
        return True

    def handle(self, error_info: ErrorInfo) -> bool:
        """Log the error with appropriate severity."""
        log_message = f"[{error_info.context.component}] {error_info.context.operation}: {error_info.message}"

        if error_info.context.metadata:
            log_message += f" | Metadata: {error_info.context.metadata}"

        if error_info.severity == ErrorSeverity.DEBUG:
            self.logger.debug(log_message)
        elif error_info.severity == ErrorSeverity.INFO:
            self.logger.info(log_message)
        elif error_info.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        elif error_info.severity == ErrorSeverity.ERROR:
            self.logger.error(log_message, exc_info=error_info.exception)
        elif error_info.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(log_message, exc_info=error_info.exception)

        return True


class ErrorHandlingService:
    """
    Centralized service for error reporting across the core.

    Handlers are consulted in registration order until one reports success.
    No handler retries the failed operation; retry policy belongs to callers.
    """

    def __init__(self):
        self.handlers: List[ErrorHandler] = []
        self.error_stats: Dict[str, int] = {}
        self.logger = logging.getLogger("error.handling.service")

        self.add_handler(LoggingErrorHandler())

    def add_handler(self, handler: ErrorHandler) -> None:
        """Add an error handler to the service."""
        self.handlers.append(handler)

    def handle_error(self, error_info: ErrorInfo) -> bool:
        """
        Handle an error using registered handlers.

        Args:
            error_info: Information about the error

        Returns:
            True if a handler dealt with the error
        """
        error_key = f"{error_info.context.component}_{error_info.severity.value}"
        self.error_stats[error_key] = self.error_stats.get(error_key, 0) + 1

        for handler in self.handlers:
            if handler.can_handle(error_info):
                try:
                    if handler.handle(error_info):
                        return True
                except Exception as handler_error:
                    self.logger.error(f"Error handler {type(handler).__name__} failed: {handler_error}")

        return False

    def create_error_context(self, operation: str, component: str, **metadata) -> ErrorContext:
        """Create an error context for consistent error reporting."""
        return ErrorContext(
            operation=operation,
            component=component,
            metadata=metadata
        )

    def get_error_stats(self) -> Dict[str, int]:
        return self.error_stats.copy()

    def reset_error_stats(self) -> None:
        self.error_stats.clear()


# Global error handling service instance
_error_service = ErrorHandlingService()


def get_error_service() -> ErrorHandlingService:
    """Get the global error handling service."""
    return _error_service


def safe_execute(func: Callable[[], T],
                 default_value: T = None,
                 operation: str = "unknown_operation",
                 component: str = "unknown_component",
                 exceptions: tuple = (Exception,)) -> T:
    """
    Execute a function, reporting failures and returning a default instead.

    Args:
        func: Function to execute
        default_value: Value to return if function fails
        operation: Name of the operation for error context
        component: Name of the component for error context
        exceptions: Exception types to absorb; anything else propagates

    Returns:
        Function result or default value if error occurred
    """
    try:
        return func()
    except exceptions as e:
        context = _error_service.create_error_context(operation, component)
        _error_service.handle_error(ErrorInfo(
            severity=ErrorSeverity.WARNING,
            message=str(e),
            exception=e,
            context=context
        ))
        return default_value


def log_and_continue(message: str,
                     component: str = "unknown_component",
                     severity: ErrorSeverity = ErrorSeverity.WARNING,
                     **metadata) -> None:
    """Report a recoverable problem and continue execution."""
    context = _error_service.create_error_context("log_and_continue", component, **metadata)

    _error_service.handle_error(ErrorInfo(
        severity=severity,
        message=message,
        exception=None,
        context=context
    ))
