"""Core modules for the ServiceNow report processor."""

from .error_handler import (
    ApplicationError,
    ConfigError,
    ErrorReporter,
    LoggingErrorReporter,
    RequestError,
    TransportError,
)

__all__ = [
    "ApplicationError",
    "ConfigError",
    "ErrorReporter",
    "LoggingErrorReporter",
    "RequestError",
    "TransportError",
]
