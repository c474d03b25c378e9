#!/usr/bin/env python3
"""
Error Handling for the ServiceNow report processor
Error taxonomy plus the pluggable channel fatal errors are reported on
"""

import hashlib
import logging
from datetime import datetime, timezone
from enum import Enum
from functools import wraps
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels"""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
    FATAL = "fatal"


class ErrorCategory(Enum):
    """Error categories for classification"""

    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    NETWORK = "network"
    CONFIGURATION = "configuration"
    EXTERNAL_SERVICE = "external_service"
    UNKNOWN = "unknown"


class ApplicationError(Exception):
    """Base application error"""

    default_category = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        code: str = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = None,
        details: Dict = None,
    ):
        """
        Initialize application error

        Args:
            message: Error message
            code: Error code for identification
            severity: Error severity level
            category: Error category (defaults to the class category)
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.category = category or self.default_category
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.code = code or self._generate_error_code()

    def _generate_error_code(self) -> str:
        """Generate unique error code"""
        error_str = f"{self.category.value}_{self.message}_{self.timestamp}"
        return hashlib.sha256(error_str.encode()).hexdigest()[:8].upper()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization"""
        return {
            "error": {
                "code": self.code,
                "type": type(self).__name__,
                "message": self.message,
                "severity": self.severity.value,
                "category": self.category.value,
                "timestamp": self.timestamp.isoformat(),
                "details": self.details,
            }
        }


class ConfigError(ApplicationError):
    """Settings file missing/malformed, or a secret could not be decrypted"""

    default_category = ErrorCategory.CONFIGURATION


class RequestError(ApplicationError):
    """ServiceNow answered with a status code other than 200"""

    default_category = ErrorCategory.EXTERNAL_SERVICE

    def __init__(self, message: str, status_code: int = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.details.setdefault("status_code", status_code)


class TransportError(ApplicationError):
    """Network-level failure raised by the HTTP transport"""

    default_category = ErrorCategory.NETWORK


class ErrorReporter:
    """
    Error channel owned by the host.

    The processor hands every fatal error to ``report`` exactly once and does
    not raise it further. Tests substitute a reporter that re-raises.
    """

    def report(self, error: ApplicationError) -> None:
        raise NotImplementedError("Subclasses must implement report method")


class LoggingErrorReporter(ErrorReporter):
    """Default channel: log at the error's severity and remember what was reported"""

    def __init__(self, target_logger=None):
        self.logger = target_logger or logger
        self.errors: List[ApplicationError] = []

    def report(self, error: ApplicationError) -> None:
        self.errors.append(error)
        log_message = f"[{error.code}] {error.message}"

        if error.severity == ErrorSeverity.DEBUG:
            self.logger.debug(log_message)
        elif error.severity == ErrorSeverity.INFO:
            self.logger.info(log_message)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        elif error.severity == ErrorSeverity.ERROR:
            self.logger.error(log_message)
        else:
            self.logger.critical(log_message)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def last_error(self) -> Optional[ApplicationError]:
        return self.errors[-1] if self.errors else None


def handle_errors(
    error_class=ApplicationError,
    severity: ErrorSeverity = ErrorSeverity.ERROR,
    catch=(Exception,),
):
    """
    Decorator converting unexpected exceptions into ``error_class``.

    ApplicationError subclasses pass through untouched; anything listed in
    ``catch`` is wrapped and chained so the original stays on ``__cause__``.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ApplicationError:
                raise
            except catch as e:
                raise error_class(f"{func.__name__} failed: {e}", severity=severity) from e

        return wrapper

    return decorator
