#!/usr/bin/env python3
"""
Unified Logger Module for the ServiceNow report processor
Provides a consistent, configurable logging interface with sensitive data masking
"""

import atexit
import logging
import logging.handlers
import os
import re
import sys
from typing import Any, Dict

from servicenow_reporting.config.constants import FILE_LIMITS, get_path


class SensitiveDataMasker:
    """민감정보 마스킹 클래스"""

    # 민감정보 패턴들 (순서 유지: eyaml 블록이 가장 먼저)
    SENSITIVE_PATTERNS = {
        "eyaml": re.compile(r"ENC\[[^\]]*\]?", re.DOTALL),
        "bearer_token": re.compile(r"(?i)Bearer\s+([a-zA-Z0-9_.~+/=-]{8,})"),
        "password": re.compile(r'(?i)(password|passwd|pwd)\s*[=:]\s*["\']?([^"\'\s,}]+)["\']?'),
        "oauth_token": re.compile(r'(?i)(oauth_token|api[_-]?key|token)\s*[=:]\s*["\']?([^"\'\s,}]+)["\']?'),
    }

    REPLACEMENTS = {
        "eyaml": "ENC[***MASKED***]",
        "bearer_token": "Bearer ***TOKEN_MASKED***",
        "password": r"\1=***PASSWORD_MASKED***",
        "oauth_token": r"\1=***TOKEN_MASKED***",
    }

    @classmethod
    def mask_sensitive_data(cls, message: str) -> str:
        """민감정보를 마스킹 처리"""
        if not isinstance(message, str):
            message = str(message)

        masked_message = message
        for pattern_name, pattern in cls.SENSITIVE_PATTERNS.items():
            masked_message = pattern.sub(cls.REPLACEMENTS[pattern_name], masked_message)

        return masked_message


class SensitiveDataFilter(logging.Filter):
    """Masks credentials in every record before any handler formats it"""

    def filter(self, record: logging.LogRecord) -> bool:
        original = record.getMessage()
        masked = SensitiveDataMasker.mask_sensitive_data(original)
        if masked != original:
            record.msg = masked
            record.args = None
        return True


class SafeStreamHandler(logging.StreamHandler):
    """Custom stream handler that gracefully handles BrokenPipeError"""

    def emit(self, record):
        """Emit log record with BrokenPipeError handling"""
        try:
            msg = self.format(record)
            stream = self.stream
            stream.write(msg + self.terminator)
            self.flush()
        except BrokenPipeError:
            # Output piped to head/tail and closed early
            pass
        except Exception:
            self.handleError(record)


class LoggerStrategy:
    """Base class for logger strategies"""

    def __init__(self, name: str, log_dir: str = None):
        self.name = name
        self.log_dir = log_dir or get_path("LOG_DIR")

    def setup(self, logger: logging.Logger) -> None:
        """Setup the logger with appropriate handlers"""
        raise NotImplementedError("Subclasses must implement setup method")


class BasicLoggerStrategy(LoggerStrategy):
    """Console output, plus a rotating file when a log directory is configured"""

    def setup(self, logger: logging.Logger) -> None:
        # Clear existing handlers to prevent duplicates
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        # No handler-level threshold: the logger level (LOG_LEVEL, --log-level) decides
        console_handler = SafeStreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if not self.log_dir:
            return

        log_file = os.path.join(self.log_dir, f"{self.name}.log")
        try:
            os.makedirs(self.log_dir, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=FILE_LIMITS["LOG_MAX_SIZE"],
                backupCount=FILE_LIMITS["LOG_BACKUP_COUNT"],
                encoding="utf-8",
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
            os.chmod(log_file, 0o640)
        except OSError as e:
            logger.warning(f"Log file setup failed (console logging still active): {str(e)}")


# Singleton registry to manage logger instances
class LoggerRegistry:
    """Singleton registry for managing logger instances"""

    _instance = None
    _loggers = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(LoggerRegistry, cls).__new__(cls)
            atexit.register(cls._instance.cleanup)
        return cls._instance

    def get_logger(self, name: str, log_dir: str = None, log_level: str = None) -> "UnifiedLogger":
        """Get or create a logger instance"""
        if name not in self._loggers:
            self._loggers[name] = UnifiedLogger(name, log_dir, log_level)
        return self._loggers[name]

    def set_level(self, log_level: str):
        for logger in self._loggers.values():
            logger.set_level(log_level)

    def cleanup(self):
        """Flush and close handlers on exit"""
        for logger in list(self._loggers.values()):
            for handler in logger.logger.handlers[:]:
                try:
                    handler.flush()
                    handler.close()
                except (BrokenPipeError, OSError, ValueError):
                    # Stream already closed during interpreter shutdown
                    pass
                logger.logger.removeHandler(handler)

        self._loggers.clear()


class UnifiedLogger:
    """Unified logger wrapping a stdlib logger"""

    def __init__(self, name: str, log_dir: str = None, log_level: str = None):
        """
        Initialize a new logger instance

        Args:
            name (str): Logger name
            log_dir (str, optional): Directory to store log files
            log_level (str, optional): Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        """
        self.name = name
        self.logger = logging.getLogger(name)
        self.set_level(log_level or os.environ.get("LOG_LEVEL", "INFO"))

        self.strategy = BasicLoggerStrategy(name, log_dir)
        self.strategy.setup(self.logger)
        self.logger.addFilter(SensitiveDataFilter())

        # Bind standard logging methods
        self.debug = self.logger.debug
        self.info = self.logger.info
        self.warning = self.logger.warning
        self.error = self.logger.error
        self.critical = self.logger.critical

    def set_level(self, log_level: str):
        level = getattr(logging, str(log_level).upper(), logging.INFO)
        self.logger.setLevel(level)

    def log_api_request(self, method: str, url: str, data: Any = None, headers: Dict = None):
        """Log an API request"""
        extra = {
            "api_request": {
                "method": method,
                "url": url,
                "data": data,
                "headers": self._sanitize_headers(headers),
            }
        }
        self.logger.info(f"API Request: {method} {url}", extra=extra)

    def log_api_response(self, status_code: int, response_data: Any = None, error: Any = None):
        """Log an API response"""
        extra = {
            "api_response": {
                "status_code": status_code,
                "data": response_data,
                "error": str(error) if error else None,
            }
        }

        if error or (status_code >= 400):
            self.logger.error(f"API Response Error: {status_code}", extra=extra)
        else:
            self.logger.info(f"API Response: {status_code}", extra=extra)

    def _sanitize_headers(self, headers: Dict) -> Dict:
        """Sanitize headers to remove sensitive information"""
        if not headers:
            return {}

        sanitized = headers.copy()
        sensitive_keys = ["Authorization", "token", "password", "secret"]

        for key in sanitized:
            for sensitive_key in sensitive_keys:
                if sensitive_key.lower() in key.lower():
                    sanitized[key] = "********"

        return sanitized


def get_logger(name: str, log_dir: str = None, log_level: str = None) -> UnifiedLogger:
    """Get a logger instance"""
    return LoggerRegistry().get_logger(name, log_dir, log_level)


def set_log_level(log_level: str) -> None:
    """Apply a level to every logger created so far (CLI --log-level)"""
    LoggerRegistry().set_level(log_level)
