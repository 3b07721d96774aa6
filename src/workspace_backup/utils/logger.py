"""
Centralized logging configuration for workspace backup and restore.

This module provides console and rotating file handlers plus two
structured helpers: one for remote transport calls and one for
tracking progress through the phases of an export or import.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


def setup_logger(
    name: str = "workspace_backup",
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_max_size: int = 10485760,  # 10MB
    log_backup_count: int = 5,
    verbose: bool = False,
    debug: bool = False
) -> logging.Logger:
    """
    Set up a logger with console output and optional file rotation.

    Args:
        name: Logger name
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Log file path (optional)
        log_max_size: Maximum log file size in bytes
        log_backup_count: Number of rotated log files to keep
        verbose: Use the detailed formatter on the console
        debug: Enable debug mode (overrides log_level)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.handlers.clear()

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(level)

    detailed_formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    simple_formatter = logging.Formatter(
        fmt='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    if verbose or debug:
        console_handler.setFormatter(detailed_formatter)
        console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    else:
        console_handler.setFormatter(simple_formatter)
        console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=log_max_size,
            backupCount=log_backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(detailed_formatter)
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    # Prevent duplicate logs from parent loggers
    logger.propagate = False

    return logger


def get_logger(name: str = "workspace_backup") -> logging.Logger:
    """
    Get an existing logger or configure a basic one.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger = setup_logger(name)
    return logger


class TransportLogger:
    """
    Structured logging for remote storage calls.

    Every record carries an ``event_type`` plus the call details in
    ``extra`` so file logs can be filtered per backend operation.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, backend: str = "remote"):
        """
        Initialize transport logger.

        Args:
            logger: Logger instance (creates default if None)
            backend: Backend name included in every record
        """
        self.logger = logger or get_logger("workspace_backup.transport")
        self.backend = backend

    def log_request(self, method: str, target: str, **kwargs) -> None:
        self.logger.debug(
            f"{self.backend} request: {method} {target}",
            extra={
                "event_type": "transport_request",
                "backend": self.backend,
                "method": method,
                "target": target,
                "timestamp": _now().isoformat(),
                **kwargs
            }
        )

    def log_response(self, method: str, target: str, status_code: Optional[int],
                     response_time: float, **kwargs) -> None:
        """
        Log a backend response.

        Args:
            method: HTTP method or backend operation
            target: Endpoint, path or object key
            status_code: HTTP-equivalent status (None for network failures)
            response_time: Response time in seconds
            **kwargs: Additional response data
        """
        failed = status_code is None or status_code >= 400
        level = logging.WARNING if failed else logging.INFO

        self.logger.log(
            level,
            f"{self.backend} response: {method} {target} - "
            f"{status_code if status_code is not None else 'no response'} "
            f"({response_time:.2f}s)",
            extra={
                "event_type": "transport_response",
                "backend": self.backend,
                "method": method,
                "target": target,
                "status_code": status_code,
                "response_time": response_time,
                "timestamp": _now().isoformat(),
                **kwargs
            }
        )

    def log_retry(self, attempt: int, max_attempts: int, delay: float,
                  error: str, **kwargs) -> None:
        self.logger.warning(
            f"Retry {attempt}/{max_attempts} after {delay:.2f}s: {error}",
            extra={
                "event_type": "retry",
                "backend": self.backend,
                "attempt": attempt,
                "max_attempts": max_attempts,
                "delay": delay,
                "error": error,
                "timestamp": _now().isoformat(),
                **kwargs
            }
        )

    def log_error(self, error: Exception, context: str = "", **kwargs) -> None:
        self.logger.error(
            f"Error {context}: {error}",
            extra={
                "event_type": "error",
                "backend": self.backend,
                "error_type": type(error).__name__,
                "error_message": str(error),
                "context": context,
                "timestamp": _now().isoformat(),
                **kwargs
            }
        )


class ProgressLogger:
    """
    Logger for tracking operation progress.

    Used by the managers to report each phase of an export or a restore.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger("workspace_backup.progress")
        self.start_time: Optional[datetime] = None

    def start_operation(self, operation: str, total_items: Optional[int] = None) -> None:
        """
        Log the start of an operation.

        Args:
            operation: Operation name
            total_items: Total number of items to process (optional)
        """
        self.start_time = _now()

        message = f"Starting {operation}"
        if total_items:
            message += f" ({total_items} items)"

        self.logger.info(
            message,
            extra={
                "event_type": "operation_start",
                "operation": operation,
                "total_items": total_items,
                "start_time": self.start_time.isoformat(),
            }
        )

    def log_progress(self, operation: str, completed: int, total: int,
                     current_item: str = "") -> None:
        percentage = (completed / total) * 100 if total > 0 else 0

        message = f"{operation}: {completed}/{total} ({percentage:.1f}%)"
        if current_item:
            message += f" - {current_item}"

        self.logger.debug(
            message,
            extra={
                "event_type": "progress",
                "operation": operation,
                "completed": completed,
                "total": total,
                "percentage": percentage,
                "current_item": current_item,
            }
        )

    def complete_operation(self, operation: str, total_items: int,
                           success_count: int, error_count: int = 0) -> None:
        """
        Log operation completion.

        Args:
            operation: Operation name
            total_items: Total number of items processed
            success_count: Number of successful items
            error_count: Number of failed items
        """
        duration = None
        if self.start_time:
            duration = (_now() - self.start_time).total_seconds()

        message = f"Completed {operation}: {success_count}/{total_items} successful"
        if error_count > 0:
            message += f", {error_count} errors"
        if duration is not None:
            message += f" (took {duration:.2f}s)"

        level = logging.INFO if error_count == 0 else logging.WARNING

        self.logger.log(
            level,
            message,
            extra={
                "event_type": "operation_complete",
                "operation": operation,
                "total_items": total_items,
                "success_count": success_count,
                "error_count": error_count,
                "duration": duration,
            }
        )
