"""
Retrying transport wrapper for remote storage adapters.

Remote adapters funnel every backend call through ``RetryingTransport``,
which adds exponential backoff with jitter and a circuit breaker. Calls
raise the adapter error taxonomy; only transient ``TransportError``s are
retried.
"""

import logging
import random
import time
from typing import Callable, Optional, TypeVar

from .logger import TransportLogger
from ..exceptions import TransportError

T = TypeVar('T')

# Client errors that will not change on retry
NON_RETRYABLE_STATUSES = {400, 401, 403, 404, 409, 422}


class CircuitBreakerOpen(TransportError):
    """Raised when the circuit breaker is open and calls are refused."""

    def __init__(self, timeout: float):
        super().__init__(
            f"Circuit breaker is open; backend calls suspended for up to {timeout}s"
        )


class CircuitBreaker:
    """
    Circuit breaker for backend calls.

    Opens after ``failure_threshold`` consecutive transport failures and
    lets a single trial call through once ``timeout`` seconds have passed.
    """

    def __init__(self, failure_threshold: int = 5, timeout: int = 60):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            timeout: Time to wait before attempting to close circuit (seconds)
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self.state = "closed"  # closed, open, half-open

    def call(self, func: Callable[[], T]) -> T:
        """
        Execute function with circuit breaker protection.

        Raises:
            CircuitBreakerOpen: If circuit is open
        """
        if self.state == "open":
            if self._should_attempt_reset():
                self.state = "half-open"
            else:
                raise CircuitBreakerOpen(self.timeout)

        try:
            result = func()
        except TransportError:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _should_attempt_reset(self) -> bool:
        if self.last_failure_time is None:
            return True
        return time.time() - self.last_failure_time >= self.timeout

    def _on_success(self) -> None:
        self.failure_count = 0
        self.state = "closed"

    def _on_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.failure_count >= self.failure_threshold:
            self.state = "open"


def is_retryable(error: Exception) -> bool:
    """Whether a failed backend call is worth retrying."""
    if isinstance(error, CircuitBreakerOpen):
        return False
    if not isinstance(error, TransportError):
        return False
    return error.status is None or error.status not in NON_RETRYABLE_STATUSES


class RetryingTransport:
    """
    Executes backend calls with retries, backoff and a circuit breaker.
    """

    def __init__(
        self,
        backend: str,
        max_retries: int = 3,
        retry_backoff_factor: float = 2.0,
        retry_max_delay: int = 60,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_timeout: int = 60,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize transport.

        Args:
            backend: Backend name used in log records
            max_retries: Maximum number of retry attempts
            retry_backoff_factor: Exponential backoff factor
            retry_max_delay: Maximum retry delay in seconds
            circuit_breaker_threshold: Circuit breaker failure threshold
            circuit_breaker_timeout: Circuit breaker timeout in seconds
            logger: Logger instance
            sleep: Sleep function (replaced in tests)
        """
        self.backend = backend
        self.max_retries = max_retries
        self.retry_backoff_factor = retry_backoff_factor
        self.retry_max_delay = retry_max_delay
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=circuit_breaker_threshold,
            timeout=circuit_breaker_timeout
        )
        self.transport_logger = TransportLogger(logger, backend=backend)
        self._sleep = sleep
        self._request_count = 0
        self._error_count = 0

    def call(self, func: Callable[[], T], operation: str = "") -> T:
        """
        Execute a backend call, retrying transient transport failures.

        Args:
            func: Function that performs the call
            operation: Description of the operation for logging

        Returns:
            Result of ``func``

        Raises:
            The last error once retries are exhausted, or immediately for
            non-retryable errors.
        """
        for attempt in range(self.max_retries + 1):
            self._request_count += 1
            self.transport_logger.log_request("CALL", operation, attempt=attempt + 1)
            start_time = time.time()
            try:
                result = self.circuit_breaker.call(func)
            except Exception as e:
                self._error_count += 1
                self.transport_logger.log_response(
                    "CALL", operation,
                    status_code=getattr(e, "status", None),
                    response_time=time.time() - start_time,
                    error=str(e)
                )

                if not is_retryable(e):
                    self.transport_logger.log_error(e, f"non-retryable failure in {operation}")
                    raise

                if attempt >= self.max_retries:
                    self.transport_logger.log_error(e, f"max retries exceeded for {operation}")
                    raise

                delay = min(
                    self.retry_max_delay,
                    (self.retry_backoff_factor ** attempt) + random.uniform(0, 1)
                )
                self.transport_logger.log_retry(
                    attempt=attempt + 1,
                    max_attempts=self.max_retries + 1,
                    delay=delay,
                    error=str(e),
                    operation=operation
                )
                self._sleep(delay)
            else:
                self.transport_logger.log_response(
                    "CALL", operation,
                    status_code=200,
                    response_time=time.time() - start_time
                )
                return result

        raise RuntimeError(f"All retry attempts failed for {operation}")

    def get_stats(self) -> dict:
        return {
            "backend": self.backend,
            "total_requests": self._request_count,
            "total_errors": self._error_count,
            "error_rate": self._error_count / max(1, self._request_count),
            "circuit_breaker_state": self.circuit_breaker.state,
            "circuit_breaker_failures": self.circuit_breaker.failure_count,
        }

    def reset_stats(self) -> None:
        self._request_count = 0
        self._error_count = 0
        self.circuit_breaker.failure_count = 0
        self.circuit_breaker.state = "closed"
