"""Circuit breaker guarding calls to the remote sync backend."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

from ..utils.logging_config import get_logger

logger = get_logger("sync")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Requests fail fast
    HALF_OPEN = "half_open"  # Probing for recovery


class CircuitOpenError(Exception):
    """Raised instead of calling the remote while the circuit is open."""

    pass


class CircuitBreaker:
    """
    Fails fast while the remote backend is unhealthy.

    States:
    - CLOSED: requests pass through, failures are counted
    - OPEN: requests fail immediately until ``timeout_seconds`` elapse
    - HALF_OPEN: requests pass; ``success_threshold`` successes close the
      circuit and any failure reopens it
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        success_threshold: int = 2,
        timeout_seconds: float = 60,
        reset_timeout_seconds: float = 300,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening the circuit
            success_threshold: Successes needed to close from half-open
            timeout_seconds: How long the circuit stays open
            reset_timeout_seconds: Quiet period after which failures are forgotten
            clock: Source of aware UTC datetimes
        """
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.timeout_seconds = timeout_seconds
        self.reset_timeout_seconds = reset_timeout_seconds
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[datetime] = None

    def call(self, func: Callable[[], Any]) -> Any:
        """
        Call ``func`` under circuit breaker protection.

        Raises:
            CircuitOpenError: If the circuit is open
            Exception: Anything ``func`` raises, after it is counted as a failure
        """
        now = self._clock()
        self._update_state(now)

        if self.state == CircuitState.OPEN:
            logger.warning("Circuit breaker is OPEN - failing fast")
            raise CircuitOpenError("Circuit breaker is open")

        try:
            result = func()
        except Exception as e:
            self._on_failure(now, e)
            raise

        self._on_success()
        return result

    def _update_state(self, now: datetime) -> None:
        if self.last_failure_time is None:
            return

        elapsed = now - self.last_failure_time
        if self.state == CircuitState.OPEN and elapsed >= timedelta(seconds=self.timeout_seconds):
            logger.info("Circuit breaker transitioning from OPEN to HALF_OPEN")
            self.state = CircuitState.HALF_OPEN
            self.success_count = 0
        elif (
            self.state == CircuitState.CLOSED
            and self.failure_count > 0
            and elapsed >= timedelta(seconds=self.reset_timeout_seconds)
        ):
            self.failure_count = 0

    def _on_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                logger.info("Circuit breaker transitioning from HALF_OPEN to CLOSED")
                self.state = CircuitState.CLOSED
                self.failure_count = 0
                self.success_count = 0
        else:
            self.failure_count = 0

    def _on_failure(self, now: datetime, exception: Exception) -> None:
        self.last_failure_time = now
        self.failure_count += 1

        if self.state == CircuitState.HALF_OPEN:
            logger.warning(f"Circuit breaker failure in HALF_OPEN - returning to OPEN: {exception}")
            self.state = CircuitState.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.error(f"Circuit breaker opening after {self.failure_count} failures")
            self.state = CircuitState.OPEN
        else:
            logger.warning(
                f"Circuit breaker failure {self.failure_count}/{self.failure_threshold}: {exception}"
            )

    def get_stats(self) -> dict:
        """Current breaker state for status endpoints."""
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self.last_failure_time.isoformat() if self.last_failure_time else None,
        }

    def reset(self) -> None:
        """Manually close the circuit."""
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time = None
