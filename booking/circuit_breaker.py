"""Circuit breaker for outbound notification channels.

States:
- CLOSED: sends pass through
- OPEN: channel failing, sends are refused immediately
- HALF_OPEN: cool-down elapsed, one trial send is allowed
"""
import logging
import time
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when a call is refused because the circuit is open."""
    pass


class CircuitBreaker:
    """Counts consecutive failures of one channel and fails fast past a threshold."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 60,
        time_func: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            name: Channel name used in log lines
            failure_threshold: Consecutive failures before opening
            reset_timeout: Seconds to stay open before a trial call
            time_func: Monotonic time source
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._time = time_func
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self._state = CircuitState.CLOSED

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._cooldown_elapsed():
            return CircuitState.HALF_OPEN.value
        return self._state.value

    def _cooldown_elapsed(self) -> bool:
        return self.opened_at is not None and self._time() - self.opened_at >= self.reset_timeout

    def call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run ``func`` under the breaker.

        Raises:
            CircuitBreakerOpen: If the circuit is open
        """
        if self._state == CircuitState.OPEN:
            if not self._cooldown_elapsed():
                remaining = self.reset_timeout - (self._time() - self.opened_at)
                raise CircuitBreakerOpen(
                    f"{self.name} circuit is open. Retry after {remaining:.1f}s"
                )
            self._state = CircuitState.HALF_OPEN
            logger.info("%s circuit half-open, allowing trial call", self.name)

        try:
            result = func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            logger.info("%s circuit closed after successful trial call", self.name)
        self.failure_count = 0
        self.opened_at = None
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self.failure_count += 1

        if self._state == CircuitState.HALF_OPEN:
            self._open()
            logger.warning("%s circuit re-opened after failed trial call", self.name)
        elif self.failure_count >= self.failure_threshold and self._state == CircuitState.CLOSED:
            self._open()
            logger.error(
                "%s circuit opened after %d failures (reset in %ss)",
                self.name, self.failure_count, self.reset_timeout
            )

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self.opened_at = self._time()
