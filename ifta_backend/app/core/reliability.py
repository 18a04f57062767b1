"""
Reliability Utilities.

Circuit Breaker guarding calls to the routing provider. It never retries;
it only stops hammering a provider that keeps failing.
"""

import time
import logging
from typing import Callable, Any, Tuple, Type

logger = logging.getLogger("ifta.reliability")


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Consecutive-failure Circuit Breaker.
    After 'failure_threshold' consecutive counted failures the circuit opens
    and rejects calls for 'reset_timeout' seconds, then lets one trial call
    through (HALF_OPEN).

    Only exceptions listed in 'counted_exceptions' trip the breaker; anything
    else propagates without touching the failure count.
    """
    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 60,
        counted_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
        name: str = "circuit",
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.counted_exceptions = counted_exceptions
        self.name = name
        self.failures = 0
        self.last_failure_time = 0.0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.monotonic() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError(f"Circuit '{self.name}' is OPEN")

        try:
            result = await func(*args, **kwargs)
        except self.counted_exceptions:
            self.record_failure()
            raise
        self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.monotonic()
        if self.state == "HALF_OPEN" or self.failures >= self.failure_threshold:
            if self.state != "OPEN":
                logger.warning("Circuit '%s' opened after %d failures", self.name, self.failures)
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"
