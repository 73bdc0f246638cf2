"""
Circuit breaker and timeout helpers for store operations.
Decides when a failing primary store should be bypassed.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, TypeVar

from common.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CLOSED = "closed"
OPEN = "open"
HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker pattern implementation for database operations.
    Stops sending requests to a backend after ``failure_threshold`` consecutive
    failures and lets a single trial call through once ``timeout`` seconds passed.
    While that call is in flight every other caller is refused.
    """
    def __init__(self, failure_threshold: int = 5, timeout: int = 60, name: str = "store"):
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.name = name
        self.failures = 0
        self.last_failure_time = None
        self.state = CLOSED
        self.trial_in_flight = False

    def record_success(self):
        """Record a successful operation."""
        if self.state != CLOSED:
            logger.info(f"Circuit breaker for {self.name} closed again")
        self.failures = 0
        self.state = CLOSED
        self.trial_in_flight = False

    def record_failure(self):
        """Record a failed operation."""
        self.failures += 1
        self.last_failure_time = datetime.now()
        self.trial_in_flight = False

        if self.state == HALF_OPEN or self.failures >= self.failure_threshold:
            if self.state != OPEN:
                logger.error(f"Circuit breaker for {self.name} opened after {self.failures} failures")
            self.state = OPEN

    def release_trial(self):
        """The trial call ended without telling anything about the backend's health."""
        self.trial_in_flight = False

    def can_execute(self) -> bool:
        """Check if operation can be executed."""
        if self.state == CLOSED:
            return True

        if self.state == OPEN:
            # Check if timeout has passed
            if self.last_failure_time and \
               datetime.now() - self.last_failure_time > timedelta(seconds=self.timeout):
                self.state = HALF_OPEN
                logger.info(f"Circuit breaker for {self.name} entering half-open state")
            else:
                return False

        # half_open state - one trial call at a time
        if self.trial_in_flight:
            return False
        self.trial_in_flight = True
        return True


async def with_timeout(awaitable: Awaitable[T], timeout_seconds: float, operation: str = "store operation") -> T:
    """
    Await a store operation with a deadline.
    A timeout is reported as StoreUnavailableError so callers treat it like
    any other transport failure.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.error(f"{operation} timed out after {timeout_seconds}s")
        raise StoreUnavailableError(f"{operation} timed out")
