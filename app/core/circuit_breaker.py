"""
Cache-backed circuit breaker for outbound HTTP boundaries.

State lives in the Django cache (django-redis in production) so every web
and Celery worker sees the same breaker. After ``failure_threshold``
consecutive failures the breaker opens and calls fail fast with
CircuitOpenError; after ``recovery_timeout`` seconds one probe call is let
through (half-open) and its outcome closes or re-opens the breaker.

Usage:
    carrier_circuit = CircuitBreaker("shipbubble", failure_threshold=5, recovery_timeout=120)

    with carrier_circuit.call():
        response = client.post(...)
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING

from django.core.cache import cache

from core.exceptions import ExternalServiceError

if TYPE_CHECKING:
    from collections.abc import Generator

logger = logging.getLogger(__name__)

CACHE_TTL = 3600


class CircuitOpenError(ExternalServiceError):
    """Raised instead of calling a service whose breaker is open."""

    default_error_code = "CIRCUIT_OPEN"


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    def __init__(self, name: str, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state_key = f"circuit:{name}:state"
        self._failures_key = f"circuit:{name}:failures"
        self._opened_at_key = f"circuit:{name}:opened_at"

    @property
    def state(self) -> CircuitState:
        try:
            return CircuitState(cache.get(self._state_key, CircuitState.CLOSED.value))
        except ValueError:
            return CircuitState.CLOSED

    def is_available(self) -> bool:
        """
        Whether a call may go through now.

        Moving OPEN -> HALF_OPEN uses cache.add so only one worker wins the
        probe.
        """
        state = self.state
        if state == CircuitState.CLOSED:
            return True

        opened_at = cache.get(self._opened_at_key) or 0
        if time.time() - opened_at < self.recovery_timeout:
            return False

        if cache.add(f"circuit:{self.name}:probe", 1, timeout=self.recovery_timeout):
            cache.set(self._state_key, CircuitState.HALF_OPEN.value, timeout=CACHE_TTL)
            logger.info("Circuit breaker half-open, probing", extra={"circuit": self.name})
            return True
        return False

    def record_success(self) -> None:
        if self.state != CircuitState.CLOSED:
            logger.info("Circuit breaker closed", extra={"circuit": self.name})
        self.reset()

    def record_failure(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self._open(self.failure_threshold)
            return

        try:
            failures = cache.incr(self._failures_key)
        except ValueError:
            cache.set(self._failures_key, 1, timeout=CACHE_TTL)
            failures = 1

        if failures >= self.failure_threshold:
            self._open(failures)

    @contextmanager
    def call(self) -> Generator[None, None, None]:
        """Run a block under the breaker, recording its outcome."""
        if not self.is_available():
            raise CircuitOpenError(
                f"Circuit '{self.name}' is open",
                details={"circuit": self.name, "retry_after_seconds": self.recovery_timeout},
            )
        try:
            yield
        except Exception:
            self.record_failure()
            raise
        self.record_success()

    def reset(self) -> None:
        cache.delete_many(
            [self._state_key, self._failures_key, self._opened_at_key, f"circuit:{self.name}:probe"]
        )

    def _open(self, failures: int) -> None:
        cache.set(self._state_key, CircuitState.OPEN.value, timeout=CACHE_TTL)
        cache.set(self._opened_at_key, time.time(), timeout=CACHE_TTL)
        cache.delete(f"circuit:{self.name}:probe")
        logger.warning(
            f"Circuit breaker opened after {failures} failures",
            extra={"circuit": self.name, "failure_count": failures},
        )
