"""
Circuit breaker and exponential backoff for intake sends.

The breaker stops the transport from hammering an intake that is known to
be down: while open, sends fail immediately and their batches go straight
to the retry store.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Sends flow through
    OPEN = "open"  # Sends fail fast
    HALF_OPEN = "half_open"  # Probing whether the intake recovered


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""

    failure_threshold: int = 5  # Consecutive failed sends before opening
    reset_timeout: float = 60.0  # Seconds open before probing again
    half_open_max_calls: int = 1  # Probe sends allowed while half-open


@dataclass
class BackoffConfig:
    """Configuration for the delay between attempts of a single send."""

    initial_delay: float = 0.5
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: float = 0.1  # Fraction of the delay added or removed at random


class CircuitBreaker:
    """
    Thread-safe circuit breaker.

    States:
        CLOSED: every send is attempted
        OPEN: sends are refused until reset_timeout has elapsed
        HALF_OPEN: a limited number of probe sends decide whether to close again
    """

    def __init__(self, config: CircuitBreakerConfig | None = None, name: str = "intake"):
        self.config = config or CircuitBreakerConfig()
        self.name = name
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._half_open_calls = 0
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._refresh()
            return self._state

    def _refresh(self):
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if time.monotonic() - self._opened_at >= self.config.reset_timeout:
                self._transition_to(CircuitState.HALF_OPEN)

    def _transition_to(self, new_state: CircuitState):
        old_state = self._state
        if old_state == new_state:
            return

        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
        elif new_state == CircuitState.HALF_OPEN:
            self._half_open_calls = 0
        else:
            self._opened_at = None
        logger.info(f"Circuit breaker '{self.name}' transitioned: {old_state.value} -> {new_state.value}")

    def allow_request(self) -> bool:
        """Check whether a send may go out now."""
        with self._lock:
            self._refresh()
            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.OPEN:
                return False
            if self._half_open_calls < self.config.half_open_max_calls:
                self._half_open_calls += 1
                return True
            return False

    def record_success(self):
        with self._lock:
            self._failure_count = 0
            self._transition_to(CircuitState.CLOSED)

    def record_failure(self):
        with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN)
            elif self._failure_count >= self.config.failure_threshold:
                self._transition_to(CircuitState.OPEN)

    def get_stats(self) -> dict:
        with self._lock:
            self._refresh()
            return {
                "state": self._state.value,
                "failure_count": self._failure_count,
            }


class ExponentialBackoff:
    """Exponential backoff with jitter. One instance per send, not shared."""

    def __init__(self, config: BackoffConfig | None = None):
        self.config = config or BackoffConfig()
        self._attempt = 0

    def next_delay(self) -> float:
        """Return the delay before the next attempt and advance."""
        delay = min(self.config.initial_delay * (self.config.multiplier**self._attempt), self.config.max_delay)
        self._attempt += 1

        if self.config.jitter > 0:
            spread = delay * self.config.jitter
            delay += random.uniform(-spread, spread)

        return max(0.0, delay)
