"""
HTTP transport for shipping batches to the DataLog intake.

A transport accepts serialized batch bytes and returns a Future that
resolves to a SendOutcome. The client never waits on that future; it only
attaches a callback that persists the payload when the outcome is a failure.
"""

import logging
import threading
import time
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import httpx

from .config import DataLogConfiguration, Region
from .resilience import BackoffConfig, CircuitBreaker, CircuitBreakerConfig, ExponentialBackoff

logger = logging.getLogger(__name__)

INTAKE_HOSTS: Mapping[Region, str] = {
    Region.PRIMARY: "http-intake.logs.dataloghq.com",
    Region.ALTERNATE: "http-intake.logs.dataloghq.eu",
}

# Statuses that will fail the same way on every attempt, now or after a restart
NON_RETRYABLE_STATUSES = frozenset({400, 401, 403, 413})


@dataclass(frozen=True)
class SendOutcome:
    """
    Result of one send: delivered, or failed with a reason.

    A failure is retryable when sending the same bytes later could succeed
    (network errors, 5xx, open circuit). A non-retryable failure means the
    intake rejected the batch itself and storing it for later is pointless.
    """

    delivered: bool
    reason: str | None = None
    retryable: bool = True

    @classmethod
    def success(cls) -> "SendOutcome":
        return cls(delivered=True)

    @classmethod
    def failure(cls, reason: str) -> "SendOutcome":
        return cls(delivered=False, reason=reason)

    @classmethod
    def rejected(cls, reason: str) -> "SendOutcome":
        return cls(delivered=False, reason=reason, retryable=False)


class Transport(Protocol):
    """
    Sends a serialized batch to the intake without blocking the caller.

    A transport that holds resources may also define close(), which the
    client calls once when it is closed.
    """

    def send(self, payload: bytes, configuration: DataLogConfiguration) -> "Future[SendOutcome]":
        ...


def completed(outcome: SendOutcome) -> "Future[SendOutcome]":
    """Return a Future that is already resolved with outcome."""
    future: Future[SendOutcome] = Future()
    future.set_result(outcome)
    return future


def build_intake_url(configuration: DataLogConfiguration, hosts: Mapping[Region, str] = INTAKE_HOSTS) -> httpx.URL:
    """
    Build the intake URL for a configuration.

    Example:
        https://http-intake.logs.dataloghq.com/v1/input/<api_key>?ddsource=billing
    """
    base = f"{configuration.protocol.value}://{hosts[configuration.region]}/v1/input/{quote(configuration.api_key, safe='')}"
    if configuration.source_tag:
        return httpx.URL(base, params={"ddsource": configuration.source_tag})
    return httpx.URL(base)


class HttpTransport:
    """
    Transport that POSTs batches with httpx on a small worker pool.

    Each send makes up to max_retries attempts with exponential backoff in
    between. A circuit breaker shared by all sends fails them immediately
    while the intake is known to be down.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        max_retries: int = 1,
        backoff: BackoffConfig | None = None,
        circuit_breaker: CircuitBreakerConfig | None = None,
        http_client: httpx.Client | None = None,
        hosts: Mapping[Region, str] | None = None,
        max_workers: int = 2,
    ):
        """
        Initialize the transport.

        Args:
            timeout: HTTP request timeout in seconds (ignored when http_client is given)
            max_retries: Attempts per send before it is reported as failed
            backoff: Delay policy between attempts of one send
            circuit_breaker: Failure threshold and reset timeout for the breaker
            http_client: Pre-configured httpx.Client; the transport will not close it
            hosts: Intake host per region, overriding INTAKE_HOSTS
            max_workers: Number of sends that may be in flight at once
        """
        self.max_retries = max(1, max_retries)
        self.backoff = backoff or BackoffConfig()
        self.hosts = dict(hosts or INTAKE_HOSTS)
        self.circuit = CircuitBreaker(circuit_breaker, name="datalog-intake")

        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="datalog-send")
        self._closed = False
        self._lock = threading.Lock()

    def send(self, payload: bytes, configuration: DataLogConfiguration) -> "Future[SendOutcome]":
        with self._lock:
            if self._closed:
                return completed(SendOutcome.failure("transport closed"))
            return self._executor.submit(self._deliver, payload, configuration)

    def _deliver(self, payload: bytes, configuration: DataLogConfiguration) -> SendOutcome:
        if not self.circuit.allow_request():
            return SendOutcome.failure("circuit open")

        url = build_intake_url(configuration, self.hosts)
        backoff = ExponentialBackoff(self.backoff)
        reason = "no attempt made"

        for attempt in range(self.max_retries):
            try:
                response = self._client.post(
                    url,
                    content=payload,
                    headers={"Content-Type": "application/json"},
                )
            except httpx.HTTPError as e:
                reason = f"{type(e).__name__}: {e}"
            else:
                if response.is_success:
                    self.circuit.record_success()
                    return SendOutcome.success()

                reason = f"HTTP {response.status_code}"
                if response.status_code in NON_RETRYABLE_STATUSES:
                    # The intake is reachable; it refused this batch
                    self.circuit.record_success()
                    return SendOutcome.rejected(reason)

            if attempt < self.max_retries - 1:
                delay = backoff.next_delay()
                logger.debug(f"Intake send attempt {attempt + 1} failed ({reason}), retrying in {delay:.2f}s")
                time.sleep(delay)

        self.circuit.record_failure()
        return SendOutcome.failure(reason)

    def close(self) -> None:
        """Wait for in-flight sends, then release the HTTP client."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self._executor.shutdown(wait=True)
        if self._owns_client:
            self._client.close()
