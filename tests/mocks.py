"""
Fake collaborators for DataLog client tests.
"""

import threading
from concurrent.futures import Future

from datalog.models import decode_batch
from datalog.transport import SendOutcome, completed


class RecordingTransport:
    """Transport that records every payload and resolves immediately."""

    def __init__(self, succeed: bool = True, reason: str = "simulated outage"):
        self.succeed = succeed
        self.reason = reason
        self.payloads: list[bytes] = []
        self.closed = False
        self._lock = threading.Lock()

    def send(self, payload: bytes, configuration) -> Future:
        with self._lock:
            self.payloads.append(payload)
        if self.succeed:
            return completed(SendOutcome.success())
        return completed(SendOutcome.failure(self.reason))

    def close(self) -> None:
        self.closed = True

    @property
    def send_count(self) -> int:
        with self._lock:
            return len(self.payloads)

    def batches(self) -> list[list]:
        """Decoded batches in the order they were sent."""
        with self._lock:
            return [decode_batch(payload) for payload in self.payloads]


class DeferredTransport:
    """Transport whose futures stay pending until the test resolves them."""

    def __init__(self):
        self.pending: list[tuple[bytes, Future]] = []

    def send(self, payload: bytes, configuration) -> Future:
        future: Future = Future()
        self.pending.append((payload, future))
        return future

    def resolve_all(self, outcome: SendOutcome):
        for _payload, future in self.pending:
            future.set_result(outcome)

    def close(self) -> None:
        pass


class FailingStore:
    """RetryStore whose persist always raises, as a full or read-only disk would."""

    def __init__(self, exc: Exception):
        self.exc = exc
        self.persist_calls = 0

    def persist(self, payload: bytes) -> str:
        self.persist_calls += 1
        raise self.exc

    def list_pending(self) -> set[str]:
        raise self.exc

    def read(self, record_id: str) -> bytes:
        raise self.exc

    def delete(self, record_id: str) -> None:
        raise self.exc
