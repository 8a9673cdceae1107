"""
DataLog batching client.

Usage:
    from datalog import DataLogClient, DataLogConfiguration, LogLevel, LogMessage

    client = DataLogClient(DataLogConfiguration("0123456789abcdef", max_batch_size=20))

    client.info("Payment processed", user_id="u123")
    client.log(LogMessage.create(LogLevel.ERROR, "Payment failed"), force_flush=True)

    # Before the process is suspended or exits
    client.flush()
"""

import atexit
import logging
import threading
from concurrent.futures import Future

from pydantic import ValidationError

from .config import DataLogConfiguration
from .models import LogLevel, LogMessage, decode_batch, encode_batch
from .store import FileRetryStore, RetryStore
from .transport import HttpTransport, SendOutcome, Transport

logger = logging.getLogger(__name__)


class DataLogClient:
    """
    Batches log messages and ships them to the DataLog intake.

    Thread-safe. The batch lock is held only to append a message or to swap
    the batch out; serialization and sending happen outside it. Batches that
    fail to send are written to the retry store and resent the next time a
    client is constructed against the same store.
    """

    def __init__(
        self,
        configuration: DataLogConfiguration,
        retry_store: RetryStore | None = None,
        transport: Transport | None = None,
        register_atexit: bool = False,
    ):
        """
        Initialize the client and resend any batches left over from a previous run.

        Args:
            configuration: Validated client settings
            retry_store: Store for failed batches (default: FileRetryStore in the user's documents)
            transport: Sender for serialized batches (default: HttpTransport)
            register_atexit: Flush and close the client when the interpreter exits
        """
        self.configuration = configuration
        self.retry_store = retry_store if retry_store is not None else FileRetryStore()
        self.transport = transport if transport is not None else HttpTransport()

        self._batch: list[LogMessage] = []
        self._lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._closed = False

        # Stats
        self._accepted = 0
        self._filtered = 0
        self._batches_sent = 0
        self._batches_failed = 0
        self._records_persisted = 0
        self._records_recovered = 0
        self._records_dropped = 0

        self._recover_pending()

        if register_atexit:
            atexit.register(self.close)

    def _count(self, name: str, amount: int = 1):
        with self._stats_lock:
            setattr(self, name, getattr(self, name) + amount)

    def _recover_pending(self):
        """Resend every record left in the retry store. Runs once, from __init__."""
        try:
            record_ids = self.retry_store.list_pending()
        except Exception as e:
            logger.warning(f"Could not list pending DataLog records, skipping recovery: {e}")
            return

        for record_id in record_ids:
            logger.info(f"Found pending DataLog record from a previous run: {record_id}")

            try:
                payload = self.retry_store.read(record_id)
            except Exception as e:
                logger.error(f"Could not read pending record {record_id}: {e}")
                continue

            try:
                batch = decode_batch(payload)
            except ValidationError as e:
                logger.error(f"Pending record {record_id} is not a valid batch and will be dropped: {e}")
                batch = None

            # Delete before resending: a crash mid-send loses the batch instead of duplicating it
            try:
                self.retry_store.delete(record_id)
            except Exception as e:
                logger.error(f"Could not delete pending record {record_id}, not resending it: {e}")
                continue

            if batch is None:
                self._count("_records_dropped")
                continue

            self._count("_records_recovered")
            self._send(batch)

    def log(self, message: LogMessage, force_flush: bool = False):
        """
        Add a message to the current batch.

        Messages less severe than configuration.minimum_severity are dropped.
        The batch is flushed once it reaches configuration.max_batch_size, or
        immediately when force_flush is set.
        """
        if not self.configuration.accepts(message.severity):
            self._count("_filtered")
            return

        with self._lock:
            self._batch.append(message)
            should_flush = len(self._batch) >= self.configuration.max_batch_size or force_flush

        self._count("_accepted")

        if should_flush:
            self.flush()

    def _log_text(self, level: LogLevel, text: str, force_flush: bool = False, **metadata):
        self.log(LogMessage.create(level, text, **metadata), force_flush=force_flush)

    def emergency(self, text: str, **kwargs):
        """Log an EMERGENCY message."""
        self._log_text(LogLevel.EMERGENCY, text, **kwargs)

    def alert(self, text: str, **kwargs):
        """Log an ALERT message."""
        self._log_text(LogLevel.ALERT, text, **kwargs)

    def critical(self, text: str, **kwargs):
        """Log a CRITICAL message."""
        self._log_text(LogLevel.CRITICAL, text, **kwargs)

    def error(self, text: str, **kwargs):
        """Log an ERROR message."""
        self._log_text(LogLevel.ERROR, text, **kwargs)

    def warning(self, text: str, **kwargs):
        """Log a WARNING message."""
        self._log_text(LogLevel.WARNING, text, **kwargs)

    def notice(self, text: str, **kwargs):
        """Log a NOTICE message."""
        self._log_text(LogLevel.NOTICE, text, **kwargs)

    def info(self, text: str, **kwargs):
        """Log an INFO message."""
        self._log_text(LogLevel.INFO, text, **kwargs)

    def debug(self, text: str, **kwargs):
        """Log a DEBUG message."""
        self._log_text(LogLevel.DEBUG, text, **kwargs)

    def flush(self):
        """
        Send everything batched so far.

        Safe to call from lifecycle hooks (before suspension, at shutdown).
        Returns without waiting for the send to complete.
        """
        with self._lock:
            batch, self._batch = self._batch, []

        if batch:
            self._send(batch)

    def _send(self, batch: list[LogMessage]):
        payload = encode_batch(batch)

        try:
            future = self.transport.send(payload, self.configuration)
        except Exception as e:
            logger.warning(f"DataLog transport rejected a batch of {len(batch)} messages: {e}")
            self._on_failure(payload, str(e))
            return

        future.add_done_callback(lambda done: self._on_send_complete(done, payload))

    def _on_send_complete(self, future: "Future[SendOutcome]", payload: bytes):
        # Only ever touches the already-extracted payload, never the live batch
        try:
            outcome = future.result()
        except Exception as e:
            outcome = SendOutcome.failure(f"{type(e).__name__}: {e}")

        if outcome.delivered:
            self._count("_batches_sent")
            return

        if not outcome.retryable:
            self._count("_batches_failed")
            self._count("_records_dropped")
            logger.error(f"DataLog intake rejected a batch of {len(payload)} bytes ({outcome.reason}), dropping it")
            return

        logger.warning(
            f"Error while sending logs to DataLog ({outcome.reason}). "
            "The batch will be stored and sent again on the next start."
        )
        self._on_failure(payload, outcome.reason)

    def _on_failure(self, payload: bytes, reason: str | None):
        self._count("_batches_failed")

        try:
            record_id = self.retry_store.persist(payload)
        except Exception as e:
            self._count("_records_dropped")
            logger.error(f"Could not store failed DataLog batch, dropping it ({reason}): {e}")
            return

        self._count("_records_persisted")
        logger.debug(f"Stored failed DataLog batch as record {record_id}")

    @property
    def pending_count(self) -> int:
        """Number of messages waiting in the current batch."""
        with self._lock:
            return len(self._batch)

    def get_stats(self) -> dict:
        """Get shipping statistics."""
        with self._stats_lock:
            stats = {
                "accepted": self._accepted,
                "filtered": self._filtered,
                "batches_sent": self._batches_sent,
                "batches_failed": self._batches_failed,
                "records_persisted": self._records_persisted,
                "records_recovered": self._records_recovered,
                "records_dropped": self._records_dropped,
            }
        stats["pending_batch_size"] = self.pending_count
        return stats

    def close(self):
        """Flush the current batch and wait for in-flight sends to finish."""
        if self._closed:
            return
        self._closed = True

        self.flush()

        # close is optional for transports that hold no resources
        close_transport = getattr(self.transport, "close", None)
        if close_transport is not None:
            close_transport()

    def __enter__(self) -> "DataLogClient":
        return self

    def __exit__(self, *exc_info):
        self.close()
