"""
Durable storage for batches that failed to send.

Each failed batch is kept as one record holding the exact payload bytes
that were about to be sent. Records are enumerated once when a client
starts and are deleted as soon as they have been picked up for resend.

FileRetryStore layout:

    ~/Documents/DataLog/
        3F2504E0-4F89-11D3-9A0C-0305E82C3301.log
        ...
"""

import logging
import os
import threading
import time
import uuid
from pathlib import Path
from typing import Protocol

from .exceptions import RetryStoreError

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".log"
TMP_SUFFIX = ".tmp"

# A partial write older than this was left by a process that died mid-persist
STALE_TMP_SECONDS = 300.0
STORAGE_DIRNAME = "DataLog"


class RetryStore(Protocol):
    """Blob store for failed batches, keyed by generated record ids."""

    def persist(self, payload: bytes) -> str:
        """Store payload under a new record id and return the id."""
        ...

    def list_pending(self) -> set[str]:
        """Return the ids of every stored record."""
        ...

    def read(self, record_id: str) -> bytes:
        """Return the payload stored under record_id."""
        ...

    def delete(self, record_id: str) -> None:
        """Remove the record. Deleting a missing record is not an error."""
        ...


def new_record_id() -> str:
    return str(uuid.uuid4()).upper()


def default_storage_path() -> Path:
    """
    Directory used when no store is supplied.

    DATALOG_STORAGE_DIR overrides the default of a DataLog folder inside
    the user's Documents directory (or the home directory when there is none).
    """
    override = os.environ.get("DATALOG_STORAGE_DIR")
    if override:
        return Path(override).expanduser()

    documents = Path.home() / "Documents"
    base = documents if documents.is_dir() else Path.home()
    return base / STORAGE_DIRNAME


class FileRetryStore:
    """RetryStore backed by one file per record in a single directory."""

    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(directory) if directory is not None else default_storage_path()

    def _path(self, record_id: str) -> Path:
        return self.directory / f"{record_id}{RECORD_SUFFIX}"

    def persist(self, payload: bytes) -> str:
        record_id = new_record_id()
        path = self._path(record_id)
        # Write under a temporary name so a partial file is never listed as pending
        tmp_path = path.with_name(path.name + TMP_SUFFIX)

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(payload)
            os.replace(tmp_path, path)
        except OSError as e:
            raise RetryStoreError(f"Could not persist record {record_id} in {self.directory}: {e}") from e

        logger.debug(f"Persisted {len(payload)} bytes as {path.name}")
        return record_id

    def list_pending(self) -> set[str]:
        if not self.directory.is_dir():
            return set()

        pending = set()
        try:
            for entry in self.directory.iterdir():
                if not entry.is_file():
                    continue
                if entry.suffix == RECORD_SUFFIX:
                    pending.add(entry.stem)
                elif entry.suffix == TMP_SUFFIX:
                    self._remove_if_stale(entry)
        except OSError as e:
            raise RetryStoreError(f"Could not list pending records in {self.directory}: {e}") from e
        return pending

    def _remove_if_stale(self, tmp_path: Path):
        try:
            if time.time() - tmp_path.stat().st_mtime >= STALE_TMP_SECONDS:
                tmp_path.unlink(missing_ok=True)
                logger.info(f"Removed partial record left by an interrupted write: {tmp_path.name}")
        except OSError as e:
            logger.warning(f"Could not remove partial record {tmp_path.name}: {e}")

    def read(self, record_id: str) -> bytes:
        try:
            return self._path(record_id).read_bytes()
        except OSError as e:
            raise RetryStoreError(f"Could not read record {record_id}: {e}") from e

    def delete(self, record_id: str) -> None:
        try:
            self._path(record_id).unlink(missing_ok=True)
        except OSError as e:
            raise RetryStoreError(f"Could not delete record {record_id}: {e}") from e


class MemoryRetryStore:
    """In-process RetryStore. Records do not survive a restart."""

    def __init__(self, records: dict[str, bytes] | None = None):
        self._records: dict[str, bytes] = dict(records or {})
        self._lock = threading.Lock()

    def persist(self, payload: bytes) -> str:
        record_id = new_record_id()
        with self._lock:
            self._records[record_id] = bytes(payload)
        return record_id

    def list_pending(self) -> set[str]:
        with self._lock:
            return set(self._records)

    def read(self, record_id: str) -> bytes:
        with self._lock:
            try:
                return self._records[record_id]
            except KeyError:
                raise RetryStoreError(f"No pending record {record_id}") from None

    def delete(self, record_id: str) -> None:
        with self._lock:
            self._records.pop(record_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
