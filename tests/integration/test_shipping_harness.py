"""
Integration test harness for shipping against a local intake.

Runs a real HTTP server that can simulate outages, and verifies batching,
persistence of failed batches to disk, and recovery on the next start.
"""

import json
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from datalog.client import DataLogClient
from datalog.config import DataLogConfiguration, Protocol, Region
from datalog.models import LogLevel
from datalog.resilience import BackoffConfig, CircuitBreakerConfig
from datalog.store import FileRetryStore
from datalog.transport import HttpTransport


class MockIntakeHandler(BaseHTTPRequestHandler):
    """HTTP handler that can simulate intake failure modes."""

    # Class-level state for controlling behavior
    failure_mode = None  # None, "503", "403"
    requests = []
    lock = threading.Lock()

    def log_message(self, format, *args):
        """Suppress HTTP server logs."""
        pass

    def do_POST(self):
        content_length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(content_length)

        with self.lock:
            MockIntakeHandler.requests.append(
                {
                    "path": self.path,
                    "content_type": self.headers.get("Content-Type"),
                    "body": json.loads(body),
                }
            )

        if self.failure_mode:
            self.send_response(int(self.failure_mode))
            self.end_headers()
            return

        self.send_response(202)
        self.end_headers()
        self.wfile.write(b"{}")

    @classmethod
    def reset(cls):
        cls.failure_mode = None
        cls.requests = []


@pytest.fixture
def intake():
    """Start a local intake server."""
    MockIntakeHandler.reset()

    server = HTTPServer(("127.0.0.1", 0), MockIntakeHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield f"127.0.0.1:{server.server_address[1]}", MockIntakeHandler

    server.shutdown()
    server.server_close()


def make_client(host: str, store: FileRetryStore, **configuration) -> DataLogClient:
    transport = HttpTransport(
        timeout=2.0,
        max_retries=2,
        backoff=BackoffConfig(initial_delay=0.01, jitter=0),
        circuit_breaker=CircuitBreakerConfig(failure_threshold=100),
        hosts={Region.PRIMARY: host},
    )
    return DataLogClient(
        DataLogConfiguration("integration-key", protocol=Protocol.HTTP, **configuration),
        retry_store=store,
        transport=transport,
    )


class TestShippingIntegration:
    def test_batch_reaches_intake(self, intake, tmp_path):
        host, handler = intake
        client = make_client(host, FileRetryStore(tmp_path), max_batch_size=3, source_tag="harness")

        client.info("one", request_id="r1")
        client.warning("two")
        client.error("three")
        client.close()

        (request,) = handler.requests
        assert request["path"] == "/v1/input/integration-key?ddsource=harness"
        assert request["content_type"] == "application/json"
        assert [entry["message"] for entry in request["body"]] == ["one", "two", "three"]
        assert [entry["status"] for entry in request["body"]] == [6, 4, 3]
        assert request["body"][0]["metadata"] == {"request_id": "r1"}
        assert list(tmp_path.iterdir()) == []

    def test_outage_persists_then_recovers_on_next_start(self, intake, tmp_path):
        host, handler = intake
        store = FileRetryStore(tmp_path / "DataLog")

        # Phase 1: intake is down, the batch lands on disk
        handler.failure_mode = "503"
        client = make_client(host, store)
        client.critical("lost in transit")
        client.close()

        assert len(handler.requests) == 2  # both attempts were made
        pending = store.list_pending()
        assert len(pending) == 1
        (record_id,) = pending
        assert (tmp_path / "DataLog" / f"{record_id}.log").exists()

        # Phase 2: intake recovers, a new client resends the record once
        handler.reset()
        recovered = make_client(host, store)
        recovered.close()

        (request,) = handler.requests
        assert request["body"][0]["message"] == "lost in transit"
        assert request["body"][0]["status"] == LogLevel.CRITICAL
        assert store.list_pending() == set()
        assert recovered.get_stats()["records_recovered"] == 1

    def test_rejected_batch_is_dropped(self, intake, tmp_path):
        host, handler = intake
        handler.failure_mode = "403"
        store = FileRetryStore(tmp_path)

        client = make_client(host, store)
        client.info("forbidden", force_flush=True)
        client.close()

        assert len(handler.requests) == 1
        assert store.list_pending() == set()
        assert client.get_stats()["records_dropped"] == 1
