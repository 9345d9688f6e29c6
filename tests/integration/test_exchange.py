"""
End-to-end tests: ServerRole and ClientRole over loopback TCP.
"""

import socket
import threading
import time
import pytest

from tcpexchange import (
    ExchangeConfig,
    ServerRole,
    ClientRole,
    AcceptError,
    ConnectError,
    run_exchange,
)
from tcpexchange.protocol import EndReason, ACKNOWLEDGEMENT, END_MESSAGE


class TestRunExchange:
    """Both roles, each on its own thread."""

    def test_hello_ok_end_message(self, config: ExchangeConfig):
        outcome = run_exchange(config)

        assert outcome.ok, (outcome.server_error, outcome.client_error)
        assert outcome.client_result.reply.payload == ACKNOWLEDGEMENT
        assert outcome.server_result.messages == [b"hello"]
        assert outcome.server_result.acks_sent == 1
        assert outcome.server_result.ended_by == EndReason.SENTINEL

    def test_default_test_port(self, config: ExchangeConfig):
        """The reference scenario on the fixed service port 20453."""
        config.port = "20453"

        outcome = run_exchange(config)

        assert outcome.ok, (outcome.server_error, outcome.client_error)
        assert outcome.server_result.ended_by == EndReason.SENTINEL

    def test_sequential_policy_unspecified_family(self, config: ExchangeConfig):
        """Either family works when both roles walk the resolved list."""
        config.family = "unspec"
        config.address_policy = "sequential"

        outcome = run_exchange(config)

        assert outcome.ok, (outcome.server_error, outcome.client_error)

    def test_repeated_runs_return_to_descriptor_baseline(self, free_port, open_descriptors):
        """N sequential exchanges on one port, no descriptor growth."""
        config = ExchangeConfig(port=free_port, family="ipv4", timeout=5.0, drain_timeout=0.2)
        baseline = open_descriptors()

        for _ in range(5):
            outcome = run_exchange(config)
            assert outcome.ok, (outcome.server_error, outcome.client_error)
            assert outcome.server_result.acks_sent == 1
            assert open_descriptors() == baseline

    def test_server_bind_failure_is_reported_by_server_only(self, free_port):
        """Port already taken: the server fails, the client is never started."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as squatter:
            squatter.bind(("127.0.0.1", free_port))
            squatter.listen(1)

            config = ExchangeConfig(
                port=free_port, family="ipv4", timeout=5.0, reuse_address=False
            )
            outcome = run_exchange(config)

        assert not outcome.ok
        assert outcome.server_error is not None
        assert outcome.server_error.step == "bind"
        assert outcome.client_result is None
        assert outcome.client_error is None

    def test_server_not_ready_does_not_hang(self, monkeypatch):
        """A server that never reports ready is stopped, not waited on forever."""
        monkeypatch.setattr(ServerRole, "wait_until_ready", lambda self, timeout=None: False)
        config = ExchangeConfig(port=0, family="ipv4", timeout=None, drain_timeout=0.2)

        started = time.monotonic()
        outcome = run_exchange(config, ready_timeout=2.0)

        assert time.monotonic() - started < 5.0
        assert not outcome.ok
        assert outcome.server_error is not None
        assert outcome.client_result is None
        assert outcome.client_error is None

    def test_client_failure_stops_waiting_server(self, config: ExchangeConfig, free_port):
        """Client aimed at the wrong port: the blocked server is released too."""
        config.timeout = None
        client_config = ExchangeConfig(port=free_port, family="ipv4", timeout=5.0)

        outcome = run_exchange(config, client_config)

        assert isinstance(outcome.client_error, ConnectError)
        assert isinstance(outcome.server_error, AcceptError)


class TestServerRole:
    """ServerRole lifecycle."""

    def test_stop_unblocks_accept(self):
        server = ServerRole(ExchangeConfig(port=0, family="ipv4", timeout=None))
        errors = []

        def run():
            try:
                server.run()
            except AcceptError as e:
                errors.append(e)

        thread = threading.Thread(target=run, daemon=True)
        thread.start()
        assert server.wait_until_ready(timeout=5.0)

        server.stop()
        thread.join(5.0)

        assert not thread.is_alive()
        assert len(errors) == 1

    def test_stop_before_run_fails_fast(self, config: ExchangeConfig):
        server = ServerRole(config)
        server.stop()

        with pytest.raises(AcceptError):
            server.run()


class TestServerWithRawClient:
    """Server role driven by a hand-written client."""

    def test_server_replies_ok_and_stops_on_sentinel(self, background_server):
        with background_server.connect() as sock:
            sock.sendall(b"hello")
            assert sock.recv(64) == b"OK"

            sock.sendall(END_MESSAGE)
            # Server closes without a further reply
            assert sock.recv(64) == b""

        background_server.join()
        assert background_server.error is None
        assert background_server.result.ended_by == EndReason.SENTINEL

    def test_sentinel_first_gets_no_ok(self, background_server):
        with background_server.connect() as sock:
            sock.sendall(END_MESSAGE)
            assert sock.recv(64) == b""

        background_server.join()
        assert background_server.error is None
        assert background_server.result.acks_sent == 0
        assert background_server.result.messages == []
        assert background_server.result.ended_by == EndReason.SENTINEL

    def test_abrupt_client_close_is_orderly_shutdown(self, background_server):
        """Client vanishes without END_MESSAGE: zero-length read, no error."""
        sock = background_server.connect()
        sock.close()

        background_server.join()
        assert background_server.error is None
        assert background_server.result.ended_by == EndReason.PEER_SHUTDOWN
        assert background_server.result.acks_sent == 0

    def test_close_after_hello_is_orderly_shutdown(self, background_server):
        with background_server.connect() as sock:
            sock.sendall(b"hello")
            assert sock.recv(64) == b"OK"
            sock.shutdown(socket.SHUT_WR)
            assert sock.recv(64) == b""

        background_server.join()
        assert background_server.error is None
        assert background_server.result.ended_by == EndReason.PEER_SHUTDOWN
        assert background_server.result.messages == [b"hello"]


class TestClientRole:
    """Client role failure modes."""

    def test_no_listener_raises_connect_error_without_leak(self, free_port, open_descriptors):
        config = ExchangeConfig(port=free_port, family="ipv4", timeout=5.0)
        baseline = open_descriptors()

        with pytest.raises(ConnectError) as exc_info:
            ClientRole(config).run()

        assert exc_info.value.status is not None
        assert open_descriptors() == baseline

    def test_sequential_policy_no_listener(self, free_port, open_descriptors):
        config = ExchangeConfig(
            port=free_port, family="unspec", address_policy="sequential", timeout=5.0
        )
        baseline = open_descriptors()

        with pytest.raises(ConnectError):
            ClientRole(config).run()

        assert open_descriptors() == baseline
