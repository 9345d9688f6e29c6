"""
=============================================================================
ROLES - THE TWO HALVES OF THE EXCHANGE
=============================================================================

    ServerRole                              ClientRole
    ──────────                              ──────────
    resolve()                               resolve()
    Listener.bind()
    Listener.listen() ──► ready
    Listener.accept()  ◄──── handshake ───► Connector.connect()
    serve_messages()   ◄──── messages ────► client_exchange()
    session released                        session released
    listener released

Each role runs on its own thread. They share NO memory: the only
coordination is the network handshake itself plus the server's "ready"
signal, which replaces sleeping for a fixed delay before connecting.

Each role's exception is that role's only failure signal. run_exchange()
reports them separately and never merges them.

=============================================================================
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple

from .config import ExchangeConfig
from .core.resolver import Endpoint, resolve_endpoint, describe_addresses
from .core.listener import Listener
from .core.connector import Connector
from .errors import AcceptError
from .log import WireLogger
from .protocol.exchange import ExchangeResult, ClientResult, serve_messages, client_exchange


logger = logging.getLogger(__name__)


class ServerRole:
    """
    Accepts one peer and serves the message loop until it ends.

    Usage:
        server = ServerRole(ExchangeConfig(port=0))
        thread = threading.Thread(target=server.run)
        thread.start()
        server.wait_until_ready(timeout=5)
        host, port = server.address[:2]
    """

    def __init__(self, config: Optional[ExchangeConfig] = None):
        self.config = config or ExchangeConfig()
        self.config.validate()

        self._address: Optional[Tuple] = None
        self._settled = threading.Event()
        self._stopping = threading.Event()
        self._listener: Optional[Listener] = None

    @property
    def address(self) -> Optional[Tuple]:
        """Bound address once listening, else None."""
        return self._address

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the server is listening, or has given up trying.

        Returns:
            True if the listener reached the listening state. False if the
            role failed before listening, or the timeout expired.
        """
        self._settled.wait(timeout)
        return self._address is not None

    def run(self) -> ExchangeResult:
        """
        Run the server side to completion.

        Raises:
            ExchangeError: Any failing step. Every socket acquired so far is
                           released before the error propagates.
        """
        config = self.config

        try:
            addresses = resolve_endpoint(config.endpoint)
            logger.debug(f"Server resolved {len(addresses)} address(es):")
            describe_addresses(addresses)

            with Listener(
                backlog=config.backlog,
                reuse_address=config.reuse_address,
                timeout=config.timeout,
                buffer_size=config.buffer_size,
                drain_timeout=config.drain_timeout,
            ) as listener:
                self._listener = listener
                if config.address_policy == "sequential":
                    listener.bind_any(addresses)
                else:
                    listener.bind(addresses[0])

                listener.listen()
                self._address = listener.address
                self._settled.set()

                if self._stopping.is_set():
                    raise AcceptError("server stopped before accepting")

                with listener.accept() as session:
                    return serve_messages(session, WireLogger("server", config.log_format))
        finally:
            self._listener = None
            self._settled.set()

    def stop(self):
        """
        Stop a server that is still waiting for its peer. Safe from any thread.

        A run() blocked in accept() (or about to enter it) fails with
        AcceptError. A session already being served is left alone.
        """
        self._stopping.set()
        listener = self._listener
        if listener is not None:
            listener.interrupt()


class ClientRole:
    """Connects to the server and runs the fixed client exchange."""

    def __init__(self, config: Optional[ExchangeConfig] = None):
        self.config = config or ExchangeConfig()
        self.config.validate()

    def run(self) -> ClientResult:
        """
        Run the client side to completion.

        Raises:
            ExchangeError: Any failing step (ConnectError when nobody is
                           listening). The socket is released first.
        """
        config = self.config

        # Connecting never wants the wildcard address
        endpoint = Endpoint(host=config.host, port=config.port, family=config.family_hint)
        addresses = resolve_endpoint(endpoint)
        logger.debug(f"Client resolved {len(addresses)} address(es):")
        describe_addresses(addresses)

        connector = Connector(
            timeout=config.timeout,
            nodelay=config.nodelay,
            buffer_size=config.buffer_size,
            drain_timeout=config.drain_timeout,
        )

        if config.address_policy == "sequential":
            session = connector.connect_any(addresses)
        else:
            session = connector.connect(addresses[0])

        with session:
            return client_exchange(session, config.greeting, WireLogger("client", config.log_format))


# =============================================================================
# RUNNING BOTH ROLES
# =============================================================================


class RoleThread(threading.Thread):
    """
    Runs one role and keeps its outcome.

    Exactly one of ``result`` / ``error`` is set once the thread finishes.
    """

    def __init__(self, name: str, target: Callable):
        super().__init__(name=name, daemon=True)
        self._role_target = target
        self.result = None
        self.error: Optional[BaseException] = None

    def run(self):
        try:
            self.result = self._role_target()
        except Exception as e:
            logger.error(f"{self.name} failed: {e}")
            self.error = e


@dataclass
class ExchangeOutcome:
    """What each role reported. A role that never ran has neither."""

    server_result: Optional[ExchangeResult] = None
    client_result: Optional[ClientResult] = None
    server_error: Optional[BaseException] = None
    client_error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return (
            self.server_error is None
            and self.client_error is None
            and self.server_result is not None
            and self.client_result is not None
        )


def run_exchange(
    server_config: Optional[ExchangeConfig] = None,
    client_config: Optional[ExchangeConfig] = None,
    ready_timeout: Optional[float] = 10.0,
) -> ExchangeOutcome:
    """
    Run the server and the client on two threads and wait for both.

    The client starts only once the server is listening. Without an
    explicit client_config the client targets the server's actual bound
    port, which makes port 0 usable.

    A server still waiting for a peer is stopped when it never becomes
    ready or when the client fails, so this call does not hang.
    """
    server_config = server_config or ExchangeConfig()
    server = ServerRole(server_config)

    server_thread = RoleThread("server-role", server.run)
    server_thread.start()

    outcome = ExchangeOutcome()

    if not server.wait_until_ready(ready_timeout):
        logger.error("Server did not start listening; client not started")
        server.stop()
        server_thread.join(ready_timeout)
    else:
        if client_config is None:
            client_config = replace(server_config, port=server.address[1])

        client_thread = RoleThread("client-role", ClientRole(client_config).run)
        client_thread.start()
        client_thread.join()

        outcome.client_result = client_thread.result
        outcome.client_error = client_thread.error

        if client_thread.error is not None:
            # The server may still be waiting for a peer that never came
            server.stop()
        server_thread.join()

    outcome.server_result = server_thread.result
    outcome.server_error = server_thread.error
    if server_thread.is_alive():
        outcome.server_error = TimeoutError(
            f"server did not start listening within {ready_timeout}s"
        )

    return outcome
