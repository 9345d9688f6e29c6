"""
=============================================================================
LISTENER - SERVER SIDE OF THE HANDSHAKE
=============================================================================

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. socket()    Create a socket file descriptor
    2. bind()      Associate the socket with an IP:PORT
    3. listen()    Mark socket as "listening"; OS starts queueing peers
                   └─ backlog = max queue size before refusing
    4. accept()    Wait for ONE incoming connection
                   └─ BLOCKS until a client completes the handshake
                   └─ Returns a NEW socket just for that client
    5. close()     Release the listening socket

STATE MACHINE:
──────────────

    UNBOUND ──bind()──► BOUND ──listen()──► LISTENING ──accept()──► ACCEPTING
       │                  │                    │                       │
       └──────────────────┴────────────────────┴───────────────────────┤
                                 any failure                           │
                                     ▼                                 ▼
                                  FAILED                          CONNECTED

Any failing step releases the listening socket BEFORE the error reaches the
caller. Nothing leaks on any exit path.

=============================================================================
THE READY SIGNAL
=============================================================================

A client can only connect once listen() has returned. Instead of sleeping
"long enough" before starting the client, the Listener sets a
threading.Event when it is listening:

    Server thread                       Client thread
    ─────────────                       ─────────────
    bind()
    listen()  ──► ready.set() ───────►  ready.wait()
    accept()  (blocks)                  connect()
       ◄──────────── handshake ──────────►

=============================================================================
SO_REUSEADDR
=============================================================================

After a connection closes, TCP keeps the port in TIME_WAIT for a while.
Without SO_REUSEADDR, running the exchange twice in a row on the same port
fails with "Address already in use".

=============================================================================
"""

import socket
import logging
import threading
from enum import Enum
from typing import List, Optional, Tuple

from .handle import SocketHandle
from .resolver import ResolvedAddress
from .session import Session
from ..errors import ExchangeError, SocketCreateError, BindError, ListenError, AcceptError
from ..protocol.message import BACKLOG, RECEIVE_CAPACITY


logger = logging.getLogger(__name__)


class ListenerState(Enum):
    UNBOUND = "unbound"
    BOUND = "bound"
    LISTENING = "listening"
    ACCEPTING = "accepting"
    CONNECTED = "connected"
    FAILED = "failed"


class Listener:
    """
    Binds, listens, and accepts exactly one inbound connection.

    Usage:
        with Listener() as listener:
            listener.bind(addresses[0])
            listener.listen()
            with listener.accept() as session:
                ...
        # session released first, then the listening socket
    """

    def __init__(
        self,
        backlog: int = BACKLOG,
        reuse_address: bool = True,
        timeout: Optional[float] = None,
        buffer_size: int = RECEIVE_CAPACITY,
        drain_timeout: float = 0.5,
    ):
        """
        Args:
            backlog: Pending-connection queue depth passed to listen().
            reuse_address: Set SO_REUSEADDR before bind().
            timeout: Timeout for accept() and the accepted session.
                     None = block indefinitely.
            buffer_size: Receive buffer of the accepted session.
            drain_timeout: Passed to the accepted session's close().
        """
        self.backlog = backlog
        self.reuse_address = reuse_address
        self.timeout = timeout
        self.buffer_size = buffer_size
        self.drain_timeout = drain_timeout

        self.state = ListenerState.UNBOUND
        self.ready = threading.Event()

        self._handle: Optional[SocketHandle] = None

    @property
    def address(self) -> Tuple:
        """
        The actual bound address (resolves port 0 to the real port).

        Raises:
            RuntimeError: Nothing is bound, or the listening socket has
                          already been released by close() or a failure.
        """
        if self._handle is None or self._handle.closed:
            raise RuntimeError("Listener is not bound")
        return self._handle.socket.getsockname()

    @property
    def is_listening(self) -> bool:
        return self.ready.is_set()

    def _fail(self):
        self.state = ListenerState.FAILED
        self.close()

    # =========================================================================
    # BIND
    # =========================================================================

    def bind(self, address: ResolvedAddress):
        """
        Create a socket for the address family and bind it.

        Raises:
            BindError: Address in use, not available, or invalid for the
                       family. The socket is released first.
            SocketCreateError: socket() itself failed.
        """
        if self.state != ListenerState.UNBOUND:
            raise RuntimeError(f"Cannot bind in state {self.state.value}")

        try:
            self._handle = SocketHandle.acquire(
                address.family, address.socktype, address.proto, name="listening socket"
            )
        except SocketCreateError:
            self.state = ListenerState.FAILED
            raise

        try:
            sock = self._handle.socket
            if self.reuse_address:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(address.sockaddr)
        except OSError as e:
            logger.error(f"Failed to bind to {address.describe()}: {e}")
            self._fail()
            raise BindError.from_os_error(e, f"cannot bind {address.describe()}") from e

        self.state = ListenerState.BOUND
        logger.debug(f"Bound to {address.describe()}")

    def bind_any(self, addresses: List[ResolvedAddress]) -> ResolvedAddress:
        """
        Bind to the first address that accepts, trying them in order.

        Returns:
            The address that was bound.

        Raises:
            BindError: None of the addresses could be bound (the last
                       failure is raised).
        """
        if not addresses:
            raise BindError("no addresses to bind")

        last_error: Optional[ExchangeError] = None
        for address in addresses:
            try:
                self.bind(address)
                return address
            except (BindError, SocketCreateError) as e:
                last_error = e
                # Each failed attempt releases its socket; start over
                self.state = ListenerState.UNBOUND

        self.state = ListenerState.FAILED
        if isinstance(last_error, BindError):
            raise last_error
        raise BindError(f"no address could be bound: {last_error}", status=last_error.status) from last_error

    # =========================================================================
    # LISTEN
    # =========================================================================

    def listen(self, backlog: Optional[int] = None):
        """
        Start queueing connections. Sets the ``ready`` event on success.

        Raises:
            ListenError: listen() failed. The socket is released first.
        """
        if self.state != ListenerState.BOUND:
            raise RuntimeError(f"Cannot listen in state {self.state.value}")

        if backlog is None:
            backlog = self.backlog

        try:
            self._handle.socket.listen(backlog)
        except OSError as e:
            self._fail()
            raise ListenError.from_os_error(e, f"cannot listen (backlog {backlog})") from e

        self.state = ListenerState.LISTENING
        host, port = self.address[:2]
        logger.info(f"Listening on {host}:{port} (backlog {backlog})")
        self.ready.set()

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """Block until listen() has succeeded. Returns False on timeout."""
        return self.ready.wait(timeout)

    # =========================================================================
    # ACCEPT
    # =========================================================================

    def accept(self) -> Session:
        """
        Wait for one peer and return a Session for it.

        BLOCKS until a client completes the handshake (or the configured
        timeout expires). The accepted socket is a NEW descriptor; the
        listening socket is left untouched.

        Raises:
            AcceptError: accept() failed or timed out. The listening socket
                         is released first.
        """
        if self.state != ListenerState.LISTENING:
            raise RuntimeError(f"Cannot accept in state {self.state.value}")

        self.state = ListenerState.ACCEPTING
        sock = self._handle.socket
        sock.settimeout(self.timeout)

        try:
            client_socket, client_address = sock.accept()
        except OSError as e:
            self._fail()
            raise AcceptError.from_os_error(e, "cannot accept connection") from e

        handle = SocketHandle(client_socket, name="accepted socket")
        self.state = ListenerState.CONNECTED
        logger.info(f"Accepted connection from {client_address[0]}:{client_address[1]}")

        try:
            return Session(
                handle,
                client_address,
                buffer_size=self.buffer_size,
                timeout=self.timeout,
                drain_timeout=self.drain_timeout,
            )
        except BaseException:
            handle.release()
            raise

    # =========================================================================
    # CLEANUP
    # =========================================================================

    def interrupt(self):
        """
        Wake a thread blocked in accept() from another thread.

        close() alone does not wake a blocked accept() on Linux; shutting
        the listening socket down does, and accept() then fails with
        AcceptError as on any other failure.
        """
        if self._handle is None or self._handle.closed:
            return
        try:
            self._handle.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Not listening yet, or already shut down

    def close(self):
        """Release the listening socket. Idempotent."""
        self.ready.clear()
        if self._handle is not None:
            self._handle.release()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
