"""
=============================================================================
CONNECTOR - CLIENT SIDE OF THE HANDSHAKE
=============================================================================

    socket()  ──►  connect()  ──►  Session
                      │
                      └── 3-way handshake: SYN → SYN+ACK → ACK

connect() fails when nobody is listening (ECONNREFUSED), the host can't be
reached, or the address is unusable. The socket is released before the
ConnectError is raised, so a failed attempt never leaks a descriptor.

TCP_NODELAY:
────────────
Every message here goes out in a single send() call, so Nagle's algorithm
has nothing to coalesce. It can only add latency while it waits for the ACK
of the previous segment, so it is disabled by default.

=============================================================================
"""

import socket
import logging
from typing import List, Optional

from .handle import SocketHandle
from .resolver import ResolvedAddress
from .session import Session
from ..errors import ExchangeError, SocketCreateError, ConnectError
from ..protocol.message import RECEIVE_CAPACITY


logger = logging.getLogger(__name__)


class Connector:
    """
    Opens one outbound connection and returns it as a Session.

    Single attempt per address. No retry, no reconnect.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        nodelay: bool = True,
        buffer_size: int = RECEIVE_CAPACITY,
        drain_timeout: float = 0.5,
    ):
        self.timeout = timeout
        self.nodelay = nodelay
        self.buffer_size = buffer_size
        self.drain_timeout = drain_timeout

    def connect(self, address: ResolvedAddress) -> Session:
        """
        Connect to a resolved address.

        Raises:
            ConnectError: The handshake could not complete.
            SocketCreateError: socket() failed.
        """
        handle = SocketHandle.acquire(
            address.family, address.socktype, address.proto, name="client socket"
        )

        try:
            sock = handle.socket
            sock.settimeout(self.timeout)
            if self.nodelay:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.connect(address.sockaddr)
        except OSError as e:
            handle.release()
            logger.debug(f"Connect to {address.describe()} failed: {e}")
            raise ConnectError.from_os_error(e, f"cannot connect to {address.describe()}") from e

        logger.info(f"Connected to {address.describe()}")

        try:
            return Session(
                handle,
                address.sockaddr,
                buffer_size=self.buffer_size,
                timeout=self.timeout,
                drain_timeout=self.drain_timeout,
            )
        except BaseException:
            handle.release()
            raise

    def connect_any(self, addresses: List[ResolvedAddress]) -> Session:
        """
        Try each address in order; return the first session that connects.

        Raises:
            ConnectError: Every address failed (the last failure is raised).
        """
        if not addresses:
            raise ConnectError("no addresses to connect to")

        last_error: Optional[ExchangeError] = None
        for address in addresses:
            try:
                return self.connect(address)
            except (ConnectError, SocketCreateError) as e:
                last_error = e

        if isinstance(last_error, ConnectError):
            raise last_error
        raise ConnectError(f"no address connected: {last_error}", status=last_error.status) from last_error
