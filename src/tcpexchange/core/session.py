"""
=============================================================================
SESSION - ONE CONNECTED ENDPOINT
=============================================================================

A Session wraps the socket of an ESTABLISHED connection (from accept() on
the server, or connect() on the client) with send/receive primitives that
the message loop is built on.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP guarantees bytes arrive IN ORDER and INTACT, nothing more. There is no
framing in this protocol beyond a small fixed buffer: each side sends one
short message and waits for the answer before sending the next, so one
recv() sees one message.

    Client                               Server
      │  send("hello") ───────────────►    │  recv() → "hello"
      │                ◄─────────────── send("OK")
      │  recv() → "OK"                     │
      │  send("END_MESSAGE") ─────────►    │  recv() → "END_MESSAGE"
      │  close()                           │  (loop ends, no reply)

=============================================================================
THE RECEIVE BUFFER
=============================================================================

    ┌───┬───┬───┬───┬───┬───┬─────────────────────────┬───┐
    │ h │ e │ l │ l │ o │\0 │  stale bytes from before │   │   64 bytes
    └───┴───┴───┴───┴───┴───┴─────────────────────────┴───┘
      0                   5                                63

    - at most 63 payload bytes per receive (one slot for the terminator)
    - buffer[length] = 0 after every receive
    - comparisons use buffer[:length], NEVER the whole buffer, so stale
      bytes from a longer earlier message can't produce a false match

RETURN VALUES OF recv():
────────────────────────

    > 0   data
    == 0  orderly shutdown (peer closed). NOT an error.
    error ReceiveError

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from typing import Optional, Tuple

from .handle import SocketHandle
from ..errors import SendError, ReceiveError
from ..protocol.message import Message, RECEIVE_CAPACITY


logger = logging.getLogger(__name__)


class SessionState(Enum):
    """
    Session lifecycle.

        CONNECTED ──► EXCHANGING ──► CLOSED
            │                          ▲
            └──────────────────────────┘   (closed before any I/O)
    """

    CONNECTED = "connected"
    EXCHANGING = "exchanging"
    CLOSED = "closed"


class Session:
    """
    A connected stream socket with bounded send/receive.

    A Session OWNS its SocketHandle. Nobody else may read, write, or close
    the same descriptor while the session is alive.

    Usage:
        with Session(handle, peer) as session:
            session.send(b"hello")
            reply = session.receive()
        # handle released here
    """

    def __init__(
        self,
        handle: SocketHandle,
        peer: Tuple,
        buffer_size: int = RECEIVE_CAPACITY,
        timeout: Optional[float] = None,
        drain_timeout: float = 0.5,
    ):
        """
        Args:
            handle: Connected socket. Ownership moves to the session.
            peer: Remote address as returned by accept()/getpeername().
            buffer_size: Receive buffer capacity, terminator included.
            timeout: Socket timeout in seconds. None = block indefinitely.
            drain_timeout: How long close() waits for the peer's FIN.
        """
        if buffer_size < 2:
            raise ValueError(f"buffer_size must be >= 2, got {buffer_size}")

        self.handle = handle
        self.peer = peer
        self.state = SessionState.CONNECTED
        self.timeout = timeout
        self.drain_timeout = drain_timeout
        self.created_at = time.time()
        self.bytes_sent = 0
        self.bytes_received = 0

        self._buffer = bytearray(buffer_size)

        handle.socket.settimeout(timeout)

    @property
    def capacity(self) -> int:
        """Maximum payload bytes per receive (buffer minus terminator)."""
        return len(self._buffer) - 1

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    @property
    def peer_label(self) -> str:
        return f"{self.peer[0]}:{self.peer[1]}"

    # =========================================================================
    # SENDING
    # =========================================================================

    def send(self, data: bytes) -> int:
        """
        Send data with a SINGLE send() call.

        send() returns how many bytes the kernel accepted, which may be
        fewer than requested. Here a short write is fatal: no retry loop.
        Use send_all() when partial writes should be retried.

        Returns:
            Number of bytes written (always len(data)).

        Raises:
            SendError: send() failed or wrote fewer than len(data) bytes.
            ClosedHandleError: The session was already closed.
        """
        sock = self.handle.socket
        self.state = SessionState.EXCHANGING

        try:
            written = sock.send(data)
        except OSError as e:
            logger.warning(f"Send to {self.peer_label} failed: {e}")
            raise SendError.from_os_error(e, f"sending {len(data)} bytes") from e

        self.bytes_sent += written
        if written != len(data):
            raise SendError(f"short write: {written} of {len(data)} bytes")

        return written

    def send_all(self, data: bytes) -> int:
        """
        Send data, retrying partial writes until everything is out.

        sendall() loops over send() internally until all bytes are written
        or an error occurs.
        """
        sock = self.handle.socket
        self.state = SessionState.EXCHANGING

        try:
            sock.sendall(data)
        except OSError as e:
            logger.warning(f"Send to {self.peer_label} failed: {e}")
            raise SendError.from_os_error(e, f"sending {len(data)} bytes") from e

        self.bytes_sent += len(data)
        return len(data)

    # =========================================================================
    # RECEIVING
    # =========================================================================

    def receive(self, max_len: Optional[int] = None) -> Message:
        """
        Receive up to max_len bytes into the session buffer.

        Args:
            max_len: Upper bound on payload bytes. Defaults to capacity (63).

        Returns:
            Message with the exact bytes received. ``length == 0`` means the
            peer shut down its side of the connection.

        Raises:
            ReceiveError: recv() failed (reset, timeout, ...).
            ValueError: max_len exceeds the buffer capacity.
        """
        if max_len is None:
            max_len = self.capacity
        if not 0 < max_len <= self.capacity:
            raise ValueError(f"max_len must be in 1..{self.capacity}, got {max_len}")

        sock = self.handle.socket
        self.state = SessionState.EXCHANGING

        try:
            length = sock.recv_into(self._buffer, max_len)
        except OSError as e:
            raise ReceiveError.from_os_error(e, f"receiving from {self.peer_label}") from e

        # No implicit terminator on a stream: add one
        self._buffer[length] = 0
        self.bytes_received += length

        return Message(payload=bytes(self._buffer[:length]), length=length)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the session gracefully. Idempotent.

        1. shutdown(SHUT_WR)  send FIN, we're done writing
        2. drain              read until the peer's FIN, at most
                              drain_timeout seconds IN TOTAL
        3. release            close the descriptor (always)
        """
        if self.state == SessionState.CLOSED:
            return

        self.state = SessionState.CLOSED
        if self.handle.closed:
            return
        sock = self.handle.socket

        try:
            try:
                sock.shutdown(socket.SHUT_WR)
            except OSError:
                pass  # Peer already gone

            if self.drain_timeout:
                self._drain(sock)
        finally:
            self.handle.release()

        logger.debug(
            f"Session with {self.peer_label} closed "
            f"(sent {self.bytes_sent} B, received {self.bytes_received} B)"
        )

    def _drain(self, sock: socket.socket):
        # A peer that keeps writing never sends FIN: stop at the deadline
        deadline = time.monotonic() + self.drain_timeout
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.debug(f"Gave up draining {self.peer_label} after {self.drain_timeout}s")
                    return
                sock.settimeout(remaining)
                if not sock.recv(1024):
                    return
        except OSError:
            pass  # Timeout or reset while draining

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
