"""
=============================================================================
SOCKET HANDLE - OWNED DESCRIPTORS WITH GUARANTEED-ONCE RELEASE
=============================================================================

Every socket() and accept() call hands us a file descriptor that the OS
tracks until we close() it. Forgetting to close leaks descriptors; closing
twice can close SOMEONE ELSE'S descriptor (the OS reuses numbers).

SocketHandle owns exactly one socket (or none) and enforces:

    1. release() closes the descriptor AT MOST ONCE
    2. After release, the handle is permanently invalid
    3. Any use after release raises ClosedHandleError

    ┌──────────────┐   release()   ┌──────────────┐
    │    VALID     │ ────────────► │   RELEASED   │ ◄──┐
    │  (owns fd)   │               │  (no fd)     │ ───┘ release() = no-op
    └──────────────┘               └──────────────┘

=============================================================================
NESTED HANDLES: INNERMOST FIRST
=============================================================================

The server holds two handles at once: the listening socket and the accepted
client socket. Nested `with` blocks release them in reverse order of
acquisition:

    with listening_handle:           # acquired 1st, released 2nd
        with accepted_handle:        # acquired 2nd, released 1st
            ...

=============================================================================
"""

import socket
import logging
from typing import Optional

from ..errors import SocketCreateError, ClosedHandleError


logger = logging.getLogger(__name__)


class SocketHandle:
    """
    An owned OS socket with idempotent release.

    Usage:
        with SocketHandle.acquire(socket.AF_INET) as handle:
            handle.socket.connect(("127.0.0.1", 20453))
        # descriptor closed here, even on error
    """

    def __init__(self, sock: Optional[socket.socket] = None, name: str = "socket"):
        self._socket = sock
        self.name = name
        self._fileno = sock.fileno() if sock is not None else -1

    @classmethod
    def acquire(
        cls,
        family: int,
        socktype: int = socket.SOCK_STREAM,
        proto: int = 0,
        name: str = "socket",
    ) -> "SocketHandle":
        """
        Create a new socket and wrap it.

        Raises:
            SocketCreateError: socket() failed (e.g. EMFILE, EAFNOSUPPORT).
        """
        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as e:
            raise SocketCreateError.from_os_error(e, f"cannot create {name}") from e

        handle = cls(sock, name=name)
        logger.debug(f"Acquired {name} (fd {handle._fileno})")
        return handle

    @property
    def closed(self) -> bool:
        return self._socket is None

    @property
    def socket(self) -> socket.socket:
        """The underlying socket. Raises ClosedHandleError after release."""
        if self._socket is None:
            raise ClosedHandleError(f"{self.name} has been released")
        return self._socket

    def fileno(self) -> int:
        return self.socket.fileno()

    def release(self):
        """
        Close the descriptor. Safe to call any number of times.

        The handle is marked released BEFORE close() runs, so a failing
        close() can never lead to a second close of the same number.
        """
        sock, self._socket = self._socket, None
        if sock is None:
            return

        try:
            sock.close()
        except OSError as e:
            logger.warning(f"Closing {self.name} (fd {self._fileno}) failed: {e}")
        else:
            logger.debug(f"Released {self.name} (fd {self._fileno})")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    def __repr__(self) -> str:
        state = "released" if self.closed else f"fd={self._fileno}"
        return f"<SocketHandle {self.name} {state}>"
