"""
=============================================================================
EXCHANGE ERRORS
=============================================================================

Every failure in the exchange is terminal for the role that hit it. Each
error type names the STEP that failed and carries the underlying OS status
(an errno, or the getaddrinfo() status for resolution failures).

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR HIERARCHY                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ExchangeError                                                      │
    │   ├── ResolutionError     getaddrinfo() failed                       │
    │   ├── SocketCreateError   socket() failed                            │
    │   ├── BindError           bind() failed (address in use, ...)        │
    │   ├── ListenError         listen() failed                            │
    │   ├── AcceptError         accept() failed                            │
    │   ├── ConnectError        connect() failed (refused, unreachable)    │
    │   ├── SendError           send() failed or wrote too few bytes       │
    │   ├── ReceiveError        recv() failed (NOT orderly shutdown!)      │
    │   └── ClosedHandleError   socket used after release                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

ORDERLY SHUTDOWN IS NOT AN ERROR:
─────────────────────────────────

    recv() → b""     The peer closed its side. Stop reading, no exception.
    recv() → OSError Something broke. Raise ReceiveError.

=============================================================================
"""

from typing import Optional


class ExchangeError(Exception):
    """
    Base class for all exchange failures.

    Attributes:
        step: Name of the failing step ("bind", "recv", ...).
        status: OS errno or lookup status code, None when not applicable.
    """

    step = "exchange"

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    def __str__(self) -> str:
        message = super().__str__()
        if self.status is None:
            return f"{self.step}: {message}"
        return f"{self.step}: {message} (status {self.status})"

    @classmethod
    def from_os_error(cls, err: OSError, context: str) -> "ExchangeError":
        """Build an error of this type from an OSError, keeping its errno."""
        reason = err.strerror or str(err) or type(err).__name__
        return cls(f"{context}: {reason}", status=err.errno)


class ResolutionError(ExchangeError):
    """Name/service lookup failed. ``status`` is the getaddrinfo() code."""

    step = "getaddrinfo"


class SocketCreateError(ExchangeError):
    step = "socket"


class BindError(ExchangeError):
    step = "bind"


class ListenError(ExchangeError):
    step = "listen"


class AcceptError(ExchangeError):
    step = "accept"


class ConnectError(ExchangeError):
    step = "connect"


class SendError(ExchangeError):
    """Write failed, or fewer bytes were written than requested."""

    step = "send"


class ReceiveError(ExchangeError):
    """Read failed. A zero-length read is orderly shutdown, never this."""

    step = "recv"


class ClosedHandleError(ExchangeError):
    """An operation was attempted on a released SocketHandle."""

    step = "closed"
