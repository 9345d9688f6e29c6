"""
=============================================================================
CORE SOCKET COMPONENTS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  RESOLVER      getaddrinfo(): (host, port, family) → addresses      │
    ├─────────────────────────────────────────────────────────────────────┤
    │  HANDLE        one owned descriptor, released at most once          │
    ├──────────────────────────────────┬──────────────────────────────────┤
    │  LISTENER (server)               │  CONNECTOR (client)              │
    │  bind → listen → accept          │  connect                         │
    └──────────────────┬───────────────┴──────────────┬───────────────────┘
                       │                              │
                       ▼                              ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  SESSION       connected socket: send / receive / close             │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .resolver import Family, Endpoint, ResolvedAddress, resolve, resolve_endpoint
from .handle import SocketHandle
from .session import Session, SessionState
from .listener import Listener, ListenerState
from .connector import Connector

__all__ = [
    "Family",
    "Endpoint",
    "ResolvedAddress",
    "resolve",
    "resolve_endpoint",
    "SocketHandle",
    "Session",
    "SessionState",
    "Listener",
    "ListenerState",
    "Connector",
]
