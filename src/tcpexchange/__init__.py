"""
=============================================================================
TCPEXCHANGE - A Minimal Request/Response Protocol on Raw Stream Sockets
=============================================================================

Two roles talk over one TCP connection:

    Client                               Server
      │                                    │  bind() / listen()
      │  connect() ◄──── handshake ────►   │  accept()
      │  "hello"  ─────────────────────►   │
      │           ◄─────────────────────   │  "OK"
      │  "END_MESSAGE" ────────────────►   │  (stop, no reply)
      │  close()                           │  close()

Every socket is owned by exactly one object and released exactly once, on
every exit path: success, peer disconnect, or error.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    tcpexchange/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m tcpexchange)
    ├── config.py            # ExchangeConfig dataclass
    ├── errors.py            # ExchangeError hierarchy
    ├── log.py               # Logging setup, wire trace records
    ├── roles.py             # ServerRole, ClientRole, run_exchange()
    ├── core/
    │   ├── resolver.py      # getaddrinfo() wrapper
    │   ├── handle.py        # SocketHandle: owned descriptor
    │   ├── listener.py      # bind / listen / accept
    │   ├── connector.py     # connect
    │   └── session.py       # send / receive / close
    └── protocol/
        ├── message.py       # Wire constants, Message
        └── exchange.py      # Server loop, client exchange

=============================================================================
QUICK START
=============================================================================

    from tcpexchange import ExchangeConfig, run_exchange

    outcome = run_exchange(ExchangeConfig(port=0, family="ipv4"))
    assert outcome.ok
    print(outcome.client_result.reply.text)     # "OK"

=============================================================================
"""

__version__ = "1.0.0"

from .config import ExchangeConfig
from .errors import (
    ExchangeError,
    ResolutionError,
    SocketCreateError,
    BindError,
    ListenError,
    AcceptError,
    ConnectError,
    SendError,
    ReceiveError,
    ClosedHandleError,
)
from .roles import ServerRole, ClientRole, ExchangeOutcome, run_exchange

__all__ = [
    "ExchangeConfig",
    "ExchangeError",
    "ResolutionError",
    "SocketCreateError",
    "BindError",
    "ListenError",
    "AcceptError",
    "ConnectError",
    "SendError",
    "ReceiveError",
    "ClosedHandleError",
    "ServerRole",
    "ClientRole",
    "ExchangeOutcome",
    "run_exchange",
    "__version__",
]
