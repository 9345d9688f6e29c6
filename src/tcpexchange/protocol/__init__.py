"""
Protocol layer: wire constants, the Message type, and the two message loops.
"""

from .message import (
    Message,
    DEFAULT_PORT,
    GREETING,
    ACKNOWLEDGEMENT,
    END_MESSAGE,
    RECEIVE_CAPACITY,
    BACKLOG,
)
from .exchange import (
    EndReason,
    ExchangeResult,
    ClientResult,
    serve_messages,
    client_exchange,
)

__all__ = [
    "Message",
    "DEFAULT_PORT",
    "GREETING",
    "ACKNOWLEDGEMENT",
    "END_MESSAGE",
    "RECEIVE_CAPACITY",
    "BACKLOG",
    "EndReason",
    "ExchangeResult",
    "ClientResult",
    "serve_messages",
    "client_exchange",
]
