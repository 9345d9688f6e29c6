"""
=============================================================================
THE MESSAGE LOOPS
=============================================================================

SERVER LOOP:
────────────

    ┌──────────────────────────┐
    │ receive()                │ ◄─────────────────────┐
    └────────────┬─────────────┘                       │
                 │                                     │
        length == 0? ──── yes ──► stop (PEER_SHUTDOWN) │
                 │ no                                  │
        == END_MESSAGE? ─ yes ──► stop (SENTINEL)      │
                 │ no                                  │
    ┌────────────▼─────────────┐                       │
    │ send("OK")               │ ──────────────────────┘
    └──────────────────────────┘

    ReceiveError / SendError propagate to the server role.

CLIENT EXCHANGE (fixed sequence):
─────────────────────────────────

    send("hello") → receive() → send("END_MESSAGE") → done

The client does not check that the reply is "OK", and it does not wait for
anything after the sentinel.

=============================================================================
"""

import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple

from .message import Message, GREETING, ACKNOWLEDGEMENT, END_MESSAGE
from ..log import WireLogger

if TYPE_CHECKING:
    from ..core.session import Session


logger = logging.getLogger(__name__)


class EndReason(Enum):
    """Why the server loop stopped. Neither is an error."""

    SENTINEL = "sentinel"
    PEER_SHUTDOWN = "peer_shutdown"


@dataclass
class ExchangeResult:
    """Outcome of the server loop."""

    ended_by: EndReason
    messages: List[bytes] = field(default_factory=list)
    acks_sent: int = 0
    peer: Optional[Tuple] = None


@dataclass
class ClientResult:
    """Outcome of the client exchange."""

    reply: Message
    sent: List[bytes] = field(default_factory=list)


def serve_messages(session: "Session", wire: Optional[WireLogger] = None) -> ExchangeResult:
    """
    Run the server side of the exchange on a connected session.

    Acknowledges every ordinary message with "OK" until the peer sends the
    sentinel or shuts down.

    Args:
        session: Accepted session. Left open; the caller closes it.
        wire: Wire trace logger. Defaults to text records for "server".

    Raises:
        ReceiveError: A receive failed.
        SendError: The acknowledgement could not be written in full.
    """
    if wire is None:
        wire = WireLogger("server")
    result = ExchangeResult(ended_by=EndReason.PEER_SHUTDOWN, peer=session.peer)

    while True:
        message = session.receive()

        if message.is_shutdown:
            logger.debug(f"Peer {session.peer_label} shut down")
            result.ended_by = EndReason.PEER_SHUTDOWN
            break

        wire.log("recv", session.peer_label, message.payload)

        if message.is_sentinel:
            result.ended_by = EndReason.SENTINEL
            break

        result.messages.append(message.payload)
        session.send(ACKNOWLEDGEMENT)
        result.acks_sent += 1
        wire.log("send", session.peer_label, ACKNOWLEDGEMENT)

    logger.info(
        f"Exchange with {session.peer_label} finished: {result.ended_by.value}, "
        f"{len(result.messages)} message(s), {result.acks_sent} ack(s)"
    )
    return result


def client_exchange(
    session: "Session",
    greeting: bytes = GREETING,
    wire: Optional[WireLogger] = None,
) -> ClientResult:
    """
    Run the client side of the exchange on a connected session.

    Raises:
        SendError: The greeting or the sentinel could not be written in full.
        ReceiveError: The reply could not be read.
    """
    if wire is None:
        wire = WireLogger("client")

    session.send(greeting)
    wire.log("send", session.peer_label, greeting)

    reply = session.receive()
    if reply.is_shutdown:
        logger.debug(f"Server {session.peer_label} closed before replying")
    else:
        wire.log("recv", session.peer_label, reply.payload)

    session.send(END_MESSAGE)
    wire.log("send", session.peer_label, END_MESSAGE)

    return ClientResult(reply=reply, sent=[greeting, END_MESSAGE])
