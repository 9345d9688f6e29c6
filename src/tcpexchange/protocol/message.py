"""
=============================================================================
WIRE MESSAGES
=============================================================================

The wire carries raw bytes with no length prefix. Three literal payloads
make up the whole protocol:

    ┌──────────────┬─────────┬─────────────────────────────────────────────┐
    │ Payload      │ Bytes   │ Meaning                                     │
    ├──────────────┼─────────┼─────────────────────────────────────────────┤
    │ hello        │ 5       │ Client's opening message                    │
    │ OK           │ 2       │ Server acknowledgement, one per message     │
    │ END_MESSAGE  │ 11      │ Sentinel: ends the exchange, never echoed   │
    └──────────────┴─────────┴─────────────────────────────────────────────┘

=============================================================================
"""

from dataclasses import dataclass


DEFAULT_PORT = "20453"

GREETING = b"hello"
ACKNOWLEDGEMENT = b"OK"
END_MESSAGE = b"END_MESSAGE"

# 63 usable payload bytes + 1 terminator
RECEIVE_CAPACITY = 64

# Pending-connection queue depth; one peer is expected
BACKLOG = 2


@dataclass(frozen=True)
class Message:
    """
    The result of one receive: the exact bytes read and their count.

    A zero length is orderly shutdown by the peer, not an empty message.
    """

    payload: bytes
    length: int

    @property
    def is_shutdown(self) -> bool:
        return self.length == 0

    @property
    def is_sentinel(self) -> bool:
        """True only when EXACTLY the sentinel bytes were received."""
        return self.length == len(END_MESSAGE) and self.payload == END_MESSAGE

    @property
    def text(self) -> str:
        return self.payload.decode("utf-8", errors="replace")
