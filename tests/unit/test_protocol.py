"""
Unit tests for the message loops, driven by a scripted session.
"""

import pytest

from tcpexchange.errors import ReceiveError
from tcpexchange.protocol import (
    Message,
    EndReason,
    GREETING,
    ACKNOWLEDGEMENT,
    END_MESSAGE,
    serve_messages,
    client_exchange,
)


class ScriptedSession:
    """Session stand-in: receive() replays a script, send() records."""

    peer = ("127.0.0.1", 50000)
    peer_label = "127.0.0.1:50000"

    def __init__(self, incoming):
        self.incoming = list(incoming)
        self.sent = []

    def receive(self, max_len=None):
        item = self.incoming.pop(0)
        if isinstance(item, Exception):
            raise item
        return Message(payload=item, length=len(item))

    def send(self, data: bytes) -> int:
        self.sent.append(data)
        return len(data)


class TestMessage:
    """Tests for Message."""

    def test_sentinel_requires_exact_bytes(self):
        assert Message(END_MESSAGE, 11).is_sentinel
        assert not Message(b"END_MESSAGE!", 12).is_sentinel
        assert not Message(b"END_MESS", 8).is_sentinel

    def test_shutdown(self):
        assert Message(b"", 0).is_shutdown
        assert not Message(b"OK", 2).is_shutdown

    def test_text(self):
        assert Message(b"OK", 2).text == "OK"


class TestServeMessages:
    """Tests for the server loop."""

    def test_hello_then_sentinel(self):
        session = ScriptedSession([GREETING, END_MESSAGE])

        result = serve_messages(session)

        assert session.sent == [ACKNOWLEDGEMENT]
        assert result.ended_by == EndReason.SENTINEL
        assert result.messages == [GREETING]
        assert result.acks_sent == 1

    def test_sentinel_first_sends_nothing(self):
        session = ScriptedSession([END_MESSAGE])

        result = serve_messages(session)

        assert session.sent == []
        assert result.ended_by == EndReason.SENTINEL
        assert result.acks_sent == 0

    def test_every_message_is_acknowledged(self):
        session = ScriptedSession([b"one", b"two", b"three", END_MESSAGE])

        result = serve_messages(session)

        assert session.sent == [ACKNOWLEDGEMENT] * 3
        assert result.messages == [b"one", b"two", b"three"]

    def test_peer_shutdown_ends_loop(self):
        session = ScriptedSession([GREETING, b""])

        result = serve_messages(session)

        assert result.ended_by == EndReason.PEER_SHUTDOWN
        assert session.sent == [ACKNOWLEDGEMENT]

    def test_receive_error_propagates(self):
        session = ScriptedSession([GREETING, ReceiveError("connection reset", status=104)])

        with pytest.raises(ReceiveError):
            serve_messages(session)


class TestClientExchange:
    """Tests for the client sequence."""

    def test_fixed_sequence(self):
        session = ScriptedSession([ACKNOWLEDGEMENT])

        result = client_exchange(session)

        assert session.sent == [GREETING, END_MESSAGE]
        assert result.reply.payload == ACKNOWLEDGEMENT
        assert result.sent == [GREETING, END_MESSAGE]

    def test_reply_is_not_validated(self):
        session = ScriptedSession([b"NOPE"])

        result = client_exchange(session)

        assert result.reply.payload == b"NOPE"
        assert session.sent[-1] == END_MESSAGE

    def test_custom_greeting(self):
        session = ScriptedSession([ACKNOWLEDGEMENT])

        client_exchange(session, b"ping")

        assert session.sent == [b"ping", END_MESSAGE]
