"""
Unit tests for configuration, errors and log records.
"""

import json
import logging
import pytest

from tcpexchange import ExchangeConfig, BindError, ReceiveError
from tcpexchange.core.resolver import Family
from tcpexchange.log import WireLog, WireLogger


class TestExchangeConfig:
    """Tests for ExchangeConfig."""

    def test_defaults_match_reference_exchange(self):
        config = ExchangeConfig()

        assert config.host is None
        assert config.port == "20453"
        assert config.backlog == 2
        assert config.buffer_size == 64
        assert config.timeout is None
        assert config.greeting == b"hello"
        assert config.family_hint is Family.UNSPEC
        config.validate()

    def test_endpoint(self):
        endpoint = ExchangeConfig(host="localhost", port=1234, family="ipv6").endpoint

        assert endpoint.host == "localhost"
        assert endpoint.port == 1234
        assert endpoint.family is Family.IPV6

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("EXCHANGE_HOST", "127.0.0.1")
        monkeypatch.setenv("EXCHANGE_PORT", "3000")
        monkeypatch.setenv("EXCHANGE_FAMILY", "ipv4")
        monkeypatch.setenv("EXCHANGE_TIMEOUT", "2.5")
        monkeypatch.setenv("EXCHANGE_POLICY", "sequential")

        config = ExchangeConfig.from_env()

        assert config.host == "127.0.0.1"
        assert config.port == "3000"
        assert config.family == "ipv4"
        assert config.timeout == 2.5
        assert config.address_policy == "sequential"

    def test_from_env_defaults(self, monkeypatch):
        for name in ("EXCHANGE_HOST", "EXCHANGE_PORT", "EXCHANGE_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)

        config = ExchangeConfig.from_env()

        assert config.host is None
        assert config.port == "20453"
        assert config.timeout is None

    @pytest.mark.parametrize("overrides", [
        {"family": "ipx"},
        {"port": 70000},
        {"port": "65536"},
        {"port": "-1"},
        {"address_policy": "random"},
        {"backlog": 0},
        {"buffer_size": 1},
        {"timeout": 0},
        {"greeting": b""},
        {"greeting": b"x" * 64},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            ExchangeConfig(**overrides).validate()


class TestErrors:
    """Tests for the error hierarchy."""

    def test_str_includes_step_and_status(self):
        error = BindError("cannot bind 127.0.0.1:20453", status=98)

        assert str(error) == "bind: cannot bind 127.0.0.1:20453 (status 98)"

    def test_from_os_error_keeps_errno(self):
        error = ReceiveError.from_os_error(ConnectionResetError(104, "Connection reset by peer"), "receiving")

        assert error.status == 104
        assert error.step == "recv"
        assert "Connection reset by peer" in str(error)


class TestWireLog:
    """Tests for WireLog records."""

    def test_to_dict(self):
        entry = WireLog(role="server", direction="recv", peer="127.0.0.1:5", payload=b"hello")

        data = entry.to_dict()

        assert data["length"] == 5
        assert data["payload"] == "hello"
        json.dumps(data)

    def test_to_text(self):
        entry = WireLog(role="client", direction="send", peer="127.0.0.1:5", payload=b"OK")

        assert entry.to_text() == "client send 127.0.0.1:5 2B b'OK'"


class TestWireLogger:
    """Tests for WireLogger output formats."""

    def test_text_records(self, caplog):
        caplog.set_level(logging.DEBUG, logger="tcpexchange.wire")

        WireLogger("server").log("recv", "127.0.0.1:5", b"hello")

        assert caplog.records[-1].getMessage() == "server recv 127.0.0.1:5 5B b'hello'"

    def test_json_records(self, caplog):
        caplog.set_level(logging.DEBUG, logger="tcpexchange.wire")

        WireLogger("client", log_format="json").log("send", "127.0.0.1:5", b"OK")

        data = json.loads(caplog.records[-1].getMessage())
        assert data["role"] == "client"
        assert data["payload"] == "OK"

    def test_each_logger_keeps_its_own_format(self, caplog):
        caplog.set_level(logging.DEBUG, logger="tcpexchange.wire")
        text = WireLogger("server")
        WireLogger("client", log_format="json")

        text.log("send", "127.0.0.1:5", b"OK")

        assert caplog.records[-1].getMessage().startswith("server send")

    def test_nothing_emitted_above_debug(self, caplog):
        caplog.set_level(logging.INFO, logger="tcpexchange.wire")

        WireLogger("server").log("recv", "127.0.0.1:5", b"hello")

        assert caplog.records == []

    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError):
            WireLogger("server", log_format="xml")
