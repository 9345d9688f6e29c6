"""
=============================================================================
LOGGING
=============================================================================

Two kinds of log output:

1. LIFECYCLE (logger per module, e.g. "tcpexchange.core.listener")
   - "Listening on 127.0.0.1:20453"
   - "Accepted connection from 127.0.0.1:51512"

2. WIRE TRACE ("tcpexchange.wire")
   - one WireLog record per message sent or received

    Text format:
        server recv 127.0.0.1:51512 5B 'hello'

    JSON format:
        {"role": "server", "direction": "recv", "peer": "127.0.0.1:51512",
         "length": 5, "payload": "hello", "timestamp": "..."}

The wire logger is namespaced so it can be tuned separately:

    logging.getLogger("tcpexchange.wire").setLevel(logging.WARNING)

=============================================================================
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone


logger = logging.getLogger("tcpexchange.wire")

LOG_FORMATS = ("text", "json")


@dataclass
class WireLog:
    """Structured record of one message crossing the wire."""

    role: str
    direction: str
    peer: str
    payload: bytes
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    )

    @property
    def length(self) -> int:
        return len(self.payload)

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "direction": self.direction,
            "peer": self.peer,
            "length": self.length,
            "payload": self.payload.decode("utf-8", errors="replace"),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        return f"{self.role} {self.direction} {self.peer} {self.length}B {self.payload!r}"


class WireLogger:
    """
    Emits one WireLog record per message on the "tcpexchange.wire" logger.

    Usage:
        wire = WireLogger("server", log_format="json")
        wire.log("recv", "127.0.0.1:51512", b"hello")
    """

    def __init__(self, role: str, log_format: str = "text"):
        """
        Args:
            role: "server" or "client", stamped on every record.
            log_format: "text" (one line) or "json" (structured).
        """
        if log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {log_format!r}")
        self.role = role
        self.log_format = log_format

    def log(self, direction: str, peer: str, payload: bytes) -> None:
        """Emit a record at DEBUG. Nothing is built when DEBUG is off."""
        if not logger.isEnabledFor(logging.DEBUG):
            return

        entry = WireLog(role=self.role, direction=direction, peer=peer, payload=payload)
        if self.log_format == "json":
            logger.debug(json.dumps(entry.to_dict()))
        else:
            logger.debug(entry.to_text())


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the package.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("tcpexchange").setLevel(numeric_level)
