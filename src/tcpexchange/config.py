"""
=============================================================================
EXCHANGE CONFIGURATION
=============================================================================

One dataclass holds every knob for both roles. The defaults reproduce the
reference exchange exactly:

    host            None        (this machine)
    port            "20453"
    family          "unspec"    (IPv4 or IPv6, resolver decides)
    backlog         2
    buffer_size     64          (63 payload bytes + terminator)
    timeout         None        (blocking calls wait forever)
    address_policy  "first"     (use the first resolved address only)

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m tcpexchange demo --port 3000                     │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── EXCHANGE_PORT=3000 python -m tcpexchange demo              │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional, Union

from .core.resolver import MAX_PORT, Endpoint, Family, numeric_port
from .log import LOG_FORMATS
from .protocol.message import DEFAULT_PORT, GREETING, RECEIVE_CAPACITY, BACKLOG


ADDRESS_POLICIES = ("first", "sequential")


@dataclass
class ExchangeConfig:
    """
    Configuration shared by ServerRole and ClientRole.

    =========================================================================
    ADDRESS POLICY
    =========================================================================

    first:       bind/connect the FIRST resolved address, one attempt.
                 Simple, but not a guarantee of connectivity: if the
                 resolver lists ::1 first and IPv6 is unavailable, it fails.

    sequential:  walk the resolved list in order and use the first address
                 that binds/connects.

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: Optional[str] = None
    """Host to bind/connect. None = this machine."""

    port: Union[str, int] = DEFAULT_PORT
    """Numeric port or service name. 0 lets the OS pick (server only)."""

    family: str = "unspec"
    """'unspec', 'ipv4' or 'ipv6'."""

    passive: bool = False
    """Server binds the wildcard address instead of loopback when host is None."""

    backlog: int = BACKLOG

    buffer_size: int = RECEIVE_CAPACITY
    """Receive buffer size in bytes, terminator included."""

    timeout: Optional[float] = None
    """
    Socket timeout in seconds for accept/connect/send/receive.
    None = block indefinitely.
    """

    drain_timeout: float = 0.5
    """How long close() waits for the peer's FIN. 0 disables draining."""

    address_policy: str = "first"

    reuse_address: bool = True
    nodelay: bool = True

    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL
    # ─────────────────────────────────────────────────────────────────────

    greeting: bytes = GREETING
    """Client's opening message."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def family_hint(self) -> Family:
        return Family.from_name(self.family)

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(
            host=self.host,
            port=self.port,
            family=self.family_hint,
            passive=self.passive,
        )

    @classmethod
    def from_env(cls) -> "ExchangeConfig":
        """
        Create configuration from environment variables.

        EXCHANGE_HOST        Host (default: unset = this machine)
        EXCHANGE_PORT        Port or service (default: 20453)
        EXCHANGE_FAMILY      unspec | ipv4 | ipv6 (default: unspec)
        EXCHANGE_TIMEOUT     Socket timeout in seconds (default: none)
        EXCHANGE_POLICY      first | sequential (default: first)
        EXCHANGE_LOG_LEVEL   Logging level (default: INFO)
        EXCHANGE_LOG_FORMAT  text | json (default: text)
        """
        timeout = os.getenv("EXCHANGE_TIMEOUT")
        return cls(
            host=os.getenv("EXCHANGE_HOST") or None,
            port=os.getenv("EXCHANGE_PORT", DEFAULT_PORT),
            family=os.getenv("EXCHANGE_FAMILY", "unspec"),
            timeout=float(timeout) if timeout else None,
            address_policy=os.getenv("EXCHANGE_POLICY", "first"),
            log_level=os.getenv("EXCHANGE_LOG_LEVEL", "INFO"),
            log_format=os.getenv("EXCHANGE_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values. Fail fast at startup.

        Raises:
            ValueError: On the first invalid value.
        """
        Family.from_name(self.family)

        port = numeric_port(self.port)
        if port is not None and not 0 <= port <= MAX_PORT:
            raise ValueError(f"port must be in 0..{MAX_PORT}, got {self.port}")

        if self.address_policy not in ADDRESS_POLICIES:
            raise ValueError(
                f"address_policy must be one of {ADDRESS_POLICIES}, got {self.address_policy!r}"
            )

        if self.backlog < 1:
            raise ValueError(f"backlog must be >= 1, got {self.backlog}")

        if self.buffer_size < 2:
            raise ValueError(f"buffer_size must be >= 2, got {self.buffer_size}")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.drain_timeout < 0:
            raise ValueError("drain_timeout must be >= 0")

        if not self.greeting:
            raise ValueError("greeting must not be empty")

        if len(self.greeting) >= self.buffer_size:
            raise ValueError(f"greeting must be shorter than buffer_size ({self.buffer_size})")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {self.log_format!r}")
