"""
=============================================================================
ADDRESS RESOLUTION
=============================================================================

Before we can bind() or connect(), we need a CONCRETE socket address.
getaddrinfo() turns a logical endpoint (host, port, family) into a list of
protocol-ready addresses.

=============================================================================
WHY A LIST?
=============================================================================

One name can map to many addresses:

    getaddrinfo(None, "20453", AF_UNSPEC, SOCK_STREAM)

        ┌────────────────────────────────────────────┐
        │  IPv6: ::1@20453                           │  ◄── usually first
        │  IPv4: 127.0.0.1@20453                     │
        └────────────────────────────────────────────┘

The resolver decides the ORDER (see /etc/gai.conf on Linux). Callers that
want robustness try each entry in turn; this package uses the first entry by
default and offers a "sequential" policy that walks the list.

HOST = None:
────────────

    passive=False  →  loopback (::1, 127.0.0.1)    good for connect()
    passive=True   →  wildcard (::, 0.0.0.0)       good for bind()

=============================================================================
"""

import re
import socket
import logging
from enum import Enum
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from ..errors import ResolutionError


logger = logging.getLogger(__name__)


class Family(Enum):
    """Address family hint for resolution."""

    UNSPEC = socket.AF_UNSPEC
    IPV4 = socket.AF_INET
    IPV6 = socket.AF_INET6

    @classmethod
    def from_name(cls, name: str) -> "Family":
        """Parse 'unspec', 'ipv4' or 'ipv6' (case-insensitive)."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown address family: {name!r}") from None


@dataclass(frozen=True)
class Endpoint:
    """
    Logical description of a network destination, prior to resolution.

    Transport is always a byte stream (TCP).
    """

    host: Optional[str]
    port: Union[str, int]
    family: Family = Family.UNSPEC
    passive: bool = False


@dataclass(frozen=True)
class ResolvedAddress:
    """One getaddrinfo() entry, usable directly for socket()/bind()/connect()."""

    family: int
    socktype: int
    proto: int
    sockaddr: Tuple

    @property
    def host(self) -> str:
        return self.sockaddr[0]

    @property
    def port(self) -> int:
        return self.sockaddr[1]

    @property
    def label(self) -> str:
        return "IPv6" if self.family == socket.AF_INET6 else "IPv4"

    def describe(self) -> str:
        """Human-readable form, e.g. ``IPv4: 127.0.0.1@20453``."""
        return f"{self.label}: {self.host}@{self.port}"


MAX_PORT = 65535

_NUMERIC_PORT = re.compile(r"^\s*[+-]?\d+\s*$")


def numeric_port(port: Union[str, int]) -> Optional[int]:
    """
    The port as an int if it is numeric ("20453", 20453, "-1"), else None.

    Service names like "http" are left for getaddrinfo to look up.
    """
    if isinstance(port, int):
        return port
    if isinstance(port, str) and _NUMERIC_PORT.match(port):
        return int(port)
    return None


def resolve(
    host: Optional[str],
    port: Union[str, int],
    family: Family = Family.UNSPEC,
    passive: bool = False,
) -> List[ResolvedAddress]:
    """
    Resolve (host, port, family) into an ordered list of stream addresses.

    Args:
        host: Host name or literal address. None = this machine.
        port: Numeric port or service name ("20453", 20453, "http").
        family: Family hint. UNSPEC lets the resolver return IPv4 and IPv6.
        passive: Request wildcard addresses for binding when host is None.

    Returns:
        Non-empty list, in the order the resolver returned them.

    Raises:
        ResolutionError: The lookup failed (status = getaddrinfo code) or
                         produced no stream addresses.
                         A numeric port outside 0..65535 fails with
                         status EAI_SERVICE before any lookup.
    """
    number = numeric_port(port)
    if number is not None and not 0 <= number <= MAX_PORT:
        # getaddrinfo would silently truncate to 16 bits
        raise ResolutionError(
            f"port out of range 0..{MAX_PORT}: {port}", status=socket.EAI_SERVICE
        )

    flags = socket.AI_PASSIVE if passive else 0
    try:
        infos = socket.getaddrinfo(
            host, port, family.value, socket.SOCK_STREAM, socket.IPPROTO_TCP, flags
        )
    except socket.gaierror as e:
        raise ResolutionError(
            f"cannot resolve {host or '<local>'}:{port}: {e.strerror}",
            status=e.errno,
        ) from e
    except (TypeError, OSError) as e:
        # e.g. a port that is neither str nor int
        raise ResolutionError(f"cannot resolve {host or '<local>'}:{port!r}: {e}") from e

    addresses = [
        ResolvedAddress(family=af, socktype=socktype, proto=proto, sockaddr=sockaddr)
        for af, socktype, proto, _canonname, sockaddr in infos
    ]
    if not addresses:
        raise ResolutionError(f"no stream addresses for {host or '<local>'}:{port}")

    return addresses


def resolve_endpoint(endpoint: Endpoint) -> List[ResolvedAddress]:
    """Resolve an Endpoint. See resolve()."""
    return resolve(endpoint.host, endpoint.port, endpoint.family, endpoint.passive)


def describe_addresses(addresses: List[ResolvedAddress]) -> None:
    """Log every resolved address at DEBUG, in resolver order."""
    for address in addresses:
        logger.debug(f"  {address.describe()}")
