"""
pytest configuration and fixtures.
"""

import os
import socket
import threading
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tcpexchange import ExchangeConfig, ServerRole


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def config() -> ExchangeConfig:
    """IPv4 loopback, OS-assigned port, bounded waits."""
    return ExchangeConfig(
        host=None,
        port=0,
        family="ipv4",
        timeout=5.0,
        drain_timeout=0.2,
    )


def count_open_descriptors() -> Optional[int]:
    """Number of open descriptors in this process, None if unknown."""
    try:
        return len(os.listdir("/proc/self/fd"))
    except OSError:
        return None


@pytest.fixture
def open_descriptors():
    """Callable returning the current descriptor count; skips if unsupported."""
    if count_open_descriptors() is None:
        pytest.skip("descriptor counting needs /proc/self/fd")
    return count_open_descriptors


class BackgroundServer:
    """ServerRole running in a background thread."""

    def __init__(self, config: ExchangeConfig):
        self.role = ServerRole(config)
        self.result = None
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    def _run(self):
        try:
            self.result = self.role.run()
        except Exception as e:
            self.error = e

    def start(self) -> "BackgroundServer":
        """Start the role and wait until it is listening."""
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

        if not self.role.wait_until_ready(timeout=5.0):
            raise RuntimeError(f"Server failed to start: {self.error}")
        return self

    @property
    def port(self) -> int:
        return self.role.address[1]

    def connect(self) -> socket.socket:
        """Open a raw client socket to the server."""
        sock = socket.create_connection(("127.0.0.1", self.port), timeout=5.0)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return sock

    def join(self, timeout: float = 5.0):
        self._thread.join(timeout)
        assert not self._thread.is_alive(), "server role did not finish"


@pytest.fixture
def background_server(config: ExchangeConfig) -> Generator[BackgroundServer, None, None]:
    """A started server role on a free IPv4 loopback port."""
    server = BackgroundServer(config).start()
    yield server
    if server._thread.is_alive():
        # Unblock accept()/recv() so the thread can finish
        try:
            server.connect().close()
        except OSError:
            pass
        server._thread.join(5.0)
