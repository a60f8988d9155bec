"""
pytest configuration and fixtures.
"""

import threading
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hashserver import HashServer, ServerConfig


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class, despite the name

    def __init__(self, server: HashServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> tuple[str, int]:
        return ("127.0.0.1", self.server.address[1])

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


def make_server(**overrides) -> TestServer:
    settings = dict(host="127.0.0.1", port=0, workers=4, log_level="WARNING")
    settings.update(overrides)
    return TestServer(HashServer(ServerConfig(**settings)))


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(host="127.0.0.1", port=0, workers=2, log_level="WARNING")


@pytest.fixture
def server_factory() -> Generator:
    """Start servers with custom settings; all are stopped afterwards."""
    started: list[TestServer] = []

    def factory(**overrides) -> TestServer:
        test_srv = make_server(**overrides)
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield factory

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(server_factory) -> TestServer:
    """A running server with default settings on a free port."""
    return server_factory()
