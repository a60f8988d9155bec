"""
=============================================================================
MAIN HASH SERVER
=============================================================================

Ties the pieces together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HASH SERVER ARCHITECTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HashServer    │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │SocketServer  │    │   Reactor    │    │  ThreadPool  │        │
    │    │ (accepting)  │    │ (readiness)  │───►│ (completions)│        │
    │    └──────┬───────┘    └──────────────┘    └──────────────┘        │
    │           │ Connection                                              │
    │           ▼                                                         │
    │    ┌──────────────┐                                                 │
    │    │   Session    │  one per client, tracked until it closes        │
    │    └──────────────┘                                                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SHUTDOWN ORDER
=============================================================================

    1. Listener stops accepting
    2. Reactor stops (no new completions get queued)
    3. Live sessions are aborted (sockets closed)
    4. Worker pool drains and stops

=============================================================================
"""

import logging
import threading
from typing import Optional

from .config import ServerConfig
from .core import SocketServer, Connection, Reactor, Session, ThreadPool
from .digest import create_digest


logger = logging.getLogger(__name__)


class HashServer:
    """
    Line-digest TCP server.

    Usage:
        server = HashServer(ServerConfig(port=59999, workers=8))
        server.run()   # blocks until Ctrl+C / SIGTERM / shutdown()
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults if not provided.

        Raises:
            ConfigError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast, before any socket exists

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(workers=self.config.workers)
        self._reactor = Reactor(self._thread_pool)

        self._sessions: set[Session] = set()
        self._sessions_lock = threading.Lock()

        self._running = False

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port); the real port once listening."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_sessions(self) -> int:
        with self._sessions_lock:
            return len(self._sessions)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listener accepts connections."""
        return self._socket_server.wait_until_ready(timeout)

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server (blocking).

        Raises:
            ListenerError: If the port cannot be bound.
        """
        self._setup_logging()

        self._thread_pool.start()
        self._reactor.start()
        self._running = True

        logger.info(
            f"Starting hash server on {self.config.host}:{self.config.port} "
            f"({self.config.algorithm}, {self.config.buffer_size}-byte reads, "
            f"{self.config.workers} workers)"
        )

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask a running server to stop; run() returns shortly after."""
        self._socket_server.shutdown()

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("hashserver").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False

        self._reactor.stop()

        with self._sessions_lock:
            sessions = list(self._sessions)
        for session in sessions:
            session.abort()

        self._thread_pool.shutdown(wait=True, timeout=5.0)

        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Create, register and start a Session for a new connection."""
        session = Session(
            conn,
            self._reactor,
            digest=create_digest(self.config.algorithm),
            buffer_size=self.config.buffer_size,
            on_close=self._session_closed,
        )

        with self._sessions_lock:
            self._sessions.add(session)

        session.start()

    def _session_closed(self, session: Session):
        with self._sessions_lock:
            self._sessions.discard(session)
