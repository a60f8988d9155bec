"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

The listener: binds, listens and accepts. Every accepted client socket is
wrapped in a Connection and handed to a callback; what happens to it
afterwards is none of this module's business.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. socket()    Create a socket file descriptor
    2. bind()      Associate the socket with an IP:PORT
    3. listen()    OS starts queueing incoming connections
    4. accept()    Returns a NEW socket for each client
    5. close()     Release the listening socket

=============================================================================
ERROR POLICY
=============================================================================

    bind()/listen() fails   → ListenerError, fatal (port taken, no rights)
    accept() fails          → logged, loop keeps going (e.g. EMFILE when
                              out of file descriptors is usually temporary)

=============================================================================
SIGNAL HANDLING FOR GRACEFUL SHUTDOWN
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (kill, docker stop) call shutdown(). Python
only allows installing signal handlers from the main thread, so a server
started from another thread (tests, embedding) skips this step.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable

from ..config import ServerConfig
from ..errors import ListenerError
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    start(handler)                                                    │
    │        ├──► _create_socket()   SO_REUSEADDR, TCP_NODELAY            │
    │        ├──► bind() + listen()  (ListenerError on failure)           │
    │        ├──► _setup_signals()   main thread only                     │
    │        └──► _accept_loop()     blocks until shutdown()               │
    │                 └──► handler(Connection(...))                        │
    │                                                                      │
    │    shutdown()                  flips _running, loop exits ≤ 1s      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound_address: Optional[tuple[str, int]] = None

        self._ready_event = threading.Event()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._running

    @property
    def address(self) -> tuple[str, int]:
        """
        The address actually bound.

        Differs from the config when port 0 asked the OS for a free port.
        """
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        """Create and configure the listening socket."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind right after a restart instead of waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Digest lines are small and should leave immediately; accepted
        # sockets inherit this on Linux
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up at least once a second to check _running
        sock.settimeout(1.0)

        return sock

    def _setup_signals(self):
        """Install SIGTERM/SIGINT handlers that trigger shutdown()."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread, skipping signal handlers")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and accept connections until shutdown() is called.

        Args:
            connection_handler: Receives each new Connection. Must not block
                                for long: the accept loop waits for it.

        Raises:
            ListenerError: If the address cannot be bound or listened on.
        """
        self._socket = self._create_socket()
        address = (self.config.host, self.config.port)

        try:
            self._socket.bind(address)
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {address[0]}:{address[1]}: {e}")
            self._socket.close()
            self._socket = None
            raise ListenerError(f"Cannot listen on {address[0]}:{address[1]}: {e}", address) from e

        self._bound_address = self._socket.getsockname()[:2]
        self._running = True

        self._setup_signals()

        logger.info(f"Server listening on {self.address[0]}:{self.address[1]}")
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        """Accept connections and hand them off until _running goes False."""
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                # Normal: lets us look at self._running once a second
                continue
            except OSError as e:
                if not self._running:
                    break
                logger.error(f"Accept error: {e}")
                continue

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            try:
                conn = Connection(socket=client_socket, address=client_address[:2])
            except OSError as e:
                logger.warning(f"Dropping connection from {client_address[0]}: {e}")
                client_socket.close()
                continue

            connection_handler(conn)

    def shutdown(self):
        """
        Initiate graceful shutdown.

        Can be called from a signal handler or any thread; idempotent.
        """
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        """Clean up resources on shutdown."""
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass  # Already closed
            self._socket = None

        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the socket is listening.

        Returns:
            True once listening, False on timeout.
        """
        return self._ready_event.wait(timeout)
