"""
=============================================================================
REACTOR: THE SHARED I/O CONTEXT
=============================================================================

One selector thread watches every client socket. When a socket becomes
ready, the matching completion is handed to the worker pool. No worker
ever blocks in recv() or send(), and no connection owns a thread.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       Reactor Thread                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   while running:                                                     │
    │       apply queued registrations        (from any thread)            │
    │       for sock ready in select():                                    │
    │           unregister(sock)              one-shot interest            │
    │           pool.submit(callback)         some worker runs it          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

ONE-SHOT INTEREST
─────────────────

    session: wait_readable(sock, on_readable)
    reactor: sock readable → unregister → submit(on_readable)
    worker:  on_readable() → recv → hash → send ...
             ... → wait_readable(sock, on_readable)     re-arm

A socket is registered at most once at a time. Since a session only asks
for its next read after its write finished (and vice versa), this is what
keeps reads and writes from ever overlapping.

THREAD SAFETY
─────────────

selectors are not thread-safe. Workers never touch the selector: they
append to a locked list and poke a socketpair, which wakes select() so
the reactor thread applies the change itself.

=============================================================================
"""

import logging
import selectors
import socket
import threading
from typing import Callable, Optional

from .thread_pool import ThreadPool


logger = logging.getLogger(__name__)


Completion = Callable[[], None]


class Reactor:
    """
    Selector loop that turns socket readiness into pool tasks.

    Usage:
        reactor = Reactor(pool)
        reactor.start()                       # spawns the loop thread
        reactor.wait_readable(sock, handler)  # handler() runs on a worker
        reactor.stop()
    """

    def __init__(self, pool: ThreadPool, poll_interval: float = 0.5):
        """
        Args:
            pool: Where completions are executed.
            poll_interval: Max seconds select() sleeps before re-checking
                           the running flag.
        """
        self._pool = pool
        self._poll_interval = poll_interval

        self._selector = selectors.DefaultSelector()
        self._lock = threading.Lock()
        self._requests: list[tuple[socket.socket, int, Completion]] = []

        # Writing a byte to _wake_w interrupts select()
        self._wake_r, self._wake_w = socket.socketpair()
        self._wake_r.setblocking(False)
        self._wake_w.setblocking(False)
        self._selector.register(self._wake_r, selectors.EVENT_READ, None)

        self._thread: Optional[threading.Thread] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        """Sockets currently waiting for readiness (queued included)."""
        with self._lock:
            queued = len(self._requests)
        # The wakeup socket is always registered
        return len(self._selector.get_map()) - 1 + queued

    # =========================================================================
    # REGISTRATION (any thread)
    # =========================================================================

    def wait_readable(self, sock: socket.socket, callback: Completion):
        """Run callback on the pool once sock has data (or EOF/error)."""
        self._request(sock, selectors.EVENT_READ, callback)

    def wait_writable(self, sock: socket.socket, callback: Completion):
        """Run callback on the pool once sock can accept more output."""
        self._request(sock, selectors.EVENT_WRITE, callback)

    def _request(self, sock: socket.socket, events: int, callback: Completion):
        with self._lock:
            if not self._running:
                raise RuntimeError("Reactor is not running")
            self._requests.append((sock, events, callback))
        self._wake()

    def _wake(self):
        try:
            self._wake_w.send(b"\0")
        except BlockingIOError:
            pass  # Buffer full: a wakeup is already pending
        except OSError:
            pass  # Loop already closed the socketpair

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self):
        """Start the reactor loop in a background thread."""
        with self._lock:
            if self._running:
                return
            self._running = True

        self._thread = threading.Thread(target=self._run, name="Reactor", daemon=True)
        self._thread.start()
        logger.debug("Reactor started")

    def stop(self, timeout: float = 5.0):
        """
        Stop the loop and release the selector.

        Registrations still pending are dropped; their owners are expected
        to be closed by whoever owns them (the server aborts its sessions).
        """
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._requests.clear()
        self._wake()

        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.debug("Reactor stopped")

    # =========================================================================
    # LOOP (reactor thread only)
    # =========================================================================

    def _run(self):
        try:
            while self._running:
                self._apply_requests()
                for key, _mask in self._selector.select(self._poll_interval):
                    if key.data is None:
                        self._drain_wakeups()
                        continue
                    self._selector.unregister(key.fileobj)
                    self._dispatch(key.data)
        except Exception as e:
            logger.exception(f"Reactor loop crashed: {e}")
            raise
        finally:
            self._running = False
            self._close()

    def _apply_requests(self):
        with self._lock:
            requests, self._requests = self._requests, []

        for sock, events, callback in requests:
            try:
                self._selector.register(sock, events, callback)
            except (ValueError, OSError) as e:
                # Socket closed before we got to it: let the owner find out
                # on its own recv()/send() and run its normal error path.
                logger.debug(f"Immediate completion, cannot watch socket: {e}")
                self._dispatch(callback)
            except KeyError:
                logger.error(f"Socket registered twice: {sock!r}")

    def _dispatch(self, callback: Completion):
        try:
            self._pool.submit(callback)
        except RuntimeError as e:
            logger.warning(f"Dropping completion, pool unavailable: {e}")

    def _drain_wakeups(self):
        try:
            while self._wake_r.recv(4096):
                pass
        except BlockingIOError:
            pass

    def _close(self):
        for key in list(self._selector.get_map().values()):
            self._selector.unregister(key.fileobj)
        self._selector.close()
        self._wake_r.close()
        self._wake_w.close()
