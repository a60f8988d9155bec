"""
=============================================================================
SESSION: ONE CONNECTION'S READ → HASH → WRITE PIPELINE
=============================================================================

A session owns everything about one client: the read buffer, the open
digest (inside its RecordSplitter) and the output waiting to be written.
Nothing is shared with other sessions.

=============================================================================
STATE MACHINE
=============================================================================

    NEW ──start()──► READING ──read done──► HASHING ──────► WRITING
                        ▲                  (no waiting)         │
                        │                                       │
                        └────────── write done, read was OK ────┤
                                                                │
                                    write done, read was        │
                                    EOF/ERROR, or write failed  ▼
                                                             CLOSED

    READING   one recv_into() is outstanding (reactor watches the socket)
    HASHING   the splitter consumes buffer[:n], appends digest lines
    WRITING   pending output is being sent; partial sends wait for
              writability and continue from the same offset
    CLOSED    connection closed, owner notified, nothing outstanding

Reads and writes strictly alternate, so:

    - at most ONE read and ONE write are ever in flight
    - digest lines leave in exactly the order their records completed
    - the next read never overwrites a buffer still being hashed

=============================================================================
END OF STREAM
=============================================================================

    client sends b"abc" then closes
        read 1: n=3, OK    → splitter holds "abc" (no newline yet)
                             nothing to write → straight back to READING
        read 2: n=0, EOF   → feed(b"", end_of_stream=True)
                             open record flushed → "BA7816BF...\\n"
                             write it, then CLOSED

A read error is treated the same way as EOF: whatever was received is
still answered before the connection is closed.

=============================================================================
CONCURRENCY
=============================================================================

Completions run on whichever pool worker picked them up. One lock per
session guards both handlers. Because the reactor only re-arms the socket
after a handler finished its step, the lock is never contended in normal
operation; it is there for abort() coming from the shutdown thread.

=============================================================================
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from ..config import DEFAULT_BUFFER_SIZE
from ..digest import DigestEngine
from ..protocol.splitter import RecordSplitter
from .connection import Connection
from .reactor import Reactor


logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Session lifecycle states."""
    NEW = "new"
    READING = "reading"
    HASHING = "hashing"
    WRITING = "writing"
    CLOSED = "closed"


class ReadStatus(Enum):
    """How a read completion ended."""
    OK = "ok"        # Got n > 0 bytes, stream continues
    EOF = "eof"      # Client closed its sending side
    ERROR = "error"  # Transport failure (reset, ...)


class Session:
    """
    Per-connection protocol engine.

    Usage:
        session = Session(conn, reactor, digest=create_digest("sha256"),
                          buffer_size=2048, on_close=registry.discard)
        session.start()   # returns at once; the reactor drives the rest
    """

    def __init__(
        self,
        connection: Connection,
        reactor: Reactor,
        digest: Optional[DigestEngine] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        on_close: Optional[Callable[["Session"], None]] = None,
    ):
        if buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        self.connection = connection
        self._reactor = reactor
        self._on_close = on_close

        self._splitter = RecordSplitter(digest)

        # Reused for every read; its size never changes
        self._buffer = bytearray(buffer_size)
        self._view = memoryview(self._buffer)

        self._pending = b""
        self._offset = 0
        self._closing = False
        self._last_status: Optional[ReadStatus] = None

        self._lock = threading.Lock()
        self.state = SessionState.NEW

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def id(self) -> str:
        return self.connection.id

    @property
    def buffer_size(self) -> int:
        return len(self._buffer)

    @property
    def records_emitted(self) -> int:
        return self._splitter.records

    @property
    def bytes_received(self) -> int:
        return self.connection.bytes_received

    @property
    def bytes_sent(self) -> int:
        return self.connection.bytes_sent

    @property
    def closing(self) -> bool:
        return self._closing

    @property
    def pending_output(self) -> bytes:
        """Digest lines not yet (fully) written."""
        return self._pending[self._offset:]

    @property
    def last_status(self) -> Optional[ReadStatus]:
        return self._last_status

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self):
        """Issue the first read."""
        with self._lock:
            if self.state is not SessionState.NEW:
                raise RuntimeError(f"Session already started ({self.state.value})")
            logger.debug(
                f"[{self.id}] Session started for "
                f"{self.connection.client_ip}:{self.connection.client_port}"
            )
            self._read()

    def abort(self):
        """
        Close without further I/O (server shutdown).

        Records still open are NOT flushed: the server is going away and
        the client will see the connection drop.
        """
        with self._lock:
            if self.state is SessionState.CLOSED:
                return
            logger.debug(f"[{self.id}] Session aborted in state {self.state.value}")
            self._closing = True
            self._close()

    # =========================================================================
    # READ SIDE
    # =========================================================================

    def _read(self):
        self.state = SessionState.READING
        self._arm(self._reactor.wait_readable, self.on_readable)

    def on_readable(self):
        """Read completion: the socket has data, EOF or an error."""
        with self._lock:
            if self.state is not SessionState.READING:
                return

            try:
                try:
                    n = self.connection.recv_into(self._view)
                except BlockingIOError:
                    # Spurious readiness, nothing consumed
                    self._read()
                    return
                except OSError as e:
                    logger.debug(f"[{self.id}] Read failed: {e}")
                    self._handle_read(0, ReadStatus.ERROR)
                    return

                self._handle_read(n, ReadStatus.OK if n else ReadStatus.EOF)

            except Exception as e:
                logger.exception(f"[{self.id}] Session error: {e}")
                self._closing = True
                self._close()

    def _handle_read(self, n: int, status: ReadStatus):
        """
        HASHING step: runs to completion before the write is issued.

        Any status other than OK ends the stream: the splitter flushes a
        non-empty open record and no further read is issued.
        """
        self.state = SessionState.HASHING
        self._last_status = status

        end_of_stream = status is not ReadStatus.OK
        if end_of_stream:
            self._closing = True

        self._pending += self._splitter.feed(self._view[:n], end_of_stream=end_of_stream)

        self.state = SessionState.WRITING
        self._write()

    # =========================================================================
    # WRITE SIDE
    # =========================================================================

    def on_writable(self):
        """Write completion: the socket can take more of the pending output."""
        with self._lock:
            if self.state is not SessionState.WRITING:
                return

            try:
                self._write()
            except Exception as e:
                logger.exception(f"[{self.id}] Session error: {e}")
                self._closing = True
                self._close()

    def _write(self):
        """
        Send pending output until done or the kernel buffer is full.

        An empty pending output completes immediately without touching
        the socket.
        """
        while self._offset < len(self._pending):
            try:
                self._offset += self.connection.send(memoryview(self._pending)[self._offset:])
            except BlockingIOError:
                self._arm(self._reactor.wait_writable, self.on_writable)
                return
            except OSError as e:
                logger.warning(f"[{self.id}] Write failed: {e}")
                self._closing = True
                break

        self._write_done()

    def _write_done(self):
        self._pending = b""
        self._offset = 0

        if self._closing:
            self._close()
        else:
            self._read()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _arm(self, wait: Callable, callback: Callable[[], None]):
        """Ask the reactor for one completion; close if it is gone."""
        try:
            wait(self.connection.socket, callback)
        except RuntimeError as e:
            logger.debug(f"[{self.id}] Cannot wait for I/O: {e}")
            self._closing = True
            self._close()

    def _close(self):
        self.state = SessionState.CLOSED
        self.connection.close()

        logger.debug(
            f"[{self.id}] Session closed after {self._splitter.records} records "
            f"({self._last_status.value if self._last_status else 'no reads'})"
        )

        if self._on_close is not None:
            self._on_close(self)

    def __repr__(self) -> str:
        return (
            f"Session(id={self.id!r}, state={self.state.value}, "
            f"records={self.records_emitted})"
        )
