"""
=============================================================================
CONNECTION
=============================================================================

Thin wrapper around an accepted client socket.

The socket is switched to NON-BLOCKING mode. Nobody ever waits inside
recv() or send(): the session only calls them after the reactor said the
socket is ready, and a BlockingIOError just means "ask the reactor again".

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

    Client sends:
        send(b"1\\r\\n22\\r\\n")
        send(b"333\\r\\n")

    Server might receive ANY of these:
        recv() → b"1\\r\\n22\\r\\n333\\r\\n"     (everything combined)
        recv() → b"1\\r"                   (partial record)
        recv() → b"\\n22\\r\\n33"             (end of one, start of another)

With a 1-byte read buffer, every recv() returns a single byte. Finding
record boundaries is the splitter's job; this class only moves bytes and
keeps count of them.

=============================================================================
"""

import socket
import time
import logging
from dataclasses import dataclass, field
from typing import Union
import uuid


logger = logging.getLogger(__name__)


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket (non-blocking after construction).
        address: Client's (ip, port) tuple.
        id: Unique connection identifier (for logging).
        created_at: Timestamp when connection was accepted.
        bytes_received: Total bytes read from the client.
        bytes_sent: Total bytes written to the client.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    created_at: float = field(default_factory=time.time)
    bytes_received: int = 0
    bytes_sent: int = 0
    closed: bool = False

    def __post_init__(self):
        self.socket.setblocking(False)

    # =========================================================================
    # PROPERTIES: Convenient accessors
    # =========================================================================

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0]

    @property
    def client_port(self) -> int:
        """Get the client port."""
        return self.address[1]

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    # =========================================================================
    # I/O: one non-blocking attempt each
    # =========================================================================

    def recv_into(self, buffer: Union[bytearray, memoryview]) -> int:
        """
        Read whatever is available into buffer.

        Returns:
            Number of bytes read. 0 means the client closed its side.

        Raises:
            BlockingIOError: Nothing to read right now (spurious wakeup).
            OSError: Connection reset or other transport failure.
        """
        n = self.socket.recv_into(buffer)
        self.bytes_received += n
        return n

    def send(self, data: Union[bytes, memoryview]) -> int:
        """
        Write as much of data as the kernel accepts right now.

        Returns:
            Number of bytes sent (may be less than len(data)).

        Raises:
            BlockingIOError: Send buffer full, wait for writability.
            OSError: Connection reset, broken pipe, ...
        """
        n = self.socket.send(data)
        self.bytes_sent += n
        return n

    # =========================================================================
    # CLOSING: Properly terminate the connection
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR): send FIN, the client sees EOF after the last
           digest line.
        2. Drain whatever the client still had in flight, without waiting.
           Closing with unread data makes the kernel send RST, which can
           destroy output the client has not read yet.
        3. close(): release the file descriptor.

        Safe to call more than once.
        """
        if self.closed:
            return
        self.closed = True

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected, that's fine

        try:
            while self.socket.recv(1024):
                pass
        except OSError:
            pass  # Nothing left (BlockingIOError) or peer gone

        try:
            self.socket.close()
        except OSError:
            pass

        logger.debug(
            f"[{self.id}] Connection closed: {self.bytes_received} bytes in, "
            f"{self.bytes_sent} bytes out, {self.age:.3f}s"
        )
