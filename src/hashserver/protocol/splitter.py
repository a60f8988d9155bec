"""
=============================================================================
RECORD SPLITTER
=============================================================================

Turns raw TCP chunks into digest lines.

TCP hands us bytes in arbitrary pieces. A record ("1\\r\\n", "4444\\n", ...)
may arrive whole, several to a chunk, or one byte per chunk. The splitter
does not care: it walks each chunk looking for b"\\n" and feeds the bytes
straight into the open digest.

    chunk:   b"33\\r\\n4444\\r\\n55"
              └────┘└──────┘└┘
               │       │     └── no newline: fed, carried to next chunk
               │       └──────── complete record → digest line
               └──────────────── tail of a record started earlier → digest line

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         feed() Flow                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   start = 0                                                          │
    │   while start < len(chunk):                                          │
    │       k = chunk.find(b"\\n", start)                                   │
    │       │                                                              │
    │       ├── found   → update(chunk[start:k+1])                         │
    │       │             finalize → HEX + "\\n" appended to output         │
    │       │             start = k + 1                                    │
    │       │                                                              │
    │       └── missing → update(chunk[start:])      (carry-over)          │
    │                     stop                                             │
    │                                                                      │
    │   end_of_stream and open record not empty?                           │
    │       └── finalize it anyway                   (flush-on-close)      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every byte goes through exactly one update() call, so concatenating the
ranges fed for all records rebuilds the input stream exactly. The digest
is only finalized at a newline or at end-of-stream, never mid-record.

=============================================================================
"""

from typing import Optional

from ..digest import BytesLike, DigestEngine, create_digest, hex_encode


NEWLINE = b"\n"


class RecordSplitter:
    """
    Newline splitter with an incremental digest as its carry-over state.

    Attributes:
        records: Number of digest lines produced so far.
        bytes_fed: Total bytes passed to the digest engine.
    """

    def __init__(self, digest: Optional[DigestEngine] = None):
        self._digest = digest if digest is not None else create_digest()
        self._pending = 0
        self._finished = False
        self.records = 0
        self.bytes_fed = 0

    @property
    def pending_bytes(self) -> int:
        """Bytes fed into the open (unterminated) record."""
        return self._pending

    @property
    def finished(self) -> bool:
        """True once feed() has seen end_of_stream."""
        return self._finished

    def feed(self, chunk: BytesLike, end_of_stream: bool = False) -> bytes:
        """
        Consume one chunk and return the digest lines it completed.

        Args:
            chunk: Bytes from a single read. May be empty.
            end_of_stream: The connection is done. A non-empty open record
                           is finalized even without a trailing newline.

        Returns:
            Zero or more b"HEX\\n" lines, in record order.

        Raises:
            ValueError: If called again after end_of_stream.
        """
        if self._finished:
            raise ValueError("Splitter already saw end of stream")

        # find() needs bytes/bytearray; memoryview slices keep update() copy-free
        data = chunk if isinstance(chunk, (bytes, bytearray)) else bytes(chunk)
        view = memoryview(data)
        output = bytearray()

        start = 0
        end = len(data)
        while start < end:
            newline = data.find(NEWLINE, start)
            if newline == -1:
                self._update(view[start:end])
                break
            self._update(view[start:newline + 1])
            output += self._emit()
            start = newline + 1

        if end_of_stream:
            self._finished = True
            if self._pending:
                output += self._emit()

        return bytes(output)

    def _update(self, data: memoryview) -> None:
        self._digest.update(data)
        self._pending += len(data)
        self.bytes_fed += len(data)

    def _emit(self) -> bytes:
        line = hex_encode(self._digest.finalize()) + "\n"
        self._pending = 0
        self.records += 1
        return line.encode("ascii")


def hash_records(
    data: bytes,
    digest: Optional[DigestEngine] = None,
    chunk_size: Optional[int] = None,
) -> list[str]:
    """
    Run a complete stream through a splitter, as one connection would.

    Args:
        data: The whole client stream.
        digest: Engine to use (default SHA-256).
        chunk_size: Deliver the stream in pieces of this size.
                    None = one single chunk.

    Returns:
        Hex digests, one per record, without the trailing newline.

    Example:
        hash_records(b"abc")  # ["BA7816BF8F01CFEA..."]
    """
    splitter = RecordSplitter(digest)
    size = chunk_size or max(len(data), 1)
    output = bytearray()
    for offset in range(0, len(data), size):
        output += splitter.feed(data[offset:offset + size])
    output += splitter.feed(b"", end_of_stream=True)
    return output.decode("ascii").splitlines()
