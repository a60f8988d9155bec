"""
=============================================================================
LINE-DIGEST PROTOCOL
=============================================================================

    Client → Server:   arbitrary bytes, records separated by b"\\n"
    Server → Client:   one b"HEX_DIGEST\\n" line per record, in order

The newline is part of the hashed record, and a b"\\r" before it is plain
payload. A final record without a newline is still answered when the
client closes its side.

=============================================================================
"""

from .splitter import RecordSplitter, hash_records

__all__ = [
    "RecordSplitter",   # Chunk → digest lines, with carry-over
    "hash_records",     # Whole stream → list of hex digests
]
