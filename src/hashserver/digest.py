"""
=============================================================================
DIGEST ENGINE
=============================================================================

The hashing itself is a pluggable capability. The splitter and the session
only need three operations and a hex encoder:

    update(data)    Feed more bytes into the open digest
    finalize()      Produce the digest and start over with a fresh state
    reset()         Throw away whatever was fed so far

    hex_encode(digest) → "F1B2F662..."   (uppercase, no separators)

HashlibDigest covers every fixed-size algorithm hashlib knows about.
SHA-256 is the default and what clients expect unless told otherwise.

=============================================================================
INCREMENTAL HASHING
=============================================================================

A record can arrive spread over any number of reads:

    read 1: b"33"      update(b"33")
    read 2: b"3\\r"     update(b"3\\r")
    read 3: b"\\n44"    update(b"\\n") → finalize() → F407DF8F...
                       update(b"44")        (start of next record)

hashlib objects are incremental by nature, so the open record never has
to be buffered: the digest state IS the carry-over.

=============================================================================
"""

import hashlib
from typing import Protocol, Union

from .errors import ConfigError


# Extendable-output functions need a length at digest time, which the
# wire protocol has no way to express.
_XOF_ALGORITHMS = {"shake_128", "shake_256"}

BytesLike = Union[bytes, bytearray, memoryview]


class DigestEngine(Protocol):
    """Stateful incremental hash used by the record splitter."""

    digest_size: int

    def update(self, data: BytesLike) -> None: ...

    def finalize(self) -> bytes: ...

    def reset(self) -> None: ...


class HashlibDigest:
    """
    DigestEngine backed by hashlib.

    finalize() returns the digest and leaves the engine reset, ready for
    the next record.

    Usage:
        engine = HashlibDigest("sha256")
        engine.update(b"abc")
        hex_encode(engine.finalize())   # "BA7816BF..."
    """

    def __init__(self, algorithm: str = "sha256"):
        self.algorithm = algorithm
        # Raises ValueError for names hashlib does not know
        self._hash = hashlib.new(algorithm)

    @property
    def digest_size(self) -> int:
        return self._hash.digest_size

    def update(self, data: BytesLike) -> None:
        self._hash.update(data)

    def finalize(self) -> bytes:
        digest = self._hash.digest()
        self.reset()
        return digest

    def reset(self) -> None:
        self._hash = hashlib.new(self.algorithm)

    def __repr__(self) -> str:
        return f"HashlibDigest({self.algorithm!r})"


def hex_encode(digest: bytes) -> str:
    """Encode a raw digest as uppercase hexadecimal."""
    return digest.hex().upper()


def available_algorithms() -> list[str]:
    """Algorithms accepted by create_digest(), sorted by name."""
    return sorted(hashlib.algorithms_guaranteed - _XOF_ALGORITHMS)


def create_digest(algorithm: str = "sha256") -> HashlibDigest:
    """
    Build a digest engine for the named algorithm.

    Raises:
        ConfigError: If the algorithm is unknown or has no fixed output size.
    """
    name = algorithm.lower()
    if name in _XOF_ALGORITHMS:
        raise ConfigError(f"Algorithm {algorithm!r} has no fixed digest size")
    try:
        return HashlibDigest(name)
    except ValueError as e:
        raise ConfigError(f"Unsupported digest algorithm {algorithm!r}: {e}") from e
