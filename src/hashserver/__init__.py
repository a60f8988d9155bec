"""
=============================================================================
HASHSERVER - Line Digest Service Over Raw TCP
=============================================================================

Clients stream bytes; the server answers every newline-terminated record
with the uppercase hex digest (SHA-256 by default) of that record,
newline included, in the order the records arrived.

    $ printf '1\\r\\n22\\r\\n' | nc localhost 59999
    F1B2F662800122BED0FF255693DF89C4487FBDCF453D3524A42D4EC20C3D9C04
    12D3A4EFA6646B3ECE4782F70033B9785BF0D167B553C43E22579B031CEA5C4D

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    hashserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m hashserver)
    ├── server.py            # HashServer orchestrator
    ├── config.py            # ServerConfig dataclass
    ├── digest.py            # Pluggable digest engine + hex encoding
    ├── errors.py            # Exception types
    ├── core/                # Networking and concurrency
    │   ├── socket_server.py # TCP listener
    │   ├── connection.py    # Non-blocking client socket wrapper
    │   ├── reactor.py       # Selector loop (shared I/O context)
    │   ├── session.py       # Per-connection state machine
    │   └── thread_pool.py   # Worker threads
    └── protocol/
        └── splitter.py      # Chunks → records → digest lines

=============================================================================
QUICK START
=============================================================================

    from hashserver import HashServer, ServerConfig

    server = HashServer(ServerConfig(port=59999))
    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .errors import ConfigError, HashServerError, ListenerError, PortError
from .server import HashServer

__all__ = [
    "HashServer",
    "ServerConfig",
    "HashServerError",
    "ConfigError",
    "ListenerError",
    "PortError",
    "__version__",
]
