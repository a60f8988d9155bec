"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the hash server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m hashserver --port 60000                         │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HASH_SERVER_PORT=60000 python -m hashserver               │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Nothing here is required: the defaults give a working server on 59999.

=============================================================================
"""

import os
from dataclasses import dataclass, field

from .digest import create_digest
from .errors import ConfigError


DEFAULT_PORT = 59999

# A bigger chunk reads faster, but every connection holds one
DEFAULT_BUFFER_SIZE = 2 * 1024

MIN_PORT = 1024
MAX_PORT = 65535

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def default_workers() -> int:
    """One worker per CPU, like a hardware-concurrency sized I/O pool."""
    return os.cpu_count() or 4


@dataclass
class ServerConfig:
    """
    Configuration for the hash server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog

    PROTOCOL SETTINGS
    - buffer_size, algorithm

    THREADING SETTINGS
    - workers

    LOGGING
    - log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    The IP address to bind to.
    - "0.0.0.0" - All IPv4 interfaces
    - "127.0.0.1" - Localhost only
    """

    port: int = DEFAULT_PORT
    """
    The port number to listen on, 1024-65535.
    0 lets the OS pick a free port (embedding and tests).
    """

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    buffer_size: int = DEFAULT_BUFFER_SIZE
    """
    Size of each session's read buffer in bytes.
    Fixed for the whole life of a session; records longer than this
    simply span several reads.
    """

    algorithm: str = "sha256"
    """Digest algorithm (any fixed-size hashlib algorithm)."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    workers: int = field(default_factory=default_workers)
    """
    Number of worker threads running I/O completions.
    Sessions are not pinned to workers, so this does NOT limit the
    number of concurrent connections.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HASH_SERVER_HOST         Bind address (default: 0.0.0.0)
        HASH_SERVER_PORT         Listen port (default: 59999)
        HASH_SERVER_WORKERS      Worker threads (default: CPU count)
        HASH_SERVER_BUFFER_SIZE  Read chunk size in bytes (default: 2048)
        HASH_SERVER_ALGORITHM    Digest algorithm (default: sha256)
        HASH_SERVER_LOG_LEVEL    Logging level (default: INFO)

        HASH_SERVER_PORT=0 binds an ephemeral port. The command line
        refuses 0: --port must be within MIN_PORT..MAX_PORT.

        =====================================================================

        Raises:
            ConfigError: If a numeric variable is not a number.
        """
        try:
            return cls(
                host=os.getenv("HASH_SERVER_HOST", "0.0.0.0"),
                port=int(os.getenv("HASH_SERVER_PORT", str(DEFAULT_PORT))),
                workers=int(os.getenv("HASH_SERVER_WORKERS", str(default_workers()))),
                buffer_size=int(os.getenv("HASH_SERVER_BUFFER_SIZE", str(DEFAULT_BUFFER_SIZE))),
                algorithm=os.getenv("HASH_SERVER_ALGORITHM", "sha256"),
                log_level=os.getenv("HASH_SERVER_LOG_LEVEL", "INFO"),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid environment configuration: {e}") from e

    def validate(self) -> None:
        """
        Validate configuration values.

        Called at startup, before any socket exists, so a bad value never
        leaves a half-started server behind.

        Raises:
            ConfigError: On the first invalid value found.
        """
        if self.port != 0 and not MIN_PORT <= self.port <= MAX_PORT:
            raise ConfigError(
                f"Invalid port: {self.port}. Must be in the range {MIN_PORT}-{MAX_PORT}."
            )

        if self.workers < 1:
            raise ConfigError("workers must be >= 1")

        if self.buffer_size < 1:
            raise ConfigError("buffer_size must be >= 1")

        if self.backlog < 1:
            raise ConfigError("backlog must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"Unknown log level: {self.log_level}")

        # Raises ConfigError for unknown or variable-length algorithms
        create_digest(self.algorithm)
