"""
=============================================================================
ERROR TYPES
=============================================================================

    HashServerError
    ├── ConfigError      Bad configuration, raised before anything binds
    │   └── PortError    Listen port given on the command line is unusable
    └── ListenerError    Could not bind/listen, fatal at startup

Transport errors (connection reset, broken pipe, ...) are NOT wrapped.
They stay plain OSError and are handled inside the session that saw them,
so one failing client can never take down another.

=============================================================================
"""


class HashServerError(Exception):
    """Base class for all hashserver errors."""


class ConfigError(HashServerError, ValueError):
    """Invalid configuration value (port, workers, buffer size, algorithm)."""


class PortError(ConfigError):
    """
    A command-line port that is not an integer in the allowed range.

    Attributes:
        value: The port exactly as it was given.
    """

    def __init__(self, message: str, value: str):
        super().__init__(message)
        self.value = value


class ListenerError(HashServerError):
    """
    The listening socket could not be set up.

    Attributes:
        address: The (host, port) we tried to bind.
    """

    def __init__(self, message: str, address: tuple[str, int]):
        super().__init__(message)
        self.address = address
