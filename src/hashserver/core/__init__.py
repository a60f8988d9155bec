"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  Binds, listens, runs the accept() loop in the main thread          │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ one Session per Connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                            SESSION                                   │
    │  READING → HASHING → WRITING → READING ... → CLOSED                 │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ "tell me when readable/writable"
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                            REACTOR                                   │
    │  One selector thread, one-shot interests                            │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ completions
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          THREAD POOL                                 │
    │  Fixed set of workers running completions for any session           │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection
from .reactor import Reactor
from .session import Session, SessionState, ReadStatus
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",     # TCP listener - accepts connections
    "Connection",       # Non-blocking client socket wrapper
    "Reactor",          # Selector loop feeding the pool
    "Session",          # Per-connection protocol state machine
    "SessionState",     # Enum for session lifecycle states
    "ReadStatus",       # How a read completion ended
    "ThreadPool",       # Worker threads running completions
]
