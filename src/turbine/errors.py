"""
=============================================================================
ERROR TYPES
=============================================================================

Every failure the server can report derives from TurbineError, so the
connection handler can catch one type at the top of a worker task and
still tell the kinds apart when it logs them.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR HIERARCHY                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   TurbineError                                                       │
    │    ├── ConfigError            bad config file / env / CLI value     │
    │    ├── HTTPParseError         framing (see http/request.py)         │
    │    ├── ResolveError           resolution (see handlers/resolver.py) │
    │    ├── ConnectionIOError      socket read/write failed              │
    │    └── FileReadError          resolved file could not be read       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The framing and resolution families live next to the code that raises
them. The I/O wrappers live here because both the connection and the
static handler raise them.
=============================================================================
"""


class TurbineError(Exception):
    """Base class for all errors raised by turbine."""


class ConfigError(TurbineError):
    """Raised when the server configuration is missing or invalid."""


class ConnectionIOError(TurbineError):
    """
    Raised when reading from or writing to a client socket fails.

    The original OSError is chained as __cause__.
    """


class FileReadError(TurbineError):
    """Raised when a resolved file cannot be read from disk."""

    def __init__(self, path, message: str):
        super().__init__(f"Failed to read {path}: {message}")
        self.path = path
