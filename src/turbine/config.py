"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All server settings in one typed dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m turbine --port 8000                             │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── TURBINE_PORT=8000 python -m turbine                       │
    │                                                                      │
    │   3. Configuration file (TOML)                                      │
    │      └── turbine.toml                                               │
    │                                                                      │
    │   4. Defaults (this file)                                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Example turbine.toml:

    document_root = "web_resources"
    port = 12345
    workers = 64

=============================================================================
"""

import logging
import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Union

from .errors import ConfigError


DEFAULT_CONFIG_FILE = "turbine.toml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    CONTENT
    - document_root, index_file

    NETWORK
    - host, port, backlog, buffer_size, timeout, max_request_size

    THREADING
    - workers

    LOGGING
    - log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    document_root: str = "web_resources"
    """
    Directory to serve. Canonicalized once at startup; nothing outside
    it is ever served.
    """

    index_file: str = "index.html"
    """File served when a directory is requested."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """The IP address to bind to."""

    port: int = 12345
    """Port to listen on. 0 lets the OS pick one (handy in tests)."""

    backlog: int = 128
    """
    Maximum number of queued connections.
    Once every worker is busy, new clients wait here.
    """

    buffer_size: int = 1024
    """Bytes requested per recv() while framing a request."""

    timeout: Optional[float] = None
    """
    Per-connection socket timeout in seconds.
    None = block indefinitely, so a silent client holds its worker.
    """

    max_request_size: Optional[int] = None
    """
    Cap on the bytes read for one request.
    None = unlimited.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL
    # ─────────────────────────────────────────────────────────────────────

    workers: int = 128
    """
    Number of worker threads, fixed for the server's lifetime.
    Also the number of connections handled at once.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ServerConfig":
        """
        Load configuration from a TOML file.

        Keys are the field names of this class; missing keys keep their
        defaults.

        Raises:
            ConfigError: Missing file, malformed TOML, unknown keys or
                         values of the wrong type.
        """
        path = Path(path)
        try:
            with path.open("rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Config file does not exist: {path}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e

        return cls().merge(data, source=str(path))

    @classmethod
    def from_env(cls, base: Optional["ServerConfig"] = None) -> "ServerConfig":
        """
        Overlay environment variables on base (or the defaults).

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        TURBINE_DOCUMENT_ROOT   Directory to serve
        TURBINE_HOST            Bind host
        TURBINE_PORT            Bind port
        TURBINE_WORKERS         Worker threads
        TURBINE_TIMEOUT         Socket timeout in seconds
        TURBINE_LOG_LEVEL       Logging level

        =====================================================================
        """
        base = base or cls()
        overrides = {}

        env_map = {
            "TURBINE_DOCUMENT_ROOT": ("document_root", str),
            "TURBINE_HOST": ("host", str),
            "TURBINE_PORT": ("port", int),
            "TURBINE_WORKERS": ("workers", int),
            "TURBINE_TIMEOUT": ("timeout", float),
            "TURBINE_LOG_LEVEL": ("log_level", str),
        }

        for var, (name, convert) in env_map.items():
            value = os.getenv(var)
            if value is None or value == "":
                continue
            try:
                overrides[name] = convert(value)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {var}: {value!r}") from e

        return replace(base, **overrides)

    def merge(self, data: dict, source: str = "config") -> "ServerConfig":
        """
        Return a copy with the keys of data applied.

        Raises:
            ConfigError: Unknown key or a value of the wrong type.
        """
        known = {f.name: f for f in fields(self)}
        overrides = {}

        for key, value in data.items():
            if key not in known:
                raise ConfigError(f"Unknown setting {key!r} in {source}")
            overrides[key] = _check_type(key, value, source)

        return replace(self, **overrides)

    def validate(self) -> None:
        """
        Fail fast on values that would only break later.

        Raises:
            ConfigError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers < 1:
            raise ConfigError("workers must be >= 1")

        if self.backlog < 0:
            raise ConfigError("backlog must be >= 0")

        if self.buffer_size < 1:
            raise ConfigError("buffer_size must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")

        if self.max_request_size is not None and self.max_request_size <= 0:
            raise ConfigError("max_request_size must be > 0")

        if not self.index_file or "/" in self.index_file or self.index_file in (".", ".."):
            raise ConfigError(f"index_file must be a plain file name: {self.index_file!r}")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(
                f"Invalid log_level: {self.log_level}. Choose from {', '.join(LOG_LEVELS)}."
            )

    @property
    def logging_level(self) -> int:
        """log_level as a logging module constant."""
        return getattr(logging, self.log_level.upper(), logging.INFO)


# Expected TOML types per field; ints are accepted where floats are
_FIELD_TYPES = {
    "document_root": (str,),
    "index_file": (str,),
    "host": (str,),
    "port": (int,),
    "backlog": (int,),
    "buffer_size": (int,),
    "timeout": (int, float),
    "max_request_size": (int,),
    "workers": (int,),
    "log_level": (str,),
}


def _check_type(key: str, value, source: str):
    expected = _FIELD_TYPES[key]
    # bool is an int subclass; "port = true" is still a mistake
    if isinstance(value, bool) or not isinstance(value, expected):
        names = " or ".join(t.__name__ for t in expected)
        raise ConfigError(f"{key} in {source} must be {names}, got {type(value).__name__}")
    if key == "timeout":
        return float(value)
    return value
