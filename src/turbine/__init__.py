"""
=============================================================================
TURBINE - Minimal Concurrent Static-File Server
=============================================================================

Serves files from a single document root over raw TCP sockets.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    ARCHITECTURE                                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   core/        sockets, connections, worker pool                     │
    │   http/        request framing, response bytes                       │
    │   handlers/    path resolution, file serving                         │
    │   config.py    settings from defaults, TOML, env, CLI                │
    │   server.py    wires everything together                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Quick start:

    from turbine import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(document_root="./public", port=8000))
    server.run()

Or from the shell:

    python -m turbine --document-root ./public --port 8000

=============================================================================
"""

__version__ = "0.1.0"

from .server import HTTPServer
from .config import ServerConfig
from .errors import TurbineError, ConfigError

__all__ = ["HTTPServer", "ServerConfig", "TurbineError", "ConfigError", "__version__"]
