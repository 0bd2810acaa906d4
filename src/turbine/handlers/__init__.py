"""
=============================================================================
HANDLERS MODULE
=============================================================================

Filesystem side of the server:

    resolver.py  - map an untrusted resource string to a file that is
                   proven to live inside the document root
    static.py    - read the resolved file and build the response

=============================================================================
"""

from .resolver import (
    DocumentRoot,
    Resolver,
    ResolveError,
    PathShouldStartWithSlashError,
    PathOutsideDocumentRootError,
    InvalidPathError,
    IndexFileMissingError,
    DEFAULT_INDEX_FILE,
)
from .static import StaticFileHandler

__all__ = [
    # Resolution
    "DocumentRoot",
    "Resolver",
    "DEFAULT_INDEX_FILE",

    # Resolution errors
    "ResolveError",
    "PathShouldStartWithSlashError",
    "PathOutsideDocumentRootError",
    "InvalidPathError",
    "IndexFileMissingError",

    # Serving
    "StaticFileHandler",
]
