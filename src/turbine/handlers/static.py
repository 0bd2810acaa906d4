"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves a parsed request from the document root.

    Request: GET /docs/ HTTP/1.1

    1. Resolve "/docs/" to a file inside the root (see resolver.py)
    2. Read the whole file into memory
    3. Wrap the bytes in a 200 OK response

Every file is served as text/html; there is no MIME detection, no
caching headers and no directory listing. A directory is served through
its index file or not at all.
=============================================================================
"""

import logging
from pathlib import Path

from ..errors import FileReadError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .resolver import DocumentRoot, Resolver, DEFAULT_INDEX_FILE


logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Handler for serving static files.

    Usage:
        static = StaticFileHandler(DocumentRoot.from_path("/srv/web"))
        response = static.handle(request)
        conn.send_response(response.to_bytes())
    """

    def __init__(self, document_root: DocumentRoot, index_file: str = DEFAULT_INDEX_FILE):
        """
        Args:
            document_root: Canonical root; every served file is inside it.
            index_file: File served for directory requests.
        """
        self.document_root = document_root
        self.resolver = Resolver(document_root, index_file=index_file)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Resolve and read the requested file.

        Raises:
            ResolveError: The resource does not map to a servable file.
            FileReadError: The file vanished or could not be read.
        """
        path = self.resolver.resolve(request.resource)
        logger.debug(f"Resolved {request.resource!r} -> {path}")
        return HTTPResponse(body=self._read_file(path))

    def _read_file(self, path: Path) -> bytes:
        """
        Read the file's full contents.

        The file may have been removed or replaced between resolution and
        this read; that surfaces here as an OSError.
        """
        try:
            return path.read_bytes()
        except OSError as e:
            raise FileReadError(path, e.strerror or str(e)) from e
