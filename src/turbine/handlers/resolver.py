"""
=============================================================================
RESOURCE RESOLVER
=============================================================================

Maps the resource string from a request line to a file on disk that is
guaranteed to live inside the document root.

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

The resource string is attacker-controlled. Naively joining it onto the
document root lets a client walk out of it:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /../../etc/passwd HTTP/1.1                                     │
    │                                                                      │
    │  /srv/web / ../../etc/passwd  →  /etc/passwd   (BREACH!)           │
    │                                                                      │
    │  A symlink inside the root does the same without any "..":         │
    │                                                                      │
    │  /srv/web/secrets -> /home/admin/.ssh                              │
    │  GET /secrets/id_rsa HTTP/1.1                                       │
    └─────────────────────────────────────────────────────────────────────┘

The only reliable defense is to canonicalize AFTER joining, against the
real filesystem, and then check the result is still under the root:

    full_path = (root / suffix).resolve(strict=True)   # follows .. and links
    full_path.relative_to(root)                        # raises if outside

Checking the suffix for ".." on its own, or canonicalizing the root and
the suffix separately, misses the symlink case.

=============================================================================
RESOLUTION ALGORITHM
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   "/docs/"                                                          │
    │      │                                                               │
    │      ├── 1. must start with "/"  ──── no ──► PathShouldStartWithSlash│
    │      │                                                               │
    │      ├── 2. strip leading "/"    →  "docs/"                         │
    │      ├── 3. join onto root       →  /srv/web/docs                   │
    │      ├── 4. resolve(strict=True) ──── missing ──► InvalidPath       │
    │      ├── 5. inside root?         ──── no ──► PathOutsideDocumentRoot│
    │      │                                                               │
    │      ├── 6. regular file?        ──── yes ──► return it             │
    │      ├── 7. directory?           ──── yes ──► repeat 4-6 on         │
    │      │                                        docs/index.html        │
    │      │                                        (missing ──►           │
    │      │                                         IndexFileMissing)     │
    │      └── 8. anything else        ──────────► InvalidPath            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Resource strings without a leading "/" are always rejected, even if they
would resolve to a safe file. A trailing "/" makes no difference: pathlib
drops it when joining, so "/docs/" and "/docs" resolve identically.

=============================================================================
INTERVIEW QUESTIONS ABOUT PATH RESOLUTION
=============================================================================

Q: "Why not just reject any resource containing '..'?"
A: "It blocks the obvious attack but not symlinks, and it also rejects
   legitimate names like 'notes..txt'. Canonicalizing and checking the
   result handles both."

Q: "Why use resolve(strict=True) instead of os.path.normpath?"
A: "normpath is purely lexical. It collapses '..' but never looks at the
   disk, so a symlink pointing outside the root goes unnoticed."

=============================================================================
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from ..errors import TurbineError


logger = logging.getLogger(__name__)


PATH_SEPARATOR = "/"
DEFAULT_INDEX_FILE = "index.html"


# =============================================================================
# ERRORS
# =============================================================================
# Each failure is its own type so callers can tell them apart.

class ResolveError(TurbineError):
    """Raised when a resource cannot be mapped to a servable file."""


class PathShouldStartWithSlashError(ResolveError):
    """The resource string does not begin with the path separator."""

    def __init__(self, resource: str):
        super().__init__(f"Path {resource!r} should start with a slash")
        self.resource = resource


class PathOutsideDocumentRootError(ResolveError):
    """The canonical path escapes the document root."""

    def __init__(self, path: Path):
        super().__init__(
            f"Resource {path} could not be found because it points outside "
            f"the document root"
        )
        self.path = path


class InvalidPathError(ResolveError):
    """The path does not exist, or is neither a file nor a directory."""

    def __init__(self, path: Path, reason: str = "is neither a file nor a directory"):
        super().__init__(f"Path {path} {reason}")
        self.path = path


class IndexFileMissingError(InvalidPathError):
    """A directory was requested but its index file is not a regular file."""

    def __init__(self, path: Path):
        super().__init__(path, reason="does not exist or is not a regular file")


# =============================================================================
# DOCUMENT ROOT
# =============================================================================

@dataclass(frozen=True)
class DocumentRoot:
    """
    The canonical directory that every resolved path must stay inside.

    Built once at startup and shared read-only by all workers.

    Usage:
        root = DocumentRoot.from_path("web_resources")
        root.path              # PosixPath('/abs/path/to/web_resources')
        root.contains(p)       # True if p is root or below it
    """

    path: Path

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "DocumentRoot":
        """
        Canonicalize a configured directory.

        Raises:
            ValueError: The directory does not exist or is not a directory.
        """
        try:
            canonical = Path(path).resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise ValueError(f"Document root does not exist: {path} ({e})") from e

        if not canonical.is_dir():
            raise ValueError(f"Document root is not a directory: {path}")

        return cls(canonical)

    def contains(self, candidate: Path) -> bool:
        """True if candidate equals the root or is a descendant of it."""
        try:
            candidate.relative_to(self.path)
        except ValueError:
            return False
        return True

    def __str__(self) -> str:
        return str(self.path)


# =============================================================================
# RESOLVER
# =============================================================================

class Resolver:
    """
    Resolves resource strings against a DocumentRoot.

    The resolver holds no per-request state, so one instance is safely
    shared by every worker thread.

    Usage:
        resolver = Resolver(DocumentRoot.from_path("/srv/web"))
        resolver.resolve("/")         # /srv/web/index.html
        resolver.resolve("/foo/")     # /srv/web/foo/index.html
        resolver.resolve("foo")       # PathShouldStartWithSlashError
    """

    def __init__(self, document_root: DocumentRoot, index_file: str = DEFAULT_INDEX_FILE):
        self.document_root = document_root
        self.index_file = index_file

    def resolve(self, resource: str) -> Path:
        """
        Resolve a resource string to a regular file inside the root.

        Args:
            resource: Raw resource token from the request line.

        Returns:
            Absolute, canonical path to an existing regular file.

        Raises:
            PathShouldStartWithSlashError: resource lacks the leading "/".
            PathOutsideDocumentRootError: canonical path escapes the root.
            IndexFileMissingError: directory without a usable index file.
            InvalidPathError: missing path, or not a file or directory.
        """
        # ─────────────────────────────────────────────────────────────────
        # PRECONDITION: LEADING SEPARATOR
        # ─────────────────────────────────────────────────────────────────
        if not resource.startswith(PATH_SEPARATOR):
            raise PathShouldStartWithSlashError(resource)

        # ─────────────────────────────────────────────────────────────────
        # JOIN THE RELATIVE SUFFIX ONTO THE ROOT
        # ─────────────────────────────────────────────────────────────────
        # An absolute suffix would replace the root entirely when joined,
        # so every leading separator goes. "" means the root itself.
        suffix = resource.lstrip(PATH_SEPARATOR)
        candidate = self.document_root.path / suffix

        # ─────────────────────────────────────────────────────────────────
        # CANONICALIZE AND VERIFY CONTAINMENT
        # ─────────────────────────────────────────────────────────────────
        full_path = self._canonicalize(candidate)

        # ─────────────────────────────────────────────────────────────────
        # CLASSIFY
        # ─────────────────────────────────────────────────────────────────
        if full_path.is_file():
            return full_path

        if full_path.is_dir():
            return self._resolve_index(full_path)

        raise InvalidPathError(full_path)

    def _canonicalize(self, candidate: Path) -> Path:
        """
        Resolve candidate against the filesystem and check it stays inside
        the document root.
        """
        try:
            full_path = candidate.resolve(strict=True)
        except FileNotFoundError as e:
            raise InvalidPathError(candidate, reason="does not exist") from e
        except (OSError, RuntimeError, ValueError) as e:
            # Symlink loops, permission problems, embedded NUL bytes
            raise InvalidPathError(candidate, reason=f"cannot be resolved: {e}") from e

        if not self.document_root.contains(full_path):
            logger.warning(f"Path traversal attempt: {candidate} -> {full_path}")
            raise PathOutsideDocumentRootError(full_path)

        return full_path

    def _resolve_index(self, directory: Path) -> Path:
        """Resolve the index file of a directory that is already inside the root."""
        index_path = directory / self.index_file
        try:
            full_path = self._canonicalize(index_path)
        except PathOutsideDocumentRootError:
            raise
        except InvalidPathError as e:
            raise IndexFileMissingError(index_path) from e

        if not full_path.is_file():
            raise IndexFileMissingError(index_path)

        return full_path
