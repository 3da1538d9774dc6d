"""
=============================================================================
PATH SANDBOX
=============================================================================

Turns a raw request path into a file location that is PROVEN to be inside
the served root - or refuses.

    raw request path
          │
          ▼
    ┌─────────────┐  malformed %-escape, invalid UTF-8   ──►  400
    │   decode    │  embedded NUL byte                   ──►  400
    └─────┬───────┘
          ▼
    ┌─────────────┐  \\ → /    // → /     /./ → /
    │  normalize  │  a/b/../c → a/c   (repeated until nothing changes)
    └─────┬───────┘
          ▼
    ┌─────────────┐  root + path, normalized once more
    │    join     │
    └─────┬───────┘
          ▼
    ┌─────────────┐  relative to root is ".." or starts with "../"
    │  contain    │                                      ──►  403
    └─────┬───────┘
          ▼
    ResourceLocator(request_path, path, root, resolved_path)

Nothing here touches the filesystem. Symlinks inside the root are followed
by the OS at stat/open time; the sandbox is purely lexical.

=============================================================================
WHY ITERATE?
=============================================================================

A single pass of "remove dir/.." is not enough:

    /a/b/../../../etc
    pass 1 → /a/../../etc        (b/.. removed)
    pass 2 → /../etc             (a/.. removed)
    pass 3 → /../etc             (fixed point)

The leading ".." has no ancestor left to cancel, so it is PRESERVED. When
joined to the root it points outside, and the containment check rejects
it. Dropping it silently would turn an attack into a valid-looking path.

=============================================================================
"""

import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

from .errors import BadRequest, Forbidden


logger = logging.getLogger(__name__)


# "%" not followed by two hex digits
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_MULTI_SLASH = re.compile(r"/{2,}")
_DOT_SEGMENT = re.compile(r"/\.(?=/)")
_PARENT_SEGMENT = re.compile(r"([^/]+)/\.\.(?:/|$)")


@dataclass(frozen=True)
class ResourceLocator:
    """
    Where a request points, relative to the root.

    Attributes:
        request_path: The raw path as received (still percent-encoded).
        path: Decoded and normalized request path, e.g. "/pets/".
        root: Absolute POSIX root directory.
        resolved_path: Root-relative path, always starting with "/".
    """

    request_path: str
    path: str
    root: str
    resolved_path: str

    @property
    def realpath(self) -> str:
        """Filesystem path handed to the stat/read collaborator."""
        relative = self.resolved_path.strip("/")
        return posixpath.join(self.root, relative) if relative else self.root

    @property
    def has_trailing_slash(self) -> bool:
        return self.path.endswith("/")

    def join(self, name: str) -> "ResourceLocator":
        """
        Locator for `name` inside this directory (used for index files).

        `name` comes from configuration, not from the client, so it is not
        decoded; it is still normalized and contained.
        """
        base = self.path if self.path.endswith("/") else self.path + "/"
        return locate(self.root, self.request_path, normalize_path(base + name))


def normalize_root(root: str) -> str:
    """Absolute, platform-neutral (forward slash) root directory."""
    return Path(root or ".").resolve().as_posix()


def decode_path(path: str) -> str:
    """
    Percent-decode a request path.

    Raises:
        BadRequest: Malformed escape, invalid UTF-8, or a NUL byte.
    """
    if _BAD_ESCAPE.search(path):
        raise BadRequest("Malformed percent-encoding in path")
    try:
        decoded = unquote(path, errors="strict")
    except UnicodeDecodeError:
        raise BadRequest("Path is not valid UTF-8")
    if "\0" in decoded:
        raise BadRequest("Path contains a NUL byte")
    return decoded


def normalize_path(path: str) -> str:
    """
    Lexically normalize a decoded path.

    Examples:
        >>> normalize_path("\\\\a\\\\b\\\\.\\\\c")
        '/a/b/c'
        >>> normalize_path("/a//b/../c/")
        '/a/c/'
        >>> normalize_path("/a/b/../../../etc")
        '/../etc'
    """
    path = path.replace("\\", "/")
    path = _MULTI_SLASH.sub("/", path)

    # "/./." needs two passes since matches can't overlap
    while True:
        collapsed = _DOT_SEGMENT.sub("", path)
        if collapsed == path:
            break
        path = collapsed

    while True:
        collapsed = _PARENT_SEGMENT.sub(
            lambda match: match.group(0) if match.group(1) == ".." else "",
            path,
        )
        if collapsed == path:
            break
        path = collapsed

    return path or "/"


def is_out_of_bounds(root: str, path: str) -> bool:
    """True when `path` (absolute, normalized) is not under `root`."""
    relative = posixpath.relpath(path, root)
    return relative == ".." or relative.startswith("../")


def locate(root: str, request_path: str, path: str) -> ResourceLocator:
    """
    Join an already decoded + normalized `path` onto `root` and contain it.

    Raises:
        Forbidden: The joined path escapes the root.
    """
    joined = posixpath.normpath(posixpath.join(root, path.lstrip("/")))

    if is_out_of_bounds(root, joined):
        logger.warning(f"Path traversal blocked: {request_path!r} escapes {root}")
        raise Forbidden()

    relative = posixpath.relpath(joined, root)
    resolved = "/" if relative == "." else "/" + relative
    if path.endswith("/") and not resolved.endswith("/"):
        resolved += "/"

    return ResourceLocator(
        request_path=request_path,
        path=path,
        root=root,
        resolved_path=resolved,
    )


def resolve(root: str, request_path: str) -> ResourceLocator:
    """
    Decode, normalize, join and contain a raw request path.

    Args:
        root: Absolute root (see normalize_root).
        request_path: Raw path without query string.

    Returns:
        ResourceLocator whose realpath lies inside root.

    Raises:
        BadRequest: The path cannot be decoded.
        Forbidden: The path escapes the root.
    """
    path = normalize_path(decode_path(request_path))
    if not path.startswith("/"):
        path = "/" + path
    return locate(root, request_path, path)
