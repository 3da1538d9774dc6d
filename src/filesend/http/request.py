"""
=============================================================================
REQUEST INPUT
=============================================================================

The engine never parses HTTP itself. The surrounding server hands it three
things: the method, the raw request target, and a header lookup. This module
packages them into a small dataclass.

    Transport                         FileRequest
    ─────────                         ───────────
    "GET"                    ──►      method = "GET"
    "/docs/a%20b.txt?v=2"    ──►      path   = "/docs/a%20b.txt"   (still encoded)
                                      query  = "v=2"
    {"Range": "bytes=0-9"}   ──►      headers = {"range": "bytes=0-9"}

The path is kept percent-ENCODED on purpose: decoding is the sandbox's job,
and a decode failure must become a 400, not an exception in the transport.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple


# Request headers the engine reads. Anything else is carried but ignored.
CONDITIONAL_HEADERS = (
    "if-match",
    "if-unmodified-since",
    "if-none-match",
    "if-modified-since",
)


def split_target(target: str) -> Tuple[str, str]:
    """
    Split a request target into (path, query).

    A fragment never reaches the server, but some clients send one anyway;
    it is dropped.

    Example:
        >>> split_target("/a/b.txt?x=1#top")
        ('/a/b.txt', 'x=1')
    """
    target = target.split("#", 1)[0]
    path, _, query = target.partition("?")
    return path or "/", query


@dataclass
class FileRequest:
    """
    The request as seen by the file engine.

    Attributes:
        method:  HTTP method, upper-cased.
        path:    Raw (percent-encoded) request path without the query string.
        headers: Request headers with LOWERCASE names.
        query:   Raw query string, preserved on redirects.
    """

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    query: str = ""

    def __post_init__(self):
        self.method = self.method.upper()
        self.headers = {name.lower(): value for name, value in self.headers.items()}
        if "?" in self.path or "#" in self.path:
            self.path, query = split_target(self.path)
            self.query = self.query or query

    @classmethod
    def from_target(
        cls,
        method: str,
        target: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "FileRequest":
        """Build from a raw request-line target such as "/a.txt?v=1"."""
        path, query = split_target(target)
        return cls(method=method, path=path, headers=dict(headers or {}), query=query)

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    @property
    def is_head(self) -> bool:
        return self.method == "HEAD"
