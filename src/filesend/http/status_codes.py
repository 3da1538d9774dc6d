"""
=============================================================================
HTTP STATUS CODES USED BY A FILE SENDER
=============================================================================

A static file engine only ever answers with a small, fixed set of codes.
They fall into three groups:

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │  200 whole body, 206 one or more byte ranges              │
    │  3xx   │  301 directory redirect, 304 cached copy still valid      │
    │  4xx   │  400 / 403 / 404 / 405 / 412 / 416 request problems       │
    │  5xx   │  500 filesystem or stream failure                         │
    └────────┴───────────────────────────────────────────────────────────┘

The enum is an IntEnum so a status compares equal to its integer value
(HTTPStatus.OK == 200), which keeps transport adapters simple.

=============================================================================
"""

from enum import IntEnum
from http import HTTPStatus as _StdStatus


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

        >>> HTTPStatus.PARTIAL_CONTENT == 206
        True
        >>> HTTPStatus.RANGE_NOT_SATISFIABLE.phrase
        'Range Not Satisfiable'
    """

    # 2xx SUCCESS
    OK = 200
    PARTIAL_CONTENT = 206           # Range request fulfilled

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301         # /dir → /dir/
    NOT_MODIFIED = 304              # Cached version is still valid

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400               # Malformed percent-encoding, NUL byte
    FORBIDDEN = 403                 # Outside root, denied path, directory
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405        # Only GET and HEAD are served
    PRECONDITION_FAILED = 412       # If-Match / If-Unmodified-Since failed
    RANGE_NOT_SATISFIABLE = 416

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line and the error document."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self < 400

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        return self >= 400

    @classmethod
    def phrase_for(cls, code: int) -> str:
        """
        Reason phrase for any integer code.

        Callers may set statuses the enum doesn't list (e.g. a 503 from an
        error hook); those fall back to the standard library's table.
        """
        try:
            return cls(code).phrase
        except ValueError:
            try:
                return _StdStatus(code).phrase
            except ValueError:
                return "Unknown"


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.PRECONDITION_FAILED: "Precondition Failed",
    HTTPStatus.RANGE_NOT_SATISFIABLE: "Range Not Satisfiable",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
}
