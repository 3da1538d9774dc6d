"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the engine can produce maps to exactly one HTTP status code.
Components raise these exceptions; the request engine catches HTTPError at
the top of its state machine and renders the response.

    ┌──────────────────────┬────────┬──────────────────────────────────────┐
    │  Exception           │ Status │  Raised when                         │
    ├──────────────────────┼────────┼──────────────────────────────────────┤
    │  BadRequest          │  400   │  malformed %-escape, NUL byte        │
    │  Forbidden           │  403   │  sandbox escape, denied ignore,      │
    │                      │        │  directory without index/hook        │
    │  NotFound            │  404   │  missing file, hidden ignore,        │
    │                      │        │  trailing slash on a regular file    │
    │  MethodNotAllowed    │  405   │  anything but GET / HEAD             │
    │  PreconditionFailed  │  412   │  If-Match / If-Unmodified-Since      │
    │  RangeNotSatisfiable │  416   │  no satisfiable byte span            │
    │  InternalError       │  500   │  any unclassified I/O failure        │
    └──────────────────────┴────────┴──────────────────────────────────────┘

304 Not Modified is not an error, but it follows the same early-termination
path in the engine (empty body, Content-Type stripped).

=============================================================================
WHY EXCEPTIONS INSTEAD OF RETURN CODES?
=============================================================================

A request runs through several nested steps (decode → sandbox → stat →
index → conditional → range). Raising lets any step abort the request
without every caller checking a sentinel, and the status code travels with
the exception.

=============================================================================
"""

from typing import Optional

from .http.status_codes import HTTPStatus


class HTTPError(Exception):
    """
    Base class for failures that terminate a request with a status code.

    Attributes:
        status_code: HTTP status to respond with.
        message: Human readable reason (defaults to the status phrase).
        has_body: False for statuses answered with headers only, never
                  with an error document.
    """

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    has_body = True

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        if status_code is not None:
            self.status_code = HTTPStatus(status_code)
        self.message = message or self.status_code.phrase
        super().__init__(self.message)


class BadRequest(HTTPError):
    status_code = HTTPStatus.BAD_REQUEST


class Forbidden(HTTPError):
    status_code = HTTPStatus.FORBIDDEN


class NotFound(HTTPError):
    status_code = HTTPStatus.NOT_FOUND


class MethodNotAllowed(HTTPError):
    status_code = HTTPStatus.METHOD_NOT_ALLOWED
    has_body = False


class PreconditionFailed(HTTPError):
    status_code = HTTPStatus.PRECONDITION_FAILED
    has_body = False


class RangeNotSatisfiable(HTTPError):
    status_code = HTTPStatus.RANGE_NOT_SATISFIABLE
    has_body = False


class InternalError(HTTPError):
    """500 carrying the underlying failure message."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


class HeadersSentError(RuntimeError):
    """Raised when a header is mutated after the response head was flushed."""

    def __init__(self, name: str = ""):
        detail = f": {name}" if name else ""
        super().__init__(f"Can't set headers after they are sent{detail}")
        self.header_name = name


class StreamError(Exception):
    """
    A failure raised inside a pipeline stage.

    The original exception is chained as __cause__ so the engine can still
    classify filesystem errors (ENOENT → 404) that surfaced mid-stream.
    """

    def __init__(self, stage: str, error: BaseException):
        super().__init__(f"{stage}: {error}")
        self.stage = stage
        self.error = error
