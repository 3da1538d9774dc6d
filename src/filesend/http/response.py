"""
=============================================================================
RESPONSE SINK
=============================================================================

The engine writes to an abstract response: a status, a header map, and an
ordered byte sink with an explicit end. A transport adapter subclasses
Response and implements the three wire-level primitives.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    RESPONSE LIFECYCLE                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   headers mutable          first write()/end()          end()       │
    │   status mutable    ───►   _send_head(status, hdrs) ──► _finish()   │
    │                            headers.lock()                            │
    │                            _write_body(chunk) ...                    │
    │                                                                      │
    │   destroy(error)  ───►  _abort(error)   (best-effort close; no      │
    │                                          second status line)         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Two one-way latches make the sink safe against duplicate termination:

    headers_sent   set on the first flush, never cleared
    finished       set by end(); a second end() is a silent no-op

=============================================================================
HTTP DATES
=============================================================================

Last-Modified, If-Modified-Since, If-Unmodified-Since and If-Range all use
the IMF-fixdate format:

    Wed, 15 Jun 2024 10:00:00 GMT

Comparisons are done at one-second precision, which is all the format can
carry.

=============================================================================
"""

import html
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, Optional, Tuple, Union
from urllib.parse import quote

from ..errors import HeadersSentError
from .headers import ResponseHeaders
from .status_codes import HTTPStatus


Body = Union[str, bytes]


class Response(ABC):
    """
    Abstract response surface consumed by the engine.

    Subclasses implement:
        _send_head(status, reason, headers)  - emit status line and headers
        _write_body(data)                    - emit body bytes
        _finish()                            - end of body (optional)
        _abort(error)                        - tear the connection down (optional)
        transport_closed                     - True once the peer went away
    """

    def __init__(self):
        self._status: int = HTTPStatus.OK
        self._reason: Optional[str] = None
        self.headers = ResponseHeaders()
        self._headers_sent = False
        self._finished = False
        self._destroyed = False

    # =========================================================================
    # STATUS
    # =========================================================================

    @property
    def status(self) -> int:
        return self._status

    @status.setter
    def status(self, code: int) -> None:
        self.set_status(code)

    @property
    def reason(self) -> str:
        return self._reason or HTTPStatus.phrase_for(self._status)

    def set_status(self, code: int, reason: Optional[str] = None) -> None:
        if self._headers_sent:
            raise HeadersSentError(":status")
        self._status = int(code)
        self._reason = reason

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def transport_closed(self) -> bool:
        """Override when the transport can tell the client disconnected."""
        return False

    @property
    def closed(self) -> bool:
        """True when no more bytes will reach the client."""
        return self._finished or self._destroyed or self.transport_closed

    # =========================================================================
    # WRITING
    # =========================================================================

    def write(self, data: Body) -> None:
        """Write a body chunk, flushing the head first if needed."""
        if self._finished:
            raise RuntimeError("write after end")
        if isinstance(data, str):
            data = data.encode("utf-8")
        if not data:
            return
        self.flush_head()
        self._write_body(data)

    def end(self, data: Body = b"") -> None:
        """
        Finish the response.

        When the head hasn't been flushed yet and no Content-Length was set,
        the length of `data` is used (except for bodiless statuses).
        Calling end() twice is a no-op.
        """
        if self._finished or self._destroyed:
            return
        if isinstance(data, str):
            data = data.encode("utf-8")

        if not self._headers_sent and "Content-Length" not in self.headers:
            if self._status not in (HTTPStatus.NOT_MODIFIED, 204) and self._status >= 200:
                self.headers.set("Content-Length", len(data))

        self.flush_head()
        if data:
            self._write_body(data)
        self._finished = True
        self._finish()

    def destroy(self, error: Optional[BaseException] = None) -> None:
        """Abort the response; used when an error arrives after the head."""
        if self._finished or self._destroyed:
            return
        self._destroyed = True
        self._abort(error)

    def flush_head(self) -> None:
        if self._headers_sent:
            return
        self._headers_sent = True
        self.headers.lock()
        self._send_head(self._status, self.reason, self.headers.items())

    # =========================================================================
    # TRANSPORT PRIMITIVES
    # =========================================================================

    @abstractmethod
    def _send_head(self, status: int, reason: str, headers: Iterable[Tuple[str, str]]) -> None:
        ...

    @abstractmethod
    def _write_body(self, data: bytes) -> None:
        ...

    def _finish(self) -> None:
        pass

    def _abort(self, error: Optional[BaseException]) -> None:
        pass


class BufferedResponse(Response):
    """
    In-memory response.

    Collects the head and body so callers (and tests) can inspect exactly
    what would have gone on the wire. close() simulates a client
    disconnect.

    Example:
        response = BufferedResponse()
        engine.send(FileRequest("GET", "/nums"), response)
        assert response.body == b"123456789"
    """

    def __init__(self):
        super().__init__()
        self.sent_status: Optional[int] = None
        self.sent_headers: dict = {}
        self._body = bytearray()
        self._client_closed = False
        self.error: Optional[BaseException] = None
        self.chunks_written = 0

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    @property
    def transport_closed(self) -> bool:
        return self._client_closed

    def close(self) -> None:
        """Pretend the client hung up."""
        self._client_closed = True

    def _send_head(self, status, reason, headers):
        self.sent_status = status
        self.sent_headers = dict(headers)

    def _write_body(self, data: bytes) -> None:
        self.chunks_written += 1
        self._body.extend(data)

    def _abort(self, error):
        self.error = error


# =============================================================================
# HTTP DATES
# =============================================================================

def format_http_date(value: Union[datetime, float, int]) -> str:
    """
    Format a datetime (or POSIX timestamp) as an HTTP-date (RFC 7231).

    Example: Wed, 01 Jan 2026 12:00:00 GMT
    """
    if isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        dt = value.astimezone(timezone.utc) if value.tzinfo else value

    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def parse_http_date(value: Optional[str]) -> Optional[int]:
    """
    Parse an HTTP-date into whole POSIX seconds.

    Accepts IMF-fixdate, RFC 850 and asctime forms. Returns None for
    missing or unparseable input so callers can treat it as "invalid".
    """
    if not value:
        return None
    try:
        dt = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


# =============================================================================
# DOCUMENTS
# =============================================================================

# A lone "%" that isn't the start of an escape gets encoded, existing
# escapes are left alone.
_LONE_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")
_URL_SAFE = "!#$%&'()*+,/:;=?@[]"


def encode_url(url: str) -> str:
    """Percent-encode a URL without double-encoding existing escapes."""
    return quote(_LONE_PERCENT.sub("%25", url), safe=_URL_SAFE)


def encode_path(path: str) -> str:
    """Escape "?" and "#" so a decoded path can't grow a query or fragment."""
    return path.replace("?", "%3F").replace("#", "%23")


def create_error_document(status: int, message: Optional[str] = None) -> str:
    """
    Minimal self-contained HTML error page.

    No external references, only an inline style block, so the response
    can be served with `default-src 'self' 'unsafe-inline'`.
    """
    phrase = html.escape(message or HTTPStatus.phrase_for(status))

    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8" />
    <title>{status} {phrase}</title>
    <style>
      html, body {{ margin: 0; padding: 0; height: 100%; }}
      body {{ font-family: monospace; color: #333; background: #fafafa;
             display: flex; align-items: center; justify-content: center; }}
      .page {{ text-align: center; }}
      h1 {{ font-size: 72px; margin: 0; }}
      p {{ font-size: 18px; margin: 12px 0 0; word-break: break-all; }}
    </style>
  </head>
  <body>
    <div class="page">
      <h1>{status}</h1>
      <p>{phrase}</p>
    </div>
  </body>
</html>
"""


def create_redirect_document(location: str) -> Tuple[str, str]:
    """
    Body for a 301 redirect.

    Returns:
        (encoded location for the Location header, HTML body)
    """
    href = encode_url(location)
    return href, f'Redirecting to <a href="{href}">{html.escape(location)}</a>'
