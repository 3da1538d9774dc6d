"""
=============================================================================
HTTP.SERVER BINDING
=============================================================================

FileSend doesn't own a socket. This module plugs it into the standard
library's http.server so a directory can be served with a few lines:

    from http.server import ThreadingHTTPServer
    from filesend.handlers import serve_static

    handler = serve_static("public", max_age="1h")
    ThreadingHTTPServer(("127.0.0.1", 8080), handler).serve_forever()

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    ADAPTER LAYERS                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   BaseHTTPRequestHandler          FileSend                          │
    │   ──────────────────────          ────────                          │
    │   self.command, self.path   ──►   FileRequest.from_target()        │
    │   self.headers              ──►   FileRequest.headers               │
    │                                                                      │
    │   send_response/send_header ◄──   HandlerResponse._send_head()      │
    │   wfile.write               ◄──   HandlerResponse._write_body()     │
    │   close_connection = True   ◄──   HandlerResponse._abort()          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
CLIENT DISCONNECTS
=============================================================================

A client that goes away mid-download shows up as BrokenPipeError or
ConnectionResetError on write. HandlerResponse swallows exactly those two,
marks itself closed, and the pipeline stops reading the file at the next
chunk instead of pushing the rest of it into a dead socket.

=============================================================================
"""

import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Iterable, Optional, Tuple, Type

from ..engine import FileSend
from ..http.request import FileRequest
from ..http.response import Response


logger = logging.getLogger(__name__)


class HandlerResponse(Response):
    """Response sink writing to a BaseHTTPRequestHandler."""

    def __init__(self, handler: BaseHTTPRequestHandler):
        super().__init__()
        self.handler = handler
        self.bytes_sent = 0
        self._client_gone = False

    @property
    def transport_closed(self) -> bool:
        return self._client_gone

    def _connection_lost(self, error: BaseException) -> None:
        logger.warning(f"Client {self.handler.address_string()} went away: {error}")
        self._client_gone = True
        self.handler.close_connection = True

    def _send_head(self, status: int, reason: str, headers: Iterable[Tuple[str, str]]) -> None:
        handler = self.handler
        try:
            handler.send_response(status, reason)
            for name, value in headers:
                handler.send_header(name, value)
            handler.end_headers()
        except (BrokenPipeError, ConnectionResetError) as e:
            self._connection_lost(e)

    def _write_body(self, data: bytes) -> None:
        if self._client_gone:
            return
        try:
            self.handler.wfile.write(data)
            self.bytes_sent += len(data)
        except (BrokenPipeError, ConnectionResetError) as e:
            self._connection_lost(e)

    def _finish(self) -> None:
        if self._client_gone:
            return
        try:
            self.handler.wfile.flush()
        except (BrokenPipeError, ConnectionResetError) as e:
            self._connection_lost(e)

    def _abort(self, error: Optional[BaseException]) -> None:
        # the body is short of Content-Length; the connection can't be reused
        logger.warning(f"Aborting response to {self.handler.address_string()}: {error}")
        self.handler.close_connection = True


class StaticRequestHandler(BaseHTTPRequestHandler):
    """
    Request handler answering every method through a FileSend engine.

    GET and HEAD are served; any other method reaches the engine too and
    gets its 405. Subclass with an `engine` attribute, or use
    serve_static().
    """

    engine: Optional[FileSend] = None
    protocol_version = "HTTP/1.1"
    server_version = "filesend"

    def __getattr__(self, name: str):
        # http.server dispatches to do_<METHOD>
        if name.startswith("do_"):
            return self.serve
        raise AttributeError(name)

    def serve(self) -> None:
        if self.engine is None:
            raise RuntimeError("StaticRequestHandler has no engine; use serve_static()")

        if self.command not in ("GET", "HEAD"):
            # an unread request body would corrupt the next request
            self.close_connection = True

        request = FileRequest.from_target(self.command, self.path, dict(self.headers.items()))
        response = HandlerResponse(self)
        self.engine.send(request, response)

    def log_message(self, format: str, *args) -> None:
        logger.info(f"{self.address_string()} - {format % args}")


def serve_static(root: str, engine: Optional[FileSend] = None, **options) -> Type[StaticRequestHandler]:
    """
    Create a request handler class bound to a FileSend engine.

    Args:
        root: Directory to serve.
        engine: Pre-built engine (options are ignored when given).
        **options: SendConfig options (index, ignore, max_age, ...).

    Returns:
        StaticRequestHandler subclass for an http.server server.

    Example:
        handler = serve_static("/var/www", max_age="1d", immutable=True)
    """
    engine = engine or FileSend(root=root, **options)
    return type("BoundStaticRequestHandler", (StaticRequestHandler,), {"engine": engine})


def make_server(
    root: str,
    host: str = "127.0.0.1",
    port: int = 8080,
    **options,
) -> ThreadingHTTPServer:
    """
    Threaded http.server serving `root`. port=0 picks a free port.

    Example:
        server = make_server("public", port=0)
        print(server.server_address)
        server.serve_forever()
    """
    server = ThreadingHTTPServer((host, port), serve_static(root, **options))
    logger.info(f"Serving {root} on http://{host}:{server.server_address[1]}")
    return server
