"""
=============================================================================
FILESEND - Static File Responses Done Right
=============================================================================

This package answers GET and HEAD requests for files under a root
directory: it confines paths to the root, resolves directory indexes,
honours conditional requests and byte ranges, and streams the body through
an optional chain of transform stages.

It doesn't own a socket. Any server that can hand over a method, a request
target and headers, and that can write a status, headers and bytes back,
can use it. An http.server binding ships in filesend.handlers.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    FILESEND ARCHITECTURE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. PATH SANDBOX                                                   │
    │      - Percent-decoding with 400 on malformed input                │
    │      - Normalization and a hard 403 on escaping the root           │
    │      - Glob ignore lists (deny or hide)                             │
    │                                                                      │
    │   2. CACHING                                                        │
    │      - ETag / Last-Modified / Cache-Control                         │
    │      - If-Match, If-Unmodified-Since → 412                          │
    │      - If-None-Match, If-Modified-Since → 304                       │
    │                                                                      │
    │   3. BYTE RANGES                                                    │
    │      - Single range → 206 with Content-Range                        │
    │      - Many ranges → multipart/byteranges                           │
    │      - If-Range, 416 for unsatisfiable sets                         │
    │                                                                      │
    │   4. STREAMING                                                      │
    │      - Chunked file reads, pull-based                              │
    │      - Pluggable transform stages                                   │
    │      - Clean abort when the client goes away                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    filesend/
    ├── __init__.py          # This file - package exports
    ├── engine.py            # FileSend request state machine
    ├── config.py            # SendConfig dataclass
    ├── errors.py            # HTTPError hierarchy
    ├── sandbox.py           # Path decoding and root confinement
    ├── ignore.py            # Glob ignore matching
    ├── index.py             # Directory index resolution
    ├── conditional.py       # 304 / 412 evaluation
    ├── ranges.py            # Range parsing and multipart framing
    ├── etag.py              # Stat-based ETags
    ├── filesystem.py        # stat/read abstraction
    ├── http/                # Transport-independent HTTP pieces
    ├── middleware/          # Body stream pipeline and stages
    └── handlers/            # http.server binding

=============================================================================
QUICK START
=============================================================================

    from filesend import FileSend, FileRequest, BufferedResponse

    engine = FileSend(root="public", max_age="1h")

    response = BufferedResponse()
    engine.send(FileRequest("GET", "/index.html"), response)
    print(response.sent_status, response.sent_headers)

Or behind http.server:

    from filesend.handlers import make_server

    make_server("public", port=8080).serve_forever()

=============================================================================
"""

__version__ = "1.0.0"
__author__ = "filesend contributors"

# http must load before anything that pulls in .errors
from .http import FileRequest, Response, BufferedResponse, HTTPStatus
from .errors import (
    HTTPError,
    BadRequest,
    Forbidden,
    NotFound,
    MethodNotAllowed,
    PreconditionFailed,
    RangeNotSatisfiable,
    InternalError,
    HeadersSentError,
    StreamError,
)
from .config import SendConfig, parse_max_age
from .filesystem import FileSystem, LocalFileSystem, ResourceStat
from .engine import FileSend, RequestContext
from .middleware import Stage, StreamPipeline, TransferLogStage, function_stage

__all__ = [
    "FileSend",
    "RequestContext",
    "SendConfig",
    "parse_max_age",
    "FileRequest",
    "Response",
    "BufferedResponse",
    "HTTPStatus",
    "HTTPError",
    "BadRequest",
    "Forbidden",
    "NotFound",
    "MethodNotAllowed",
    "PreconditionFailed",
    "RangeNotSatisfiable",
    "InternalError",
    "HeadersSentError",
    "StreamError",
    "FileSystem",
    "LocalFileSystem",
    "ResourceStat",
    "Stage",
    "StreamPipeline",
    "TransferLogStage",
    "function_stage",
]
