"""
=============================================================================
HTTP SURFACE
=============================================================================

The pieces of HTTP the file engine touches, independent of any server:

    status_codes  - HTTPStatus enum with reason phrases
    request       - FileRequest: method, raw path, header lookup
    headers       - ResponseHeaders: case-insensitive, lockable header map
    response      - Response sink ABC, BufferedResponse, HTTP dates,
                    error / redirect documents
    mime_types    - extension → Content-Type lookup

A transport (http.server, a WSGI app, an asyncio server...) adapts its own
request/response objects to FileRequest and Response; nothing here performs
socket I/O.

=============================================================================
"""

# status_codes must load before anything that pulls in ..errors
from .status_codes import HTTPStatus
from .request import FileRequest, split_target
from .headers import ResponseHeaders
from .response import (
    Response,
    BufferedResponse,
    format_http_date,
    parse_http_date,
    encode_url,
    encode_path,
    create_error_document,
    create_redirect_document,
)
from .mime_types import lookup, get_mime_type, get_content_type

__all__ = [
    "HTTPStatus",
    "FileRequest",
    "split_target",
    "ResponseHeaders",
    "Response",
    "BufferedResponse",
    "format_http_date",
    "parse_http_date",
    "encode_url",
    "encode_path",
    "create_error_document",
    "create_redirect_document",
    "lookup",
    "get_mime_type",
    "get_content_type",
]
