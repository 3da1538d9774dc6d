"""
Transport bindings for the FileSend engine.

    serve_static(root, **options)   handler class for http.server
    make_server(root, host, port)   ready ThreadingHTTPServer
"""

from .static import HandlerResponse, StaticRequestHandler, serve_static, make_server

__all__ = [
    "HandlerResponse",
    "StaticRequestHandler",
    "serve_static",
    "make_server",
]
