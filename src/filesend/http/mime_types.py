"""
=============================================================================
MIME TYPE LOOKUP
=============================================================================

Maps a file extension to a Content-Type. The engine consults this only when
no Content-Type was set by the caller, and only sets the header when the
extension is known - an unknown type is left for the client to sniff
(guarded by X-Content-Type-Options on our own documents).

    "/css/site.css"      →  "text/css"
    "/img/Logo.PNG"      →  "image/png"        (case-insensitive)
    "/data/blob.xyz"     →  None               (unknown: header not set)

The table covers what a static site actually ships. Anything else falls
back to the standard library's `mimetypes` registry.

=============================================================================
"""

import mimetypes
import posixpath
from typing import Optional


MIME_TYPES = {
    # Text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".bmp": "image/bmp",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".eot": "application/vnd.ms-fontobject",

    # Audio / video (the main consumers of byte ranges)
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".flac": "audio/flac",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".mkv": "video/x-matroska",

    # Documents and archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".tar": "application/x-tar",
    ".gz": "application/gzip",
    ".7z": "application/x-7z-compressed",

    # Other
    ".wasm": "application/wasm",
    ".map": "application/json",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
}

DEFAULT_MIME_TYPE = "application/octet-stream"


def lookup(path: str) -> Optional[str]:
    """
    Return the MIME type for `path`, or None when the extension is unknown.

    Examples:
        >>> lookup("/a/style.CSS")
        'text/css'
        >>> lookup("/a/README") is None
        True
    """
    extension = posixpath.splitext(path)[1].lower()
    if not extension:
        return None
    mime_type = MIME_TYPES.get(extension)
    if mime_type is None:
        mime_type, _ = mimetypes.guess_type(f"file{extension}", strict=False)
    return mime_type


def get_mime_type(path: str, default: Optional[str] = None) -> str:
    """Like lookup() but never None (falls back to application/octet-stream)."""
    return lookup(path) or default or DEFAULT_MIME_TYPE


def get_content_type(path: str, charset: Optional[str] = None) -> Optional[str]:
    """
    Full Content-Type header value, with `; charset=` when one is given.

    Returns None for unknown extensions.
    """
    mime_type = lookup(path)
    if mime_type is None:
        return None
    return f"{mime_type}; charset={charset}" if charset else mime_type
