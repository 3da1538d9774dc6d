"""
ETag generation from file metadata.

A file's validator is derived from its size and modification time, so it
can be produced from a single stat() without reading the content:

    size = 9, mtime = 1700000000.123  →  W/"9-18bcfe56a3b"
                                             │  └── mtime in ms, hex
                                             └───── size, hex

The tag is weak by default: two files with the same size and mtime are
"equivalent" rather than byte-identical.
"""

from typing import Union


def stat_etag(size: int, mtime: Union[int, float], weak: bool = True) -> str:
    """
    Compute an opaque validator string from size + mtime (seconds).

    Args:
        size: File size in bytes.
        mtime: Modification time as POSIX seconds.
        weak: Prefix with W/ (default).

    Returns:
        Quoted entity tag, e.g. 'W/"9-18bcfe56a3b"'.
    """
    mtime_ms = int(mtime * 1000)
    tag = f'"{size:x}-{mtime_ms:x}"'
    return f"W/{tag}" if weak else tag
