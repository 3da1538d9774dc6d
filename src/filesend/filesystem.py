"""
=============================================================================
FILESYSTEM COLLABORATOR
=============================================================================

The engine needs exactly two things from storage:

    stat(path)                       → ResourceStat(size, mtime, is_directory)
    read(path, start, end, chunk)    → iterator of byte chunks for [start, end]

Both take the REAL path (root + resolved path). Failures are ordinary
OSErrors; the engine classifies them:

    ENOENT / ENAMETOOLONG / ENOTDIR   →  404 Not Found
    anything else                     →  500 with the OS message

=============================================================================
STREAMING, NOT BUFFERING
=============================================================================

read() is a generator holding the file open inside a `with` block. The file
is closed as soon as the generator is exhausted OR closed early - which is
how a client disconnect stops reading promptly:

    chunks = fs.read(path, 0, size - 1)
    next(chunks)          # file open, first chunk read
    chunks.close()        # GeneratorExit inside the with → file closed

A file that shrinks between stat() and read() raises ShortReadError instead
of silently sending fewer bytes than Content-Length promised.

=============================================================================
"""

import errno
import os
import stat as stat_module
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, Optional


DEFAULT_CHUNK_SIZE = 64 * 1024

NOT_FOUND_ERRNOS = frozenset({errno.ENOENT, errno.ENAMETOOLONG, errno.ENOTDIR})


class ShortReadError(OSError):
    """The file ended before the promised byte range was read."""


def is_not_found_error(error: BaseException) -> bool:
    """True for the error classes that mean "no such resource"."""
    return isinstance(error, OSError) and error.errno in NOT_FOUND_ERRNOS


@dataclass(frozen=True)
class ResourceStat:
    """Metadata captured once per request; never re-read mid-request."""

    size: int
    mtime: float
    is_directory: bool = False
    is_file: bool = True

    @property
    def mtime_utc(self) -> datetime:
        return datetime.fromtimestamp(self.mtime, tz=timezone.utc)

    @classmethod
    def from_os(cls, st: os.stat_result) -> "ResourceStat":
        return cls(
            size=st.st_size,
            mtime=st.st_mtime,
            is_directory=stat_module.S_ISDIR(st.st_mode),
            is_file=stat_module.S_ISREG(st.st_mode),
        )


class FileSystem(ABC):
    """Storage interface used by the engine and the index resolver."""

    @abstractmethod
    def stat(self, path: str) -> ResourceStat:
        """Stat `path`; raise OSError on failure."""

    @abstractmethod
    def read(
        self,
        path: str,
        start: int = 0,
        end: Optional[int] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> Iterator[bytes]:
        """Yield the bytes of `path` in [start, end] (inclusive)."""


class LocalFileSystem(FileSystem):
    """FileSystem backed by the local disk."""

    def stat(self, path: str) -> ResourceStat:
        return ResourceStat.from_os(os.stat(path))

    def read(
        self,
        path: str,
        start: int = 0,
        end: Optional[int] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> Iterator[bytes]:
        remaining = None if end is None else end - start + 1
        if remaining is not None and remaining <= 0:
            return

        with open(path, "rb") as handle:
            if start:
                handle.seek(start)
            while remaining is None or remaining > 0:
                size = chunk_size if remaining is None else min(chunk_size, remaining)
                data = handle.read(size)
                if not data:
                    if remaining:
                        raise ShortReadError(
                            errno.EIO,
                            f"Unexpected end of file, {remaining} bytes missing",
                            path,
                        )
                    break
                if remaining is not None:
                    remaining -= len(data)
                yield data
