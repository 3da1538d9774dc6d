"""
=============================================================================
BYTE RANGES (RFC 7233)
=============================================================================

A client can ask for parts of a file instead of the whole thing - to
resume a download, or to seek in a video:

    Range: bytes=0-99          first 100 bytes
    Range: bytes=100-          everything from offset 100
    Range: bytes=-100          the LAST 100 bytes
    Range: bytes=0-0,-1        first and last byte (two parts)

Offsets are INCLUSIVE: bytes=0-99 is 100 bytes.

=============================================================================
FROM HEADER TO PLAN
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       plan_ranges()                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   no Range / ranges disabled / If-Range stale     → Whole    200    │
    │   not "bytes" unit / malformed header             → Whole    200    │
    │   no span inside the file                         → Unsatisfiable   │
    │                                                              416    │
    │   one span (after combining)                      → Single   206    │
    │   several spans                                   → Multipart 206   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
MULTIPART/BYTERANGES WIRE FORMAT
=============================================================================

For two parts of a 9-byte text file the body is (CRLF shown as ↵):

    --BOUNDARY↵                             ┐
    Content-Type: text/plain↵               │ open frame, part 1
    Content-Range: bytes 0-1/9↵             │ (leading ↵ stripped)
    ↵                                       ┘
    12                                        payload
    ↵--BOUNDARY↵                            ┐
    Content-Type: text/plain↵               │ open frame, part 2
    Content-Range: bytes 7-8/9↵             │
    ↵                                       ┘
    89                                        payload
    ↵--BOUNDARY--↵                            close frame (last part only)

Content-Length is computed up front, before a single byte is read:

    Σ (end - start + 1)  +  Σ len(open frame)  +  len(close frame)

with every frame measured in ENCODED bytes.

=============================================================================
"""

import re
import secrets
import string
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from .http.response import parse_http_date


BOUNDARY_LENGTH = 38
BOUNDARY_ALPHABET = string.digits + string.ascii_letters
DEFAULT_PART_TYPE = "application/octet-stream"

_RANGE_SPEC = re.compile(r"^\s*(\d*)\s*-\s*(\d*)\s*$")

# uint64 offsets; longer digit runs are rejected before int()
MAX_OFFSET_DIGITS = 19


# =============================================================================
# PARSING
# =============================================================================

class RangeStatus(Enum):
    """Parse outcomes that are not a list of spans."""

    UNSATISFIABLE = -1
    MALFORMED = -2


@dataclass(frozen=True)
class ByteSpan:
    """Inclusive byte span [start, end]."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True)
class ParsedRanges:
    unit: str
    spans: Tuple[ByteSpan, ...]


def combine_spans(spans: List[ByteSpan]) -> List[ByteSpan]:
    """
    Merge overlapping and adjacent spans.

    The result is ordered by the first request occurrence of each merged
    group, not by offset:

        [5-8, 0-1, 2-3]   →   [5-8, 0-3]
    """
    ordered = sorted(enumerate(spans), key=lambda item: item[1].start)
    merged: List[List[int]] = []  # [start, end, first index]

    for index, span in ordered:
        if merged and span.start <= merged[-1][1] + 1:
            last = merged[-1]
            last[1] = max(last[1], span.end)
            last[2] = min(last[2], index)
        else:
            merged.append([span.start, span.end, index])

    merged.sort(key=lambda item: item[2])
    return [ByteSpan(start, end) for start, end, _ in merged]


def parse_range(
    size: int,
    header: str,
    combine: bool = True,
) -> Union[ParsedRanges, RangeStatus]:
    """
    Parse a Range header against a resource of `size` bytes.

    Args:
        size: Resource size in bytes.
        header: Raw Range header value.
        combine: Merge overlapping/adjacent spans.

    Returns:
        ParsedRanges, RangeStatus.UNSATISFIABLE when the syntax is valid but
        no span lies inside the resource, or RangeStatus.MALFORMED.

    Example:
        >>> parse_range(9, "bytes=2-50")
        ParsedRanges(unit='bytes', spans=(ByteSpan(start=2, end=8),))
    """
    unit, sep, specs = header.partition("=")
    if not sep:
        return RangeStatus.MALFORMED

    spans: List[ByteSpan] = []
    items = 0
    for spec in specs.split(","):
        if not spec.strip():
            # empty list elements are allowed
            continue
        items += 1

        match = _RANGE_SPEC.match(spec)
        if not match:
            return RangeStatus.MALFORMED
        first, last = match.groups()
        if len(first) > MAX_OFFSET_DIGITS or len(last) > MAX_OFFSET_DIGITS:
            return RangeStatus.MALFORMED

        if first and last:
            start, end = int(first), int(last)
        elif first:
            start, end = int(first), size - 1
        elif last:
            # suffix: the last N bytes, or the whole file when N >= size
            start, end = max(0, size - int(last)), size - 1
        else:
            return RangeStatus.MALFORMED

        end = min(end, size - 1)
        if start > end or start >= size:
            continue
        spans.append(ByteSpan(start, end))

    if not items:
        return RangeStatus.MALFORMED
    if not spans:
        return RangeStatus.UNSATISFIABLE

    if combine:
        spans = combine_spans(spans)

    return ParsedRanges(unit=unit.strip().lower(), spans=tuple(spans))


def is_range_fresh(
    if_range: Optional[str],
    etag: Optional[str],
    last_modified: Optional[str],
) -> bool:
    """
    Does If-Range still match the current representation?

    A quoted value is an entity tag (compared ignoring the weak prefix),
    anything else an HTTP date that must not be older than Last-Modified.
    """
    if not if_range:
        return True

    if '"' in if_range:
        if not etag:
            return False
        return _opaque(if_range) == _opaque(etag)

    modified = parse_http_date(last_modified)
    since = parse_http_date(if_range)
    return modified is not None and since is not None and modified <= since


def _opaque(tag: str) -> str:
    tag = tag.strip()
    return tag[2:] if tag.startswith("W/") else tag


def generate_boundary(length: int = BOUNDARY_LENGTH) -> str:
    """Random multipart boundary drawn from [0-9A-Za-z]."""
    return "".join(secrets.choice(BOUNDARY_ALPHABET) for _ in range(length))


# =============================================================================
# PLANS
# =============================================================================

@dataclass(frozen=True)
class Whole:
    """Serve the entire resource with 200."""

    size: int

    @property
    def content_length(self) -> int:
        return self.size


@dataclass(frozen=True)
class Single:
    """One span, served as a 206 with Content-Range."""

    span: ByteSpan
    size: int

    @property
    def content_length(self) -> int:
        return self.span.length

    @property
    def content_range(self) -> str:
        return f"bytes {self.span.start}-{self.span.end}/{self.size}"


@dataclass(frozen=True)
class RangePart:
    """One multipart section: frame bytes around a span of the file."""

    span: ByteSpan
    open_frame: bytes
    close_frame: bytes = b""

    @property
    def start(self) -> int:
        return self.span.start

    @property
    def end(self) -> int:
        return self.span.end


@dataclass(frozen=True)
class Multipart:
    """Several spans, served as multipart/byteranges."""

    parts: Tuple[RangePart, ...]
    boundary: str
    size: int

    @property
    def content_type(self) -> str:
        return f"multipart/byteranges; boundary={self.boundary}"

    @property
    def content_length(self) -> int:
        return sum(
            part.span.length + len(part.open_frame) + len(part.close_frame)
            for part in self.parts
        )


@dataclass(frozen=True)
class Unsatisfiable:
    """No span inside the resource: 416 with `bytes */size`."""

    size: int

    @property
    def content_range(self) -> str:
        return f"bytes */{self.size}"


RangePlan = Union[Whole, Single, Multipart, Unsatisfiable]


def build_multipart(
    spans: Tuple[ByteSpan, ...],
    size: int,
    content_type: Optional[str],
    boundary: Optional[str] = None,
) -> Multipart:
    """Frame `spans` as multipart/byteranges parts."""
    boundary = boundary or generate_boundary()
    part_type = content_type or DEFAULT_PART_TYPE
    close_frame = f"\r\n--{boundary}--\r\n".encode("utf-8")

    parts = []
    for index, span in enumerate(spans):
        frame = (
            f"\r\n--{boundary}\r\n"
            f"Content-Type: {part_type}\r\n"
            f"Content-Range: bytes {span.start}-{span.end}/{size}\r\n"
            f"\r\n"
        )
        if index == 0:
            frame = frame[2:]
        is_last = index == len(spans) - 1
        parts.append(RangePart(
            span=span,
            open_frame=frame.encode("utf-8"),
            close_frame=close_frame if is_last else b"",
        ))

    return Multipart(parts=tuple(parts), boundary=boundary, size=size)


def plan_ranges(
    range_header: Optional[str],
    if_range: Optional[str],
    size: int,
    etag: Optional[str] = None,
    last_modified: Optional[str] = None,
    content_type: Optional[str] = None,
    accept_ranges: bool = True,
    boundary: Optional[str] = None,
) -> RangePlan:
    """
    Decide how the body of a GET is sent.

    Args:
        range_header: Request Range header.
        if_range: Request If-Range header.
        size: Resource size in bytes.
        etag: Current ETag response header.
        last_modified: Current Last-Modified response header.
        content_type: Current Content-Type (carried into multipart frames).
        accept_ranges: Range support enabled.
        boundary: Fixed multipart boundary (random when omitted).

    Returns:
        Whole, Single, Multipart or Unsatisfiable.
    """
    if not accept_ranges or not range_header:
        return Whole(size)

    if not is_range_fresh(if_range, etag, last_modified):
        return Whole(size)

    # other units are ignored, even when they would be unsatisfiable
    if range_header.partition("=")[0].strip().lower() != "bytes":
        return Whole(size)

    parsed = parse_range(size, range_header, combine=True)

    if parsed is RangeStatus.MALFORMED:
        return Whole(size)
    if parsed is RangeStatus.UNSATISFIABLE:
        return Unsatisfiable(size)

    if len(parsed.spans) == 1:
        return Single(parsed.spans[0], size)

    return build_multipart(parsed.spans, size, content_type, boundary)
