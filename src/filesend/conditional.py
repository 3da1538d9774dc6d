"""
=============================================================================
CONDITIONAL REQUESTS (RFC 7232)
=============================================================================

A client that already holds a copy of a file sends validators back:

    If-Match: "abc"                   only proceed if it is still "abc"
    If-Unmodified-Since: <date>       only proceed if unchanged since
    If-None-Match: "abc"              send it only if it is NOT "abc"
    If-Modified-Since: <date>         send it only if changed since

The server compares them with its own validators (ETag, Last-Modified).

=============================================================================
EVALUATION ORDER
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  1. If-Match present?                                               │
    │       "*" or a token equal to ETag (weak-equivalent) → continue     │
    │       otherwise                                      → 412          │
    │  2. else If-Unmodified-Since is a valid date?                       │
    │       Last-Modified later (or unparseable)           → 412          │
    │  3. If-None-Match / If-Modified-Since say "fresh"    → 304          │
    │  4. otherwise                                        → serve        │
    └─────────────────────────────────────────────────────────────────────┘

412 always wins over 304. Both only apply when the response would
otherwise be 2xx or 304 (is_cachable).

Everything here is a pure function of (request headers, validators):
no state, no I/O.

=============================================================================
TOKEN LISTS
=============================================================================

If-Match and If-None-Match hold comma separated entity tags. Spaces are
separators only around commas; a token keeps its internal spaces:

    '"a", "b" ,"c"'     →  ['"a"', '"b"', '"c"']
    'W/"x y", "z"'      →  ['W/"x y"', '"z"']

=============================================================================
"""

import re
from typing import List, Mapping, Optional

from .http.request import CONDITIONAL_HEADERS
from .http.response import parse_http_date


_NO_CACHE = re.compile(r"(?:^|,)\s*?no-cache\s*?(?:,|$)")


def parse_token_list(value: str) -> List[str]:
    """Split a comma separated header value into tokens."""
    tokens = []
    start = end = 0

    for index, char in enumerate(value):
        if char == " ":
            if start == end:
                start = end = index + 1
        elif char == ",":
            if start != end:
                tokens.append(value[start:end])
            start = end = index + 1
        else:
            end = index + 1

    if start != end:
        tokens.append(value[start:end])

    return tokens


def _etag_matches(token: str, etag: str) -> bool:
    return token == etag or token == f"W/{etag}" or f"W/{token}" == etag


def is_conditional_request(headers: Mapping[str, str]) -> bool:
    """True when any of the four conditional headers is present."""
    return any(headers.get(name) for name in CONDITIONAL_HEADERS)


def is_cachable(status: int) -> bool:
    """Conditional headers only apply to 2xx and 304 responses."""
    return 200 <= status < 300 or status == 304


def is_precondition_failed(
    headers: Mapping[str, str],
    etag: Optional[str],
    last_modified: Optional[str],
) -> bool:
    """
    Evaluate If-Match, then If-Unmodified-Since.

    Args:
        headers: Request headers (lower-case names).
        etag: Current ETag response header, if any.
        last_modified: Current Last-Modified response header, if any.

    Returns:
        True when the request must be answered with 412.
    """
    match = headers.get("if-match")
    if match:
        if match.strip() == "*":
            return False
        if not etag:
            return True
        return not any(_etag_matches(token, etag) for token in parse_token_list(match))

    unmodified_since = parse_http_date(headers.get("if-unmodified-since"))
    if unmodified_since is not None:
        modified = parse_http_date(last_modified)
        return modified is None or modified > unmodified_since

    return False


def fresh(request_headers: Mapping[str, str], response_headers: Mapping[str, str]) -> bool:
    """
    Is the client's cached copy still fresh?

    Args:
        request_headers: Lower-case request headers.
        response_headers: Mapping with "etag" and "last-modified" keys.
    """
    modified_since = request_headers.get("if-modified-since")
    none_match = request_headers.get("if-none-match")

    if not modified_since and not none_match:
        return False

    # An end-to-end reload always gets a full response
    cache_control = request_headers.get("cache-control")
    if cache_control and _NO_CACHE.search(cache_control):
        return False

    if none_match and none_match.strip() != "*":
        etag = response_headers.get("etag")
        if not etag:
            return False
        if not any(_etag_matches(token, etag) for token in parse_token_list(none_match)):
            return False

    if modified_since:
        last_modified = parse_http_date(response_headers.get("last-modified"))
        since = parse_http_date(modified_since)
        if last_modified is None or since is None or last_modified > since:
            return False

    return True


def is_fresh(
    headers: Mapping[str, str],
    etag: Optional[str],
    last_modified: Optional[str],
) -> bool:
    """fresh() with the response validators passed directly."""
    return fresh(headers, {"etag": etag or "", "last-modified": last_modified or ""})
