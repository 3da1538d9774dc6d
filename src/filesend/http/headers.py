"""
=============================================================================
RESPONSE HEADER SET
=============================================================================

HTTP header names are case-insensitive (RFC 7230 §3.2), but the names we
emit should keep the casing they were first set with. So the map stores:

    _values:  "content-type" → ("Content-Type", "text/plain")
                    │                  │              │
              lookup key       display name        value

Insertion order is preserved (plain dict), which keeps the serialized head
stable and readable.

=============================================================================
THE HEADERS-SENT LATCH
=============================================================================

Once the first byte of the response is flushed, the status line and headers
are on the wire. Any later mutation is a programming error, so the map is
locked and raises HeadersSentError:

    headers.set("ETag", '"a"')        # ok
    headers.lock()                    # transport flushed the head
    headers.set("ETag", '"b"')        # HeadersSentError

The latch is one-way; there is no unlock.

=============================================================================
"""

from typing import Dict, Iterator, Optional, Tuple, Union

from ..errors import HeadersSentError


HeaderValue = Union[str, int]


class ResponseHeaders:
    """Ordered, case-insensitive, lockable response header map."""

    def __init__(self, initial: Optional[Dict[str, HeaderValue]] = None):
        self._values: Dict[str, Tuple[str, str]] = {}
        self._locked = False
        for name, value in (initial or {}).items():
            self.set(name, value)

    # =========================================================================
    # MUTATION
    # =========================================================================

    def set(self, name: str, value: HeaderValue) -> "ResponseHeaders":
        """
        Set a header, replacing any previous value.

        The display casing of an existing header is kept so that a caller's
        "ETag" isn't silently rewritten to "etag" by a later set.
        """
        self._check_writable(name)
        key = name.lower()
        display = self._values[key][0] if key in self._values else name
        self._values[key] = (display, str(value))
        return self

    def remove(self, name: str) -> None:
        """Remove a header if present."""
        self._check_writable(name)
        self._values.pop(name.lower(), None)

    def setdefault(self, name: str, value: HeaderValue) -> str:
        """Set only if absent; returns the effective value."""
        if name not in self:
            self.set(name, value)
        return self[name]

    def lock(self) -> None:
        """Freeze the map; called by the sink when the head is flushed."""
        self._locked = True

    @property
    def locked(self) -> bool:
        return self._locked

    def _check_writable(self, name: str) -> None:
        if self._locked:
            raise HeadersSentError(name)

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        entry = self._values.get(name.lower())
        return entry[1] if entry else default

    def has(self, name: str) -> bool:
        return name.lower() in self._values

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)

    def __getitem__(self, name: str) -> str:
        entry = self._values.get(name.lower())
        if entry is None:
            raise KeyError(name)
        return entry[1]

    def __setitem__(self, name: str, value: HeaderValue) -> None:
        self.set(name, value)

    def __delitem__(self, name: str) -> None:
        if name not in self:
            raise KeyError(name)
        self.remove(name)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return (display for display, _ in self._values.values())

    def items(self) -> Iterator[Tuple[str, str]]:
        """(display name, value) pairs in insertion order."""
        return iter(list(self._values.values()))

    def to_dict(self) -> Dict[str, str]:
        return dict(self._values.values())

    def __repr__(self) -> str:
        state = " locked" if self._locked else ""
        return f"<ResponseHeaders{state} {self.to_dict()!r}>"
