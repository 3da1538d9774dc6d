"""
=============================================================================
SEND CONFIGURATION
=============================================================================

Everything the engine needs to know about *how* to serve a root directory,
resolved once and immutable afterwards. Concurrent requests share a single
SendConfig; nothing in a request ever writes to it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION SURFACE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   WHERE            root, index                                      │
    │   WHAT IS HIDDEN   ignore, ignore_access, glob_dot                  │
    │   CACHING          max_age, immutable, etag, last_modified,         │
    │                    cache_control                                    │
    │   CONTENT          charset, accept_ranges, chunk_size               │
    │   HOOKS            on_directory, on_error, on_headers, on_file      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
MAX-AGE
=============================================================================

max_age accepts seconds as a number, or a human duration string:

    300          →  300
    "30s"        →  30
    "5m"         →  300
    "1d"         →  86400
    "500"        →  0          (bare number strings are milliseconds)
    "2y"         →  31536000   (clamped to one year)
    "soon"       →  0          (unparseable)

=============================================================================
ENVIRONMENT
=============================================================================

    FILESEND_ROOT           Root directory (default: cwd)
    FILESEND_INDEX          Comma-separated index names (default: index.html)
    FILESEND_IGNORE         Comma-separated glob patterns
    FILESEND_IGNORE_ACCESS  deny | ignore
    FILESEND_MAX_AGE        Seconds or duration string
    FILESEND_CHARSET        Charset appended to Content-Type
    FILESEND_IMMUTABLE      Add `immutable` to Cache-Control
    FILESEND_ETAG / FILESEND_LAST_MODIFIED / FILESEND_CACHE_CONTROL /
    FILESEND_ACCEPT_RANGES  Header toggles (1/true/yes/on, 0/false/no/off)

=============================================================================
"""

import math
import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, Tuple, Union

from .filesystem import DEFAULT_CHUNK_SIZE
from .sandbox import normalize_root


MAX_MAX_AGE = 60 * 60 * 24 * 365

ACCESS_DENY = "deny"
ACCESS_IGNORE = "ignore"

_DURATION = re.compile(
    r"^(?P<value>-?(?:\d+)?\.?\d+)\s*"
    r"(?P<unit>milliseconds?|msecs?|ms|seconds?|secs?|s|minutes?|mins?|m|"
    r"hours?|hrs?|h|days?|d|weeks?|w|years?|yrs?|y)?$",
    re.IGNORECASE,
)

# Milliseconds per unit
_UNITS = {
    "y": 365.25 * 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "h": 60 * 60 * 1000,
    "m": 60 * 1000,
    "s": 1000,
    "ms": 1,
}

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _unit_key(unit: Optional[str]) -> str:
    if not unit:
        return "ms"
    unit = unit.lower()
    if unit.startswith(("ms", "msec", "millisecond")):
        return "ms"
    if unit.startswith("mi"):
        return "m"
    if unit in ("hrs", "hr") or unit.startswith("h"):
        return "h"
    if unit.startswith("y"):
        return "y"
    return unit[0]


def parse_duration(value: str) -> Optional[float]:
    """
    Parse a duration string into milliseconds.

    Returns None when the string is not a duration.
    """
    match = _DURATION.match(value.strip())
    if not match:
        return None
    return float(match.group("value")) * _UNITS[_unit_key(match.group("unit"))]


def parse_max_age(value: Union[int, float, str, None]) -> int:
    """
    Normalize a max-age setting to whole seconds in [0, MAX_MAX_AGE].

    Args:
        value: Seconds as a number, or a duration string.

    Returns:
        Floored, clamped number of seconds (0 for unparseable input).
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, str):
        millis = parse_duration(value)
        if millis is None:
            return 0
        seconds = millis / 1000
    else:
        seconds = float(value)

    if math.isnan(seconds):
        return 0
    return int(math.floor(min(max(0.0, seconds), MAX_MAX_AGE)))


def _as_names(value: Union[str, Sequence[str], None, bool]) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = [value]
    return tuple(str(item) for item in value if item)


def _env_list(name: str) -> Optional[Tuple[str, ...]]:
    raw = os.getenv(name)
    if raw is None:
        return None
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = raw.strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_max_age(name: str) -> Union[float, str]:
    raw = os.getenv(name, "0").strip()
    # plain numbers in the environment are seconds
    try:
        return float(raw)
    except ValueError:
        return raw


Hook = Optional[Callable[..., Any]]


@dataclass(frozen=True)
class SendConfig:
    """
    Immutable options for a FileSend engine.

    Example:
        config = SendConfig(
            root="./public",
            index=["index.html", "index.htm"],
            ignore=["**/.git/**", "*.bak"],
            ignore_access="ignore",      # hide instead of 403
            max_age="1d",
            immutable=True,
        )
    """

    # ─────────────────────────────────────────────────────────────────────
    # WHERE
    # ─────────────────────────────────────────────────────────────────────

    root: str = "."
    """Directory served. Normalized to an absolute POSIX path."""

    index: Union[str, Sequence[str], None, bool] = ("index.html",)
    """Index names probed in order for directory requests. Falsy disables."""

    # ─────────────────────────────────────────────────────────────────────
    # IGNORE
    # ─────────────────────────────────────────────────────────────────────

    ignore: Union[str, Sequence[str], None] = ()
    """Glob patterns matched against the request path."""

    ignore_access: str = ACCESS_DENY
    """
    What a match means.
    - "deny"   → 403 Forbidden
    - "ignore" → 404 Not Found (the file is hidden)
    """

    glob_dot: bool = True
    """Let wildcards match names starting with a dot."""

    # ─────────────────────────────────────────────────────────────────────
    # CACHING
    # ─────────────────────────────────────────────────────────────────────

    max_age: Union[int, float, str] = 0
    immutable: bool = False
    etag: bool = True
    last_modified: bool = True
    cache_control: bool = True

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    charset: Optional[str] = None
    accept_ranges: bool = True
    chunk_size: int = DEFAULT_CHUNK_SIZE

    # ─────────────────────────────────────────────────────────────────────
    # HOOKS
    # ─────────────────────────────────────────────────────────────────────

    on_directory: Hook = field(default=None, compare=False, repr=False)
    """on_directory(context) → optional body. Default: 403."""

    on_error: Hook = field(default=None, compare=False, repr=False)
    """on_error(context, error) → optional body. Default: HTML document."""

    on_headers: Hook = field(default=None, compare=False, repr=False)
    """on_headers(context), after default headers, before conditionals."""

    on_file: Hook = field(default=None, compare=False, repr=False)
    """on_file(context, stat), just before the body streams."""

    def __post_init__(self):
        # frozen: normalize through object.__setattr__
        set_ = object.__setattr__
        set_(self, "root", normalize_root(self.root))
        set_(self, "index", _as_names(self.index))
        set_(self, "ignore", _as_names(self.ignore))
        set_(self, "ignore_access",
             ACCESS_IGNORE if self.ignore_access == ACCESS_IGNORE else ACCESS_DENY)
        set_(self, "max_age", parse_max_age(self.max_age))
        set_(self, "charset", self.charset or None)
        self.validate()

    def validate(self) -> None:
        """Fail fast on values that would only break at request time."""
        if not isinstance(self.chunk_size, int) or self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be a positive integer, got {self.chunk_size!r}")

        for name in ("on_directory", "on_error", "on_headers", "on_file"):
            hook = getattr(self, name)
            if hook is not None and not callable(hook):
                raise ValueError(f"{name} must be callable")

    @property
    def cache_control_value(self) -> str:
        value = f"public, max-age={self.max_age}"
        return f"{value}, immutable" if self.immutable else value

    @classmethod
    def from_env(cls, **overrides) -> "SendConfig":
        """
        Build a configuration from FILESEND_* environment variables.

        Keyword arguments win over the environment, so hooks (which can't
        come from the environment) are passed here:

            config = SendConfig.from_env(on_directory=render_listing)
        """
        options = {
            "root": os.getenv("FILESEND_ROOT", "."),
            "ignore_access": os.getenv("FILESEND_IGNORE_ACCESS", ACCESS_DENY),
            "max_age": _env_max_age("FILESEND_MAX_AGE"),
            "charset": os.getenv("FILESEND_CHARSET"),
            "immutable": _env_bool("FILESEND_IMMUTABLE", False),
            "etag": _env_bool("FILESEND_ETAG", True),
            "last_modified": _env_bool("FILESEND_LAST_MODIFIED", True),
            "cache_control": _env_bool("FILESEND_CACHE_CONTROL", True),
            "accept_ranges": _env_bool("FILESEND_ACCEPT_RANGES", True),
        }

        index = _env_list("FILESEND_INDEX")
        if index is not None:
            options["index"] = index
        ignore = _env_list("FILESEND_IGNORE")
        if ignore is not None:
            options["ignore"] = ignore

        options.update(overrides)
        return cls(**options)
