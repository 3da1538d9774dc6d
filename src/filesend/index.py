"""
=============================================================================
DIRECTORY INDEX RESOLUTION
=============================================================================

When a request lands on a directory, the configured index names are probed
in order. The first candidate that exists, is a regular file and is not
ignored wins:

    Request        index match?   Result
    ───────────    ────────────   ────────────────────────────────────
    /pets          index.html     REDIRECT  → /pets/index.html
    /pets          (none)         REDIRECT  → /pets/
    /pets/         index.html     SERVE       /pets/index.html (200)
    /pets/         (none)         NONE        directory hook, or 403

Ignored candidates and candidates whose stat fails are skipped, never
turned into an error: an index probe can only succeed or move on.

=============================================================================
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .errors import Forbidden
from .filesystem import FileSystem, ResourceStat
from .ignore import IgnoreMatcher
from .sandbox import ResourceLocator


logger = logging.getLogger(__name__)


class IndexAction(Enum):
    REDIRECT = "redirect"
    SERVE = "serve"
    NONE = "none"


@dataclass(frozen=True)
class IndexResult:
    """
    Outcome of probing a directory.

    Attributes:
        action: What the engine should do next.
        location: Redirect target path (REDIRECT only).
        locator: Index file locator (SERVE only).
        stat: Index file stat (SERVE only).
    """

    action: IndexAction
    location: Optional[str] = None
    locator: Optional[ResourceLocator] = None
    stat: Optional[ResourceStat] = None


def find_index(
    directory: ResourceLocator,
    names: Iterable[str],
    filesystem: FileSystem,
    matcher: Optional[IgnoreMatcher] = None,
) -> Optional[tuple]:
    """
    Return (locator, stat) of the first usable index file, or None.
    """
    for name in names:
        try:
            candidate = directory.join(name)
        except Forbidden:
            logger.warning(f"Index name {name!r} escapes the root, skipped")
            continue

        if matcher and matcher.matches(candidate.path):
            logger.debug(f"Index candidate ignored: {candidate.path}")
            continue

        try:
            stat = filesystem.stat(candidate.realpath)
        except OSError as e:
            logger.debug(f"Index candidate {candidate.path} unavailable: {e}")
            continue

        if stat.is_file:
            return candidate, stat

    return None


def resolve_index(
    directory: ResourceLocator,
    names: Iterable[str],
    filesystem: FileSystem,
    matcher: Optional[IgnoreMatcher] = None,
) -> IndexResult:
    """
    Decide how a directory request is answered.

    Args:
        directory: Locator of the directory (as requested).
        names: Index file names in priority order.
        filesystem: Stat collaborator.
        matcher: Ignore matcher; matching candidates are skipped.

    Returns:
        IndexResult (REDIRECT, SERVE or NONE).
    """
    found = find_index(directory, names, filesystem, matcher)

    if not directory.has_trailing_slash:
        if found:
            return IndexResult(IndexAction.REDIRECT, location=found[0].path)
        return IndexResult(IndexAction.REDIRECT, location=directory.path + "/")

    if found:
        locator, stat = found
        return IndexResult(IndexAction.SERVE, locator=locator, stat=stat)

    return IndexResult(IndexAction.NONE)
