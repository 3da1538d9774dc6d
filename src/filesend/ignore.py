"""
=============================================================================
IGNORE MATCHING
=============================================================================

Some files under the root must never be served: VCS metadata, editor
backups, private config. Ignore patterns are globs matched against the
normalized request path:

    Pattern            Matches
    ───────────────    ─────────────────────────────────────────
    *.bak              notes.bak            (not a/notes.bak)
    **/*.bak           notes.bak, a/b/notes.bak
    **/.*              .env, a/.htaccess
    .git/**            .git, .git/HEAD, .git/refs/heads/main
    secret/?.txt       secret/a.txt
    {a,b}/index.html   a/index.html, b/index.html
    [!_]*.js           app.js               (not _draft.js)

Leading slashes are ignored on both sides, so "/private/**" and
"private/**" mean the same thing.

=============================================================================
DOTFILES
=============================================================================

With dot=True (the default) wildcards match names that start with a dot,
so "**/*" hides ".env" too. With dot=False a wildcard at the start of a
path segment refuses a leading dot; the dot has to be written out:

    dot=False   "*"    vs ".env"   →  no match
                ".*"   vs ".env"   →  match

=============================================================================
ACCESS DECISION
=============================================================================

    matched?   ignore_access   decision   status
    ────────   ─────────────   ────────   ──────
    no         (any)           ALLOW      -
    yes        "deny"          DENY       403
    yes        "ignore"        HIDE       404

=============================================================================
"""

import re
from enum import Enum
from typing import Iterable, List, Pattern


class AccessDecision(Enum):
    ALLOW = "allow"
    DENY = "deny"
    HIDE = "hide"


def glob_to_regex(pattern: str, dot: bool = True) -> Pattern:
    """
    Compile a glob pattern into an anchored regular expression.

    Args:
        pattern: Glob (see module docstring for the syntax).
        dot: Whether wildcards may match a leading dot.
    """
    pattern = pattern.lstrip("/")
    if pattern.startswith("./"):
        pattern = pattern[2:]

    no_dot = "" if dot else r"(?!\.)"
    regex: List[str] = []
    i, n = 0, len(pattern)
    in_brace = 0
    segment_start = True

    while i < n:
        char = pattern[i]
        guard = no_dot if segment_start else ""

        if char == "*":
            if segment_start and pattern.startswith("**/", i):
                # zero or more whole directories
                regex.append(r"(?:.*/)?" if dot else r"(?:(?!\.)[^/]*/)*")
                i += 3
                continue
            if segment_start and pattern.startswith("**", i) and i + 2 == n:
                if regex and regex[-1] == "/":
                    # "dir/**" also matches "dir" itself
                    regex.pop()
                    regex.append(r"(?:/.*)?" if dot else r"(?:/(?!\.)[^/]*)*")
                else:
                    regex.append(".*" if dot else r"(?!\.)[^/]*(?:/(?!\.)[^/]*)*")
                break
            while i < n and pattern[i] == "*":
                i += 1
            regex.append(guard + "[^/]*")
            segment_start = False
            continue

        if char == "?":
            regex.append(guard + "[^/]")
        elif char == "[":
            end = pattern.find("]", i + 2 if pattern.startswith("[!", i) else i + 1)
            if end == -1:
                regex.append(re.escape(char))
            else:
                body = pattern[i + 1:end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                body = body.replace("\\", "\\\\")
                regex.append(guard + f"[{body}]")
                i = end
        elif char == "{":
            in_brace += 1
            regex.append("(?:")
            i += 1
            continue
        elif char == "}" and in_brace:
            in_brace -= 1
            regex.append(")")
        elif char == "," and in_brace:
            regex.append("|")
            i += 1
            continue
        elif char == "\\" and i + 1 < n:
            i += 1
            regex.append(re.escape(pattern[i]))
        elif char == "/":
            regex.append("/")
            segment_start = True
            i += 1
            continue
        else:
            regex.append(re.escape(char))
        segment_start = False
        i += 1

    if in_brace:
        # unbalanced "{": match the pattern literally
        return re.compile(re.escape(pattern) + r"\Z")

    return re.compile("".join(regex) + r"\Z")


class IgnoreMatcher:
    """
    Matches request paths against a set of ignore globs.

    Example:
        matcher = IgnoreMatcher(["**/.*", "*.bak"], dot=True)
        matcher.matches("/a/.env")                 # True
        matcher.decide("/a/.env", "ignore")        # AccessDecision.HIDE
    """

    def __init__(self, patterns: Iterable[str] = (), dot: bool = True):
        self.patterns = tuple(pattern for pattern in patterns if pattern)
        self.dot = dot
        self._compiled = [glob_to_regex(pattern, dot) for pattern in self.patterns]

    def __bool__(self) -> bool:
        return bool(self._compiled)

    def __repr__(self) -> str:
        return f"IgnoreMatcher({list(self.patterns)!r}, dot={self.dot})"

    def matches(self, path: str) -> bool:
        """Does `path` match any pattern?"""
        if not self._compiled:
            return False
        candidate = path.strip("/")
        return any(regex.match(candidate) for regex in self._compiled)

    def decide(self, path: str, access: str) -> AccessDecision:
        """
        Access decision for `path` under the configured access mode.

        Args:
            path: Normalized request path.
            access: "deny" or "ignore".
        """
        if not self.matches(path):
            return AccessDecision.ALLOW
        return AccessDecision.HIDE if access == "ignore" else AccessDecision.DENY
