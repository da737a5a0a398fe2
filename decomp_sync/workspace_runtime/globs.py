"""Glob matching for watch patterns.

Semantics follow the usual editor-watcher conventions:

- A pattern without ``/`` is matched against the file's basename only, so
  ``*.c`` matches ``src/foo/bar.c``.
- ``*`` and ``?`` never cross a ``/``; ``**`` matches any number of path
  segments.
- ``{a,b}`` expands to alternatives; ``[...]`` is a character class
  (``[!...]`` negates).
- Wildcards do not match a leading ``.`` in a segment, so dotfiles are only
  matched by patterns that spell the dot out.
- Matching is case-sensitive (``*.s`` and ``*.S`` are distinct).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePosixPath

_NO_DOT = r"(?!\.)"
_SEGMENT = r"[^/]*"


@dataclass(frozen=True)
class PathMatcher:
    """Compiled set of watch patterns."""

    patterns: tuple[str, ...]
    _basename: re.Pattern[str] | None
    _fullpath: re.Pattern[str] | None

    def matches(self, path: str) -> bool:
        """Return True when the workspace-relative POSIX *path* matches any pattern."""
        path = path.lstrip("/")
        if self._fullpath is not None and self._fullpath.fullmatch(path):
            return True
        if self._basename is not None:
            return self._basename.fullmatch(PurePosixPath(path).name) is not None
        return False


def compile_watch_patterns(patterns: Iterable[str]) -> PathMatcher | None:
    """Compile *patterns* into a matcher.  Returns None when there are none."""
    patterns = tuple(p for p in patterns if p)
    if not patterns:
        return None

    basename: list[str] = []
    fullpath: list[str] = []
    for pattern in patterns:
        for expanded in expand_braces(pattern):
            bucket = fullpath if "/" in expanded else basename
            bucket.append(translate_glob(expanded))

    return PathMatcher(
        patterns=patterns,
        _basename=re.compile("|".join(basename)) if basename else None,
        _fullpath=re.compile("|".join(fullpath)) if fullpath else None,
    )


def expand_braces(pattern: str) -> list[str]:
    """Expand the first (outermost) ``{a,b}`` group recursively."""
    start = pattern.find("{")
    if start == -1:
        return [pattern]

    depth = 0
    options: list[str] = []
    last = start + 1
    for i in range(start, len(pattern)):
        ch = pattern[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                options.append(pattern[last:i])
                prefix, suffix = pattern[:start], pattern[i + 1 :]
                return [exp for opt in options for exp in expand_braces(prefix + opt + suffix)]
        elif ch == "," and depth == 1:
            options.append(pattern[last:i])
            last = i + 1

    # Unbalanced: treat the brace literally.
    return [pattern]


def translate_glob(pattern: str) -> str:
    """Translate one brace-free glob into a regex fragment (no anchors)."""
    segments = pattern.strip("/").split("/")
    parts: list[str] = []
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == "**":
            # Zero or more whole segments.
            parts.append(rf"(?:{_NO_DOT}{_SEGMENT}(?:/|$))*" if last else rf"(?:{_NO_DOT}{_SEGMENT}/)*")
            continue
        parts.append(_translate_segment(segment) + ("" if last else "/"))
    return "(?:" + "".join(parts) + ")"


def _translate_segment(segment: str) -> str:
    out: list[str] = []
    i = 0
    n = len(segment)
    while i < n:
        ch = segment[i]
        at_start = i == 0
        if ch == "*":
            while i + 1 < n and segment[i + 1] == "*":
                i += 1
            out.append((_NO_DOT if at_start else "") + _SEGMENT)
        elif ch == "?":
            out.append((_NO_DOT if at_start else "") + "[^/]")
        elif ch == "[":
            # A ``]`` right after the opening bracket is literal.
            end = segment.find("]", i + 3 if i + 1 < n and segment[i + 1] in "!^" else i + 2)
            if end == -1:
                out.append(re.escape(ch))
            else:
                body = segment[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = end
        else:
            out.append(re.escape(ch))
        i += 1
    return "".join(out)
