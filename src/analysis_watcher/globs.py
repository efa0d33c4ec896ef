"""Glob matching used to decide which paths are tracked at all."""

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional, Pattern, Union

if TYPE_CHECKING:
    from .config import WatcherConfig

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _translate(pattern: str) -> str:
    """
    Translate a glob pattern to a regular expression body.

    Supports ``**`` (any number of segments), ``*`` (within a segment),
    ``?`` (one character), ``{a,b}`` alternation and ``[...]`` classes.

    Raises:
        ValueError: If braces or brackets are unbalanced
    """
    out = []
    i = 0
    n = len(pattern)
    depth = 0

    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if pattern.startswith("/", i):
                    # "**/" may also match zero segments
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                raise ValueError(f"unterminated character class in {pattern!r}")
            body = pattern[i + 1:end]
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append(f"[{body}]")
            i = end
        elif c == "{":
            depth += 1
            out.append("(?:")
        elif c == "}":
            if depth == 0:
                raise ValueError(f"unbalanced '}}' in {pattern!r}")
            depth -= 1
            out.append(")")
        elif c == "," and depth > 0:
            out.append("|")
        else:
            out.append(re.escape(c))
        i += 1

    if depth:
        raise ValueError(f"unbalanced '{{' in {pattern!r}")
    return "".join(out)


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> Optional[Pattern[str]]:
    """
    Compile a glob pattern, anchored against the full path.

    Returns:
        Compiled regex, or None if the pattern is malformed
    """
    try:
        return re.compile(f"^{_translate(pattern)}$")
    except (ValueError, re.error) as e:
        logger.warning(f"Ignoring malformed glob pattern {pattern!r}: {e}")
        return None


def _normalize(path: PathLike) -> str:
    if isinstance(path, Path):
        return path.as_posix()
    return path.replace("\\", "/")


def matches_pattern(path: PathLike, pattern: str) -> bool:
    """Check a path against one glob pattern. Malformed patterns never match."""
    regex = compile_pattern(pattern)
    if regex is None:
        return False
    return regex.match(_normalize(path)) is not None


def matches_any(path: PathLike, patterns: Iterable[str]) -> bool:
    """Check a path against several glob patterns."""
    return any(matches_pattern(path, p) for p in patterns)


def should_watch_file(path: PathLike, config: "WatcherConfig") -> bool:
    """
    Decide whether a path should be tracked.

    Exclude patterns are checked first; any match rejects the path.
    Otherwise the path is accepted only if an include pattern matches.
    """
    path_str = _normalize(path)

    for pattern in config.exclude:
        if matches_pattern(path_str, pattern):
            return False

    for pattern in config.patterns:
        if matches_pattern(path_str, pattern):
            return True

    return False
