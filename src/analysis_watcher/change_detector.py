"""Heuristic classification of recent per-file editing activity."""

import logging
import re
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from .models import (
    ChangePattern,
    ChangeType,
    FileChangeEvent,
    FileHistory,
    PatternType,
    read_text_safely,
)

logger = logging.getLogger(__name__)

PATTERN_WINDOW_SECONDS = 5 * 60
DOMINANT_CONFIDENCE_THRESHOLD = 0.5

REFACTOR_KEYWORDS = (
    "rename", "extract", "move", "reorganize", "restructure",
    "refactor", "cleanup", "optimize", "simplify",
)
FEATURE_KEYWORDS = (
    "feature", "add", "implement", "create", "build",
    "develop", "introduce", "enhancement",
)
BUG_FIX_KEYWORDS = (
    "fix", "bug", "error", "issue", "problem",
    "correct", "resolve", "patch", "hotfix",
)
FORMATTING_TOOL_RE = re.compile(r"format|prettier|eslint|tslint")

TextReader = Callable[[Path], Optional[str]]


def _time_span(changes: Sequence[FileChangeEvent]) -> float:
    return changes[-1].timestamp - changes[0].timestamp


def detect_bulk_edit(changes: Sequence[FileChangeEvent], text: Optional[str]) -> Optional[ChangePattern]:
    """Many rapid changes: more than 10 per minute over at least 5 events."""
    if len(changes) < 5:
        return None

    span = _time_span(changes)
    changes_per_minute = len(changes) / span * 60 if span > 0 else float("inf")

    if changes_per_minute > 10:
        return ChangePattern(
            pattern_type=PatternType.BULK_EDIT,
            confidence=min(changes_per_minute / 20, 0.95),
            description="Rapid bulk editing detected",
            indicators=("high_frequency_changes", "short_time_span"),
        )
    return None


def detect_refactoring(changes: Sequence[FileChangeEvent], text: Optional[str]) -> Optional[ChangePattern]:
    """Refactoring vocabulary in the file or in the changed paths."""
    if text is None:
        return None

    lowered = text.lower()
    paths = [str(c.path).lower() for c in changes]
    hits = [
        kw for kw in REFACTOR_KEYWORDS
        if kw in lowered or any(kw in p for p in paths)
    ]

    if hits and len(changes) >= 3:
        return ChangePattern(
            pattern_type=PatternType.REFACTOR,
            confidence=min(len(hits) / len(REFACTOR_KEYWORDS) + 0.3, 0.9),
            description="Code refactoring activity detected",
            indicators=tuple(kw for kw in REFACTOR_KEYWORDS if kw in lowered),
        )
    return None


def detect_new_feature(changes: Sequence[FileChangeEvent], text: Optional[str]) -> Optional[ChangePattern]:
    """A freshly created file, or feature vocabulary across a few edits."""
    if any(c.change_type == ChangeType.CREATED for c in changes):
        return ChangePattern(
            pattern_type=PatternType.NEW_FEATURE,
            confidence=0.8,
            description="New feature development detected",
            indicators=("new_file_created",),
        )

    if text is None:
        return None

    lowered = text.lower()
    hits = tuple(kw for kw in FEATURE_KEYWORDS if kw in lowered)

    if len(hits) > 1 and len(changes) >= 2:
        return ChangePattern(
            pattern_type=PatternType.NEW_FEATURE,
            confidence=min(len(hits) / len(FEATURE_KEYWORDS) + 0.4, 0.85),
            description="New feature development activity",
            indicators=hits,
        )
    return None


def detect_bug_fix(changes: Sequence[FileChangeEvent], text: Optional[str]) -> Optional[ChangePattern]:
    """Bug-fix vocabulary on a small number of edits."""
    if text is None:
        return None

    lowered = text.lower()
    hits = tuple(kw for kw in BUG_FIX_KEYWORDS if kw in lowered)

    if hits and len(changes) <= 3:
        return ChangePattern(
            pattern_type=PatternType.BUG_FIX,
            confidence=min(len(hits) / len(BUG_FIX_KEYWORDS) + 0.5, 0.9),
            description="Bug fix activity detected",
            indicators=hits,
        )
    return None


def has_consistent_indentation(text: str) -> bool:
    """Few distinct indentation widths relative to the number of lines."""
    lines = [line for line in text.split("\n") if line.strip()]
    if len(lines) < 5:
        return False

    widths = {len(line) - len(line.lstrip()) for line in lines}
    return len(widths) <= max(3, len(lines) / 10)


def detect_formatting(changes: Sequence[FileChangeEvent], text: Optional[str]) -> Optional[ChangePattern]:
    """Several saves within 30 seconds on a tidily indented file."""
    if len(changes) < 3 or text is None:
        return None

    is_rapid = _time_span(changes) < 30
    if not is_rapid:
        return None

    if has_consistent_indentation(text) or FORMATTING_TOOL_RE.search(text.lower()):
        return ChangePattern(
            pattern_type=PatternType.FORMATTING,
            confidence=0.75,
            description="Code formatting activity detected",
            indicators=("rapid_changes", "consistent_formatting"),
        )
    return None


# Order matters only for ties: the first maximum wins.
DETECTORS = (
    detect_bulk_edit,
    detect_refactoring,
    detect_new_feature,
    detect_bug_fix,
    detect_formatting,
)

INCREMENTAL_PATTERN = ChangePattern(
    pattern_type=PatternType.INCREMENTAL,
    confidence=0.7,
    description="Incremental code changes",
    indicators=("regular_edits",),
)


def detect_patterns(changes: Sequence[FileChangeEvent], text: Optional[str]) -> List[ChangePattern]:
    """
    Run every detector over a window of changes.

    Args:
        changes: Changes inside the analysis window, oldest first
        text: Current file text, or None if it could not be read

    Returns:
        All candidates, or the incremental fallback if none fired
    """
    if not changes:
        return []

    patterns = []
    for detector in DETECTORS:
        candidate = detector(changes, text)
        if candidate is not None:
            patterns.append(candidate)

    if not patterns:
        patterns.append(INCREMENTAL_PATTERN)
    return patterns


def dominant_pattern(patterns: Sequence[ChangePattern]) -> Optional[ChangePattern]:
    """Highest-confidence candidate, first one on ties."""
    best = None
    for pattern in patterns:
        if best is None or pattern.confidence > best.confidence:
            best = pattern
    return best


class ChangeDetector:
    """
    Keeps a bounded history per file and classifies recent edits.

    Histories are created lazily on the first event for a path and only
    removed by clear_history() or dispose().
    """

    def __init__(
        self,
        window_seconds: float = PATTERN_WINDOW_SECONDS,
        reader: TextReader = read_text_safely,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the change detector.

        Args:
            window_seconds: Trailing window used for classification
            reader: Best-effort file reader, returns None on failure
            clock: Time source
        """
        self.window_seconds = window_seconds
        self._reader = reader
        self._clock = clock
        self._histories: Dict[str, FileHistory] = {}
        self._lock = threading.Lock()

    def analyze_change(self, event: FileChangeEvent) -> Optional[PatternType]:
        """
        Record a change and classify the file's recent activity.

        Args:
            event: The change to record

        Returns:
            The dominant pattern type if its confidence exceeds 0.5, else None
        """
        file_path = event.file_path
        now = self._clock()

        with self._lock:
            history = self._histories.get(file_path)
            if history is None:
                history = FileHistory(file_path=file_path, last_analyzed=now)
                self._histories[file_path] = history
            history.changes.append(event)
            cutoff = now - self.window_seconds
            recent = [c for c in history.changes if c.timestamp > cutoff]

        text = None
        if event.change_type != ChangeType.DELETED:
            text = self._reader(event.path)

        patterns = detect_patterns(recent, text)

        with self._lock:
            history.patterns = patterns
            history.last_analyzed = now

        best = dominant_pattern(patterns)
        if best is not None and best.confidence > DOMINANT_CONFIDENCE_THRESHOLD:
            logger.debug(
                f"Classified {file_path} as {best.pattern_type.value} ({best.confidence:.2f})"
            )
            return best.pattern_type
        return None

    def get_file_history(self, file_path: str) -> Optional[FileHistory]:
        """
        Get the history of one file.

        Args:
            file_path: Path key of the file

        Returns:
            The FileHistory, or None if no event was seen for it
        """
        with self._lock:
            return self._histories.get(file_path)

    def get_recent_patterns(self, window_seconds: Optional[float] = None) -> List[ChangePattern]:
        """
        Get candidates of every file classified within a time window.

        Args:
            window_seconds: Window length, defaults to the analysis window

        Returns:
            Patterns sorted by confidence, highest first
        """
        if window_seconds is None:
            window_seconds = self.window_seconds
        cutoff = self._clock() - window_seconds

        patterns: List[ChangePattern] = []
        with self._lock:
            for history in self._histories.values():
                if history.last_analyzed > cutoff:
                    patterns.extend(history.patterns)

        return sorted(patterns, key=lambda p: p.confidence, reverse=True)

    def clear_history(self, file_path: Optional[str] = None) -> None:
        """Clear one file's history, or all of them."""
        with self._lock:
            if file_path is not None:
                self._histories.pop(file_path, None)
            else:
                self._histories.clear()

    def __len__(self) -> int:
        """Return the number of tracked files."""
        with self._lock:
            return len(self._histories)

    def dispose(self) -> None:
        """Release all histories."""
        self.clear_history()
