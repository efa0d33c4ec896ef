"""Data models for the analysis watcher package."""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Deque, List, Optional, Tuple
import time

MAX_HISTORY_SIZE = 50


class ChangeType(Enum):
    """Types of file system changes."""
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


class PatternType(Enum):
    """Shapes of recent editing activity on a file."""
    BULK_EDIT = "bulk_edit"
    INCREMENTAL = "incremental"
    REFACTOR = "refactor"
    NEW_FEATURE = "new_feature"
    BUG_FIX = "bug_fix"
    FORMATTING = "formatting"


class Priority(Enum):
    """Urgency tier of an analysis."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def multiplier(self) -> float:
        """Scale applied to the base delay; urgent files fire sooner."""
        return _PRIORITY_MULTIPLIERS[self]

    @property
    def weight(self) -> int:
        """Contribution to the introspection score."""
        return _PRIORITY_WEIGHTS[self]


_PRIORITY_MULTIPLIERS = {
    Priority.CRITICAL: 0.1,
    Priority.HIGH: 0.5,
    Priority.MEDIUM: 1.0,
    Priority.LOW: 2.0,
}

_PRIORITY_WEIGHTS = {
    Priority.CRITICAL: 100,
    Priority.HIGH: 50,
    Priority.MEDIUM: 25,
    Priority.LOW: 10,
}


class AnalysisSource(Enum):
    """What triggered an analysis."""
    REALTIME = "realtime"
    BATCH = "batch"


class AnalysisOutcome(Enum):
    """Result of one execute attempt."""
    COMPLETED = "completed"
    FAILED = "failed"
    DROPPED = "dropped"


_RAW_KINDS = {
    "created": ChangeType.CREATED,
    "modified": ChangeType.MODIFIED,
    "deleted": ChangeType.DELETED,
}


@dataclass(frozen=True)
class FileChangeEvent:
    """
    Represents a single change to a watched file.

    Attributes:
        path: Path to the affected file
        change_type: CREATED, MODIFIED or DELETED
        timestamp: Unix timestamp when the change was observed
        size: File size in bytes, when known
        language: Language id, when known
    """
    path: Path
    change_type: ChangeType
    timestamp: float = field(default_factory=time.time)
    size: Optional[int] = None
    language: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.path, str):
            object.__setattr__(self, "path", Path(self.path))

    @property
    def file_path(self) -> str:
        """Normalized string key used by every per-file map."""
        return str(self.path)

    @classmethod
    def from_raw(cls, kind: str, path: Path, timestamp: Optional[float] = None) -> "FileChangeEvent":
        """
        Build an event from a raw watchdog kind string.

        Raises:
            ValueError: If the kind is not created/modified/deleted
        """
        try:
            change_type = _RAW_KINDS[kind]
        except KeyError:
            raise ValueError(f"Unsupported change kind: {kind}")
        return cls(
            path=path,
            change_type=change_type,
            timestamp=timestamp if timestamp is not None else time.time(),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "path": str(self.path),
            "change_type": self.change_type.value,
            "timestamp": self.timestamp,
            "size": self.size,
            "language": self.language,
        }


@dataclass(frozen=True)
class ChangePattern:
    """
    A candidate classification of recent edits.

    Attributes:
        pattern_type: The detected shape of activity
        confidence: Heuristic score in [0, 1]
        description: Human-readable summary
        indicators: Signals that produced the candidate
    """
    pattern_type: PatternType
    confidence: float
    description: str
    indicators: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "pattern_type": self.pattern_type.value,
            "confidence": self.confidence,
            "description": self.description,
            "indicators": list(self.indicators),
        }


@dataclass
class FileHistory:
    """
    Bounded edit history of one file.

    Attributes:
        file_path: Path key of the file
        changes: Most recent change events, oldest evicted first
        patterns: Candidates from the last classification
        last_analyzed: Unix timestamp of the last classification
    """
    file_path: str
    changes: Deque[FileChangeEvent] = field(
        default_factory=lambda: deque(maxlen=MAX_HISTORY_SIZE)
    )
    patterns: List[ChangePattern] = field(default_factory=list)
    last_analyzed: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "file_path": self.file_path,
            "changes": [c.to_dict() for c in self.changes],
            "patterns": [p.to_dict() for p in self.patterns],
            "last_analyzed": self.last_analyzed,
        }


@dataclass(frozen=True)
class AnalysisContext:
    """
    Everything the scheduler needs to know about one pending analysis.

    Attributes:
        file_path: Path key of the file
        language: Language id derived from the extension
        change_type: Kind of change that triggered the analysis
        priority: Urgency tier
        estimated_complexity: Cheap complexity estimate in [0, 10]
        dependencies: Non-relative imported module names
        change_pattern: Dominant pattern at scheduling time, if any
    """
    file_path: str
    language: str
    change_type: ChangeType
    priority: Priority
    estimated_complexity: float
    dependencies: Tuple[str, ...] = ()
    change_pattern: Optional[PatternType] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "file_path": self.file_path,
            "language": self.language,
            "change_type": self.change_type.value,
            "priority": self.priority.value,
            "estimated_complexity": self.estimated_complexity,
            "dependencies": list(self.dependencies),
            "change_pattern": self.change_pattern.value if self.change_pattern else None,
        }


@dataclass
class ScheduledAnalysis:
    """
    A pending, debounced analysis for one file.

    Attributes:
        context: Context of the most recent change
        fire_at: Unix timestamp when the timer is due
        delay_ms: Priority-scaled delay the timer was armed with
        priority_score: Introspection-only ordering score
        timer: Cancellable timer handle
    """
    context: AnalysisContext
    fire_at: float
    delay_ms: float
    priority_score: int
    timer: Any = field(default=None, repr=False, compare=False)

    @property
    def file_path(self) -> str:
        return self.context.file_path

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "context": self.context.to_dict(),
            "fire_at": self.fire_at,
            "delay_ms": self.delay_ms,
            "priority_score": self.priority_score,
        }


@dataclass
class WatcherMetrics:
    """
    Counters and gauges describing watcher activity.

    Counters only grow; gauges are point-in-time values.
    """
    files_watched: int = 0
    analysis_completed: int = 0
    analysis_errors: int = 0
    analysis_dropped: int = 0
    average_analysis_time_ms: float = 0.0
    last_analysis_time_ms: float = 0.0
    queue_size: int = 0
    active_analysis_count: int = 0

    def record_completion(self, duration_ms: float) -> None:
        """Update the completion counter and the running mean."""
        self.analysis_completed += 1
        n = self.analysis_completed
        self.last_analysis_time_ms = duration_ms
        self.average_analysis_time_ms = (
            self.average_analysis_time_ms * (n - 1) + duration_ms
        ) / n

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "files_watched": self.files_watched,
            "analysis_completed": self.analysis_completed,
            "analysis_errors": self.analysis_errors,
            "analysis_dropped": self.analysis_dropped,
            "average_analysis_time_ms": self.average_analysis_time_ms,
            "last_analysis_time_ms": self.last_analysis_time_ms,
            "queue_size": self.queue_size,
            "active_analysis_count": self.active_analysis_count,
        }


@dataclass
class BatchResult:
    """Summary of one batch analysis run."""
    total: int = 0
    completed: int = 0
    failed: int = 0
    dropped: int = 0
    cancelled: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "dropped": self.dropped,
            "cancelled": self.cancelled,
        }


def read_text_safely(path: Path) -> Optional[str]:
    """
    Read a file's text, best effort.

    Args:
        path: Path to the file

    Returns:
        The decoded text, or None if the file cannot be read
    """
    if not path.exists() or path.is_dir():
        return None

    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
