"""
Analysis Watcher Package

Watches a project's source tree and decides when, and with what urgency,
a changed file is sent for deep analysis.

Features:
- Include/exclude glob filtering of raw filesystem events
- Heuristic change-pattern classification over per-file edit histories
- Path-based priority and cheap complexity/dependency estimates
- One debounced, priority-scaled timer per file
- Global cap on concurrently running analyses
- Batch analysis of the whole workspace
"""

from .models import (
    ChangeType,
    PatternType,
    Priority,
    AnalysisSource,
    AnalysisOutcome,
    FileChangeEvent,
    ChangePattern,
    FileHistory,
    AnalysisContext,
    ScheduledAnalysis,
    WatcherMetrics,
    BatchResult,
    read_text_safely,
)

from .config import WatcherConfig, load_config

from .exceptions import (
    WatcherError,
    ConfigurationError,
    AnalysisError,
    AnalysisTimeoutError,
    WatcherNotRunningError,
    WatcherAlreadyRunningError,
)

from .globs import should_watch_file, matches_pattern
from .change_detector import ChangeDetector
from .estimator import (
    calculate_priority,
    create_analysis_context,
    detect_language,
    estimate_complexity,
    find_dependencies,
)
from .scheduler import AnalysisScheduler
from .executor import AnalysisExecutor
from .analysis_client import AnalysisClient, CommandAnalysisClient, HTTPAnalysisClient
from .error_handler import ErrorContext, ErrorHandler, ErrorReport, ErrorSeverity
from .diagnostics import DiagnosticsSink, InMemoryDiagnostics
from .fs_watcher import FSWatcherPool, FSEventHandler
from .file_watcher import AdvancedFileWatcher
from .api import WatcherAPIService, create_app


__all__ = [
    # Models
    "ChangeType",
    "PatternType",
    "Priority",
    "AnalysisSource",
    "AnalysisOutcome",
    "FileChangeEvent",
    "ChangePattern",
    "FileHistory",
    "AnalysisContext",
    "ScheduledAnalysis",
    "WatcherMetrics",
    "BatchResult",
    "read_text_safely",
    # Config
    "WatcherConfig",
    "load_config",
    # Exceptions
    "WatcherError",
    "ConfigurationError",
    "AnalysisError",
    "AnalysisTimeoutError",
    "WatcherNotRunningError",
    "WatcherAlreadyRunningError",
    # Components
    "should_watch_file",
    "matches_pattern",
    "ChangeDetector",
    "calculate_priority",
    "create_analysis_context",
    "detect_language",
    "estimate_complexity",
    "find_dependencies",
    "AnalysisScheduler",
    "AnalysisExecutor",
    "AnalysisClient",
    "CommandAnalysisClient",
    "HTTPAnalysisClient",
    "ErrorContext",
    "ErrorHandler",
    "ErrorReport",
    "ErrorSeverity",
    "DiagnosticsSink",
    "InMemoryDiagnostics",
    "FSWatcherPool",
    "FSEventHandler",
    # Main orchestrator
    "AdvancedFileWatcher",
    "WatcherAPIService",
    "create_app",
]

__version__ = "0.1.0"
