"""Main orchestrator turning filesystem changes into admitted analyses."""

import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .analysis_client import AnalysisClient
from .change_detector import ChangeDetector
from .config import WatcherConfig
from .diagnostics import DiagnosticsSink, InMemoryDiagnostics
from .error_handler import ErrorContext, ErrorHandler, ErrorSeverity
from .estimator import create_analysis_context
from .exceptions import WatcherAlreadyRunningError, WatcherNotRunningError
from .executor import AnalysisExecutor, ProgressCallback
from .fs_watcher import FSWatcherPool
from .models import (
    AnalysisContext,
    BatchResult,
    ChangePattern,
    ChangeType,
    FileChangeEvent,
    FileHistory,
    ScheduledAnalysis,
    WatcherMetrics,
    read_text_safely,
)
from .scheduler import AnalysisScheduler, TimerFactory

logger = logging.getLogger(__name__)


class AdvancedFileWatcher:
    """
    Coordinates filesystem subscriptions, change classification,
    debounced scheduling and capped analysis execution.

    Data flow: change -> include/exclude filter -> ChangeDetector ->
    analysis context -> AnalysisScheduler -> AnalysisExecutor.
    """

    def __init__(
        self,
        client: AnalysisClient,
        roots: Optional[List[Path]] = None,
        config: Optional[WatcherConfig] = None,
        error_handler: Optional[ErrorHandler] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        timer_factory: TimerFactory = threading.Timer,
        clock: Callable[[], float] = time.time,
        reader: Callable[[Path], Optional[str]] = read_text_safely,
    ):
        """
        Initialize the watcher.

        Args:
            client: The analysis engine
            roots: Workspace root folders
            config: Watcher configuration
            error_handler: Receives component failures
            diagnostics: Receives analysis results and deletion clears
            timer_factory: Timer implementation for the scheduler
            clock: Time source for classification and scheduling
            reader: Best-effort file reader
        """
        self.config = (config or WatcherConfig()).validate()
        self.error_handler = error_handler if error_handler is not None else ErrorHandler()
        self.diagnostics = diagnostics if diagnostics is not None else InMemoryDiagnostics()
        self._roots: List[Path] = [r.resolve() for r in roots or []]
        self._reader = reader

        self._change_detector = ChangeDetector(reader=reader, clock=clock)
        self._scheduler = AnalysisScheduler(self.config, timer_factory=timer_factory, clock=clock)
        self._executor = AnalysisExecutor(
            client,
            self.config,
            self.error_handler,
            self.diagnostics,
        )
        self._scheduler.set_analysis_callback(self._executor.execute)

        self._fs_watcher_pool = FSWatcherPool(self.handle_file_change)
        self._running = False
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Start watching the configured roots.

        Raises:
            WatcherAlreadyRunningError: If already running
        """
        with self._lock:
            if self._running:
                raise WatcherAlreadyRunningError("Watcher is already running")
            self._running = True

        if not self.config.enabled:
            logger.info("File watcher is disabled")
            return

        self._setup_watchers()
        logger.info(f"File watcher started on {len(self._fs_watcher_pool)} root(s)")

    def stop(self) -> None:
        """Stop all subscriptions and cancel pending analyses."""
        with self._lock:
            if not self._running:
                return
            self._running = False

        self._fs_watcher_pool.stop_all()
        self._scheduler.clear_all_scheduled()
        self._executor.clear()
        logger.info("File watcher stopped")

    def dispose(self) -> None:
        """Stop and release every component."""
        self.stop()
        self._scheduler.dispose()
        self._change_detector.dispose()
        self._executor.clear()

    @property
    def is_running(self) -> bool:
        return self._running

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()
        return False

    def _active_roots(self) -> List[Path]:
        if self.config.workspace_wide:
            return list(self._roots)
        return self._roots[:1]

    def _setup_watchers(self) -> None:
        for root in self._active_roots():
            self._start_root(root)

    def _start_root(self, root: Path) -> None:
        try:
            self._fs_watcher_pool.start_watching(root)
        except OSError as e:
            self.error_handler.report(
                e,
                ErrorContext(
                    operation="FILE_WATCHER_INIT",
                    component="AdvancedFileWatcher",
                    file_path=str(root),
                ),
                severity=ErrorSeverity.HIGH,
            )

    # ------------------------------------------------------------------
    # Configuration and roots
    # ------------------------------------------------------------------

    def update_configuration(self, new_config: Union[WatcherConfig, Dict[str, Any]]) -> WatcherConfig:
        """
        Apply a new configuration.

        Subscriptions are torn down and rebuilt. Pending timers keep the
        delay they were armed with.

        Args:
            new_config: Full configuration, or a dict of overrides

        Returns:
            The configuration now in effect
        """
        if isinstance(new_config, dict):
            config = self.config.merge(new_config)
        else:
            config = new_config.validate()

        self.config = config
        self._fs_watcher_pool.stop_all()
        self._scheduler.update_configuration(config)
        self._executor.update_configuration(config)
        if not config.enabled:
            self._executor.clear()

        if self._running and config.enabled:
            self._setup_watchers()

        logger.info("File watcher configuration updated")
        return config

    def add_root(self, root: Path) -> bool:
        """
        Add a workspace root.

        Returns:
            True if the root was added, False if already present
        """
        root = root.resolve()
        with self._lock:
            if root in self._roots:
                return False
            self._roots.append(root)

        if self._running and self.config.enabled and root in self._active_roots():
            self._start_root(root)
        return True

    def remove_root(self, root: Path) -> bool:
        """
        Remove a workspace root.

        Returns:
            True if the root was removed, False if unknown
        """
        root = root.resolve()
        with self._lock:
            if root not in self._roots:
                return False
            self._roots.remove(root)

        self._fs_watcher_pool.stop_watching(root)
        if self._running and self.config.enabled and not self.config.workspace_wide:
            # the next root may have become the primary one
            self._setup_watchers()
        return True

    def get_roots(self) -> List[Path]:
        with self._lock:
            return list(self._roots)

    # ------------------------------------------------------------------
    # Change pipeline
    # ------------------------------------------------------------------

    def handle_file_change(self, event: FileChangeEvent) -> Optional[AnalysisContext]:
        """
        Run one change through filtering, classification and scheduling.

        Errors are reported and never raised, so one bad file cannot stop
        processing of the others.

        Args:
            event: The change to process

        Returns:
            The analysis context built for the change, or None if the path
            is not tracked or processing failed
        """
        try:
            if not self.config.enabled or not self.config.should_watch(event.path):
                return None

            if event.change_type == ChangeType.DELETED:
                self.diagnostics.clear_diagnostics(event.file_path)

            change_pattern = None
            if self.config.smart_patterns:
                change_pattern = self._change_detector.analyze_change(event)

            context = create_analysis_context(event, change_pattern, self._reader)
            self._executor.enqueue(context)

            if self.config.real_time_analysis:
                self._scheduler.schedule_analysis(context, self.config.analysis_delay_ms)
            return context

        except Exception as e:
            self.error_handler.report(
                e,
                ErrorContext(
                    operation="FILE_CHANGE_HANDLER",
                    component="AdvancedFileWatcher",
                    file_path=event.file_path,
                ),
                severity=ErrorSeverity.MEDIUM,
            )
            return None

    def cancel_analysis(self, file_path: str) -> bool:
        """Cancel the pending analysis of one file."""
        cancelled = self._scheduler.cancel_analysis(file_path)
        if cancelled:
            self._executor.dequeue(file_path)
        return cancelled

    # ------------------------------------------------------------------
    # Batch analysis
    # ------------------------------------------------------------------

    def find_all_watched_files(self) -> List[str]:
        """Every file under the active roots that passes the filters."""
        files: List[str] = []
        for root in self._active_roots():
            if not root.is_dir():
                continue
            for path in sorted(root.rglob("*")):
                if path.is_file() and self.config.should_watch(path):
                    files.append(str(path))
        return files

    def batch_analyze_workspace(
        self,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[BatchResult]:
        """
        Analyze every watched file once, sequentially.

        Returns:
            BatchResult, or None if batch analysis is disabled

        Raises:
            WatcherNotRunningError: If there is no workspace root
        """
        if not self.config.batch_analysis:
            logger.warning("Batch analysis is disabled in settings")
            return None

        if not self._roots:
            raise WatcherNotRunningError("No workspace folder found")

        files = self.find_all_watched_files()
        return self._executor.batch_analyze(files, progress=progress, cancel_event=cancel_event)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_metrics(self) -> WatcherMetrics:
        """Counters and gauges of the whole pipeline."""
        metrics = self._executor.get_metrics()
        metrics.files_watched = len(self._fs_watcher_pool)
        return metrics

    def get_scheduled_analyses(self) -> List[ScheduledAnalysis]:
        """Pending jobs sorted by priority score, for display."""
        return self._scheduler.get_scheduled_analyses()

    def get_recent_patterns(self, window_seconds: Optional[float] = None) -> List[ChangePattern]:
        return self._change_detector.get_recent_patterns(window_seconds)

    def get_file_history(self, file_path: str) -> Optional[FileHistory]:
        return self._change_detector.get_file_history(file_path)

    def get_active_analyses(self) -> List[str]:
        return self._executor.active_files()
