"""Concurrency-capped execution of file analyses."""

import logging
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set

from .analysis_client import AnalysisClient
from .config import WatcherConfig
from .diagnostics import DiagnosticsSink
from .error_handler import ErrorContext, ErrorHandler, ErrorSeverity
from .models import (
    AnalysisContext,
    AnalysisOutcome,
    AnalysisSource,
    BatchResult,
    WatcherMetrics,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


def build_task_description(file_path: str) -> str:
    return f"Analyze {file_path} for code quality, performance, and potential issues"


class AnalysisExecutor:
    """
    Runs analyses while enforcing a global concurrency cap.

    Admission is a soft cap: a job arriving while its file is already
    being analyzed, or while the cap is reached, is dropped rather than
    queued. Admitted analyses always run to completion or failure.
    """

    def __init__(
        self,
        client: AnalysisClient,
        config: Optional[WatcherConfig] = None,
        error_handler: Optional[ErrorHandler] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the executor.

        Args:
            client: The analysis engine
            config: Watcher configuration (for the concurrency cap)
            error_handler: Receives analysis failures
            diagnostics: Receives successful results
            clock: Monotonic time source for durations
        """
        self.client = client
        self.config = config or WatcherConfig()
        self.error_handler = error_handler if error_handler is not None else ErrorHandler()
        self.diagnostics = diagnostics
        self._clock = clock
        self._active: Set[str] = set()
        self._pending: Dict[str, AnalysisContext] = {}
        self._metrics = WatcherMetrics()
        self._lock = threading.Lock()

    def update_configuration(self, config: WatcherConfig) -> None:
        """Replace the configuration; running analyses are not affected."""
        self.config = config

    def enqueue(self, context: AnalysisContext) -> None:
        """Record the latest context of a file waiting for analysis."""
        with self._lock:
            self._pending[context.file_path] = context

    def dequeue(self, file_path: str) -> Optional[AnalysisContext]:
        """Forget a waiting file."""
        with self._lock:
            return self._pending.pop(file_path, None)

    def _try_admit(self, file_path: str) -> bool:
        with self._lock:
            if file_path in self._active:
                reason = "already being analyzed"
            elif len(self._active) >= self.config.max_concurrent_analysis:
                reason = f"{len(self._active)} analyses running"
            else:
                self._active.add(file_path)
                return True
            self._pending.pop(file_path, None)
            self._metrics.analysis_dropped += 1
        logger.debug(f"Dropped analysis of {file_path}: {reason}")
        return False

    def _release(self, file_path: str) -> None:
        with self._lock:
            self._active.discard(file_path)
            self._pending.pop(file_path, None)

    def execute(self, file_path: str, source: AnalysisSource = AnalysisSource.REALTIME) -> AnalysisOutcome:
        """
        Analyze one file if capacity allows.

        Failures are counted and reported, never raised.

        Args:
            file_path: File to analyze
            source: What triggered the analysis

        Returns:
            COMPLETED, FAILED or DROPPED
        """
        if not self._try_admit(file_path):
            return AnalysisOutcome.DROPPED

        start = self._clock()
        name = Path(file_path).name
        try:
            logger.info(f"Analyzing {name} ({source.value})")
            result = self.client.analyze(build_task_description(file_path), "analysis", file_path)

            if self.diagnostics is not None:
                self.diagnostics.process_analysis_result(file_path, result)

            duration_ms = (self._clock() - start) * 1000
            with self._lock:
                self._metrics.record_completion(duration_ms)
            logger.info(f"Analysis completed for {name} ({duration_ms:.0f}ms)")
            return AnalysisOutcome.COMPLETED

        except Exception as e:
            with self._lock:
                self._metrics.analysis_errors += 1
            logger.error(f"Analysis failed for {name}: {e}")
            self.error_handler.report(
                e,
                ErrorContext(
                    operation="FILE_ANALYSIS",
                    component="AnalysisExecutor",
                    file_path=file_path,
                    additional_data={"source": source.value},
                ),
                severity=ErrorSeverity.MEDIUM,
            )
            return AnalysisOutcome.FAILED

        finally:
            self._release(file_path)

    def batch_analyze(
        self,
        files: Iterable[str],
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchResult:
        """
        Analyze files one after another through the normal admission path.

        Args:
            files: Files to analyze
            progress: Called with (index, total, file_path) before each file
            cancel_event: Stops the run before the next file when set

        Returns:
            BatchResult with per-outcome counts
        """
        files = list(files)
        result = BatchResult(total=len(files))
        logger.info(f"Starting batch analysis of {result.total} files")

        for index, file_path in enumerate(files):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.info(f"Batch analysis cancelled after {index} of {result.total} files")
                break

            if progress is not None:
                progress(index, result.total, file_path)

            outcome = self.execute(file_path, AnalysisSource.BATCH)
            if outcome == AnalysisOutcome.COMPLETED:
                result.completed += 1
            elif outcome == AnalysisOutcome.FAILED:
                result.failed += 1
            else:
                result.dropped += 1

        if not result.cancelled:
            logger.info("Batch analysis completed")
        return result

    def get_metrics(self) -> WatcherMetrics:
        """Snapshot of counters and gauges."""
        with self._lock:
            return replace(
                self._metrics,
                queue_size=len(self._pending),
                active_analysis_count=len(self._active),
            )

    def active_files(self) -> List[str]:
        with self._lock:
            return sorted(self._active)

    def pending_files(self) -> List[str]:
        with self._lock:
            return sorted(self._pending)

    def clear(self) -> None:
        """Forget waiting files; running analyses finish normally."""
        with self._lock:
            self._pending.clear()
