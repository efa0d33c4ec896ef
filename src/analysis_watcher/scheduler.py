"""Debounced, priority-scaled scheduling of per-file analyses."""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from .config import WatcherConfig
from .models import AnalysisContext, AnalysisSource, ChangeType, ScheduledAnalysis

logger = logging.getLogger(__name__)

MIN_DELAY_MS = 100

_CHANGE_TYPE_WEIGHTS = {
    ChangeType.CREATED: 30,
    ChangeType.MODIFIED: 20,
    ChangeType.DELETED: 10,
}

AnalysisCallback = Callable[[str, AnalysisSource], object]
TimerFactory = Callable[[float, Callable[[], None]], object]


def compute_delay_ms(context: AnalysisContext, base_delay_ms: float) -> float:
    """Priority-scaled delay, never below the 100ms floor."""
    return max(base_delay_ms * context.priority.multiplier, MIN_DELAY_MS)


def compute_priority_score(context: AnalysisContext) -> int:
    """
    Ordering score for status displays.

    Sums weights for the change kind and priority tier, favours simpler
    files and files with more dependencies. Does not affect firing order.
    """
    score = _CHANGE_TYPE_WEIGHTS.get(context.change_type, 0)
    score += context.priority.weight
    score += max(10 - context.estimated_complexity, 1)
    score += min(len(context.dependencies) * 2, 20)
    return int(round(score))


class AnalysisScheduler:
    """
    Owns one debounce timer per file.

    Scheduling a file that already has a pending timer cancels that timer
    first, so a burst of edits collapses into one job carrying the latest
    context. Each timer fires independently; priority only changes how
    soon it fires.
    """

    def __init__(
        self,
        config: Optional[WatcherConfig] = None,
        timer_factory: TimerFactory = threading.Timer,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the scheduler.

        Args:
            config: Watcher configuration
            timer_factory: Creates a startable, cancellable timer from
                (interval_seconds, function)
            clock: Time source for fire_at timestamps
        """
        self.config = config or WatcherConfig()
        self._timer_factory = timer_factory
        self._clock = clock
        self._scheduled: Dict[str, ScheduledAnalysis] = {}
        self._callback: Optional[AnalysisCallback] = None
        self._disposed = False
        self._lock = threading.Lock()

    def set_analysis_callback(self, callback: AnalysisCallback) -> None:
        """Set the function invoked with (file_path, source) when a timer fires."""
        self._callback = callback

    @property
    def is_active(self) -> bool:
        return self.config.enabled and not self._disposed

    def schedule_analysis(
        self,
        context: AnalysisContext,
        base_delay_ms: Optional[float] = None,
    ) -> Optional[ScheduledAnalysis]:
        """
        Schedule (or reschedule) the analysis of one file.

        Args:
            context: Context of the latest change
            base_delay_ms: Base delay, defaults to config.analysis_delay_ms

        Returns:
            The armed job, or None if the scheduler is disabled or disposed
        """
        if base_delay_ms is None:
            base_delay_ms = self.config.analysis_delay_ms

        file_path = context.file_path
        delay_ms = compute_delay_ms(context, base_delay_ms)

        with self._lock:
            if not self.is_active:
                return None

            existing = self._scheduled.pop(file_path, None)
            if existing is not None:
                existing.timer.cancel()
                logger.debug(f"Debounced pending analysis for {file_path}")

            job = ScheduledAnalysis(
                context=context,
                fire_at=self._clock() + delay_ms / 1000.0,
                delay_ms=delay_ms,
                priority_score=compute_priority_score(context),
            )
            timer = self._timer_factory(delay_ms / 1000.0, lambda: self._fire(job))
            timer.daemon = True
            job.timer = timer
            self._scheduled[file_path] = job
            timer.start()

        logger.debug(
            f"Scheduled analysis for {file_path} in {delay_ms:.0f}ms "
            f"(priority={context.priority.value}, score={job.priority_score})"
        )
        return job

    def _fire(self, job: ScheduledAnalysis) -> None:
        """Timer body: run the callback if this job is still the current one."""
        file_path = job.file_path

        with self._lock:
            if self._scheduled.get(file_path) is not job:
                return
            del self._scheduled[file_path]
            callback = self._callback

        if callback is None:
            return

        try:
            callback(file_path, AnalysisSource.REALTIME)
        except Exception as e:
            logger.error(f"Scheduled analysis failed for {file_path}: {e}")

    def cancel_analysis(self, file_path: str) -> bool:
        """
        Cancel the pending analysis of one file.

        Returns:
            True if a pending job was cancelled
        """
        with self._lock:
            job = self._scheduled.pop(file_path, None)
        if job is None:
            return False
        job.timer.cancel()
        return True

    def get_scheduled_analyses(self) -> List[ScheduledAnalysis]:
        """Pending jobs, highest priority score first."""
        with self._lock:
            jobs = list(self._scheduled.values())
        return sorted(jobs, key=lambda j: j.priority_score, reverse=True)

    def get_queue_size(self) -> int:
        """Number of pending jobs."""
        with self._lock:
            return len(self._scheduled)

    def is_scheduled(self, file_path: str) -> bool:
        with self._lock:
            return file_path in self._scheduled

    def update_configuration(self, config: WatcherConfig) -> None:
        """
        Replace the configuration.

        Pending timers keep the delay they were armed with. Disabling the
        watcher clears them without firing.
        """
        self.config = config
        if not config.enabled:
            self.clear_all_scheduled()

    def clear_all_scheduled(self) -> int:
        """
        Cancel every pending timer without firing it.

        Returns:
            Number of jobs cancelled
        """
        with self._lock:
            jobs = list(self._scheduled.values())
            self._scheduled.clear()
        for job in jobs:
            job.timer.cancel()
        return len(jobs)

    def dispose(self) -> None:
        """Stop accepting work and cancel all pending timers."""
        with self._lock:
            self._disposed = True
        cancelled = self.clear_all_scheduled()
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending analyses on dispose")

    def __len__(self) -> int:
        return self.get_queue_size()
