"""Tests for the debounced analysis scheduler."""

import pytest

from src.analysis_watcher.config import WatcherConfig
from src.analysis_watcher.models import AnalysisContext, AnalysisSource, ChangeType, Priority
from src.analysis_watcher.scheduler import (
    MIN_DELAY_MS,
    AnalysisScheduler,
    compute_delay_ms,
    compute_priority_score,
)


def _context(path="/ws/src/a.ts", priority=Priority.HIGH, change_type=ChangeType.MODIFIED,
             complexity=1.0, dependencies=()):
    return AnalysisContext(
        file_path=path,
        language="typescript",
        change_type=change_type,
        priority=priority,
        estimated_complexity=complexity,
        dependencies=dependencies,
    )


class TestDelays:
    """Tests for priority-scaled delays."""

    @pytest.mark.parametrize("priority,expected", [
        (Priority.CRITICAL, 200),
        (Priority.HIGH, 1000),
        (Priority.MEDIUM, 2000),
        (Priority.LOW, 4000),
    ])
    def test_scaled_delay(self, priority, expected):
        assert compute_delay_ms(_context(priority=priority), 2000) == pytest.approx(expected)

    def test_floor(self):
        assert compute_delay_ms(_context(priority=Priority.CRITICAL), 50) == MIN_DELAY_MS

    def test_zero_base_delay(self):
        assert compute_delay_ms(_context(priority=Priority.LOW), 0) == MIN_DELAY_MS


class TestPriorityScore:
    def test_score(self):
        context = _context(change_type=ChangeType.CREATED, complexity=1.6,
                           dependencies=("a", "b", "c"))
        # 30 + 50 + 8.4 + 6
        assert compute_priority_score(context) == 94

    def test_complex_file_floor(self):
        context = _context(priority=Priority.LOW, complexity=10.0)
        assert compute_priority_score(context) == 20 + 10 + 1

    def test_dependency_cap(self):
        context = _context(priority=Priority.LOW, complexity=10.0,
                           dependencies=tuple(str(i) for i in range(30)))
        assert compute_priority_score(context) == 20 + 10 + 1 + 20


class TestAnalysisScheduler:
    """Tests for AnalysisScheduler class."""

    def _scheduler(self, timer_factory, config=None):
        calls = []
        scheduler = AnalysisScheduler(config or WatcherConfig(), timer_factory=timer_factory,
                                      clock=lambda: 100.0)
        scheduler.set_analysis_callback(lambda path, source: calls.append((path, source)))
        return scheduler, calls

    def test_schedule_arms_timer(self, timer_factory):
        scheduler, calls = self._scheduler(timer_factory)

        job = scheduler.schedule_analysis(_context())

        assert job.delay_ms == 1000
        assert job.fire_at == pytest.approx(101.0)
        timer = timer_factory.timers[0]
        assert timer.interval == pytest.approx(1.0)
        assert timer.daemon is True
        assert timer.started
        assert scheduler.is_scheduled("/ws/src/a.ts")
        assert calls == []

    def test_fire_invokes_callback(self, timer_factory):
        scheduler, calls = self._scheduler(timer_factory)
        scheduler.schedule_analysis(_context())

        timer_factory.fire_all()

        assert calls == [("/ws/src/a.ts", AnalysisSource.REALTIME)]
        assert scheduler.get_queue_size() == 0

    def test_debounce_collapses_burst(self, timer_factory):
        scheduler, calls = self._scheduler(timer_factory)
        for complexity in (1.0, 2.0, 3.0):
            scheduler.schedule_analysis(_context(complexity=complexity))

        assert len(timer_factory.timers) == 3
        assert [t.cancelled for t in timer_factory.timers] == [True, True, False]
        assert len(scheduler) == 1
        assert scheduler.get_scheduled_analyses()[0].context.estimated_complexity == 3.0

        timer_factory.fire_all()
        assert len(calls) == 1

    def test_stale_timer_body_is_ignored(self, timer_factory):
        scheduler, calls = self._scheduler(timer_factory)
        scheduler.schedule_analysis(_context())
        scheduler.schedule_analysis(_context())

        # A cancelled timer whose body runs anyway must not trigger analysis
        timer_factory.timers[0].function()

        assert calls == []
        assert scheduler.is_scheduled("/ws/src/a.ts")

    def test_files_are_independent(self, timer_factory):
        scheduler, calls = self._scheduler(timer_factory)
        scheduler.schedule_analysis(_context(path="/ws/src/a.ts"))
        scheduler.schedule_analysis(_context(path="/ws/src/b.ts"))

        assert len(scheduler) == 2
        timer_factory.timers[1].fire()

        assert calls == [("/ws/src/b.ts", AnalysisSource.REALTIME)]
        assert scheduler.is_scheduled("/ws/src/a.ts")

    def test_explicit_base_delay(self, timer_factory):
        scheduler, _ = self._scheduler(timer_factory)

        job = scheduler.schedule_analysis(_context(priority=Priority.CRITICAL), base_delay_ms=50)

        assert job.delay_ms == MIN_DELAY_MS
        assert timer_factory.timers[0].interval == pytest.approx(0.1)

    def test_scheduled_sorted_by_score(self, timer_factory):
        scheduler, _ = self._scheduler(timer_factory)
        scheduler.schedule_analysis(_context(path="/ws/low.py", priority=Priority.LOW))
        scheduler.schedule_analysis(_context(path="/ws/package.json", priority=Priority.CRITICAL))
        scheduler.schedule_analysis(_context(path="/ws/src/a.ts", priority=Priority.HIGH))

        paths = [job.file_path for job in scheduler.get_scheduled_analyses()]

        assert paths == ["/ws/package.json", "/ws/src/a.ts", "/ws/low.py"]

    def test_cancel_analysis(self, timer_factory):
        scheduler, calls = self._scheduler(timer_factory)
        scheduler.schedule_analysis(_context())

        assert scheduler.cancel_analysis("/ws/src/a.ts") is True
        assert scheduler.cancel_analysis("/ws/src/a.ts") is False
        assert timer_factory.timers[0].cancelled

        timer_factory.timers[0].function()
        assert calls == []

    def test_disabled_config_schedules_nothing(self, timer_factory):
        scheduler, _ = self._scheduler(timer_factory, WatcherConfig(enabled=False))

        assert scheduler.schedule_analysis(_context()) is None
        assert timer_factory.timers == []

    def test_disabling_clears_pending(self, timer_factory):
        scheduler, calls = self._scheduler(timer_factory)
        scheduler.schedule_analysis(_context())

        scheduler.update_configuration(WatcherConfig(enabled=False))

        assert len(scheduler) == 0
        timer_factory.fire_all()
        assert calls == []

    def test_update_keeps_pending_delay(self, timer_factory):
        scheduler, _ = self._scheduler(timer_factory)
        job = scheduler.schedule_analysis(_context())

        scheduler.update_configuration(WatcherConfig(analysis_delay_ms=10000))

        assert scheduler.get_scheduled_analyses() == [job]
        assert job.delay_ms == 1000
        assert not timer_factory.timers[0].cancelled

    def test_dispose(self, timer_factory):
        scheduler, calls = self._scheduler(timer_factory)
        scheduler.schedule_analysis(_context(path="/ws/a.py"))
        scheduler.schedule_analysis(_context(path="/ws/b.py"))

        scheduler.dispose()

        assert len(scheduler) == 0
        assert all(t.cancelled for t in timer_factory.timers)
        timer_factory.fire_all()
        assert calls == []
        assert scheduler.schedule_analysis(_context()) is None
        assert not scheduler.is_active

    def test_clear_all_scheduled(self, timer_factory):
        scheduler, _ = self._scheduler(timer_factory)
        scheduler.schedule_analysis(_context(path="/ws/a.py"))
        scheduler.schedule_analysis(_context(path="/ws/b.py"))

        assert scheduler.clear_all_scheduled() == 2
        assert scheduler.clear_all_scheduled() == 0

    def test_callback_error_is_contained(self, timer_factory):
        scheduler = AnalysisScheduler(WatcherConfig(), timer_factory=timer_factory)

        def boom(path, source):
            raise RuntimeError("engine down")

        scheduler.set_analysis_callback(boom)
        scheduler.schedule_analysis(_context())

        timer_factory.fire_all()

        assert len(scheduler) == 0

    def test_real_timer_fires(self):
        import threading

        fired = threading.Event()
        scheduler = AnalysisScheduler(WatcherConfig(analysis_delay_ms=0))
        scheduler.set_analysis_callback(lambda path, source: fired.set())

        scheduler.schedule_analysis(_context(priority=Priority.CRITICAL))

        assert fired.wait(timeout=5.0)
        scheduler.dispose()
