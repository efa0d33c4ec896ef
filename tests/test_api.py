"""Tests for the watcher REST API."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.analysis_watcher.analysis_client import AnalysisClient
from src.analysis_watcher.api import create_app
from src.analysis_watcher.config import WatcherConfig
from src.analysis_watcher.file_watcher import AdvancedFileWatcher
from src.analysis_watcher.models import ChangeType, FileChangeEvent


class EchoClient(AnalysisClient):
    def __init__(self):
        self.calls = []

    def analyze(self, task_description, task_type="analysis", file_path=None):
        self.calls.append(file_path)
        return "ok"


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "ws"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.py").write_text("def main():\n    pass\n")
    return root


def _make(workspace, timer_factory, **config):
    watcher = AdvancedFileWatcher(
        EchoClient(),
        roots=[workspace],
        config=WatcherConfig(**config),
        timer_factory=timer_factory,
    )
    return watcher, TestClient(create_app(watcher))


class TestReadEndpoints:
    """Tests for the introspection endpoints."""

    def test_health(self, workspace, timer_factory):
        watcher, client = _make(workspace, timer_factory)

        data = client.get("/api/health").json()

        assert data["running"] is False
        assert data["enabled"] is True
        assert data["roots"] == [str(workspace.resolve())]

    def test_metrics(self, workspace, timer_factory):
        watcher, client = _make(workspace, timer_factory)
        watcher.handle_file_change(
            FileChangeEvent(path=workspace / "src" / "app.py", change_type=ChangeType.MODIFIED)
        )

        data = client.get("/api/metrics").json()

        assert data["queue_size"] == 1
        assert data["analysis_completed"] == 0

    def test_scheduled(self, workspace, timer_factory):
        watcher, client = _make(workspace, timer_factory)
        path = workspace / "src" / "app.py"
        watcher.handle_file_change(FileChangeEvent(path=path, change_type=ChangeType.MODIFIED))

        data = client.get("/api/scheduled").json()

        assert len(data) == 1
        assert data[0]["context"]["file_path"] == str(path)
        assert data[0]["context"]["priority"] == "high"
        assert data[0]["delay_ms"] == 1000

    def test_patterns_and_history(self, workspace, timer_factory):
        watcher, client = _make(workspace, timer_factory)
        path = workspace / "src" / "app.py"
        watcher.handle_file_change(FileChangeEvent(path=path, change_type=ChangeType.CREATED))

        patterns = client.get("/api/patterns").json()
        history = client.get("/api/history", params={"path": str(path)}).json()

        assert patterns[0]["pattern_type"] == "new_feature"
        assert history["file_path"] == str(path)
        assert history["changes"][0]["change_type"] == "created"

    def test_history_unknown_path(self, workspace, timer_factory):
        _, client = _make(workspace, timer_factory)

        response = client.get("/api/history", params={"path": "/nowhere.py"})

        assert response.status_code == 404

    def test_config(self, workspace, timer_factory):
        _, client = _make(workspace, timer_factory, max_concurrent_analysis=5)

        assert client.get("/api/config").json()["max_concurrent_analysis"] == 5

    def test_errors(self, workspace, timer_factory):
        watcher, client = _make(workspace, timer_factory)
        watcher.error_handler.report(RuntimeError("boom"))

        data = client.get("/api/errors").json()

        assert data["stats"]["total"] == 1
        assert data["recent"][0]["error"] == "boom"

    def test_errors_negative_limit(self, workspace, timer_factory):
        watcher, client = _make(workspace, timer_factory)
        watcher.error_handler.report(RuntimeError("a"))
        watcher.error_handler.report(RuntimeError("b"))

        data = client.get("/api/errors", params={"limit": -1}).json()

        assert data["recent"] == []


class TestBatchEndpoint:
    """Tests for POST /api/batch."""

    def test_starts_batch(self, workspace, timer_factory):
        watcher, client = _make(workspace, timer_factory)
        app = client.app

        response = client.post("/api/batch")

        assert response.status_code == 202
        app.state.batch_thread.join(timeout=5.0)
        assert watcher.get_metrics().analysis_completed == 1

    def test_disabled(self, workspace, timer_factory):
        _, client = _make(workspace, timer_factory, batch_analysis=False)

        assert client.post("/api/batch").status_code == 409
