"""Read-mostly REST API exposing watcher state."""

import logging
import threading
from typing import Any, Optional, TYPE_CHECKING

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from .file_watcher import AdvancedFileWatcher

logger = logging.getLogger(__name__)


def create_app(watcher: "AdvancedFileWatcher") -> FastAPI:
    app = FastAPI(title="Analysis Watcher API", docs_url=None, redoc_url=None)
    app.state.watcher = watcher
    app.state.batch_thread = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health():
        return {
            "running": watcher.is_running,
            "enabled": watcher.config.enabled,
            "roots": [str(r) for r in watcher.get_roots()],
        }

    @app.get("/api/metrics")
    def metrics():
        return watcher.get_metrics().to_dict()

    @app.get("/api/scheduled")
    def scheduled():
        return [job.to_dict() for job in watcher.get_scheduled_analyses()]

    @app.get("/api/patterns")
    def patterns(window_seconds: Optional[float] = None):
        return [p.to_dict() for p in watcher.get_recent_patterns(window_seconds)]

    @app.get("/api/history")
    def history(path: str):
        file_history = watcher.get_file_history(path)
        if file_history is None:
            raise HTTPException(status_code=404, detail=f"No history for {path}")
        return file_history.to_dict()

    @app.get("/api/config")
    def config():
        return watcher.config.to_dict()

    @app.get("/api/errors")
    def errors(limit: int = 10):
        return {
            "stats": watcher.error_handler.get_error_stats(),
            "recent": [r.to_dict() for r in watcher.error_handler.get_recent_reports(limit)],
        }

    @app.post("/api/batch", status_code=202)
    def start_batch():
        if not watcher.config.batch_analysis:
            raise HTTPException(status_code=409, detail="Batch analysis is disabled in settings")

        current = app.state.batch_thread
        if current is not None and current.is_alive():
            raise HTTPException(status_code=409, detail="Batch analysis already running")

        def _run():
            try:
                watcher.batch_analyze_workspace()
            except Exception as e:
                logger.error(f"Batch analysis failed: {e}")

        thread = threading.Thread(target=_run, name="BatchAnalysis", daemon=True)
        app.state.batch_thread = thread
        thread.start()
        return {"started": True}

    return app


class WatcherAPIService:
    """Wrapper to run the FastAPI server via uvicorn in a background thread."""

    def __init__(self, host: str, port: int, watcher: "AdvancedFileWatcher"):
        self.host = host
        self.port = port
        self.watcher = watcher
        self._thread: Optional[threading.Thread] = None
        self._server: Any = None

    def start(self) -> None:
        import uvicorn

        app = create_app(self.watcher)

        config = uvicorn.Config(
            app,
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)

        self._thread = threading.Thread(target=self._server.run, daemon=True)
        self._thread.start()
        logger.info(f"Watcher API listening on http://{self.host}:{self.port}")

    def stop(self) -> None:
        if self._server:
            self._server.should_exit = True
            self._server = None
