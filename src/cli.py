#!/usr/bin/env python3
"""
CLI for the analysis watcher.

Usage:
    python -m src.cli watch --roots ./project --analyzer-cmd npx ruv-swarm task orchestrate "{description}"
    python -m src.cli batch --roots ./project --analyzer-url http://localhost:9000
    python -m src.cli status --api-port 8765
"""

import argparse
import json
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Callable, List, Optional

from dotenv import load_dotenv
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from src.analysis_watcher import (
    AdvancedFileWatcher,
    AnalysisClient,
    CommandAnalysisClient,
    ConfigurationError,
    HTTPAnalysisClient,
    WatcherAPIService,
    WatcherConfig,
    load_config,
)

_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


class SettingsFileHandler(FileSystemEventHandler):
    """Calls back when one specific settings file is written."""

    def __init__(self, path: Path, on_change: Callable[[], None]):
        super().__init__()
        self.path = path.resolve()
        self.on_change = on_change

    def _matches(self, event: FileSystemEvent) -> bool:
        targets = [event.src_path, getattr(event, "dest_path", "")]
        return any(t and Path(t).resolve() == self.path for t in targets)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in ("created", "modified", "moved"):
            return
        if self._matches(event):
            self.on_change()


def watch_settings_file(path: Path, on_change: Callable[[], None]) -> Observer:
    """Start an observer on the settings file's directory."""
    observer = Observer()
    observer.schedule(SettingsFileHandler(path, on_change), str(path.resolve().parent), recursive=False)
    observer.daemon = True
    observer.start()
    return observer


def _resolve_roots(raw_roots: List[str]) -> List[Path]:
    roots = [Path(r).resolve() for r in raw_roots]
    for root in roots:
        if not root.exists():
            logger.error(f"Root path does not exist: {root}")
            sys.exit(1)
        if not root.is_dir():
            logger.error(f"Root path is not a directory: {root}")
            sys.exit(1)
    return roots


def _load_config(args) -> WatcherConfig:
    """Settings file, then environment, then command-line overrides."""
    config_path = Path(args.config).resolve() if args.config else None
    config = load_config(config_path)

    if args.max_concurrent is not None:
        config = config.merge({"max_concurrent_analysis": args.max_concurrent})
    if args.delay is not None:
        config = config.merge({"analysis_delay_ms": args.delay})
    return config


def _build_client(args, cwd: Optional[Path]) -> AnalysisClient:
    if args.analyzer_url:
        return HTTPAnalysisClient(args.analyzer_url, timeout_seconds=args.timeout)
    if args.analyzer_cmd:
        return CommandAnalysisClient(args.analyzer_cmd, cwd=cwd, timeout_seconds=args.timeout)
    logger.error("No analyzer configured. Use --analyzer-cmd or --analyzer-url")
    sys.exit(1)


def cmd_watch(args):
    """Watch roots and analyze changed files until interrupted."""
    roots = _resolve_roots(args.roots)
    try:
        config = _load_config(args)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    client = _build_client(args, roots[0] if roots else None)

    shutdown = GracefulShutdown()
    api_service = None
    settings_observer = None

    with AdvancedFileWatcher(client, roots=roots, config=config) as watcher:
        watcher.start()

        if args.config:
            config_path = Path(args.config)

            def _reload():
                try:
                    new_config = _load_config(args)
                except ConfigurationError as e:
                    logger.warning(f"Keeping previous configuration: {e}")
                    return
                watcher.update_configuration(new_config)

            settings_observer = watch_settings_file(config_path, _reload)

        if args.api_port:
            api_service = WatcherAPIService(args.api_host, args.api_port, watcher)
            api_service.start()

        logger.info(f"Watcher running with {len(roots)} root(s)")
        for root in roots:
            logger.info(f"  - {root}")
        logger.info("Press Ctrl+C to stop")

        last_completed = 0
        while not shutdown.should_exit:
            time.sleep(1)
            metrics = watcher.get_metrics()
            if metrics.analysis_completed != last_completed:
                last_completed = metrics.analysis_completed
                logger.info(
                    f"Completed {metrics.analysis_completed} analyses "
                    f"({metrics.analysis_errors} errors, avg {metrics.average_analysis_time_ms:.0f}ms), "
                    f"{metrics.queue_size} queued, {metrics.active_analysis_count} active"
                )

        if settings_observer is not None:
            settings_observer.stop()
            settings_observer.join(timeout=5.0)
        if api_service is not None:
            api_service.stop()

    client.close()
    logger.info("Watcher stopped")


def cmd_batch(args):
    """Analyze every watched file once."""
    roots = _resolve_roots(args.roots)
    try:
        config = _load_config(args).merge({"batch_analysis": True})
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    client = _build_client(args, roots[0] if roots else None)

    def _progress(index: int, total: int, file_path: str) -> None:
        logger.info(f"Analyzing {Path(file_path).name} ({index + 1}/{total})")

    with AdvancedFileWatcher(client, roots=roots, config=config) as watcher:
        result = watcher.batch_analyze_workspace(progress=_progress)
        metrics = watcher.get_metrics()

    client.close()
    print(json.dumps({"batch": result.to_dict(), "metrics": metrics.to_dict()}, indent=2))
    if result.failed:
        sys.exit(2)


def cmd_status(args):
    """Print metrics of a running watcher via its API."""
    import httpx

    logging.getLogger("httpx").setLevel(logging.WARNING)
    url = f"http://{args.api_host}:{args.api_port}/api/metrics"

    try:
        with httpx.Client(timeout=10.0) as client:
            response = client.get(url)
            response.raise_for_status()
    except httpx.ConnectError:
        logger.error(f"Cannot connect to watcher API at {url}")
        sys.exit(1)
    except httpx.HTTPStatusError as e:
        logger.error(f"Watcher API returned {e.response.status_code}")
        sys.exit(1)

    print(json.dumps(response.json(), indent=2))


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--roots", nargs="+", required=True, help="Workspace root directories")
    parser.add_argument("--config", help="JSON settings file (fileWatcher section)")
    parser.add_argument("--max-concurrent", type=int, help="Override maxConcurrentAnalysis")
    parser.add_argument("--delay", type=int, help="Override analysisDelay in ms")
    analyzer = parser.add_mutually_exclusive_group()
    analyzer.add_argument(
        "--analyzer-cmd",
        nargs="+",
        help="Analysis command; {description}, {task_type} and {file_path} are substituted",
    )
    analyzer.add_argument("--analyzer-url", help="Base URL of an HTTP analysis service")
    parser.add_argument("--timeout", type=float, default=60.0, help="Analysis timeout in seconds")


def main():
    parser = argparse.ArgumentParser(
        description="Adaptive change-analysis watcher",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Watch a project and analyze changed files
  python -m src.cli watch --roots ./project --analyzer-url http://localhost:9000

  # Analyze every matching file once
  python -m src.cli batch --roots ./project --analyzer-cmd ./analyze.sh "{file_path}"

  # Query a running watcher
  python -m src.cli status --api-port 8765
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    watch_parser = subparsers.add_parser("watch", help="Watch roots and analyze changes")
    _add_common_arguments(watch_parser)
    watch_parser.add_argument("--api-host", default="127.0.0.1", help="API host")
    watch_parser.add_argument("--api-port", type=int, default=0, help="Serve the status API on this port")
    watch_parser.set_defaults(func=cmd_watch)

    batch_parser = subparsers.add_parser("batch", help="Analyze every watched file once")
    _add_common_arguments(batch_parser)
    batch_parser.set_defaults(func=cmd_batch)

    status_parser = subparsers.add_parser("status", help="Show metrics of a running watcher")
    status_parser.add_argument("--api-host", default="127.0.0.1", help="API host")
    status_parser.add_argument("--api-port", type=int, default=8765, help="API port")
    status_parser.set_defaults(func=cmd_status)

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    args.func(args)


if __name__ == "__main__":
    main()
