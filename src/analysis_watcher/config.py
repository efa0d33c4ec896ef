"""Configuration for the analysis watcher package."""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .exceptions import ConfigurationError
from .globs import should_watch_file

logger = logging.getLogger(__name__)

# Settings files use the editor-style camelCase names
_CAMEL_CASE_KEYS = {
    "enabled": "enabled",
    "patterns": "patterns",
    "exclude": "exclude",
    "realTimeAnalysis": "real_time_analysis",
    "batchAnalysis": "batch_analysis",
    "smartPatterns": "smart_patterns",
    "maxConcurrentAnalysis": "max_concurrent_analysis",
    "analysisDelay": "analysis_delay_ms",
    "analysisDelayMs": "analysis_delay_ms",
    "workspaceWide": "workspace_wide",
}

ENV_MAX_CONCURRENT = "ANALYSIS_WATCHER_MAX_CONCURRENT"
ENV_DELAY_MS = "ANALYSIS_WATCHER_DELAY_MS"


@dataclass
class WatcherConfig:
    """
    Configuration options for the analysis watcher.

    Attributes:
        enabled: Master switch; a disabled watcher subscribes to nothing
        patterns: Include glob patterns
        exclude: Exclude glob patterns, checked before includes
        real_time_analysis: Schedule a debounced analysis on every change
        batch_analysis: Allow whole-workspace batch runs
        smart_patterns: Classify change patterns per file
        max_concurrent_analysis: Cap on simultaneously running analyses
        analysis_delay_ms: Base debounce delay before priority scaling
        workspace_wide: Watch every root, or only the first one
    """
    enabled: bool = True
    patterns: List[str] = field(default_factory=lambda: [
        "**/*.js",
        "**/*.ts",
        "**/*.jsx",
        "**/*.tsx",
        "**/*.py",
        "**/*.rs",
        "**/*.go",
        "**/*.java",
        "**/*.cs",
        "**/*.php",
        "**/*.rb",
        "**/*.cpp",
        "**/*.c",
        "**/*.h",
        "**/*.hpp",
    ])
    exclude: List[str] = field(default_factory=lambda: [
        "**/node_modules/**",
        "**/target/**",
        "**/build/**",
        "**/dist/**",
        "**/.git/**",
        "**/coverage/**",
    ])
    real_time_analysis: bool = True
    batch_analysis: bool = True
    smart_patterns: bool = True
    max_concurrent_analysis: int = 3
    analysis_delay_ms: int = 2000
    workspace_wide: bool = True

    def should_watch(self, path: Union[str, Path]) -> bool:
        """
        Check if a path should be tracked under this configuration.

        Args:
            path: Path to check

        Returns:
            True if the path passes the exclude and include patterns
        """
        return should_watch_file(path, self)

    def validate(self) -> "WatcherConfig":
        """
        Check value ranges.

        Returns:
            self, for chaining

        Raises:
            ConfigurationError: If a value is out of range
        """
        if not isinstance(self.max_concurrent_analysis, int) or self.max_concurrent_analysis < 1:
            raise ConfigurationError(
                f"max_concurrent_analysis must be a positive integer, got {self.max_concurrent_analysis!r}"
            )
        if not isinstance(self.analysis_delay_ms, int) or self.analysis_delay_ms < 0:
            raise ConfigurationError(
                f"analysis_delay_ms must be a non-negative integer, got {self.analysis_delay_ms!r}"
            )
        for name in ("patterns", "exclude"):
            value = getattr(self, name)
            if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
                raise ConfigurationError(f"{name} must be a list of glob strings")
        return self

    def merge(self, overrides: Dict[str, Any]) -> "WatcherConfig":
        """Return a copy with the given (camelCase or snake_case) keys replaced."""
        return replace(self, **_normalize_keys(overrides)).validate()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "WatcherConfig":
        """Create from a settings dictionary, ignoring unknown keys."""
        return cls(**_normalize_keys(data)).validate()


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(WatcherConfig)}
    normalized = {}
    for key, value in data.items():
        name = _CAMEL_CASE_KEYS.get(key, key)
        if name in known:
            normalized[name] = value
        else:
            logger.debug(f"Ignoring unknown watcher setting: {key}")
    return normalized


def _env_int(name: str) -> Optional[int]:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def load_config(path: Optional[Path] = None) -> WatcherConfig:
    """
    Load watcher configuration from a JSON settings file.

    The ``fileWatcher`` object is used when present, otherwise the whole
    document. A missing file yields defaults. Environment overrides are
    applied last.

    Args:
        path: Path to the settings file

    Returns:
        Validated WatcherConfig

    Raises:
        ConfigurationError: If the file is not valid JSON or has bad values
    """
    data: Dict[str, Any] = {}

    if path is not None and path.exists():
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read settings file {path}: {e}")
        if not isinstance(document, dict):
            raise ConfigurationError(f"Settings file {path} must contain a JSON object")
        section = document.get("fileWatcher", document)
        if not isinstance(section, dict):
            raise ConfigurationError(f"'fileWatcher' in {path} must be an object")
        data.update(section)
    elif path is not None:
        logger.info(f"Settings file not found, using defaults: {path}")

    max_concurrent = _env_int(ENV_MAX_CONCURRENT)
    if max_concurrent is not None:
        data["max_concurrent_analysis"] = max_concurrent
    delay_ms = _env_int(ENV_DELAY_MS)
    if delay_ms is not None:
        data["analysis_delay_ms"] = delay_ms

    try:
        return WatcherConfig.from_dict(data)
    except TypeError as e:
        raise ConfigurationError(f"Invalid watcher settings: {e}")
