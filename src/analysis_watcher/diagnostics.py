"""Downstream consumers of analysis results."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class DiagnosticsSink(ABC):
    """Receives raw analysis payloads; parsing and rendering live elsewhere."""

    @abstractmethod
    def process_analysis_result(self, file_path: str, result: str) -> None:
        """
        Accept the raw result of one analysis.

        Args:
            file_path: Analyzed file
            result: Raw payload returned by the analysis client
        """
        pass

    @abstractmethod
    def clear_diagnostics(self, file_path: str) -> None:
        """Forget everything reported for a file, e.g. after deletion."""
        pass


class InMemoryDiagnostics(DiagnosticsSink):
    """Keeps the latest raw payload per file."""

    def __init__(self):
        self._results: Dict[str, str] = {}
        self._cleared: List[str] = []
        self._lock = threading.Lock()

    def process_analysis_result(self, file_path: str, result: str) -> None:
        with self._lock:
            self._results[file_path] = result
        logger.debug(f"Stored analysis result for {file_path} ({len(result)} chars)")

    def clear_diagnostics(self, file_path: str) -> None:
        with self._lock:
            self._results.pop(file_path, None)
            self._cleared.append(file_path)

    def get_result(self, file_path: str) -> Optional[str]:
        with self._lock:
            return self._results.get(file_path)

    @property
    def cleared_paths(self) -> List[str]:
        with self._lock:
            return list(self._cleared)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
