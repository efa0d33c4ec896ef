"""Error reporting for watcher components."""

import logging
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from .exceptions import AnalysisError, AnalysisTimeoutError, ConfigurationError

logger = logging.getLogger(__name__)

MAX_REPORTS = 100


class ErrorSeverity(Enum):
    """How serious a reported error is."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Coarse origin of a reported error."""
    TASK = "task"
    NETWORK = "network"
    FILESYSTEM = "filesystem"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


_LOG_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


@dataclass
class ErrorContext:
    """Where an error happened."""
    operation: Optional[str] = None
    component: Optional[str] = None
    file_path: Optional[str] = None
    additional_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "component": self.component,
            "file_path": self.file_path,
            "additional_data": dict(self.additional_data),
        }


@dataclass
class ErrorReport:
    """
    A recorded error.

    Attributes:
        id: Unique report id
        error: The exception
        context: Where it happened
        severity: Reported or derived severity
        category: Derived category
        timestamp: Unix timestamp of the report
    """
    error: BaseException
    context: ErrorContext
    severity: ErrorSeverity
    category: ErrorCategory
    id: str = field(default_factory=lambda: f"error-{uuid.uuid4().hex[:12]}")
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "error": str(self.error),
            "error_type": type(self.error).__name__,
            "context": self.context.to_dict(),
            "severity": self.severity.value,
            "category": self.category.value,
            "timestamp": self.timestamp,
        }


def categorize_error(error: BaseException, context: ErrorContext) -> ErrorCategory:
    """Guess where an error came from."""
    if isinstance(error, (AnalysisError, TimeoutError)):
        return ErrorCategory.TASK
    if isinstance(error, ConfigurationError):
        return ErrorCategory.VALIDATION
    if isinstance(error, ConnectionError):
        return ErrorCategory.NETWORK
    if isinstance(error, OSError):
        return ErrorCategory.FILESYSTEM

    message = str(error).lower()
    if "network" in message or "connection" in message:
        return ErrorCategory.NETWORK
    if "file" in message or "directory" in message:
        return ErrorCategory.FILESYSTEM
    if "invalid" in message or "validation" in message:
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


def determine_severity(error: BaseException, context: ErrorContext) -> ErrorSeverity:
    """Default severity when the caller does not give one."""
    if isinstance(error, (MemoryError, SystemError)):
        return ErrorSeverity.CRITICAL
    if isinstance(error, AnalysisTimeoutError):
        return ErrorSeverity.MEDIUM
    if isinstance(error, ConfigurationError):
        return ErrorSeverity.HIGH
    if context.operation and context.operation.endswith("_INIT"):
        return ErrorSeverity.HIGH
    return ErrorSeverity.MEDIUM


class ErrorHandler:
    """
    Collects error reports from watcher components.

    Keeps the most recent reports, logs each one at a level matching its
    severity and notifies listeners.
    """

    def __init__(self, max_reports: int = MAX_REPORTS):
        self._reports: Deque[ErrorReport] = deque(maxlen=max_reports)
        self._listeners: List[Callable[[ErrorReport], None]] = []
        self._lock = threading.Lock()

    def report(
        self,
        error: BaseException,
        context: Optional[ErrorContext] = None,
        severity: Optional[ErrorSeverity] = None,
    ) -> ErrorReport:
        """
        Record an error.

        Args:
            error: The exception
            context: Where it happened
            severity: Explicit severity, derived from the error if omitted

        Returns:
            The stored ErrorReport
        """
        context = context or ErrorContext()
        report = ErrorReport(
            error=error,
            context=context,
            severity=severity or determine_severity(error, context),
            category=categorize_error(error, context),
        )

        with self._lock:
            self._reports.append(report)
            listeners = list(self._listeners)

        where = ".".join(p for p in (context.component, context.operation) if p) or "unknown"
        target = f" [{context.file_path}]" if context.file_path else ""
        logger.log(
            _LOG_LEVELS[report.severity],
            f"{where}{target}: {type(error).__name__}: {error}",
        )

        for listener in listeners:
            try:
                listener(report)
            except Exception as e:
                logger.error(f"Error listener failed: {e}")

        return report

    def add_listener(self, listener: Callable[[ErrorReport], None]) -> None:
        """Register a function called with every new report."""
        with self._lock:
            self._listeners.append(listener)

    def get_recent_reports(self, limit: int = 10) -> List[ErrorReport]:
        """Most recent reports, newest first."""
        with self._lock:
            reports = list(self._reports)
        return list(reversed(reports))[:max(limit, 0)]

    def get_error_stats(self) -> Dict[str, Any]:
        """Counts of stored reports by severity and category."""
        with self._lock:
            reports = list(self._reports)

        by_severity = {s.value: 0 for s in ErrorSeverity}
        by_category = {c.value: 0 for c in ErrorCategory}
        for report in reports:
            by_severity[report.severity.value] += 1
            by_category[report.category.value] += 1

        return {
            "total": len(reports),
            "by_severity": by_severity,
            "by_category": by_category,
        }

    def clear(self) -> None:
        """Drop all stored reports."""
        with self._lock:
            self._reports.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._reports)
