"""
Clients for the external code-analysis engine.

The engine is opaque: it takes a task description and an optional file
path and eventually returns a raw text payload that is not parsed here.
"""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

import httpx

from .exceptions import AnalysisError, AnalysisTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


class AnalysisClient(ABC):
    """Abstract base class for analysis engines."""

    @abstractmethod
    def analyze(
        self,
        task_description: str,
        task_type: str = "analysis",
        file_path: Optional[str] = None,
    ) -> str:
        """
        Run one analysis task.

        Args:
            task_description: Natural-language description of the task
            task_type: Kind of task, "analysis" for file analyses
            file_path: File the task is about, if any

        Returns:
            Raw result payload

        Raises:
            AnalysisTimeoutError: If the engine does not answer in time
            AnalysisError: If the engine fails
        """
        pass

    def close(self) -> None:
        """Release resources held by the client."""
        pass


class CommandAnalysisClient(AnalysisClient):
    """
    Runs the analysis engine as a command.

    Each argument of the command may contain the placeholders
    ``{description}``, ``{task_type}`` and ``{file_path}``.
    """

    def __init__(
        self,
        command: Sequence[str],
        cwd: Optional[Path] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """
        Initialize the command client.

        Args:
            command: Argument vector template
            cwd: Working directory for the command
            timeout_seconds: Time limit for one task
        """
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.cwd = cwd
        self.timeout_seconds = timeout_seconds

    def build_argv(self, task_description: str, task_type: str, file_path: Optional[str]) -> List[str]:
        values = {
            "description": task_description,
            "task_type": task_type,
            "file_path": file_path or "",
        }
        return [arg.format(**values) for arg in self.command]

    def analyze(
        self,
        task_description: str,
        task_type: str = "analysis",
        file_path: Optional[str] = None,
    ) -> str:
        argv = self.build_argv(task_description, task_type, file_path)
        logger.debug(f"Executing task: {' '.join(argv)}")

        try:
            completed = subprocess.run(
                argv,
                cwd=str(self.cwd) if self.cwd else None,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            raise AnalysisTimeoutError(
                f"Analysis timed out after {self.timeout_seconds}s: {file_path or task_description}"
            )
        except OSError as e:
            raise AnalysisError(f"Cannot launch analysis command {argv[0]!r}: {e}")

        if completed.stderr:
            logger.warning(f"Task warning: {completed.stderr.strip()}")

        if completed.returncode != 0:
            raise AnalysisError(
                f"Analysis command exited with status {completed.returncode}"
            )
        return completed.stdout


class HTTPAnalysisClient(AnalysisClient):
    """
    Sends analysis tasks to an HTTP endpoint.

    Environment variables:
    - ANALYSIS_API_KEY: Bearer token (optional)
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        api_key: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the HTTP client.

        Args:
            base_url: Engine base URL; tasks are posted to <base_url>/tasks
            timeout_seconds: Time limit for one task
            api_key: Bearer token (falls back to ANALYSIS_API_KEY env var)
            transport: Optional httpx transport, mainly for tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._api_key = api_key or os.environ.get("ANALYSIS_API_KEY")

        headers = {}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout_seconds,
            headers=headers,
            transport=transport,
        )

    def analyze(
        self,
        task_description: str,
        task_type: str = "analysis",
        file_path: Optional[str] = None,
    ) -> str:
        payload = {
            "description": task_description,
            "type": task_type,
            "file_path": file_path,
        }

        try:
            response = self._client.post("/tasks", json=payload)
            response.raise_for_status()
        except httpx.TimeoutException:
            raise AnalysisTimeoutError(
                f"Analysis timed out after {self.timeout_seconds}s: {file_path or task_description}"
            )
        except httpx.HTTPStatusError as e:
            raise AnalysisError(f"Analysis service returned {e.response.status_code}")
        except httpx.HTTPError as e:
            raise AnalysisError(f"Analysis request failed: {e}")

        return response.text

    def close(self) -> None:
        self._client.close()
