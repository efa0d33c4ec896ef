"""Priority, complexity and dependency estimation for changed files."""

import re
from pathlib import Path
from typing import Callable, List, Optional, Union

from .models import (
    AnalysisContext,
    ChangeType,
    FileChangeEvent,
    PatternType,
    Priority,
    read_text_safely,
)

LANGUAGE_BY_EXTENSION = {
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".py": "python",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".cs": "csharp",
    ".php": "php",
    ".rb": "ruby",
    ".cpp": "cpp",
    ".c": "c",
    ".h": "c",
    ".hpp": "cpp",
}

PROJECT_CONFIG_FILES = (
    "package.json",
    "tsconfig.json",
    "webpack.config.js",
    "pyproject.toml",
    "setup.py",
    "setup.cfg",
    "Cargo.toml",
    "go.mod",
)

MAX_COMPLEXITY = 10.0
DEFAULT_COMPLEXITY = 1.0

DECLARATION_RE = re.compile(r"\b(?:function|def|class|interface)\b")
IMPORT_RE = re.compile(
    r"""import[^\n]*?from\s+['"]([^'"]+)['"]"""
    r"""|require\(\s*['"]([^'"]+)['"]\s*\)"""
    r"""|^[ \t]*from\s+([\w.]+)\s+import\b"""
    r"""|^[ \t]*import\s+([\w.]+)""",
    re.MULTILINE,
)


def detect_language(path: Union[str, Path]) -> str:
    """Language id from the file extension, ``plaintext`` if unknown."""
    return LANGUAGE_BY_EXTENSION.get(Path(path).suffix.lower(), "plaintext")


def calculate_priority(path: Union[str, Path]) -> Priority:
    """
    Path-based urgency; the first matching rule wins.

    Project configuration files are critical, ``/src/`` and ``/lib/``
    sources are high, tests are medium, everything else is low.
    """
    path_str = Path(path).as_posix() if isinstance(path, Path) else path.replace("\\", "/")
    if not path_str.startswith("/"):
        path_str = "/" + path_str

    if any(name in path_str for name in PROJECT_CONFIG_FILES):
        return Priority.CRITICAL
    if "/src/" in path_str or "/lib/" in path_str:
        return Priority.HIGH
    if "/test/" in path_str or "spec." in path_str:
        return Priority.MEDIUM
    return Priority.LOW


def estimate_complexity(text: Optional[str]) -> float:
    """
    Cheap complexity proxy from size and declaration count.

    Returns:
        ``min(lines/100 + declarations/10, 10)``, or 1 if text is None
    """
    if text is None:
        return DEFAULT_COMPLEXITY

    lines = len(text.split("\n"))
    declarations = len(DECLARATION_RE.findall(text))
    return min(lines / 100 + declarations / 10, MAX_COMPLEXITY)


def find_dependencies(text: Optional[str]) -> List[str]:
    """
    Non-relative module names imported or required by the text.

    Returns:
        De-duplicated names in first-seen order
    """
    if text is None:
        return []

    dependencies: List[str] = []
    seen = set()
    for match in IMPORT_RE.finditer(text):
        dep = next((g for g in match.groups() if g), None)
        if dep and not dep.startswith(".") and dep not in seen:
            seen.add(dep)
            dependencies.append(dep)
    return dependencies


def create_analysis_context(
    event: FileChangeEvent,
    change_pattern: Optional[PatternType] = None,
    reader: Callable[[Path], Optional[str]] = read_text_safely,
) -> AnalysisContext:
    """
    Assemble a fresh analysis context for one change.

    Deleted files are not read; they get the neutral defaults.

    Args:
        event: The change being scheduled
        change_pattern: Dominant pattern from the change detector
        reader: Best-effort file reader

    Returns:
        AnalysisContext for the scheduler
    """
    text = None
    if event.change_type != ChangeType.DELETED:
        text = reader(event.path)

    return AnalysisContext(
        file_path=event.file_path,
        language=detect_language(event.path),
        change_type=event.change_type,
        priority=calculate_priority(event.path),
        estimated_complexity=estimate_complexity(text),
        dependencies=tuple(find_dependencies(text)),
        change_pattern=change_pattern,
    )
