"""Glob include/exclude rules, the hard ignore set, and language detection."""

import logging
import re
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Pattern

logger = logging.getLogger(__name__)

# Dropped before any include/exclude rule is evaluated
IGNORED_DIRECTORIES = [
    "node_modules",
    ".git",
    "dist",
    "build",
    "out",
    ".next",
    "coverage",
    "vendor",
    "__pycache__",
    ".pytest_cache",
    "target",
    ".venv",
    ".idea",
    ".vscode",
]

EXTENSION_LANGUAGES: Dict[str, str] = {
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".py": "Python",
    ".java": "Java",
    ".go": "Go",
    ".rs": "Rust",
    ".rb": "Ruby",
    ".php": "PHP",
    ".cpp": "C++",
    ".cc": "C++",
    ".hpp": "C++",
    ".c": "C",
    ".h": "C/C++",
    ".cs": "C#",
    ".swift": "Swift",
    ".kt": "Kotlin",
    ".scala": "Scala",
    ".vue": "Vue",
    ".md": "Markdown",
    ".json": "JSON",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".toml": "TOML",
}


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> Pattern:
    """Compile a glob into a regex matched against slash-separated paths.

    `**` spans directories, `*` and `?` stay within one path segment. A pattern
    without a leading directory matches the basename at any depth only when it
    starts with `**/`; otherwise it is anchored at the repository root.

    Args:
        pattern: Glob pattern such as ``**/*.ts`` or ``node_modules/**``

    Returns:
        Compiled regular expression
    """
    regex = ""
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if pattern.startswith("**/", i):
            regex += "(?:.*/)?"
            i += 3
            continue
        if pattern.startswith("**", i):
            regex += ".*"
            i += 2
            continue
        if char == "*":
            regex += "[^/]*"
        elif char == "?":
            regex += "[^/]"
        else:
            regex += re.escape(char)
        i += 1
    return re.compile(f"^{regex}$")


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(glob_to_regex(p).match(path) for p in patterns)


def is_ignored(path: str) -> bool:
    """Check whether a path sits inside a hard-ignored directory."""
    parts = path.split("/")[:-1]
    return any(part in IGNORED_DIRECTORIES for part in parts)


class PathFilter:
    """Ordered include/exclude glob rules with exclusion precedence."""

    def __init__(self, include_patterns: List[str], exclude_patterns: List[str]):
        """Initialize the filter.

        Args:
            include_patterns: Globs a path must match to be kept
            exclude_patterns: Globs that drop a path even if included
        """
        self.include_patterns = list(include_patterns)
        self.exclude_patterns = list(exclude_patterns)

    def accepts(self, path: str) -> bool:
        if is_ignored(path):
            return False
        if matches_any(path, self.exclude_patterns):
            return False
        return matches_any(path, self.include_patterns)


def detect_language(path: str) -> Optional[str]:
    """Infer a display language name from a file extension.

    Args:
        path: Repository-relative path

    Returns:
        Language name or None if the extension is not recognized
    """
    suffix = PurePosixPath(path).suffix.lower()
    return EXTENSION_LANGUAGES.get(suffix)
