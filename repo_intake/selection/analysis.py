"""Light per-file content analysis used after fetching."""

import re
from dataclasses import dataclass, field
from typing import List

FLAGGED_COMMENT_PATTERN = re.compile(
    r"(//|#)\s*(TODO|FIXME|BUG|HACK|XXX|OPTIMIZE).*$", re.IGNORECASE | re.MULTILINE
)

CONTROL_KEYWORD_PATTERN = re.compile(
    r"\b(?:if|elif|for|foreach|while|switch|case|catch|except|when|match)\b"
)

COMMENT_PREFIXES = ("//", "#", "/*", "*")


@dataclass
class FileAnalysis:
    """Cheap textual statistics for one file."""

    line_count: int = 0
    lines_of_code: int = 0
    flagged_comments: List[str] = field(default_factory=list)
    complexity: int = 0

    @property
    def has_flagged_comments(self) -> bool:
        return bool(self.flagged_comments)


def count_lines_of_code(lines: List[str]) -> int:
    """Count non-blank lines that do not start with a comment marker."""
    count = 0
    for line in lines:
        stripped = line.strip()
        if stripped and not stripped.startswith(COMMENT_PREFIXES):
            count += 1
    return count


def analyze_file_content(content: str) -> FileAnalysis:
    """Compute line counts, flagged comments and a complexity proxy.

    Complexity is the number of control-flow keywords, a rough stand-in for
    cyclomatic complexity that works across languages without parsing.

    Args:
        content: Decoded file text

    Returns:
        Analysis for the file
    """
    lines = content.split("\n")
    flagged = [m.group(0).strip() for m in FLAGGED_COMMENT_PATTERN.finditer(content)]

    return FileAnalysis(
        line_count=len(lines),
        lines_of_code=count_lines_of_code(lines),
        flagged_comments=flagged,
        complexity=len(CONTROL_KEYWORD_PATTERN.findall(content)),
    )
