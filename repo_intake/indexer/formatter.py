"""AI-ready repository documents and token-budget truncation."""

import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..github.models import RepositoryMetadata
from ..selection.file_selector import FileCategory, SelectionResult
from .chunker import SemanticChunker
from .models import CodeChunk, estimate_tokens

logger = logging.getLogger(__name__)

MODEL_TOKEN_LIMITS: Dict[str, int] = {
    "gemini": 1_000_000,
    "gpt4": 128_000,
    "claude": 200_000,
    "llama": 32_000,
}
DEFAULT_TOKEN_LIMIT = 32_000

# Higher survives truncation longer
CHUNK_PRIORITY: Dict[str, int] = {
    "config": 5,
    "component": 4,
    "hook": 4,
    "function": 3,
    "class": 3,
    "type": 2,
    "import": 1,
    "comment": 1,
}

BUDGET_FILL_RATIO = 0.9
MARKDOWN_OVERHEAD_TOKENS = 20

SECTION_TITLES = [
    (FileCategory.CRITICAL, "Critical Files"),
    (FileCategory.ENTRY_POINT, "Entry Points"),
    (FileCategory.CONFIG, "Configuration"),
    (FileCategory.HIGH_COMPLEXITY, "High Complexity Files"),
    (FileCategory.RECENTLY_MODIFIED, "Recently Modified"),
    (FileCategory.STANDARD, "Source Files"),
]

FENCE_LANGUAGES = {
    "ts": "typescript",
    "tsx": "tsx",
    "js": "javascript",
    "jsx": "jsx",
    "py": "python",
    "rs": "rust",
    "go": "go",
    "java": "java",
    "rb": "ruby",
    "php": "php",
    "c": "c",
    "cpp": "cpp",
    "cs": "csharp",
    "swift": "swift",
    "kt": "kotlin",
    "md": "markdown",
    "json": "json",
    "yaml": "yaml",
    "yml": "yaml",
    "toml": "toml",
    "xml": "xml",
    "sh": "bash",
}

_TODO_SNIPPET = re.compile(r"//\s*(?:TODO|FIXME|BUG|HACK):?\s*.{10,80}", re.IGNORECASE)
_EXPORT_SNIPPET = re.compile(r"export\s+(?:default\s+)?(?:async\s+)?(?:function|class|const)\s+\w+")
_ROUTE_SNIPPET = re.compile(
    r"(?:app|router)\.(?:get|post|put|delete|patch)\s*\(\s*['\"`][^'\"`]+", re.IGNORECASE
)


@dataclass
class FormattedRepo:
    """Repository rendered for a generative-model consumer."""

    metadata: str
    summary: str
    chunks: List[CodeChunk]
    full_content: str
    token_estimate: int


def fence_language(path: str) -> str:
    extension = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return FENCE_LANGUAGES.get(extension, "text")


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    index = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    value = round(size / (1024**index), 2)
    return f"{value:g} {units[index]}"


def _format_file(path: str, content: Optional[str], max_file_chars: Optional[int]) -> str:
    output = f"### {path}\n"
    if not content:
        return output + "*[Binary or unavailable file]*\n\n"

    if max_file_chars and len(content) > max_file_chars:
        content = content[:max_file_chars] + f"\n... [truncated, {len(content) - max_file_chars} more chars]"
    output += f"```{fence_language(path)}\n{content}"
    if not content.endswith("\n"):
        output += "\n"
    return output + "```\n\n"


def _interesting_snippets(fetched_files: List) -> List[str]:
    snippets: List[str] = []
    for fetched in fetched_files:
        for pattern in (_TODO_SNIPPET, _EXPORT_SNIPPET, _ROUTE_SNIPPET):
            for match in pattern.findall(fetched.content)[:2]:
                snippet = f"{fetched.path}: {match.strip()}"
                if snippet not in snippets:
                    snippets.append(snippet)
    return snippets[:25]


def create_repo_summary(selection: SelectionResult, fetched_files: Optional[List] = None) -> str:
    """Summarize a selection as plain text.

    Args:
        selection: Selection result
        fetched_files: Fetched files used to surface notable snippets

    Returns:
        Multi-section summary text
    """
    summary = selection.summary
    snippets = _interesting_snippets(fetched_files or [])
    categories = ", ".join(
        f"{name}: {count}" for name, count in summary.category_breakdown.items() if count
    )

    def bullets(items: List[str], empty: str) -> str:
        return "\n".join(f"- {item}" for item in items) if items else f"- {empty}"

    sections = [
        "Repository Analysis Summary",
        "===========================",
        "",
        "File Statistics:",
        f"- Total files scanned: {summary.total_files}",
        f"- Files selected for analysis: {summary.selected_files}",
        f"- Total size: {format_bytes(summary.total_size)}",
        "",
        "Languages Detected:",
        bullets(summary.languages, "None detected"),
        "",
        "Entry Points:",
        bullets(summary.entry_points, "None detected"),
        "",
        "File Categories:",
        categories or "none",
        "",
        "Interesting Findings:",
        bullets(snippets[:15], "No notable patterns detected"),
        "",
        "Priority Files:",
        bullets(summary.priority_files[:10], "None"),
    ]
    return "\n".join(sections).strip()


def format_repo_for_ai(
    repository: RepositoryMetadata,
    selection: SelectionResult,
    fetched_files: List,
    max_file_chars: Optional[int] = None,
    chunker: Optional[SemanticChunker] = None,
) -> FormattedRepo:
    """Render a repository as one markdown document plus its chunk list.

    Args:
        repository: Repository metadata for the header
        selection: Selection result (defines grouping and order)
        fetched_files: Fetched files with content
        max_file_chars: Cap on characters rendered per file
        chunker: Chunker used to extract chunks

    Returns:
        Formatted repository
    """
    chunker = chunker or SemanticChunker()
    by_path = {f.path: f for f in fetched_files}

    parts = [
        f"# Repository: {repository.name}\n",
        f"Owner: {repository.owner}\n",
        f"Description: {repository.description or 'No description'}\n",
        f"Language: {repository.language}\n",
        f"Stars: {repository.stars}\n",
        f"Topics: {', '.join(repository.topics) or 'None'}\n\n",
        "---\n\n",
    ]
    chunks: List[CodeChunk] = []

    for category, title in SECTION_TITLES:
        files = [f for f in selection.files if f.category == category]
        if not files:
            continue
        parts.append(f"## {title}\n\n")
        for scored in files:
            fetched = by_path.get(scored.path)
            content = fetched.content if fetched else None
            parts.append(_format_file(scored.path, content, max_file_chars))
            if content:
                chunks.extend(chunker.chunk_file(scored.path, content))

    full_content = "".join(parts)
    return FormattedRepo(
        metadata=f"{repository.name} by {repository.owner}",
        summary=create_repo_summary(selection, fetched_files),
        chunks=chunks,
        full_content=full_content,
        token_estimate=estimate_tokens(full_content),
    )


def fit_to_token_budget(formatted: FormattedRepo, max_tokens: int) -> str:
    """Return the document, or a truncated digest if it exceeds the budget.

    The digest keeps the summary and then adds chunks from the highest
    priority type down (config first, comments and imports last), stopping
    before 90% of the budget is used.

    Args:
        formatted: Formatted repository
        max_tokens: Consumer's token ceiling

    Returns:
        Text that fits the budget
    """
    if formatted.token_estimate <= max_tokens:
        return formatted.full_content

    text = formatted.summary + "\n\n---\n\n# Key Code Sections\n\n"
    used = estimate_tokens(text)
    ranked = sorted(formatted.chunks, key=lambda c: -CHUNK_PRIORITY.get(c.chunk_type, 0))

    included = 0
    for chunk in ranked:
        if used + chunk.metadata.tokens > max_tokens * BUDGET_FILL_RATIO:
            break
        name = f" ({chunk.metadata.name})" if chunk.metadata.name else ""
        text += f"### {chunk.path} - {chunk.chunk_type}{name}\n"
        text += f"```{chunk.metadata.language}\n{chunk.content}\n```\n\n"
        used += chunk.metadata.tokens + MARKDOWN_OVERHEAD_TOKENS
        included += 1

    logger.info(
        f"Truncated document from ~{formatted.token_estimate} tokens to ~{used} "
        f"({included}/{len(formatted.chunks)} chunks)"
    )
    return text


def format_for_model(formatted: FormattedRepo, model: str) -> str:
    """Fit a formatted repository to a known model's context window."""
    return fit_to_token_budget(formatted, MODEL_TOKEN_LIMITS.get(model, DEFAULT_TOKEN_LIMIT))
