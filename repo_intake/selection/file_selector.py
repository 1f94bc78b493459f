"""Multi-factor file scoring and budget-constrained selection."""

import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Pattern, Set

from ..config import SelectionConfig
from ..github.models import FileNode
from ..github.patterns import detect_language
from .analysis import FileAnalysis

logger = logging.getLogger(__name__)

CRITICAL_PATTERNS = [
    re.compile(r"^README\.(md|rst|txt)$", re.IGNORECASE),
    re.compile(r"^LICENSE$", re.IGNORECASE),
    re.compile(r"^package\.json$"),
    re.compile(r"^requirements\.txt$"),
    re.compile(r"^Cargo\.toml$"),
    re.compile(r"^go\.mod$"),
    re.compile(r"^composer\.json$"),
    re.compile(r"^Gemfile$"),
    re.compile(r"^pom\.xml$"),
    re.compile(r"^build\.gradle$"),
]

ENTRY_POINT_PATTERNS = [
    re.compile(r"^index\.(js|ts|jsx|tsx)$"),
    re.compile(r"^main\.(py|go|rs|java|cpp|c)$"),
    re.compile(r"^app\.(py|js|ts)$"),
    re.compile(r"^server\.(js|ts)$"),
    re.compile(r"^src/index\."),
    re.compile(r"^src/main\."),
    re.compile(r"^src/app\."),
]

CONFIG_PATTERNS = [
    re.compile(r"^\.env\.example$"),
    re.compile(r"^config\.(js|ts|json|yaml|yml)$"),
    re.compile(r"^tsconfig\.json$"),
    re.compile(r"^webpack\.config\."),
    re.compile(r"^vite\.config\."),
    re.compile(r"^next\.config\."),
]

EXCLUDE_PATTERNS = [
    re.compile(p)
    for p in (
        r"node_modules/",
        r"\.git/",
        r"dist/",
        r"build/",
        r"out/",
        r"\.next/",
        r"coverage/",
        r"vendor/",
        r"__pycache__/",
        r"\.pytest_cache/",
        r"target/",
        r"\.venv/",
        r"\.idea/",
        r"\.vscode/",
        r"\.test\.",
        r"\.spec\.",
        r"\.min\.",
        r"\.bundle\.",
        r"\.lock$",
    )
]

TEST_PATTERNS = [
    re.compile(r"\.(test|spec)\.(js|ts|jsx|tsx|py)$"),
    re.compile(r"/tests?/"),
    re.compile(r"__tests__/"),
]

GENERATED_PATTERNS = [
    re.compile(r"-generated\.(js|ts)$"),
    re.compile(r"\.generated\."),
    re.compile(r"generated/"),
    re.compile(r"dist/"),
    re.compile(r"\.min\.(js|css)$"),
]

IMPORTANT_STEMS = {
    "index",
    "main",
    "app",
    "server",
    "api",
    "routes",
    "router",
    "controller",
    "service",
    "model",
    "schema",
    "database",
    "db",
    "config",
    "constants",
    "types",
    "utils",
    "helpers",
}

HIGH_COMPLEXITY_SIZE = 50_000


class FileCategory(str, Enum):
    """Why a file was considered important, in priority order."""

    CRITICAL = "critical"
    ENTRY_POINT = "entry-point"
    CONFIG = "config"
    HIGH_COMPLEXITY = "high-complexity"
    RECENTLY_MODIFIED = "recently-modified"
    STANDARD = "standard"


@dataclass
class ScoringWeights:
    """Additive scoring signals; tune per deployment."""

    critical: float = 100
    entry_point: float = 80
    config: float = 70
    root_depth: float = 40
    first_level_depth: float = 20
    source_directory: float = 30
    size_band_max: float = 25
    size_band_divisor: float = 2000
    size_band_min_bytes: int = 1000
    size_band_max_bytes: int = 100_000
    primary_language: float = 15
    important_stem: float = 25
    recently_modified: float = 30
    test_penalty: float = 30
    generated_penalty: float = 40


@dataclass
class RepoStats:
    """Repository-level context for scoring."""

    languages: Dict[str, float] = field(default_factory=dict)
    recently_modified: Set[str] = field(default_factory=set)
    total_files: int = 0
    total_size: int = 0

    @property
    def primary_languages(self) -> List[str]:
        ranked = sorted(self.languages.items(), key=lambda item: -item[1])
        return [language for language, _ in ranked[:3]]


@dataclass(frozen=True)
class ScoredFile:
    """A listed file with its importance score and category."""

    path: str
    size: int
    score: float
    category: FileCategory
    language: Optional[str] = None
    sha: Optional[str] = None
    lines_of_code: Optional[int] = None
    has_flagged_comments: Optional[bool] = None
    complexity: Optional[int] = None

    def with_analysis(self, analysis: FileAnalysis) -> "ScoredFile":
        return replace(
            self,
            lines_of_code=analysis.lines_of_code,
            has_flagged_comments=analysis.has_flagged_comments,
            complexity=analysis.complexity,
        )

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "size": self.size,
            "score": round(self.score, 2),
            "category": self.category.value,
            "language": self.language,
        }


@dataclass
class SelectionSummary:
    """Aggregate view of a selection."""

    total_files: int
    selected_files: int
    total_size: int
    languages: List[str]
    entry_points: List[str]
    priority_files: List[str]
    category_breakdown: Dict[str, int]

    def to_dict(self) -> dict:
        return {
            "total_files": self.total_files,
            "selected_files": self.selected_files,
            "total_size": self.total_size,
            "languages": list(self.languages),
            "entry_points": list(self.entry_points),
            "priority_files": list(self.priority_files),
            "category_breakdown": dict(self.category_breakdown),
        }


@dataclass
class SelectionResult:
    """Ordered selected files plus their summary."""

    files: List[ScoredFile]
    summary: SelectionSummary


def _matches(path: str, patterns: List[Pattern]) -> bool:
    return any(p.search(path) for p in patterns)


class FileSelector:
    """Scores listed files and picks the most informative ones within budget."""

    def __init__(
        self,
        config: Optional[SelectionConfig] = None,
        weights: Optional[ScoringWeights] = None,
    ):
        """Initialize the selector.

        Args:
            config: File-count and byte budgets
            weights: Scoring signal weights
        """
        self.config = config or SelectionConfig()
        self.weights = weights or ScoringWeights()

    def is_eligible(self, node: FileNode) -> bool:
        if not node.is_file:
            return False
        if _matches(node.path, EXCLUDE_PATTERNS):
            return False
        return (node.size or 0) <= self.config.max_file_size

    def score_file(self, node: FileNode, repo_stats: RepoStats) -> ScoredFile:
        """Score one file.

        Args:
            node: Listed file
            repo_stats: Repository-level context

        Returns:
            Scored file; score is never negative
        """
        w = self.weights
        path = node.path
        size = node.size or 0
        language = node.language or detect_language(path)
        score = 0.0
        categories = []

        if _matches(path, CRITICAL_PATTERNS):
            score += w.critical
            categories.append(FileCategory.CRITICAL)
        if _matches(path, ENTRY_POINT_PATTERNS):
            score += w.entry_point
            categories.append(FileCategory.ENTRY_POINT)
        if _matches(path, CONFIG_PATTERNS):
            score += w.config
            categories.append(FileCategory.CONFIG)

        depth = path.count("/")
        if depth == 0:
            score += w.root_depth
        elif depth == 1:
            score += w.first_level_depth

        if path.startswith("src/") or path.startswith("lib/"):
            score += w.source_directory

        if w.size_band_min_bytes < size < w.size_band_max_bytes:
            score += min(size / w.size_band_divisor, w.size_band_max)
        if size > HIGH_COMPLEXITY_SIZE:
            categories.append(FileCategory.HIGH_COMPLEXITY)

        if path in repo_stats.recently_modified:
            score += w.recently_modified
            categories.append(FileCategory.RECENTLY_MODIFIED)

        if language and language in repo_stats.primary_languages:
            score += w.primary_language

        stem = PurePosixPath(path).name.split(".")[0].lower()
        if stem in IMPORTANT_STEMS:
            score += w.important_stem

        if _matches(path, TEST_PATTERNS):
            score -= w.test_penalty
        if _matches(path, GENERATED_PATTERNS):
            score -= w.generated_penalty

        # categories were appended in priority order
        category = categories[0] if categories else FileCategory.STANDARD
        return ScoredFile(
            path=path,
            size=size,
            score=max(score, 0.0),
            category=category,
            language=language,
            sha=node.sha,
        )

    def select_files(
        self, files: List[FileNode], repo_stats: Optional[RepoStats] = None
    ) -> SelectionResult:
        """Select the most important files within the count and byte budgets.

        Files are visited in score-descending order (ties keep listing order);
        a file that would breach the byte budget is skipped and the next one
        is considered.

        Args:
            files: Flat repository listing
            repo_stats: Language shares and recently modified paths

        Returns:
            Selection with summary; empty if nothing is eligible
        """
        repo_stats = repo_stats or RepoStats()
        eligible = [f for f in files if self.is_eligible(f)]
        scored = [self.score_file(f, repo_stats) for f in eligible]
        ranked = sorted(scored, key=lambda f: -f.score)

        selected: List[ScoredFile] = []
        total_size = 0
        skipped = 0
        for scored_file in ranked:
            if len(selected) >= self.config.max_files:
                break
            if total_size + scored_file.size > self.config.max_total_size:
                skipped += 1
                continue
            selected.append(scored_file)
            total_size += scored_file.size

        if skipped:
            logger.debug(f"Skipped {skipped} files that would exceed the size budget")
        logger.info(
            f"Selected {len(selected)}/{len(eligible)} eligible files "
            f"({total_size} bytes) from {len(files)} listed"
        )
        return SelectionResult(
            files=selected, summary=self._summarize(selected, len(eligible))
        )

    def _summarize(self, selected: List[ScoredFile], total_files: int) -> SelectionSummary:
        languages: List[str] = []
        for f in selected:
            if f.language and f.language not in languages:
                languages.append(f.language)

        breakdown = {category.value: 0 for category in FileCategory}
        for f in selected:
            breakdown[f.category.value] += 1

        return SelectionSummary(
            total_files=total_files,
            selected_files=len(selected),
            total_size=sum(f.size for f in selected),
            languages=languages,
            entry_points=[
                f.path
                for f in selected
                if f.category in (FileCategory.ENTRY_POINT, FileCategory.CRITICAL)
            ],
            priority_files=[f.path for f in selected if f.category == FileCategory.CRITICAL],
            category_breakdown=breakdown,
        )


def explain_selection(result: SelectionResult) -> str:
    """Describe a selection in a few human-readable lines.

    Args:
        result: Output of ``FileSelector.select_files``

    Returns:
        Multi-line explanation
    """
    summary = result.summary
    lines = [
        f"Selected {summary.selected_files} of {summary.total_files} eligible files "
        f"({summary.total_size / 1024:.1f} KB).",
    ]
    if summary.languages:
        lines.append(f"Languages: {', '.join(summary.languages)}")
    if summary.priority_files:
        lines.append(f"Critical files: {', '.join(summary.priority_files)}")

    entry_points = [p for p in summary.entry_points if p not in summary.priority_files]
    if entry_points:
        lines.append(f"Entry points: {', '.join(entry_points)}")

    breakdown = ", ".join(
        f"{category}: {count}" for category, count in summary.category_breakdown.items() if count
    )
    if breakdown:
        lines.append(f"Breakdown: {breakdown}")

    top = result.files[:5]
    if top:
        lines.append("Top files:")
        for f in top:
            lines.append(f"  - {f.path} ({f.category.value}, score {f.score:.1f})")
    return "\n".join(lines)
