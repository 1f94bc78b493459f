"""Tests for file scoring and budget-constrained selection."""

from repo_intake.config import SelectionConfig
from repo_intake.github.models import FileNode
from repo_intake.selection.analysis import analyze_file_content
from repo_intake.selection.file_selector import (
    FileCategory,
    FileSelector,
    RepoStats,
    explain_selection,
)

KB = 1024


def node(path: str, size: int) -> FileNode:
    return FileNode(path=path, type="file", size=size)


def sample_listing():
    return [
        node("README.md", 2 * KB),
        node("package.json", 1 * KB),
        node("src/index.ts", 8 * KB),
        node("src/utils/format.ts", 12 * KB),
        node("src/components/Button.tsx", 6 * KB),
        node("docs/guide.md", 20 * KB),
        node("lib/parser.js", 90 * KB),
        node("scripts/release.js", 3 * KB),
        node("dist/bundle.min.js", 500 * KB),
        node("node_modules/left-pad/index.js", 1 * KB),
        node("src/index.test.ts", 4 * KB),
    ]


def test_three_file_repository_selection():
    selector = FileSelector(SelectionConfig(max_files=10, max_total_size=1024 * KB))
    result = selector.select_files(
        [node("README.md", 2 * KB), node("src/index.ts", 8 * KB), node("dist/bundle.min.js", 500 * KB)]
    )

    categories = {f.path: f.category for f in result.files}
    assert categories == {
        "README.md": FileCategory.CRITICAL,
        "src/index.ts": FileCategory.ENTRY_POINT,
    }
    assert result.summary.selected_files == 2
    assert result.summary.total_files == 2


def test_file_count_budget_is_respected():
    selector = FileSelector(SelectionConfig(max_files=3))
    result = selector.select_files(sample_listing())

    assert len(result.files) == 3
    assert result.summary.selected_files == 3


def test_byte_budget_is_respected_and_smaller_files_still_fit():
    selector = FileSelector(SelectionConfig(max_files=10, max_total_size=20 * KB))
    result = selector.select_files(sample_listing())

    total = sum(f.size for f in result.files)
    assert total <= 20 * KB
    paths = [f.path for f in result.files]
    # parser.js alone would breach the budget; later small files are still taken
    assert "lib/parser.js" not in paths
    assert "package.json" in paths


def test_excluded_and_oversized_files_are_never_selected():
    selector = FileSelector(SelectionConfig(max_file_size=50 * KB))
    result = selector.select_files(sample_listing())

    paths = {f.path for f in result.files}
    assert "dist/bundle.min.js" not in paths
    assert "node_modules/left-pad/index.js" not in paths
    assert "src/index.test.ts" not in paths
    assert "lib/parser.js" not in paths


def test_selection_is_deterministic():
    selector = FileSelector()
    stats = RepoStats(languages={"TypeScript": 70.0, "JavaScript": 20.0, "Markdown": 10.0})

    first = selector.select_files(sample_listing(), stats)
    second = selector.select_files(sample_listing(), stats)

    assert [(f.path, f.score) for f in first.files] == [(f.path, f.score) for f in second.files]


def test_equal_scores_keep_listing_order():
    listing = [node("src/alpha.ts", 4 * KB), node("src/gamma.ts", 4 * KB)]
    selector = FileSelector()

    forward = selector.select_files(listing).files
    backward = selector.select_files(list(reversed(listing))).files

    assert forward[0].score == forward[1].score
    assert [f.path for f in forward] == ["src/alpha.ts", "src/gamma.ts"]
    assert [f.path for f in backward] == ["src/gamma.ts", "src/alpha.ts"]


def test_selected_files_are_in_descending_score_order():
    result = FileSelector().select_files(sample_listing())
    scores = [f.score for f in result.files]

    assert scores == sorted(scores, reverse=True)


def test_scores_are_never_negative():
    selector = FileSelector()
    penalized = [
        node("generated/deep/nested/client-generated.js", 100),
        node("pkg/tests/deep/fixture_data.py", 100),
    ]

    for f in penalized:
        assert selector.score_file(f, RepoStats()).score >= 0


def test_recently_modified_files_are_boosted():
    selector = FileSelector()
    listing = [node("pkg/a/handler.go", 5 * KB), node("pkg/a/other.go", 5 * KB)]
    stats = RepoStats(recently_modified={"pkg/a/other.go"})

    result = selector.select_files(listing, stats)

    assert result.files[0].path == "pkg/a/other.go"
    assert result.files[0].category == FileCategory.RECENTLY_MODIFIED


def test_large_files_are_high_complexity():
    scored = FileSelector().score_file(node("pkg/engine/core.rs", 60 * KB), RepoStats())

    assert scored.category == FileCategory.HIGH_COMPLEXITY


def test_empty_listing_gives_empty_selection():
    result = FileSelector().select_files([])

    assert result.files == []
    assert result.summary.selected_files == 0
    assert set(result.summary.category_breakdown) == {c.value for c in FileCategory}


def test_summary_lists_entry_points_and_priority_files():
    result = FileSelector().select_files(sample_listing())
    summary = result.summary

    assert "src/index.ts" in summary.entry_points
    assert "README.md" in summary.priority_files
    assert "README.md" in summary.entry_points
    assert "Selected" in explain_selection(result)


def test_content_analysis_counts_flagged_comments_and_complexity():
    analysis = analyze_file_content(
        "def f(x):\n"
        "    # TODO: handle negatives\n"
        "    if x > 0:\n"
        "        return x\n"
        "    for i in range(3):\n"
        "        pass\n"
    )

    assert analysis.has_flagged_comments
    assert analysis.complexity >= 2
    assert analysis.lines_of_code == 5
