"""Tests for AI-ready document rendering and token budgets."""

import pytest

from repo_intake.fetcher.fetcher import FetchedFile
from repo_intake.github.models import RepositoryMetadata
from repo_intake.indexer.formatter import (
    FormattedRepo,
    fence_language,
    fit_to_token_budget,
    format_bytes,
    format_for_model,
    format_repo_for_ai,
)
from repo_intake.indexer.models import estimate_tokens
from repo_intake.selection.analysis import analyze_file_content
from repo_intake.selection.file_selector import FileCategory, SelectionSummary, SelectionResult, ScoredFile

INDEX_TS = """export function greet(name: string): string {
  // TODO: support locales other than English
  return `Hello, ${name}`;
}
"""

PACKAGE_JSON = '{\n  "name": "widgets",\n  "version": "1.0.0"\n}\n'


@pytest.fixture
def repository():
    return RepositoryMetadata(
        name="widgets",
        full_name="acme/widgets",
        description="Widget helpers",
        stars=42,
        language="TypeScript",
        size=520,
        updated_at="2024-05-01T12:00:00Z",
        default_branch="main",
        owner="acme",
        url="https://github.com/acme/widgets",
        topics=["greeting"],
    )


@pytest.fixture
def selection_and_files():
    files = [
        ScoredFile("src/index.ts", len(INDEX_TS), 159.0, FileCategory.ENTRY_POINT, "TypeScript"),
        ScoredFile("package.json", len(PACKAGE_JSON), 140.0, FileCategory.CRITICAL, "JSON"),
    ]
    summary = SelectionSummary(
        total_files=2,
        selected_files=2,
        total_size=sum(f.size for f in files),
        languages=["TypeScript", "JSON"],
        entry_points=["src/index.ts", "package.json"],
        priority_files=["package.json"],
        category_breakdown={c.value: 0 for c in FileCategory} | {"entry-point": 1, "critical": 1},
    )
    fetched = [
        FetchedFile(f, content, analyze_file_content(content))
        for f, content in zip(files, [INDEX_TS, PACKAGE_JSON])
    ]
    return SelectionResult(files=files, summary=summary), fetched


def test_document_groups_files_by_category(repository, selection_and_files):
    selection, fetched = selection_and_files

    formatted = format_repo_for_ai(repository, selection, fetched)
    doc = formatted.full_content

    assert doc.startswith("# Repository: widgets\n")
    assert "Topics: greeting" in doc
    # Critical section comes before entry points regardless of score order
    assert doc.index("## Critical Files") < doc.index("## Entry Points")
    assert "```typescript\n" + INDEX_TS + "```" in doc
    assert formatted.token_estimate == estimate_tokens(doc)
    assert {c.chunk_type for c in formatted.chunks} == {"function", "comment", "config"}


def test_summary_mentions_findings(repository, selection_and_files):
    selection, fetched = selection_and_files

    summary = format_repo_for_ai(repository, selection, fetched).summary

    assert "Files selected for analysis: 2" in summary
    assert "src/index.ts: // TODO: support locales other than English" in summary
    assert "src/index.ts: export function greet" in summary


def test_long_files_are_truncated(repository, selection_and_files):
    selection, fetched = selection_and_files

    doc = format_repo_for_ai(repository, selection, fetched, max_file_chars=20).full_content

    assert "[truncated," in doc


def test_document_within_budget_is_returned_unchanged(repository, selection_and_files):
    selection, fetched = selection_and_files
    formatted = format_repo_for_ai(repository, selection, fetched)

    assert fit_to_token_budget(formatted, 10_000) == formatted.full_content
    assert format_for_model(formatted, "claude") == formatted.full_content


def test_over_budget_document_keeps_highest_priority_chunks(repository, selection_and_files):
    selection, fetched = selection_and_files
    chunks = format_repo_for_ai(repository, selection, fetched).chunks
    oversized = FormattedRepo(
        metadata="widgets by acme",
        summary="Summary",
        chunks=sorted(chunks, key=lambda c: c.chunk_type),
        full_content="x" * 40_000,
        token_estimate=10_000,
    )

    text = fit_to_token_budget(oversized, 100)

    assert text.startswith("Summary")
    assert "# Key Code Sections" in text
    assert text.index("package.json - config") < text.index("src/index.ts - function (greet)")
    assert "- comment" not in text


def test_helpers():
    assert fence_language("src/app.tsx") == "tsx"
    assert fence_language("Makefile") == "text"
    assert format_bytes(0) == "0 Bytes"
    assert format_bytes(2048) == "2 KB"
    assert format_bytes(5 * 1024 * 1024) == "5 MB"
