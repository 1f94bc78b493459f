"""Tests for batched content fetching."""

import asyncio

import pytest

from repo_intake.deadline import Deadline
from repo_intake.errors import NotFoundError
from repo_intake.fetcher.fetcher import ContentFetcher
from repo_intake.selection.file_selector import FileCategory, ScoredFile


class ScriptedClient:
    """Stands in for GitHubClient.get_file_content."""

    def __init__(self, contents, failing=(), delay=0.0):
        self.contents = contents
        self.failing = set(failing)
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.requested = []

    async def get_file_content(self, owner, name, path, ref=None):
        self.requested.append(path)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if path in self.failing:
                raise NotFoundError(path)
            return self.contents[path]
        finally:
            self.in_flight -= 1


def scored(path: str) -> ScoredFile:
    return ScoredFile(path=path, size=100, score=10.0, category=FileCategory.STANDARD)


@pytest.mark.asyncio
async def test_one_failure_does_not_affect_siblings():
    paths = [f"src/file{i}.ts" for i in range(7)]
    client = ScriptedClient({p: f"export const v{i} = {i};\n" for i, p in enumerate(paths)}, failing={"src/file3.ts"})
    fetcher = ContentFetcher(client, batch_size=5)

    result = await fetcher.fetch_files("acme", "widgets", [scored(p) for p in paths])

    assert [f.path for f in result.files] == [p for p in paths if p != "src/file3.ts"]
    assert result.statistics.analyzed_files == 6
    assert result.errors == ["Failed to fetch src/file3.ts: Not found: src/file3.ts"]
    assert not result.partial


@pytest.mark.asyncio
async def test_at_most_batch_size_requests_in_flight():
    paths = [f"f{i}.py" for i in range(11)]
    client = ScriptedClient({p: "x = 1\n" for p in paths}, delay=0.01)
    fetcher = ContentFetcher(client, batch_size=3)

    result = await fetcher.fetch_files("acme", "widgets", [scored(p) for p in paths])

    assert result.statistics.analyzed_files == 11
    assert client.max_in_flight == 3


@pytest.mark.asyncio
async def test_statistics_and_analysis_are_attached():
    client = ScriptedClient({"app.py": "# TODO: split\nif True:\n    pass\n", "README.md": "# Title\n"})
    fetcher = ContentFetcher(client)

    result = await fetcher.fetch_files("acme", "widgets", [scored("app.py"), scored("README.md")])

    stats = result.statistics
    assert stats.requested_files == 2
    assert stats.extension_counts == {".py": 1, ".md": 1}
    assert stats.analyzed_size == len("# TODO: split\nif True:\n    pass\n") + len("# Title\n")
    assert result.files[0].file.has_flagged_comments
    assert result.files[0].file.lines_of_code == 2


@pytest.mark.asyncio
async def test_expired_deadline_starts_no_batch():
    now = [0.0]
    deadline = Deadline(10, clock=lambda: now[0])
    now[0] = 11
    client = ScriptedClient({"a.ts": "a", "b.ts": "b"})
    fetcher = ContentFetcher(client)

    result = await fetcher.fetch_files("acme", "widgets", [scored("a.ts"), scored("b.ts")], deadline=deadline)

    assert result.partial
    assert result.files == []
    assert client.requested == []
    assert len(result.errors) == 2


@pytest.mark.asyncio
async def test_deadline_cancels_slow_fetches():
    client = ScriptedClient({"slow.ts": "slow"}, delay=5)
    fetcher = ContentFetcher(client)

    result = await fetcher.fetch_files("acme", "widgets", [scored("slow.ts")], deadline=Deadline(0.05))

    assert result.partial
    assert result.files == []
    assert result.errors == ["Failed to fetch slow.ts: pipeline deadline reached"]


@pytest.mark.asyncio
async def test_fetch_specific_files_uses_standard_category():
    client = ScriptedClient({"src/main.go": "package main\n"})
    fetcher = ContentFetcher(client)

    result = await fetcher.fetch_specific_files("acme", "widgets", ["src/main.go"])

    assert result.files[0].file.category == FileCategory.STANDARD
    assert result.files[0].language == "Go"
