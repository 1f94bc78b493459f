"""Intake pipeline: listing -> selection -> fetch -> chunk extraction -> indexing."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from .config import AppConfig, PipelineConfig
from .deadline import Deadline
from .errors import IntakeError, PipelineDeadlineExceeded
from .fetcher.fetcher import ContentFetcher, FetchedFile
from .github.client import GitHubClient
from .github.models import RepositoryMetadata
from .github.urls import repo_id
from .indexer.chunker import SemanticChunker
from .indexer.embeddings import Embedder, create_embedder
from .indexer.job_manager import ProgressReporter
from .indexer.models import CodeChunk
from .selection.file_selector import FileSelector, RepoStats, SelectionResult
from .tools.index_tool import IndexingTool, IndexResult
from .tools.search_tool import SearchTool
from .vector_db.base import VectorIndex
from .vector_db.memory_index import InMemoryVectorIndex
from .vector_db.qdrant_client import QdrantVectorIndex

logger = logging.getLogger(__name__)

T = TypeVar("T")

LARGE_REPOSITORY_KB = 500_000
MAX_COMMITS_INSPECTED = 10


class _DeadlineHit(Exception):
    def __init__(self, stage: str):
        super().__init__(stage)
        self.stage = stage


@dataclass
class AnalysisStatistics:
    """Flat statistics record for one run."""

    total_files: int = 0
    total_size: int = 0
    selected_files: int = 0
    analyzed_files: int = 0
    analyzed_size: int = 0
    chunk_count: int = 0
    languages: Dict[str, float] = field(default_factory=dict)
    processing_time: float = 0.0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_files": self.total_files,
            "total_size": self.total_size,
            "selected_files": self.selected_files,
            "analyzed_files": self.analyzed_files,
            "analyzed_size": self.analyzed_size,
            "chunk_count": self.chunk_count,
            "languages": dict(self.languages),
            "processing_time": round(self.processing_time, 3),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class IntakeResult:
    """Everything one run produced; ``partial`` marks a deadline cutoff."""

    owner: str
    name: str
    repository: Optional[RepositoryMetadata] = None
    selection: Optional[SelectionResult] = None
    files: List[FetchedFile] = field(default_factory=list)
    chunks: List[CodeChunk] = field(default_factory=list)
    statistics: AnalysisStatistics = field(default_factory=AnalysisStatistics)
    indexing: Optional[IndexResult] = None
    partial: bool = False
    stopped_at: Optional[str] = None

    @property
    def repo_id(self) -> str:
        return repo_id(self.owner, self.name)

    def to_dict(self) -> dict:
        return {
            "repo_id": self.repo_id,
            "repository": self.repository.to_dict() if self.repository else None,
            "selection": self.selection.summary.to_dict() if self.selection else None,
            "files": [f.file.to_dict() for f in self.files],
            "chunk_count": len(self.chunks),
            "statistics": self.statistics.to_dict(),
            "indexing": self.indexing.to_dict() if self.indexing else None,
            "partial": self.partial,
            "stopped_at": self.stopped_at,
        }


def validate_repository(repository: RepositoryMetadata) -> List[str]:
    """Check repository metadata before doing any heavy work.

    Args:
        repository: Repository metadata

    Returns:
        Warnings that do not prevent analysis

    Raises:
        IntakeError: If the repository cannot be analyzed at all
    """
    if repository.size == 0:
        raise IntakeError(f"Repository {repository.full_name} is empty")

    warnings = []
    if repository.is_private:
        warnings.append("Repository is private; results depend on token access")
    if repository.size > LARGE_REPOSITORY_KB:
        warnings.append(
            f"Repository is very large ({repository.size // 1024} MB); only the selected files are analyzed"
        )
    return warnings


class IntakePipeline:
    """Runs one repository through every stage under a wall-clock deadline.

    Deterministic failures before any file is fetched (missing repository,
    access denied) propagate. Once the deadline passes the pipeline stops
    issuing work and returns a result flagged ``partial`` instead of raising.
    """

    def __init__(
        self,
        client: GitHubClient,
        selector: FileSelector,
        fetcher: ContentFetcher,
        chunker: SemanticChunker,
        indexing_tool: Optional[IndexingTool] = None,
        config: Optional[PipelineConfig] = None,
        recent_commits_days: int = 30,
    ):
        """Initialize the pipeline.

        Args:
            client: Source-host client
            selector: File selector
            fetcher: Content fetcher
            chunker: Semantic chunker
            indexing_tool: Indexer; indexing is skipped when None
            config: Deadline and indexing switch
            recent_commits_days: Window for recently-modified boosting
        """
        self.client = client
        self.selector = selector
        self.fetcher = fetcher
        self.chunker = chunker
        self.indexing_tool = indexing_tool
        self.config = config or PipelineConfig()
        self.recent_commits_days = recent_commits_days

    async def _bounded(self, call: Awaitable[T], deadline: Deadline, stage: str) -> T:
        if deadline.expired:
            if asyncio.iscoroutine(call):
                call.close()
            raise _DeadlineHit(stage)
        try:
            return await asyncio.wait_for(call, timeout=deadline.remaining())
        except asyncio.TimeoutError:
            raise _DeadlineHit(stage) from None

    async def _recently_modified(
        self, owner: str, name: str, ref: Optional[str], stats: AnalysisStatistics
    ) -> set:
        since = datetime.now(timezone.utc) - timedelta(days=self.recent_commits_days)
        commits = await self.client.best_effort(
            "commits",
            self.client.get_recent_commits(owner, name, limit=MAX_COMMITS_INSPECTED, ref=ref, since=since),
            [],
        )
        if commits.error:
            stats.errors.append(commits.error)

        paths = set()
        for commit in commits.value:
            files = await self.client.best_effort(
                f"commit {commit.sha[:7]}", self.client.get_commit_files(owner, name, commit.sha), []
            )
            if files.error:
                stats.errors.append(files.error)
            paths.update(files.value)
        return paths

    async def run(
        self,
        owner: str,
        name: str,
        ref: Optional[str] = None,
        reporter: Optional[ProgressReporter] = None,
        index: Optional[bool] = None,
    ) -> IntakeResult:
        """Analyze one repository.

        Args:
            owner: Repository owner
            name: Repository name
            ref: Branch, tag or sha (default branch if omitted)
            reporter: Receives incremental progress field updates
            index: Override the configured indexing switch

        Returns:
            Intake result, flagged partial if the deadline cut it short
        """
        start = time.time()
        deadline = Deadline(self.config.deadline_seconds)
        result = IntakeResult(owner=owner, name=name)
        stats = result.statistics
        should_index = self.config.index_chunks if index is None else index

        async def report(progress: float, message: str, **fields: Any) -> None:
            if reporter:
                await reporter.update(progress=progress, progress_message=message, **fields)

        try:
            await report(5, "Fetching repository metadata")
            result.repository = await self._bounded(
                self.client.get_repository(owner, name), deadline, "metadata"
            )
            stats.warnings.extend(validate_repository(result.repository))
            await report(15, "Listing files", repo_metadata=result.repository.to_dict())

            structure = await self._bounded(
                self.client.get_structure(owner, name, ref), deadline, "listing"
            )
            stats.total_files = structure.total_files
            stats.total_size = structure.total_size
            stats.languages = dict(structure.languages)
            await report(25, f"Found {structure.total_files} candidate files")

            recent = await self._bounded(
                self._recently_modified(owner, name, ref, stats), deadline, "commit history"
            )
            result.selection = self.selector.select_files(
                structure.files,
                RepoStats(
                    languages=structure.languages,
                    recently_modified=recent,
                    total_files=structure.total_files,
                    total_size=structure.total_size,
                ),
            )
            stats.selected_files = result.selection.summary.selected_files
            await report(
                40,
                f"Selected {stats.selected_files} files",
                selection_summary=result.selection.summary.to_dict(),
            )

            if deadline.expired:
                raise _DeadlineHit("fetch")
            fetch = await self.fetcher.fetch_files(
                owner, name, result.selection.files, ref=ref, deadline=deadline
            )
            result.files = fetch.files
            stats.analyzed_files = fetch.statistics.analyzed_files
            stats.analyzed_size = fetch.statistics.analyzed_size
            stats.errors.extend(fetch.errors)
            if fetch.partial:
                result.partial = True
                result.stopped_at = "fetch"
            await report(60, f"Fetched {stats.analyzed_files} files", statistics=stats.to_dict())

            result.chunks = self.chunker.chunk_files(result.files)
            stats.chunk_count = len(result.chunks)
            await report(75, f"Extracted {stats.chunk_count} chunks")

            if should_index and self.indexing_tool and result.chunks and not result.partial:
                if deadline.expired:
                    raise _DeadlineHit("indexing")
                result.indexing = await self.indexing_tool.index_chunks(
                    result.chunks, result.repo_id, deadline=deadline
                )
                if result.indexing.partial:
                    result.partial = True
                    result.stopped_at = "indexing"
                await report(90, f"Indexed {result.indexing.indexed} chunks", indexing=result.indexing.to_dict())

        except _DeadlineHit as hit:
            result.partial = True
            result.stopped_at = hit.stage

        if result.partial:
            message = str(PipelineDeadlineExceeded(result.stopped_at, self.config.deadline_seconds))
            stats.errors.append(message)
            logger.warning(f"{owner}/{name}: {message}")

        stats.processing_time = time.time() - start
        final_message = "Stopped at the time limit" if result.partial else "Analysis complete"
        await report(100, final_message, statistics=stats.to_dict())
        logger.info(
            f"Analyzed {owner}/{name}: {stats.analyzed_files} files, {stats.chunk_count} chunks "
            f"in {stats.processing_time:.2f}s{' (partial)' if result.partial else ''}"
        )
        return result


@dataclass
class Components:
    """Everything a process needs, constructed once at start-up."""

    config: AppConfig
    client: GitHubClient
    selector: FileSelector
    fetcher: ContentFetcher
    chunker: SemanticChunker
    embedder: Embedder
    vector_index: VectorIndex
    indexing_tool: IndexingTool
    search_tool: SearchTool
    pipeline: IntakePipeline

    async def close(self) -> None:
        await self.client.close()
        await self.embedder.close()


def create_vector_index(config: AppConfig) -> VectorIndex:
    """Build the vector index backend selected by configuration."""
    settings = config.vector_index
    if settings.backend == "qdrant":
        return QdrantVectorIndex(
            host=settings.qdrant_host,
            port=settings.qdrant_port,
            collection_name=settings.collection_name,
            vector_size=config.embedding.dimensions,
        )
    if settings.backend != "memory":
        raise ValueError(f"Unknown vector backend: {settings.backend}")
    return InMemoryVectorIndex(dimensions=config.embedding.dimensions)


def build_components(
    config: AppConfig,
    client: Optional[GitHubClient] = None,
    embedder: Optional[Embedder] = None,
    vector_index: Optional[VectorIndex] = None,
) -> Components:
    """Wire every component from configuration, allowing overrides.

    Args:
        config: Application configuration
        client: Preconfigured client (tests pass one with a mock transport)
        embedder: Preconfigured embedder
        vector_index: Preconfigured vector index

    Returns:
        Wired components
    """
    client = client or GitHubClient(config.github, config.retry)
    embedder = embedder or create_embedder(config.embedding)
    vector_index = vector_index or create_vector_index(config)
    selector = FileSelector(config.selection)
    fetcher = ContentFetcher(client, batch_size=config.fetch.batch_size)
    chunker = SemanticChunker()
    indexing_tool = IndexingTool(embedder, vector_index, batch_size=config.vector_index.batch_size)
    search_tool = SearchTool(
        vector_index, embedder, min_score=config.vector_index.similarity_threshold
    )
    pipeline = IntakePipeline(
        client,
        selector,
        fetcher,
        chunker,
        indexing_tool=indexing_tool,
        config=config.pipeline,
        recent_commits_days=config.selection.recent_commits_days,
    )
    return Components(
        config=config,
        client=client,
        selector=selector,
        fetcher=fetcher,
        chunker=chunker,
        embedder=embedder,
        vector_index=vector_index,
        indexing_tool=indexing_tool,
        search_tool=search_tool,
        pipeline=pipeline,
    )
