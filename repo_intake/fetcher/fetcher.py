"""Concurrent, batched retrieval of selected file contents."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List, Optional

from ..deadline import Deadline
from ..github.client import GitHubClient
from ..github.patterns import detect_language
from ..selection.analysis import FileAnalysis, analyze_file_content
from ..selection.file_selector import FileCategory, ScoredFile

logger = logging.getLogger(__name__)


@dataclass
class FetchedFile:
    """A selected file together with its content and analysis."""

    file: ScoredFile
    content: str
    analysis: FileAnalysis

    @property
    def path(self) -> str:
        return self.file.path

    @property
    def language(self) -> Optional[str]:
        return self.file.language


@dataclass
class FetchStatistics:
    """Counters describing one fetch run."""

    requested_files: int = 0
    analyzed_files: int = 0
    analyzed_size: int = 0
    extension_counts: Dict[str, int] = field(default_factory=dict)
    processing_time: float = 0.0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "requested_files": self.requested_files,
            "analyzed_files": self.analyzed_files,
            "analyzed_size": self.analyzed_size,
            "extension_counts": dict(self.extension_counts),
            "processing_time": round(self.processing_time, 3),
            "errors": list(self.errors),
        }


@dataclass
class FetchResult:
    """Fetched files in selection order, plus per-file failures."""

    files: List[FetchedFile]
    errors: List[str]
    statistics: FetchStatistics
    partial: bool = False


class ContentFetcher:
    """Fetches file contents in fixed-size batches.

    Batch N+1 starts only after every fetch of batch N has settled, so at most
    ``batch_size`` requests are in flight. A failing file is recorded and never
    affects its siblings.
    """

    def __init__(self, client: GitHubClient, batch_size: int = 5):
        """Initialize the fetcher.

        Args:
            client: Source-host client
            batch_size: Maximum concurrent fetches
        """
        self.client = client
        self.batch_size = max(batch_size, 1)

    async def _fetch_batch(
        self,
        owner: str,
        name: str,
        batch: List[ScoredFile],
        ref: Optional[str],
        deadline: Optional[Deadline],
    ) -> List[object]:
        """Fetch one batch; returns content or an exception per file, in order."""
        tasks = [
            asyncio.ensure_future(self.client.get_file_content(owner, name, f.path, ref))
            for f in batch
        ]
        timeout = deadline.remaining() if deadline else None
        done, pending = await asyncio.wait(tasks, timeout=timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes: List[object] = []
        for task in tasks:
            if task in pending:
                outcomes.append(asyncio.TimeoutError("pipeline deadline reached"))
            elif task.exception() is not None:
                outcomes.append(task.exception())
            else:
                outcomes.append(task.result())
        return outcomes

    async def fetch_files(
        self,
        owner: str,
        name: str,
        files: List[ScoredFile],
        ref: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> FetchResult:
        """Fetch and analyze selected files.

        Args:
            owner: Repository owner
            name: Repository name
            files: Selected files, in selection order
            ref: Branch, tag or sha
            deadline: Optional wall-clock cutoff; on expiry no new batch starts
                and in-flight fetches are cancelled

        Returns:
            Fetch result whose files preserve selection order
        """
        start = time.time()
        stats = FetchStatistics(requested_files=len(files))
        fetched: List[FetchedFile] = []
        errors: List[str] = []
        partial = False

        for i in range(0, len(files), self.batch_size):
            batch = files[i : i + self.batch_size]
            if deadline and deadline.expired:
                partial = True
                for f in files[i:]:
                    errors.append(f"Failed to fetch {f.path}: pipeline deadline reached")
                logger.warning(
                    f"Deadline reached, skipping {len(files) - i} remaining files"
                )
                break

            logger.debug(f"Fetching batch {i // self.batch_size + 1} ({len(batch)} files)")
            outcomes = await self._fetch_batch(owner, name, batch, ref, deadline)

            for scored_file, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.TimeoutError):
                        partial = True
                    message = f"Failed to fetch {scored_file.path}: {outcome}"
                    logger.warning(message)
                    errors.append(message)
                    continue

                content = outcome
                analysis = analyze_file_content(content)
                fetched.append(
                    FetchedFile(
                        file=scored_file.with_analysis(analysis),
                        content=content,
                        analysis=analysis,
                    )
                )
                stats.analyzed_size += len(content.encode("utf-8"))
                extension = PurePosixPath(scored_file.path).suffix.lower() or "(none)"
                stats.extension_counts[extension] = stats.extension_counts.get(extension, 0) + 1

        stats.analyzed_files = len(fetched)
        stats.errors = list(errors)
        stats.processing_time = time.time() - start
        logger.info(
            f"Fetched {stats.analyzed_files}/{stats.requested_files} files "
            f"in {stats.processing_time:.2f}s ({len(errors)} errors)"
        )
        return FetchResult(files=fetched, errors=errors, statistics=stats, partial=partial)

    async def fetch_specific_files(
        self, owner: str, name: str, paths: List[str], ref: Optional[str] = None
    ) -> FetchResult:
        """Fetch an explicit list of paths without scoring them.

        Args:
            owner: Repository owner
            name: Repository name
            paths: Repository-relative paths
            ref: Branch, tag or sha

        Returns:
            Fetch result with every file in the ``standard`` category
        """
        files = [
            ScoredFile(
                path=path,
                size=0,
                score=0.0,
                category=FileCategory.STANDARD,
                language=detect_language(path),
            )
            for path in paths
        ]
        return await self.fetch_files(owner, name, files, ref=ref)
