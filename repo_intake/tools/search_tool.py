"""Tool for semantic search over indexed repository chunks."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..indexer.embeddings import Embedder
from ..indexer.models import CodeChunk
from ..vector_db.base import VectorIndex, VectorMatch
from .index_tool import prepare_text_for_embedding, record_id

logger = logging.getLogger(__name__)

BATCH_SEARCH_CONCURRENCY = 5


@dataclass
class SearchResult:
    """One ranked search hit."""

    id: str
    chunk_id: str
    score: float
    namespace: str
    path: str
    chunk_type: str
    start_line: int
    end_line: int
    language: str
    name: Optional[str]
    content: str

    @classmethod
    def from_match(cls, match: VectorMatch) -> "SearchResult":
        meta = match.metadata
        return cls(
            id=match.id,
            chunk_id=meta.get("chunk_id", match.id),
            score=match.score,
            namespace=match.namespace,
            path=meta.get("path", ""),
            chunk_type=meta.get("type", ""),
            start_line=meta.get("start_line", 0),
            end_line=meta.get("end_line", 0),
            language=meta.get("language", "unknown"),
            name=meta.get("name"),
            content=meta.get("content", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "chunk_id": self.chunk_id,
            "score": round(self.score, 4),
            "repo_id": self.namespace,
            "path": self.path,
            "type": self.chunk_type,
            "lines": f"{self.start_line}-{self.end_line}",
            "language": self.language,
            "name": self.name,
            "content": self.content,
        }


class SearchTool:
    """Tool for semantic code search."""

    def __init__(self, vector_index: VectorIndex, embedder: Embedder, min_score: float = 0.7):
        """Initialize search tool.

        Args:
            vector_index: Vector index to query
            embedder: Embeddings generator (must match the one used for indexing)
            min_score: Default similarity floor
        """
        self.vector_index = vector_index
        self.embedder = embedder
        self.min_score = min_score

    async def search(
        self,
        query: str,
        namespace: Optional[str] = None,
        limit: int = 5,
        chunk_type: Optional[str] = None,
        language: Optional[str] = None,
        min_score: Optional[float] = None,
    ) -> List[SearchResult]:
        """Rank indexed chunks by similarity to a query.

        Args:
            query: Natural language or code query
            namespace: Restrict to one repository
            limit: Maximum results
            chunk_type: Only this chunk type
            language: Only this language
            min_score: Similarity floor (defaults to the tool's threshold)

        Returns:
            Results by descending score
        """
        vector = await self.embedder.embed_one(query)
        floor = self.min_score if min_score is None else min_score
        matches = self.vector_index.query(
            vector,
            top_k=limit * 2,
            namespace=namespace,
            filters={"type": chunk_type, "language": language},
            min_score=floor,
        )
        return [SearchResult.from_match(m) for m in matches[:limit]]

    async def batch_search(
        self,
        queries: List[str],
        namespace: Optional[str] = None,
        limit_per_query: int = 3,
    ) -> Dict[str, List[SearchResult]]:
        """Run several searches with bounded concurrency.

        A failing query yields an empty result list instead of failing the batch.

        Args:
            queries: Queries to run
            namespace: Restrict to one repository
            limit_per_query: Maximum results per query

        Returns:
            Mapping of query to its results
        """
        semaphore = asyncio.Semaphore(BATCH_SEARCH_CONCURRENCY)

        async def run(query: str) -> List[SearchResult]:
            async with semaphore:
                try:
                    return await self.search(query, namespace=namespace, limit=limit_per_query)
                except Exception as e:
                    logger.warning(f"Search failed for query '{query[:50]}': {e}")
                    return []

        results = await asyncio.gather(*(run(q) for q in queries))
        return dict(zip(queries, results))

    async def find_related(
        self,
        chunk: CodeChunk,
        namespace: str,
        limit: int = 5,
        exclude_self: bool = True,
    ) -> List[SearchResult]:
        """Find chunks similar to a given chunk.

        Args:
            chunk: Reference chunk
            namespace: Repository namespace
            limit: Maximum results
            exclude_self: Drop the reference chunk from the results

        Returns:
            Related chunks by descending score
        """
        vector = await self.embedder.embed_one(prepare_text_for_embedding(chunk))
        matches = self.vector_index.query(
            vector, top_k=limit + 1, namespace=namespace, min_score=self.min_score
        )
        own_id = record_id(namespace, chunk.id)
        if exclude_self:
            matches = [m for m in matches if m.id != own_id]
        return [SearchResult.from_match(m) for m in matches[:limit]]

    def delete_repository(self, namespace: str) -> int:
        """Delete every vector of one repository."""
        return self.vector_index.delete_by_namespace(namespace)

    async def search_code(
        self,
        query: str,
        repo_id: Optional[str] = None,
        limit: int = 5,
        chunk_type: Optional[str] = None,
        language: Optional[str] = None,
        min_score: Optional[float] = None,
    ) -> dict:
        """Search and wrap the results in a response dictionary.

        Args:
            query: Natural language search query
            repo_id: Filter by repository namespace (all repositories if omitted)
            limit: Maximum number of results to return
            chunk_type: Filter by chunk type (e.g., 'function', 'component')
            language: Filter by language (e.g., 'typescript', 'python')
            min_score: Similarity floor

        Returns:
            Dictionary with search results
        """
        try:
            logger.info(f"Searching for: {query}" + (f" in repo: {repo_id}" if repo_id else " (all repos)"))
            results = await self.search(
                query,
                namespace=repo_id,
                limit=limit,
                chunk_type=chunk_type,
                language=language,
                min_score=min_score,
            )
            return {
                "success": True,
                "query": query,
                "count": len(results),
                "results": [r.to_dict() for r in results],
            }
        except Exception as e:
            logger.error(f"Error during search: {e}")
            return {"success": False, "error": str(e)}

    def get_stats(self) -> dict:
        """Get statistics about the index.

        Returns:
            Dictionary with statistics
        """
        try:
            return {"success": True, **self.vector_index.get_stats()}
        except Exception as e:
            logger.error(f"Error getting stats: {e}")
            return {"success": False, "error": str(e)}
