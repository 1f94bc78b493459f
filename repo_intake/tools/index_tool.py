"""Tool for embedding chunks and writing them to the vector index."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..deadline import Deadline
from ..indexer.embeddings import Embedder
from ..indexer.models import CodeChunk
from ..vector_db.base import VectorIndex, VectorRecord

logger = logging.getLogger(__name__)


def prepare_text_for_embedding(chunk: CodeChunk) -> str:
    """Build the embedding input: type tag, name, path, then content.

    Args:
        chunk: Chunk to embed

    Returns:
        Newline-joined embedding text
    """
    parts = [f"[{chunk.chunk_type.upper()}]"]
    if chunk.metadata.name:
        parts.append(f"Name: {chunk.metadata.name}")
    parts.append(f"File: {chunk.path}")
    parts.append(chunk.content)
    return "\n".join(parts)


def record_id(namespace: str, chunk_id: str) -> str:
    return f"{namespace}:{chunk_id}"


def chunk_record_metadata(chunk: CodeChunk) -> dict:
    return {
        "chunk_id": chunk.id,
        "path": chunk.path,
        "type": chunk.chunk_type,
        "start_line": chunk.metadata.start_line,
        "end_line": chunk.metadata.end_line,
        "language": chunk.metadata.language,
        "name": chunk.metadata.name,
        "tokens": chunk.metadata.tokens,
        "content": chunk.content,
    }


@dataclass
class IndexResult:
    """Outcome of one indexing run."""

    indexed: int = 0
    total: int = 0
    errors: List[str] = field(default_factory=list)
    partial: bool = False

    def to_dict(self) -> dict:
        return {
            "indexed": self.indexed,
            "total": self.total,
            "errors": list(self.errors),
            "partial": self.partial,
        }


class IndexingTool:
    """Embeds chunks in fixed-size batches and inserts them under a namespace."""

    def __init__(self, embedder: Embedder, vector_index: VectorIndex, batch_size: int = 10):
        """Initialize indexing tool.

        Args:
            embedder: Embedding generator
            vector_index: Target vector index
            batch_size: Chunks per embedding request batch
        """
        self.embedder = embedder
        self.vector_index = vector_index
        self.batch_size = max(batch_size, 1)

    async def index_chunks(
        self,
        chunks: List[CodeChunk],
        namespace: str,
        deadline: Optional[Deadline] = None,
    ) -> IndexResult:
        """Embed and store chunks.

        A failing batch is recorded and the next batch is still attempted.

        Args:
            chunks: Chunks to index
            namespace: Repository namespace
            deadline: Optional cutoff; once expired no further batch starts

        Returns:
            Counts and per-batch errors
        """
        result = IndexResult(total=len(chunks))
        logger.info(f"Indexing {len(chunks)} chunks into namespace {namespace}")

        for start in range(0, len(chunks), self.batch_size):
            batch_number = start // self.batch_size + 1
            if deadline and deadline.expired:
                result.partial = True
                result.errors.append(f"Batch {batch_number}: pipeline deadline reached")
                logger.warning(f"Deadline reached before batch {batch_number}, stopping")
                break

            batch = chunks[start : start + self.batch_size]
            try:
                vectors = await self.embedder.embed([prepare_text_for_embedding(c) for c in batch])
                records = []
                failed = 0
                for chunk, vector in zip(batch, vectors):
                    if vector is None:
                        failed += 1
                        continue
                    records.append(
                        VectorRecord(
                            id=record_id(namespace, chunk.id),
                            values=vector,
                            namespace=namespace,
                            metadata=chunk_record_metadata(chunk),
                        )
                    )
                if failed:
                    result.errors.append(f"Batch {batch_number}: {failed} embeddings failed")
                result.indexed += self.vector_index.insert(records)
            except Exception as e:
                logger.error(f"Error indexing batch {batch_number}: {e}")
                result.errors.append(f"Batch {batch_number}: {e}")

        logger.info(
            f"Indexed {result.indexed}/{result.total} chunks into {namespace} "
            f"({len(result.errors)} errors)"
        )
        return result
