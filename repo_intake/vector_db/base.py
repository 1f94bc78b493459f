"""Vector index contract shared by the in-memory and Qdrant backends."""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class VectorRecord:
    """A stored vector with its namespace and chunk metadata."""

    id: str  # {namespace}:{chunk_id}
    values: List[float]
    namespace: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorMatch:
    """A query hit."""

    id: str
    score: float
    namespace: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def cosine_similarity(a: List[float], b: List[float]) -> float:
    """Cosine similarity of two equal-length vectors (0.0 if either is zero).

    Raises:
        ValueError: If the dimensions differ
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimension mismatch: {len(a)} != {len(b)}")

    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def matches_filters(metadata: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(metadata.get(key) == value for key, value in filters.items() if value is not None)


class VectorIndex:
    """Nearest-neighbour index partitioned by namespace.

    Records are insert-once: inserting an id that already exists is a no-op.
    """

    dimensions: int = 768

    def insert(self, records: List[VectorRecord]) -> int:
        """Insert records, skipping ids already present.

        Returns:
            Number of records actually inserted
        """
        raise NotImplementedError

    def query(
        self,
        vector: List[float],
        top_k: int = 10,
        namespace: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        min_score: Optional[float] = None,
    ) -> List[VectorMatch]:
        """Return up to ``top_k`` matches by descending cosine similarity.

        Namespace, metadata filters and the score floor are applied before
        truncation.
        """
        raise NotImplementedError

    def delete_by_ids(self, ids: List[str], namespace: Optional[str] = None) -> int:
        raise NotImplementedError

    def delete_by_namespace(self, namespace: str) -> int:
        raise NotImplementedError

    def get_by_ids(self, ids: List[str]) -> List[VectorRecord]:
        raise NotImplementedError

    def get_stats(self) -> Dict[str, Any]:
        raise NotImplementedError

    def health_check(self) -> bool:
        return True
