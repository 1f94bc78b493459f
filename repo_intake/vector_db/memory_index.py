"""In-memory reference vector index (linear scan + stable sort)."""

import logging
from typing import Any, Dict, List, Optional

from .base import VectorIndex, VectorMatch, VectorRecord, cosine_similarity, matches_filters

logger = logging.getLogger(__name__)


class InMemoryVectorIndex(VectorIndex):
    """Exact cosine search over every stored vector."""

    def __init__(self, dimensions: int = 768):
        """Initialize an empty index.

        Args:
            dimensions: Required vector dimension
        """
        self.dimensions = dimensions
        self._records: Dict[str, VectorRecord] = {}

    def insert(self, records: List[VectorRecord]) -> int:
        # Whole batch is checked before anything is stored
        for record in records:
            if len(record.values) != self.dimensions:
                raise ValueError(
                    f"Vector {record.id} has dimension {len(record.values)}, "
                    f"expected {self.dimensions}"
                )

        inserted = 0
        for record in records:
            if record.id in self._records:
                continue
            self._records[record.id] = record
            inserted += 1
        logger.debug(f"Inserted {inserted}/{len(records)} vectors")
        return inserted

    def query(
        self,
        vector: List[float],
        top_k: int = 10,
        namespace: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        min_score: Optional[float] = None,
    ) -> List[VectorMatch]:
        matches = []
        for record in self._records.values():
            if namespace is not None and record.namespace != namespace:
                continue
            if not matches_filters(record.metadata, filters):
                continue
            score = cosine_similarity(vector, record.values)
            if min_score is not None and score < min_score:
                continue
            matches.append(
                VectorMatch(
                    id=record.id,
                    score=score,
                    namespace=record.namespace,
                    metadata=dict(record.metadata),
                )
            )

        matches.sort(key=lambda m: -m.score)
        return matches[:top_k]

    def delete_by_ids(self, ids: List[str], namespace: Optional[str] = None) -> int:
        deleted = 0
        for record_id in ids:
            record = self._records.get(record_id)
            if record is None:
                continue
            if namespace is not None and record.namespace != namespace:
                continue
            del self._records[record_id]
            deleted += 1
        return deleted

    def delete_by_namespace(self, namespace: str) -> int:
        ids = [r.id for r in self._records.values() if r.namespace == namespace]
        for record_id in ids:
            del self._records[record_id]
        logger.info(f"Deleted {len(ids)} vectors from namespace {namespace}")
        return len(ids)

    def get_by_ids(self, ids: List[str]) -> List[VectorRecord]:
        return [self._records[i] for i in ids if i in self._records]

    def get_stats(self) -> Dict[str, Any]:
        namespaces: Dict[str, int] = {}
        for record in self._records.values():
            namespaces[record.namespace] = namespaces.get(record.namespace, 0) + 1
        return {
            "backend": "memory",
            "total_vectors": len(self._records),
            "dimensions": self.dimensions,
            "namespaces": namespaces,
        }
