"""Qdrant-backed vector index for repository chunks."""

import logging
from typing import Any, Dict, List, Optional

import blake3
from qdrant_client import QdrantClient
from qdrant_client.http import models
from qdrant_client.http.models import Distance, PointStruct, VectorParams

from .base import VectorIndex, VectorMatch, VectorRecord

logger = logging.getLogger(__name__)


def hex_to_uuid(hex_str: str) -> str:
    """Convert a hexadecimal string to a UUID format.

    Args:
        hex_str: Hexadecimal string (up to 32 characters)

    Returns:
        UUID string
    """
    hex_str = hex_str[:32].ljust(32, "0")
    return f"{hex_str[0:8]}-{hex_str[8:12]}-{hex_str[12:16]}-{hex_str[16:20]}-{hex_str[20:32]}"


def point_id(record_id: str) -> str:
    """Stable Qdrant point id for a record id."""
    return hex_to_uuid(blake3.blake3(record_id.encode()).hexdigest())


def _namespace_condition(namespace: str) -> models.FieldCondition:
    return models.FieldCondition(key="namespace", match=models.MatchValue(value=namespace))


class QdrantVectorIndex(VectorIndex):
    """Production index: one cosine collection, namespaces as a payload filter."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6333,
        collection_name: str = "repo_chunks",
        vector_size: int = 768,
        client: Optional[QdrantClient] = None,
    ):
        """Initialize Qdrant client.

        Args:
            host: Qdrant server host
            port: Qdrant server port
            collection_name: Name of the collection to use
            vector_size: Dimension of embedding vectors
            client: Preconfigured client (e.g. ``QdrantClient(":memory:")``)
        """
        self.client = client or QdrantClient(host=host, port=port)
        self.collection_name = collection_name
        self.dimensions = vector_size
        self._ensure_collection()

    def _ensure_collection(self) -> None:
        """Create collection if it doesn't exist."""
        collections = self.client.get_collections().collections
        if self.collection_name in [c.name for c in collections]:
            logger.info(f"Collection {self.collection_name} already exists")
            return

        logger.info(f"Creating collection: {self.collection_name}")
        self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=self.dimensions, distance=Distance.COSINE),
        )

    def _build_filter(
        self, namespace: Optional[str], filters: Optional[Dict[str, Any]]
    ) -> Optional[models.Filter]:
        must = []
        if namespace is not None:
            must.append(_namespace_condition(namespace))
        for key, value in (filters or {}).items():
            if value is None:
                continue
            must.append(
                models.FieldCondition(key=f"metadata.{key}", match=models.MatchValue(value=value))
            )
        return models.Filter(must=must) if must else None

    def insert(self, records: List[VectorRecord]) -> int:
        """Insert records, skipping ids already stored.

        Args:
            records: Records to insert

        Returns:
            Number of points written
        """
        if not records:
            return 0

        ids = [point_id(r.id) for r in records]
        existing = {
            str(p.id)
            for p in self.client.retrieve(
                collection_name=self.collection_name, ids=ids, with_payload=False
            )
        }

        points = []
        seen = set(existing)
        for record, pid in zip(records, ids):
            if pid in seen:
                continue
            seen.add(pid)
            points.append(
                PointStruct(
                    id=pid,
                    vector=record.values,
                    payload={
                        "record_id": record.id,
                        "namespace": record.namespace,
                        "metadata": record.metadata,
                    },
                )
            )

        if points:
            self.client.upsert(collection_name=self.collection_name, points=points)
        logger.info(f"Inserted {len(points)} vectors into {self.collection_name}")
        return len(points)

    def query(
        self,
        vector: List[float],
        top_k: int = 10,
        namespace: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        min_score: Optional[float] = None,
    ) -> List[VectorMatch]:
        response = self.client.query_points(
            collection_name=self.collection_name,
            query=vector,
            query_filter=self._build_filter(namespace, filters),
            limit=top_k,
            score_threshold=min_score,
            with_payload=True,
        )
        return [
            VectorMatch(
                id=point.payload.get("record_id", str(point.id)),
                score=point.score,
                namespace=point.payload.get("namespace", ""),
                metadata=point.payload.get("metadata", {}),
            )
            for point in response.points
        ]

    def delete_by_ids(self, ids: List[str], namespace: Optional[str] = None) -> int:
        if not ids:
            return 0
        points = self.client.retrieve(
            collection_name=self.collection_name,
            ids=[point_id(i) for i in ids],
            with_payload=True,
        )
        targets = [
            p.id for p in points if namespace is None or p.payload.get("namespace") == namespace
        ]
        if targets:
            self.client.delete(
                collection_name=self.collection_name,
                points_selector=models.PointIdsList(points=targets),
            )
        return len(targets)

    def delete_by_namespace(self, namespace: str) -> int:
        namespace_filter = models.Filter(must=[_namespace_condition(namespace)])
        count = self.client.count(
            collection_name=self.collection_name, count_filter=namespace_filter, exact=True
        ).count
        if count:
            self.client.delete(
                collection_name=self.collection_name,
                points_selector=models.FilterSelector(filter=namespace_filter),
            )
        logger.info(f"Deleted {count} vectors from namespace {namespace}")
        return count

    def get_by_ids(self, ids: List[str]) -> List[VectorRecord]:
        points = self.client.retrieve(
            collection_name=self.collection_name,
            ids=[point_id(i) for i in ids],
            with_payload=True,
            with_vectors=True,
        )
        return [
            VectorRecord(
                id=p.payload["record_id"],
                values=list(p.vector),
                namespace=p.payload.get("namespace", ""),
                metadata=p.payload.get("metadata", {}),
            )
            for p in points
        ]

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the collection.

        Returns:
            Dictionary with collection statistics
        """
        info = self.client.get_collection(collection_name=self.collection_name)
        return {
            "backend": "qdrant",
            "collection": self.collection_name,
            "total_vectors": info.points_count,
            "dimensions": self.dimensions,
            "status": str(info.status),
        }

    def health_check(self) -> bool:
        """Check if Qdrant is healthy and accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            self.client.get_collections()
            return True
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False
