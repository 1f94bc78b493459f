"""Embedding generation: Ollama for model-quality vectors, feature hashing offline."""

import asyncio
import json
import logging
import math
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import blake3
import httpx

from ..config import EmbeddingConfig

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*|\d+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class Embedder:
    """Turns texts into fixed-dimension vectors."""

    dimensions: int = 768

    async def embed(self, texts: List[str]) -> List[Optional[List[float]]]:
        """Embed texts.

        Args:
            texts: Texts to embed

        Returns:
            One vector per text, in order; None where that text failed
        """
        raise NotImplementedError

    async def embed_one(self, text: str) -> List[float]:
        vectors = await self.embed([text])
        if vectors[0] is None:
            raise RuntimeError("Embedding generation failed")
        return vectors[0]

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        """Release resources held by the embedder."""

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


class HashingEmbeddings(Embedder):
    """Deterministic feature-hashing embeddings.

    Identifiers are lowercased and also split on camelCase and snake_case
    boundaries; each feature is hashed with Blake3 into a signed bucket and the
    result is L2-normalised. Identical texts therefore have cosine similarity
    1.0, and texts sharing vocabulary score proportionally.
    """

    def __init__(self, dimensions: int = 768):
        """Initialize hashing embeddings.

        Args:
            dimensions: Vector dimension
        """
        self.dimensions = dimensions

    def _features(self, text: str) -> List[str]:
        features = []
        for token in _TOKEN_PATTERN.findall(text):
            lowered = token.lower()
            features.append(lowered)
            parts = [
                p.lower()
                for piece in token.split("_")
                for p in _CAMEL_BOUNDARY.split(piece)
                if p
            ]
            if len(parts) > 1:
                features.extend(parts)
        return features

    def embed_sync(self, text: str) -> List[float]:
        vector = [0.0] * self.dimensions
        for feature in self._features(text):
            digest = blake3.blake3(feature.encode()).digest()
            bucket = int.from_bytes(digest[:8], "big") % self.dimensions
            sign = 1.0 if digest[8] & 1 else -1.0
            vector[bucket] += sign

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return vector
        return [v / norm for v in vector]

    async def embed(self, texts: List[str]) -> List[Optional[List[float]]]:
        return [self.embed_sync(text) for text in texts]


class OllamaEmbeddings(Embedder):
    """Generate embeddings using Ollama's local embedding models."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        dimensions: int = 768,
        cache_dir: Optional[Path] = None,
        max_concurrent: int = 4,
        max_tokens: int = 2048,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Ollama embeddings client.

        Args:
            host: Ollama API host URL
            model: Name of the embedding model to use
            dimensions: Expected vector dimension
            cache_dir: Directory for caching embeddings (None to disable)
            max_concurrent: Maximum concurrent requests to Ollama
            max_tokens: Maximum token length for model
            transport: Custom httpx transport
        """
        self.host = host.rstrip("/")
        self.model = model
        self.dimensions = dimensions
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.max_concurrent = max_concurrent
        self.max_tokens = max_tokens
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._client_loop_id: Optional[int] = None
        self._semaphore: Optional[asyncio.Semaphore] = None

        if self.cache_dir:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Embedding cache enabled at: {self.cache_dir}")

        logger.info(f"Initialized Ollama embeddings with model: {model}")

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create an httpx client for the current event loop.

        Returns:
            httpx.AsyncClient instance for current event loop
        """
        loop_id = id(asyncio.get_running_loop())
        if self._client is None or self._client_loop_id != loop_id:
            self._client = httpx.AsyncClient(timeout=60.0, transport=self._transport)
            self._client_loop_id = loop_id
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
            logger.debug(f"Created new httpx client for event loop {loop_id}")
        return self._client

    def _get_cache_key(self, text: str) -> str:
        # Include model name to invalidate cache if model changes
        return blake3.blake3(f"{self.model}:{text}".encode()).hexdigest()

    def _get_cached_embedding(self, cache_key: str) -> Optional[List[float]]:
        if not self.cache_dir:
            return None

        cache_file = self.cache_dir / f"{cache_key}.json"
        if not cache_file.exists():
            return None
        try:
            with open(cache_file, "r") as f:
                return json.load(f)["embedding"]
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Error reading cache file {cache_file}: {e}")
            return None

    def _save_cached_embedding(self, cache_key: str, embedding: List[float]) -> None:
        if not self.cache_dir:
            return

        cache_file = self.cache_dir / f"{cache_key}.json"
        try:
            with open(cache_file, "w") as f:
                json.dump({"embedding": embedding}, f)
        except OSError as e:
            logger.warning(f"Error writing cache file {cache_file}: {e}")

    def _truncate_text(self, text: str) -> str:
        # Conservative: 3 chars per token with a 20% safety margin
        max_chars = int(self.max_tokens * 3 * 0.8)
        if len(text) > max_chars:
            logger.debug(f"Truncated text from {len(text)} to {max_chars} chars")
            return text[:max_chars]
        return text

    async def _generate_embedding_single(self, text: str, max_retries: int = 3) -> List[float]:
        """Generate embedding for a single text using Ollama API.

        Args:
            text: Text to generate embedding for
            max_retries: Maximum number of retry attempts for transient errors

        Returns:
            Embedding vector

        Raises:
            httpx.HTTPError: If API request fails after all retries
        """
        text = self._truncate_text(text)
        client = self._get_client()

        async with self._semaphore:
            for attempt in range(max_retries):
                try:
                    response = await client.post(
                        f"{self.host}/api/embeddings",
                        json={"model": self.model, "prompt": text},
                    )
                    response.raise_for_status()
                    return response.json()["embedding"]
                except httpx.HTTPStatusError as e:
                    # Retry on 5xx (server overload) with exponential backoff
                    if e.response.status_code >= 500 and attempt < max_retries - 1:
                        wait_time = 2**attempt
                        logger.warning(
                            f"Ollama {e.response.status_code} error "
                            f"(attempt {attempt + 1}/{max_retries}), retrying in {wait_time}s..."
                        )
                        await asyncio.sleep(wait_time)
                        continue
                    logger.error(f"Ollama API error {e.response.status_code}: text_len={len(text)}")
                    raise

        raise RuntimeError("unreachable")

    async def embed(self, texts: List[str]) -> List[Optional[List[float]]]:
        """Generate embeddings for multiple texts with caching.

        Args:
            texts: List of texts to generate embeddings for

        Returns:
            Embedding vectors in input order; None for texts that failed
        """
        embeddings: List[Optional[List[float]]] = []
        pending: List[int] = []
        cache_keys = [self._get_cache_key(text) for text in texts]

        for i, key in enumerate(cache_keys):
            cached = self._get_cached_embedding(key)
            embeddings.append(cached)
            if cached is None:
                pending.append(i)

        if not pending:
            return embeddings

        logger.info(f"Generating {len(pending)} embeddings ({len(texts) - len(pending)} cached)")
        generated = await asyncio.gather(
            *(self._generate_embedding_single(texts[i]) for i in pending),
            return_exceptions=True,
        )

        failed = 0
        for i, result in zip(pending, generated):
            if isinstance(result, Exception):
                failed += 1
                logger.warning(f"Failed to generate embedding for text {i}: {result}")
                continue
            embeddings[i] = result
            self._save_cached_embedding(cache_keys[i], result)

        if failed:
            logger.warning(f"{failed}/{len(pending)} embeddings failed, continuing with the rest")
        return embeddings

    async def health_check(self) -> bool:
        """Check if Ollama is healthy and the model is available.

        Returns:
            True if healthy, False otherwise
        """
        try:
            response = await self._get_client().get(f"{self.host}/api/tags")
            response.raise_for_status()
            model_names = [m["name"] for m in response.json().get("models", [])]

            if self.model in model_names or f"{self.model}:latest" in model_names:
                return True
            logger.warning(
                f"Model '{self.model}' not found in Ollama. Available models: {model_names}"
            )
            return False
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error(f"Ollama health check failed: {e}")
            return False

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get statistics about the embedding cache.

        Returns:
            Dictionary with cache statistics
        """
        if not self.cache_dir:
            return {"enabled": False}

        cache_files = list(self.cache_dir.glob("*.json"))
        total_size = sum(f.stat().st_size for f in cache_files)
        return {
            "enabled": True,
            "cache_dir": str(self.cache_dir),
            "cached_embeddings": len(cache_files),
            "total_size_mb": round(total_size / (1024 * 1024), 2),
        }

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def create_embedder(config: Optional[EmbeddingConfig] = None) -> Embedder:
    """Build the embedder selected by configuration.

    Args:
        config: Embedding settings

    Returns:
        Embedder instance
    """
    config = config or EmbeddingConfig()
    if config.provider == "ollama":
        return OllamaEmbeddings(
            host=config.ollama_host,
            model=config.model,
            dimensions=config.dimensions,
            cache_dir=config.cache_path,
            max_concurrent=config.max_concurrent,
        )
    if config.provider != "hashing":
        raise ValueError(f"Unknown embedding provider: {config.provider}")
    return HashingEmbeddings(dimensions=config.dimensions)
