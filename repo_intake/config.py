"""Environment-driven configuration for the intake pipeline."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

DEFAULT_INCLUDE_PATTERNS = [
    "**/*.js",
    "**/*.jsx",
    "**/*.ts",
    "**/*.tsx",
    "**/*.py",
    "**/*.java",
    "**/*.go",
    "**/*.rs",
    "**/*.rb",
    "**/*.php",
    "**/*.cpp",
    "**/*.c",
    "**/*.h",
    "**/*.cs",
    "**/*.swift",
    "**/*.kt",
    "**/*.scala",
    "**/*.vue",
    "**/*.md",
    "**/package.json",
    "**/requirements.txt",
    "**/Cargo.toml",
    "**/go.mod",
    "**/pom.xml",
    "**/build.gradle",
    "LICENSE",
]

DEFAULT_EXCLUDE_PATTERNS = [
    "node_modules/**",
    "dist/**",
    "build/**",
    "out/**",
    ".next/**",
    "coverage/**",
    "target/**",
    "vendor/**",
    "__pycache__/**",
    ".git/**",
    ".github/**",
    "**/*.min.js",
    "**/*.bundle.js",
    "**/*.test.js",
    "**/*.test.ts",
    "**/*.spec.js",
    "**/*.spec.ts",
]

MB = 1024 * 1024


def _split_patterns(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return list(default)
    return [p.strip() for p in value.split(",") if p.strip()]


@dataclass
class GitHubConfig:
    """Source-host client settings."""

    token: Optional[str] = None
    api_url: str = "https://api.github.com"
    timeout_seconds: float = 30.0
    cache_ttl_seconds: float = 300.0
    rate_limit_buffer: float = 0.1
    rate_limit_floor: int = 10
    max_file_size: int = MB
    include_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_PATTERNS))
    exclude_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))


@dataclass
class RetryConfig:
    """Exponential backoff settings for source-host calls."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    factor: float = 2.0
    rate_limit_wait_ceiling: float = 60.0


@dataclass
class SelectionConfig:
    """Budgets for file selection."""

    max_files: int = 50
    max_total_size: int = 5 * MB
    max_file_size: int = MB
    recent_commits_days: int = 30


@dataclass
class FetchConfig:
    """Content fetcher settings."""

    batch_size: int = 5


@dataclass
class EmbeddingConfig:
    """Embedding provider settings."""

    provider: str = "hashing"
    ollama_host: str = "http://localhost:11434"
    model: str = "nomic-embed-text"
    dimensions: int = 768
    cache_path: Optional[Path] = None
    max_concurrent: int = 4


@dataclass
class VectorIndexConfig:
    """Vector index backend settings."""

    backend: str = "memory"
    qdrant_host: str = "localhost"
    qdrant_port: int = 6333
    collection_name: str = "repo_chunks"
    batch_size: int = 10
    similarity_threshold: float = 0.7


@dataclass
class PipelineConfig:
    """Whole-run settings."""

    deadline_seconds: float = 240.0
    index_chunks: bool = True


@dataclass
class AppConfig:
    """All configuration sections in one place."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_index: VectorIndexConfig = field(default_factory=VectorIndexConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)


def get_env_config() -> AppConfig:
    """Get configuration from environment variables.

    Returns:
        Populated AppConfig; unset variables keep their defaults
    """
    max_file_size = int(os.getenv("MAX_FILE_SIZE", str(MB)))
    cache_path = os.getenv("CACHE_PATH")

    return AppConfig(
        github=GitHubConfig(
            token=os.getenv("GITHUB_TOKEN") or None,
            api_url=os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip("/"),
            timeout_seconds=float(os.getenv("GITHUB_TIMEOUT_SECONDS", "30")),
            cache_ttl_seconds=float(os.getenv("CACHE_TTL_SECONDS", "300")),
            rate_limit_buffer=float(os.getenv("RATE_LIMIT_BUFFER", "0.1")),
            max_file_size=max_file_size,
            include_patterns=_split_patterns(
                os.getenv("INCLUDE_PATTERNS"), DEFAULT_INCLUDE_PATTERNS
            ),
            exclude_patterns=_split_patterns(
                os.getenv("EXCLUDE_PATTERNS"), DEFAULT_EXCLUDE_PATTERNS
            ),
        ),
        retry=RetryConfig(
            max_attempts=int(os.getenv("RETRY_MAX_ATTEMPTS", "3")),
            initial_delay=float(os.getenv("RETRY_INITIAL_DELAY", "1")),
            max_delay=float(os.getenv("RETRY_MAX_DELAY", "10")),
        ),
        selection=SelectionConfig(
            max_files=int(os.getenv("MAX_FILES", "50")),
            max_total_size=int(os.getenv("MAX_TOTAL_SIZE", str(5 * MB))),
            max_file_size=max_file_size,
            recent_commits_days=int(os.getenv("RECENT_COMMITS_DAYS", "30")),
        ),
        fetch=FetchConfig(batch_size=int(os.getenv("FETCH_BATCH_SIZE", "5"))),
        embedding=EmbeddingConfig(
            provider=os.getenv("EMBEDDING_PROVIDER", "hashing").lower(),
            ollama_host=os.getenv("OLLAMA_HOST", "http://localhost:11434"),
            model=os.getenv("EMBEDDING_MODEL", "nomic-embed-text"),
            dimensions=int(os.getenv("EMBEDDING_DIMENSIONS", "768")),
            cache_path=Path(cache_path) if cache_path else None,
            max_concurrent=int(os.getenv("MAX_CONCURRENT_EMBEDDINGS", "4")),
        ),
        vector_index=VectorIndexConfig(
            backend=os.getenv("VECTOR_BACKEND", "memory").lower(),
            qdrant_host=os.getenv("QDRANT_HOST", "localhost"),
            qdrant_port=int(os.getenv("QDRANT_PORT", "6333")),
            collection_name=os.getenv("QDRANT_COLLECTION", "repo_chunks"),
            batch_size=int(os.getenv("INDEX_BATCH_SIZE", "10")),
            similarity_threshold=float(os.getenv("SIMILARITY_THRESHOLD", "0.7")),
        ),
        pipeline=PipelineConfig(
            deadline_seconds=float(os.getenv("PIPELINE_DEADLINE_SECONDS", "240")),
            index_chunks=os.getenv("INDEX_CHUNKS", "true").lower() == "true",
        ),
    )
