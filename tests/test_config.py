"""Tests for environment-driven configuration."""

import pytest

from repo_intake.config import DEFAULT_EXCLUDE_PATTERNS, MB, get_env_config
from repo_intake.pipeline import create_vector_index
from repo_intake.vector_db.memory_index import InMemoryVectorIndex


def test_defaults(monkeypatch):
    for name in ("GITHUB_TOKEN", "MAX_FILES", "EXCLUDE_PATTERNS", "VECTOR_BACKEND", "INDEX_CHUNKS"):
        monkeypatch.delenv(name, raising=False)

    config = get_env_config()

    assert config.github.token is None
    assert config.github.cache_ttl_seconds == 300
    assert config.github.exclude_patterns == DEFAULT_EXCLUDE_PATTERNS
    assert config.retry.max_attempts == 3
    assert config.selection.max_files == 50
    assert config.selection.max_total_size == 5 * MB
    assert config.fetch.batch_size == 5
    assert config.vector_index.batch_size == 10
    assert config.pipeline.deadline_seconds == 240
    assert config.pipeline.index_chunks


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_example")
    monkeypatch.setenv("GITHUB_API_URL", "https://ghe.example.com/api/v3/")
    monkeypatch.setenv("MAX_FILES", "12")
    monkeypatch.setenv("EXCLUDE_PATTERNS", "vendor/**, ,**/*.snap")
    monkeypatch.setenv("INDEX_CHUNKS", "false")

    config = get_env_config()

    assert config.github.token == "ghp_example"
    assert config.github.api_url == "https://ghe.example.com/api/v3"
    assert config.selection.max_files == 12
    assert config.github.exclude_patterns == ["vendor/**", "**/*.snap"]
    assert not config.pipeline.index_chunks


def test_vector_backend_selection(monkeypatch):
    monkeypatch.setenv("VECTOR_BACKEND", "memory")
    assert isinstance(create_vector_index(get_env_config()), InMemoryVectorIndex)

    monkeypatch.setenv("VECTOR_BACKEND", "pinecone")
    with pytest.raises(ValueError):
        create_vector_index(get_env_config())
