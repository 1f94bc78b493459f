"""Tests for the HTTP search API."""

import pytest
from fastapi.testclient import TestClient

from repo_intake.api import create_app
from repo_intake.config import AppConfig
from repo_intake.indexer.models import CodeChunk
from repo_intake.pipeline import build_components
from repo_intake.tools.index_tool import prepare_text_for_embedding

CHUNKS = [
    {
        "id": "src/auth.ts:function:validateToken:1",
        "type": "function",
        "content": "export function validateToken(token: string): boolean {\n  return token.length > 20;\n}",
        "metadata": {
            "path": "src/auth.ts",
            "startLine": 1,
            "endLine": 3,
            "language": "typescript",
            "name": "validateToken",
            "exportType": "named",
        },
    },
    {
        "id": "src/cart.ts:comment:FIXME:4",
        "path": "src/cart.ts",
        "type": "comment",
        "content": "// FIXME: rounding errors on large carts",
        "metadata": {"start_line": 4, "language": "typescript", "name": "FIXME"},
    },
]


@pytest.fixture
def components():
    return build_components(AppConfig())


@pytest.fixture
def client(components):
    return TestClient(create_app(components))


@pytest.fixture
def indexed(client):
    response = client.post("/api/index", json={"repoId": "acme/shop", "chunks": CHUNKS})
    assert response.status_code == 200
    return response.json()


def test_health(client):
    for path in ("/", "/health"):
        body = client.get(path).json()
        assert body["status"] == "ok"
        assert body["vector_index"] is True
        assert "/api/search" in body["endpoints"]


def test_index_reports_counts(indexed):
    assert indexed == {"success": True, "indexed": 2, "total": 2, "errors": []}


def test_search_returns_best_match_first(client, indexed):
    query = prepare_text_for_embedding(CodeChunk.from_dict(CHUNKS[0]))

    response = client.post("/api/search", json={"query": query, "repoId": "acme/shop", "limit": 2})

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["count"] == len(body["results"]) >= 1
    top = body["results"][0]
    assert top["chunk_id"] == CHUNKS[0]["id"]
    assert top["repo_id"] == "acme/shop"
    assert top["lines"] == "1-3"
    assert top["score"] == pytest.approx(1.0, abs=1e-4)


def test_search_filters_by_type(client, indexed):
    response = client.post(
        "/api/search",
        json={"query": "rounding errors", "type": "comment", "minScore": -1.0},
    )

    assert [r["type"] for r in response.json()["results"]] == ["comment"]


def test_batch_search(client, indexed):
    response = client.post(
        "/api/search/batch",
        json={"queries": ["token", "cart"], "repoId": "acme/shop", "limitPerQuery": 1},
    )

    body = response.json()
    assert body["success"] is True
    assert body["queriesProcessed"] == 2
    assert set(body["results"]) == {"token", "cart"}


def test_delete_repository(client, components, indexed):
    response = client.request("DELETE", "/api/delete", json={"repoId": "acme/shop"})

    assert response.json() == {"success": True, "deleted": 2}
    assert components.vector_index.get_stats()["total_vectors"] == 0


@pytest.mark.parametrize(
    "path,body",
    [
        ("/api/search", {"query": ""}),
        ("/api/search", {"query": "x", "limit": 0}),
        ("/api/search/batch", {"queries": []}),
        ("/api/index", {"chunks": []}),
    ],
)
def test_invalid_body_is_400(client, path, body):
    response = client.post(path, json=body)

    assert response.status_code == 400
    assert response.json()["error"]


def test_invalid_chunk_is_400(client):
    response = client.post(
        "/api/index", json={"repoId": "acme/shop", "chunks": [CHUNKS[0], {"id": "broken"}]}
    )

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid chunk at index 1:")


def test_unknown_route_is_404(client):
    response = client.get("/api/nothing")

    assert response.status_code == 404
    assert response.json() == {"error": "Not found", "path": "/api/nothing"}


def test_search_failure_is_500(client, components, monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("index unavailable")

    monkeypatch.setattr(components.search_tool, "search", broken)

    response = client.post("/api/search", json={"query": "token"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "message": "index unavailable"}
