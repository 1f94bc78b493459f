"""Tests for indexing chunks and searching them."""

import httpx
import pytest

from repo_intake.indexer.chunker import SemanticChunker
from repo_intake.indexer.embeddings import HashingEmbeddings, OllamaEmbeddings
from repo_intake.tools.index_tool import IndexingTool, prepare_text_for_embedding
from repo_intake.tools.search_tool import SearchTool
from repo_intake.vector_db.memory_index import InMemoryVectorIndex

SOURCES = {
    "src/auth.ts": """export function validateToken(token: string): boolean {
  return token.startsWith('Bearer ') && token.length > 20;
}

export function hashPassword(password: string): string {
  return createHash('sha256').update(password).digest('hex');
}
""",
    "src/cart.ts": """export function addToCart(cart: Cart, item: Item): Cart {
  return { ...cart, items: [...cart.items, item] };
}

// FIXME: rounding errors on large carts
export function cartTotal(cart: Cart): number {
  return cart.items.reduce((sum, item) => sum + item.price, 0);
}
""",
}


@pytest.fixture
def chunks():
    chunker = SemanticChunker()
    result = []
    for path, content in SOURCES.items():
        result.extend(chunker.chunk_file(path, content))
    return result


@pytest.fixture
def stack():
    embedder = HashingEmbeddings(dimensions=256)
    index = InMemoryVectorIndex(dimensions=256)
    return embedder, index, IndexingTool(embedder, index, batch_size=2), SearchTool(index, embedder)


def test_embedding_text_puts_context_before_content(chunks):
    function = next(c for c in chunks if c.metadata.name == "validateToken")
    text = prepare_text_for_embedding(function)

    assert text.split("\n")[:3] == ["[FUNCTION]", "Name: validateToken", "File: src/auth.ts"]
    assert text.endswith(function.content)


@pytest.mark.asyncio
async def test_index_chunks_in_batches(stack, chunks):
    _, index, indexing_tool, _ = stack

    result = await indexing_tool.index_chunks(chunks, "acme/shop")

    assert result.total == len(chunks)
    assert result.indexed == len(chunks)
    assert result.errors == []
    assert index.get_stats()["namespaces"] == {"acme/shop": len(chunks)}


@pytest.mark.asyncio
async def test_literal_query_returns_its_chunk_first(stack, chunks):
    _, _, indexing_tool, search_tool = stack
    await indexing_tool.index_chunks(chunks, "acme/shop")
    await indexing_tool.index_chunks(chunks, "acme/other")
    target = next(c for c in chunks if c.metadata.name == "cartTotal")

    results = await search_tool.search(
        prepare_text_for_embedding(target), namespace="acme/shop", limit=3
    )

    assert results[0].chunk_id == target.id
    assert results[0].namespace == "acme/shop"
    assert results[0].score == pytest.approx(1.0, abs=1e-6)


@pytest.mark.asyncio
async def test_type_and_language_filters(stack, chunks):
    _, _, indexing_tool, search_tool = stack
    await indexing_tool.index_chunks(chunks, "acme/shop")

    comments = await search_tool.search(
        "rounding errors", namespace="acme/shop", chunk_type="comment", min_score=0.0
    )
    assert [r.chunk_type for r in comments] == ["comment"]
    assert comments[0].name == "FIXME"

    python_only = await search_tool.search("cart", language="python", min_score=0.0)
    assert python_only == []


@pytest.mark.asyncio
async def test_batch_search_returns_one_entry_per_query(stack, chunks):
    _, _, indexing_tool, search_tool = stack
    await indexing_tool.index_chunks(chunks, "acme/shop")
    queries = ["validate token", "password hash", "cart total"]

    results = await search_tool.batch_search(queries, namespace="acme/shop", limit_per_query=2)

    assert list(results) == queries
    assert all(len(hits) <= 2 for hits in results.values())


@pytest.mark.asyncio
async def test_delete_repository_only_touches_its_namespace(stack, chunks):
    _, index, indexing_tool, search_tool = stack
    await indexing_tool.index_chunks(chunks, "acme/shop")
    await indexing_tool.index_chunks(chunks, "acme/other")

    assert search_tool.delete_repository("acme/shop") == len(chunks)
    assert index.get_stats()["namespaces"] == {"acme/other": len(chunks)}


@pytest.mark.asyncio
async def test_find_related_excludes_the_reference_chunk(stack, chunks):
    _, _, indexing_tool, search_tool = stack
    await indexing_tool.index_chunks(chunks, "acme/shop")
    reference = next(c for c in chunks if c.metadata.name == "addToCart")
    search_tool.min_score = -1.0

    related = await search_tool.find_related(reference, "acme/shop", limit=2)

    assert reference.id not in [r.chunk_id for r in related]
    assert len(related) == 2


@pytest.mark.asyncio
async def test_failed_embeddings_are_reported_per_batch(chunks):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if b"validateToken" in request.content:
            return httpx.Response(400, json={"error": "bad input"})
        return httpx.Response(200, json={"embedding": [1.0, 0.0, 0.0, 0.0]})

    embedder = OllamaEmbeddings(dimensions=4, transport=httpx.MockTransport(handler))
    index = InMemoryVectorIndex(dimensions=4)

    result = await IndexingTool(embedder, index, batch_size=10).index_chunks(chunks, "acme/shop")
    await embedder.close()

    assert result.indexed == len(chunks) - 1
    assert result.errors == ["Batch 1: 1 embeddings failed"]
