"""HTTP surface for indexing chunks and searching them."""

import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_env_config
from .indexer.models import CodeChunk
from .pipeline import Components, build_components

logger = logging.getLogger(__name__)


class IndexRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repo_id: str = Field(alias="repoId", min_length=1)
    chunks: List[Dict[str, Any]]


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1)
    repo_id: Optional[str] = Field(default=None, alias="repoId")
    limit: int = Field(default=5, ge=1, le=100)
    type: Optional[str] = None
    language: Optional[str] = None
    min_score: Optional[float] = Field(default=None, alias="minScore", ge=-1.0, le=1.0)


class BatchSearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    queries: List[str] = Field(min_length=1)
    repo_id: Optional[str] = Field(default=None, alias="repoId")
    limit_per_query: int = Field(default=3, alias="limitPerQuery", ge=1, le=50)


class DeleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repo_id: str = Field(alias="repoId", min_length=1)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def _server_error(e: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "Internal server error", "message": str(e)})


def create_app(components: Components) -> FastAPI:
    """Create the HTTP application around already-built components.

    Args:
        components: Wired components (embedder, vector index, indexing and search tools)

    Returns:
        FastAPI application
    """
    app = FastAPI(title="Repository Intake Search API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Not found", "path": request.url.path})
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return _server_error(exc)

    @app.get("/")
    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "service": "repo-intake",
            "vector_index": components.vector_index.health_check(),
            "endpoints": ["/api/index", "/api/search", "/api/search/batch", "/api/delete"],
        }

    @app.post("/api/index")
    async def index_chunks(body: IndexRequest):
        chunks = []
        for position, raw in enumerate(body.chunks):
            try:
                chunks.append(CodeChunk.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                return JSONResponse(
                    status_code=400, content={"error": f"Invalid chunk at index {position}: {e}"}
                )

        try:
            result = await components.indexing_tool.index_chunks(chunks, body.repo_id)
        except Exception as e:
            logger.error(f"Indexing failed for {body.repo_id}: {e}")
            return _server_error(e)

        return {
            "success": True,
            "indexed": result.indexed,
            "total": result.total,
            "errors": result.errors,
        }

    @app.post("/api/search")
    async def search(body: SearchRequest):
        try:
            results = await components.search_tool.search(
                body.query,
                namespace=body.repo_id,
                limit=body.limit,
                chunk_type=body.type,
                language=body.language,
                min_score=body.min_score,
            )
        except Exception as e:
            logger.error(f"Search failed: {e}")
            return _server_error(e)

        return {
            "success": True,
            "query": body.query,
            "results": [r.to_dict() for r in results],
            "count": len(results),
        }

    @app.post("/api/search/batch")
    async def batch_search(body: BatchSearchRequest):
        try:
            batch = await components.search_tool.batch_search(
                body.queries, namespace=body.repo_id, limit_per_query=body.limit_per_query
            )
        except Exception as e:
            logger.error(f"Batch search failed: {e}")
            return _server_error(e)

        return {
            "success": True,
            "results": {query: [r.to_dict() for r in hits] for query, hits in batch.items()},
            "queriesProcessed": len(batch),
        }

    @app.delete("/api/delete")
    async def delete_repository(body: DeleteRequest):
        try:
            deleted = components.search_tool.delete_repository(body.repo_id)
        except Exception as e:
            logger.error(f"Delete failed for {body.repo_id}: {e}")
            return _server_error(e)

        return {"success": True, "deleted": deleted}

    @app.on_event("shutdown")
    async def shutdown():
        await components.close()

    return app


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = create_app(build_components(get_env_config()))
    uvicorn.run(app, host=os.getenv("API_HOST", "0.0.0.0"), port=int(os.getenv("API_PORT", "8000")))
