"""FastMCP server exposing repository intake, analysis jobs and semantic search."""

import logging
import os
from typing import Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from .config import get_env_config
from .errors import describe_failure
from .github.urls import parse_repo_reference, repo_id
from .indexer.formatter import MODEL_TOKEN_LIMITS, format_for_model, format_repo_for_ai
from .indexer.job_manager import AnalysisJobManager, JobStatus, ProgressReporter
from .pipeline import Components, IntakeResult, build_components
from .selection.file_selector import explain_selection
from .tools.symbol_tool import SymbolTool

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", "/tmp/repo-intake.log")

formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

# Console handler
console_handler = logging.StreamHandler()
console_handler.setLevel(log_level)
console_handler.setFormatter(formatter)

# File handler (for detailed logs)
file_handler = logging.FileHandler(log_file)
file_handler.setLevel(log_level)
file_handler.setFormatter(formatter)

root_logger = logging.getLogger()
root_logger.setLevel(log_level)
root_logger.addHandler(console_handler)
root_logger.addHandler(file_handler)

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("repo-intake")

# Components (initialized on startup)
components: Optional[Components] = None
symbol_tool: Optional[SymbolTool] = None
results: Dict[str, IntakeResult] = {}
# Results of dropped jobs go with them
job_manager = AnalysisJobManager(
    max_finished_jobs=int(os.getenv("MAX_FINISHED_JOBS", "100")),
    on_evict=lambda job_id: results.pop(job_id, None),
)


def initialize_components() -> None:
    """Initialize all components on startup."""
    global components, symbol_tool

    config = get_env_config()
    logger.info("Initializing repository intake server...")
    components = build_components(config)
    symbol_tool = SymbolTool(components.client, components.chunker)
    logger.info(
        f"Components ready (embeddings: {config.embedding.provider}, "
        f"vector index: {config.vector_index.backend})"
    )


def _parse_repository(repository: str):
    parsed = parse_repo_reference(repository)
    if not parsed:
        raise ValueError(f"Invalid repository reference: {repository}. Use owner/name or a GitHub URL.")
    return parsed


@mcp.tool()
async def start_analysis(repository: str, ref: Optional[str] = None, index: bool = True) -> dict:
    """Start analyzing a GitHub repository in the background.

    The run lists the repository, selects the most informative files within
    the configured budgets, fetches them, extracts semantic chunks and (unless
    disabled) indexes them for search. Poll get_analysis_status for progress.

    Args:
        repository: "owner/name" or a GitHub URL
        ref: Branch, tag or commit sha (default branch if omitted)
        index: Whether to index the extracted chunks for search

    Returns:
        Dictionary with the job id
    """
    if not components:
        return {"success": False, "error": "Server not initialized"}

    try:
        owner, name = _parse_repository(repository)
    except ValueError as e:
        return {"success": False, "error": str(e)}

    job = job_manager.create_job(owner, name, ref)

    async def run(reporter: ProgressReporter) -> IntakeResult:
        result = await components.pipeline.run(owner, name, ref=ref, reporter=reporter, index=index)
        results[job.job_id] = result
        return result

    job_manager.start_job(job.job_id, run)
    return {
        "success": True,
        "job_id": job.job_id,
        "repo": job.repo,
        "status": job.status.value,
        "message": f"Analysis started. Use get_analysis_status('{job.job_id}') to track progress.",
    }


@mcp.tool()
def get_analysis_status(job_id: str) -> dict:
    """Get the status and progress of an analysis job.

    Args:
        job_id: Job identifier returned from start_analysis

    Returns:
        Dictionary with job status, progress and recorded fields
    """
    job = job_manager.get_job(job_id)
    if not job:
        return {"success": False, "error": f"Job {job_id} not found"}

    status = {"success": True, **job_manager.get_status_dict(job)}
    result = results.get(job_id)
    if result and result.selection:
        status["selection_explanation"] = explain_selection(result.selection)
    return status


@mcp.tool()
def list_analysis_jobs() -> dict:
    """List all analysis jobs (past and present).

    Returns:
        Dictionary with all jobs and their statuses
    """
    jobs = [job_manager.get_status_dict(job) for job in job_manager.list_jobs()]
    return {"success": True, "total_jobs": len(jobs), "jobs": jobs}


@mcp.tool()
async def cancel_analysis(job_id: str) -> dict:
    """Cancel a queued or running analysis job.

    Args:
        job_id: Job identifier to cancel

    Returns:
        Dictionary indicating success or failure
    """
    if await job_manager.cancel_job(job_id):
        return {"success": True, "message": f"Job {job_id} cancelled successfully"}
    return {"success": False, "error": f"Job {job_id} not found or already completed"}


@mcp.tool()
def get_analysis_document(
    job_id: str, model: str = "claude", max_file_chars: Optional[int] = None
) -> dict:
    """Render a finished analysis as a markdown document sized for a model.

    Args:
        job_id: Job identifier of a completed (or partial) analysis
        model: Target model family (gemini, gpt4, claude, llama)
        max_file_chars: Cap on characters rendered per file

    Returns:
        Dictionary with the document and its token estimate
    """
    job = job_manager.get_job(job_id)
    result = results.get(job_id)
    if not job or not result:
        return {"success": False, "error": f"No analysis result for job {job_id}"}
    if job.status not in (JobStatus.COMPLETED, JobStatus.PARTIAL) or not result.selection:
        return {"success": False, "error": f"Job {job_id} has no usable result ({job.status.value})"}

    try:
        formatted = format_repo_for_ai(
            result.repository,
            result.selection,
            result.files,
            max_file_chars=max_file_chars,
            chunker=components.chunker if components else None,
        )
        document = format_for_model(formatted, model)
        return {
            "success": True,
            "metadata": formatted.metadata,
            "model": model,
            "token_limit": MODEL_TOKEN_LIMITS.get(model),
            "token_estimate": formatted.token_estimate,
            "truncated": document != formatted.full_content,
            "document": document,
        }
    except Exception as e:
        logger.error(f"Error formatting analysis {job_id}: {e}")
        return {"success": False, "error": str(e)}


@mcp.tool()
async def search_code(
    query: str,
    repository: Optional[str] = None,
    limit: int = 5,
    chunk_type: Optional[str] = None,
    language: Optional[str] = None,
    min_score: Optional[float] = None,
) -> dict:
    """Search indexed repositories with a natural language or code query.

    Args:
        query: What to look for (e.g., "where are API routes registered")
        repository: Restrict to one repository ("owner/name"); all if omitted
        limit: Maximum number of results
        chunk_type: Filter by chunk type (function, class, component, hook, type, ...)
        language: Filter by language (e.g., "typescript", "python")
        min_score: Similarity floor (defaults to SIMILARITY_THRESHOLD)

    Returns:
        Dictionary with ranked results
    """
    if not components:
        return {"success": False, "error": "Server not initialized"}

    namespace = None
    if repository:
        try:
            namespace = repo_id(*_parse_repository(repository))
        except ValueError as e:
            return {"success": False, "error": str(e)}

    return await components.search_tool.search_code(
        query,
        repo_id=namespace,
        limit=limit,
        chunk_type=chunk_type,
        language=language,
        min_score=min_score,
    )


@mcp.tool()
async def batch_search_code(
    queries: List[str], repository: Optional[str] = None, limit_per_query: int = 3
) -> dict:
    """Run several searches at once.

    Args:
        queries: Queries to run
        repository: Restrict to one repository ("owner/name")
        limit_per_query: Maximum results per query

    Returns:
        Dictionary mapping each query to its results
    """
    if not components:
        return {"success": False, "error": "Server not initialized"}

    try:
        namespace = repo_id(*_parse_repository(repository)) if repository else None
        batch = await components.search_tool.batch_search(
            queries, namespace=namespace, limit_per_query=limit_per_query
        )
        return {
            "success": True,
            "queries_processed": len(batch),
            "results": {q: [r.to_dict() for r in hits] for q, hits in batch.items()},
        }
    except Exception as e:
        logger.error(f"Error during batch search: {e}")
        return {"success": False, "error": str(e)}


@mcp.tool()
def delete_repository_index(repository: str) -> dict:
    """Remove every indexed chunk of one repository.

    Args:
        repository: "owner/name" or a GitHub URL

    Returns:
        Dictionary with the number of deleted vectors
    """
    if not components:
        return {"success": False, "error": "Server not initialized"}

    try:
        namespace = repo_id(*_parse_repository(repository))
        deleted = components.search_tool.delete_repository(namespace)
        return {"success": True, "repo_id": namespace, "deleted": deleted}
    except Exception as e:
        logger.error(f"Error deleting index for {repository}: {e}")
        return {"success": False, "error": str(e)}


@mcp.tool()
async def get_file_symbols(
    repository: str,
    path: str,
    ref: Optional[str] = None,
    symbol_type: Optional[str] = None,
) -> dict:
    """List functions, classes, components, hooks and types in one file.

    Args:
        repository: "owner/name" or a GitHub URL
        path: Repository-relative file path
        ref: Branch, tag or commit sha
        symbol_type: Only report this kind of symbol

    Returns:
        Dictionary with extracted symbols
    """
    if not symbol_tool:
        return {"success": False, "error": "Server not initialized"}

    try:
        owner, name = _parse_repository(repository)
    except ValueError as e:
        return {"success": False, "error": str(e)}
    return await symbol_tool.get_symbols(owner, name, path, ref=ref, symbol_type=symbol_type)


@mcp.tool()
async def get_rate_limit() -> dict:
    """Get the current GitHub API rate-limit status.

    Returns:
        Dictionary with limit, remaining calls and reset time
    """
    if not components:
        return {"success": False, "error": "Server not initialized"}

    try:
        state = await components.client.get_rate_limit()
        return {"success": True, **state.to_dict()}
    except Exception as e:
        logger.error(f"Error checking rate limit: {e}")
        return {"success": False, "error": describe_failure(e)}


@mcp.tool()
async def health_check() -> dict:
    """Check health status of all components.

    Returns:
        Dictionary with health status of each component
    """
    if not components:
        return {"success": False, "error": "Server not initialized"}

    try:
        health = {
            "server": True,
            "vector_index": components.vector_index.health_check(),
            "embeddings": await components.embedder.health_check(),
        }
        return {
            "success": True,
            "components": health,
            "cache": components.client.cache.get_stats(),
        }
    except Exception as e:
        logger.error(f"Error during health check: {e}")
        return {"success": False, "error": str(e)}


if __name__ == "__main__":
    logger.info("Starting repository intake MCP server...")
    initialize_components()
    logger.info("Server ready!")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server interrupted")
