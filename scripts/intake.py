#!/usr/bin/env python3
"""Standalone intake script - analyzes one repository, prints a report and exits."""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

# Setup logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main() -> int:
    """Main intake function."""
    from repo_intake.config import get_env_config
    from repo_intake.errors import describe_failure
    from repo_intake.github.urls import parse_repo_reference
    from repo_intake.indexer.formatter import format_for_model, format_repo_for_ai
    from repo_intake.pipeline import build_components
    from repo_intake.selection.file_selector import explain_selection

    # Repository from argv or environment
    reference = sys.argv[1] if len(sys.argv) > 1 else os.getenv("REPOSITORY")
    ref = os.getenv("REPOSITORY_REF") or None
    model = os.getenv("TARGET_MODEL", "claude")
    output_path = os.getenv("OUTPUT_PATH")

    if not reference:
        logger.error("Usage: intake.py owner/name (or set REPOSITORY)")
        return 2

    parsed = parse_repo_reference(reference)
    if not parsed:
        logger.error(f"Invalid repository reference: {reference}")
        return 2
    owner, name = parsed

    config = get_env_config()
    if not config.github.token:
        logger.warning("GITHUB_TOKEN not set; unauthenticated requests have a much lower rate limit")

    logger.info(f"Starting intake for repository: {owner}/{name}")
    logger.info(f"Budgets: {config.selection.max_files} files, {config.selection.max_total_size} bytes")
    logger.info(f"Deadline: {config.pipeline.deadline_seconds}s")

    components = build_components(config)
    try:
        result = await components.pipeline.run(owner, name, ref=ref)
    except Exception as e:
        logger.error(f"Intake failed: {describe_failure(e)}")
        return 1
    finally:
        await components.close()

    if result.selection:
        logger.info("Selection:\n" + explain_selection(result.selection))

    stats = result.statistics
    logger.info("=" * 60)
    logger.info(f"Repository: {result.repo_id}")
    logger.info(f"Candidate files: {stats.total_files}")
    logger.info(f"Selected files: {stats.selected_files}")
    logger.info(f"Analyzed files: {stats.analyzed_files} ({stats.analyzed_size} bytes)")
    logger.info(f"Chunks: {stats.chunk_count}")
    if result.indexing:
        logger.info(f"Indexed: {result.indexing.indexed}/{result.indexing.total}")
    logger.info(f"Time: {stats.processing_time:.2f}s")
    for error in stats.errors:
        logger.warning(f"  {error}")
    if result.partial:
        logger.warning(f"Stopped early during {result.stopped_at}; results are partial")
    logger.info("=" * 60)

    if output_path and result.repository and result.selection:
        formatted = format_repo_for_ai(
            result.repository, result.selection, result.files, chunker=components.chunker
        )
        Path(output_path).write_text(format_for_model(formatted, model), encoding="utf-8")
        Path(output_path).with_suffix(".json").write_text(
            json.dumps(result.to_dict(), indent=2), encoding="utf-8"
        )
        logger.info(f"Wrote {output_path} (~{formatted.token_estimate} tokens)")

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
