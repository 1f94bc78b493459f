"""Tool for listing symbols in a single remote file."""

import logging
from typing import Optional

from ..errors import describe_failure
from ..github.client import GitHubClient
from ..indexer.chunker import SemanticChunker

logger = logging.getLogger(__name__)

SYMBOL_TYPES = {"function", "class", "component", "hook", "type"}


class SymbolTool:
    """Fetches one file and reports the symbols the chunker finds in it."""

    def __init__(self, client: GitHubClient, chunker: SemanticChunker):
        """Initialize symbol tool.

        Args:
            client: Source-host client
            chunker: Chunker used for extraction
        """
        self.client = client
        self.chunker = chunker

    async def get_symbols(
        self,
        owner: str,
        name: str,
        path: str,
        ref: Optional[str] = None,
        symbol_type: Optional[str] = None,
    ) -> dict:
        """Extract symbols (functions, classes, components, hooks, types) from a file.

        Args:
            owner: Repository owner
            name: Repository name
            path: Repository-relative file path
            ref: Branch, tag or sha
            symbol_type: Only report this chunk type

        Returns:
            Dictionary with extracted symbols
        """
        try:
            logger.info(f"Extracting symbols from: {owner}/{name}/{path}")
            content = await self.client.get_file_content(owner, name, path, ref)
            chunks = [c for c in self.chunker.chunk_file(path, content) if c.chunk_type in SYMBOL_TYPES]
            if symbol_type:
                chunks = [c for c in chunks if c.chunk_type == symbol_type.lower()]

            symbols = [
                {
                    "name": c.metadata.name or "anonymous",
                    "type": c.chunk_type,
                    "start_line": c.metadata.start_line,
                    "end_line": c.metadata.end_line,
                    "export_type": c.metadata.export_type,
                    "language": c.metadata.language,
                }
                for c in chunks
            ]
            return {
                "success": True,
                "file_path": path,
                "total_symbols": len(symbols),
                "symbols": symbols,
                "filter": symbol_type,
            }

        except Exception as e:
            logger.error(f"Error extracting symbols: {e}")
            return {"success": False, "error": describe_failure(e)}
