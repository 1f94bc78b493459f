"""Regex-driven semantic chunking of fetched file contents."""

import logging
import re
from typing import Dict, Iterable, List, Optional

from .grammars import C_LIKE, PYTHON, LanguageConfig, LanguageRegistry
from .matchers import ChunkMatcher, Span, c_like_matchers, python_matchers
from .models import ChunkMetadata, CodeChunk, estimate_tokens

logger = logging.getLogger(__name__)

CONFIG_FILE_PATTERNS = [
    re.compile(p)
    for p in (
        r"package\.json$",
        r"tsconfig.*\.json$",
        r"\.env\.example$",
        r"webpack\.config\.",
        r"vite\.config\.",
        r"next\.config\.",
        r"tailwind\.config\.",
        r"postcss\.config\.",
        r"babel\.config\.",
        r"jest\.config\.",
        r"eslint.*\.(js|json|cjs)$",
        r"prettier.*\.(js|json|cjs)$",
        r"\.prettierrc",
        r"\.eslintrc",
        r"Cargo\.toml$",
        r"go\.mod$",
        r"requirements\.txt$",
        r"pyproject\.toml$",
        r"Gemfile$",
        r"composer\.json$",
    )
]

# A component or hook starting on the same line replaces the generic function chunk
SUPERSEDING_TYPES = ("component", "hook")


def is_config_file(path: str) -> bool:
    return any(p.search(path) for p in CONFIG_FILE_PATTERNS)


class SemanticChunker:
    """Splits files into typed, addressable chunks without a parser."""

    def __init__(
        self,
        registry: Optional[LanguageRegistry] = None,
        max_body_lines: int = 100,
        max_type_lines: int = 50,
    ):
        """Initialize the chunker.

        Args:
            registry: Language registry (defaults to the built-in languages)
            max_body_lines: Line window for function/class/component bodies
            max_type_lines: Line window for type declarations
        """
        self.registry = registry or LanguageRegistry()
        self.max_body_lines = max_body_lines
        self.max_type_lines = max_type_lines
        self._matchers: Dict[str, List[ChunkMatcher]] = {}

    def _matchers_for(self, language: Optional[LanguageConfig]) -> List[ChunkMatcher]:
        if language is None or not language.extracts_symbols:
            return []
        if language.name not in self._matchers:
            if language.family == C_LIKE:
                matchers = c_like_matchers(
                    self.max_body_lines,
                    self.max_type_lines,
                    with_types=language.has_type_declarations,
                    with_components=language.has_components,
                )
            elif language.family == PYTHON:
                matchers = python_matchers(self.max_body_lines)
            else:
                matchers = []
            self._matchers[language.name] = matchers
        return self._matchers[language.name]

    def _resolve_language(self, path: str, language: Optional[str]) -> Optional[LanguageConfig]:
        config = self.registry.get_language_config(language)
        if config is None:
            detected = self.registry.detect_language(path)
            config = self.registry.get_language_config(detected)
        return config

    def chunk_file(self, path: str, content: str, language: Optional[str] = None) -> List[CodeChunk]:
        """Extract chunks from one file.

        Never raises: a matcher that fails is logged and skipped, so the worst
        case is an empty list.

        Args:
            path: Repository-relative path
            content: File text
            language: Language identifier or display name (detected if omitted)

        Returns:
            Chunks with unique ids, in matcher order
        """
        config = self._resolve_language(path, language)
        language_name = config.name if config else "text"
        lines = content.split("\n")

        spans: List[Span] = []
        for matcher in self._matchers_for(config):
            try:
                spans.extend(matcher.match(content, lines))
            except Exception as e:
                logger.warning(
                    f"{matcher.__class__.__name__} ({matcher.chunk_type}) failed on {path}: {e}"
                )

        superseded = {s.start_line for s in spans if s.chunk_type in SUPERSEDING_TYPES}
        spans = [
            s for s in spans if not (s.chunk_type == "function" and s.start_line in superseded)
        ]

        if is_config_file(path):
            spans.append(
                Span(chunk_type="config", start_line=1, end_line=len(lines), content=content)
            )

        chunks: List[CodeChunk] = []
        seen = set()
        for span in spans:
            chunk_id = CodeChunk.make_id(path, span.chunk_type, span.start_line, span.name)
            if chunk_id in seen:
                continue
            seen.add(chunk_id)
            chunks.append(
                CodeChunk(
                    id=chunk_id,
                    path=path,
                    chunk_type=span.chunk_type,
                    content=span.content,
                    metadata=ChunkMetadata(
                        start_line=span.start_line,
                        end_line=span.end_line,
                        language=language_name,
                        tokens=estimate_tokens(span.content),
                        name=span.name,
                        export_type=span.export_type,
                    ),
                )
            )

        logger.debug(f"Extracted {len(chunks)} chunks from {path}")
        return chunks

    def chunk_files(self, fetched_files: Iterable) -> List[CodeChunk]:
        """Extract chunks from fetched files.

        Args:
            fetched_files: Objects with ``path`` and ``content`` attributes

        Returns:
            All chunks, file by file
        """
        chunks: List[CodeChunk] = []
        for fetched in fetched_files:
            chunks.extend(self.chunk_file(fetched.path, fetched.content))
        return chunks
