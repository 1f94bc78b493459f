"""Data models for extracted code chunks."""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

CHUNK_TYPES = ("function", "class", "component", "hook", "type", "import", "comment", "config")


def estimate_tokens(text: str) -> int:
    """Approximate token count at four characters per token."""
    return math.ceil(len(text) / 4)


@dataclass(frozen=True)
class ChunkMetadata:
    """Location and descriptive fields of a chunk."""

    start_line: int
    end_line: int
    language: str
    tokens: int
    name: Optional[str] = None
    export_type: Optional[str] = None  # default, named or none


@dataclass(frozen=True)
class CodeChunk:
    """Represents a semantic chunk of code."""

    id: str  # {path}:{type}:{name}:{start_line} or {path}:{type}:{start_line}
    path: str
    chunk_type: str  # function, class, component, hook, type, import, comment, config
    content: str
    metadata: ChunkMetadata

    @staticmethod
    def make_id(path: str, chunk_type: str, start_line: int, name: Optional[str] = None) -> str:
        if name:
            return f"{path}:{chunk_type}:{name}:{start_line}"
        return f"{path}:{chunk_type}:{start_line}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "type": self.chunk_type,
            "content": self.content,
            "metadata": {
                "start_line": self.metadata.start_line,
                "end_line": self.metadata.end_line,
                "language": self.metadata.language,
                "tokens": self.metadata.tokens,
                "name": self.metadata.name,
                "export_type": self.metadata.export_type,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CodeChunk":
        """Build a chunk from its dict form; camelCase metadata keys are accepted too.

        Raises:
            KeyError: If id, path or content is missing
        """
        metadata = data.get("metadata") or {}
        content = data["content"]
        start_line = metadata.get("start_line", metadata.get("startLine", 1))
        return cls(
            id=data["id"],
            path=data.get("path") or metadata["path"],
            chunk_type=data.get("type") or data.get("chunk_type", ""),
            content=content,
            metadata=ChunkMetadata(
                start_line=int(start_line),
                end_line=int(metadata.get("end_line", metadata.get("endLine", start_line))),
                language=metadata.get("language") or "unknown",
                tokens=int(metadata.get("tokens") or estimate_tokens(content)),
                name=metadata.get("name"),
                export_type=metadata.get("export_type", metadata.get("exportType")),
            ),
        )
