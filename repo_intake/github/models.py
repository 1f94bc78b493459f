"""Data models for repository listings and metadata."""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class FileNode:
    """Represents one entry of a repository tree listing."""

    path: str
    type: str  # "file" or "directory"
    size: Optional[int] = None
    sha: Optional[str] = None
    language: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return self.type == "file"


@dataclass
class RepositoryMetadata:
    """Top-level repository description."""

    name: str
    full_name: str
    description: str
    stars: int
    language: str
    size: int  # kilobytes, as reported by the host
    updated_at: str
    default_branch: str
    owner: str
    url: str
    is_private: bool = False
    topics: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "full_name": self.full_name,
            "description": self.description,
            "stars": self.stars,
            "language": self.language,
            "size": self.size,
            "updated_at": self.updated_at,
            "default_branch": self.default_branch,
            "owner": self.owner,
            "url": self.url,
            "is_private": self.is_private,
            "topics": list(self.topics),
        }


@dataclass
class RepoStructure:
    """Filtered recursive listing of a repository."""

    files: List[FileNode]
    total_files: int
    total_size: int
    languages: Dict[str, float]  # display language -> percentage of bytes
    truncated: bool = False


@dataclass
class CommitInfo:
    """A single commit from the history listing."""

    sha: str
    message: str
    author_name: str
    author_email: str
    date: str
    url: str
    author_login: Optional[str] = None
    files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sha": self.sha,
            "message": self.message,
            "author": {
                "name": self.author_name,
                "email": self.author_email,
                "date": self.date,
                "login": self.author_login,
            },
            "url": self.url,
        }


@dataclass
class BranchInfo:
    """Branch head information."""

    name: str
    commit_sha: str
    commit_url: str
    protected: bool = False


@dataclass
class Contributor:
    """Repository contributor summary."""

    login: str
    contributions: int
    avatar_url: str = ""
    url: str = ""


@dataclass
class AuxiliaryResult(Generic[T]):
    """Outcome of a best-effort call: a value, plus an error if it fell back."""

    value: T
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
