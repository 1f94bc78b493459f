"""Async GitHub REST client with caching, rate-limit gating and retries."""

import base64
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote

import httpx

from ..config import GitHubConfig, RetryConfig
from ..errors import (
    AccessDeniedError,
    GitHubApiError,
    NotAFileError,
    NotFoundError,
    RateLimitedError,
    RepositoryNotFoundError,
    RequestTimeoutError,
    TooLargeError,
    TransientError,
)
from .cache import ResponseCache
from .models import (
    AuxiliaryResult,
    BranchInfo,
    CommitInfo,
    Contributor,
    FileNode,
    RepositoryMetadata,
    RepoStructure,
)
from .patterns import PathFilter, detect_language
from .rate_limit import RateLimitGate, RateLimitState
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GitHubClient:
    """Authenticated access to repository metadata, trees and file contents.

    Every public call consults the response cache first. On a miss the
    rate-limit gate refreshes the host's counters and fails fast when the
    safety buffer is breached; the call itself runs under the retry policy.
    """

    def __init__(
        self,
        config: Optional[GitHubConfig] = None,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ResponseCache] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """Initialize the client.

        Args:
            config: Host URL, token, timeouts, cache TTL and path filters
            retry_config: Backoff settings
            transport: Custom httpx transport (tests pass ``httpx.MockTransport``)
            cache: Response cache to share; a fresh one is created if omitted
            sleep: Async sleep used between retries
        """
        self.config = config or GitHubConfig()
        self.cache = cache or ResponseCache(self.config.cache_ttl_seconds)
        self.retry = RetryPolicy(retry_config, sleep=sleep)
        self.path_filter = PathFilter(
            self.config.include_patterns, self.config.exclude_patterns
        )
        self.gate = RateLimitGate(self._fetch_rate_limit)

        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "repo-intake",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"

        self._http = httpx.AsyncClient(
            base_url=self.config.api_url,
            headers=headers,
            timeout=self.config.timeout_seconds,
            transport=transport,
        )
        logger.info(
            f"Initialized GitHub client for {self.config.api_url} "
            f"({'authenticated' if self.config.token else 'anonymous'})"
        )

    # ------------------------------------------------------------------
    # Transport and error mapping
    # ------------------------------------------------------------------

    def _rate_limit_reset(self, response: httpx.Response) -> datetime:
        retry_after = response.headers.get("Retry-After")
        if retry_after and retry_after.isdigit():
            return datetime.now(timezone.utc) + timedelta(seconds=int(retry_after))
        reset = response.headers.get("X-RateLimit-Reset")
        if reset and reset.isdigit():
            return datetime.fromtimestamp(int(reset), tz=timezone.utc)
        return datetime.now(timezone.utc) + timedelta(hours=1)

    def _raise_for_status(
        self, response: httpx.Response, resource: str, repo: Optional[str] = None
    ) -> None:
        """Map a non-success response to the error taxonomy.

        Args:
            response: Host response
            resource: Human-readable resource name for messages
            repo: ``owner/name`` when a 404/403 means the repository itself

        Raises:
            GitHubApiError: Subclass matching the failure
        """
        status = response.status_code
        if status < 400:
            return

        if status == 404:
            if repo:
                raise RepositoryNotFoundError(repo)
            raise NotFoundError(resource)
        if status == 401:
            raise AccessDeniedError(resource, "Invalid GitHub token", 401)
        if status == 429 or (
            status == 403 and response.headers.get("X-RateLimit-Remaining") == "0"
        ):
            reset_at = self._rate_limit_reset(response)
            raise RateLimitedError(
                f"Rate limit exceeded. Resets at {reset_at.isoformat()}", reset_at
            )
        if status == 403:
            raise AccessDeniedError(repo or resource)
        if status >= 500:
            raise TransientError(f"GitHub API error {status} for {resource}", status)

        try:
            message = response.json().get("message", response.reason_phrase)
        except ValueError:
            message = response.reason_phrase
        raise GitHubApiError(f"GitHub API error: {message}", status)

    async def _send(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        resource: str = "",
        repo: Optional[str] = None,
    ) -> Any:
        """Perform one GET and return the decoded JSON body."""
        try:
            response = await self._http.get(path, params=params)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Request timed out for {resource or path}: {e}") from e
        except httpx.TransportError as e:
            raise TransientError(f"Network error for {resource or path}: {e}") from e

        self._raise_for_status(response, resource or path, repo)
        return response.json()

    async def _fetch_rate_limit(self) -> RateLimitState:
        payload = await self._send("/rate_limit", resource="rate_limit")
        return RateLimitState.from_payload(
            payload,
            buffer_percentage=self.config.rate_limit_buffer,
            floor=self.config.rate_limit_floor,
        )

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        resource: str = "",
        repo: Optional[str] = None,
    ) -> Any:
        """Gated, retried GET."""

        async def attempt() -> Any:
            await self.gate.check()
            return await self._send(path, params=params, resource=resource, repo=repo)

        return await self.retry.run(attempt, label=f"GET {path}")

    async def _cached(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return cached
        value = await producer()
        self.cache.set(key, value)
        return value

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_rate_limit(self) -> RateLimitState:
        """Refresh and return the current rate-limit counters."""
        state = await self._fetch_rate_limit()
        self.gate.last_state = state
        return state

    async def get_repository(self, owner: str, name: str) -> RepositoryMetadata:
        """Get top-level repository metadata.

        Args:
            owner: Repository owner
            name: Repository name

        Returns:
            Repository metadata

        Raises:
            RepositoryNotFoundError: Repository does not exist
            AccessDeniedError: Token missing or lacking access
            RateLimitedError: Rate-limit buffer breached
            TransientError: Network failure or 5xx after retries
        """
        full_name = f"{owner}/{name}"

        async def load() -> RepositoryMetadata:
            data = await self._get(
                f"/repos/{owner}/{name}", resource=full_name, repo=full_name
            )
            return RepositoryMetadata(
                name=data["name"],
                full_name=data["full_name"],
                description=data.get("description") or "",
                stars=data.get("stargazers_count", 0),
                language=data.get("language") or "Unknown",
                size=data.get("size", 0),
                updated_at=data.get("updated_at", ""),
                default_branch=data.get("default_branch", "main"),
                owner=data.get("owner", {}).get("login", owner),
                url=data.get("html_url", ""),
                is_private=data.get("private", False),
                topics=data.get("topics") or [],
            )

        return await self._cached(f"repo:{full_name}", load)

    async def get_structure(
        self, owner: str, name: str, ref: Optional[str] = None
    ) -> RepoStructure:
        """Get the filtered recursive file listing.

        Args:
            owner: Repository owner
            name: Repository name
            ref: Branch, tag or sha (defaults to the repository default branch)

        Returns:
            Listing of files that pass the ignore set and include/exclude rules
        """
        full_name = f"{owner}/{name}"

        async def load() -> RepoStructure:
            tree_ref = ref or (await self.get_repository(owner, name)).default_branch
            data = await self._get(
                f"/repos/{owner}/{name}/git/trees/{quote(tree_ref, safe='')}",
                params={"recursive": "1"},
                resource=f"{full_name}@{tree_ref}",
                repo=full_name,
            )

            files: List[FileNode] = []
            for item in data.get("tree", []):
                if item.get("type") != "blob":
                    continue
                path = item["path"]
                if not self.path_filter.accepts(path):
                    continue
                files.append(
                    FileNode(
                        path=path,
                        type="file",
                        size=item.get("size", 0),
                        sha=item.get("sha"),
                        language=detect_language(path),
                    )
                )

            total_size = sum(f.size or 0 for f in files)
            language_bytes: Dict[str, int] = {}
            for f in files:
                if f.language:
                    language_bytes[f.language] = language_bytes.get(f.language, 0) + (f.size or 0)

            languages = {}
            if total_size > 0:
                for language, size in language_bytes.items():
                    languages[language] = round(size / total_size * 100, 2)

            if data.get("truncated"):
                logger.warning(f"Tree listing for {full_name} was truncated by the host")

            logger.info(
                f"Listed {len(files)} files for {full_name} "
                f"({len(data.get('tree', []))} tree entries)"
            )
            return RepoStructure(
                files=files,
                total_files=len(files),
                total_size=total_size,
                languages=languages,
                truncated=bool(data.get("truncated")),
            )

        return await self._cached(f"structure:{full_name}:{ref or 'default'}", load)

    async def get_file_content(
        self, owner: str, name: str, path: str, ref: Optional[str] = None
    ) -> str:
        """Get the decoded text of one file.

        Args:
            owner: Repository owner
            name: Repository name
            path: Repository-relative file path
            ref: Branch, tag or sha

        Returns:
            File content decoded as UTF-8 (invalid bytes replaced)

        Raises:
            NotAFileError: Path is a directory or other non-file entry
            TooLargeError: Remote size exceeds the per-file ceiling
            NotFoundError: Path does not exist
        """
        full_name = f"{owner}/{name}"

        async def load() -> str:
            params = {"ref": ref} if ref else None
            data = await self._get(
                f"/repos/{owner}/{name}/contents/{quote(path)}",
                params=params,
                resource=path,
            )
            if isinstance(data, list) or data.get("type") != "file":
                raise NotAFileError(path)

            size = data.get("size", 0)
            if size > self.config.max_file_size:
                raise TooLargeError(path, size, self.config.max_file_size)

            if data.get("encoding") != "base64" or "content" not in data:
                raise GitHubApiError(f"Unsupported content encoding for {path}")

            raw = base64.b64decode(data["content"].replace("\n", ""))
            return raw.decode("utf-8", errors="replace")

        return await self._cached(f"file:{full_name}:{path}:{ref or 'default'}", load)

    async def get_branch(self, owner: str, name: str, branch: str) -> BranchInfo:
        """Get head information for a branch."""
        full_name = f"{owner}/{name}"

        async def load() -> BranchInfo:
            data = await self._get(
                f"/repos/{owner}/{name}/branches/{quote(branch, safe='')}",
                resource=f"branch {branch} of {full_name}",
            )
            commit = data.get("commit", {})
            return BranchInfo(
                name=data["name"],
                commit_sha=commit.get("sha", ""),
                commit_url=commit.get("url", ""),
                protected=data.get("protected", False),
            )

        return await self._cached(f"branch:{full_name}:{branch}", load)

    async def get_recent_commits(
        self,
        owner: str,
        name: str,
        limit: int = 10,
        ref: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[CommitInfo]:
        """Get the most recent commits.

        Args:
            owner: Repository owner
            name: Repository name
            limit: Maximum commits to return (host caps a page at 100)
            ref: Branch or sha to list from
            since: Only commits after this time

        Returns:
            Commits, newest first
        """
        full_name = f"{owner}/{name}"
        params: Dict[str, Any] = {"per_page": min(limit, 100)}
        if ref:
            params["sha"] = ref
        if since:
            params["since"] = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

        async def load() -> List[CommitInfo]:
            data = await self._get(
                f"/repos/{owner}/{name}/commits", params=params, resource=full_name, repo=full_name
            )
            commits = []
            for item in data[:limit]:
                author = item.get("commit", {}).get("author") or {}
                commits.append(
                    CommitInfo(
                        sha=item["sha"],
                        message=item.get("commit", {}).get("message", ""),
                        author_name=author.get("name", ""),
                        author_email=author.get("email", ""),
                        date=author.get("date", ""),
                        url=item.get("html_url", ""),
                        author_login=(item.get("author") or {}).get("login"),
                    )
                )
            return commits

        since_key = params.get("since", "")
        return await self._cached(
            f"commits:{full_name}:{limit}:{ref or 'default'}:{since_key}", load
        )

    async def get_commit_files(self, owner: str, name: str, sha: str) -> List[str]:
        """Get the paths changed by one commit."""
        full_name = f"{owner}/{name}"

        async def load() -> List[str]:
            data = await self._get(
                f"/repos/{owner}/{name}/commits/{sha}", resource=f"commit {sha[:7]}"
            )
            return [f["filename"] for f in data.get("files", []) if "filename" in f]

        return await self._cached(f"commit-files:{full_name}:{sha}", load)

    async def get_languages(self, owner: str, name: str) -> Dict[str, int]:
        """Get the host's byte counts per language."""
        full_name = f"{owner}/{name}"

        async def load() -> Dict[str, int]:
            return await self._get(
                f"/repos/{owner}/{name}/languages", resource=full_name, repo=full_name
            )

        return await self._cached(f"languages:{full_name}", load)

    async def get_contributors(self, owner: str, name: str) -> List[Contributor]:
        """Get the top contributors."""
        full_name = f"{owner}/{name}"

        async def load() -> List[Contributor]:
            data = await self._get(
                f"/repos/{owner}/{name}/contributors",
                params={"per_page": 10},
                resource=full_name,
                repo=full_name,
            )
            return [
                Contributor(
                    login=c.get("login", ""),
                    contributions=c.get("contributions", 0),
                    avatar_url=c.get("avatar_url", ""),
                    url=c.get("html_url", ""),
                )
                for c in data
            ]

        return await self._cached(f"contributors:{full_name}", load)

    async def best_effort(
        self, label: str, call: Awaitable[T], default: T
    ) -> AuxiliaryResult[T]:
        """Await an auxiliary call, falling back to a default on failure.

        Args:
            label: What is being fetched, for the error message
            call: Awaitable returned by one of the client methods
            default: Value to use if the call fails

        Returns:
            Result holding the value, plus the error message when it fell back
        """
        try:
            return AuxiliaryResult(value=await call)
        except Exception as e:
            message = f"Failed to fetch {label}: {e}"
            logger.warning(message)
            return AuxiliaryResult(value=default, error=message)

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Cleared GitHub response cache")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._http.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
