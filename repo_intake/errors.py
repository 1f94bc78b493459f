"""Error taxonomy for repository intake and user-facing failure messages."""

from datetime import datetime, timezone
from typing import Any, Optional


class IntakeError(Exception):
    """Base class for all intake pipeline errors."""

    retryable = False


class GitHubApiError(IntakeError):
    """Error returned by (or while talking to) the source-hosting API."""

    def __init__(self, message: str, status: Optional[int] = None, response: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.response = response


class NotFoundError(GitHubApiError):
    """Repository, branch or path does not exist."""

    def __init__(self, resource: str):
        super().__init__(f"Not found: {resource}", 404)
        self.resource = resource


class RepositoryNotFoundError(NotFoundError):
    """Repository does not exist (or is invisible to the current token)."""

    def __init__(self, repo: str):
        super().__init__(repo)
        self.message = f"Repository not found: {repo}"
        self.args = (self.message,)


class AccessDeniedError(GitHubApiError):
    """Authorization is missing or insufficient."""

    def __init__(self, resource: str, message: Optional[str] = None, status: int = 403):
        super().__init__(message or f"Access denied to repository: {resource}", status)
        self.resource = resource


class RateLimitedError(GitHubApiError):
    """Rate-limit safety buffer breached, locally or remotely."""

    def __init__(self, message: str, reset_at: datetime):
        super().__init__(message, 403)
        self.reset_at = reset_at

    def seconds_until_reset(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (self.reset_at - now).total_seconds()


class TooLargeError(GitHubApiError):
    """Remote-reported file size exceeds the per-file ceiling."""

    def __init__(self, path: str, size: int, max_size: int):
        super().__init__(f"File too large: {path} is {size} bytes (max: {max_size})", 413)
        self.path = path
        self.size = size
        self.max_size = max_size


class NotAFileError(GitHubApiError):
    """Requested content path is a directory (or submodule/symlink)."""

    def __init__(self, path: str):
        super().__init__(f"Path is not a file: {path}", 400)
        self.path = path


class TransientError(GitHubApiError):
    """Network failure or 5xx response; safe to retry."""

    retryable = True


class RequestTimeoutError(TransientError):
    """A single external call exceeded its time bound."""

    def __init__(self, message: str):
        super().__init__(message, 408)


class PipelineDeadlineExceeded(IntakeError):
    """Overall intake wall-clock budget exhausted.

    Never raised out of the pipeline: it is recorded on partial results so
    callers can tell an incomplete run from a finished one.
    """

    def __init__(self, stage: str, deadline_seconds: float):
        super().__init__(
            f"Pipeline deadline of {deadline_seconds:.0f}s exceeded during {stage}"
        )
        self.stage = stage
        self.deadline_seconds = deadline_seconds


def describe_failure(error: BaseException) -> str:
    """Turn any exception into a short, specific, human-readable message.

    Args:
        error: Exception raised somewhere in the pipeline

    Returns:
        One-line message suitable for a progress record
    """
    if isinstance(error, RepositoryNotFoundError):
        return f"{error.message}. Check the owner/name and that the repository is public."
    if isinstance(error, NotFoundError):
        return error.message
    if isinstance(error, AccessDeniedError):
        if error.status == 401:
            return "GitHub rejected the configured token. Check GITHUB_TOKEN."
        return f"{error.message}. A token with read access is required."
    if isinstance(error, RateLimitedError):
        reset = error.reset_at.astimezone(timezone.utc).strftime("%H:%M UTC")
        return f"GitHub rate limit reached; resets at {reset}."
    if isinstance(error, TooLargeError):
        return error.message
    if isinstance(error, RequestTimeoutError):
        return "GitHub did not respond in time. Try again shortly."
    if isinstance(error, TransientError):
        return f"GitHub is temporarily unavailable: {error.message}"
    if isinstance(error, GitHubApiError):
        return error.message
    if isinstance(error, IntakeError):
        return str(error)

    message = str(error).strip() or error.__class__.__name__
    first_line = message.splitlines()[0]
    return f"Analysis failed: {first_line[:160]}"
