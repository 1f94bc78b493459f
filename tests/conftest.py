"""Shared fixtures: a scripted fake of the GitHub REST API."""

import base64
import time
from typing import Dict, List, Optional, Tuple, Union

import httpx
import pytest

from repo_intake.config import GitHubConfig, RetryConfig
from repo_intake.github.client import GitHubClient

OWNER = "acme"
NAME = "widgets"

INDEX_TS = """export function greet(name: string): string {
  // TODO: support locales other than English
  return `Hello, ${name}`;
}
"""

README_MD = "# Widgets\n\nSmall utilities for greeting people.\n"


class FakeGitHub:
    """In-process GitHub API driven through ``httpx.MockTransport``."""

    def __init__(self, limit: int = 5000, remaining: int = 4999):
        self.limit = limit
        self.remaining = remaining
        self.reset = int(time.time()) + 3600
        self.repo = {
            "name": NAME,
            "full_name": f"{OWNER}/{NAME}",
            "description": "Widget helpers",
            "stargazers_count": 42,
            "language": "TypeScript",
            "size": 520,
            "updated_at": "2024-05-01T12:00:00Z",
            "default_branch": "main",
            "owner": {"login": OWNER},
            "html_url": f"https://github.com/{OWNER}/{NAME}",
            "private": False,
            "topics": ["greeting"],
        }
        self.tree: List[dict] = [
            {"path": "README.md", "type": "blob", "size": 2048, "sha": "a1"},
            {"path": "src", "type": "tree", "sha": "a2"},
            {"path": "src/index.ts", "type": "blob", "size": 8192, "sha": "a3"},
            {"path": "dist/bundle.min.js", "type": "blob", "size": 500 * 1024, "sha": "a4"},
        ]
        self.files: Dict[str, str] = {"README.md": README_MD, "src/index.ts": INDEX_TS}
        self.commits: List[dict] = []
        # path -> statuses (or (status, headers) pairs) returned before succeeding
        self.failures: Dict[str, List[Union[int, Tuple[int, Dict[str, str]]]]] = {}
        self.calls: List[str] = []

    def count(self, path: str) -> int:
        return sum(1 for call in self.calls if call == path)

    def _fail(self, path: str) -> Optional[httpx.Response]:
        statuses = self.failures.get(path)
        if statuses:
            entry = statuses.pop(0)
            status, headers = entry if isinstance(entry, tuple) else (entry, {})
            return httpx.Response(status, headers=headers, json={"message": "scripted failure"})
        return None

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)

        failure = self._fail(path)
        if failure is not None:
            return failure

        base = f"/repos/{OWNER}/{NAME}"
        if path == "/rate_limit":
            core = {
                "limit": self.limit,
                "remaining": self.remaining,
                "reset": self.reset,
                "used": self.limit - self.remaining,
            }
            return httpx.Response(200, json={"resources": {"core": core}, "rate": core})
        if path == base:
            return httpx.Response(200, json=self.repo)
        if path.startswith(f"{base}/git/trees/"):
            return httpx.Response(200, json={"sha": "root", "tree": self.tree, "truncated": False})
        if path == f"{base}/commits":
            return httpx.Response(200, json=self.commits)
        if path.startswith(f"{base}/contents/"):
            file_path = path[len(f"{base}/contents/"):]
            if file_path not in self.files:
                if any(item["path"] == file_path and item["type"] == "tree" for item in self.tree):
                    return httpx.Response(200, json=[{"name": "index.ts", "type": "file"}])
                return httpx.Response(404, json={"message": "Not Found"})
            raw = self.files[file_path].encode("utf-8")
            return httpx.Response(
                200,
                json={
                    "type": "file",
                    "path": file_path,
                    "size": len(raw),
                    "encoding": "base64",
                    "content": base64.b64encode(raw).decode("ascii"),
                },
            )
        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_client(fake_github, sleeps):
    """Factory for clients wired to the fake API; sleeps are recorded, not waited."""

    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    def factory(config: Optional[GitHubConfig] = None, **kwargs) -> GitHubClient:
        return GitHubClient(
            config or GitHubConfig(token="test-token"),
            kwargs.pop("retry_config", RetryConfig()),
            transport=httpx.MockTransport(fake_github.handler),
            sleep=record_sleep,
            **kwargs,
        )

    return factory
