"""GitHub REST client for tree listing, file access and pull requests."""

import base64
import logging
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from app.config import get_settings
from app.exceptions import GitHubAPIError

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class ContentEntry:
    """One entry of a directory listing."""

    name: str
    path: str
    type: str  # "file" | "dir" | "symlink" | "submodule"
    sha: str | None = None

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"

    @property
    def is_file(self) -> bool:
        return self.type == "file"


@dataclass
class FileContent:
    """Decoded file content with the blob SHA used as commit precondition."""

    path: str
    content: str
    sha: str


@dataclass
class PullRequest:
    url: str
    number: int


def decode_content(encoded: str) -> str:
    """Decode GitHub's base64 payload (which contains line breaks) to text."""
    raw = base64.b64decode(encoded)
    return raw.decode("utf-8", errors="replace")


def encode_content(content: str) -> str:
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


class GitHubService:
    """Service for GitHub API operations on behalf of one user token.

    Every call opens its own client; errors come back as GitHubAPIError with
    tokens redacted from the message.
    """

    def __init__(
        self,
        token: str,
        api_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self.api_url = (api_url or settings.github_api_url).rstrip("/")
        self.timeout = settings.github_timeout_seconds
        self._transport = transport

    # =========================================================================
    # HTTP plumbing
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _sanitize_error(self, error: str) -> str:
        """Sanitize error message to remove tokens."""
        error = re.sub(r"gh[pousr]_[a-zA-Z0-9]+", "[REDACTED]", error)
        error = re.sub(r"github_pat_[a-zA-Z0-9_]+", "[REDACTED]", error)
        if self.token:
            error = error.replace(self.token, "[REDACTED]")
        return error

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            raise GitHubAPIError(0, self._sanitize_error(str(exc)), path) from exc

        if response.is_error:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise GitHubAPIError(response.status_code, self._sanitize_error(str(message)), path)
        return response

    @staticmethod
    def _contents_path(owner: str, repo: str, path: str) -> str:
        path = path.strip("/")
        base = f"/repos/{owner}/{repo}/contents"
        return f"{base}/{quote(path)}" if path else base

    # =========================================================================
    # Reading
    # =========================================================================

    async def list_directory(self, owner: str, repo: str, path: str, ref: str | None = None) -> list[ContentEntry]:
        """List a directory; an empty path lists the repository root."""
        params = {"ref": ref} if ref else None
        response = await self._request("GET", self._contents_path(owner, repo, path), params=params)
        data = response.json()
        if not isinstance(data, list):
            raise GitHubAPIError(response.status_code, "Path is not a directory", path)
        return [
            ContentEntry(
                name=item["name"],
                path=item.get("path") or f"{path.strip('/')}/{item['name']}".lstrip("/"),
                type=item["type"],
                sha=item.get("sha"),
            )
            for item in data
        ]

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str | None = None) -> FileContent:
        """Get decoded file content and its blob SHA.

        Files over 1MB come back without inline content; those are read
        through the blob API instead.
        """
        params = {"ref": ref} if ref else None
        response = await self._request("GET", self._contents_path(owner, repo, path), params=params)
        data = response.json()
        if isinstance(data, list) or data.get("type") != "file":
            raise GitHubAPIError(response.status_code, "Path is not a file", path)

        sha = data["sha"]
        if data.get("encoding") == "base64" and data.get("content") is not None:
            return FileContent(path=path, content=decode_content(data["content"]), sha=sha)

        blob = await self._request("GET", f"/repos/{owner}/{repo}/git/blobs/{sha}")
        return FileContent(path=path, content=decode_content(blob.json()["content"]), sha=sha)

    async def get_branch_head(self, owner: str, repo: str, branch: str) -> str | None:
        """Return the commit SHA a branch points to, or None when it does not exist."""
        try:
            response = await self._request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{quote(branch)}")
        except GitHubAPIError as exc:
            if exc.is_not_found:
                return None
            raise
        return response.json()["object"]["sha"]

    # =========================================================================
    # Writing
    # =========================================================================

    async def create_branch(self, owner: str, repo: str, name: str, from_sha: str) -> bool:
        """Create ``name`` at ``from_sha``.

        Returns False when the branch already exists so retries are safe.
        """
        try:
            await self._request(
                "POST",
                f"/repos/{owner}/{repo}/git/refs",
                json={"ref": f"refs/heads/{name}", "sha": from_sha},
            )
        except GitHubAPIError as exc:
            if exc.status_code == 422 and "already exists" in str(exc).lower():
                logger.info("Branch %s already exists in %s/%s", name, owner, repo)
                return False
            raise
        return True

    async def commit_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        branch: str,
        sha: str,
        message: str,
    ) -> str:
        """Update a file on a branch; ``sha`` must be the blob being replaced.

        Returns the new blob SHA.
        """
        response = await self._request(
            "PUT",
            self._contents_path(owner, repo, path),
            json={
                "message": message,
                "content": encode_content(content),
                "branch": branch,
                "sha": sha,
            },
        )
        return response.json()["content"]["sha"]

    async def open_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> PullRequest:
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )
        data = response.json()
        return PullRequest(url=data["html_url"], number=data["number"])
