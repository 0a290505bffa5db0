"""Pytest configuration and fixtures."""

import os

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")

from typing import Callable  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base  # noqa: E402
from app.exceptions import GitHubAPIError  # noqa: E402
from app.services.github_service import ContentEntry, FileContent, PullRequest  # noqa: E402

SAMPLE_JS = """const a = 1;
function f() {
  console.log('x');
}
var b = 2;
"""

SAMPLE_PY = """import os

def main():
    print("hello")
    try:
        os.remove("x")
    except:
        pass
"""


class FakeGitHub:
    """In-memory stand-in for GitHubService backed by a flat path -> content map.

    Directory listings follow the insertion order of ``files``.
    """

    def __init__(
        self,
        files: dict[str, str] | None = None,
        branches: dict[str, str] | None = None,
        fail_paths: set[str] | None = None,
    ):
        self.files = dict(files or {})
        self.branches = dict(branches if branches is not None else {"main": "base-sha"})
        self.fail_paths = set(fail_paths or ())
        self.listed: list[str] = []
        self.fetched: list[str] = []
        self.created_branches: list[tuple[str, str]] = []
        self.commits: list[dict] = []
        self.pull_requests: list[dict] = []

    async def list_directory(self, owner, repo, path, ref=None):
        self.listed.append(path)
        if path in self.fail_paths:
            raise GitHubAPIError(500, "Server Error", path)
        prefix = f"{path}/" if path else ""
        entries = []
        seen = set()
        for file_path in self.files:
            if not file_path.startswith(prefix):
                continue
            name, separator, _ = file_path[len(prefix):].partition("/")
            if name in seen:
                continue
            seen.add(name)
            entries.append(
                ContentEntry(
                    name=name,
                    path=prefix + name,
                    type="dir" if separator else "file",
                    sha=f"sha-{prefix}{name}",
                )
            )
        if path and not entries:
            raise GitHubAPIError(404, "Not Found", path)
        return entries

    async def get_file_content(self, owner, repo, path, ref=None):
        self.fetched.append(path)
        if path in self.fail_paths or path not in self.files:
            raise GitHubAPIError(404, "Not Found", path)
        return FileContent(path=path, content=self.files[path], sha=f"sha-{path}")

    async def get_branch_head(self, owner, repo, branch):
        return self.branches.get(branch)

    async def create_branch(self, owner, repo, name, from_sha):
        self.created_branches.append((name, from_sha))
        self.branches[name] = from_sha
        return True

    async def commit_file(self, owner, repo, path, content, branch, sha, message):
        self.commits.append(
            {
                "path": path,
                "content": content,
                "branch": branch,
                "sha": sha,
                "message": message,
            }
        )
        return f"commit-sha-{len(self.commits)}"

    async def open_pull_request(self, owner, repo, title, body, head, base):
        self.pull_requests.append({"title": title, "body": body, "head": head, "base": base})
        return PullRequest(url=f"https://github.com/{owner}/{repo}/pull/7", number=7)


class FakeLLM:
    """Stand-in for LLMService answering every prompt through ``respond``."""

    def __init__(self, respond: Callable[[str], str] | None = None):
        self.respond = respond or (lambda prompt: "")
        self.prompts: list[str] = []

    async def generate(self, prompt, max_tokens=None, temperature=None, system_prompt=None):
        self.prompts.append(prompt)
        return self.respond(prompt)


@pytest.fixture
def sample_js():
    """JavaScript file with a console.log on line 3 and a var on line 5."""
    return SAMPLE_JS


@pytest.fixture
def sample_py():
    """Python file with a print and a bare except."""
    return SAMPLE_PY


@pytest.fixture
async def session_factory():
    """Session factory over a fresh in-memory database."""
    import app.models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    """Async session bound to the in-memory database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_github():
    """Build a FakeGitHub from a path -> content map."""
    return FakeGitHub


@pytest.fixture
def make_llm():
    """Build a FakeLLM from a prompt -> response function."""
    return FakeLLM
