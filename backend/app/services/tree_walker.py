"""Recursive enumeration of a remote repository tree."""

import logging
from dataclasses import dataclass
from typing import AsyncIterator

from app.analyzers.classifier import classify, is_excluded_dir
from app.services.github_service import ContentEntry, GitHubService

logger = logging.getLogger(__name__)


@dataclass
class SourceFile:
    path: str
    content: str
    language: str


class TreeWalker:
    """Depth-first walk over the GitHub contents API.

    Entries are visited in listing order; a directory is descended into as
    soon as it is encountered. Only the root listing is allowed to fail the
    walk, every other failure is logged and the entry skipped.
    """

    def __init__(self, github: GitHubService, max_depth: int = 5):
        self.github = github
        self.max_depth = max_depth
        self.files_yielded = 0
        self.files_failed = 0
        self.directories_skipped = 0

    async def walk(self, owner: str, repo: str, branch: str, root_path: str = "") -> AsyncIterator[SourceFile]:
        entries = await self.github.list_directory(owner, repo, root_path, branch)
        async for source_file in self._walk_entries(owner, repo, branch, entries, depth=0):
            yield source_file

    async def _walk_entries(
        self,
        owner: str,
        repo: str,
        branch: str,
        entries: list[ContentEntry],
        depth: int,
    ) -> AsyncIterator[SourceFile]:
        for entry in entries:
            if entry.is_dir:
                if is_excluded_dir(entry.name):
                    self.directories_skipped += 1
                    continue
                if depth + 1 > self.max_depth:
                    self.directories_skipped += 1
                    continue
                try:
                    children = await self.github.list_directory(owner, repo, entry.path, branch)
                except Exception as exc:
                    logger.warning("Could not list directory %s: %s", entry.path, exc)
                    self.directories_skipped += 1
                    continue
                async for source_file in self._walk_entries(owner, repo, branch, children, depth + 1):
                    yield source_file

            elif entry.is_file:
                language = classify(entry.path)
                if not language:
                    continue
                try:
                    file_content = await self.github.get_file_content(owner, repo, entry.path, branch)
                except Exception as exc:
                    logger.warning("Could not fetch file %s: %s", entry.path, exc)
                    self.files_failed += 1
                    continue
                self.files_yielded += 1
                yield SourceFile(path=entry.path, content=file_content.content, language=language)
