"""
Recursive repository-tree discovery.

Walks the contents API one directory at a time and returns the flat list of
files worth analyzing. The extension set, skip-set, size ceiling and depth
ceiling bound how many API calls one repository can cost.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional

from codescan.config import settings
from codescan.entities.file_descriptor import FileDescriptor
from codescan.services.github.exceptions import GithubError
from codescan.services.github.github_client import GithubClient

logger = logging.getLogger(__name__)

LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    ".js": "JavaScript",
    ".jsx": "React JSX",
    ".ts": "TypeScript",
    ".tsx": "React TypeScript",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".mjs": "ES Modules",
    ".cjs": "CommonJS",
    ".mts": "TypeScript ES Modules",
    ".cts": "TypeScript CommonJS",
}


def file_extension(filename: str) -> str:
    return posixpath.splitext(filename.lower())[1]


def detect_language(filename: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(file_extension(filename), "Unknown")


def has_extension(filename: str, extensions: Iterable[str]) -> bool:
    return file_extension(filename) in set(extensions)


@dataclass(frozen=True)
class DiscoveryPolicy:
    extensions: FrozenSet[str] = field(default_factory=frozenset)
    skip_directories: FrozenSet[str] = field(default_factory=frozenset)
    max_file_size: int = 1024 * 1024
    max_depth: int = 10

    @classmethod
    def from_settings(cls) -> "DiscoveryPolicy":
        return cls(
            extensions=frozenset(ext.lower() for ext in settings.DISCOVERY_EXTENSIONS),
            skip_directories=frozenset(settings.DISCOVERY_SKIP_DIRECTORIES),
            max_file_size=settings.DISCOVERY_MAX_FILE_SIZE,
            max_depth=settings.DISCOVERY_MAX_DEPTH,
        )

    def accepts_file(self, name: str, size: int) -> bool:
        return file_extension(name) in self.extensions and size <= self.max_file_size

    def skips_directory(self, name: str) -> bool:
        return name in self.skip_directories or name.startswith(".")


class FileDiscoveryCrawler:
    """Depth-first walk of a repository through the contents API."""

    def __init__(self, client: GithubClient, policy: Optional[DiscoveryPolicy] = None):
        self.client = client
        self.policy = policy or DiscoveryPolicy.from_settings()

    def discover(
        self,
        repository: str,
        branch: str,
        root_path: str = "",
        depth: int = 0,
        raise_on_root_error: bool = False,
    ) -> List[FileDescriptor]:
        """
        Return eligible files under root_path.

        A directory whose listing fails is logged and skipped; its siblings are
        still walked. With raise_on_root_error the failure of the very first
        listing propagates so callers can tell "no files" from "no repository".
        """
        try:
            entries = self.client.list_contents(repository, root_path, ref=branch)
        except GithubError as exc:
            if raise_on_root_error and depth == 0:
                raise
            logger.error(
                "Failed to list %s:%s at depth %d: %s",
                repository,
                root_path or "/",
                depth,
                exc,
            )
            return []

        files: List[FileDescriptor] = []
        for entry in entries:
            entry_type = entry.get("type")
            name = entry.get("name", "")

            if entry_type == "file":
                size = entry.get("size") or 0
                if self.policy.accepts_file(name, size):
                    files.append(
                        FileDescriptor(
                            path=entry.get("path", name),
                            name=name,
                            size_bytes=size,
                            content_hash=entry.get("sha", ""),
                            language=detect_language(name),
                            download_ref=entry.get("download_url") or "",
                        )
                    )
            elif entry_type == "dir":
                if self.policy.skips_directory(name):
                    logger.debug("Skipping directory %s", entry.get("path", name))
                    continue
                if depth >= self.policy.max_depth:
                    logger.debug(
                        "Max depth %d reached at %s", self.policy.max_depth, entry.get("path")
                    )
                    continue
                files.extend(
                    self.discover(repository, branch, entry.get("path", name), depth + 1)
                )

        return files
