"""Interfaces of the external collaborators the orchestration engine drives.

- VCSAdapter: version-control operations (clone, worktrees, remotes)
- FilesystemAdapter: directory creation, globbing and path containment

GitAdapter and LocalFilesystem are the concrete implementations; tests
substitute in-memory fakes.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol


class VCSAdapter(Protocol):
    """Version-control operations used by CodeManager."""

    def get_default_branch(self, url: str) -> str: ...

    def clone(self, url: str, target: Path, recursive: bool = True) -> None: ...

    def is_inside_repository(self, path: Optional[Path] = None) -> bool: ...

    def get_repository_root(self, path: Optional[Path] = None) -> Path: ...

    def get_local_default_branch(self, repo_path: Path) -> str: ...

    def get_remote_url(self, repo_path: Path, remote: str) -> Optional[str]: ...

    def remote_exists(self, repo_path: Path, remote: str) -> bool: ...

    def add_remote(self, repo_path: Path, remote: str, url: str) -> None: ...

    def fetch_remote(self, repo_path: Path, remote: str) -> None: ...

    def branch_exists_on_remote(self, repo_path: Path, remote: str, branch: str) -> bool: ...

    def create_worktree(
        self,
        repo_path: Path,
        worktree_path: Path,
        branch: str,
        start_point: Optional[str] = None,
    ) -> None: ...

    def remove_worktree(self, repo_path: Path, worktree_path: Path, force: bool = False) -> None: ...


class FilesystemAdapter(Protocol):
    """Filesystem primitives used by CodeManager and the status registry."""

    def mkdir_all(self, path: Path, mode: int = 0o755) -> None: ...

    def glob(self, pattern: str, root: Optional[Path] = None) -> list[Path]: ...

    def is_path_within_base(self, base: Path, candidate: Path) -> bool: ...

    def exists(self, path: Path) -> bool: ...

    def remove_all(self, path: Path) -> None: ...

    def remove_empty_dir(self, path: Path) -> bool: ...

    def write_text(self, path: Path, data: str) -> None: ...
