"""
Pydantic models for code-manager.

This package contains data models for:
- The persistent status store (repositories, remotes, worktrees, workspaces)
- Repository listings and project modes
"""

from code_manager.models.repository_info import ProjectMode, RepositoryInfo
from code_manager.models.status import (
    DEFAULT_REMOTE,
    Remote,
    RepositoryEntry,
    StatusStore,
    WorkspaceEntry,
    WorktreeRef,
    worktree_key,
)

__all__ = [
    "DEFAULT_REMOTE",
    "ProjectMode",
    "Remote",
    "RepositoryEntry",
    "RepositoryInfo",
    "StatusStore",
    "WorkspaceEntry",
    "WorktreeRef",
    "worktree_key",
]
