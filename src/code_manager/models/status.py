"""
Pydantic models for the persistent status registry.

This module provides data models for:
- Repositories tracked by their normalized identity
- Remotes and their default branches
- Worktrees carved out of a tracked repository
- Workspace files grouping several repositories
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_REMOTE = "origin"


def worktree_key(remote: str, branch: str) -> str:
    """Key a worktree is stored under inside its repository entry."""
    return f"{remote}:{branch}"


class Remote(BaseModel):
    """Metadata recorded for one remote of a repository."""

    default_branch: str = Field(..., description="Branch the remote considers primary")


class WorktreeRef(BaseModel):
    """A branch-scoped working copy of a tracked repository."""

    branch: str = Field(..., description="Sanitized branch name")
    path: str = Field(..., description="Absolute path to the worktree")
    remote: str = Field(default=DEFAULT_REMOTE, description="Remote the branch tracks")
    created_at: datetime = Field(
        default_factory=datetime.now,
        description="When the worktree was created"
    )

    @property
    def key(self) -> str:
        return worktree_key(self.remote, self.branch)


class RepositoryEntry(BaseModel):
    """One tracked clone."""

    path: str = Field(..., description="Absolute path to the primary checkout")
    remotes: dict[str, Remote] = Field(
        default_factory=dict,
        description="Map of remote name to remote metadata"
    )
    worktrees: dict[str, WorktreeRef] = Field(
        default_factory=dict,
        description="Map of 'remote:branch' to worktree"
    )
    added_at: datetime = Field(
        default_factory=datetime.now,
        description="When the repository was registered"
    )

    def find_worktree(self, branch: str) -> Optional[WorktreeRef]:
        """Find a worktree by branch name, whatever its remote."""
        for worktree in self.worktrees.values():
            if worktree.branch == branch:
                return worktree
        return None

    def sorted_worktrees(self) -> list[WorktreeRef]:
        return sorted(self.worktrees.values(), key=lambda wt: wt.branch)


class WorkspaceEntry(BaseModel):
    """A multi-root workspace file and the branches created for it."""

    repositories: list[str] = Field(
        default_factory=list,
        description="Identities of the repositories in the workspace"
    )
    worktrees: list[str] = Field(
        default_factory=list,
        description="Branches that have a worktree in every repository"
    )


class StatusStore(BaseModel):
    """Persistent storage for tracked repositories and workspaces."""

    version: str = Field(default="1.0", description="Storage format version")
    updated_at: datetime = Field(
        default_factory=datetime.now,
        description="When the store was last updated"
    )
    initialized: bool = Field(default=False, description="Whether init has run")
    repositories: dict[str, RepositoryEntry] = Field(
        default_factory=dict,
        description="Map of repository identity to entry"
    )
    workspaces: dict[str, WorkspaceEntry] = Field(
        default_factory=dict,
        description="Map of workspace file path to entry"
    )

    def get_repository(self, identity: str) -> Optional[RepositoryEntry]:
        """Get the entry for a repository identity."""
        return self.repositories.get(identity)

    def set_repository(self, identity: str, entry: RepositoryEntry) -> None:
        """Set the entry for a repository identity."""
        self.repositories[identity] = entry
        self.updated_at = datetime.now()

    def remove_repository(self, identity: str) -> bool:
        """Remove a repository. Returns True if removed."""
        if identity in self.repositories:
            del self.repositories[identity]
            self.updated_at = datetime.now()
            return True
        return False

    def touch(self) -> None:
        self.updated_at = datetime.now()
