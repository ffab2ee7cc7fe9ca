"""Data models for listing tracked repositories and detecting project modes."""

from enum import Enum

from pydantic import BaseModel, Field

from code_manager.models.status import Remote


class ProjectMode(str, Enum):
    """Kind of project found in the working directory."""

    SINGLE_REPO = "single_repo"
    WORKSPACE = "workspace"
    NONE = "none"


class RepositoryInfo(BaseModel):
    """A tracked repository as shown by list_repositories()."""

    identity: str = Field(..., description="Normalized repository identity")
    path: str = Field(..., description="Absolute path to the primary checkout")
    remotes: dict[str, Remote] = Field(default_factory=dict)
    worktree_count: int = Field(default=0, ge=0)
    in_repositories_dir: bool = Field(
        default=False,
        description="Whether the clone lives under the configured repositories directory"
    )
