"""
Persistent status registry for tracked repositories and worktrees.

The registry is the single source of truth for what code-manager has
cloned and which worktrees exist. It is stored as one JSON document and:
- re-read on every call, so separate CLI invocations see each other's work
- updated as read-modify-write under an in-process lock and an exclusive
  file lock, so concurrent processes cannot lose updates
- written with atomic_write_text, so a crash never leaves a partial file
"""

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from code_manager.adapters.base import FilesystemAdapter
from code_manager.adapters.filesystem import LocalFilesystem
from code_manager.exceptions import (
    CodeManagerError,
    RepositoryAlreadyExistsError,
    RepositoryNotFoundError,
    StatusStoreError,
    WorktreeAlreadyExistsError,
    WorktreeNotFoundError,
)
from code_manager.models.status import (
    Remote,
    RepositoryEntry,
    StatusStore,
    WorkspaceEntry,
    WorktreeRef,
)
from code_manager.utils.io import atomic_write_text, exclusive_file_lock, shared_file_lock

logger = logging.getLogger(__name__)


class StatusRegistry:
    """
    Tracks repositories, their remotes and worktrees by normalized identity.

    Only the methods below mutate the store; callers never edit the
    underlying StatusStore directly.
    """

    DEFAULT_STATUS_FILENAME = "status.json"

    def __init__(
        self,
        status_file: Optional[Path] = None,
        fs: Optional[FilesystemAdapter] = None,
    ):
        self._storage_path = Path(status_file) if status_file else self._get_default_path()
        self._lock_path = self._storage_path.with_name(self._storage_path.name + ".lock")
        self._mutex = threading.Lock()
        self.fs = fs or LocalFilesystem()

    def _get_default_path(self) -> Path:
        """Get default path for the status file in the user's home directory."""
        return Path.home() / ".cm" / self.DEFAULT_STATUS_FILENAME

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def _load_store(self) -> StatusStore:
        """Load the status store. A missing file is an empty store."""
        if not self._storage_path.exists():
            return StatusStore()
        try:
            with open(self._storage_path) as f:
                with shared_file_lock(f):
                    data = json.load(f)
            return StatusStore.model_validate(data)
        except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
            raise StatusStoreError(
                f"Failed to read status file {self._storage_path}: {e}"
            ) from e

    def _save_store(self, store: StatusStore) -> None:
        """Persist the store using atomic write and 0o600 perms."""
        data = json.dumps(store.model_dump(mode="json"), indent=2)
        try:
            atomic_write_text(self._storage_path, data, perms=0o600)
        except OSError as e:
            raise StatusStoreError(
                f"Failed to write status file {self._storage_path}: {e}"
            ) from e

    @contextmanager
    def _update(self) -> Iterator[StatusStore]:
        """Read-modify-write the store. Nothing is written if the block raises."""
        self._ensure_directory()
        with self._mutex, exclusive_file_lock(self._lock_path):
            store = self._load_store()
            yield store
            store.touch()
            self._save_store(store)

    def _ensure_directory(self) -> None:
        try:
            self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StatusStoreError(
                f"Failed to create status directory {self._storage_path.parent}: {e}"
            ) from e

    # Repositories

    def list_repositories(self) -> dict[str, RepositoryEntry]:
        """All tracked repositories keyed by identity."""
        return dict(self._load_store().repositories)

    def get_repository(self, identity: str) -> Optional[RepositoryEntry]:
        """Look up a repository by identity."""
        return self._load_store().get_repository(identity)

    def add_repository(
        self,
        identity: str,
        path: str | Path,
        remotes: dict[str, Remote],
    ) -> RepositoryEntry:
        """
        Start tracking a repository.

        Args:
            identity: Normalized repository identity.
            path: Absolute path to the primary checkout.
            remotes: Remote name to metadata, conventionally including origin.

        Returns:
            The new RepositoryEntry.

        Raises:
            RepositoryAlreadyExistsError: If identity is already tracked.
            StatusStoreError: If the store cannot be read or written.
        """
        with self._update() as store:
            if store.get_repository(identity) is not None:
                raise RepositoryAlreadyExistsError(
                    f"Repository '{identity}' is already tracked"
                )
            entry = RepositoryEntry(path=str(path), remotes=dict(remotes))
            store.set_repository(identity, entry)

        logger.info(f"Registered repository {identity} at {path}")
        return entry

    def remove_repository(self, identity: str) -> RepositoryEntry:
        """
        Stop tracking a repository together with its worktree records.

        Returns:
            The removed RepositoryEntry.

        Raises:
            RepositoryNotFoundError: If identity is not tracked.
        """
        with self._update() as store:
            entry = self._require_repository(store, identity)
            store.remove_repository(identity)

        logger.info(f"Removed repository {identity}")
        return entry

    def add_remote(self, identity: str, name: str, remote: Remote) -> None:
        """Record a remote on a tracked repository, replacing any previous one."""
        with self._update() as store:
            entry = self._require_repository(store, identity)
            entry.remotes[name] = remote

    # Worktrees

    def get_worktree(self, identity: str, branch: str) -> Optional[WorktreeRef]:
        entry = self.get_repository(identity)
        if entry is None:
            return None
        return entry.find_worktree(branch)

    def add_worktree(self, identity: str, worktree: WorktreeRef) -> None:
        """
        Track a worktree under a repository.

        Raises:
            RepositoryNotFoundError: If identity is not tracked.
            WorktreeAlreadyExistsError: If the branch already has a worktree.
        """
        with self._update() as store:
            entry = self._require_repository(store, identity)
            existing = entry.find_worktree(worktree.branch)
            if existing is not None:
                raise WorktreeAlreadyExistsError(
                    f"Worktree for branch '{worktree.branch}' already exists at: {existing.path}"
                )
            entry.worktrees[worktree.key] = worktree

        logger.info(f"Registered worktree {identity}@{worktree.branch} at {worktree.path}")

    def remove_worktree(self, identity: str, branch: str) -> WorktreeRef:
        """
        Stop tracking a worktree.

        Returns:
            The removed WorktreeRef.

        Raises:
            RepositoryNotFoundError: If identity is not tracked.
            WorktreeNotFoundError: If the branch has no worktree.
        """
        with self._update() as store:
            entry = self._require_repository(store, identity)
            worktree = entry.find_worktree(branch)
            if worktree is None:
                raise WorktreeNotFoundError(
                    f"Worktree for branch '{branch}' not found in {identity}"
                )
            del entry.worktrees[worktree.key]

        logger.info(f"Removed worktree {identity}@{branch}")
        return worktree

    def _require_repository(self, store: StatusStore, identity: str) -> RepositoryEntry:
        entry = store.get_repository(identity)
        if entry is None:
            raise RepositoryNotFoundError(f"Repository '{identity}' is not tracked")
        return entry

    # Workspaces

    def get_workspace(self, workspace_file: str | Path) -> Optional[WorkspaceEntry]:
        return self._load_store().workspaces.get(str(workspace_file))

    def workspaces_with_repository(self, identity: str) -> list[str]:
        """Workspace files whose entry lists identity, sorted."""
        workspaces = self._load_store().workspaces
        return sorted(name for name, entry in workspaces.items() if identity in entry.repositories)

    def add_workspace_worktree(
        self,
        workspace_file: str | Path,
        repositories: list[str],
        branch: str,
    ) -> None:
        """Record that every repository of a workspace got a worktree for branch."""
        with self._update() as store:
            entry = store.workspaces.setdefault(str(workspace_file), WorkspaceEntry())
            for identity in repositories:
                if identity not in entry.repositories:
                    entry.repositories.append(identity)
            if branch not in entry.worktrees:
                entry.worktrees.append(branch)

    def remove_workspace_worktree(self, workspace_file: str | Path, branch: str) -> None:
        with self._update() as store:
            entry = store.workspaces.get(str(workspace_file))
            if entry is not None and branch in entry.worktrees:
                entry.worktrees.remove(branch)

    # Initialization

    def is_initialized(self) -> bool:
        return self._load_store().initialized

    def mark_initialized(self) -> None:
        with self._update() as store:
            store.initialized = True

    def reset(self) -> None:
        """Forget every repository, worktree and workspace."""
        self._ensure_directory()
        with self._mutex, exclusive_file_lock(self._lock_path):
            self._save_store(StatusStore())
        logger.info(f"Reset status file {self._storage_path}")

    # Paths

    def is_within_base(self, base: str | Path, candidate: str | Path) -> bool:
        """
        Whether candidate lies inside base.

        Adapter failures count as "not within base" so one unreadable
        path does not abort a whole listing.
        """
        try:
            return self.fs.is_path_within_base(Path(base), Path(candidate))
        except (CodeManagerError, OSError) as e:
            logger.warning(f"Could not check whether {candidate} is within {base}: {e}")
            return False
