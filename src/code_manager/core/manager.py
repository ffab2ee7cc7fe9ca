"""
Orchestration core of code-manager.

CodeManager sequences the URL normalizer, project mode detector, status
registry and the git/filesystem adapters into the user-facing operations.
Every operation runs inside HookManager.run() under its operation name, so
hooks observe all of them and unexpected failures surface as
CodeManagerError subclasses.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Optional

from code_manager.adapters.base import FilesystemAdapter, VCSAdapter
from code_manager.adapters.filesystem import LocalFilesystem
from code_manager.adapters.git import GitAdapter
from code_manager.config import Config, expand_path, get_default_config_path, save_config
from code_manager.core.branch import parse_branch_ref, sanitize_branch_name
from code_manager.core.hooks import (
    CLONE,
    CREATE_WORKTREE,
    DELETE_ALL_WORKTREES,
    DELETE_REPOSITORY,
    DELETE_WORKTREE,
    GLOBAL_OPERATION,
    INIT,
    LIST_REPOSITORIES,
    LIST_WORKTREES,
    LOAD_WORKTREE,
    OPEN_WORKTREE,
    Hook,
    HookKind,
    HookManager,
    LoggingHook,
)
from code_manager.core.ide import IDEManager, IDEOpeningHook
from code_manager.core.project_detector import ProjectModeDetector
from code_manager.core.repository_url import (
    build_remote_url,
    extract_host,
    normalize_repository_url,
)
from code_manager.core.status import StatusRegistry
from code_manager.core.workspace import (
    branch_workspace_path,
    load_workspace_folders,
    render_workspace,
)
from code_manager.exceptions import (
    AlreadyInitializedError,
    BranchNotFoundOnRemoteError,
    CloneError,
    CodeManagerError,
    DefaultBranchDetectionError,
    DeletionCancelledError,
    DirectoryCreationError,
    FilesystemError,
    InitCancelledError,
    InvalidBasePathError,
    InvalidRepositoryNameError,
    MultipleWorkspaceFilesError,
    NoProjectDetectedError,
    OriginRemoteNotFoundError,
    RegistrationError,
    RepositoryAlreadyExistsError,
    RepositoryAlreadyTrackedError,
    RepositoryInWorkspaceError,
    RepositoryNotFoundError,
    ValidationError,
    WorkspaceModeNotSupportedError,
    WorktreeAlreadyExistsError,
    WorktreeCreationError,
    WorktreeDirectoryExistsError,
    WorktreeNotFoundError,
    WorktreeRemovalError,
)
from code_manager.models.repository_info import ProjectMode, RepositoryInfo
from code_manager.models.status import DEFAULT_REMOTE, Remote, WorktreeRef

logger = logging.getLogger(__name__)

ADAPTER_ERRORS = (CodeManagerError, OSError)

IDE_OPERATIONS = (CREATE_WORKTREE, LOAD_WORKTREE, OPEN_WORKTREE)


class CodeManager:
    """
    Clones repositories and manages their worktrees.

    Collaborators are injectable so tests can substitute fakes; each
    CodeManager owns its own HookManager, so several instances can coexist.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        vcs: Optional[VCSAdapter] = None,
        fs: Optional[FilesystemAdapter] = None,
        registry: Optional[StatusRegistry] = None,
        hooks: Optional[HookManager] = None,
        ide_manager: Optional[IDEManager] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        cwd: Optional[Path] = None,
        config_path: Optional[Path] = None,
    ):
        """
        Initialize the CodeManager.

        Args:
            config: Loaded configuration. Defaults to Config().
            vcs: Version-control adapter. Defaults to GitAdapter().
            fs: Filesystem adapter. Defaults to LocalFilesystem().
            registry: Status registry. Defaults to one on config.status_file.
            hooks: Hook manager. Defaults to a fresh HookManager().
            ide_manager: IDE lookup. Defaults to IDEManager().
            confirm: Asks the user a yes/no question; used by init --reset.
            cwd: Directory operations act on. Defaults to the process cwd.
            config_path: Where init writes the configuration.
        """
        self.config = config or Config()
        self.vcs = vcs or GitAdapter()
        self.fs = fs or LocalFilesystem()
        self.registry = registry or StatusRegistry(Path(self.config.status_file), self.fs)
        self.hooks = hooks or HookManager()
        self.ide_manager = ide_manager or IDEManager()
        self.detector = ProjectModeDetector(self.vcs, self.fs)
        self.confirm = confirm
        self.cwd = Path(cwd) if cwd else None
        self.config_path = Path(config_path) if config_path else get_default_config_path()
        self.logger = logger

        self._register_default_hooks()

    def _register_default_hooks(self) -> None:
        for operation in IDE_OPERATIONS:
            registered = self.hooks.get_hooks(operation, HookKind.POST)
            if not any(hook.name == IDEOpeningHook.name for hook in registered):
                self.hooks.register_post(operation, IDEOpeningHook(self.ide_manager))

        registered = self.hooks.get_hooks(GLOBAL_OPERATION, HookKind.GLOBAL)
        self._logging_hook = next(
            (hook for hook in registered if hook.name == LoggingHook.name), None
        )
        if self._logging_hook is None:
            self._logging_hook = LoggingHook(self.logger, level=logging.DEBUG)
            self.hooks.register_global(GLOBAL_OPERATION, self._logging_hook)

    # Hooks and logging

    def register_hook(self, operation: str, hook: Hook, kind: HookKind | str) -> None:
        self.hooks.register(operation, hook, kind)

    def unregister_hook(
        self,
        operation: str,
        name: str,
        kind: Optional[HookKind | str] = None,
    ) -> None:
        self.hooks.unregister(operation, name, kind)

    def set_logger(self, new_logger: logging.Logger) -> None:
        """Route this instance's log output, operation tracing included, to another logger."""
        self.logger = new_logger
        self._logging_hook.logger = new_logger

    def set_verbose(self, verbose: bool) -> None:
        """Toggle debug logging for the whole package; off defers to the root logger level."""
        logging.getLogger("code_manager").setLevel(logging.DEBUG if verbose else logging.NOTSET)

    # Paths

    @property
    def repositories_dir(self) -> Path:
        return Path(self.config.repositories_dir)

    @property
    def workspaces_dir(self) -> Path:
        return Path(self.config.workspaces_dir)

    def _working_dir(self) -> Path:
        return self.cwd or Path.cwd()

    def _worktree_path(self, identity: str, remote: str, branch: str) -> Path:
        return self.repositories_dir / identity / remote / branch

    # Clone

    def clone(self, url: str, recursive: bool = True, remote: str = DEFAULT_REMOTE) -> str:
        """
        Clone a repository under the repositories directory and track it.

        The clone lands in ``repositories_dir/<identity>/<remote>/<default branch>``.

        Args:
            url: SSH or HTTP(S) repository URL.
            recursive: Also clone submodules.
            remote: Name recorded for the cloned remote.

        Returns:
            Path of the new clone.

        Raises:
            ValidationError: If the URL cannot be normalized.
            RepositoryAlreadyTrackedError: If the identity is already tracked.
            DefaultBranchDetectionError: If the remote HEAD cannot be read.
            DirectoryCreationError: If the parent directory cannot be created.
            CloneError: If git clone fails.
            RegistrationError: If the registry cannot record the clone.
        """
        params = {"url": url, "recursive": recursive, "remote": remote}
        return self.hooks.run(CLONE, params, lambda: self._clone(url, recursive, remote))

    def _clone(self, url: str, recursive: bool, remote: str) -> str:
        identity = normalize_repository_url(url)

        if self.registry.get_repository(identity) is not None:
            raise RepositoryAlreadyTrackedError(f"Repository '{identity}' is already tracked")

        self.logger.debug(f"Detecting default branch of {url}")
        try:
            default_branch = self.vcs.get_default_branch(url)
        except ADAPTER_ERRORS as e:
            raise DefaultBranchDetectionError(
                f"Failed to detect default branch of {url}: {e}"
            ) from e

        target = self._worktree_path(identity, remote, default_branch)

        try:
            self.fs.mkdir_all(target.parent, 0o755)
        except ADAPTER_ERRORS as e:
            raise DirectoryCreationError(f"Failed to create {target.parent}: {e}") from e

        self.logger.info(f"Cloning {url} into {target}")
        try:
            self.vcs.clone(url, target, recursive)
        except ADAPTER_ERRORS as e:
            raise CloneError(f"Failed to clone {url}: {e}") from e

        try:
            self.registry.add_repository(
                identity, target, {remote: Remote(default_branch=default_branch)}
            )
        except CodeManagerError as e:
            raise RegistrationError(f"Failed to register {identity}: {e}") from e

        return str(target)

    # Repository helpers

    def _repository_identity(self, root: Path) -> str:
        origin_url = self.vcs.get_remote_url(root, DEFAULT_REMOTE)
        if not origin_url:
            raise OriginRemoteNotFoundError(f"Repository {root} has no '{DEFAULT_REMOTE}' remote")
        return normalize_repository_url(origin_url)

    def _current_repository(self) -> tuple[Path, str]:
        root = self.vcs.get_repository_root(self._working_dir())
        return root, self._repository_identity(root)

    def _ensure_tracked(self, root: Path, identity: str) -> None:
        if self.registry.get_repository(identity) is not None:
            return
        default_branch = self.vcs.get_local_default_branch(root)
        self.logger.info(f"Tracking existing repository {identity} at {root}")
        try:
            self.registry.add_repository(
                identity, root, {DEFAULT_REMOTE: Remote(default_branch=default_branch)}
            )
        except RepositoryAlreadyExistsError:
            pass

    def _ensure_remote_tracked(self, identity: str, remote: str) -> None:
        entry = self.registry.get_repository(identity)
        if entry is None or remote in entry.remotes:
            return
        # A fork is assumed to share origin's default branch.
        origin = entry.remotes.get(DEFAULT_REMOTE)
        default_branch = origin.default_branch if origin else self.vcs.get_local_default_branch(
            Path(entry.path)
        )
        self.registry.add_remote(identity, remote, Remote(default_branch=default_branch))

    def _create_repository_worktree(
        self,
        root: Path,
        identity: str,
        branch: str,
        remote: str = DEFAULT_REMOTE,
        start_point: Optional[str] = None,
    ) -> Path:
        self._ensure_tracked(root, identity)

        existing = self.registry.get_worktree(identity, branch)
        if existing is not None:
            raise WorktreeAlreadyExistsError(
                f"Worktree for branch '{branch}' already exists at: {existing.path}"
            )

        path = self._worktree_path(identity, remote, branch)
        if self.fs.exists(path):
            raise WorktreeDirectoryExistsError(f"Directory already exists: {path}")

        try:
            self.fs.mkdir_all(path.parent, 0o755)
        except ADAPTER_ERRORS as e:
            raise DirectoryCreationError(f"Failed to create {path.parent}: {e}") from e

        self.logger.debug(f"Creating worktree for {branch} at {path}")
        try:
            self.vcs.create_worktree(root, path, branch, start_point)
        except ADAPTER_ERRORS as e:
            raise WorktreeCreationError(f"Failed to create worktree for '{branch}': {e}") from e

        try:
            self.registry.add_worktree(
                identity, WorktreeRef(branch=branch, path=str(path), remote=remote)
            )
        except CodeManagerError:
            self._remove_git_worktree(root, path)
            raise

        self.logger.info(f"Created worktree {identity}@{branch} at {path}")
        return path

    def _remove_git_worktree(self, root: Path, path: Path) -> None:
        """Best-effort cleanup of a git worktree that could not be tracked."""
        try:
            self.vcs.remove_worktree(root, path, force=True)
        except ADAPTER_ERRORS as e:
            self.logger.warning(f"Failed to clean up worktree {path}: {e}")

    def _delete_repository_worktree(
        self,
        root: Path,
        identity: str,
        branch: str,
        force: bool,
    ) -> Path:
        worktree = self.registry.get_worktree(identity, branch)
        if worktree is None:
            raise WorktreeNotFoundError(f"Worktree for branch '{branch}' not found in {identity}")

        path = Path(worktree.path)
        if self.fs.exists(path):
            try:
                self.vcs.remove_worktree(root, path, force)
            except ADAPTER_ERRORS as e:
                raise WorktreeRemovalError(f"Failed to delete worktree {path}: {e}") from e
        else:
            self.logger.warning(f"Worktree {path} is missing on disk, removing it from status only")

        self.registry.remove_worktree(identity, branch)
        return path

    # Workspace helpers

    def _workspace_file(self, force: bool = False) -> Path:
        files = self.detector.find_workspace_files(self._working_dir())
        if not files:
            raise NoProjectDetectedError(f"No workspace file found in {self._working_dir()}")
        if len(files) > 1 and not force:
            names = ", ".join(f.name for f in files)
            raise MultipleWorkspaceFilesError(f"Several workspace files found: {names}")
        return Path(files[0]).absolute()

    def _workspace_repositories(self, workspace_file: Path) -> list[tuple[Path, str]]:
        repositories = []
        for folder in load_workspace_folders(workspace_file):
            if not self.vcs.is_inside_repository(folder):
                self.logger.warning(f"Skipping {folder}: not a git repository")
                continue
            root = self.vcs.get_repository_root(folder)
            repositories.append((root, self._repository_identity(root)))

        if not repositories:
            raise NoProjectDetectedError(f"Workspace {workspace_file} has no git repositories")
        return repositories

    def _create_workspace_worktree(self, branch: str) -> Path:
        workspace_file = self._workspace_file()
        repositories = self._workspace_repositories(workspace_file)
        target = branch_workspace_path(self.workspaces_dir, workspace_file, branch)

        created: list[tuple[Path, str, Path]] = []
        try:
            for root, identity in repositories:
                path = self._create_repository_worktree(root, identity, branch)
                created.append((root, identity, path))

            folders = [(identity.rsplit("/", 1)[-1], path) for _, identity, path in created]
            self.fs.write_text(target, render_workspace(folders))
        except CodeManagerError:
            for root, identity, path in reversed(created):
                self._rollback_worktree(root, identity, branch, path)
            raise

        self.registry.add_workspace_worktree(
            workspace_file, [identity for _, identity in repositories], branch
        )
        return target

    def _rollback_worktree(self, root: Path, identity: str, branch: str, path: Path) -> None:
        self.logger.warning(f"Rolling back worktree {identity}@{branch}")
        self._remove_git_worktree(root, path)
        try:
            self.registry.remove_worktree(identity, branch)
        except CodeManagerError as e:
            self.logger.warning(f"Failed to untrack {identity}@{branch}: {e}")

    # Worktrees

    def create_worktree(self, branch: str, ide_name: Optional[str] = None) -> str:
        """
        Create a worktree for branch.

        In a repository the worktree lands in
        ``repositories_dir/<identity>/origin/<branch>``. In a workspace every
        repository gets one and a branch workspace file is written.

        Returns:
            Worktree path, or the branch workspace file in workspace mode.
        """
        params = {"branch": branch, "ide_name": ide_name}
        return self.hooks.run(CREATE_WORKTREE, params, lambda: self._create_worktree(branch))

    def _create_worktree(self, branch: str) -> str:
        branch = sanitize_branch_name(branch)
        mode = self.detector.detect(self._working_dir())

        if mode == ProjectMode.SINGLE_REPO:
            root, identity = self._current_repository()
            return str(self._create_repository_worktree(root, identity, branch))
        if mode == ProjectMode.WORKSPACE:
            return str(self._create_workspace_worktree(branch))
        raise NoProjectDetectedError(f"No git repository or workspace in {self._working_dir()}")

    def delete_worktree(self, branch: str, force: bool = False) -> str:
        """
        Remove the worktree of branch and stop tracking it.

        A worktree already gone from disk is only removed from the registry.

        Raises:
            WorktreeNotFoundError: If the branch has no tracked worktree.
            WorktreeRemovalError: If git refuses (e.g. uncommitted changes without force).
        """
        params = {"branch": branch, "force": force}
        return self.hooks.run(DELETE_WORKTREE, params, lambda: self._delete_worktree(branch, force))

    def _delete_worktree(self, branch: str, force: bool) -> str:
        branch = sanitize_branch_name(branch)
        mode = self.detector.detect(self._working_dir())

        if mode == ProjectMode.SINGLE_REPO:
            root, identity = self._current_repository()
            return str(self._delete_repository_worktree(root, identity, branch, force))

        if mode == ProjectMode.WORKSPACE:
            workspace_file = self._workspace_file()
            deleted = 0
            for root, identity in self._workspace_repositories(workspace_file):
                if self.registry.get_worktree(identity, branch) is None:
                    continue
                self._delete_repository_worktree(root, identity, branch, force)
                deleted += 1
            if not deleted:
                raise WorktreeNotFoundError(f"No worktree for branch '{branch}' in {workspace_file}")

            target = branch_workspace_path(self.workspaces_dir, workspace_file, branch)
            try:
                self.fs.remove_all(target)
            except ADAPTER_ERRORS as e:
                self.logger.warning(f"Failed to remove workspace file {target}: {e}")
            self.registry.remove_workspace_worktree(workspace_file, branch)
            return str(target)

        raise NoProjectDetectedError(f"No git repository or workspace in {self._working_dir()}")

    def delete_all_worktrees(self, force: bool = False) -> int:
        """
        Delete every tracked worktree of the current repository.

        Returns:
            Number of worktrees deleted.
        """
        return self.hooks.run(
            DELETE_ALL_WORKTREES, {"force": force}, lambda: self._delete_all_worktrees(force)
        )

    def _delete_all_worktrees(self, force: bool) -> int:
        mode = self.detector.detect(self._working_dir())
        if mode == ProjectMode.WORKSPACE:
            raise WorkspaceModeNotSupportedError("Deleting all worktrees is not supported in workspace mode")
        if mode != ProjectMode.SINGLE_REPO:
            raise NoProjectDetectedError(f"No git repository in {self._working_dir()}")

        root, identity = self._current_repository()
        entry = self.registry.get_repository(identity)
        if entry is None:
            return 0

        worktrees = entry.sorted_worktrees()
        for worktree in worktrees:
            self._delete_repository_worktree(root, identity, worktree.branch, force)
        return len(worktrees)

    def list_worktrees(self, force: bool = False) -> list[WorktreeRef]:
        """
        Tracked worktrees of the current repository or workspace, sorted by branch.

        Args:
            force: In a directory with several workspace files, use the first
                one instead of failing.
        """
        return self.hooks.run(LIST_WORKTREES, {"force": force}, lambda: self._list_worktrees(force))

    def _list_worktrees(self, force: bool) -> list[WorktreeRef]:
        mode = self.detector.detect(self._working_dir())

        if mode == ProjectMode.SINGLE_REPO:
            _, identity = self._current_repository()
            entry = self.registry.get_repository(identity)
            return entry.sorted_worktrees() if entry else []

        if mode == ProjectMode.WORKSPACE:
            workspace_file = self._workspace_file(force)
            seen: set[tuple[str, str]] = set()
            worktrees: list[WorktreeRef] = []
            for _, identity in self._workspace_repositories(workspace_file):
                entry = self.registry.get_repository(identity)
                if entry is None:
                    continue
                for worktree in entry.sorted_worktrees():
                    if (identity, worktree.key) not in seen:
                        seen.add((identity, worktree.key))
                        worktrees.append(worktree)
            return sorted(worktrees, key=lambda wt: wt.branch)

        raise NoProjectDetectedError(f"No git repository or workspace in {self._working_dir()}")

    def open_worktree(self, branch: str, ide_name: str) -> str:
        """
        Open the worktree of branch in an IDE.

        Returns:
            Path that was opened (the branch workspace file in workspace mode).

        Raises:
            UnsupportedIDEError: If ide_name is unknown.
            WorktreeNotFoundError: If the branch has no tracked worktree.
        """
        params = {"branch": branch, "ide_name": ide_name}
        return self.hooks.run(OPEN_WORKTREE, params, lambda: self._open_worktree(branch, ide_name))

    def _open_worktree(self, branch: str, ide_name: str) -> str:
        self.ide_manager.get(ide_name)
        branch = sanitize_branch_name(branch)
        mode = self.detector.detect(self._working_dir())

        if mode == ProjectMode.SINGLE_REPO:
            _, identity = self._current_repository()
            worktree = self.registry.get_worktree(identity, branch)
            if worktree is None:
                raise WorktreeNotFoundError(f"Worktree for branch '{branch}' not found in {identity}")
            return worktree.path

        if mode == ProjectMode.WORKSPACE:
            workspace_file = self._workspace_file()
            entry = self.registry.get_workspace(workspace_file)
            if entry is None or branch not in entry.worktrees:
                raise WorktreeNotFoundError(f"No worktree for branch '{branch}' in {workspace_file}")
            return str(branch_workspace_path(self.workspaces_dir, workspace_file, branch))

        raise NoProjectDetectedError(f"No git repository or workspace in {self._working_dir()}")

    def load_worktree(self, branch_ref: str, ide_name: Optional[str] = None) -> str:
        """
        Create a worktree for a branch that exists on a remote.

        Args:
            branch_ref: ``remote:branch`` or ``branch`` (remote defaults to origin).
                A remote that does not exist yet is added, pointing at the
                fork owned by that name on origin's host.
            ide_name: IDE to open the worktree in afterwards.

        Returns:
            Path of the new worktree.

        Raises:
            WorkspaceModeNotSupportedError: When run in a workspace.
            OriginRemoteNotFoundError: If origin is missing or has no usable host.
            BranchNotFoundOnRemoteError: If the remote has no such branch.
        """
        params = {"branch_ref": branch_ref, "ide_name": ide_name}
        return self.hooks.run(LOAD_WORKTREE, params, lambda: self._load_worktree(branch_ref))

    def _load_worktree(self, branch_ref: str) -> str:
        remote, branch = parse_branch_ref(branch_ref)
        branch = sanitize_branch_name(branch)

        mode = self.detector.detect(self._working_dir())
        if mode == ProjectMode.WORKSPACE:
            raise WorkspaceModeNotSupportedError("Loading worktrees is not supported in workspace mode")
        if mode != ProjectMode.SINGLE_REPO:
            raise NoProjectDetectedError(f"No git repository in {self._working_dir()}")

        root, identity = self._current_repository()
        origin_url = self.vcs.get_remote_url(root, DEFAULT_REMOTE)
        if not extract_host(origin_url):
            raise OriginRemoteNotFoundError(f"Remote '{DEFAULT_REMOTE}' has an invalid URL: {origin_url}")

        if remote != DEFAULT_REMOTE and not self.vcs.remote_exists(root, remote):
            remote_url = build_remote_url(origin_url, remote, identity)
            self.logger.info(f"Adding remote '{remote}' with URL {remote_url}")
            self.vcs.add_remote(root, remote, remote_url)

        self._ensure_tracked(root, identity)
        self._ensure_remote_tracked(identity, remote)

        self.vcs.fetch_remote(root, remote)
        if not self.vcs.branch_exists_on_remote(root, remote, branch):
            raise BranchNotFoundOnRemoteError(f"Branch '{branch}' not found on remote '{remote}'")

        path = self._create_repository_worktree(
            root, identity, branch, remote=remote, start_point=f"{remote}/{branch}"
        )
        return str(path)

    # Init

    def init(
        self,
        base_path: Optional[str] = None,
        repositories_dir: Optional[str] = None,
        reset: bool = False,
        force: bool = False,
    ) -> Config:
        """
        Write the configuration and initialize the status registry.

        Args:
            base_path: Root directory for clones (default: current config's).
            repositories_dir: Override for ``<base_path>/repos``.
            reset: Wipe the registry first; asks for confirmation unless force.
            force: Skip the reset confirmation.

        Returns:
            The configuration that was saved.

        Raises:
            AlreadyInitializedError: If already initialized and reset is False.
            InitCancelledError: If the reset was not confirmed.
            InvalidBasePathError: If base_path exists and is not a directory.
        """
        params = {
            "base_path": base_path,
            "repositories_dir": repositories_dir,
            "reset": reset,
            "force": force,
        }
        return self.hooks.run(
            INIT, params, lambda: self._init(base_path, repositories_dir, reset, force)
        )

    def _init(
        self,
        base_path: Optional[str],
        repositories_dir: Optional[str],
        reset: bool,
        force: bool,
    ) -> Config:
        if not reset and self.registry.is_initialized():
            raise AlreadyInitializedError("code-manager is already initialized (use --reset to start over)")

        config = self._build_init_config(base_path, repositories_dir)

        if reset and not force:
            question = "This resets code-manager and forgets all tracked repositories. Continue?"
            if self.confirm is None or not self.confirm(question):
                raise InitCancelledError("Init cancelled")

        try:
            self.fs.mkdir_all(Path(config.repositories_dir), 0o755)
        except ADAPTER_ERRORS as e:
            raise DirectoryCreationError(f"Failed to create {config.repositories_dir}: {e}") from e

        try:
            save_config(config, self.config_path)
        except OSError as e:
            raise FilesystemError(f"Failed to save config to {self.config_path}: {e}") from e

        # The registry is only touched once everything else succeeded.
        if reset:
            self.registry.reset()
        self.config = config
        self.registry.mark_initialized()
        self.logger.info(f"Initialized code-manager in {config.base_path}")
        return config

    def _build_init_config(
        self, base_path: Optional[str], repositories_dir: Optional[str]
    ) -> Config:
        base = Path(expand_path(base_path or self.config.base_path))
        if base.exists() and not base.is_dir():
            raise InvalidBasePathError(f"Base path is not a directory: {base}")

        # Directories derived from an unchanged base path keep their configured values.
        same_base = str(base) == self.config.base_path
        return Config(
            base_path=str(base),
            repositories_dir=repositories_dir
            or (self.config.repositories_dir if same_base else None),
            workspaces_dir=self.config.workspaces_dir if same_base else None,
            status_file=self.config.status_file,
        )

    # Repositories

    def list_repositories(self) -> list[RepositoryInfo]:
        """Tracked repositories sorted by identity, flagged when inside the repositories directory."""
        return self.hooks.run(LIST_REPOSITORIES, {}, self._list_repositories)

    def _list_repositories(self) -> list[RepositoryInfo]:
        repositories = self.registry.list_repositories()
        return [
            RepositoryInfo(
                identity=identity,
                path=entry.path,
                remotes=entry.remotes,
                worktree_count=len(entry.worktrees),
                in_repositories_dir=self.registry.is_within_base(
                    self.repositories_dir, entry.path
                ),
            )
            for identity, entry in sorted(repositories.items())
        ]

    def delete_repository(self, name: str, force: bool = False) -> str:
        """
        Stop tracking a repository and remove everything code-manager made for it.

        Every tracked worktree is deleted first, then the registry entry. The
        clone directory is removed only when it lies inside the repositories
        directory; a failure there is logged and does not fail the operation.

        Args:
            name: Repository identity, or any URL normalizing to one.
            force: Skip the confirmation and force-remove dirty worktrees.

        Returns:
            Path of the repository's primary checkout.

        Raises:
            InvalidRepositoryNameError: If name is empty or contains a backslash.
            RepositoryNotFoundError: If no tracked repository matches name.
            RepositoryInWorkspaceError: If a workspace still lists the repository.
            DeletionCancelledError: If the deletion was not confirmed.
        """
        params = {"repository_name": name, "force": force}
        return self.hooks.run(
            DELETE_REPOSITORY, params, lambda: self._delete_repository(name, force)
        )

    def _delete_repository(self, name: str, force: bool) -> str:
        identity = self._resolve_repository_name(name)

        workspaces = self.registry.workspaces_with_repository(identity)
        if workspaces:
            raise RepositoryInWorkspaceError(
                f"Repository '{identity}' is part of workspace {workspaces[0]}; "
                "remove it from the workspace first"
            )

        entry = self.registry.get_repository(identity)
        if entry is None:
            raise RepositoryNotFoundError(f"Repository '{identity}' is not tracked")
        path = Path(entry.path)
        owned = self.registry.is_within_base(self.repositories_dir, path)

        if not force:
            question = (
                f"Delete repository '{identity}' and its {len(entry.worktrees)} worktree(s)?"
            )
            if not owned:
                question += f" {path} is outside the repositories directory and stays on disk."
            if self.confirm is None or not self.confirm(question):
                raise DeletionCancelledError(f"Deletion of '{identity}' cancelled")

        removed = [
            self._delete_repository_worktree(path, identity, worktree.branch, force)
            for worktree in entry.sorted_worktrees()
        ]

        self.registry.remove_repository(identity)

        for worktree_path in removed:
            self._remove_empty_parents(worktree_path)

        if owned and self.fs.exists(path):
            try:
                self.fs.remove_all(path)
            except ADAPTER_ERRORS as e:
                self.logger.warning(f"Failed to remove repository directory {path}: {e}")
            else:
                self._remove_empty_parents(path)
        elif not owned:
            self.logger.info(f"Keeping {path}: outside {self.repositories_dir}")

        self.logger.info(f"Deleted repository {identity}")
        return str(path)

    def _resolve_repository_name(self, name: str) -> str:
        if not name or not name.strip():
            raise InvalidRepositoryNameError("repository name cannot be empty")
        if "\\" in name:
            raise InvalidRepositoryNameError("repository name cannot contain backslashes")
        if self.registry.get_repository(name) is not None:
            return name

        try:
            identity = normalize_repository_url(name)
        except ValidationError:
            raise RepositoryNotFoundError(f"Repository '{name}' is not tracked") from None
        if self.registry.get_repository(identity) is None:
            raise RepositoryNotFoundError(f"Repository '{name}' is not tracked")
        return identity

    def _remove_empty_parents(self, path: Path) -> None:
        """Remove now-empty directories between path and the repositories directory."""
        parent = path.parent
        while parent != self.repositories_dir and self.repositories_dir in parent.parents:
            if not self.fs.remove_empty_dir(parent):
                break
            self.logger.debug(f"Removed empty directory {parent}")
            parent = parent.parent
