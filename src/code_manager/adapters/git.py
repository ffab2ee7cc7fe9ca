"""Git operations backed by GitPython."""

import logging
from pathlib import Path
from typing import Optional

from git import Git, Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from code_manager.exceptions import GitAdapterError

logger = logging.getLogger(__name__)

SYMREF_PREFIX = "ref: refs/heads/"


def _stderr(error: GitCommandError) -> str:
    return (error.stderr or str(error)).strip()


class GitAdapter:
    """Runs git commands for the orchestration engine.

    Every method raises GitAdapterError when git fails, with git's stderr
    in the message.
    """

    def _open(self, path: Path) -> Repo:
        try:
            return Repo(path, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise GitAdapterError(f"Not a git repository: {path}") from e

    def get_default_branch(self, url: str) -> str:
        """
        Ask the remote which branch HEAD points to.

        Args:
            url: Repository URL (or local path).

        Returns:
            Default branch name, e.g. "main".

        Raises:
            GitAdapterError: If ls-remote fails or HEAD is not a symbolic ref.
        """
        try:
            output = Git().ls_remote("--symref", url, "HEAD")
        except GitCommandError as e:
            raise GitAdapterError(f"Failed to query {url}: {_stderr(e)}") from e

        for line in output.splitlines():
            if line.startswith(SYMREF_PREFIX):
                return line[len(SYMREF_PREFIX):].split("\t")[0].strip()

        raise GitAdapterError(f"Could not find the default branch of {url}")

    def clone(self, url: str, target: Path, recursive: bool = True) -> None:
        """Clone url into target, with submodules when recursive."""
        options = ["--recurse-submodules"] if recursive else []
        logger.debug(f"Cloning {url} into {target} (recursive={recursive})")
        try:
            Repo.clone_from(url, str(target), multi_options=options)
        except GitCommandError as e:
            raise GitAdapterError(f"Failed to clone {url}: {_stderr(e)}") from e

    def is_inside_repository(self, path: Optional[Path] = None) -> bool:
        """Whether path (default: current directory) is inside a git working copy."""
        try:
            repo = Repo(path or Path.cwd(), search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError):
            return False
        return not repo.bare

    def get_repository_root(self, path: Optional[Path] = None) -> Path:
        """Top-level directory of the working copy containing path."""
        repo = self._open(path or Path.cwd())
        return Path(repo.working_tree_dir)

    def get_local_default_branch(self, repo_path: Path) -> str:
        """
        Best guess at the default branch of a local clone.

        Uses origin/HEAD when the clone knows it, else the checked-out branch.
        """
        repo = self._open(repo_path)
        try:
            ref = repo.git.symbolic_ref("--short", "refs/remotes/origin/HEAD")
            return ref.split("/", 1)[1]
        except GitCommandError:
            pass
        try:
            return repo.active_branch.name
        except TypeError as e:
            raise GitAdapterError(f"HEAD is detached in {repo_path}") from e

    def get_remote_url(self, repo_path: Path, remote: str) -> Optional[str]:
        """URL of the remote, or None when the remote does not exist."""
        repo = self._open(repo_path)
        if remote not in [r.name for r in repo.remotes]:
            return None
        try:
            return repo.git.remote("get-url", remote).strip()
        except GitCommandError as e:
            raise GitAdapterError(f"Failed to read URL of remote '{remote}': {_stderr(e)}") from e

    def remote_exists(self, repo_path: Path, remote: str) -> bool:
        repo = self._open(repo_path)
        return remote in [r.name for r in repo.remotes]

    def add_remote(self, repo_path: Path, remote: str, url: str) -> None:
        repo = self._open(repo_path)
        try:
            repo.create_remote(remote, url)
        except GitCommandError as e:
            raise GitAdapterError(f"Failed to add remote '{remote}': {_stderr(e)}") from e

    def fetch_remote(self, repo_path: Path, remote: str) -> None:
        repo = self._open(repo_path)
        logger.debug(f"Fetching {remote} in {repo_path}")
        try:
            repo.git.fetch(remote)
        except GitCommandError as e:
            raise GitAdapterError(f"Failed to fetch from '{remote}': {_stderr(e)}") from e

    def branch_exists_on_remote(self, repo_path: Path, remote: str, branch: str) -> bool:
        """Whether the remote-tracking ref remote/branch exists locally."""
        repo = self._open(repo_path)
        try:
            repo.git.rev_parse("--verify", "--quiet", f"refs/remotes/{remote}/{branch}")
            return True
        except GitCommandError:
            return False

    def _branch_exists(self, repo: Repo, branch: str) -> bool:
        try:
            repo.git.rev_parse("--verify", "--quiet", f"refs/heads/{branch}")
            return True
        except GitCommandError:
            return False

    def create_worktree(
        self,
        repo_path: Path,
        worktree_path: Path,
        branch: str,
        start_point: Optional[str] = None,
    ) -> None:
        """
        Add a worktree for branch at worktree_path.

        An existing local branch is checked out as is. A missing branch is
        created from start_point (tracking it when it is a remote ref), or
        from HEAD.

        Raises:
            GitAdapterError: If git refuses to add the worktree.
        """
        repo = self._open(repo_path)

        try:
            if self._branch_exists(repo, branch):
                repo.git.worktree("add", str(worktree_path), branch)
            elif start_point:
                repo.git.worktree(
                    "add", "--track", "-b", branch, str(worktree_path), start_point
                )
            else:
                repo.git.worktree("add", "-b", branch, str(worktree_path))
        except GitCommandError as e:
            raise GitAdapterError(f"Failed to create worktree: {_stderr(e)}") from e

    def remove_worktree(self, repo_path: Path, worktree_path: Path, force: bool = False) -> None:
        repo = self._open(repo_path)

        args = ["remove"]
        if force:
            args.append("--force")
        args.append(str(worktree_path))

        try:
            repo.git.worktree(*args)
        except GitCommandError as e:
            raise GitAdapterError(f"Failed to delete worktree: {_stderr(e)}") from e
