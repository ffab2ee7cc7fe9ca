"""
Pytest configuration and shared fixtures for code-manager tests.
"""

import json
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Generator, Optional

import pytest

from code_manager.adapters.filesystem import LocalFilesystem
from code_manager.config import Config
from code_manager.core.hooks import HookManager
from code_manager.core.ide import DummyIDE, IDEManager
from code_manager.core.manager import CodeManager
from code_manager.core.status import StatusRegistry
from code_manager.exceptions import GitAdapterError

ORIGIN_URL = "git@github.com:octocat/app.git"
IDENTITY = "github.com/octocat/app"


class FakeVCS:
    """In-memory stand-in for GitAdapter.

    Repositories are registered by root path with their remotes; worktrees
    are plain directories. Set ``failures[<method name>]`` to make a call raise.
    """

    def __init__(self) -> None:
        self.repositories: dict[Path, dict[str, str]] = {}
        self.remote_branches: dict[str, set[str]] = {}
        self.default_branch = "main"
        self.worktrees: dict[Path, str] = {}
        self.start_points: dict[Path, Optional[str]] = {}
        self.clone_calls: list[tuple[str, Path, bool]] = []
        self.removed: list[tuple[Path, bool]] = []
        self.fetched: list[str] = []
        self.failures: dict[str, Exception] = {}

    def add_repository(self, root: Path, origin_url: Optional[str] = ORIGIN_URL) -> Path:
        root = Path(root).resolve()
        self.repositories[root] = {"origin": origin_url} if origin_url else {}
        return root

    def _fail(self, method: str) -> None:
        if method in self.failures:
            raise self.failures[method]

    def _find_root(self, path: Optional[Path]) -> Optional[Path]:
        if path is None:
            return None
        path = Path(path).resolve()
        for root in self.repositories:
            if path == root or root in path.parents:
                return root
        return None

    def get_default_branch(self, url: str) -> str:
        self._fail("get_default_branch")
        return self.default_branch

    def clone(self, url: str, target: Path, recursive: bool = True) -> None:
        self._fail("clone")
        self.clone_calls.append((url, Path(target), recursive))
        Path(target).mkdir(parents=True)

    def is_inside_repository(self, path: Optional[Path] = None) -> bool:
        self._fail("is_inside_repository")
        return self._find_root(path) is not None

    def get_repository_root(self, path: Optional[Path] = None) -> Path:
        root = self._find_root(path)
        if root is None:
            raise GitAdapterError(f"Not a git repository: {path}")
        return root

    def get_local_default_branch(self, repo_path: Path) -> str:
        return self.default_branch

    def get_remote_url(self, repo_path: Path, remote: str) -> Optional[str]:
        return self.repositories[Path(repo_path)].get(remote)

    def remote_exists(self, repo_path: Path, remote: str) -> bool:
        return remote in self.repositories[Path(repo_path)]

    def add_remote(self, repo_path: Path, remote: str, url: str) -> None:
        self._fail("add_remote")
        self.repositories[Path(repo_path)][remote] = url

    def fetch_remote(self, repo_path: Path, remote: str) -> None:
        self._fail("fetch_remote")
        self.fetched.append(remote)

    def branch_exists_on_remote(self, repo_path: Path, remote: str, branch: str) -> bool:
        return branch in self.remote_branches.get(remote, set())

    def create_worktree(
        self,
        repo_path: Path,
        worktree_path: Path,
        branch: str,
        start_point: Optional[str] = None,
    ) -> None:
        self._fail("create_worktree")
        Path(worktree_path).mkdir(parents=True)
        self.worktrees[Path(worktree_path)] = branch
        self.start_points[Path(worktree_path)] = start_point

    def remove_worktree(self, repo_path: Path, worktree_path: Path, force: bool = False) -> None:
        self._fail("remove_worktree")
        shutil.rmtree(worktree_path, ignore_errors=True)
        self.worktrees.pop(Path(worktree_path), None)
        self.removed.append((Path(worktree_path), force))


@pytest.fixture
def temp_directory() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir).resolve()


@pytest.fixture
def config(temp_directory: Path) -> Config:
    """Configuration rooted in the temporary directory."""
    return Config(
        base_path=str(temp_directory / "Code"),
        status_file=str(temp_directory / ".cm" / "status.json"),
    )


@pytest.fixture
def registry(config: Config) -> StatusRegistry:
    """Status registry backed by a file in the temporary directory."""
    return StatusRegistry(Path(config.status_file), LocalFilesystem())


@pytest.fixture
def fake_vcs() -> FakeVCS:
    """Fake version-control adapter."""
    return FakeVCS()


@pytest.fixture
def repo_dir(temp_directory: Path, fake_vcs: FakeVCS) -> Path:
    """A directory the fake VCS treats as a repository with an origin remote."""
    path = temp_directory / "work" / "app"
    path.mkdir(parents=True)
    return fake_vcs.add_repository(path)


@pytest.fixture
def dummy_ide() -> DummyIDE:
    return DummyIDE()


@pytest.fixture
def ide_manager(dummy_ide: DummyIDE) -> IDEManager:
    """IDE manager whose "dummy" IDE records opened paths."""
    manager = IDEManager()
    manager.register(dummy_ide)
    return manager


@pytest.fixture
def make_manager(
    config: Config,
    fake_vcs: FakeVCS,
    registry: StatusRegistry,
    ide_manager: IDEManager,
    temp_directory: Path,
):
    """Factory building a CodeManager that works in a given directory."""

    def _make(cwd: Path, confirm=None) -> CodeManager:
        return CodeManager(
            config=config,
            vcs=fake_vcs,
            fs=LocalFilesystem(),
            registry=registry,
            hooks=HookManager(),
            ide_manager=ide_manager,
            confirm=confirm,
            cwd=cwd,
            config_path=temp_directory / "config" / "config.toml",
        )

    return _make


@pytest.fixture
def manager(make_manager, repo_dir: Path) -> CodeManager:
    """CodeManager working inside the fake repository."""
    return make_manager(repo_dir)


@pytest.fixture
def workspace_dir(temp_directory: Path, fake_vcs: FakeVCS) -> Path:
    """A directory with a workspace file listing two fake repositories."""
    workspace = temp_directory / "workspace"
    workspace.mkdir()
    for name in ("api", "web"):
        repo = workspace / name
        repo.mkdir()
        fake_vcs.add_repository(repo, f"https://github.com/octocat/{name}.git")

    content = {"folders": [{"path": "api"}, {"path": "web"}, {"path": "docs"}]}
    (workspace / "project.code-workspace").write_text(json.dumps(content))
    (workspace / "docs").mkdir()
    return workspace


# Real git fixtures


def _git(*args: str, cwd: Path) -> None:
    subprocess.run(["git", *args], cwd=cwd, capture_output=True, check=True)


@pytest.fixture
def git_repo(temp_directory: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository with one commit on main."""
    repo_path = temp_directory / "test-repo"
    repo_path.mkdir()

    _git("init", "--initial-branch=main", cwd=repo_path)
    _git("config", "user.email", "test@example.com", cwd=repo_path)
    _git("config", "user.name", "Test User", cwd=repo_path)

    (repo_path / "README.md").write_text("# Test Repository\n")

    _git("add", ".", cwd=repo_path)
    _git("commit", "-m", "Initial commit", cwd=repo_path)

    yield repo_path


@pytest.fixture
def git_clone(git_repo: Path, temp_directory: Path) -> Path:
    """A clone of git_repo, so it has an origin remote."""
    clone_path = temp_directory / "test-clone"
    subprocess.run(
        ["git", "clone", str(git_repo), str(clone_path)],
        capture_output=True,
        check=True,
    )
    _git("config", "user.email", "test@example.com", cwd=clone_path)
    _git("config", "user.name", "Test User", cwd=clone_path)
    return clone_path
