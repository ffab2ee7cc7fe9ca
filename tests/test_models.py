"""Tests for Pydantic models and configuration loading."""

from datetime import datetime
from pathlib import Path

import pytest
from pydantic import ValidationError

from code_manager.config import Config, get_search_paths, load_config, save_config
from code_manager.models.repository_info import ProjectMode, RepositoryInfo
from code_manager.models.status import (
    RepositoryEntry,
    StatusStore,
    WorktreeRef,
    worktree_key,
)


class TestWorktreeRef:
    """Test suite for WorktreeRef model."""

    def test_defaults(self):
        """Test the remote defaults to origin and a timestamp is set."""
        worktree = WorktreeRef(branch="feature/x", path="/repos/x")

        assert worktree.remote == "origin"
        assert isinstance(worktree.created_at, datetime)

    def test_key(self):
        worktree = WorktreeRef(branch="fix", path="/repos/fix", remote="alice")

        assert worktree.key == "alice:fix"
        assert worktree.key == worktree_key("alice", "fix")


class TestRepositoryEntry:
    """Test suite for RepositoryEntry model."""

    @pytest.fixture
    def entry(self) -> RepositoryEntry:
        entry = RepositoryEntry(path="/repos/app")
        for branch, remote in (("zeta", "origin"), ("alpha", "alice")):
            worktree = WorktreeRef(branch=branch, path=f"/repos/{branch}", remote=remote)
            entry.worktrees[worktree.key] = worktree
        return entry

    def test_find_worktree_ignores_remote(self, entry: RepositoryEntry):
        assert entry.find_worktree("alpha").remote == "alice"
        assert entry.find_worktree("missing") is None

    def test_sorted_worktrees(self, entry: RepositoryEntry):
        assert [wt.branch for wt in entry.sorted_worktrees()] == ["alpha", "zeta"]


class TestStatusStore:
    """Test suite for StatusStore model."""

    def test_empty_store(self):
        store = StatusStore()

        assert store.version == "1.0"
        assert store.initialized is False
        assert store.repositories == {}
        assert store.workspaces == {}

    def test_set_and_remove_repository(self):
        store = StatusStore()
        store.set_repository("github.com/a/b", RepositoryEntry(path="/x"))

        assert store.get_repository("github.com/a/b").path == "/x"
        assert store.remove_repository("github.com/a/b") is True
        assert store.remove_repository("github.com/a/b") is False

    def test_json_round_trip(self):
        """Test a dumped store validates back to an equal store."""
        store = StatusStore()
        entry = RepositoryEntry(path="/x")
        worktree = WorktreeRef(branch="main", path="/x")
        entry.worktrees[worktree.key] = worktree
        store.set_repository("github.com/a/b", entry)

        restored = StatusStore.model_validate(store.model_dump(mode="json"))

        assert restored == store


class TestRepositoryInfo:
    """Test suite for RepositoryInfo model."""

    def test_project_mode_values(self):
        assert ProjectMode.SINGLE_REPO.value == "single_repo"
        assert ProjectMode.WORKSPACE.value == "workspace"
        assert ProjectMode.NONE.value == "none"

    def test_defaults(self):
        info = RepositoryInfo(identity="github.com/a/b", path="/x")

        assert info.remotes == {}
        assert info.worktree_count == 0
        assert info.in_repositories_dir is False


class TestConfig:
    """Test suite for Config model and loading."""

    def test_defaults_derive_directories(self, temp_directory: Path):
        config = Config(base_path=str(temp_directory))

        assert config.repositories_dir == str(temp_directory / "repos")
        assert config.workspaces_dir == str(temp_directory / "workspaces")

    def test_paths_are_expanded(self):
        config = Config(base_path="~/Code")

        assert config.base_path == str(Path.home() / "Code")
        assert config.status_file == str(Path.home() / ".cm" / "status.json")

    def test_default_paths_are_absolute(self, temp_directory: Path, monkeypatch):
        """Test a Config built without arguments never holds relative paths."""
        monkeypatch.setenv("HOME", str(temp_directory / "home"))

        config = Config()

        home = temp_directory / "home"
        assert config.base_path == str(home / "Code")
        assert config.repositories_dir == str(home / "Code" / "repos")
        assert config.workspaces_dir == str(home / "Code" / "workspaces")
        assert config.status_file == str(home / ".cm" / "status.json")

    def test_explicit_repositories_dir(self, temp_directory: Path):
        config = Config(
            base_path=str(temp_directory), repositories_dir=str(temp_directory / "elsewhere")
        )

        assert config.repositories_dir == str(temp_directory / "elsewhere")

    def test_empty_base_path_rejected(self):
        with pytest.raises(ValidationError):
            Config(base_path="  ")

    def test_save_and_load(self, temp_directory: Path):
        path = temp_directory / "nested" / "config.toml"
        config = Config(base_path=str(temp_directory / "Code"))

        save_config(config, path)
        loaded = load_config(str(path))

        assert loaded == config

    def test_invalid_file_falls_back_to_defaults(self, temp_directory: Path, monkeypatch):
        monkeypatch.chdir(temp_directory)
        monkeypatch.setenv("HOME", str(temp_directory / "home"))
        path = temp_directory / "broken.toml"
        path.write_text("base_path = [unclosed")

        assert load_config(str(path)) == Config()

    def test_search_order(self, temp_directory: Path, monkeypatch):
        monkeypatch.chdir(temp_directory)

        paths = get_search_paths("/explicit.toml")

        assert paths[0] == Path("/explicit.toml")
        assert paths[1] == temp_directory / ".cmrc.toml"
        assert paths[-1] == Path.home() / ".cmrc"

    def test_project_file_is_found(self, temp_directory: Path, monkeypatch):
        monkeypatch.chdir(temp_directory)
        (temp_directory / ".cmrc.toml").write_text(f'base_path = "{temp_directory / "P"}"\n')

        assert load_config().base_path == str(temp_directory / "P")
