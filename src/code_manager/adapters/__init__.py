"""
External collaborators of the orchestration engine.

- git: GitPython-backed version-control adapter
- filesystem: pathlib-backed filesystem adapter
"""

from code_manager.adapters.base import FilesystemAdapter, VCSAdapter
from code_manager.adapters.filesystem import LocalFilesystem
from code_manager.adapters.git import GitAdapter

__all__ = [
    "FilesystemAdapter",
    "GitAdapter",
    "LocalFilesystem",
    "VCSAdapter",
]
