"""Project mode detection for code-manager.

Decides whether the working directory is a single git repository, a
multi-root workspace (a directory holding a ``*.code-workspace`` file), or
neither.
"""

import logging
from pathlib import Path
from typing import Optional

from code_manager.adapters.base import FilesystemAdapter, VCSAdapter
from code_manager.exceptions import CodeManagerError, ProjectDetectionError
from code_manager.models.repository_info import ProjectMode

logger = logging.getLogger(__name__)

WORKSPACE_FILE_PATTERN = "*.code-workspace"


class ProjectModeDetector:
    """Classifies a directory as a repository, a workspace, or neither.

    Example:
        >>> detector = ProjectModeDetector(GitAdapter(), LocalFilesystem())
        >>> detector.detect(Path("/path/to/repo"))
        <ProjectMode.SINGLE_REPO: 'single_repo'>
    """

    def __init__(self, vcs: VCSAdapter, fs: FilesystemAdapter):
        self.vcs = vcs
        self.fs = fs

    def detect(self, path: Optional[Path] = None) -> ProjectMode:
        """
        Detect the project mode of path (default: current directory).

        A git working copy wins over workspace files.

        Raises:
            ProjectDetectionError: If an adapter fails; no mode is guessed.
        """
        path = Path(path) if path else Path.cwd()

        try:
            if self.vcs.is_inside_repository(path):
                logger.debug(f"Detected single repository mode in {path}")
                return ProjectMode.SINGLE_REPO

            workspace_files = self.fs.glob(WORKSPACE_FILE_PATTERN, path)
        except (CodeManagerError, OSError) as e:
            raise ProjectDetectionError(f"Failed to detect project mode in {path}: {e}") from e

        if workspace_files:
            logger.debug(f"Detected workspace mode in {path}: {workspace_files}")
            return ProjectMode.WORKSPACE

        logger.debug(f"No repository or workspace found in {path}")
        return ProjectMode.NONE

    def find_workspace_files(self, path: Optional[Path] = None) -> list[Path]:
        """Workspace files in path (default: current directory)."""
        path = Path(path) if path else Path.cwd()
        return self.fs.glob(WORKSPACE_FILE_PATTERN, path)
