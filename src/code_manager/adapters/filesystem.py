"""Local filesystem adapter."""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from code_manager.exceptions import FilesystemError
from code_manager.utils.io import atomic_write_text

logger = logging.getLogger(__name__)


class LocalFilesystem:
    """Filesystem primitives backed by pathlib."""

    def mkdir_all(self, path: Path, mode: int = 0o755) -> None:
        """Create path and any missing parents."""
        try:
            Path(path).mkdir(mode=mode, parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Failed to create directory {path}: {e}") from e

    def glob(self, pattern: str, root: Optional[Path] = None) -> list[Path]:
        """Files matching pattern in root (default: current directory), sorted."""
        base = Path(root) if root else Path.cwd()
        try:
            return sorted(p for p in base.glob(pattern) if p.is_file())
        except OSError as e:
            raise FilesystemError(f"Failed to glob '{pattern}' in {base}: {e}") from e

    def is_path_within_base(self, base: Path, candidate: Path) -> bool:
        """
        Check whether candidate lies inside base.

        Both paths are resolved first so symlinks and ``..`` cannot escape.

        Raises:
            FilesystemError: If either path cannot be resolved.
        """
        try:
            resolved_base = Path(base).expanduser().resolve()
            resolved_candidate = Path(candidate).expanduser().resolve()
        except (OSError, RuntimeError) as e:
            raise FilesystemError(f"Failed to resolve {candidate} against {base}: {e}") from e

        return resolved_candidate == resolved_base or resolved_candidate.is_relative_to(
            resolved_base
        )

    def exists(self, path: Path) -> bool:
        return os.path.lexists(path)

    def remove_all(self, path: Path) -> None:
        """Remove a file or a directory tree. Missing paths are ignored."""
        target = Path(path)
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif os.path.lexists(target):
                target.unlink()
        except OSError as e:
            raise FilesystemError(f"Failed to remove {target}: {e}") from e

    def remove_empty_dir(self, path: Path) -> bool:
        """Remove path if it is an empty directory. Returns True if removed."""
        try:
            Path(path).rmdir()
        except OSError:
            return False
        return True

    def write_text(self, path: Path, data: str) -> None:
        try:
            atomic_write_text(path, data, perms=0o644)
        except OSError as e:
            raise FilesystemError(f"Failed to write {path}: {e}") from e
