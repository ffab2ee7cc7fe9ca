"""Reading and writing ``*.code-workspace`` files."""

import json
from pathlib import Path

from code_manager.exceptions import InvalidWorkspaceFileError

WORKSPACE_SUFFIX = ".code-workspace"


def load_workspace_folders(workspace_file: Path) -> list[Path]:
    """
    Folders listed in a workspace file, resolved against its directory.

    Raises:
        InvalidWorkspaceFileError: If the file is unreadable or has no folders list.
    """
    try:
        data = json.loads(Path(workspace_file).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidWorkspaceFileError(f"Failed to read workspace file {workspace_file}: {e}") from e

    folders = data.get("folders") if isinstance(data, dict) else None
    if not isinstance(folders, list):
        raise InvalidWorkspaceFileError(f"Workspace file {workspace_file} has no 'folders' list")

    base = Path(workspace_file).parent
    paths = []
    for folder in folders:
        if not isinstance(folder, dict) or not folder.get("path"):
            continue
        path = Path(folder["path"]).expanduser()
        paths.append(path if path.is_absolute() else (base / path).resolve())
    return paths


def branch_workspace_path(workspaces_dir: Path, workspace_file: Path, branch: str) -> Path:
    """Where the workspace file for branch is written, e.g. ``app-feature-x.code-workspace``."""
    stem = Path(workspace_file).name[: -len(WORKSPACE_SUFFIX)]
    return Path(workspaces_dir) / f"{stem}-{branch.replace('/', '-')}{WORKSPACE_SUFFIX}"


def render_workspace(folders: list[tuple[str, Path]]) -> str:
    """Workspace file content for (name, path) folders."""
    data = {"folders": [{"name": name, "path": str(path)} for name, path in folders]}
    return json.dumps(data, indent=2) + "\n"
