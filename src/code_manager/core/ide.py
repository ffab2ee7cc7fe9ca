"""IDE launching and the hook that opens worktrees after an operation."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from code_manager.core.hooks import Hook, HookContext
from code_manager.exceptions import IDEError, IDENotInstalledError, UnsupportedIDEError

logger = logging.getLogger(__name__)


class IDE:
    """An editor started as ``<binary> <path>``."""

    def __init__(self, name: str, binary: Optional[str] = None):
        self.name = name
        self.binary = binary or name

    def is_installed(self) -> bool:
        """Check if the IDE binary is on PATH."""
        return shutil.which(self.binary) is not None

    def open(self, path: Path) -> None:
        if not self.is_installed():
            raise IDENotInstalledError(f"{self.name} is not installed ('{self.binary}' not on PATH)")
        try:
            subprocess.Popen(
                [self.binary, str(path)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise IDEError(f"Failed to start {self.name}: {e}") from e


class DummyIDE(IDE):
    """Records opened paths instead of launching anything."""

    def __init__(self, name: str = "dummy"):
        super().__init__(name)
        self.opened: list[Path] = []

    def is_installed(self) -> bool:
        return True

    def open(self, path: Path) -> None:
        self.opened.append(Path(path))


class IDEManager:
    """Looks up IDEs by name and opens paths in them."""

    def __init__(self) -> None:
        self._ides: dict[str, IDE] = {}
        for ide in (IDE("cursor"), IDE("vscode", binary="code"), DummyIDE()):
            self.register(ide)

    def register(self, ide: IDE) -> None:
        self._ides[ide.name] = ide

    def get(self, name: str) -> IDE:
        try:
            return self._ides[name]
        except KeyError:
            supported = ", ".join(sorted(self._ides))
            raise UnsupportedIDEError(
                f"Unsupported IDE '{name}' (supported: {supported})"
            ) from None

    @property
    def names(self) -> list[str]:
        return sorted(self._ides)

    def open(self, name: str, path: Path) -> None:
        """
        Open path in the named IDE.

        Raises:
            UnsupportedIDEError: If no IDE has that name.
            IDENotInstalledError: If the IDE binary is missing.
        """
        ide = self.get(name)
        logger.info(f"Opening {path} in {ide.name}")
        ide.open(path)


class IDEOpeningHook(Hook):
    """Opens the resulting path in an IDE when the caller asked for one.

    Reads the IDE name from ``ctx.parameters["ide_name"]`` and the path from
    the operation result.
    """

    name = "ide-opening"
    priority = 1000

    def __init__(self, ide_manager: IDEManager):
        self.ide_manager = ide_manager

    def post_execute(self, ctx: HookContext) -> None:
        ide_name = ctx.parameters.get("ide_name")
        path = ctx.results.get("result")
        if not ide_name or not path:
            return
        self.ide_manager.open(ide_name, Path(path))
