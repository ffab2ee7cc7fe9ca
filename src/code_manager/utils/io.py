"""File helpers for the status registry.

The registry is rewritten wholesale on every change, so writes go through
atomic_write_text(): the new content lands in a sibling temp file that is
renamed over the destination. Concurrent cm processes coordinate with
advisory locks: readers take a shared lock on the status file itself,
writers an exclusive lock on a sidecar ``.lock`` file.
"""
from __future__ import annotations

import logging
import os
import sys
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

if sys.platform == "win32":
    import msvcrt

    def _acquire(handle: IO, exclusive: bool) -> None:
        msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK if exclusive else msvcrt.LK_NBLCK, 1)

    def _release(handle: IO) -> None:
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)

else:
    import fcntl

    def _acquire(handle: IO, exclusive: bool) -> None:
        fcntl.flock(handle, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)

    def _release(handle: IO) -> None:
        fcntl.flock(handle, fcntl.LOCK_UN)


@contextmanager
def _locked(handle: IO, exclusive: bool) -> Iterator[None]:
    # Filesystems without lock support degrade to unlocked access.
    try:
        _acquire(handle, exclusive)
    except OSError as e:
        logger.debug(f"Locking {handle.name} failed, continuing unlocked: {e}")
        yield
        return

    try:
        yield
    finally:
        try:
            _release(handle)
        except OSError as e:
            logger.debug(f"Unlocking {handle.name} failed: {e}")


@contextmanager
def shared_file_lock(file_handle: IO) -> Iterator[None]:
    """Hold a shared lock on an already open file.

    Usage:
        with open(path) as f, shared_file_lock(f):
            data = json.load(f)
    """
    with _locked(file_handle, exclusive=False):
        yield


@contextmanager
def exclusive_file_lock(lock_path: str | Path) -> Iterator[None]:
    """Hold an exclusive lock on lock_path, creating the file if needed.

    The lock file stays on disk afterwards.
    """
    path = Path(lock_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a+") as handle, _locked(handle, exclusive=True):
        yield


def atomic_write_text(path: str | Path, data: str, perms: int = 0o600) -> None:
    """
    Replace the content of path in one step.

    The temp file gets its permissions before the rename, so the destination
    never exists with a wider mode than perms. On any failure the temp file
    is removed and the previous content of path is untouched.

    Args:
        path: Destination file; missing parent directories are created.
        data: Text to write, encoded as UTF-8.
        perms: Mode of the written file.
    """
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        try:
            os.chmod(tmp_name, perms)
        except PermissionError:
            logger.warning(f"Could not set permissions {oct(perms)} on {dest}")
        os.replace(tmp_name, dest)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
