"""Branch name validation and ``remote:branch`` parsing."""

import re

from code_manager.exceptions import InvalidBranchNameError
from code_manager.models.status import DEFAULT_REMOTE

MAX_BRANCH_LENGTH = 255

_INVALID_CHARS = re.compile(r"[\x00-\x1F\x7F ~^:?*\[\]#]")
_CONSECUTIVE_DOTS = re.compile(r"\.\.+")
_CONSECUTIVE_SLASHES = re.compile(r"/+")
_EDGE_CHARS = "/._-"


def sanitize_branch_name(name: str) -> str:
    """
    Turn a user-supplied branch name into one git accepts.

    Names that cannot be repaired are rejected outright: the empty string,
    a lone ``@``, anything containing ``@{`` and anything with a backslash.
    Otherwise control characters, whitespace and ``~^:?*[]#`` become ``_``,
    runs of dots become ``_``, runs of slashes collapse to one, and
    leading and trailing ``/._-`` are stripped. The result never starts
    with a dash, so git cannot mistake it for an option.

    Args:
        name: Branch name as typed by the user.

    Returns:
        Sanitized branch name.

    Raises:
        InvalidBranchNameError: If the name is rejected or sanitizes to nothing.
    """
    if not name:
        raise InvalidBranchNameError("branch name cannot be empty")
    if name == "@":
        raise InvalidBranchNameError("branch name cannot be the single character @")
    if "@{" in name:
        raise InvalidBranchNameError("branch name cannot contain the sequence @{")
    if "\\" in name:
        raise InvalidBranchNameError("branch name cannot contain backslash")

    sanitized = _INVALID_CHARS.sub("_", name)
    sanitized = _CONSECUTIVE_DOTS.sub("_", sanitized)
    sanitized = _CONSECUTIVE_SLASHES.sub("/", sanitized)
    sanitized = sanitized.strip(_EDGE_CHARS)

    if len(sanitized) > MAX_BRANCH_LENGTH:
        sanitized = sanitized[:MAX_BRANCH_LENGTH].rstrip(_EDGE_CHARS)

    if not sanitized:
        raise InvalidBranchNameError(
            f"branch name '{name}' becomes empty after sanitization"
        )
    return sanitized


def parse_branch_ref(ref: str) -> tuple[str, str]:
    """
    Split a ``remote:branch`` reference.

    A missing or empty remote means ``origin``.

    Raises:
        InvalidBranchNameError: If the reference or its branch part is empty.
    """
    if not ref:
        raise InvalidBranchNameError("branch reference cannot be empty")

    remote, sep, branch = ref.partition(":")
    if not sep:
        return DEFAULT_REMOTE, ref
    if not branch:
        raise InvalidBranchNameError(f"branch name cannot be empty in '{ref}'")
    return remote or DEFAULT_REMOTE, branch
