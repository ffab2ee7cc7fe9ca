"""Repository URL canonicalization.

Clones, remotes and workspace folders all refer to repositories by URL, in
either SSH (``git@host:owner/name.git``) or HTTP(S) form. The registry keys
repositories by a single identity derived from either form::

    >>> normalize_repository_url("https://github.com/octocat/Hello-World.git")
    'github.com/octocat/Hello-World'
    >>> normalize_repository_url("git@github.com:octocat/Hello-World.git")
    'github.com/octocat/Hello-World'
"""

from urllib.parse import urlparse

from code_manager.exceptions import (
    EmptyRepositoryURLError,
    InvalidRepositoryURLError,
    UnsupportedURLFormatError,
)

GIT_SUFFIX = ".git"


def _split_ssh(url: str) -> tuple[str, str] | None:
    """Split ``user@host:path`` into (host, path), or None if malformed."""
    if "@" not in url or ":" not in url or url.startswith("http"):
        return None
    parts = url.split(":")
    if len(parts) != 2:
        return None
    user_host = parts[0].split("@")
    if len(user_host) != 2:
        return None
    return user_host[1], parts[1]


def normalize_repository_url(raw: str) -> str:
    """
    Canonicalize a repository URL into its registry identity.

    Args:
        raw: SSH or HTTP(S) repository URL.

    Returns:
        Identity of the form ``host/path``.

    Raises:
        EmptyRepositoryURLError: If raw is empty.
        InvalidRepositoryURLError: If an HTTP(S) URL cannot be parsed.
        UnsupportedURLFormatError: For any other form.
    """
    if not raw:
        raise EmptyRepositoryURLError("repository URL cannot be empty")

    url = raw[: -len(GIT_SUFFIX)] if raw.endswith(GIT_SUFFIX) else raw

    ssh = _split_ssh(url)
    if ssh is not None:
        host, path = ssh
        return f"{host}/{path}"

    if url.startswith("http"):
        try:
            parsed = urlparse(url)
            host = parsed.hostname
        except ValueError as e:
            raise InvalidRepositoryURLError(f"invalid repository URL '{raw}': {e}") from e
        if not host:
            raise InvalidRepositoryURLError(f"invalid repository URL '{raw}': missing host")
        return f"{host}/{parsed.path.lstrip('/')}"

    raise UnsupportedURLFormatError(f"unsupported repository URL format: '{raw}'")


def extract_host(url: str) -> str:
    """Host of an SSH or HTTP(S) remote URL, or an empty string."""
    if url.endswith(GIT_SUFFIX):
        url = url[: -len(GIT_SUFFIX)]

    ssh = _split_ssh(url)
    if ssh is not None:
        return ssh[0]

    if url.startswith("http"):
        parts = url.split("/")
        if len(parts) >= 3:
            return parts[2]

    return ""


def build_remote_url(origin_url: str, owner: str, identity: str) -> str:
    """
    Build the URL of a fork of the repository.

    The fork lives on the same host as origin and uses the same protocol.

    Args:
        origin_url: URL of the origin remote.
        owner: Account owning the fork, used as the remote name.
        identity: Normalized identity of the repository.

    Raises:
        InvalidRepositoryURLError: If no host can be extracted from origin_url.
    """
    host = extract_host(origin_url)
    if not host:
        raise InvalidRepositoryURLError(
            f"failed to extract host from origin URL: {origin_url}"
        )

    name = identity.rsplit("/", 1)[-1]
    if origin_url.startswith("git@") or origin_url.startswith("ssh://"):
        return f"git@{host}:{owner}/{name}.git"
    return f"https://{host}/{owner}/{name}.git"
