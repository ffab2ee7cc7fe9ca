"""
Exception hierarchy for code-manager.

Every error raised by the orchestration engine derives from CodeManagerError,
grouped by kind:

- ValidationError: malformed input (URLs, branch names, paths)
- ConflictError: something already exists
- AdapterError: a git, filesystem or IDE call failed
- RegistryError: the status store could not be read or updated
- HookError: a hook failed or could not be (un)registered
"""

from typing import Any, Optional


class CodeManagerError(Exception):
    """Base exception for code-manager operations."""

    hook_error: Optional[Exception] = None


# Validation


class ValidationError(CodeManagerError):
    """Raised when user input is rejected."""


class EmptyRepositoryURLError(ValidationError):
    """Raised when a repository URL is empty."""


class UnsupportedURLFormatError(ValidationError):
    """Raised when a repository URL is neither SSH nor HTTP(S)."""


class InvalidRepositoryURLError(ValidationError):
    """Raised when an HTTP(S) repository URL cannot be parsed."""


class InvalidBranchNameError(ValidationError):
    """Raised when a branch name cannot be sanitized into a valid one."""


class InvalidBasePathError(ValidationError):
    """Raised when the configured base path is unusable."""


class NoProjectDetectedError(ValidationError):
    """Raised when the working directory is neither a repository nor a workspace."""


class WorkspaceModeNotSupportedError(ValidationError):
    """Raised when an operation is not available in workspace mode."""


class MultipleWorkspaceFilesError(ValidationError):
    """Raised when several workspace files are found and none was chosen."""


class InvalidWorkspaceFileError(ValidationError):
    """Raised when a workspace file cannot be parsed."""


class InitCancelledError(ValidationError):
    """Raised when the user declines a reset during init."""


class InvalidRepositoryNameError(ValidationError):
    """Raised when a repository name given for deletion is unusable."""


class DeletionCancelledError(ValidationError):
    """Raised when the user declines a repository deletion."""


# Conflict


class ConflictError(CodeManagerError):
    """Raised when the target of an operation already exists."""


class RepositoryAlreadyTrackedError(ConflictError):
    """Raised when cloning a repository the registry already tracks."""


class RepositoryAlreadyExistsError(ConflictError):
    """Raised when adding a duplicate identity to the registry."""


class WorktreeAlreadyExistsError(ConflictError):
    """Raised when a worktree for the branch is already tracked."""


class WorktreeDirectoryExistsError(ConflictError):
    """Raised when the worktree target directory is already on disk."""


class AlreadyInitializedError(ConflictError):
    """Raised when init runs twice without reset."""


class RepositoryInWorkspaceError(ConflictError):
    """Raised when deleting a repository a workspace still refers to."""


# Adapter failures


class AdapterError(CodeManagerError):
    """Raised when an external collaborator (git, filesystem, IDE) fails."""


class GitAdapterError(AdapterError):
    """Raised when a git command fails."""


class FilesystemError(AdapterError):
    """Raised when a filesystem primitive fails."""


class ProjectDetectionError(AdapterError):
    """Raised when the project mode cannot be determined."""


class DefaultBranchDetectionError(AdapterError):
    """Raised when the remote default branch cannot be detected."""


class DirectoryCreationError(AdapterError):
    """Raised when a target directory cannot be created."""


class CloneError(AdapterError):
    """Raised when cloning a repository fails."""


class WorktreeCreationError(AdapterError):
    """Raised when git refuses to create a worktree."""


class WorktreeRemovalError(AdapterError):
    """Raised when git refuses to remove a worktree."""


class OriginRemoteNotFoundError(AdapterError):
    """Raised when the repository has no usable origin remote."""


class BranchNotFoundOnRemoteError(AdapterError):
    """Raised when a branch does not exist on the given remote."""


class IDEError(AdapterError):
    """Base exception for IDE launching."""


class UnsupportedIDEError(IDEError):
    """Raised when no IDE is registered under the given name."""


class IDENotInstalledError(IDEError):
    """Raised when the IDE binary is not on PATH."""


# Registry failures


class RegistryError(CodeManagerError):
    """Raised when the status registry cannot satisfy a request."""


class StatusStoreError(RegistryError):
    """Raised when the status file cannot be read or written."""


class RegistrationError(RegistryError):
    """Raised when a freshly cloned repository cannot be registered."""


class RepositoryNotFoundError(RegistryError):
    """Raised when an identity is not tracked."""


class WorktreeNotFoundError(RegistryError):
    """Raised when a branch has no tracked worktree."""


# Hooks


class HookError(CodeManagerError):
    """Base exception for hook registration and execution."""


class HookAlreadyRegisteredError(HookError):
    """Raised when a hook name is already taken for an operation and kind."""


class HookNotFoundError(HookError):
    """Raised when unregistering a hook that does not exist."""


class HookExecutionError(HookError):
    """Raised when a hook fails during a pipeline stage.

    Attributes:
        operation: Operation the hook ran for.
        stage: Pipeline stage ("pre", "post" or "error").
        hook_name: Name of the failing hook.
        result: Operation result when the body had already succeeded.
    """

    def __init__(
        self,
        operation: str,
        stage: str,
        hook_name: str,
        cause: Exception,
        result: Any = None,
    ):
        self.operation = operation
        self.stage = stage
        self.hook_name = hook_name
        self.cause = cause
        self.result = result
        super().__init__(
            f"{stage}-hook '{hook_name}' failed for {operation}: {cause}"
        )


class OperationFaultError(CodeManagerError):
    """Raised in place of an unexpected exception escaping an operation body."""

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(
            f"{operation} failed unexpectedly: {type(cause).__name__}: {cause}"
        )
