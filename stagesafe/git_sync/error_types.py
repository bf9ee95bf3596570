"""Error types and categorization for Git synchronization operations."""

from enum import Enum
from typing import Iterable, List, Optional


class ErrorCategory(Enum):
    """Categories of Git errors, used to pick the exception raised to callers."""
    CHECKOUT_CONFLICT = "checkout_conflict"
    MERGE_CONFLICT = "merge_conflict"
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    REMOTE_REJECTED = "remote_rejected"
    REF_NOT_FOUND = "ref_not_found"
    REPOSITORY_CORRUPTION = "repository_corruption"
    UNKNOWN = "unknown"


class GitSyncError(Exception):
    """Base exception for git sync operations."""

    category = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        command: Optional[str] = None,
        status: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.command = command
        self.status = status
        self.stderr = stderr


class CheckoutConflictError(GitSyncError):
    """Checking out a commit would overwrite local working-directory changes."""

    category = ErrorCategory.CHECKOUT_CONFLICT

    def __init__(self, message: str, filepaths: Iterable[str] = (), **kwargs):
        super().__init__(message, **kwargs)
        self.filepaths: List[str] = list(filepaths)


class MergeConflictError(GitSyncError):
    """Local and remote histories changed the same content."""

    category = ErrorCategory.MERGE_CONFLICT

    def __init__(self, message: str, filepaths: Iterable[str] = (), **kwargs):
        super().__init__(message, **kwargs)
        self.filepaths: List[str] = list(filepaths)


class MergeNotSupportedError(GitSyncError):
    """The histories share no common ancestor."""

    category = ErrorCategory.MERGE_CONFLICT


class AuthenticationError(GitSyncError):
    """The remote refused the supplied credentials (or none were supplied)."""

    category = ErrorCategory.AUTHENTICATION


class NetworkError(GitSyncError):
    """The remote could not be reached."""

    category = ErrorCategory.NETWORK


class RemoteRejectedError(GitSyncError):
    """The remote rejected a push, usually because it is not a fast-forward."""

    category = ErrorCategory.REMOTE_REJECTED


class RefNotFoundError(GitSyncError):
    """A branch or revision does not exist."""

    category = ErrorCategory.REF_NOT_FOUND


class RepositoryCorruptionError(GitSyncError):
    """The local repository is missing or damaged."""

    category = ErrorCategory.REPOSITORY_CORRUPTION


class GitOperationError(GitSyncError):
    """Git failed for a reason that matched no known category."""

    category = ErrorCategory.UNKNOWN
