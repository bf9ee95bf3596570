"""Mapping of git failures to the exception types raised by stagesafe."""

import logging
import re
from typing import Dict, List, Optional, Type

from git import GitCommandError

from .error_types import (
    AuthenticationError,
    CheckoutConflictError,
    ErrorCategory,
    GitOperationError,
    GitSyncError,
    MergeConflictError,
    NetworkError,
    RefNotFoundError,
    RemoteRejectedError,
    RepositoryCorruptionError,
)

logger = logging.getLogger('stagesafe.git_sync.errors')


def build_error_patterns() -> Dict[str, ErrorCategory]:
    """
    Build mapping of stderr patterns to categories.

    Patterns are tried in insertion order, so a pattern must come before any
    more generic one that also matches its messages.
    """
    return {
        # Checkout conflicts
        "would be overwritten by": ErrorCategory.CHECKOUT_CONFLICT,
        "not uptodate. cannot merge": ErrorCategory.CHECKOUT_CONFLICT,
        "untracked working tree file": ErrorCategory.CHECKOUT_CONFLICT,

        # Authentication errors
        "authentication failed": ErrorCategory.AUTHENTICATION,
        "invalid username or password": ErrorCategory.AUTHENTICATION,
        "could not read username": ErrorCategory.AUTHENTICATION,
        "could not read password": ErrorCategory.AUTHENTICATION,
        "terminal prompts disabled": ErrorCategory.AUTHENTICATION,
        "permission denied": ErrorCategory.AUTHENTICATION,
        "returned error: 401": ErrorCategory.AUTHENTICATION,
        "returned error: 403": ErrorCategory.AUTHENTICATION,

        # Push rejections
        "[rejected]": ErrorCategory.REMOTE_REJECTED,
        "non-fast-forward": ErrorCategory.REMOTE_REJECTED,
        "failed to push some refs": ErrorCategory.REMOTE_REJECTED,

        # Network errors
        "could not resolve host": ErrorCategory.NETWORK,
        "connection refused": ErrorCategory.NETWORK,
        "connection timed out": ErrorCategory.NETWORK,
        "network is unreachable": ErrorCategory.NETWORK,
        "no route to host": ErrorCategory.NETWORK,
        "temporary failure in name resolution": ErrorCategory.NETWORK,
        "operation timed out": ErrorCategory.NETWORK,
        "unable to access": ErrorCategory.NETWORK,

        # Missing refs
        "couldn't find remote ref": ErrorCategory.REF_NOT_FOUND,
        "unknown revision": ErrorCategory.REF_NOT_FOUND,
        "bad revision": ErrorCategory.REF_NOT_FOUND,
        "ambiguous argument": ErrorCategory.REF_NOT_FOUND,
        "not a valid ref": ErrorCategory.REF_NOT_FOUND,
        "remote branch": ErrorCategory.REF_NOT_FOUND,

        # Merge conflicts
        "automatic merge failed": ErrorCategory.MERGE_CONFLICT,
        "merge conflict": ErrorCategory.MERGE_CONFLICT,
        "unmerged paths": ErrorCategory.MERGE_CONFLICT,

        # Repository corruption
        "not a git repository": ErrorCategory.REPOSITORY_CORRUPTION,
        "does not appear to be a git repository": ErrorCategory.REPOSITORY_CORRUPTION,
        "corrupt": ErrorCategory.REPOSITORY_CORRUPTION,
        "invalid object": ErrorCategory.REPOSITORY_CORRUPTION,
        "loose object": ErrorCategory.REPOSITORY_CORRUPTION,
    }


ERROR_CLASSES: Dict[ErrorCategory, Type[GitSyncError]] = {
    ErrorCategory.CHECKOUT_CONFLICT: CheckoutConflictError,
    ErrorCategory.MERGE_CONFLICT: MergeConflictError,
    ErrorCategory.AUTHENTICATION: AuthenticationError,
    ErrorCategory.NETWORK: NetworkError,
    ErrorCategory.REMOTE_REJECTED: RemoteRejectedError,
    ErrorCategory.REF_NOT_FOUND: RefNotFoundError,
    ErrorCategory.REPOSITORY_CORRUPTION: RepositoryCorruptionError,
    ErrorCategory.UNKNOWN: GitOperationError,
}

_ERROR_PATTERNS = build_error_patterns()

_ENTRY_PATTERN = re.compile(r"(?:Entry|working tree file) '([^']+)'")


def categorize_error(error_message: str) -> ErrorCategory:
    """
    Categorize a git error based on its message.

    Args:
        error_message: The error text (usually git's stderr)

    Returns:
        ErrorCategory enum value
    """
    if not error_message:
        return ErrorCategory.UNKNOWN

    error_lower = error_message.lower()
    for pattern, category in _ERROR_PATTERNS.items():
        if pattern in error_lower:
            logger.debug(f"Categorized error as {category}: pattern '{pattern}' found")
            return category

    return ErrorCategory.UNKNOWN


def extract_conflicting_paths(stderr: str) -> List[str]:
    """Pull the file names out of git's "would be overwritten" messages."""
    paths = _ENTRY_PATTERN.findall(stderr)

    # checkout lists files tab-indented between the header and "Please commit ..."
    for line in stderr.splitlines():
        if line.startswith("\t"):
            candidate = line.strip()
            if candidate:
                paths.append(candidate)

    return sorted(set(paths))


def _stderr_text(error: GitCommandError) -> str:
    stderr = error.stderr
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    stderr = stderr or ""
    # GitPython decorates the captured stream as "\n  stderr: '...'"
    prefix = "\n  stderr: '"
    if stderr.startswith(prefix) and stderr.endswith("'"):
        stderr = stderr[len(prefix):-1]
    return stderr


def translate_git_error(error: GitCommandError, operation: Optional[str] = None) -> GitSyncError:
    """
    Build the stagesafe exception matching a failed git command.

    The returned exception keeps the command, exit status and stderr of the
    original error; callers raise it ``from`` the original.
    """
    stderr = _stderr_text(error)
    category = categorize_error(stderr or str(error))
    error_class = ERROR_CLASSES[category]

    command = error.command
    if isinstance(command, (list, tuple)):
        command = " ".join(str(part) for part in command)

    summary = stderr.strip().splitlines()[-1] if stderr.strip() else str(error)
    message = f"{operation} failed: {summary}" if operation else summary

    kwargs = dict(operation=operation, command=command, status=error.status, stderr=stderr)
    if error_class in (CheckoutConflictError, MergeConflictError):
        return error_class(message, filepaths=extract_conflicting_paths(stderr), **kwargs)
    return error_class(message, **kwargs)
