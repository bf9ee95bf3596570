"""Git synchronization that keeps staged work safe across pulls."""

from .changes import has_changes_to_commit, is_work_dir_changed
from .credentials import BasicAuth, auth_for
from .error_types import (
    AuthenticationError,
    CheckoutConflictError,
    ErrorCategory,
    GitOperationError,
    GitSyncError,
    MergeConflictError,
    MergeNotSupportedError,
    NetworkError,
    RefNotFoundError,
    RemoteRejectedError,
    RepositoryCorruptionError,
)
from .history import CommitRecord, Signature, is_local_history_ahead, log, log_messages
from .index import add, add_all, remove, reset_index, sanitize
from .manager import GitSyncManager
from .operations import (
    branch_exists,
    clone,
    commit,
    current_branch,
    delete_remote,
    push,
    remote_set_url,
    rename_branch,
    set_upstream,
)
from .pull import pull, pull_preserving_stage
from .status import HeadStatus, StageStatus, StatusEntry, WorkdirStatus, compute_status, ls_files
from .utils import PullResult, PullState, SyncResult

__all__ = [
    'GitSyncManager',
    'PullResult',
    'PullState',
    'SyncResult',
    'StatusEntry',
    'HeadStatus',
    'WorkdirStatus',
    'StageStatus',
    'CommitRecord',
    'Signature',
    'BasicAuth',
    'auth_for',
    'compute_status',
    'ls_files',
    'sanitize',
    'add_all',
    'add',
    'remove',
    'reset_index',
    'pull',
    'pull_preserving_stage',
    'is_work_dir_changed',
    'has_changes_to_commit',
    'is_local_history_ahead',
    'log',
    'log_messages',
    'commit',
    'push',
    'clone',
    'branch_exists',
    'rename_branch',
    'set_upstream',
    'delete_remote',
    'remote_set_url',
    'current_branch',
    'ErrorCategory',
    'GitSyncError',
    'CheckoutConflictError',
    'MergeConflictError',
    'MergeNotSupportedError',
    'AuthenticationError',
    'NetworkError',
    'RemoteRejectedError',
    'RefNotFoundError',
    'RepositoryCorruptionError',
    'GitOperationError',
]
