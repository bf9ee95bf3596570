"""
stagesafe - keeps a git working copy in sync with its remote without losing
files that another process is still writing or staging.
"""

__version__ = "1.0.0"
__description__ = "Git working-copy synchronization that preserves staged work"

from .assignments import AssignmentClient
from .config import SyncConfig, load_configuration, validate_configuration
from .git_sync import GitSyncManager
from .logging_setup import setup_logging

__all__ = [
    "AssignmentClient",
    "GitSyncManager",
    "SyncConfig",
    "load_configuration",
    "setup_logging",
    "validate_configuration",
]
