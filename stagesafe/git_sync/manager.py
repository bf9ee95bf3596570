"""Git synchronization manager bound to one working copy."""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..config import SyncConfig
from .changes import has_changes_to_commit, is_work_dir_changed
from .history import is_local_history_ahead
from .index import add_all
from .operations import branch_exists, clone, commit, current_branch, push, remote_set_url, set_upstream
from .pull import pull_preserving_stage
from .status import compute_status
from .utils import PathLike, PullResult, SyncResult


class GitSyncManager:
    """
    Runs the synchronization cycle of a working copy against its remote.

    Every call reads repository state afresh; nothing is cached between
    steps, so a foreground process may keep writing into the tree.
    """

    def __init__(self, config: SyncConfig, repo_root: Optional[PathLike] = None):
        """
        Initialize GitSyncManager with configuration.

        Args:
            config: Configuration with ref, remote, token and commit identity
            repo_root: Repository root; ``config.repo_dir`` if None
        """
        self.config = config
        self.repo_root = Path(repo_root) if repo_root is not None else config.repo_dir
        self.logger = logging.getLogger('stagesafe.git_sync')

    @property
    def ref(self) -> str:
        return self.config.default_ref

    @property
    def remote(self) -> str:
        return self.config.remote_name

    async def clone(self, force: bool = False) -> None:
        """Clone ``config.remote_url`` into the repository root as remote ``origin``."""
        if not self.config.remote_url:
            raise ValueError("Cannot clone repository: no remote URL configured")
        await clone(self.repo_root, self.config.remote_url, ref=self.ref, token=self.config.token, force=force)

    async def ensure_remote(self) -> None:
        """Point the configured remote at ``config.remote_url`` and track it."""
        if self.config.remote_url:
            await remote_set_url(self.repo_root, self.config.remote_url, remote=self.remote)
        if await branch_exists(self.repo_root, self.ref):
            await set_upstream(self.repo_root, self.ref, remote=self.remote)

    async def pull(self) -> PullResult:
        """Pull the configured branch, keeping local files on conflict."""
        return await pull_preserving_stage(
            self.repo_root,
            ref=self.ref,
            token=self.config.token,
            author=self.config.author,
            remote=self.remote,
        )

    async def has_changes(self, checked_paths: Optional[Iterable[PathLike]] = None) -> bool:
        if checked_paths is None:
            return await is_work_dir_changed(self.repo_root)
        return await has_changes_to_commit(self.repo_root, checked_paths)

    async def synchronize(self, message: str, checked_paths: Optional[Iterable[PathLike]] = None) -> SyncResult:
        """
        Pull, stage everything, commit if anything changed, then push.

        Args:
            message: Commit message used when there is something to commit
            checked_paths: Paths whose changes warrant a commit; the whole tree if None

        Returns:
            SyncResult with the pull outcome, the new commit id if any and
            whether the branch was pushed
        """
        extra = {'operation': 'synchronize'}

        pull_result = await self.pull()
        self.logger.info(f"Pulled {self.ref}: {pull_result.state.value}", extra=extra)

        await add_all(self.repo_root)
        result = SyncResult(pull=pull_result)

        if await self.has_changes(checked_paths):
            result.commit = await commit(self.repo_root, message, author=self.config.author)
        else:
            self.logger.info("Nothing to commit", extra=extra)

        if await is_local_history_ahead(self.repo_root, self.ref, remote=self.remote):
            await push(self.repo_root, ref=self.ref, token=self.config.token, remote=self.remote)
            result.pushed = True
        else:
            self.logger.info(f"{self.ref} is in sync with {self.remote}", extra=extra)

        return result

    async def get_repository_status(self) -> Dict[str, Any]:
        """
        Get the current status of the repository.

        Returns:
            Dictionary with the current branch and every path that is not clean
        """
        entries = await compute_status(self.repo_root)
        return {
            'repo_root': str(self.repo_root),
            'branch': await current_branch(self.repo_root),
            'remote': self.remote,
            'changed': {entry.path: entry.describe() for entry in entries if not entry.is_clean},
        }
