"""Index mutations: per-path primitives, the sanitizer and stage-all."""

import asyncio
import logging
import weakref
from pathlib import Path
from typing import Dict, Iterable, List

from git import GitCommandError

from .error_strategies import translate_git_error
from .status import StageStatus, StatusEntry, WorkdirStatus, compute_status
from .utils import PathLike, open_repository, run_blocking

logger = logging.getLogger('stagesafe.git_sync.index')

_index_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[Path, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)

STAGED_CHANGES = (StageStatus.MATCHES_WORKDIR_MODIFICATION, StageStatus.DIFFERS_FROM_BOTH)

# Index entries are addressed by exact name, never as glob patterns.
LITERAL_PATHS_ENV = {"GIT_LITERAL_PATHSPECS": "1"}


def index_lock(repo_root: PathLike) -> asyncio.Lock:
    """
    Lock guarding the index file of ``repo_root``.

    git rewrites the whole index on every change, so two writers running at
    once would lose one update or trip over index.lock. Every index write in
    this package holds this lock.
    """
    loop = asyncio.get_running_loop()
    locks = _index_locks.setdefault(loop, {})
    key = Path(repo_root).resolve()
    if key not in locks:
        locks[key] = asyncio.Lock()
    return locks[key]


def _reset_index_entry(repo_root: PathLike, filepath: str) -> None:
    repo = open_repository(repo_root)
    try:
        if repo.head.is_valid():
            repo.git.reset("--quiet", "HEAD", "--", filepath, env=LITERAL_PATHS_ENV)
        else:
            # Nothing committed yet: HEAD's version of every path is "absent".
            repo.git.rm("--cached", "--force", "--quiet", "--ignore-unmatch", "--", filepath, env=LITERAL_PATHS_ENV)
    except GitCommandError as e:
        raise translate_git_error(e, "reset_index") from e
    finally:
        repo.close()


def _add_entry(repo_root: PathLike, filepath: str, force: bool) -> None:
    repo = open_repository(repo_root)
    try:
        if force:
            repo.git.add("--force", "--", filepath, env=LITERAL_PATHS_ENV)
        else:
            repo.git.add("--", filepath, env=LITERAL_PATHS_ENV)
    except GitCommandError as e:
        raise translate_git_error(e, "add") from e
    finally:
        repo.close()


def _remove_entry(repo_root: PathLike, filepath: str) -> None:
    repo = open_repository(repo_root)
    try:
        repo.git.rm("--cached", "--force", "--quiet", "--ignore-unmatch", "--", filepath, env=LITERAL_PATHS_ENV)
    except GitCommandError as e:
        raise translate_git_error(e, "remove") from e
    finally:
        repo.close()


async def reset_index(repo_root: PathLike, filepath: str) -> None:
    """Make the index entry of ``filepath`` match HEAD again."""
    async with index_lock(repo_root):
        await run_blocking(_reset_index_entry, repo_root, filepath)


async def add(repo_root: PathLike, filepath: str, force: bool = False) -> None:
    """Stage the on-disk content of ``filepath``."""
    async with index_lock(repo_root):
        await run_blocking(_add_entry, repo_root, filepath, force)


async def remove(repo_root: PathLike, filepath: str) -> None:
    """Drop ``filepath`` from the index, leaving the working directory alone."""
    async with index_lock(repo_root):
        await run_blocking(_remove_entry, repo_root, filepath)


def select_paths_to_reset(entries: Iterable[StatusEntry]) -> List[str]:
    """
    Paths whose index entry a merge would clobber.

    A path is selected when it has staged content that is not committed, or
    when it is gone from disk and the index no longer records it (a staged
    deletion nobody committed).
    """
    selected = []
    for entry in entries:
        staged_content = entry.stage in STAGED_CHANGES
        deleted_and_staged = entry.workdir is WorkdirStatus.ABSENT and entry.stage is StageStatus.ABSENT
        if staged_content or deleted_and_staged:
            selected.append(entry.path)
    return selected


async def sanitize(repo_root: PathLike) -> List[str]:
    """
    Unstage everything an incoming merge would silently discard.

    Every selected path is reset concurrently; the call returns once all
    resets have landed in the index.

    Returns:
        The paths that were reset
    """
    entries = await compute_status(repo_root)
    paths = select_paths_to_reset(entries)
    logger.debug(f"Resetting {len(paths)} index entries before merge")

    if paths:
        await asyncio.gather(*(reset_index(repo_root, path) for path in paths))
    return paths


def _is_mirrored(entry: StatusEntry) -> bool:
    if entry.workdir is WorkdirStatus.ABSENT:
        return entry.stage is StageStatus.ABSENT
    if entry.workdir is WorkdirStatus.IDENTICAL_TO_HEAD:
        return entry.stage is StageStatus.IDENTICAL_TO_HEAD
    return entry.stage is StageStatus.MATCHES_WORKDIR_MODIFICATION


async def add_all(repo_root: PathLike) -> None:
    """
    Mirror the working directory into the index.

    Paths missing from disk are removed from the index, every other path is
    staged with its current content. Paths the index already mirrors are
    left untouched since staging them again would not change anything.
    """
    entries = await compute_status(repo_root)
    pending = [entry for entry in entries if not _is_mirrored(entry)]
    logger.debug(f"Staging {len(pending)} of {len(entries)} paths")

    await asyncio.gather(*(
        remove(repo_root, entry.path)
        if entry.workdir is WorkdirStatus.ABSENT
        else add(repo_root, entry.path, force=True)
        for entry in pending
    ))
