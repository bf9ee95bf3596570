"""Predicates answering "is there uncommitted work here?"."""

import asyncio
import logging
from typing import Iterable, Optional

from .status import build_path_filter, compute_status
from .utils import PathLike

logger = logging.getLogger('stagesafe.git_sync.changes')


async def is_work_dir_changed(repo_root: PathLike, checked_path: Optional[PathLike] = None) -> bool:
    """
    Check whether anything under ``checked_path`` differs from HEAD.

    Any path that is not present-and-identical in all three snapshots counts:
    new files, edits, deletions and staged-only changes.

    Args:
        repo_root: Repository root directory
        checked_path: Optional file or directory relative to the root

    Raises:
        FileNotFoundError: If ``checked_path`` does not exist
    """
    path_filter = None
    if checked_path is not None:
        path_filter = await build_path_filter(repo_root, checked_path)

    entries = await compute_status(repo_root, path_filter)
    return any(not entry.is_clean for entry in entries)


async def has_changes_to_commit(repo_root: PathLike, checked_paths: Iterable[PathLike]) -> bool:
    """True if any of ``checked_paths`` holds uncommitted work."""
    checked_paths = list(checked_paths)
    results = await asyncio.gather(*(
        is_work_dir_changed(repo_root, checked_path) for checked_path in checked_paths
    ))
    changed = [str(path) for path, result in zip(checked_paths, results) if result]
    logger.debug(f"Changed paths among {len(checked_paths)} checked: {changed}")
    return any(results)
