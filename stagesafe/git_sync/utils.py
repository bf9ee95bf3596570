"""Utility classes and functions for Git synchronization."""

import asyncio
import functools
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, TypeVar, Union

from git import Repo

T = TypeVar('T')

PathLike = Union[str, Path]


class PullState(Enum):
    """States of the pull protocol."""
    START = "start"
    SANITIZED = "sanitized"
    FETCHING = "fetching"
    MERGED = "merged"
    CONFLICT_SWALLOWED = "conflict_swallowed"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PullResult:
    """Result of a pull operation."""
    state: PullState
    ref: str
    message: str
    head_before: Optional[str] = None
    head_after: Optional[str] = None
    conflicts: List[str] = field(default_factory=list)
    reset_paths: List[str] = field(default_factory=list)

    @property
    def conflict_swallowed(self) -> bool:
        return self.state is PullState.CONFLICT_SWALLOWED

    @property
    def head_moved(self) -> bool:
        return self.head_before != self.head_after


def open_repository(repo_root: PathLike) -> Repo:
    """Open the repository rooted exactly at ``repo_root``."""
    return Repo(Path(repo_root), search_parent_directories=False)


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Run a blocking GitPython call on the default executor.

    The event loop stays free to schedule other tasks while git works,
    so independent operations can be issued together with asyncio.gather.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


@dataclass
class SyncResult:
    """Result of one full synchronization cycle."""
    pull: PullResult
    commit: Optional[str] = None
    pushed: bool = False

    @property
    def committed(self) -> bool:
        return self.commit is not None
