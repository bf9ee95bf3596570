"""Commit history of refs and divergence between a branch and its remote."""

import logging
from dataclasses import dataclass
from typing import List, Tuple

from git import GitCommandError
from git.exc import BadName
from git.objects import Commit

from .error_strategies import translate_git_error
from .error_types import RefNotFoundError
from .utils import PathLike, open_repository, run_blocking

logger = logging.getLogger('stagesafe.git_sync.history')


@dataclass(frozen=True)
class Signature:
    """Who made a commit and when."""
    name: str
    email: str
    timestamp: int
    timezone_offset: int


@dataclass(frozen=True)
class CommitRecord:
    """The recorded data of one commit."""
    oid: str
    message: str
    tree: str
    parents: Tuple[str, ...]
    author: Signature
    committer: Signature


def _record(commit: Commit) -> CommitRecord:
    return CommitRecord(
        oid=commit.hexsha,
        message=commit.message,
        tree=commit.tree.hexsha,
        parents=tuple(parent.hexsha for parent in commit.parents),
        author=Signature(
            commit.author.name, commit.author.email, commit.authored_date, commit.author_tz_offset
        ),
        committer=Signature(
            commit.committer.name, commit.committer.email, commit.committed_date, commit.committer_tz_offset
        ),
    )


def _read_log(repo_root: PathLike, ref: str) -> List[CommitRecord]:
    repo = open_repository(repo_root)
    try:
        start = repo.commit(ref)
        return [_record(commit) for commit in repo.iter_commits(start)]
    except (BadName, ValueError) as e:
        raise RefNotFoundError(f"Unknown ref: {ref}", operation="log") from e
    except GitCommandError as e:
        raise translate_git_error(e, "log") from e
    finally:
        repo.close()


async def log(repo_root: PathLike, ref: str = "main") -> List[CommitRecord]:
    """Commits reachable from ``ref``, newest first."""
    return await run_blocking(_read_log, repo_root, ref)


async def log_messages(repo_root: PathLike, ref: str = "main") -> List[str]:
    """Trimmed commit messages reachable from ``ref``, newest first."""
    return [record.message.strip() for record in await log(repo_root, ref)]


async def is_local_history_ahead(repo_root: PathLike, ref: str, remote: str = "origin") -> bool:
    """
    Check whether ``ref`` and ``remote/ref`` record different histories.

    Whole histories are compared, not just the tips: the answer is True
    whenever the commits, their order or their recorded data differ.
    """
    local_log = await log(repo_root, ref)
    remote_log = await log(repo_root, f"{remote}/{ref}")
    diverged = local_log != remote_log
    logger.debug(
        f"{ref}: {len(local_log)} local vs {len(remote_log)} {remote} commits, "
        f"{'differs' if diverged else 'identical'}"
    )
    return diverged
