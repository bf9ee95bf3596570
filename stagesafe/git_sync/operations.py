"""Commit, push, clone and branch/remote bookkeeping for a working copy."""

import logging
from pathlib import Path
from typing import Optional

from git import Actor, GitCommandError, Repo

from .credentials import auth_for, remote_env
from .error_strategies import translate_git_error
from .error_types import GitOperationError, RefNotFoundError
from .index import add, index_lock, remove, reset_index
from .performance_logger import get_performance_logger
from .utils import PathLike, open_repository, run_blocking

logger = logging.getLogger('stagesafe.git_sync.operations')

__all__ = [
    "add",
    "branch_exists",
    "clone",
    "commit",
    "current_branch",
    "delete_remote",
    "push",
    "remote_set_url",
    "remove",
    "rename_branch",
    "reset_index",
    "set_upstream",
]


def _commit(repo_root: PathLike, message: str, author: Optional[Actor]) -> str:
    repo = open_repository(repo_root)
    try:
        new_commit = repo.index.commit(message, author=author, committer=author)
        logger.info(f"Committed {new_commit.hexsha[:7]} ({new_commit.summary})")
        return new_commit.hexsha
    finally:
        repo.close()


async def commit(repo_root: PathLike, message: str, author: Optional[Actor] = None) -> str:
    """
    Record the staged snapshot as a new commit on the current branch.

    Args:
        repo_root: Repository root directory
        message: Commit message
        author: Author and committer; git's configured identity if None

    Returns:
        Object id of the new commit
    """
    async with index_lock(repo_root):
        return await run_blocking(_commit, repo_root, message, author)


def _push(repo_root: PathLike, ref: str, remote: str, token: Optional[str]) -> None:
    repo = open_repository(repo_root)
    try:
        repo.git.push(remote, f"refs/heads/{ref}:refs/heads/{ref}", env=remote_env(auth_for(token)))
    except GitCommandError as e:
        raise translate_git_error(e, "push") from e
    finally:
        repo.close()


async def push(repo_root: PathLike, ref: str = "main", token: Optional[str] = None, remote: str = "origin") -> None:
    """
    Push the local ``ref`` to the branch of the same name on ``remote``.

    Raises:
        RemoteRejectedError: The remote refused the update (not a fast-forward)
        AuthenticationError: The token was missing or refused
    """
    with get_performance_logger().time_operation("push", context={"remote": remote, "ref": ref}):
        await run_blocking(_push, repo_root, ref, remote, token)
    logger.info(f"Pushed {ref} to {remote}")


def _clone_into_existing(
    target: Path, url: str, ref: str, env: dict, no_checkout: bool, single_branch: bool
) -> None:
    repo = Repo.init(target, mkdir=True)
    try:
        if "origin" in [existing.name for existing in repo.remotes]:
            repo.remote("origin").set_url(url)
        else:
            repo.create_remote("origin", url)

        if single_branch:
            repo.git.fetch("origin", f"+refs/heads/{ref}:refs/remotes/origin/{ref}", env=env)
        else:
            repo.git.fetch("origin", env=env)

        if no_checkout:
            repo.git.branch("--force", ref, f"origin/{ref}")
            repo.git.symbolic_ref("HEAD", f"refs/heads/{ref}")
        else:
            # Files already on disk are replaced by the fetched versions.
            repo.git.checkout("--force", "-B", ref, f"origin/{ref}")
        repo.git.branch("--set-upstream-to", f"origin/{ref}", ref)
    finally:
        repo.close()


def _clone(
    repo_root: PathLike, url: str, ref: str, token: Optional[str],
    no_checkout: bool, single_branch: bool, force: bool,
) -> None:
    target = Path(repo_root)
    env = remote_env(auth_for(token))
    try:
        if force and target.exists() and any(target.iterdir()):
            _clone_into_existing(target, url, ref, env, no_checkout, single_branch)
            return

        repo = Repo.clone_from(
            url, target, env=env,
            branch=ref, single_branch=single_branch, no_checkout=no_checkout,
        )
        repo.close()
    except GitCommandError as e:
        raise translate_git_error(e, "clone") from e


async def clone(
    repo_root: PathLike,
    url: str,
    ref: str = "main",
    token: Optional[str] = None,
    no_checkout: bool = False,
    single_branch: bool = False,
    force: bool = False,
) -> None:
    """
    Clone ``url`` into ``repo_root`` with ``ref`` checked out.

    Args:
        repo_root: Target directory
        url: Remote repository URL, registered as ``origin``
        ref: Branch to check out
        token: Optional token presented as oauth2 basic credentials
        no_checkout: Point HEAD at ``ref`` without writing any files
        single_branch: Fetch only ``ref``
        force: Allow a non-empty target; existing files are overwritten
    """
    with get_performance_logger().time_operation("clone", context={"ref": ref}, log_level=logging.INFO):
        await run_blocking(_clone, repo_root, url, ref, token, no_checkout, single_branch, force)


def _branch_exists(repo_root: PathLike, ref: str, remote: Optional[str]) -> bool:
    repo = open_repository(repo_root)
    try:
        if remote is None:
            return ref in [head.name for head in repo.heads]

        prefix = f"refs/remotes/{remote}/"
        names = [
            reference.path[len(prefix):]
            for reference in repo.references
            if reference.path.startswith(prefix)
        ]
        return ref != "HEAD" and ref in names
    finally:
        repo.close()


async def branch_exists(repo_root: PathLike, ref: str, remote: Optional[str] = None) -> bool:
    """Check for a local branch, or a remote-tracking one when ``remote`` is given."""
    return await run_blocking(_branch_exists, repo_root, ref, remote)


def _rename_branch(repo_root: PathLike, ref: str, oldref: str, checkout: bool) -> None:
    repo = open_repository(repo_root)
    try:
        old_head = next((head for head in repo.heads if head.name == oldref), None)
        if old_head is None:
            raise RefNotFoundError(f"Branch {oldref} not found", operation="rename_branch")

        new_head = old_head.rename(ref)
        if checkout:
            repo.head.set_reference(new_head)
    except GitCommandError as e:
        raise translate_git_error(e, "rename_branch") from e
    finally:
        repo.close()


async def rename_branch(repo_root: PathLike, ref: str, oldref: str, checkout: bool = True) -> None:
    """
    Rename branch ``oldref`` to ``ref``.

    With ``checkout`` HEAD is pointed at the renamed branch; the working
    directory is not touched.
    """
    await run_blocking(_rename_branch, repo_root, ref, oldref, checkout)


def _set_upstream(repo_root: PathLike, ref: str, remote: str) -> None:
    repo = open_repository(repo_root)
    try:
        with repo.config_writer() as writer:
            section = f'branch "{ref}"'
            writer.set_value(section, "remote", remote)
            writer.set_value(section, "merge", f"refs/heads/{ref}")
        logger.debug(f"{ref} now tracks {remote}/{ref}")
    finally:
        repo.close()


async def set_upstream(repo_root: PathLike, ref: str, remote: str = "origin") -> None:
    """Make ``ref`` track the branch of the same name on ``remote``."""
    await run_blocking(_set_upstream, repo_root, ref, remote)


def _delete_remote(repo_root: PathLike, remote: str) -> None:
    repo = open_repository(repo_root)
    try:
        if remote not in [existing.name for existing in repo.remotes]:
            raise GitOperationError(f"Remote {remote} is not configured", operation="delete_remote")
        repo.git.remote("remove", remote)
    except GitCommandError as e:
        raise translate_git_error(e, "delete_remote") from e
    finally:
        repo.close()


async def delete_remote(repo_root: PathLike, remote: str = "origin") -> None:
    """Remove ``remote`` together with its remote-tracking branches."""
    await run_blocking(_delete_remote, repo_root, remote)


def _remote_set_url(repo_root: PathLike, url: str, remote: str) -> None:
    repo = open_repository(repo_root)
    try:
        if remote in [existing.name for existing in repo.remotes]:
            repo.remote(remote).set_url(url)
        else:
            repo.create_remote(remote, url)
            logger.debug(f"Added remote {remote}")
    except GitCommandError as e:
        raise translate_git_error(e, "remote_set_url") from e
    finally:
        repo.close()


async def remote_set_url(repo_root: PathLike, url: str, remote: str = "origin") -> None:
    """Point ``remote`` at ``url``, adding the remote when it does not exist."""
    await run_blocking(_remote_set_url, repo_root, url, remote)


def _current_branch(repo_root: PathLike) -> Optional[str]:
    repo = open_repository(repo_root)
    try:
        if repo.head.is_detached:
            return None
        return repo.head.reference.name
    finally:
        repo.close()


async def current_branch(repo_root: PathLike) -> Optional[str]:
    """Name of the checked-out branch, or None when HEAD is detached."""
    return await run_blocking(_current_branch, repo_root)
