"""
Pulling a branch from its remote.

A pull is fetch, merge into the local branch, then a non-forced checkout of
the result. The checkout refuses to overwrite working-directory content that
differs from what the index expects; :func:`pull_preserving_stage` treats that
refusal as the expected outcome when a foreground process is still writing
into the tree, and keeps the on-disk files while the branch pointer moves on.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from git import Actor, GitCommandError, Head, Repo
from git.exc import BadName
from git.objects import Commit

from .credentials import BasicAuth, auth_for, remote_env
from .error_strategies import translate_git_error
from .error_types import (
    CheckoutConflictError,
    GitOperationError,
    MergeConflictError,
    MergeNotSupportedError,
    RefNotFoundError,
)
from .index import index_lock, sanitize
from .performance_logger import get_performance_logger
from .utils import PathLike, PullResult, PullState, open_repository, run_blocking

logger = logging.getLogger('stagesafe.git_sync.pull')

EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


@dataclass
class MergeOutcome:
    """What merging the fetched branch did to the local branch."""
    kind: str  # "up-to-date", "fast-forward", "merge" or "created"
    head_before: Optional[str]
    head_after: str


def _find_head(repo: Repo, ref: str) -> Optional[Head]:
    for head in repo.heads:
        if head.name == ref:
            return head
    return None


def _current_branch_name(repo: Repo) -> Optional[str]:
    if repo.head.is_detached:
        return None
    return repo.head.reference.name


def _fetch(repo_root: PathLike, ref: str, remote: str, auth: Optional[BasicAuth], single_branch: bool) -> None:
    repo = open_repository(repo_root)
    try:
        if single_branch:
            refspec = f"+refs/heads/{ref}:refs/remotes/{remote}/{ref}"
            repo.git.fetch(remote, refspec, env=remote_env(auth))
        else:
            repo.git.fetch(remote, env=remote_env(auth))
    except GitCommandError as e:
        raise translate_git_error(e, "fetch") from e
    finally:
        repo.close()


def _create_merge_commit(repo: Repo, ours: Commit, theirs: Commit, message: str, author: Optional[Actor]) -> Commit:
    if not repo.merge_base(ours, theirs):
        raise MergeNotSupportedError(
            f"Cannot merge {theirs.hexsha[:7]} into {ours.hexsha[:7]}: histories are unrelated",
            operation="merge",
        )

    status, stdout, stderr = repo.git.merge_tree(
        "--write-tree", "--name-only", "--no-messages", ours.hexsha, theirs.hexsha,
        with_extended_output=True, with_exceptions=False,
    )
    lines = stdout.splitlines()
    if status == 1:
        conflicts = sorted({line for line in lines[1:] if line})
        raise MergeConflictError(
            f"Merge conflict in {', '.join(conflicts)}", filepaths=conflicts, operation="merge", stderr=stderr
        )
    if status != 0 or not lines:
        raise GitOperationError(f"merge-tree failed: {stderr.strip()}", operation="merge", status=status, stderr=stderr)

    signature = author or Actor.committer(repo.config_reader())
    return Commit.create_from_tree(
        repo,
        repo.tree(lines[0]),
        message,
        parent_commits=[ours, theirs],
        head=False,
        author=signature,
        committer=signature,
    )


def _merge(repo_root: PathLike, ref: str, remote: str, author: Optional[Actor]) -> MergeOutcome:
    repo = open_repository(repo_root)
    try:
        try:
            theirs = repo.commit(f"refs/remotes/{remote}/{ref}")
        except (BadName, ValueError) as e:
            raise RefNotFoundError(f"Remote-tracking branch {remote}/{ref} not found", operation="merge") from e

        local_head = _find_head(repo, ref)
        ours = local_head.commit if local_head is not None else None

        if ours is None:
            kind, target = "created", theirs
        elif ours == theirs or repo.is_ancestor(theirs, ours):
            return MergeOutcome("up-to-date", ours.hexsha, ours.hexsha)
        elif repo.is_ancestor(ours, theirs):
            kind, target = "fast-forward", theirs
        else:
            message = f"Merge branch '{remote}/{ref}' into {ref}"
            kind, target = "merge", _create_merge_commit(repo, ours, theirs, message, author)

        if local_head is None:
            repo.create_head(ref, target)
        else:
            local_head.set_commit(target, logmsg=f"pull: {kind}")

        logger.debug(f"{ref}: {kind} {ours.hexsha[:7] if ours else '(none)'} -> {target.hexsha[:7]}")
        return MergeOutcome(kind, ours.hexsha if ours else None, target.hexsha)
    except GitCommandError as e:
        raise translate_git_error(e, "merge") from e
    finally:
        repo.close()


def _checkout(repo_root: PathLike, ref: str, old_sha: Optional[str], new_sha: str) -> None:
    repo = open_repository(repo_root)
    try:
        if _current_branch_name(repo) != ref:
            repo.git.checkout(ref)
        else:
            # HEAD already names the moved branch; carry index and working tree
            # from the old commit to the new one. read-tree aborts without
            # touching anything when a local change would be overwritten.
            # Stale stat data would make unchanged files look modified to it.
            repo.git.update_index("-q", "--refresh", with_exceptions=False)
            repo.git.read_tree("-m", "-u", old_sha or EMPTY_TREE_SHA, new_sha)
    except GitCommandError as e:
        raise translate_git_error(e, "checkout") from e
    finally:
        repo.close()


def _branch_commit(repo_root: PathLike, ref: str) -> Optional[str]:
    repo = open_repository(repo_root)
    try:
        head = _find_head(repo, ref)
        return head.commit.hexsha if head is not None else None
    finally:
        repo.close()


async def pull(
    repo_root: PathLike,
    ref: str = "main",
    token: Optional[str] = None,
    author: Optional[Actor] = None,
    single_branch: bool = True,
    remote: str = "origin",
) -> PullResult:
    """
    Fetch ``ref`` from ``remote``, merge it into the local branch and check it out.

    Args:
        repo_root: Repository root directory
        ref: Branch to pull
        token: Optional token presented as oauth2 basic credentials
        author: Identity for a merge commit; git's configured committer if None
        single_branch: Fetch only ``ref`` instead of every remote branch
        remote: Remote name

    Returns:
        PullResult tagged MERGED

    Raises:
        CheckoutConflictError: The merged commit would overwrite local changes.
            The branch pointer has already moved when this is raised.
        MergeConflictError: Local and remote changed the same content
        GitSyncError: Any other git failure (auth, network, missing ref, ...)
    """
    auth = auth_for(token)
    perf = get_performance_logger()

    with perf.time_operation("fetch", context={"remote": remote, "ref": ref}):
        await run_blocking(_fetch, repo_root, ref, remote, auth, single_branch)

    async with index_lock(repo_root):
        outcome = await run_blocking(_merge, repo_root, ref, remote, author)
        await run_blocking(_checkout, repo_root, ref, outcome.head_before, outcome.head_after)

    return PullResult(
        state=PullState.MERGED,
        ref=ref,
        message=f"{ref}: {outcome.kind}",
        head_before=outcome.head_before,
        head_after=outcome.head_after,
    )


async def pull_preserving_stage(
    repo_root: PathLike,
    ref: str = "main",
    token: Optional[str] = None,
    author: Optional[Actor] = None,
    single_branch: bool = True,
    remote: str = "origin",
) -> PullResult:
    """
    Pull without losing files a foreground process has written or staged.

    Staged changes are unstaged first so the merge cannot discard them, then
    the branch is pulled. If the checkout would overwrite local files the
    conflict is swallowed: the branch pointer has moved to the fetched history
    while the conflicting files keep their on-disk content. Callers must stage
    those files again (add_all) before the next commit.

    Only CheckoutConflictError is swallowed; every other failure propagates.

    Returns:
        PullResult tagged MERGED or CONFLICT_SWALLOWED
    """
    state = PullState.START
    logger.debug(f"pull {ref}: {state.value}")
    try:
        reset_paths = await sanitize(repo_root)
        state = PullState.SANITIZED
        logger.debug(f"pull {ref}: {state.value} ({len(reset_paths)} paths reset)")

        head_before = await run_blocking(_branch_commit, repo_root, ref)
        state = PullState.FETCHING
        logger.debug(f"pull {ref}: {state.value}")

        try:
            result = await pull(
                repo_root, ref=ref, token=token, author=author, single_branch=single_branch, remote=remote
            )
        except CheckoutConflictError as e:
            head_after = await run_blocking(_branch_commit, repo_root, ref)
            logger.warning(
                f"Kept local content of {len(e.filepaths)} conflicting path(s) while pulling {ref}: "
                f"{', '.join(e.filepaths) or 'unknown paths'}"
            )
            result = PullResult(
                state=PullState.CONFLICT_SWALLOWED,
                ref=ref,
                message=f"{ref}: updated, local changes kept",
                head_before=head_before,
                head_after=head_after,
                conflicts=e.filepaths,
            )
    except Exception as e:
        logger.debug(f"pull {ref}: {PullState.FAILED.value} after {state.value} ({type(e).__name__})")
        raise

    result.reset_paths = reset_paths
    logger.debug(f"pull {ref}: {result.state.value} -> {PullState.DONE.value}")
    return result
