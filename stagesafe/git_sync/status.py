"""
Three-way status of every path in a repository.

Each path is compared across the committed snapshot (HEAD), the staged
snapshot (index) and the working directory. The comparison is done on blob
object ids, so two snapshots agree on a path exactly when git would store the
same blob for it. Working-directory content is hashed by git itself, so
`.gitattributes`, eol conversion and clean filters apply as they do on `git add`.
"""

import hashlib
import logging
import os
import stat
import tempfile
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from git import Repo

from .utils import PathLike, open_repository, run_blocking

logger = logging.getLogger('stagesafe.git_sync.status')

PathFilter = Callable[[str], bool]

# Status reads must not take index.lock away from a concurrent index write.
READ_ONLY_ENV = {"GIT_OPTIONAL_LOCKS": "0"}


class HeadStatus(IntEnum):
    """Presence of a path in the last commit."""
    ABSENT = 0
    PRESENT = 1


class WorkdirStatus(IntEnum):
    """On-disk content relative to the last commit."""
    ABSENT = 0
    IDENTICAL_TO_HEAD = 1
    MODIFIED_OR_ADDED = 2


class StageStatus(IntEnum):
    """What the index records for a path."""
    ABSENT = 0
    IDENTICAL_TO_HEAD = 1
    MATCHES_WORKDIR_MODIFICATION = 2
    DIFFERS_FROM_BOTH = 3


# (head, workdir, stage) -> meaning. Every triple git can produce is listed.
STATUS_DESCRIPTIONS: Dict[Tuple[int, int, int], str] = {
    (0, 2, 0): "new, untracked",
    (0, 2, 2): "added, staged",
    (0, 2, 3): "added, staged, with unstaged changes",
    (0, 0, 3): "added, staged, deleted from disk",
    (1, 1, 1): "unmodified",
    (1, 2, 1): "modified, unstaged",
    (1, 2, 2): "modified, staged",
    (1, 2, 3): "modified, staged, with unstaged changes",
    (1, 0, 1): "deleted, unstaged",
    (1, 0, 0): "deleted, staged",
    (1, 2, 0): "deleted, staged, file still on disk",
    (1, 1, 0): "deleted, staged, unchanged content on disk",
    (1, 1, 3): "unmodified on disk, staged content differs",
    (1, 0, 3): "deleted from disk, staged content differs",
}

CLEAN_STATUS = (HeadStatus.PRESENT, WorkdirStatus.IDENTICAL_TO_HEAD, StageStatus.IDENTICAL_TO_HEAD)


@dataclass(frozen=True)
class StatusEntry:
    """Status of one path across HEAD, the index and the working directory."""
    path: str
    head: HeadStatus
    workdir: WorkdirStatus
    stage: StageStatus

    @property
    def codes(self) -> Tuple[int, int, int]:
        return int(self.head), int(self.workdir), int(self.stage)

    @property
    def is_clean(self) -> bool:
        return (self.head, self.workdir, self.stage) == CLEAN_STATUS

    def describe(self) -> str:
        return STATUS_DESCRIPTIONS.get(self.codes, f"unexpected status {self.codes}")


def blob_id(data: bytes) -> str:
    """Object id git assigns to a blob with this content."""
    header = b"blob %d\0" % len(data)
    return hashlib.sha1(header + data).hexdigest()


def _workdir_blob_ids(repo: Repo, repo_root: Path, paths: Iterable[str]) -> Dict[str, str]:
    """Blob ids of the paths present on disk, as `git add` would store them."""
    ids: Dict[str, str] = {}
    regular_files = []
    for path in paths:
        full_path = repo_root / PurePosixPath(path)
        if os.path.islink(full_path):
            ids[path] = blob_id(os.fsencode(os.readlink(full_path)))
        elif full_path.is_file():
            regular_files.append(path)

    if regular_files:
        with tempfile.TemporaryFile() as listing:
            listing.write(b"".join(os.fsencode(path) + b"\n" for path in regular_files))
            listing.seek(0)
            output = repo.git.hash_object("--stdin-paths", istream=listing, env=READ_ONLY_ENV)
        ids.update(zip(regular_files, output.split()))
    return ids


def _untracked_paths(repo: Repo) -> List[str]:
    output = repo.git.ls_files("--others", "--exclude-standard", "-z", env=READ_ONLY_ENV)
    return [path for path in output.split("\0") if path]


def _head_blobs(repo: Repo) -> Dict[str, str]:
    if not repo.head.is_valid():
        return {}
    return {
        item.path: item.hexsha
        for item in repo.head.commit.tree.traverse()
        if item.type == "blob"
    }


def _index_blobs(repo: Repo) -> Dict[str, str]:
    blobs: Dict[str, str] = {}
    # Conflicted paths carry stages 1-3; stage 0 wins when present.
    for (path, stage), entry in sorted(repo.index.entries.items(), key=lambda item: item[0][1]):
        blobs.setdefault(path, entry.hexsha)
    return blobs


def classify(head_oid: Optional[str], workdir_oid: Optional[str], stage_oid: Optional[str]) -> Tuple[HeadStatus, WorkdirStatus, StageStatus]:
    """Turn the three blob ids of a path into status codes."""
    head = HeadStatus.PRESENT if head_oid is not None else HeadStatus.ABSENT

    if workdir_oid is None:
        workdir = WorkdirStatus.ABSENT
    elif workdir_oid == head_oid:
        workdir = WorkdirStatus.IDENTICAL_TO_HEAD
    else:
        workdir = WorkdirStatus.MODIFIED_OR_ADDED

    if stage_oid is None:
        stage = StageStatus.ABSENT
    elif stage_oid == head_oid:
        stage = StageStatus.IDENTICAL_TO_HEAD
    elif stage_oid == workdir_oid:
        stage = StageStatus.MATCHES_WORKDIR_MODIFICATION
    else:
        stage = StageStatus.DIFFERS_FROM_BOTH

    return head, workdir, stage


def status_matrix(repo_root: PathLike, path_filter: Optional[PathFilter] = None) -> List[StatusEntry]:
    """Blocking implementation of :func:`compute_status`."""
    root = Path(repo_root)
    repo = open_repository(root)
    try:
        head = _head_blobs(repo)
        index = _index_blobs(repo)
        untracked = _untracked_paths(repo)

        paths = set(head) | set(index) | set(untracked)
        if path_filter is not None:
            paths = {path for path in paths if path_filter(path)}
        workdir = _workdir_blob_ids(repo, root, paths)

        entries = []
        for path in sorted(paths):
            head_status, workdir_status, stage_status = classify(
                head.get(path), workdir.get(path), index.get(path)
            )
            entries.append(StatusEntry(path, head_status, workdir_status, stage_status))
    finally:
        repo.close()

    if logger.isEnabledFor(logging.DEBUG):
        for entry in entries:
            if not entry.is_clean:
                logger.debug(f"{entry.path}: {entry.codes} {entry.describe()}")
    return entries


async def compute_status(repo_root: PathLike, path_filter: Optional[PathFilter] = None) -> List[StatusEntry]:
    """
    Compute the status matrix of a repository.

    Args:
        repo_root: Repository root directory
        path_filter: Optional predicate over repository-relative paths

    Returns:
        One StatusEntry per path, sorted by path
    """
    return await run_blocking(status_matrix, repo_root, path_filter)


async def build_path_filter(repo_root: PathLike, checked_path: PathLike) -> Optional[PathFilter]:
    """
    Build a filter restricting the status matrix to ``checked_path``.

    A directory matches every path below it, a file matches only itself.

    Raises:
        FileNotFoundError: If ``checked_path`` does not exist under the root
    """
    relative = Path(checked_path).as_posix().strip("/")
    full_path = Path(repo_root) / relative

    stats = await run_blocking(os.stat, full_path)

    if relative in ("", "."):
        return None

    if stat.S_ISDIR(stats.st_mode):
        prefix = f"{relative}/"
        return lambda path: path.startswith(prefix)
    return lambda path: path == relative


async def ls_files(repo_root: PathLike) -> List[StatusEntry]:
    """Full status matrix of the repository."""
    return await compute_status(repo_root)
