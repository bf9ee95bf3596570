"""
Real git repositories for the test suite.

Every fixture lives in a temporary directory: a bare ``remote.git``, a seed
clone that made the first commit, and any number of working clones.
"""

import subprocess
import tempfile
import shutil
from pathlib import Path
from typing import Dict, Optional

from git import Actor

TEST_AUTHOR = Actor("Test User", "test@example.com")


def git(cwd: Path, *args: str) -> str:
    """Run a git command in ``cwd`` and return its stripped stdout."""
    result = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=True)
    return result.stdout.strip()


def configure_identity(repo_dir: Path) -> None:
    git(repo_dir, "config", "user.name", TEST_AUTHOR.name)
    git(repo_dir, "config", "user.email", TEST_AUTHOR.email)
    git(repo_dir, "config", "commit.gpgsign", "false")
    git(repo_dir, "config", "core.autocrlf", "false")


def write_files(repo_dir: Path, files: Dict[str, Optional[str]]) -> None:
    """Write ``files`` under ``repo_dir``; a None content deletes the file."""
    for relative, content in files.items():
        path = repo_dir / relative
        if content is None:
            path.unlink()
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


class RemoteFixture:
    """A bare remote on branch ``main`` seeded with ``initial_files``."""

    def __init__(self, initial_files: Optional[Dict[str, str]] = None):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.remote_dir = self.temp_dir / "remote.git"
        self.remote_url = str(self.remote_dir)

        self.remote_dir.mkdir()
        git(self.remote_dir, "init", "--bare", "--initial-branch=main")

        self.upstream_dir = self.temp_dir / "upstream"
        git(self.temp_dir, "clone", "--quiet", self.remote_url, str(self.upstream_dir))
        configure_identity(self.upstream_dir)
        git(self.upstream_dir, "checkout", "--quiet", "-B", "main")

        self.initial_commit = self.commit_upstream(
            initial_files or {"README.md": "# assignments\n"}, "Initial commit"
        )

    def commit_upstream(self, files: Dict[str, Optional[str]], message: str) -> str:
        """Commit ``files`` from the upstream clone, push and return the commit id."""
        if git(self.upstream_dir, "branch", "--remotes"):
            git(self.upstream_dir, "pull", "--quiet", "--ff-only", "origin", "main")
        write_files(self.upstream_dir, files)
        git(self.upstream_dir, "add", "--all")
        git(self.upstream_dir, "commit", "--quiet", "-m", message)
        git(self.upstream_dir, "push", "--quiet", "origin", "main")
        return git(self.upstream_dir, "rev-parse", "HEAD")

    def clone(self, name: str = "work") -> Path:
        """A fresh working clone of the remote."""
        work_dir = self.temp_dir / name
        git(self.temp_dir, "clone", "--quiet", self.remote_url, str(work_dir))
        configure_identity(work_dir)
        return work_dir

    def cleanup(self) -> None:
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)


def init_repository(repo_dir: Path, files: Optional[Dict[str, str]] = None) -> str:
    """A standalone repository on ``main`` with one commit of ``files``."""
    repo_dir.mkdir(parents=True, exist_ok=True)
    git(repo_dir, "init", "--quiet", "--initial-branch=main")
    configure_identity(repo_dir)
    write_files(repo_dir, files or {"README.md": "# test\n"})
    git(repo_dir, "add", "--all")
    git(repo_dir, "commit", "--quiet", "-m", "Initial commit")
    return git(repo_dir, "rev-parse", "HEAD")
