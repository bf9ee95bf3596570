#!/usr/bin/env python3
"""
Tests for pulling a branch while a foreground process keeps writing files.

A bare remote, an upstream clone that publishes commits and a working clone
are created per test.
"""

import sys
import unittest
from pathlib import Path

# Add the project root to the path so we can import stagesafe modules
sys.path.insert(0, str(Path(__file__).parent))

from repo_fixtures import TEST_AUTHOR, RemoteFixture, git, write_files
from stagesafe.git_sync.error_types import (
    CheckoutConflictError,
    GitSyncError,
    MergeConflictError,
    RefNotFoundError,
)
from stagesafe.git_sync.performance_logger import get_performance_logger
from stagesafe.git_sync.pull import pull, pull_preserving_stage
from stagesafe.git_sync.status import compute_status
from stagesafe.git_sync.utils import PullState


class PullTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.fixture = RemoteFixture({"a.txt": "base\n", "b.txt": "b\n"})
        self.work_dir = self.fixture.clone()

    def tearDown(self):
        self.fixture.cleanup()

    def local_head(self) -> str:
        return git(self.work_dir, "rev-parse", "refs/heads/main")


class TestPullPreservingStage(PullTestCase):
    """Pull protocol with the one swallowed failure."""

    async def test_fast_forward(self):
        upstream = self.fixture.commit_upstream({"b.txt": "b from remote\n"}, "Update b")

        result = await pull_preserving_stage(self.work_dir, ref="main", token="secret-token")

        self.assertEqual(result.state, PullState.MERGED)
        self.assertEqual(result.head_before, self.fixture.initial_commit)
        self.assertEqual(result.head_after, upstream)
        self.assertTrue(result.head_moved)
        self.assertEqual(self.local_head(), upstream)
        self.assertEqual((self.work_dir / "b.txt").read_text(), "b from remote\n")

    async def test_fetch_is_timed(self):
        await pull_preserving_stage(self.work_dir)

        timing = get_performance_logger().last_timing("fetch")
        self.assertIsNotNone(timing)
        self.assertTrue(timing.success)
        self.assertEqual(timing.context, {"remote": "origin", "ref": "main"})
        self.assertIn(timing, get_performance_logger().timings())

    async def test_already_up_to_date(self):
        result = await pull_preserving_stage(self.work_dir)

        self.assertEqual(result.state, PullState.MERGED)
        self.assertFalse(result.head_moved)
        self.assertEqual(result.reset_paths, [])

    async def test_staged_edit_conflicting_with_remote_is_kept(self):
        write_files(self.work_dir, {"a.txt": "local work\n"})
        git(self.work_dir, "add", "a.txt")
        upstream = self.fixture.commit_upstream({"a.txt": "remote work\n"}, "Update a")

        result = await pull_preserving_stage(self.work_dir)

        self.assertEqual(result.state, PullState.CONFLICT_SWALLOWED)
        self.assertTrue(result.conflict_swallowed)
        self.assertIn("a.txt", result.conflicts)
        self.assertEqual(result.reset_paths, ["a.txt"])
        self.assertEqual(result.head_after, upstream)
        self.assertEqual(self.local_head(), upstream)
        self.assertEqual((self.work_dir / "a.txt").read_text(), "local work\n")

    async def test_staged_edit_elsewhere_survives_fast_forward(self):
        write_files(self.work_dir, {"a.txt": "local work\n"})
        git(self.work_dir, "add", "a.txt")
        upstream = self.fixture.commit_upstream({"b.txt": "b from remote\n"}, "Update b")

        result = await pull_preserving_stage(self.work_dir)

        self.assertEqual(result.state, PullState.MERGED)
        self.assertEqual(self.local_head(), upstream)
        self.assertEqual((self.work_dir / "a.txt").read_text(), "local work\n")
        self.assertEqual((self.work_dir / "b.txt").read_text(), "b from remote\n")

        codes = {entry.path: entry.codes for entry in await compute_status(self.work_dir)}
        self.assertEqual(codes["a.txt"], (1, 2, 1))

    async def test_untracked_file_colliding_with_remote_is_kept(self):
        write_files(self.work_dir, {"c.txt": "written locally\n"})
        upstream = self.fixture.commit_upstream({"c.txt": "added remotely\n"}, "Add c")

        result = await pull_preserving_stage(self.work_dir)

        self.assertEqual(result.state, PullState.CONFLICT_SWALLOWED)
        self.assertEqual(self.local_head(), upstream)
        self.assertEqual((self.work_dir / "c.txt").read_text(), "written locally\n")

    async def test_unknown_remote_branch_propagates(self):
        with self.assertRaises(RefNotFoundError) as context:
            await pull_preserving_stage(self.work_dir, ref="does-not-exist")

        self.assertIsInstance(context.exception, GitSyncError)
        self.assertEqual(self.local_head(), self.fixture.initial_commit)

    async def test_unknown_remote_propagates(self):
        with self.assertRaises(GitSyncError):
            await pull_preserving_stage(self.work_dir, remote="nowhere")


class TestPull(PullTestCase):
    """Plain pull without sanitizing or swallowing."""

    async def test_checkout_conflict_raises_after_branch_moved(self):
        write_files(self.work_dir, {"a.txt": "local work\n"})
        git(self.work_dir, "add", "a.txt")
        upstream = self.fixture.commit_upstream({"a.txt": "remote work\n"}, "Update a")

        with self.assertRaises(CheckoutConflictError) as context:
            await pull(self.work_dir)

        self.assertIn("a.txt", context.exception.filepaths)
        self.assertEqual(self.local_head(), upstream)
        self.assertEqual((self.work_dir / "a.txt").read_text(), "local work\n")

    async def test_diverged_histories_are_merged(self):
        write_files(self.work_dir, {"c.txt": "local commit\n"})
        git(self.work_dir, "add", "c.txt")
        git(self.work_dir, "commit", "--quiet", "-m", "Local commit")
        local_commit = self.local_head()
        upstream = self.fixture.commit_upstream({"b.txt": "b from remote\n"}, "Update b")

        result = await pull(self.work_dir, author=TEST_AUTHOR)

        self.assertEqual(result.state, PullState.MERGED)
        parents = git(self.work_dir, "log", "-1", "--format=%P", "main").split()
        self.assertEqual(parents, [local_commit, upstream])
        self.assertEqual((self.work_dir / "b.txt").read_text(), "b from remote\n")
        self.assertEqual((self.work_dir / "c.txt").read_text(), "local commit\n")
        self.assertEqual(git(self.work_dir, "log", "-1", "--format=%an", "main"), TEST_AUTHOR.name)

    async def test_conflicting_commits_raise_merge_conflict(self):
        write_files(self.work_dir, {"a.txt": "local commit\n"})
        git(self.work_dir, "commit", "--quiet", "-am", "Local edit")
        local_commit = self.local_head()
        self.fixture.commit_upstream({"a.txt": "remote commit\n"}, "Remote edit")

        with self.assertRaises(MergeConflictError) as context:
            await pull(self.work_dir)

        self.assertEqual(context.exception.filepaths, ["a.txt"])
        self.assertEqual(self.local_head(), local_commit)

    async def test_pull_all_branches(self):
        result = await pull(self.work_dir, single_branch=False)
        self.assertEqual(result.state, PullState.MERGED)


if __name__ == "__main__":
    unittest.main(verbosity=2)
