#!/usr/bin/env python3
"""
Tests for commit, push, clone and branch/remote bookkeeping.
"""

import sys
import unittest
from pathlib import Path

# Add the project root to the path so we can import stagesafe modules
sys.path.insert(0, str(Path(__file__).parent))

from git import Actor

from repo_fixtures import TEST_AUTHOR, RemoteFixture, git, write_files
from stagesafe.git_sync.error_types import GitOperationError, GitSyncError, RefNotFoundError, RemoteRejectedError
from stagesafe.git_sync.operations import (
    add,
    branch_exists,
    clone,
    commit,
    current_branch,
    delete_remote,
    push,
    remote_set_url,
    remove,
    rename_branch,
    set_upstream,
)


class OperationsTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.fixture = RemoteFixture({"a.txt": "base\n", "b.txt": "b\n"})
        self.work_dir = self.fixture.clone()

    def tearDown(self):
        self.fixture.cleanup()

    def remote_head(self) -> str:
        return git(self.fixture.remote_dir, "rev-parse", "refs/heads/main")


class TestCommitAndPush(OperationsTestCase):

    async def test_commit_records_staged_snapshot(self):
        write_files(self.work_dir, {"a.txt": "solved\n"})
        await add(self.work_dir, "a.txt")

        sha = await commit(self.work_dir, "Solve a", author=TEST_AUTHOR)

        self.assertEqual(sha, git(self.work_dir, "rev-parse", "HEAD"))
        self.assertEqual(git(self.work_dir, "log", "-1", "--format=%s"), "Solve a")
        self.assertEqual(git(self.work_dir, "show", "HEAD:a.txt"), "solved")

    async def test_commit_uses_given_author(self):
        await commit(self.work_dir, "Empty commit", author=Actor("Student", "student@example.com"))
        self.assertEqual(git(self.work_dir, "log", "-1", "--format=%an <%ae>"), "Student <student@example.com>")
        self.assertEqual(git(self.work_dir, "log", "-1", "--format=%cn"), "Student")

    async def test_commit_falls_back_to_configured_identity(self):
        await commit(self.work_dir, "Configured identity")
        self.assertEqual(git(self.work_dir, "log", "-1", "--format=%an"), TEST_AUTHOR.name)

    async def test_remove_unstages_a_path(self):
        await remove(self.work_dir, "b.txt")
        await commit(self.work_dir, "Drop b", author=TEST_AUTHOR)

        self.assertEqual(git(self.work_dir, "ls-files"), "a.txt")
        self.assertTrue((self.work_dir / "b.txt").exists())

    async def test_push_updates_remote_branch(self):
        write_files(self.work_dir, {"c.txt": "new\n"})
        await add(self.work_dir, "c.txt")
        sha = await commit(self.work_dir, "Add c", author=TEST_AUTHOR)

        await push(self.work_dir, ref="main", token="secret-token")

        self.assertEqual(self.remote_head(), sha)

    async def test_push_rejected_when_behind(self):
        self.fixture.commit_upstream({"b.txt": "remote\n"}, "Remote change")
        write_files(self.work_dir, {"a.txt": "local\n"})
        await add(self.work_dir, "a.txt")
        await commit(self.work_dir, "Local change", author=TEST_AUTHOR)

        with self.assertRaises(RemoteRejectedError):
            await push(self.work_dir)


class TestClone(OperationsTestCase):

    async def test_clone(self):
        target = self.fixture.temp_dir / "cloned"

        await clone(target, self.fixture.remote_url, ref="main", token="secret-token")

        self.assertEqual((target / "a.txt").read_text(), "base\n")
        self.assertEqual(await current_branch(target), "main")
        self.assertTrue(await branch_exists(target, "main", remote="origin"))

    async def test_clone_without_checkout(self):
        target = self.fixture.temp_dir / "bare-files"

        await clone(target, self.fixture.remote_url, no_checkout=True)

        self.assertFalse((target / "a.txt").exists())
        self.assertEqual(await current_branch(target), "main")

    async def test_clone_single_branch(self):
        git(self.fixture.upstream_dir, "push", "--quiet", "origin", "main:other")
        target = self.fixture.temp_dir / "single"

        await clone(target, self.fixture.remote_url, single_branch=True)

        self.assertTrue(await branch_exists(target, "main", remote="origin"))
        self.assertFalse(await branch_exists(target, "other", remote="origin"))

    async def test_force_clone_into_populated_directory(self):
        target = self.fixture.temp_dir / "populated"
        write_files(target, {"a.txt": "stale\n", "extra.txt": "keep me\n"})

        await clone(target, self.fixture.remote_url, force=True)

        self.assertEqual((target / "a.txt").read_text(), "base\n")
        self.assertEqual((target / "extra.txt").read_text(), "keep me\n")
        self.assertEqual(await current_branch(target), "main")
        self.assertEqual(git(target, "rev-parse", "HEAD"), self.fixture.initial_commit)
        self.assertEqual(git(target, "config", "branch.main.remote"), "origin")

    async def test_clone_of_missing_remote_fails(self):
        with self.assertRaises(GitSyncError):
            await clone(self.fixture.temp_dir / "nothing", str(self.fixture.temp_dir / "missing.git"))


class TestBranchesAndRemotes(OperationsTestCase):

    async def test_branch_exists(self):
        self.assertTrue(await branch_exists(self.work_dir, "main"))
        self.assertFalse(await branch_exists(self.work_dir, "feature"))
        self.assertTrue(await branch_exists(self.work_dir, "main", remote="origin"))
        self.assertFalse(await branch_exists(self.work_dir, "HEAD", remote="origin"))

    async def test_rename_current_branch(self):
        await rename_branch(self.work_dir, "solutions", "main")

        self.assertEqual(await current_branch(self.work_dir), "solutions")
        self.assertFalse(await branch_exists(self.work_dir, "main"))

    async def test_rename_other_branch_and_check_it_out(self):
        git(self.work_dir, "branch", "draft")

        await rename_branch(self.work_dir, "final", "draft", checkout=True)

        self.assertTrue(await branch_exists(self.work_dir, "final"))
        self.assertEqual(await current_branch(self.work_dir), "final")

    async def test_rename_without_checkout(self):
        git(self.work_dir, "branch", "draft")

        await rename_branch(self.work_dir, "final", "draft", checkout=False)

        self.assertEqual(await current_branch(self.work_dir), "main")

    async def test_rename_missing_branch(self):
        with self.assertRaises(RefNotFoundError):
            await rename_branch(self.work_dir, "new", "missing")

    async def test_set_upstream(self):
        git(self.work_dir, "branch", "--unset-upstream", "main")

        await set_upstream(self.work_dir, "main", remote="origin")

        self.assertEqual(git(self.work_dir, "config", "branch.main.remote"), "origin")
        self.assertEqual(git(self.work_dir, "config", "branch.main.merge"), "refs/heads/main")

    async def test_delete_remote(self):
        await delete_remote(self.work_dir, "origin")

        self.assertEqual(git(self.work_dir, "remote"), "")
        self.assertFalse(await branch_exists(self.work_dir, "main", remote="origin"))

    async def test_delete_missing_remote(self):
        with self.assertRaises(GitOperationError):
            await delete_remote(self.work_dir, "missing")

    async def test_remote_set_url_updates_existing_remote(self):
        await remote_set_url(self.work_dir, "https://example.com/course.git")
        self.assertEqual(git(self.work_dir, "remote", "get-url", "origin"), "https://example.com/course.git")

    async def test_remote_set_url_adds_missing_remote(self):
        await remote_set_url(self.work_dir, "https://example.com/mirror.git", remote="mirror")
        self.assertEqual(git(self.work_dir, "remote", "get-url", "mirror"), "https://example.com/mirror.git")

    async def test_current_branch_when_detached(self):
        git(self.work_dir, "checkout", "--quiet", "--detach")
        self.assertIsNone(await current_branch(self.work_dir))


if __name__ == "__main__":
    unittest.main(verbosity=2)
