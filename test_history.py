#!/usr/bin/env python3
"""
Tests for commit history reading and divergence detection.
"""

import sys
import unittest
from pathlib import Path

# Add the project root to the path so we can import stagesafe modules
sys.path.insert(0, str(Path(__file__).parent))

from repo_fixtures import TEST_AUTHOR, RemoteFixture, git, write_files
from stagesafe.git_sync.error_types import RefNotFoundError
from stagesafe.git_sync.history import is_local_history_ahead, log, log_messages


class TestHistory(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.fixture = RemoteFixture({"a.txt": "base\n"})
        self.work_dir = self.fixture.clone()

    def tearDown(self):
        self.fixture.cleanup()

    def commit_locally(self, content: str, message: str) -> str:
        write_files(self.work_dir, {"a.txt": content})
        git(self.work_dir, "commit", "--quiet", "-am", message)
        return git(self.work_dir, "rev-parse", "HEAD")

    async def test_log_is_newest_first(self):
        second = self.commit_locally("second\n", "Second commit")

        records = await log(self.work_dir, "main")

        self.assertEqual([record.oid for record in records], [second, self.fixture.initial_commit])
        self.assertEqual(records[0].parents, (self.fixture.initial_commit,))
        self.assertEqual(records[1].parents, ())
        self.assertEqual(records[0].author.name, TEST_AUTHOR.name)
        self.assertEqual(records[0].committer.email, TEST_AUTHOR.email)
        self.assertEqual(records[0].tree, git(self.work_dir, "rev-parse", "HEAD^{tree}"))

    async def test_log_messages_are_trimmed(self):
        self.commit_locally("second\n", "Second commit")
        self.assertEqual(await log_messages(self.work_dir), ["Second commit", "Initial commit"])

    async def test_unknown_ref(self):
        with self.assertRaises(RefNotFoundError):
            await log(self.work_dir, "does-not-exist")

    async def test_local_commit_is_ahead(self):
        self.commit_locally("local\n", "Local commit")
        self.assertTrue(await is_local_history_ahead(self.work_dir, "main"))

    async def test_identical_histories_are_not_ahead(self):
        self.assertFalse(await is_local_history_ahead(self.work_dir, "main"))

    async def test_remote_commit_makes_histories_differ(self):
        self.fixture.commit_upstream({"a.txt": "remote\n"}, "Remote commit")
        git(self.work_dir, "fetch", "--quiet", "origin")
        self.assertTrue(await is_local_history_ahead(self.work_dir, "main", remote="origin"))

    async def test_missing_remote_tracking_ref(self):
        with self.assertRaises(RefNotFoundError):
            await is_local_history_ahead(self.work_dir, "main", remote="elsewhere")


if __name__ == "__main__":
    unittest.main(verbosity=2)
