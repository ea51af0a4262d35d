"""Tests for CLI commands."""
import unittest
from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

FIXTURES = Path(__file__).parent / "fixtures"

NO_USER = {"RCC_USER_ID": None, "RCC_STORE_BACKEND": None, "RCC_STORE_URL": None}
ALICE = {"RCC_USER_ID": "u1", "RCC_USERNAME": "alice", "RCC_STORE_BACKEND": None}


def _store(**tables):
    from rcc.store.memory import InMemoryStore

    return InMemoryStore(tables)


class TestCLI(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()

    def test_version_flag(self):
        from rcc.cli import app

        result = self.runner.invoke(app, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("0.1.0", result.output)

    def test_tree_command_prints_thread(self):
        from rcc.cli import app

        result = self.runner.invoke(app, ["tree", str(FIXTURES / "sample_thread.json")])
        self.assertEqual(result.exit_code, 0)
        lines = result.output.splitlines()
        self.assertTrue(any(line.startswith("[3] alice") for line in lines))
        self.assertTrue(any(line.startswith("  [2] bob") for line in lines))
        self.assertTrue(any(line.startswith("    [0] alice") for line in lines))
        self.assertNotIn("deleted comment", result.output)

    def test_tree_command_on_yaml(self):
        from rcc.cli import app

        result = self.runner.invoke(app, ["tree", str(FIXTURES / "sample_thread.yaml")])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("Second top level", result.output)

    def test_tree_command_on_nonexistent_file(self):
        from rcc.cli import app

        result = self.runner.invoke(app, ["tree", "/nonexistent/comments.json"])
        self.assertNotEqual(result.exit_code, 0)

    def test_thread_command(self):
        from rcc.cli import app

        store = _store(comments=[
            {"id": "c1", "post_id": "p1", "author_id": "u1", "content": "hello there"},
            {"id": "c2", "post_id": "p2", "author_id": "u1", "content": "elsewhere"},
        ])
        with patch("rcc.config.Settings.create_store", return_value=store):
            result = self.runner.invoke(app, ["thread", "p1"], env=NO_USER)
        self.assertEqual(result.exit_code, 0)
        self.assertIn("hello there", result.output)
        self.assertNotIn("elsewhere", result.output)

    def test_thread_command_empty(self):
        from rcc.cli import app

        with patch("rcc.config.Settings.create_store", return_value=_store()):
            result = self.runner.invoke(app, ["thread", "p1"], env=NO_USER)
        self.assertEqual(result.exit_code, 0)
        self.assertIn("No comments yet", result.output)

    def test_thread_command_store_error(self):
        from rcc.cli import app

        store = _store()
        store.fail_next("query")
        with patch("rcc.config.Settings.create_store", return_value=store):
            result = self.runner.invoke(app, ["thread", "p1"], env=NO_USER)
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Store error", result.output)

    def test_rest_backend_without_url(self):
        from rcc.cli import app

        env = dict(NO_USER, RCC_STORE_BACKEND="rest")
        result = self.runner.invoke(app, ["thread", "p1"], env=env)
        self.assertEqual(result.exit_code, 1)


class TestWriteCommands(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()

    def test_comment_requires_user(self):
        from rcc.cli import app

        with patch("rcc.config.Settings.create_store", return_value=_store()):
            result = self.runner.invoke(app, ["comment", "p1", "hi"], env=NO_USER)
        self.assertEqual(result.exit_code, 1)
        self.assertIn("log in", result.output)

    def test_comment_and_reply(self):
        from rcc.cli import app

        store = _store()
        with patch("rcc.config.Settings.create_store", return_value=store):
            result = self.runner.invoke(app, ["comment", "p1", "top"], env=ALICE)
            self.assertEqual(result.exit_code, 0)
            parent_id = store.rows("comments")[0]["id"]
            result = self.runner.invoke(app, ["comment", "p1", "reply", "--reply-to", parent_id], env=ALICE)
        self.assertEqual(result.exit_code, 0)
        self.assertIn("Posted comment", result.output)
        rows = store.rows("comments")
        self.assertEqual(rows[1]["parent_id"], parent_id)
        self.assertEqual(rows[1]["author_id"], "u1")

    def test_vote_up(self):
        from rcc.cli import app

        store = _store(posts=[{"id": "p1", "title": "t", "author_id": "u2", "upvotes": 5, "downvotes": 2}])
        with patch("rcc.config.Settings.create_store", return_value=store):
            result = self.runner.invoke(app, ["vote", "p1", "up"], env=ALICE)
        self.assertEqual(result.exit_code, 0)
        self.assertIn("score 4 (+6/-2), your vote: up", result.output)
        self.assertEqual(store.rows("post_votes")[0]["vote_type"], 1)

    def test_vote_switches_existing(self):
        from rcc.cli import app

        store = _store(
            posts=[{"id": "p1", "title": "t", "author_id": "u2", "upvotes": 6, "downvotes": 2}],
            post_votes=[{"post_id": "p1", "user_id": "u1", "vote_type": 1}],
        )
        with patch("rcc.config.Settings.create_store", return_value=store):
            result = self.runner.invoke(app, ["vote", "p1", "down"], env=ALICE)
        self.assertEqual(result.exit_code, 0)
        self.assertIn("score 2 (+5/-3), your vote: down", result.output)

    def test_vote_bad_direction(self):
        from rcc.cli import app

        result = self.runner.invoke(app, ["vote", "p1", "sideways"], env=ALICE)
        self.assertEqual(result.exit_code, 2)

    def test_vote_missing_post(self):
        from rcc.cli import app

        with patch("rcc.config.Settings.create_store", return_value=_store()):
            result = self.runner.invoke(app, ["vote", "p404", "up"], env=ALICE)
        self.assertEqual(result.exit_code, 1)
        self.assertIn("not found", result.output)


class TestChatCommands(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()

    def test_chat_prints_history(self):
        from rcc.cli import app

        store = _store(messages=[
            {"id": "m1", "username": "bob", "content": "hey", "created_at": "2025-03-01T09:15:00+00:00"},
        ])
        with patch("rcc.config.Settings.create_store", return_value=store):
            result = self.runner.invoke(app, ["chat"], env=NO_USER)
        self.assertEqual(result.exit_code, 0)
        self.assertIn("[09:15] bob: hey", result.output)

    def test_chat_empty(self):
        from rcc.cli import app

        with patch("rcc.config.Settings.create_store", return_value=_store()):
            result = self.runner.invoke(app, ["chat"], env=NO_USER)
        self.assertEqual(result.exit_code, 0)
        self.assertIn("No messages yet.", result.output)

    def test_send(self):
        from rcc.cli import app

        store = _store()
        with patch("rcc.config.Settings.create_store", return_value=store):
            result = self.runner.invoke(app, ["send", "alice", "hello all"], env=NO_USER)
            blank = self.runner.invoke(app, ["send", "alice", "   "], env=NO_USER)
        self.assertEqual(result.exit_code, 0)
        self.assertIn("Message sent.", result.output)
        self.assertIn("Nothing to send.", blank.output)
        self.assertEqual([r["content"] for r in store.rows("messages")], ["hello all"])


if __name__ == "__main__":
    unittest.main()
