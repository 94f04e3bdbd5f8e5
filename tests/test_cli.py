import asyncio
import unittest
from unittest import mock

from click.testing import CliRunner

from redchat.cli.main import cli
from redchat.core.store import MemoryStore


class InterruptingStore(MemoryStore):
    """Ctrl-C arrives while /who is waiting on the store"""

    async def set_members(self, name):
        raise KeyboardInterrupt


class BadReplyStore(MemoryStore):
    async def set_members(self, name):
        raise ValueError("unexpected reply")


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()

    def test_missing_username_is_usage_error(self):
        result = self.runner.invoke(cli, [])

        self.assertEqual(result.exit_code, 2)
        self.assertIn("Usage:", result.output)

    def test_extra_argument_is_usage_error(self):
        result = self.runner.invoke(cli, ["alice", "bob", "--store-url", "memory://"])

        self.assertEqual(result.exit_code, 2)
        self.assertIn("Usage:", result.output)

    def test_renew_interval_must_be_shorter_than_ttl(self):
        result = self.runner.invoke(
            cli, ["alice", "--store-url", "memory://", "--lease-ttl", "30", "--renew-interval", "30"]
        )

        self.assertEqual(result.exit_code, 1)
        self.assertIn("shorter than the lease TTL", result.output)

    def test_unsupported_store_url(self):
        result = self.runner.invoke(cli, ["alice", "--store-url", "s3://bucket"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Invalid store URL", result.output)

    def test_unreachable_store(self):
        result = self.runner.invoke(cli, ["alice"], env={"REDIS_URL": "redis://127.0.0.1:1/0"})

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Cannot connect to store", result.output)

    def test_user_already_online(self):
        store = MemoryStore()
        asyncio.run(store.set_if_absent("online.alice", "alice", 120))

        with mock.patch("redchat.cli.main.open_store", return_value=store):
            result = self.runner.invoke(cli, ["alice", "--store-url", "memory://"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("User already online", result.output)

    def test_clean_exit(self):
        store = MemoryStore()

        with mock.patch("redchat.cli.main.open_store", return_value=store), \
                mock.patch.object(store, "close", mock.AsyncMock()):
            result = self.runner.invoke(
                cli, ["alice", "--store-url", "memory://"], input="hello\n/exit\n"
            )

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIsNone(asyncio.run(store.get("online.alice")))

    def test_interrupt_releases_presence_and_exits_zero(self):
        store = InterruptingStore()

        with mock.patch("redchat.cli.main.open_store", return_value=store), \
                mock.patch.object(store, "close", mock.AsyncMock()):
            result = self.runner.invoke(
                cli, ["alice", "--store-url", "memory://"], input="/who\n"
            )

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Goodbye!", result.output)
        self.assertNotIn("Aborted!", result.output)
        self.assertIsNone(asyncio.run(store.get("online.alice")))
        self.assertEqual(asyncio.run(MemoryStore.set_members(store, "users")), [])

    def test_session_value_error_is_not_a_store_url_error(self):
        store = BadReplyStore()

        with mock.patch("redchat.cli.main.open_store", return_value=store):
            result = self.runner.invoke(
                cli, ["alice", "--store-url", "memory://"], input="/who\n"
            )

        self.assertNotEqual(result.exit_code, 0)
        self.assertIsInstance(result.exception, ValueError)
        self.assertNotIn("Invalid store URL", result.output)

    def test_end_of_input_exits_cleanly(self):
        result = self.runner.invoke(cli, ["alice", "--store-url", "memory://"], input="")

        self.assertEqual(result.exit_code, 0, result.output)


if __name__ == "__main__":
    unittest.main()
