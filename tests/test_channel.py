import asyncio
import unittest

from redchat.core.actions import ack_event, error_event, message_event
from redchat.core.channel import BroadcastListener, publish
from redchat.core.store import MemoryStore, StoreError


class ScriptedSubscriptionStore(MemoryStore):
    def __init__(self, events):
        super().__init__()
        self._events = events

    async def subscribe(self, channel):
        for event in self._events:
            yield event


class FailingSubscriptionStore(MemoryStore):
    async def subscribe(self, channel):
        yield ack_event(channel)
        raise StoreError("connection lost")


class FailingPublishStore(MemoryStore):
    async def publish(self, channel, payload):
        raise StoreError("PUBLISH failed: timeout")


class BroadcastChannelTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = MemoryStore()

    async def _listener(self, store, name="messages"):
        queue = asyncio.Queue()
        listener = BroadcastListener(store, name, queue)
        listener.start()
        await asyncio.wait_for(listener.ready.wait(), 1)
        return listener, queue

    async def test_attached_subscribers_receive_verbatim(self):
        first, first_queue = await self._listener(self.store)
        second, second_queue = await self._listener(self.store)

        self.assertTrue(await publish(self.store, "messages", "alice: hi [bold]there[/bold]"))

        for queue in (first_queue, second_queue):
            action = await asyncio.wait_for(queue.get(), 1)
            self.assertTrue(action.is_incoming_message())
            self.assertEqual(action.text, "alice: hi [bold]there[/bold]")

        await first.stop()
        await second.stop()

    async def test_late_subscriber_misses_earlier_messages(self):
        early, early_queue = await self._listener(self.store)
        await publish(self.store, "messages", "before")
        late, late_queue = await self._listener(self.store)
        await publish(self.store, "messages", "after")

        self.assertEqual((await asyncio.wait_for(early_queue.get(), 1)).text, "before")
        self.assertEqual((await asyncio.wait_for(early_queue.get(), 1)).text, "after")
        self.assertEqual((await asyncio.wait_for(late_queue.get(), 1)).text, "after")
        self.assertTrue(late_queue.empty())

        await early.stop()
        await late.stop()

    async def test_order_within_channel_is_preserved(self):
        listener, queue = await self._listener(self.store)
        for i in range(20):
            await publish(self.store, "messages", f"m{i}")

        received = [(await asyncio.wait_for(queue.get(), 1)).text for _ in range(20)]
        self.assertEqual(received, [f"m{i}" for i in range(20)])
        await listener.stop()

    async def test_acks_are_dropped_and_error_ends_listener(self):
        store = ScriptedSubscriptionStore([
            ack_event("messages"),
            message_event("messages", "one"),
            ack_event("messages"),
            error_event("connection reset", "messages"),
            message_event("messages", "never"),
        ])
        queue = asyncio.Queue()
        listener = BroadcastListener(store, "messages", queue)

        await asyncio.wait_for(listener.start(), 1)

        self.assertTrue(listener.ready.is_set())
        self.assertFalse(listener.running)
        self.assertEqual((await queue.get()).text, "one")
        self.assertTrue(queue.empty())

    async def test_raised_store_error_ends_listener(self):
        queue = asyncio.Queue()
        listener = BroadcastListener(FailingSubscriptionStore(), "messages", queue)

        await asyncio.wait_for(listener.start(), 1)

        self.assertFalse(listener.running)
        self.assertTrue(queue.empty())

    async def test_listener_stops_when_store_closes(self):
        listener, queue = await self._listener(self.store)
        await self.store.close()

        await asyncio.wait_for(listener._task, 1)
        self.assertFalse(listener.running)

    async def test_publish_failure_returns_false(self):
        with self.assertLogs("redchat.core.channel", level="WARNING"):
            self.assertFalse(await publish(FailingPublishStore(), "messages", "hi"))


if __name__ == "__main__":
    unittest.main()
