"""
Broadcast channel glue

Publishing is fire-and-forget. Receiving runs in a BroadcastListener
task that turns subscription messages into IncomingMessage actions.
"""

from typing import Optional
import asyncio
import logging

from .actions import incoming_message
from .store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

CHANNEL = "messages"


async def publish(store: KeyValueStore, channel: str, text: str) -> bool:
    """Publish text on channel, returning False if the store failed"""
    try:
        await store.publish(channel, text)
        return True
    except StoreError as e:
        logger.warning("Publish to %s failed: %s", channel, e)
        return False


class BroadcastListener:
    """
    Subscriber task feeding the coordination loop

    Acks are dropped (the first one sets ``ready``). Any error ends the
    task; the loop then just stops receiving messages.
    """

    def __init__(self, store: KeyValueStore, channel: str, queue: asyncio.Queue):
        self.store = store
        self.channel = channel
        self.queue = queue
        self.ready = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=f"listener:{self.channel}")
        return self._task

    async def run(self) -> None:
        try:
            async for event in self.store.subscribe(self.channel):
                if event.is_message():
                    await self.queue.put(incoming_message(event.data))
                elif event.is_ack():
                    self.ready.set()
                elif event.is_error():
                    logger.debug("Subscription to %s ended: %s", self.channel, event.data)
                    return
        except StoreError as e:
            logger.debug("Subscription to %s failed: %s", self.channel, e)
        finally:
            # nobody waits forever on a listener that never attached
            self.ready.set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
