"""
Chat session: startup, coordination loop and shutdown

The loop is the only code that touches presence, the registry and the
console. Three producers feed it through their own queues: the
broadcast listener task, the renewal ticker task and the line reader
thread. ActionMux waits on all of them at once and yields one Action at
a time; each action is handled completely before the next one is taken.
"""

from enum import Enum
from typing import Callable, Dict, List, Optional
import asyncio
import logging

from rich.console import Console

from ..core.actions import Action, renew_tick
from ..core.channel import BroadcastListener, publish
from ..core.config import ChatConfig
from ..core.input import EXIT_COMMAND, LineReader
from ..core.presence import LeaseStatus, MembershipRegistry, PresenceLease
from ..core.store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

WHO_COMMAND = "/who"
SUBSCRIBE_TIMEOUT = 5.0


class SessionError(Exception):
    """Startup failed; nothing is left claimed in the store"""
    pass


class UserAlreadyOnline(SessionError):
    pass


class RegistryJoinError(SessionError):
    pass


class SessionState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    EXITING = "exiting"


class ActionMux:
    """
    Multi-source wait over several action queues

    A getter stays pending on every queue. When several complete
    together, the rest keep their item for the following calls, so
    nothing taken from a queue is lost. Sources are served round-robin.
    """

    def __init__(self, *queues: asyncio.Queue):
        self._queues: List[asyncio.Queue] = list(queues)
        self._getters: Dict[asyncio.Queue, asyncio.Future] = {}
        self._start = 0

    async def next(self) -> Action:
        for queue in self._queues:
            if queue not in self._getters:
                self._getters[queue] = asyncio.ensure_future(queue.get())

        done, _ = await asyncio.wait(
            list(self._getters.values()),
            return_when=asyncio.FIRST_COMPLETED
        )

        count = len(self._queues)
        for offset in range(count):
            queue = self._queues[(self._start + offset) % count]
            getter = self._getters[queue]
            if getter in done:
                del self._getters[queue]
                self._start = (self._start + offset + 1) % count
                return getter.result()
        raise RuntimeError("asyncio.wait returned without a completed getter")

    async def close(self) -> None:
        getters = list(self._getters.values())
        self._getters.clear()
        for getter in getters:
            getter.cancel()
        await asyncio.gather(*getters, return_exceptions=True)


class ChatSession:
    """One user's presence in the chat, from lease acquisition to exit"""

    def __init__(self, config: ChatConfig, store: KeyValueStore,
                 console: Optional[Console] = None,
                 read_line: Optional[Callable[[str], str]] = None,
                 subscriber_store: Optional[KeyValueStore] = None):
        self.config = config
        self.username = config.username
        self.store = store
        self.console = console or Console()
        self.read_line = read_line or self.console.input
        self.state = SessionState.STARTING

        self.lease = PresenceLease(store, self.username, config.lease_ttl, config.lease_prefix)
        self.registry = MembershipRegistry(store, self.username, config.users_key)

        self.messages: asyncio.Queue = asyncio.Queue()
        self.lines: asyncio.Queue = asyncio.Queue()
        self.ticks: asyncio.Queue = asyncio.Queue()
        self.mux = ActionMux(self.messages, self.ticks, self.lines)

        self.listener = BroadcastListener(subscriber_store or store, config.channel, self.messages)
        self.reader = LineReader(self.read_line, self.lines, prompt=config.prompt)
        self._ticker: Optional[asyncio.Task] = None

    # Output

    def _print(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)

    def _report(self, text: str) -> None:
        self.console.print(text, style="red", markup=False, highlight=False, soft_wrap=True)

    # Startup

    async def start(self) -> None:
        """
        Claim the lease, join the registry, start the producers and
        announce ourselves.

        Raises UserAlreadyOnline or RegistryJoinError, or StoreError if
        the lease could not be attempted. No producer is running when
        this raises.
        """
        if await self.lease.acquire() is LeaseStatus.CONFLICT:
            raise UserAlreadyOnline("User already online")

        try:
            await self.registry.join()
        except StoreError as e:
            await self.lease.release()
            raise RegistryJoinError(f"Could not join the online set: {e}") from e

        self._start_producers()
        try:
            await asyncio.wait_for(self.listener.ready.wait(), SUBSCRIBE_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Subscription to %s not confirmed", self.config.channel)

        await self._publish(f"{self.username} has joined")
        self.state = SessionState.RUNNING

    def _start_producers(self) -> None:
        self.listener.start()
        self._ticker = asyncio.create_task(self._tick(), name="renew-ticker")
        self.reader.start()

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.config.renew_interval)
            await self.ticks.put(renew_tick())

    # Loop

    async def run_loop(self) -> None:
        while self.state is SessionState.RUNNING:
            action = await self.mux.next()
            await self.handle(action)

    async def handle(self, action: Action) -> None:
        if action.is_incoming_message():
            self._print(action.text)
        elif action.is_renew_tick():
            await self._renew()
        elif action.is_user_line():
            await self._handle_line(action.text)

    async def _renew(self) -> None:
        try:
            await self.lease.renew()
        except StoreError as e:
            self._report(f"Set failed: {e}")

    async def _handle_line(self, line: str) -> None:
        if line == EXIT_COMMAND:
            self.state = SessionState.EXITING
        elif line == WHO_COMMAND:
            await self._who()
        else:
            await self._publish(f"{self.username}:{line}")

    async def _who(self) -> None:
        try:
            names = await self.registry.list()
        except StoreError as e:
            self._report(f"Could not list users: {e}")
            return
        for name in names:
            self._print(name)

    async def _publish(self, text: str) -> None:
        if not await publish(self.store, self.config.channel, text):
            self._report("Send failed")

    # Shutdown

    async def shutdown(self) -> None:
        """Release presence and announce departure; every step is attempted"""
        self.state = SessionState.EXITING
        await self.lease.release()
        try:
            await self.registry.leave()
        except StoreError as e:
            self._report(f"Could not leave the online set: {e}")
        await self._publish(f"{self.username} has left")
        await self._stop_producers()

    async def _stop_producers(self) -> None:
        await self.listener.stop()
        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None
        await self.mux.close()

    async def run(self) -> int:
        """Run a whole session and return the process exit status"""
        await self.start()
        try:
            await self.run_loop()
        finally:
            await self.shutdown()
        return 0
