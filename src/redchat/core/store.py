"""
Shared store interface for redchat

This module defines the capability set the chat protocol needs from the
shared key-value / pub-sub backend, and two backends implementing it:

- Redis, through the redis-py asyncio client (redis://, rediss://, unix://)
- An in-process memory store (memory://) for local use and testing
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple
import asyncio
import logging
import time

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .actions import ChannelEvent, ack_event, error_event, message_event

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for store operations"""
    pass


class StoreUnavailableError(StoreError):
    """The store could not be reached"""
    pass


class KeyValueStore(ABC):
    """Capability set consumed by the presence, registry and channel code"""

    @abstractmethod
    async def ping(self) -> None:
        """Raise StoreUnavailableError if the store cannot be reached"""

    @abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        """Atomically set key with expiry only if it has no live value"""

    @abstractmethod
    async def set_if_present(self, key: str, value: str, ttl: int) -> bool:
        """Atomically set key with expiry only if it currently has a value"""

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def set_add(self, name: str, member: str) -> bool:
        """Add member to a set, True if it was not already a member"""

    @abstractmethod
    async def set_remove(self, name: str, member: str) -> None:
        ...

    @abstractmethod
    async def set_members(self, name: str) -> List[str]:
        ...

    @abstractmethod
    async def publish(self, channel: str, payload: str) -> int:
        """Publish payload, returning the number of subscribers reached"""

    @abstractmethod
    def subscribe(self, channel: str) -> AsyncIterator[ChannelEvent]:
        """
        Subscribe on a dedicated connection

        Yields an ack once attached, then one message event per publish.
        The stream ends after yielding an error event.
        """

    @abstractmethod
    async def close(self) -> None:
        ...


@contextmanager
def _translate_errors(operation: str):
    try:
        yield
    except (RedisError, OSError) as e:
        raise StoreError(f"{operation} failed: {e}") from e


class RedisStore(KeyValueStore):
    """KeyValueStore backed by a Redis server"""

    def __init__(self, client: aioredis.Redis):
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> 'RedisStore':
        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    async def ping(self) -> None:
        try:
            await self._redis.ping()
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Cannot connect to store: {e}") from e

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        with _translate_errors("SET NX"):
            return bool(await self._redis.set(key, value, ex=ttl, nx=True))

    async def set_if_present(self, key: str, value: str, ttl: int) -> bool:
        with _translate_errors("SET XX"):
            return bool(await self._redis.set(key, value, ex=ttl, xx=True))

    async def delete(self, key: str) -> None:
        with _translate_errors("DEL"):
            await self._redis.delete(key)

    async def set_add(self, name: str, member: str) -> bool:
        with _translate_errors("SADD"):
            return await self._redis.sadd(name, member) == 1

    async def set_remove(self, name: str, member: str) -> None:
        with _translate_errors("SREM"):
            await self._redis.srem(name, member)

    async def set_members(self, name: str) -> List[str]:
        with _translate_errors("SMEMBERS"):
            members = await self._redis.smembers(name)
        return sorted(members)

    async def publish(self, channel: str, payload: str) -> int:
        with _translate_errors("PUBLISH"):
            return await self._redis.publish(channel, payload)

    async def subscribe(self, channel: str) -> AsyncIterator[ChannelEvent]:
        # PubSub checks out its own connection from the pool; a subscribed
        # connection cannot carry other commands.
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(channel)
            async for message in pubsub.listen():
                kind = message.get('type')
                if kind == 'message':
                    yield message_event(message['channel'], message['data'])
                elif kind == 'subscribe':
                    yield ack_event(message['channel'])
        except (RedisError, OSError) as e:
            yield error_event(str(e), channel)
        finally:
            try:
                await pubsub.aclose()
            except (RedisError, OSError) as e:
                logger.debug("Error closing subscription to %s: %s", channel, e)

    async def close(self) -> None:
        await self._redis.aclose()


class MemoryStore(KeyValueStore):
    """
    In-process KeyValueStore

    Several sessions sharing one instance behave like clients of one
    server. Expiry is evaluated lazily against ``clock``, which defaults
    to ``time.monotonic`` and can be replaced to drive expiry in tests.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._values: Dict[str, Tuple[str, float]] = {}
        # dicts keep insertion order, so set_members is deterministic
        self._sets: Dict[str, Dict[str, None]] = {}
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise StoreError("Store is closed")

    def _live_value(self, key: str) -> Optional[str]:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._values[key]
            return None
        return value

    async def ping(self) -> None:
        if self._closed:
            raise StoreUnavailableError("Cannot connect to store: closed")

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        self._check_open()
        if self._live_value(key) is not None:
            return False
        self._values[key] = (value, self._clock() + ttl)
        return True

    async def set_if_present(self, key: str, value: str, ttl: int) -> bool:
        self._check_open()
        if self._live_value(key) is None:
            return False
        self._values[key] = (value, self._clock() + ttl)
        return True

    async def get(self, key: str) -> Optional[str]:
        self._check_open()
        return self._live_value(key)

    async def delete(self, key: str) -> None:
        self._check_open()
        self._values.pop(key, None)

    async def set_add(self, name: str, member: str) -> bool:
        self._check_open()
        members = self._sets.setdefault(name, {})
        if member in members:
            return False
        members[member] = None
        return True

    async def set_remove(self, name: str, member: str) -> None:
        self._check_open()
        members = self._sets.get(name)
        if members is not None:
            members.pop(member, None)
            if not members:
                del self._sets[name]

    async def set_members(self, name: str) -> List[str]:
        self._check_open()
        return list(self._sets.get(name, {}))

    async def publish(self, channel: str, payload: str) -> int:
        self._check_open()
        queues = list(self._subscribers.get(channel, []))
        event = message_event(channel, payload)
        for queue in queues:
            queue.put_nowait(event)
        return len(queues)

    async def subscribe(self, channel: str) -> AsyncIterator[ChannelEvent]:
        if self._closed:
            yield error_event("Store is closed", channel)
            return
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(channel, []).append(queue)
        try:
            yield ack_event(channel)
            while True:
                event = await queue.get()
                yield event
                if event.is_error():
                    return
        finally:
            subscribers = self._subscribers.get(channel, [])
            if queue in subscribers:
                subscribers.remove(queue)

    async def close(self) -> None:
        self._closed = True
        for channel, queues in self._subscribers.items():
            for queue in queues:
                queue.put_nowait(error_event("Connection closed", channel))


def parse_store_uri(uri: str) -> dict:
    """Parse store URI and return information about it"""
    scheme, sep, rest = uri.partition('://')
    if not sep:
        raise ValueError(f"Invalid store URI: {uri}")
    if scheme == 'memory':
        return {'type': 'memory', 'uri': uri}
    if scheme in ('redis', 'rediss', 'unix'):
        return {'type': 'redis', 'uri': uri}
    raise ValueError(f"Unsupported store URI scheme: {scheme}")


def open_store(uri: str) -> KeyValueStore:
    """Create the store backend selected by the URI scheme"""
    info = parse_store_uri(uri)
    if info['type'] == 'memory':
        return MemoryStore()
    return RedisStore.from_url(uri)
