"""
Presence leases and the membership registry

A session proves it owns a username by holding the lease key
``online.<username>``, created with set-if-absent and a TTL. The lease is
renewed with set-if-present before it expires and deleted on exit; a
crashed session's lease simply runs out. The ``users`` set is advisory:
it tells /who who is probably online, the lease is what enforces
uniqueness.
"""

from enum import Enum
from typing import List
import logging

from .store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

LEASE_KEY_PREFIX = "online."
USERS_KEY = "users"


class LeaseStatus(Enum):
    ACQUIRED = "acquired"
    CONFLICT = "conflict"
    RENEWED = "renewed"
    MISSING = "missing"


def lease_key(username: str, prefix: str = LEASE_KEY_PREFIX) -> str:
    return prefix + username


class PresenceLease:
    """Uniqueness lock for one username, bounded by a TTL"""

    def __init__(self, store: KeyValueStore, username: str, ttl: int,
                 prefix: str = LEASE_KEY_PREFIX):
        self.store = store
        self.username = username
        self.ttl = ttl
        self.key = lease_key(username, prefix)

    async def acquire(self) -> LeaseStatus:
        """
        Claim the lease

        Returns CONFLICT when a live lease exists, whether it belongs to a
        running session or to a crashed one that has not expired yet.
        Raises StoreError if the store fails.
        """
        if await self.store.set_if_absent(self.key, self.username, self.ttl):
            logger.debug("Acquired lease %s for %ss", self.key, self.ttl)
            return LeaseStatus.ACQUIRED
        logger.debug("Lease %s is held by another session", self.key)
        return LeaseStatus.CONFLICT

    async def renew(self) -> LeaseStatus:
        """
        Extend the lease expiry if the lease still exists

        MISSING means it already expired (e.g. after a long stall). The
        session keeps running without presence in that case.
        """
        if await self.store.set_if_present(self.key, self.username, self.ttl):
            logger.debug("Renewed lease %s", self.key)
            return LeaseStatus.RENEWED
        logger.warning("Lease %s expired before renewal", self.key)
        return LeaseStatus.MISSING

    async def release(self) -> None:
        """Delete the lease; failures are ignored since the TTL cleans up"""
        try:
            await self.store.delete(self.key)
        except StoreError as e:
            logger.warning("Could not release lease %s: %s", self.key, e)


class MembershipRegistry:
    """Client for the shared set of usernames believed online"""

    def __init__(self, store: KeyValueStore, username: str, key: str = USERS_KEY):
        self.store = store
        self.username = username
        self.key = key

    async def join(self) -> None:
        """Add this user; call only once the lease is held"""
        added = await self.store.set_add(self.key, self.username)
        if not added:
            # left behind by a session that crashed; the lease says we own it now
            logger.info("%s was already in %s", self.username, self.key)

    async def leave(self) -> None:
        await self.store.set_remove(self.key, self.username)

    async def list(self) -> List[str]:
        return await self.store.set_members(self.key)
