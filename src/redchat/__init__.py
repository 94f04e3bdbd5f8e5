"""
redchat - terminal multi-user chat over a shared Redis store

Each running client is one user session. It claims a unique presence
lease for its username, joins the shared broadcast channel, relays typed
lines to all peers and lists online users on demand.

Usage:
    from redchat import ChatConfig, ChatSession, open_store

    config = ChatConfig(username="alice")
    store = open_store(config.store_url)
    await store.ping()
    await ChatSession(config, store).run()
"""

__version__ = "0.1.0"
__author__ = "redchat Contributors"
__license__ = "AGPLv3"

from .core import (
    Action,
    ActionTypes,
    ChatConfig,
    KeyValueStore,
    LeaseStatus,
    MembershipRegistry,
    MemoryStore,
    PresenceLease,
    RedisStore,
    StoreError,
    open_store,
)
from .client.session import ChatSession, SessionError, UserAlreadyOnline, RegistryJoinError

__all__ = [
    'Action',
    'ActionTypes',
    'ChatConfig',
    'KeyValueStore',
    'LeaseStatus',
    'MembershipRegistry',
    'MemoryStore',
    'PresenceLease',
    'RedisStore',
    'StoreError',
    'open_store',
    'ChatSession',
    'SessionError',
    'UserAlreadyOnline',
    'RegistryJoinError'
]
