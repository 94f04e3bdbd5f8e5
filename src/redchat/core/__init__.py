"""
redchat Core Module

This module contains the protocol building blocks:
- Action and channel event schema
- Store capability interface (Redis and in-memory backends)
- Presence leases and the membership registry
- Broadcast channel and line input producers
"""

from .actions import Action, ActionTypes, ChannelEvent, ChannelEventTypes
from .store import KeyValueStore, MemoryStore, RedisStore, StoreError, StoreUnavailableError, open_store
from .presence import LeaseStatus, MembershipRegistry, PresenceLease
from .config import ChatConfig

__all__ = [
    'Action',
    'ActionTypes',
    'ChannelEvent',
    'ChannelEventTypes',
    'KeyValueStore',
    'MemoryStore',
    'RedisStore',
    'StoreError',
    'StoreUnavailableError',
    'open_store',
    'LeaseStatus',
    'MembershipRegistry',
    'PresenceLease',
    'ChatConfig'
]
