"""
redchat Client Module

This module contains the chat session: startup sequence, the
coordination loop and shutdown.
"""

from .session import ActionMux, ChatSession, SessionError, SessionState

__all__ = ['ActionMux', 'ChatSession', 'SessionError', 'SessionState']
