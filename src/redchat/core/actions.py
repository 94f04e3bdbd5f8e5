"""
Action and channel event schema for redchat

This module defines the immutable values that cross task boundaries:
Actions consumed by the coordination loop, and ChannelEvents yielded
by a store subscription.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActionTypes:
    """Constants for the action kinds the coordination loop understands"""

    INCOMING_MESSAGE = "incoming_message"
    RENEW_TICK = "renew_tick"
    USER_LINE = "user_line"


class ChannelEventTypes:
    """Constants for pub/sub event kinds"""

    MESSAGE = "message"
    SUBSCRIBE = "subscribe"
    ERROR = "error"


class Action(BaseModel):
    """
    Unified event consumed by the coordination loop

    Producers build these with the factory functions below and hand them
    over through one-way queues. Instances are frozen.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Action kind")
    text: Optional[str] = Field(None, description="Message or line text")

    @field_validator('type')
    @classmethod
    def validate_action_type(cls, v):
        """Validate action type"""
        valid_types = [
            ActionTypes.INCOMING_MESSAGE,
            ActionTypes.RENEW_TICK,
            ActionTypes.USER_LINE
        ]
        if v not in valid_types:
            raise ValueError(f"Invalid action type: {v}")
        return v

    def is_incoming_message(self) -> bool:
        return self.type == ActionTypes.INCOMING_MESSAGE

    def is_renew_tick(self) -> bool:
        return self.type == ActionTypes.RENEW_TICK

    def is_user_line(self) -> bool:
        return self.type == ActionTypes.USER_LINE


class ChannelEvent(BaseModel):
    """One entry of a subscription stream"""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Event kind")
    channel: Optional[str] = Field(None, description="Channel the event belongs to")
    data: Optional[str] = Field(None, description="Payload or error description")

    @field_validator('type')
    @classmethod
    def validate_event_type(cls, v):
        valid_types = [
            ChannelEventTypes.MESSAGE,
            ChannelEventTypes.SUBSCRIBE,
            ChannelEventTypes.ERROR
        ]
        if v not in valid_types:
            raise ValueError(f"Invalid channel event type: {v}")
        return v

    def is_message(self) -> bool:
        return self.type == ChannelEventTypes.MESSAGE

    def is_ack(self) -> bool:
        return self.type == ChannelEventTypes.SUBSCRIBE

    def is_error(self) -> bool:
        return self.type == ChannelEventTypes.ERROR


# Action factory functions
def incoming_message(text: str) -> Action:
    """Create an action for a message received on the broadcast channel"""
    return Action(type=ActionTypes.INCOMING_MESSAGE, text=text)


def renew_tick() -> Action:
    """Create a presence renewal tick"""
    return Action(type=ActionTypes.RENEW_TICK)


def user_line(text: str) -> Action:
    """Create an action for a line typed by the user"""
    return Action(type=ActionTypes.USER_LINE, text=text)


# Channel event factory functions
def message_event(channel: str, data: str) -> ChannelEvent:
    return ChannelEvent(type=ChannelEventTypes.MESSAGE, channel=channel, data=data)


def ack_event(channel: str) -> ChannelEvent:
    return ChannelEvent(type=ChannelEventTypes.SUBSCRIBE, channel=channel)


def error_event(description: str, channel: Optional[str] = None) -> ChannelEvent:
    return ChannelEvent(type=ChannelEventTypes.ERROR, channel=channel, data=description)
