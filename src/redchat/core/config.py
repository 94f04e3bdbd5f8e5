"""
Session configuration for redchat
"""

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from .channel import CHANNEL
from .presence import LEASE_KEY_PREFIX, USERS_KEY

DEFAULT_STORE_URL = "redis://localhost:6379/0"
DEFAULT_LEASE_TTL = 120
DEFAULT_RENEW_INTERVAL = 60


class ChatConfig(BaseModel):
    """Everything a ChatSession needs besides its store and console"""

    username: str = Field(..., description="Name this session claims")
    store_url: str = Field(DEFAULT_STORE_URL, description="Store URI (redis://, memory://)")
    channel: str = Field(CHANNEL, description="Broadcast channel")
    users_key: str = Field(USERS_KEY, description="Membership set key")
    lease_prefix: str = Field(LEASE_KEY_PREFIX, description="Lease key prefix")
    lease_ttl: int = Field(DEFAULT_LEASE_TTL, description="Lease time-to-live in seconds")
    renew_interval: float = Field(DEFAULT_RENEW_INTERVAL, description="Seconds between renewals")

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        """Usernames are single non-empty words"""
        if not v or any(c.isspace() for c in v):
            raise ValueError("Username must be non-empty and contain no whitespace")
        return v

    @field_validator('lease_ttl')
    @classmethod
    def validate_lease_ttl(cls, v):
        if v <= 0:
            raise ValueError("Lease TTL must be positive")
        return v

    @field_validator('renew_interval')
    @classmethod
    def validate_renew_interval(cls, v, info: ValidationInfo):
        """Renewal must happen before the lease runs out"""
        if v <= 0:
            raise ValueError("Renew interval must be positive")
        ttl = info.data.get('lease_ttl')
        if ttl is not None and v >= ttl:
            raise ValueError("Renew interval must be shorter than the lease TTL")
        return v

    @property
    def prompt(self) -> str:
        return self.username + ">"
