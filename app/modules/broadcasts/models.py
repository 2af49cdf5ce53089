"""Broadcast and delivery models.

Pydantic models for broadcasts, their per-recipient delivery records and the
per-channel delivery state. Channel state is a tagged variant discriminated
on `status`:

    Pending(attempts, last_error)   not yet delivered, may be retried
    Sent(sent_at, message_id)       delivered to the provider
    Failed(error, error_code)       terminal failure
    Skipped(reason)                 never attempted (disabled, no address, ...)
"""

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

SMS_BODY_MAX_LENGTH = 160


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_broadcast_id() -> str:
    return f"broadcast-{int(utc_now().timestamp() * 1000)}-{secrets.token_hex(4)}"


class BroadcastStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


# Statuses from which a dispatch may start
DISPATCHABLE_STATUSES = (BroadcastStatus.DRAFT, BroadcastStatus.SCHEDULED)


class Channel(str, Enum):
    CHAT = "chat"
    EMAIL = "email"
    SMS = "sms"


class Pending(BaseModel):
    status: Literal["pending"] = "pending"
    attempts: int = 0
    last_error: Optional[str] = None


class Sent(BaseModel):
    status: Literal["sent"] = "sent"
    sent_at: datetime
    message_id: Optional[str] = None
    attempts: int = 1


class Failed(BaseModel):
    status: Literal["failed"] = "failed"
    error: str
    error_code: Optional[str] = None
    attempts: int = 0


class Skipped(BaseModel):
    status: Literal["skipped"] = "skipped"
    reason: str


ChannelState = Annotated[
    Union[Pending, Sent, Failed, Skipped], Field(discriminator="status")
]


class BroadcastChannels(BaseModel):
    """Enabled channel flags."""

    chat: bool = False
    email: bool = False
    sms: bool = False

    def enabled(self) -> List[Channel]:
        return [channel for channel in Channel if getattr(self, channel.value)]

    def is_enabled(self, channel: Channel) -> bool:
        return bool(getattr(self, channel.value))


class ChannelStats(BaseModel):
    attempted: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    pending: int = 0


class BroadcastStats(BaseModel):
    """Aggregate counters, per channel and combined.

    `attempted` counts recipients processed; per-channel `attempted` counts
    deliveries where that channel was not skipped.
    """

    total_recipients: int = 0
    attempted: int = 0
    sent: int = 0
    failed: int = 0
    read: int = 0
    chat: ChannelStats = Field(default_factory=ChannelStats)
    email: ChannelStats = Field(default_factory=ChannelStats)
    sms: ChannelStats = Field(default_factory=ChannelStats)

    def for_channel(self, channel: Channel) -> ChannelStats:
        return getattr(self, channel.value)


class Broadcast(BaseModel):
    """A single notification event with content, target set and channels.

    Attributes:
        id: Opaque unique key
        title: Internal title shown to administrators
        subject: Subject line shown to recipients
        body: HTML body, channel-agnostic
        sms_body: Optional short SMS text (max 160 characters)
        link_url, link_text: Optional call-to-action
        video_url: Optional video link
        channels: Enabled channels
        target_user_ids: Explicit recipients; empty means all eligible users
        scheduled_at: When to send; None means send immediately
        status: Lifecycle status
        stats: Aggregate delivery counters
        created_by: User id of the author
    """

    id: str = Field(default_factory=new_broadcast_id)
    title: str
    subject: str
    body: str = ""
    sms_body: Optional[str] = None
    link_url: Optional[str] = None
    link_text: Optional[str] = None
    video_url: Optional[str] = None
    channels: BroadcastChannels = Field(default_factory=BroadcastChannels)
    target_user_ids: List[str] = Field(default_factory=list)
    scheduled_at: Optional[datetime] = None
    status: BroadcastStatus = BroadcastStatus.DRAFT
    stats: BroadcastStats = Field(default_factory=BroadcastStats)
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    sent_at: Optional[datetime] = None

    @field_validator("sms_body")
    @classmethod
    def validate_sms_body(cls, v: Optional[str]) -> Optional[str]:
        """SMS text must fit a single segment."""
        if v is not None and len(v) > SMS_BODY_MAX_LENGTH:
            raise ValueError(
                f"SMS body must be {SMS_BODY_MAX_LENGTH} characters or less"
            )
        return v

    @property
    def is_content_locked(self) -> bool:
        return self.status not in DISPATCHABLE_STATUSES


class Delivery(BaseModel):
    """Per-recipient delivery record.

    Exactly one exists per (broadcast_id, user_id); `id` is derived from the
    pair so a conditional create enforces it.
    """

    id: str
    broadcast_id: str
    user_id: str
    user_name: str = ""
    user_email: Optional[str] = None
    chat: ChannelState = Field(default_factory=Pending)
    email: ChannelState = Field(default_factory=Pending)
    sms: ChannelState = Field(default_factory=Pending)
    read_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

    @staticmethod
    def make_id(broadcast_id: str, user_id: str) -> str:
        return f"{broadcast_id}#{user_id}"

    def state(self, channel: Channel) -> Union[Pending, Sent, Failed, Skipped]:
        return getattr(self, channel.value)

    def states(self) -> Dict[Channel, Union[Pending, Sent, Failed, Skipped]]:
        return {channel: self.state(channel) for channel in Channel}

    @property
    def is_pending(self) -> bool:
        return any(isinstance(s, Pending) for s in self.states().values())

    @property
    def has_failure(self) -> bool:
        return any(isinstance(s, Failed) for s in self.states().values())

    @property
    def is_delivered(self) -> bool:
        return any(isinstance(s, Sent) for s in self.states().values())

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


class User(BaseModel):
    """User record consumed from the user directory."""

    id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    slack_id: Optional[str] = None
    external_id: Optional[str] = None
    role: str = "applicant"

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email or self.id
