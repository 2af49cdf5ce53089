"""Request and response schemas for the broadcast endpoints."""

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from modules.broadcasts.models import (
    SMS_BODY_MAX_LENGTH,
    BroadcastChannels,
    BroadcastStats,
    BroadcastStatus,
    Delivery,
)


class DeliveryStatusFilter(str, Enum):
    """Filters for the delivery listing."""

    DELIVERED = "delivered"
    FAILED = "failed"
    READ = "read"
    UNREAD = "unread"


class CreateBroadcastRequest(BaseModel):
    """Schema for creating a draft (or scheduled) broadcast."""

    model_config = ConfigDict(populate_by_name=True)

    title: Annotated[str, Field(..., min_length=1, max_length=200)]
    subject: Annotated[str, Field(..., min_length=1, max_length=200)]
    body: Annotated[str, Field(..., min_length=1, alias="bodyHtml")]
    sms_body: Annotated[
        Optional[str],
        Field(default=None, max_length=SMS_BODY_MAX_LENGTH, alias="bodySms"),
    ] = None
    link_url: Annotated[Optional[str], Field(default=None, alias="linkUrl")] = None
    link_text: Annotated[Optional[str], Field(default=None, alias="linkText")] = None
    video_url: Annotated[Optional[str], Field(default=None, alias="videoUrl")] = None
    channels: BroadcastChannels
    target_user_ids: Annotated[
        List[str], Field(default_factory=list, alias="targetUserIds")
    ]
    scheduled_at: Annotated[
        Optional[datetime], Field(default=None, alias="scheduledAt")
    ] = None

    @model_validator(mode="after")
    def validate_channels(self) -> "CreateBroadcastRequest":
        if not self.channels.enabled():
            raise ValueError("At least one channel must be selected")
        if self.channels.sms and not self.sms_body:
            raise ValueError("SMS text is required when SMS channel is enabled")
        return self


class UpdateBroadcastRequest(BaseModel):
    """Partial content update for a draft or scheduled broadcast.

    Only the fields present in the request body are changed.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: Annotated[Optional[str], Field(default=None, min_length=1, max_length=200)] = None
    subject: Annotated[Optional[str], Field(default=None, min_length=1, max_length=200)] = None
    body: Annotated[Optional[str], Field(default=None, min_length=1, alias="bodyHtml")] = None
    sms_body: Annotated[
        Optional[str],
        Field(default=None, max_length=SMS_BODY_MAX_LENGTH, alias="bodySms"),
    ] = None
    link_url: Annotated[Optional[str], Field(default=None, alias="linkUrl")] = None
    link_text: Annotated[Optional[str], Field(default=None, alias="linkText")] = None
    video_url: Annotated[Optional[str], Field(default=None, alias="videoUrl")] = None
    channels: Optional[BroadcastChannels] = None
    target_user_ids: Annotated[
        Optional[List[str]], Field(default=None, alias="targetUserIds")
    ] = None

    def changes(self) -> dict:
        """Field name -> new value for every field the caller sent."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class SendBroadcastRequest(BaseModel):
    """Send now, or schedule when `scheduledAt` is given."""

    model_config = ConfigDict(populate_by_name=True)

    scheduled_at: Annotated[
        Optional[datetime], Field(default=None, alias="scheduledAt")
    ] = None


class SendBroadcastResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    status: BroadcastStatus
    scheduled_at: Annotated[
        Optional[datetime], Field(default=None, alias="scheduledAt")
    ] = None
    stats: Optional[BroadcastStats] = None


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int
    limit: int
    total: int
    total_pages: Annotated[int, Field(alias="totalPages")]


class DeliveryPage(BaseModel):
    deliveries: List[Delivery]
    pagination: Pagination


class CronResponse(BaseModel):
    success: bool = True
    processed: int
    errors: List[str]


class UnreadCountResponse(BaseModel):
    count: int


class MarkReadResponse(BaseModel):
    success: bool = True
    first_read: bool
