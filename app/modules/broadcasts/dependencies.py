"""
Type aliases for FastAPI dependency injection of broadcast services.

Usage:
    @router.get("/messages/unread-count")
    def unread(tracker: ReceiptTrackerDep): ...

Tests replace the underlying providers through `app.dependency_overrides`.
"""

from typing import Annotated, Dict, Optional

from fastapi import Depends

from infrastructure.notifications import NotificationChannel
from modules.broadcasts.models import Channel
from modules.broadcasts.providers import (
    get_broadcast_service,
    get_channels,
    get_receipt_tracker,
    get_scheduler,
    get_user_directory,
)
from modules.broadcasts.receipts import ReadReceiptTracker
from modules.broadcasts.scheduler import SchedulerTrigger
from modules.broadcasts.service import BroadcastService
from modules.broadcasts.users import UserDirectory
from server.utils import Caller, get_current_user, get_optional_user

BroadcastServiceDep = Annotated[BroadcastService, Depends(get_broadcast_service)]
ReceiptTrackerDep = Annotated[ReadReceiptTracker, Depends(get_receipt_tracker)]
SchedulerDep = Annotated[SchedulerTrigger, Depends(get_scheduler)]
UserDirectoryDep = Annotated[UserDirectory, Depends(get_user_directory)]
ChannelsDep = Annotated[Dict[Channel, NotificationChannel], Depends(get_channels)]
CallerDep = Annotated[Caller, Depends(get_current_user)]
OptionalCallerDep = Annotated[Optional[Caller], Depends(get_optional_user)]

__all__ = [
    "BroadcastServiceDep",
    "ReceiptTrackerDep",
    "SchedulerDep",
    "UserDirectoryDep",
    "ChannelsDep",
    "CallerDep",
    "OptionalCallerDep",
]
