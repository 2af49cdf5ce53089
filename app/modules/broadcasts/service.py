"""Broadcast service boundary.

Administrative operations (create, edit, delete, list, send now, schedule,
delivery listing) called by the HTTP controllers.
"""

import math
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError

from infrastructure.logging import get_module_logger
from modules.broadcasts.dispatcher import DispatchOutcome, Dispatcher, validate_broadcast
from modules.broadcasts.errors import BroadcastNotFoundError, BroadcastValidationError
from modules.broadcasts.models import (
    DISPATCHABLE_STATUSES,
    Broadcast,
    BroadcastStatus,
    Delivery,
    utc_now,
)
from modules.broadcasts.schemas import (
    CreateBroadcastRequest,
    DeliveryPage,
    DeliveryStatusFilter,
    Pagination,
    UpdateBroadcastRequest,
)
from modules.broadcasts.store import BroadcastStore, DeliveryStore

logger = get_module_logger()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def matches_filter(delivery: Delivery, status: Optional[DeliveryStatusFilter]) -> bool:
    match status:
        case DeliveryStatusFilter.DELIVERED:
            return delivery.is_delivered
        case DeliveryStatusFilter.FAILED:
            return delivery.has_failure
        case DeliveryStatusFilter.READ:
            return delivery.is_read
        case DeliveryStatusFilter.UNREAD:
            return not delivery.is_read
    return True


class BroadcastService:
    def __init__(
        self,
        broadcasts: BroadcastStore,
        deliveries: DeliveryStore,
        dispatcher: Dispatcher,
    ):
        self._broadcasts = broadcasts
        self._deliveries = deliveries
        self._dispatcher = dispatcher

    def get(self, broadcast_id: str) -> Broadcast:
        broadcast = self._broadcasts.get(broadcast_id)
        if broadcast is None:
            raise BroadcastNotFoundError(broadcast_id)
        return broadcast

    def list(self, status: Optional[BroadcastStatus] = None) -> List[Broadcast]:
        """Broadcasts newest first, optionally only those in one status."""
        return self._broadcasts.list_broadcasts(status)

    def update(self, broadcast_id: str, request: UpdateBroadcastRequest) -> Broadcast:
        """Edit the content of a draft or scheduled broadcast.

        Raises:
            BroadcastNotFoundError: unknown broadcast
            BroadcastValidationError: nothing to change, resulting content
                cannot be sent, or broadcast already sending or finished
        """
        changes = request.changes()
        if not changes:
            raise BroadcastValidationError("No changes provided")

        current = self.get(broadcast_id)
        if current.is_content_locked:
            raise BroadcastValidationError(
                f"Cannot edit broadcast with status: {current.status.value}"
            )
        try:
            candidate = Broadcast.model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            raise BroadcastValidationError(str(e)) from e
        if not candidate.channels.enabled():
            raise BroadcastValidationError("At least one channel must be selected")
        if candidate.channels.sms and not candidate.sms_body:
            raise BroadcastValidationError(
                "SMS text is required when SMS channel is enabled"
            )
        validate_broadcast(candidate)

        updated = self._broadcasts.update_content(broadcast_id, changes)
        logger.info(
            "broadcast_updated",
            broadcast_id=broadcast_id,
            fields=sorted(changes),
        )
        return updated

    def delete(self, broadcast_id: str) -> None:
        """Delete a draft.

        Raises:
            BroadcastNotFoundError: unknown broadcast
            BroadcastValidationError: broadcast is no longer a draft
        """
        if not self._broadcasts.delete(broadcast_id):
            broadcast = self.get(broadcast_id)
            raise BroadcastValidationError(
                f"Cannot delete broadcast with status: {broadcast.status.value}"
            )
        logger.info("broadcast_deleted", broadcast_id=broadcast_id)

    def create(self, request: CreateBroadcastRequest, created_by: str) -> Broadcast:
        """Create a draft, or a scheduled broadcast when `scheduled_at` is set."""
        status = BroadcastStatus.DRAFT
        scheduled_at = None
        if request.scheduled_at is not None:
            scheduled_at = _as_utc(request.scheduled_at)
            if scheduled_at <= utc_now():
                raise BroadcastValidationError("Scheduled time must be in the future")
            status = BroadcastStatus.SCHEDULED

        broadcast = Broadcast(
            title=request.title,
            subject=request.subject,
            body=request.body,
            sms_body=request.sms_body,
            link_url=request.link_url,
            link_text=request.link_text,
            video_url=request.video_url,
            channels=request.channels,
            target_user_ids=request.target_user_ids,
            scheduled_at=scheduled_at,
            status=status,
            created_by=created_by,
        )
        validate_broadcast(broadcast)
        self._broadcasts.create(broadcast)
        logger.info(
            "broadcast_created",
            broadcast_id=broadcast.id,
            status=status.value,
            created_by=created_by,
            channels=[c.value for c in broadcast.channels.enabled()],
        )
        return broadcast

    def send_now(self, broadcast_id: str) -> DispatchOutcome:
        """Dispatch a draft or scheduled broadcast immediately.

        Raises:
            BroadcastNotFoundError: unknown broadcast
            BroadcastValidationError: broadcast already sending or finished
        """
        broadcast = self.get(broadcast_id)
        if broadcast.status not in DISPATCHABLE_STATUSES:
            raise BroadcastValidationError(
                f"Cannot send broadcast with status: {broadcast.status.value}"
            )
        outcome = self._dispatcher.dispatch(broadcast_id)
        if outcome.skipped:
            # Lost the race to a concurrent trigger
            raise BroadcastValidationError(
                f"Cannot send broadcast with status: {outcome.status.value}"
            )
        return outcome

    def schedule(self, broadcast_id: str, scheduled_at: datetime) -> datetime:
        """Schedule a draft (or reschedule) for a future time.

        Raises:
            BroadcastNotFoundError: unknown broadcast
            BroadcastValidationError: time not in the future, content that
                cannot be sent, or broadcast already sending or finished
        """
        scheduled_at = _as_utc(scheduled_at)
        if scheduled_at <= utc_now():
            raise BroadcastValidationError("Scheduled time must be in the future")
        current = self.get(broadcast_id)
        if current.status in DISPATCHABLE_STATUSES:
            validate_broadcast(current)
        if not self._broadcasts.schedule(broadcast_id, scheduled_at):
            broadcast = self.get(broadcast_id)
            raise BroadcastValidationError(
                f"Cannot schedule broadcast with status: {broadcast.status.value}"
            )
        logger.info(
            "broadcast_scheduled",
            broadcast_id=broadcast_id,
            scheduled_at=scheduled_at.isoformat(),
        )
        return scheduled_at

    def list_deliveries(
        self,
        broadcast_id: str,
        page: int = 1,
        limit: int = 50,
        status: Optional[DeliveryStatusFilter] = None,
    ) -> DeliveryPage:
        """Page through a broadcast's deliveries, optionally filtered."""
        self.get(broadcast_id)
        filtered = [
            d
            for d in self._deliveries.list_for_broadcast(broadcast_id)
            if matches_filter(d, status)
        ]
        total = len(filtered)
        start = (page - 1) * limit
        return DeliveryPage(
            deliveries=filtered[start : start + limit],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit),
            ),
        )
