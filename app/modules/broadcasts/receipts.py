"""Read receipts and the per-user message centre."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from infrastructure.logging import get_module_logger
from modules.broadcasts.models import BroadcastStatus, utc_now
from modules.broadcasts.store import BroadcastStore, DeliveryStore

logger = get_module_logger()

# Broadcasts in these states have reached recipients and appear in the message centre
VISIBLE_STATUSES = (
    BroadcastStatus.SENDING,
    BroadcastStatus.SENT,
    BroadcastStatus.FAILED,
)


class UserMessage(BaseModel):
    broadcast_id: str
    subject: str
    body: str
    video_url: Optional[str] = None
    link_url: Optional[str] = None
    link_text: Optional[str] = None
    sent_at: datetime
    read_at: Optional[datetime] = None
    is_read: bool = False


class ReadReceiptTracker:
    """Tracks when recipients read a broadcast.

    `read_at` is set once: the first read wins and later reads change
    nothing.
    """

    def __init__(self, broadcasts: BroadcastStore, deliveries: DeliveryStore):
        self._broadcasts = broadcasts
        self._deliveries = deliveries

    def mark_read(self, broadcast_id: str, user_id: str) -> bool:
        """Record that a user read a broadcast.

        Returns:
            True when this call recorded the first read.

        Raises:
            DeliveryNotFoundError: the user was not a recipient
        """
        first_read = self._deliveries.mark_read(broadcast_id, user_id, utc_now())
        if first_read:
            self._broadcasts.increment_read(broadcast_id)
            logger.info(
                "broadcast_message_read", broadcast_id=broadcast_id, user_id=user_id
            )
        return first_read

    def unread_count(self, user_id: str) -> int:
        return sum(1 for d in self._deliveries.list_for_user(user_id) if not d.is_read)

    def list_messages(self, user_id: str) -> List[UserMessage]:
        """The user's messages, newest first."""
        messages = []
        for delivery in self._deliveries.list_for_user(user_id):
            broadcast = self._broadcasts.get(delivery.broadcast_id)
            if broadcast is None or broadcast.status not in VISIBLE_STATUSES:
                continue
            messages.append(
                UserMessage(
                    broadcast_id=broadcast.id,
                    subject=broadcast.subject,
                    body=broadcast.body,
                    video_url=broadcast.video_url,
                    link_url=broadcast.link_url,
                    link_text=broadcast.link_text,
                    sent_at=broadcast.sent_at or delivery.created_at,
                    read_at=delivery.read_at,
                    is_read=delivery.is_read,
                )
            )
        return sorted(messages, key=lambda m: m.sent_at, reverse=True)
