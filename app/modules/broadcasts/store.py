"""Broadcast and delivery storage.

Storage interfaces for broadcast records and per-recipient delivery records,
with thread-safe in-memory implementations. The DynamoDB implementations live
in `modules.broadcasts.dynamodb_store`.

Every write is a field-level update: a channel outcome touches only that
channel's state, a read receipt touches only `read_at`, and stats are written
without rewriting content.
"""

import threading
import time
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Tuple

from modules.broadcasts.errors import (
    BroadcastNotFoundError,
    BroadcastValidationError,
    DeliveryNotFoundError,
)
from modules.broadcasts.models import (
    DISPATCHABLE_STATUSES,
    Broadcast,
    BroadcastStats,
    BroadcastStatus,
    Channel,
    ChannelState,
    Delivery,
    utc_now,
)

# Content fields that may change while a broadcast is still a draft or scheduled
CONTENT_FIELDS = frozenset(
    {
        "title",
        "subject",
        "body",
        "sms_body",
        "link_url",
        "link_text",
        "video_url",
        "channels",
        "target_user_ids",
    }
)


class BroadcastStore(Protocol):
    """Storage interface for broadcast records.

    Methods:
        create: Persist a new broadcast
        get: Fetch a broadcast by id
        update_content: Change content fields while still draft/scheduled
        delete: Remove a draft
        list_broadcasts: Every broadcast, optionally one status only
        schedule: Move a draft/scheduled broadcast to scheduled at a time
        claim: Compare-and-set into `sending`, taking a lease for this run
        release: Drop the lease held by a run that left work pending
        update_stats: Replace the aggregate stats
        finish: Set the terminal status and drop the lease
        list_due: Scheduled broadcasts whose time has come
        list_sending: Broadcasts left in `sending`
    """

    def create(self, broadcast: Broadcast) -> Broadcast: ...

    def get(self, broadcast_id: str) -> Optional[Broadcast]: ...

    def update_content(self, broadcast_id: str, fields: Dict) -> Broadcast: ...

    def delete(self, broadcast_id: str) -> bool:
        """Delete the broadcast if it is still a draft.

        Returns:
            True when deleted; False when missing or no longer a draft.
        """
        ...

    def list_broadcasts(
        self, status: Optional[BroadcastStatus] = None
    ) -> List[Broadcast]:
        """Broadcasts newest first."""
        ...

    def schedule(self, broadcast_id: str, scheduled_at: datetime) -> bool: ...

    def claim(
        self,
        broadcast_id: str,
        worker_id: str,
        lease_seconds: int,
        resume: bool = False,
    ) -> bool:
        """Claim a broadcast for one dispatcher run.

        A first claim moves draft/scheduled to sending. With `resume=True` a
        broadcast already in sending is claimed when no other run holds an
        unexpired lease on it. Terminal broadcasts are never claimed.

        Returns:
            True when this caller now owns the dispatch run.
        """
        ...

    def release(self, broadcast_id: str, worker_id: str) -> None: ...

    def update_stats(self, broadcast_id: str, stats: BroadcastStats) -> None: ...

    def finish(
        self,
        broadcast_id: str,
        status: BroadcastStatus,
        sent_at: Optional[datetime] = None,
    ) -> None: ...

    def increment_read(self, broadcast_id: str) -> None: ...

    def list_due(self, now: datetime) -> List[Broadcast]: ...

    def list_sending(self) -> List[Broadcast]: ...


class DeliveryStore(Protocol):
    """Storage interface for per-recipient delivery records.

    At most one record exists per (broadcast_id, user_id).
    """

    def get_or_create(self, delivery: Delivery) -> Tuple[Delivery, bool]:
        """Insert the delivery unless one exists for the same pair.

        Returns:
            The stored record and whether this call created it.
        """
        ...

    def get(self, broadcast_id: str, user_id: str) -> Optional[Delivery]: ...

    def update_channel(
        self,
        broadcast_id: str,
        user_id: str,
        channel: Channel,
        state: ChannelState,
    ) -> None: ...

    def mark_read(self, broadcast_id: str, user_id: str, read_at: datetime) -> bool:
        """Set `read_at` unless already set.

        Returns:
            True when this call set it.

        Raises:
            DeliveryNotFoundError: no delivery for the pair
        """
        ...

    def list_for_broadcast(self, broadcast_id: str) -> List[Delivery]: ...

    def list_for_user(self, user_id: str) -> List[Delivery]:
        """The user's deliveries, newest first."""
        ...


class InMemoryBroadcastStore:
    """Thread-safe in-memory broadcast store for local runs and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._broadcasts: Dict[str, Broadcast] = {}
        # broadcast id -> (worker id, lease expiry epoch seconds)
        self._claims: Dict[str, Tuple[str, float]] = {}

    def _require(self, broadcast_id: str) -> Broadcast:
        broadcast = self._broadcasts.get(broadcast_id)
        if broadcast is None:
            raise BroadcastNotFoundError(broadcast_id)
        return broadcast

    def create(self, broadcast: Broadcast) -> Broadcast:
        with self._lock:
            if broadcast.id in self._broadcasts:
                raise BroadcastValidationError(
                    f"Broadcast already exists: {broadcast.id}"
                )
            self._broadcasts[broadcast.id] = broadcast.model_copy(deep=True)
        return broadcast

    def get(self, broadcast_id: str) -> Optional[Broadcast]:
        with self._lock:
            broadcast = self._broadcasts.get(broadcast_id)
            return broadcast.model_copy(deep=True) if broadcast else None

    def update_content(self, broadcast_id: str, fields: Dict) -> Broadcast:
        unknown = set(fields) - CONTENT_FIELDS
        if unknown:
            raise BroadcastValidationError(
                f"Not editable: {', '.join(sorted(unknown))}"
            )
        with self._lock:
            current = self._require(broadcast_id)
            if current.is_content_locked:
                raise BroadcastValidationError(
                    f"Cannot edit broadcast with status: {current.status.value}"
                )
            updated = Broadcast.model_validate(
                {**current.model_dump(), **fields, "updated_at": utc_now()}
            )
            self._broadcasts[broadcast_id] = updated
            return updated.model_copy(deep=True)

    def delete(self, broadcast_id: str) -> bool:
        with self._lock:
            current = self._broadcasts.get(broadcast_id)
            if current is None or current.status != BroadcastStatus.DRAFT:
                return False
            del self._broadcasts[broadcast_id]
            self._claims.pop(broadcast_id, None)
            return True

    def list_broadcasts(
        self, status: Optional[BroadcastStatus] = None
    ) -> List[Broadcast]:
        with self._lock:
            broadcasts = [
                b.model_copy(deep=True)
                for b in self._broadcasts.values()
                if status is None or b.status == status
            ]
        return sorted(broadcasts, key=lambda b: b.created_at, reverse=True)

    def schedule(self, broadcast_id: str, scheduled_at: datetime) -> bool:
        with self._lock:
            current = self._require(broadcast_id)
            if current.status not in DISPATCHABLE_STATUSES:
                return False
            current.status = BroadcastStatus.SCHEDULED
            current.scheduled_at = scheduled_at
            current.updated_at = utc_now()
            return True

    def claim(
        self,
        broadcast_id: str,
        worker_id: str,
        lease_seconds: int,
        resume: bool = False,
    ) -> bool:
        now = time.time()
        with self._lock:
            current = self._broadcasts.get(broadcast_id)
            if current is None:
                return False
            if current.status in DISPATCHABLE_STATUSES:
                current.status = BroadcastStatus.SENDING
                current.updated_at = utc_now()
            elif current.status == BroadcastStatus.SENDING and resume:
                claim = self._claims.get(broadcast_id)
                if claim is not None and claim[1] >= now:
                    return False
            else:
                return False
            self._claims[broadcast_id] = (worker_id, now + lease_seconds)
            return True

    def release(self, broadcast_id: str, worker_id: str) -> None:
        with self._lock:
            claim = self._claims.get(broadcast_id)
            if claim is not None and claim[0] == worker_id:
                del self._claims[broadcast_id]

    def update_stats(self, broadcast_id: str, stats: BroadcastStats) -> None:
        with self._lock:
            current = self._require(broadcast_id)
            current.stats = stats.model_copy(deep=True)
            current.updated_at = utc_now()

    def finish(
        self,
        broadcast_id: str,
        status: BroadcastStatus,
        sent_at: Optional[datetime] = None,
    ) -> None:
        with self._lock:
            current = self._require(broadcast_id)
            current.status = status
            current.sent_at = sent_at or current.sent_at
            current.updated_at = utc_now()
            self._claims.pop(broadcast_id, None)

    def increment_read(self, broadcast_id: str) -> None:
        with self._lock:
            current = self._require(broadcast_id)
            current.stats.read += 1

    def list_due(self, now: datetime) -> List[Broadcast]:
        with self._lock:
            due = [
                b.model_copy(deep=True)
                for b in self._broadcasts.values()
                if b.status == BroadcastStatus.SCHEDULED
                and b.scheduled_at is not None
                and b.scheduled_at <= now
            ]
        return sorted(due, key=lambda b: b.scheduled_at)

    def list_sending(self) -> List[Broadcast]:
        with self._lock:
            return [
                b.model_copy(deep=True)
                for b in self._broadcasts.values()
                if b.status == BroadcastStatus.SENDING
            ]


class InMemoryDeliveryStore:
    """Thread-safe in-memory delivery store keyed by `broadcast_id#user_id`."""

    def __init__(self):
        self._lock = threading.Lock()
        self._deliveries: Dict[str, Delivery] = {}

    def get_or_create(self, delivery: Delivery) -> Tuple[Delivery, bool]:
        key = Delivery.make_id(delivery.broadcast_id, delivery.user_id)
        with self._lock:
            existing = self._deliveries.get(key)
            if existing is not None:
                return existing.model_copy(deep=True), False
            stored = delivery.model_copy(deep=True, update={"id": key})
            self._deliveries[key] = stored
            return stored.model_copy(deep=True), True

    def get(self, broadcast_id: str, user_id: str) -> Optional[Delivery]:
        with self._lock:
            delivery = self._deliveries.get(Delivery.make_id(broadcast_id, user_id))
            return delivery.model_copy(deep=True) if delivery else None

    def update_channel(
        self,
        broadcast_id: str,
        user_id: str,
        channel: Channel,
        state: ChannelState,
    ) -> None:
        key = Delivery.make_id(broadcast_id, user_id)
        with self._lock:
            delivery = self._deliveries.get(key)
            if delivery is None:
                raise DeliveryNotFoundError(broadcast_id, user_id)
            setattr(delivery, channel.value, state.model_copy())

    def mark_read(self, broadcast_id: str, user_id: str, read_at: datetime) -> bool:
        key = Delivery.make_id(broadcast_id, user_id)
        with self._lock:
            delivery = self._deliveries.get(key)
            if delivery is None:
                raise DeliveryNotFoundError(broadcast_id, user_id)
            if delivery.read_at is not None:
                return False
            delivery.read_at = read_at
            return True

    def list_for_broadcast(self, broadcast_id: str) -> List[Delivery]:
        with self._lock:
            deliveries = [
                d.model_copy(deep=True)
                for d in self._deliveries.values()
                if d.broadcast_id == broadcast_id
            ]
        return sorted(deliveries, key=lambda d: d.created_at)

    def list_for_user(self, user_id: str) -> List[Delivery]:
        with self._lock:
            deliveries = [
                d.model_copy(deep=True)
                for d in self._deliveries.values()
                if d.user_id == user_id
            ]
        return sorted(deliveries, key=lambda d: d.created_at, reverse=True)
