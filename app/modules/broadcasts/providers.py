"""
Providers for the broadcast module.

Process-scoped singletons for stores, channel adapters and the dispatcher,
following `infrastructure.services.providers`. The store backend is chosen by
`BROADCAST_STORE_BACKEND`.
"""

from functools import lru_cache
from typing import Dict

from infrastructure.notifications import (
    ChatChannel,
    EmailChannel,
    NotificationChannel,
    SMSChannel,
)
from infrastructure.services.providers import get_dynamodb_client, get_settings
from modules.broadcasts.dispatcher import Dispatcher
from modules.broadcasts.dynamodb_store import (
    DynamoDBBroadcastStore,
    DynamoDBDeliveryStore,
)
from modules.broadcasts.models import Channel
from modules.broadcasts.receipts import ReadReceiptTracker
from modules.broadcasts.scheduler import SchedulerTrigger
from modules.broadcasts.service import BroadcastService
from modules.broadcasts.store import (
    BroadcastStore,
    DeliveryStore,
    InMemoryBroadcastStore,
    InMemoryDeliveryStore,
)
from modules.broadcasts.users import (
    DynamoDBUserDirectory,
    InMemoryUserDirectory,
    UserDirectory,
)


def _use_memory() -> bool:
    return get_settings().broadcasts.store_backend == "memory"


@lru_cache
def get_broadcast_store() -> BroadcastStore:
    if _use_memory():
        return InMemoryBroadcastStore()
    return DynamoDBBroadcastStore(
        get_dynamodb_client(), get_settings().aws.BROADCASTS_TABLE
    )


@lru_cache
def get_delivery_store() -> DeliveryStore:
    if _use_memory():
        return InMemoryDeliveryStore()
    return DynamoDBDeliveryStore(
        get_dynamodb_client(), get_settings().aws.DELIVERIES_TABLE
    )


@lru_cache
def get_user_directory() -> UserDirectory:
    if _use_memory():
        return InMemoryUserDirectory()
    return DynamoDBUserDirectory(get_dynamodb_client(), get_settings().aws.USERS_TABLE)


@lru_cache
def get_channels() -> Dict[Channel, NotificationChannel]:
    """Channel adapters keyed by channel; each is built once per process."""
    notify_settings = get_settings().notify
    return {
        Channel.CHAT: ChatChannel(),
        Channel.EMAIL: EmailChannel(notify_settings),
        Channel.SMS: SMSChannel(notify_settings),
    }


@lru_cache
def get_dispatcher() -> Dispatcher:
    return Dispatcher(
        broadcasts=get_broadcast_store(),
        deliveries=get_delivery_store(),
        directory=get_user_directory(),
        channels=get_channels(),
        settings=get_settings().broadcasts,
    )


@lru_cache
def get_scheduler() -> SchedulerTrigger:
    return SchedulerTrigger(get_broadcast_store(), get_dispatcher())


@lru_cache
def get_receipt_tracker() -> ReadReceiptTracker:
    return ReadReceiptTracker(get_broadcast_store(), get_delivery_store())


@lru_cache
def get_broadcast_service() -> BroadcastService:
    return BroadcastService(get_broadcast_store(), get_delivery_store(), get_dispatcher())
