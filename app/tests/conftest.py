import sys
from pathlib import Path

# Ensure the application package root is on sys.path so importing application
# modules (e.g. `modules.broadcasts`) works during pytest collection.
project_root = str(Path(__file__).resolve().parents[1])
if project_root not in sys.path:
    sys.path.insert(0, project_root)

import pytest  # noqa: E402

from infrastructure.configuration import Settings  # noqa: E402
from infrastructure.configuration.features.broadcasts import (  # noqa: E402
    BroadcastSettings,
)
from infrastructure.configuration.integrations.notify import (  # noqa: E402
    NotifySettings,
)
from modules.broadcasts.dispatcher import Dispatcher  # noqa: E402
from modules.broadcasts.models import Channel  # noqa: E402
from modules.broadcasts.receipts import ReadReceiptTracker  # noqa: E402
from modules.broadcasts.scheduler import SchedulerTrigger  # noqa: E402
from modules.broadcasts.service import BroadcastService  # noqa: E402
from modules.broadcasts.store import (  # noqa: E402
    InMemoryBroadcastStore,
    InMemoryDeliveryStore,
)
from modules.broadcasts.users import InMemoryUserDirectory  # noqa: E402
from tests.factories.broadcasts import (  # noqa: E402
    FakeChannel,
    make_broadcast,
    make_delivery,
    make_user,
    make_users,
)


@pytest.fixture
def broadcast_settings():
    """Broadcast settings with a small pool and short timeout for tests."""
    return BroadcastSettings(
        CRON_SECRET="test-cron-secret",
        BROADCAST_MAX_ATTEMPTS=3,
        BROADCAST_MAX_WORKERS=5,
        BROADCAST_SEND_TIMEOUT_SECONDS=2,
        BROADCAST_CLAIM_LEASE_SECONDS=900,
        BROADCAST_STORE_BACKEND="memory",
        BROADCASTS_PER_DAY_LIMIT=50,
        MESSAGE_CENTER_URL="https://app.example.com",
        DEFAULT_SENDER_NAME="The Team",
    )


@pytest.fixture
def notify_settings():
    return NotifySettings(
        NOTIFY_SRE_USER_NAME="test-user",
        NOTIFY_SRE_CLIENT_SECRET="test-secret",
        NOTIFY_API_URL="https://api.notification.example.com",
        NOTIFY_EMAIL_TEMPLATE_ID="email-template",
        NOTIFY_SMS_TEMPLATE_ID="sms-template",
        NOTIFY_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def test_settings(broadcast_settings, notify_settings):
    """Full Settings object with test sections."""
    return Settings(broadcasts=broadcast_settings, notify=notify_settings)


@pytest.fixture
def broadcast_store():
    return InMemoryBroadcastStore()


@pytest.fixture
def delivery_store():
    return InMemoryDeliveryStore()


@pytest.fixture
def user_directory():
    return InMemoryUserDirectory()


@pytest.fixture
def fake_channels():
    """One configured fake adapter per channel, all succeeding."""
    return {channel: FakeChannel(channel.value) for channel in Channel}


@pytest.fixture
def dispatcher(
    broadcast_store, delivery_store, user_directory, fake_channels, broadcast_settings
):
    return Dispatcher(
        broadcasts=broadcast_store,
        deliveries=delivery_store,
        directory=user_directory,
        channels=fake_channels,
        settings=broadcast_settings,
        worker_id="test-worker",
    )


@pytest.fixture
def scheduler(broadcast_store, dispatcher):
    return SchedulerTrigger(broadcast_store, dispatcher)


@pytest.fixture
def receipt_tracker(broadcast_store, delivery_store):
    return ReadReceiptTracker(broadcast_store, delivery_store)


@pytest.fixture
def broadcast_service(broadcast_store, delivery_store, dispatcher):
    return BroadcastService(broadcast_store, delivery_store, dispatcher)


@pytest.fixture
def user_factory():
    """Factory fixture for User records."""
    return make_user


@pytest.fixture
def users_factory():
    return make_users


@pytest.fixture
def broadcast_factory():
    """Factory fixture for Broadcast records."""
    return make_broadcast


@pytest.fixture
def delivery_factory():
    return make_delivery
