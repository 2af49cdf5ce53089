"""Unit tests for read receipts and the message centre listing."""

from datetime import timedelta

import pytest

from modules.broadcasts.errors import DeliveryNotFoundError
from modules.broadcasts.models import BroadcastStatus, utc_now
from tests.factories.broadcasts import make_broadcast, make_delivery


@pytest.fixture
def sent_broadcasts(broadcast_store, delivery_store):
    now = utc_now()
    broadcast_store.create(
        make_broadcast("b1", status=BroadcastStatus.SENT, sent_at=now - timedelta(days=1))
    )
    broadcast_store.create(make_broadcast("b2", status=BroadcastStatus.SENT, sent_at=now))
    broadcast_store.create(make_broadcast("b3", status=BroadcastStatus.DRAFT))
    for broadcast_id in ("b1", "b2", "b3"):
        delivery_store.get_or_create(make_delivery(broadcast_id, "u1"))
    delivery_store.get_or_create(make_delivery("b1", "u2"))


@pytest.mark.unit
@pytest.mark.usefixtures("sent_broadcasts")
class TestReadReceiptTracker:
    def test_first_read_wins(self, receipt_tracker, delivery_store, broadcast_store):
        assert receipt_tracker.mark_read("b1", "u1") is True
        first = delivery_store.get("b1", "u1").read_at

        assert receipt_tracker.mark_read("b1", "u1") is False
        assert delivery_store.get("b1", "u1").read_at == first
        assert broadcast_store.get("b1").stats.read == 1

    def test_unread_count_per_user(self, receipt_tracker):
        assert receipt_tracker.unread_count("u1") == 3
        assert receipt_tracker.unread_count("u2") == 1

        receipt_tracker.mark_read("b1", "u1")

        assert receipt_tracker.unread_count("u1") == 2
        assert receipt_tracker.unread_count("u2") == 1
        assert receipt_tracker.unread_count("nobody") == 0

    def test_mark_read_not_a_recipient(self, receipt_tracker, broadcast_store):
        with pytest.raises(DeliveryNotFoundError):
            receipt_tracker.mark_read("b2", "u2")
        assert broadcast_store.get("b2").stats.read == 0

    def test_list_messages_visible_newest_first(self, receipt_tracker):
        receipt_tracker.mark_read("b1", "u1")

        messages = receipt_tracker.list_messages("u1")

        assert [m.broadcast_id for m in messages] == ["b2", "b1"]
        assert messages[1].is_read
        assert not messages[0].is_read
