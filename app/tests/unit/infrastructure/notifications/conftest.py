"""Fixtures for notification tests."""

import pytest

from tests.factories.notifications import make_notification


@pytest.fixture
def notification_factory():
    """Factory for Notification instances with broadcast-like defaults."""
    return make_notification


@pytest.fixture
def sample_notification():
    return make_notification(
        subject="Schedule change",
        html_body="<p>The Friday show moves to <strong>8pm</strong>.</p>",
        sms_body="Friday show moves to 8pm",
        link_url="https://app.example.com/schedule",
        link_text="See schedule",
        sender_name="The Team",
        message_url="https://app.example.com/messages/b1",
        reference="b1:u1",
    )
