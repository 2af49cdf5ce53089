"""Fixtures for notification channel tests."""

from unittest.mock import MagicMock, Mock

import pytest

from infrastructure.configuration.integrations.notify import NotifySettings


@pytest.fixture
def mock_slack_client():
    """Mock Slack WebClient with successful responses.

    Returns:
        MagicMock configured with successful Slack API responses
    """
    client = MagicMock()
    client.auth_test = MagicMock(
        return_value={"ok": True, "team": "Test Team", "user": "test_bot"}
    )
    client.conversations_open = MagicMock(
        return_value={"ok": True, "channel": {"id": "D12345TEST"}}
    )
    client.chat_postMessage = MagicMock(
        return_value={"ok": True, "ts": "1234567890.123456", "channel": "D12345TEST"}
    )
    return client


@pytest.fixture
def mock_slack_client_manager(mock_slack_client):
    """Mock SlackClientManager class returning the mock client."""
    manager = MagicMock()
    manager.get_client = MagicMock(return_value=mock_slack_client)
    manager.is_configured = MagicMock(return_value=True)
    return manager


@pytest.fixture
def notify_response():
    """Successful GC Notify response."""
    response = Mock()
    response.status_code = 201
    response.raise_for_status = Mock()
    response.json = MagicMock(
        return_value={"id": "notification_12345", "reference": None}
    )
    return response


@pytest.fixture
def unconfigured_notify_settings():
    return NotifySettings(
        NOTIFY_API_URL="",
        NOTIFY_SRE_USER_NAME=None,
        NOTIFY_SRE_CLIENT_SECRET=None,
        NOTIFY_EMAIL_TEMPLATE_ID="",
        NOTIFY_SMS_TEMPLATE_ID="",
    )
