"""Unit tests for ChatChannel (Slack implementation)."""

import pytest
from slack_sdk.errors import SlackApiError
from slack_sdk.web.slack_response import SlackResponse

from infrastructure.notifications.channels.chat import ChatChannel, build_message_blocks
from infrastructure.operations import OperationStatus


def slack_error(error: str, status_code: int = 200, headers=None) -> SlackApiError:
    response = SlackResponse(
        client=None,
        http_verb="POST",
        api_url="https://slack.com/api/chat.postMessage",
        req_args={},
        data={"ok": False, "error": error},
        headers=headers or {},
        status_code=status_code,
    )
    return SlackApiError(message=error, response=response)


@pytest.mark.unit
class TestChatChannel:
    """Tests for ChatChannel implementation."""

    @pytest.fixture
    def chat_channel(self, mock_slack_client_manager):
        return ChatChannel(client_manager=mock_slack_client_manager)

    def test_channel_name(self, chat_channel):
        assert chat_channel.channel_name == "chat"

    def test_is_configured_follows_client_manager(
        self, chat_channel, mock_slack_client_manager
    ):
        assert chat_channel.is_configured() is True
        mock_slack_client_manager.is_configured.return_value = False
        assert chat_channel.is_configured() is False

    def test_send_success(self, chat_channel, sample_notification, mock_slack_client):
        """Opens a DM and posts the message to it."""
        result = chat_channel.send("U12345TEST", sample_notification)

        assert result.is_success
        assert result.data["message_id"] == "1234567890.123456"
        mock_slack_client.conversations_open.assert_called_once_with(
            users=["U12345TEST"]
        )
        kwargs = mock_slack_client.chat_postMessage.call_args.kwargs
        assert kwargs["channel"] == "D12345TEST"
        assert kwargs["text"].startswith("Schedule change\n\n")
        assert "*8pm*" in kwargs["text"]
        assert kwargs["blocks"][0]["type"] == "header"

    def test_send_permanent_slack_error(
        self, chat_channel, sample_notification, mock_slack_client
    ):
        mock_slack_client.conversations_open.side_effect = slack_error("user_not_found")

        result = chat_channel.send("U404", sample_notification)

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "user_not_found"
        mock_slack_client.chat_postMessage.assert_not_called()

    def test_send_rate_limited(self, chat_channel, sample_notification, mock_slack_client):
        mock_slack_client.chat_postMessage.side_effect = slack_error(
            "ratelimited", status_code=429, headers={"Retry-After": "30"}
        )

        result = chat_channel.send("U12345TEST", sample_notification)

        assert result.is_transient
        assert result.error_code == "RATE_LIMITED"
        assert result.retry_after == 30

    def test_send_connection_error_is_transient(
        self, chat_channel, sample_notification, mock_slack_client
    ):
        mock_slack_client.chat_postMessage.side_effect = ConnectionResetError("reset")

        result = chat_channel.send("U12345TEST", sample_notification)

        assert result.is_transient
        assert result.error_code == "CONNECTION_ERROR"

    def test_health_check_success(self, chat_channel):
        result = chat_channel.health_check()
        assert result.is_success
        assert result.data == {"team": "Test Team", "user": "test_bot"}

    def test_health_check_not_configured(self, chat_channel, mock_slack_client_manager):
        mock_slack_client_manager.is_configured.return_value = False
        result = chat_channel.health_check()
        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "NOT_CONFIGURED"


@pytest.mark.unit
class TestBuildMessageBlocks:
    def test_minimal(self, notification_factory):
        blocks = build_message_blocks(
            notification_factory(sender_name=None, message_url=None)
        )
        assert [b["type"] for b in blocks] == ["header", "section"]

    def test_full_layout(self, sample_notification):
        blocks = build_message_blocks(
            sample_notification.model_copy(
                update={"video_url": "https://video.example.com/v1"}
            )
        )

        assert [b["type"] for b in blocks] == [
            "header",
            "section",
            "section",
            "actions",
            "context",
        ]
        button = blocks[3]["elements"][0]
        assert button["text"]["text"] == "See schedule"
        assert button["url"] == "https://app.example.com/schedule"
        context = blocks[4]["elements"][0]["text"]
        assert "Sent by The Team" in context
        assert "<https://app.example.com/messages/b1|View in message centre>" in context

    def test_header_truncated(self, notification_factory):
        blocks = build_message_blocks(notification_factory(subject="x" * 200))
        assert len(blocks[0]["text"]["text"]) == 150

    def test_default_button_label(self, notification_factory):
        blocks = build_message_blocks(
            notification_factory(link_url="https://example.com")
        )
        actions = next(b for b in blocks if b["type"] == "actions")
        assert actions["elements"][0]["text"]["text"] == "Learn More"

    def test_empty_body(self, notification_factory):
        blocks = build_message_blocks(notification_factory(html_body=""))
        assert blocks[1]["text"]["text"] == "No content"
