"""Unit tests for EmailChannel (GC Notify implementation)."""

from unittest.mock import patch

import pytest
import requests

from infrastructure.notifications.channels.email import EmailChannel, build_email_body
from infrastructure.operations import OperationStatus


def http_error(status_code: int, headers=None) -> requests.HTTPError:
    response = requests.Response()
    response.status_code = status_code
    response.headers.update(headers or {})
    response._content = b'{"errors": []}'
    return requests.HTTPError(response=response)


@pytest.mark.unit
class TestEmailChannel:
    @pytest.fixture
    def email_channel(self, notify_settings):
        return EmailChannel(notify_settings)

    @pytest.fixture
    def mock_post_event(self, notify_response):
        with patch(
            "infrastructure.notifications.channels.email.post_event",
            return_value=notify_response,
        ) as mock:
            yield mock

    def test_channel_name(self, email_channel):
        assert email_channel.channel_name == "email"

    def test_is_configured(self, email_channel, unconfigured_notify_settings):
        assert email_channel.is_configured() is True
        assert EmailChannel(unconfigured_notify_settings).is_configured() is False

    def test_send_success(self, email_channel, sample_notification, mock_post_event):
        result = email_channel.send("alex@example.com", sample_notification)

        assert result.is_success
        assert result.data == {"message_id": "notification_12345"}
        url, payload, settings = mock_post_event.call_args.args
        assert url == "https://api.notification.example.com/v2/notifications/email"
        assert payload["email_address"] == "alex@example.com"
        assert payload["template_id"] == "email-template"
        assert payload["personalisation"]["subject"] == "Schedule change"
        assert payload["reference"] == "b1:u1"

    def test_send_without_reference(
        self, email_channel, notification_factory, mock_post_event
    ):
        email_channel.send("alex@example.com", notification_factory(reference=None))
        payload = mock_post_event.call_args.args[1]
        assert "reference" not in payload

    @pytest.mark.parametrize(
        "status_code,expected_status,error_code",
        [
            (500, OperationStatus.TRANSIENT_ERROR, "HTTP_500"),
            (503, OperationStatus.TRANSIENT_ERROR, "HTTP_503"),
            (429, OperationStatus.TRANSIENT_ERROR, "RATE_LIMITED"),
            (400, OperationStatus.PERMANENT_ERROR, "HTTP_400"),
            (403, OperationStatus.PERMANENT_ERROR, "UNAUTHORIZED"),
        ],
    )
    def test_send_http_errors(
        self,
        email_channel,
        sample_notification,
        notify_response,
        mock_post_event,
        status_code,
        expected_status,
        error_code,
    ):
        notify_response.raise_for_status.side_effect = http_error(status_code)

        result = email_channel.send("alex@example.com", sample_notification)

        assert result.status == expected_status
        assert result.error_code == error_code

    def test_send_timeout_is_transient(
        self, email_channel, sample_notification, mock_post_event
    ):
        mock_post_event.side_effect = requests.Timeout("read timed out")

        result = email_channel.send("alex@example.com", sample_notification)

        assert result.is_transient
        assert result.error_code == "TIMEOUT"

    def test_send_missing_credentials_is_permanent(
        self, email_channel, sample_notification, mock_post_event
    ):
        mock_post_event.side_effect = ValueError("NOTIFY_SRE_USER_NAME is missing")

        result = email_channel.send("alex@example.com", sample_notification)

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "INVALID_REQUEST"

    def test_health_check(self, email_channel, unconfigured_notify_settings):
        assert email_channel.health_check().is_success
        result = EmailChannel(unconfigured_notify_settings).health_check()
        assert result.error_code == "NOT_CONFIGURED"


@pytest.mark.unit
class TestBuildEmailBody:
    def test_body_and_footer(self, sample_notification):
        body = build_email_body(sample_notification)

        assert body.startswith("The Friday show moves to **8pm**.")
        assert "[See schedule](https://app.example.com/schedule)" in body
        assert "Sent by The Team" in body
        assert "[View this message online](https://app.example.com/messages/b1)" in body

    def test_video_link(self, notification_factory):
        body = build_email_body(
            notification_factory(video_url="https://video.example.com/v1")
        )
        assert "Watch the video: https://video.example.com/v1" in body

    def test_no_footer(self, notification_factory):
        body = build_email_body(
            notification_factory(sender_name=None, message_url=None)
        )
        assert "---" not in body
