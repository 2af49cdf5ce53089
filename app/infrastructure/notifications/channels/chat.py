"""Chat channel implementation using Slack."""

from typing import Any, Dict, List, Optional, Type

from slack_sdk import WebClient

from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.formatting import (
    SLACK_HEADER_MAX_LENGTH,
    html_to_mrkdwn,
)
from infrastructure.notifications.models import Notification
from infrastructure.operations import OperationResult, classify_slack_error
from integrations.slack.client import SlackClientManager

logger = get_module_logger()


def build_message_blocks(notification: Notification) -> List[Dict[str, Any]]:
    """Build Slack Block Kit blocks for a notification.

    Layout: header (subject, max 150 chars), body section, optional video
    section, optional call-to-action button, then a context line with the
    sender and the message centre link.
    """
    body = html_to_mrkdwn(notification.html_body) or "No content"
    blocks: List[Dict[str, Any]] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": notification.subject[:SLACK_HEADER_MAX_LENGTH],
            },
        },
        {"type": "section", "text": {"type": "mrkdwn", "text": body}},
    ]

    if notification.video_url:
        blocks.append(
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f":movie_camera: *Video:* {notification.video_url}",
                },
            }
        )

    if notification.link_url:
        blocks.append(
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": {
                            "type": "plain_text",
                            "text": notification.link_text or "Learn More",
                        },
                        "url": notification.link_url,
                    }
                ],
            }
        )

    context = []
    if notification.sender_name:
        context.append(f"Sent by {notification.sender_name}")
    if notification.message_url:
        context.append(f"<{notification.message_url}|View in message centre>")
    if context:
        blocks.append(
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": " | ".join(context)}],
            }
        )

    return blocks


class ChatChannel(NotificationChannel):
    """Slack chat notification channel.

    Sends direct messages via the Slack Web API. The recipient address is a
    Slack user ID.
    """

    def __init__(self, client_manager: Optional[Type[SlackClientManager]] = None):
        self._client_manager = client_manager or SlackClientManager
        logger.info("initialized_chat_channel", backend="slack")

    @property
    def channel_name(self) -> str:
        """Channel identifier."""
        return "chat"

    def is_configured(self) -> bool:
        return self._client_manager.is_configured()

    def send(self, address: str, notification: Notification) -> OperationResult:
        """Send a Slack DM to one user.

        Args:
            address: Slack user ID.
            notification: Notification to send.

        Returns:
            OperationResult with message_id (message ts) in data field.
        """
        try:
            client: WebClient = self._client_manager.get_client()

            conversation = client.conversations_open(users=[address])
            channel_id = conversation["channel"]["id"]

            body = html_to_mrkdwn(notification.html_body)
            response = client.chat_postMessage(
                channel=channel_id,
                text=f"{notification.subject}\n\n{body}",
                blocks=build_message_blocks(notification),
                unfurl_links=True,
                unfurl_media=True,
            )

            logger.info(
                "slack_dm_sent",
                slack_user_id=address,
                reference=notification.reference,
            )
            return OperationResult.success(
                message="Slack DM sent",
                data={"message_id": response["ts"], "channel": channel_id},
            )

        except Exception as e:
            result = classify_slack_error(e)
            logger.warning(
                "slack_dm_failed",
                slack_user_id=address,
                reference=notification.reference,
                error=result.message,
                error_code=result.error_code,
                transient=result.is_transient,
            )
            return result

    def health_check(self) -> OperationResult:
        """Check Slack API connectivity.

        Returns:
            OperationResult indicating channel health.
        """
        if not self.is_configured():
            return OperationResult.permanent_error(
                message="Slack not configured",
                error_code="NOT_CONFIGURED",
            )
        try:
            client = self._client_manager.get_client()
            auth_test = client.auth_test()
            return OperationResult.success(
                message="Slack API healthy",
                data={
                    "team": auth_test.get("team"),
                    "user": auth_test.get("user"),
                },
            )
        except Exception as e:
            logger.error("slack_health_check_failed", error=str(e))
            return classify_slack_error(e)
