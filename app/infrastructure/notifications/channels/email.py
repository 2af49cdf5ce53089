"""Email channel implementation using GC Notify."""

from typing import Any, Dict, Optional

from infrastructure.configuration.integrations.notify import NotifySettings
from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.formatting import html_to_markdown
from infrastructure.notifications.models import Notification
from infrastructure.operations import OperationResult, classify_http_error
from infrastructure.services.providers import get_settings
from integrations.notify.client import (
    create_authorization_header,
    get_notification_id,
    post_event,
)

logger = get_module_logger()


def build_email_body(notification: Notification) -> str:
    """Render the markdown body placed in the Notify email template.

    Sections: converted HTML body, optional video link, optional
    call-to-action link, "sent by" footer and message centre link.
    """
    parts = [html_to_markdown(notification.html_body)]

    if notification.video_url:
        parts.append(f"Watch the video: {notification.video_url}")

    if notification.link_url:
        label = notification.link_text or "Learn More"
        parts.append(f"[{label}]({notification.link_url})")

    footer = []
    if notification.sender_name:
        footer.append(f"Sent by {notification.sender_name}")
    if notification.message_url:
        footer.append(f"[View this message online]({notification.message_url})")
    if footer:
        parts.append("---")
        parts.append("\n\n".join(footer))

    return "\n\n".join(part for part in parts if part)


class EmailChannel(NotificationChannel):
    """Email notification channel using GC Notify.

    Sends one email per recipient through a Notify template whose
    personalisation carries the subject and the rendered body.
    """

    def __init__(self, notify_settings: Optional[NotifySettings] = None):
        self._settings = notify_settings or get_settings().notify
        logger.info("initialized_email_channel", backend="gc_notify")

    @property
    def channel_name(self) -> str:
        """Channel identifier."""
        return "email"

    def is_configured(self) -> bool:
        return bool(
            self._settings.has_credentials and self._settings.NOTIFY_EMAIL_TEMPLATE_ID
        )

    def build_payload(self, address: str, notification: Notification) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "email_address": address,
            "template_id": self._settings.NOTIFY_EMAIL_TEMPLATE_ID,
            "personalisation": {
                "subject": notification.subject,
                "body": build_email_body(notification),
            },
        }
        if notification.reference:
            payload["reference"] = notification.reference
        return payload

    def send(self, address: str, notification: Notification) -> OperationResult:
        """Send an email to one recipient.

        Args:
            address: Recipient email address.
            notification: Notification to send.

        Returns:
            OperationResult with Notify notification id as message_id.
        """
        url = f"{self._settings.NOTIFY_API_URL}/v2/notifications/email"
        try:
            response = post_event(
                url, self.build_payload(address, notification), self._settings
            )
            response.raise_for_status()
        except ValueError as e:
            # Raised before any request when credentials are missing
            logger.error("email_send_rejected", recipient=address, error=str(e))
            return OperationResult.permanent_error(
                message=f"Email send rejected: {str(e)}",
                error_code="INVALID_REQUEST",
            )
        except Exception as e:
            result = classify_http_error(e)
            logger.warning(
                "email_send_failed",
                recipient=address,
                reference=notification.reference,
                error=result.message,
                error_code=result.error_code,
                transient=result.is_transient,
            )
            return result

        notification_id = get_notification_id(response)
        logger.info(
            "email_sent",
            recipient=address,
            reference=notification.reference,
            notification_id=notification_id,
        )
        return OperationResult.success(
            message="Email sent via GC Notify",
            data={"message_id": notification_id},
        )

    def health_check(self) -> OperationResult:
        """Check GC Notify credentials.

        Returns:
            OperationResult indicating channel health.
        """
        if not self.is_configured():
            return OperationResult.permanent_error(
                message="GC Notify email not configured",
                error_code="NOT_CONFIGURED",
            )
        try:
            create_authorization_header(self._settings)
        except ValueError as e:
            return OperationResult.permanent_error(
                message=f"GC Notify credentials invalid: {str(e)}",
                error_code="AUTH_HEADER_FAILED",
            )
        return OperationResult.success(
            message="GC Notify API credentials valid",
            data={"api_url": self._settings.NOTIFY_API_URL},
        )
