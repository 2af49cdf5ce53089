"""SMS channel implementation using GC Notify."""

from typing import Optional

from infrastructure.configuration.integrations.notify import NotifySettings
from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.formatting import build_sms_message, format_phone_e164
from infrastructure.notifications.models import Notification
from infrastructure.operations import OperationResult, classify_http_error
from infrastructure.services.providers import get_settings
from integrations.notify.client import (
    create_authorization_header,
    get_notification_id,
    post_event,
)

logger = get_module_logger()


class SMSChannel(NotificationChannel):
    """SMS notification channel using GC Notify.

    Sends a single-segment SMS (160 characters, message link included) via
    the GC Notify REST API. Addresses must normalise to E.164.
    """

    def __init__(self, notify_settings: Optional[NotifySettings] = None):
        self._settings = notify_settings or get_settings().notify
        logger.info("initialized_sms_channel", backend="gc_notify")

    @property
    def channel_name(self) -> str:
        """Channel identifier."""
        return "sms"

    def is_configured(self) -> bool:
        return bool(
            self._settings.has_credentials and self._settings.NOTIFY_SMS_TEMPLATE_ID
        )

    def render(self, notification: Notification) -> str:
        """Render the SMS text for a notification."""
        return build_sms_message(
            notification.sms_body or notification.subject,
            notification.message_url,
        )

    def send(self, address: str, notification: Notification) -> OperationResult:
        """Send an SMS to one phone number.

        Args:
            address: Recipient phone number (normalised to E.164).
            notification: Notification to send.

        Returns:
            OperationResult with Notify notification id as message_id.
        """
        phone_number = format_phone_e164(address)
        if phone_number is None:
            return OperationResult.permanent_error(
                message=f"Invalid phone number format: {address}",
                error_code="INVALID_PHONE_FORMAT",
            )

        payload = {
            "phone_number": phone_number,
            "template_id": self._settings.NOTIFY_SMS_TEMPLATE_ID,
            "personalisation": {"message": self.render(notification)},
        }
        if notification.reference:
            payload["reference"] = notification.reference

        url = f"{self._settings.NOTIFY_API_URL}/v2/notifications/sms"
        try:
            response = post_event(url, payload, self._settings)
            response.raise_for_status()
        except ValueError as e:
            logger.error("sms_send_rejected", phone_number=phone_number, error=str(e))
            return OperationResult.permanent_error(
                message=f"SMS send rejected: {str(e)}",
                error_code="INVALID_REQUEST",
            )
        except Exception as e:
            result = classify_http_error(e)
            logger.warning(
                "sms_send_failed",
                phone_number=phone_number,
                reference=notification.reference,
                error=result.message,
                error_code=result.error_code,
                transient=result.is_transient,
            )
            return result

        notification_id = get_notification_id(response)
        logger.info(
            "sms_sent",
            phone_number=phone_number,
            reference=notification.reference,
            notification_id=notification_id,
        )
        return OperationResult.success(
            message="SMS sent via GC Notify",
            data={"message_id": notification_id},
        )

    def health_check(self) -> OperationResult:
        """Check GC Notify credentials.

        Returns:
            OperationResult indicating channel health.
        """
        if not self.is_configured():
            return OperationResult.permanent_error(
                message="GC Notify SMS not configured",
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
