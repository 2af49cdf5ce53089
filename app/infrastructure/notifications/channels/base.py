"""Notification channel abstract base class.

All channel implementations (Chat, Email, SMS) must implement this interface.
"""

from abc import ABC, abstractmethod

from infrastructure.notifications.models import Notification
from infrastructure.operations import OperationResult


class NotificationChannel(ABC):
    """Abstract base class for notification channels.

    Each channel delivers to one recipient address on one platform:
    - ChatChannel: Slack DMs, address is a Slack user ID
    - EmailChannel: GC Notify email, address is an email address
    - SMSChannel: GC Notify SMS, address is an E.164 phone number

    Channels never raise from `send`. Provider failures are classified into
    TRANSIENT_ERROR (worth another attempt) or PERMANENT_ERROR.

    Example Implementation:
        class ChatChannel(NotificationChannel):

            @property
            def channel_name(self) -> str:
                return "chat"

            def send(self, address: str, notification: Notification) -> OperationResult:
                try:
                    response = client.chat_postMessage(channel=address, text=...)
                    return OperationResult.success(data={"message_id": response["ts"]})
                except Exception as exc:
                    return classify_slack_error(exc)
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Channel identifier (chat, email, sms).

        Returns:
            Channel name string for routing and logging
        """

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials for the provider are present.

        Unconfigured channels are skipped for every recipient instead of
        being attempted.
        """

    @abstractmethod
    def send(self, address: str, notification: Notification) -> OperationResult:
        """Deliver a notification to one recipient address.

        Must handle errors gracefully and return an error OperationResult
        rather than raising exceptions.

        Args:
            address: Platform address (Slack ID, email, E.164 phone)
            notification: Content to deliver

        Returns:
            OperationResult with {"message_id": ...} in data on success
        """

    @abstractmethod
    def health_check(self) -> OperationResult:
        """Check channel health (API connectivity, credentials).

        Returns:
            OperationResult indicating channel health
        """
