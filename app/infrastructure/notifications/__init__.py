"""Multi-channel notification delivery.

Provides per-recipient notification delivery over Slack, email and SMS.
Features build a `Notification` once; each channel renders and sends it to
one address and reports the outcome as an `OperationResult`.

Usage:
    from infrastructure.notifications import Notification, ChatChannel

    notification = Notification(
        subject="Schedule change",
        html_body="<p>The Friday show moves to 8pm.</p>",
    )

    channel = ChatChannel()
    result = channel.send("U12345", notification)
    if result.is_transient:
        # try again on the next run
        ...
"""

from infrastructure.notifications.models import Notification
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.channels.chat import ChatChannel
from infrastructure.notifications.channels.email import EmailChannel
from infrastructure.notifications.channels.sms import SMSChannel

__all__ = [
    "Notification",
    "NotificationChannel",
    "ChatChannel",
    "EmailChannel",
    "SMSChannel",
]
