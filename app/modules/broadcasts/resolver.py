"""Recipient resolution.

Turns a broadcast's target set into an ordered, de-duplicated list of
recipients with one address (or skip reason) per channel.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from infrastructure.logging import get_module_logger
from infrastructure.notifications.formatting import format_phone_e164
from modules.broadcasts.models import (
    Broadcast,
    Channel,
    ChannelState,
    Pending,
    Skipped,
    User,
)
from modules.broadcasts.permissions import Capability, has_capability
from modules.broadcasts.users import UserDirectory

logger = get_module_logger()

SKIP_CHANNEL_DISABLED = "channel disabled"
SKIP_UNKNOWN_RECIPIENT = "unknown recipient"
SKIP_NO_SLACK_ID = "No Slack ID"
SKIP_NO_EMAIL = "No email address"
SKIP_NO_PHONE = "No phone number"
SKIP_INVALID_PHONE = "Invalid phone number"
SKIP_DAILY_LIMIT = "daily limit reached"
SKIP_NO_LONGER_ELIGIBLE = "recipient no longer eligible"


def not_configured_reason(channel: Channel) -> str:
    return f"{channel.value} not configured"


@dataclass
class ResolvedRecipient:
    """A recipient with per-channel addresses.

    Attributes:
        user_id: User record id (or the unknown target id)
        name: Display name
        email: Email address, kept on the delivery for admin views
        addresses: Channel -> address for channels that will be attempted
        skipped: Channel -> reason for channels that will not
        unknown: True when the target id matched no user record
    """

    user_id: str
    name: str = ""
    email: Optional[str] = None
    addresses: Dict[Channel, str] = field(default_factory=dict)
    skipped: Dict[Channel, str] = field(default_factory=dict)
    unknown: bool = False

    def initial_state(self, channel: Channel) -> ChannelState:
        """Channel state for a newly created delivery."""
        if channel in self.skipped:
            return Skipped(reason=self.skipped[channel])
        return Pending()


def channel_address(user: User, channel: Channel) -> tuple[Optional[str], Optional[str]]:
    """Return (address, skip_reason) for one user and channel."""
    match channel:
        case Channel.CHAT:
            if not user.slack_id:
                return None, SKIP_NO_SLACK_ID
            return user.slack_id, None
        case Channel.EMAIL:
            if not user.email:
                return None, SKIP_NO_EMAIL
            return user.email, None
        case Channel.SMS:
            if not user.phone:
                return None, SKIP_NO_PHONE
            phone = format_phone_e164(user.phone)
            if phone is None:
                return None, SKIP_INVALID_PHONE
            return phone, None
    return None, not_configured_reason(channel)


class RecipientResolver:
    """Resolves broadcast targets against the user directory."""

    def __init__(self, directory: UserDirectory):
        self._directory = directory

    def target_users(self, broadcast: Broadcast) -> List[tuple[str, Optional[User]]]:
        """Ordered (user_id, user) pairs; user is None for unknown ids."""
        if broadcast.target_user_ids:
            seen: Set[str] = set()
            targets = []
            for user_id in broadcast.target_user_ids:
                if user_id in seen:
                    continue
                seen.add(user_id)
                targets.append((user_id, self._directory.get(user_id)))
            return targets

        eligible = [
            user
            for user in self._directory.list_all()
            if has_capability(user.role, Capability.RECEIVE_BROADCASTS)
        ]
        return [(user.id, user) for user in sorted(eligible, key=lambda u: u.id)]

    def resolve(
        self,
        broadcast: Broadcast,
        available_channels: Iterable[Channel],
    ) -> List[ResolvedRecipient]:
        """Resolve recipients and their channel addresses.

        Args:
            broadcast: Broadcast to resolve
            available_channels: Channels whose adapter is configured

        Returns:
            Recipients in target order (explicit targets) or by user id (all
            eligible users).
        """
        available = set(available_channels)
        enabled = set(broadcast.channels.enabled())
        recipients = []

        for user_id, user in self.target_users(broadcast):
            if user is None:
                logger.warning(
                    "broadcast_recipient_unknown",
                    broadcast_id=broadcast.id,
                    user_id=user_id,
                )
                recipients.append(
                    ResolvedRecipient(
                        user_id=user_id,
                        skipped={c: SKIP_UNKNOWN_RECIPIENT for c in Channel},
                        unknown=True,
                    )
                )
                continue

            recipient = ResolvedRecipient(
                user_id=user.id,
                name=user.display_name,
                email=user.email,
            )
            for channel in Channel:
                if channel not in enabled:
                    recipient.skipped[channel] = SKIP_CHANNEL_DISABLED
                elif channel not in available:
                    recipient.skipped[channel] = not_configured_reason(channel)
                else:
                    address, reason = channel_address(user, channel)
                    if address is None:
                        recipient.skipped[channel] = reason
                    else:
                        recipient.addresses[channel] = address
            recipients.append(recipient)

        logger.info(
            "broadcast_recipients_resolved",
            broadcast_id=broadcast.id,
            recipients=len(recipients),
        )
        return recipients
