"""Unit tests for recipient resolution."""

import pytest

from modules.broadcasts.models import Channel, Pending, Skipped
from modules.broadcasts.resolver import (
    SKIP_CHANNEL_DISABLED,
    SKIP_INVALID_PHONE,
    SKIP_NO_EMAIL,
    SKIP_NO_PHONE,
    SKIP_NO_SLACK_ID,
    SKIP_UNKNOWN_RECIPIENT,
    RecipientResolver,
    channel_address,
    not_configured_reason,
)
from modules.broadcasts.users import InMemoryUserDirectory
from tests.factories.broadcasts import make_broadcast, make_user, make_users

ALL_CHANNELS = list(Channel)


@pytest.mark.unit
class TestChannelAddress:
    def test_addresses(self):
        user = make_user(slack_id="U1", email="a@example.com", phone="(613) 555-0101")
        assert channel_address(user, Channel.CHAT) == ("U1", None)
        assert channel_address(user, Channel.EMAIL) == ("a@example.com", None)
        assert channel_address(user, Channel.SMS) == ("+16135550101", None)

    def test_missing_addresses(self):
        user = make_user(slack_id=None, email=None, phone=None)
        assert channel_address(user, Channel.CHAT) == (None, SKIP_NO_SLACK_ID)
        assert channel_address(user, Channel.EMAIL) == (None, SKIP_NO_EMAIL)
        assert channel_address(user, Channel.SMS) == (None, SKIP_NO_PHONE)

    def test_invalid_phone(self):
        user = make_user(phone="555-01")
        assert channel_address(user, Channel.SMS) == (None, SKIP_INVALID_PHONE)


@pytest.mark.unit
class TestRecipientResolver:
    def test_all_eligible_users_when_no_targets(self):
        directory = InMemoryUserDirectory(
            make_users(2)
            + [make_user("u9", role="applicant"), make_user("u8", role="rejected")]
        )
        resolver = RecipientResolver(directory)

        recipients = resolver.resolve(make_broadcast(), ALL_CHANNELS)

        assert [r.user_id for r in recipients] == ["u1", "u2"]

    def test_explicit_targets_deduplicated_in_order(self):
        directory = InMemoryUserDirectory(make_users(3))
        broadcast = make_broadcast(target_user_ids=["u3", "u1", "u3"])

        recipients = RecipientResolver(directory).resolve(broadcast, ALL_CHANNELS)

        assert [r.user_id for r in recipients] == ["u3", "u1"]

    def test_explicit_targets_ignore_role(self):
        directory = InMemoryUserDirectory([make_user("u1", role="applicant")])
        broadcast = make_broadcast(target_user_ids=["u1"])

        recipients = RecipientResolver(directory).resolve(broadcast, ALL_CHANNELS)

        assert recipients[0].addresses[Channel.CHAT] == "U001"

    def test_unknown_target_skipped_on_every_channel(self):
        directory = InMemoryUserDirectory(make_users(1))
        broadcast = make_broadcast(target_user_ids=["ghost", "u1"])

        recipients = RecipientResolver(directory).resolve(broadcast, ALL_CHANNELS)

        ghost = recipients[0]
        assert ghost.unknown
        assert ghost.addresses == {}
        assert all(
            ghost.initial_state(c) == Skipped(reason=SKIP_UNKNOWN_RECIPIENT)
            for c in Channel
        )
        assert not recipients[1].unknown

    def test_disabled_and_unconfigured_channels(self):
        directory = InMemoryUserDirectory([make_user("u1")])
        broadcast = make_broadcast(chat=True, email=True, sms=False)

        recipient = RecipientResolver(directory).resolve(broadcast, [Channel.CHAT])[0]

        assert recipient.addresses == {Channel.CHAT: "U001"}
        assert recipient.skipped[Channel.SMS] == SKIP_CHANNEL_DISABLED
        assert recipient.skipped[Channel.EMAIL] == not_configured_reason(Channel.EMAIL)
        assert recipient.initial_state(Channel.CHAT) == Pending()

    def test_missing_address_skipped(self):
        directory = InMemoryUserDirectory([make_user("u1", slack_id=None)])
        broadcast = make_broadcast(chat=True, email=True)

        recipient = RecipientResolver(directory).resolve(broadcast, ALL_CHANNELS)[0]

        assert recipient.skipped[Channel.CHAT] == SKIP_NO_SLACK_ID
        assert recipient.addresses[Channel.EMAIL] == "alex@example.com"

    def test_empty_directory(self):
        recipients = RecipientResolver(InMemoryUserDirectory()).resolve(
            make_broadcast(), ALL_CHANNELS
        )
        assert recipients == []
