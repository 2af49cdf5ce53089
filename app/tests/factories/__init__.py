"""Test data factories for deterministic test data generation."""

from tests.factories.broadcasts import (
    FakeChannel,
    make_broadcast,
    make_delivery,
    make_user,
    make_users,
)
from tests.factories.notifications import make_notification

__all__ = [
    "FakeChannel",
    "make_broadcast",
    "make_delivery",
    "make_user",
    "make_users",
    "make_notification",
]
