"""Integration settings __init__ - exports all integration settings."""

from infrastructure.configuration.integrations.slack import SlackSettings
from infrastructure.configuration.integrations.aws import AwsSettings
from infrastructure.configuration.integrations.notify import NotifySettings

__all__ = [
    "SlackSettings",
    "AwsSettings",
    "NotifySettings",
]
