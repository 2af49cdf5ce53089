from typing import Optional

from slack_sdk import WebClient

from infrastructure.services.providers import get_settings


class SlackClientManager:
    """Manages the Slack API client. Ensures a single instance is used throughout the application."""

    _client: Optional[WebClient] = None

    @classmethod
    def get_client(cls) -> WebClient:
        """Returns a singleton instance of the Slack WebClient."""
        if cls._client is None:
            settings = get_settings()
            cls._client = WebClient(
                token=settings.slack.SLACK_TOKEN,
                timeout=int(settings.broadcasts.send_timeout_seconds),
            )
        return cls._client

    @classmethod
    def is_configured(cls) -> bool:
        """True when a bot token is available."""
        return bool(get_settings().slack.SLACK_TOKEN)
