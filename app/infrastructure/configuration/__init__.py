"""Infrastructure configuration module - public API.

This module provides centralized configuration management for the broadcast
dispatcher using Pydantic BaseSettings with domain-based organization.

Exports:
    Settings: Main settings class (for testing/overrides)
    BroadcastSettings: Broadcast dispatch settings class (for testing)

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    # Access settings
    slack_token = settings.slack.SLACK_TOKEN
    workers = settings.broadcasts.max_workers

    # Check environment
    if settings.is_production:
        # Production-specific logic...
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.features.broadcasts import BroadcastSettings

__all__ = ["Settings", "BroadcastSettings"]
