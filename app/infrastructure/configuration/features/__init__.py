"""Feature settings __init__ - exports all feature settings."""

from infrastructure.configuration.features.broadcasts import BroadcastSettings

__all__ = [
    "BroadcastSettings",
]
