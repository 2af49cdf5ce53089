"""
Factory functions for dependency injection.

Provides application-scoped singleton providers for core infrastructure services.
"""

from functools import lru_cache

from botocore.client import BaseClient  # type: ignore

from infrastructure.configuration import Settings
from integrations.aws.client import get_aws_client


@lru_cache
def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    This is the single source of truth for settings across the entire application.
    The @lru_cache decorator ensures only ONE instance is created per process,
    even if called from multiple packages.

    Infrastructure packages should use this directly to ensure singleton consistency:
        from infrastructure.services.providers import get_settings
        settings = get_settings()

    Application code should use the DI type alias for testability:
        from infrastructure.services import SettingsDep
        @router.get("/config")
        def get_config(settings: SettingsDep):
            return settings.model_dump()

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()


@lru_cache
def get_dynamodb_client() -> BaseClient:
    """Provider for the shared DynamoDB client.

    boto3 clients are thread-safe, so one instance serves every store and
    every dispatcher worker thread.

    Returns:
        BaseClient: DynamoDB client configured from settings.aws
    """
    settings = get_settings()
    return get_aws_client(
        "dynamodb",
        aws_settings=settings.aws,
        endpoint_url=settings.aws.DYNAMODB_ENDPOINT_URL,
    )
