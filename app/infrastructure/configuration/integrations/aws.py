"""AWS integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class AwsSettings(IntegrationSettings):
    """AWS configuration settings.

    Environment Variables:
        AWS_REGION: AWS region for services (default: ca-central-1)
        DYNAMODB_ENDPOINT_URL: Optional endpoint override (local DynamoDB)
        BROADCASTS_TABLE: Broadcast records table
        DELIVERIES_TABLE: Per-recipient delivery records table
        USERS_TABLE: User directory table

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        region = settings.aws.AWS_REGION
        table = settings.aws.DELIVERIES_TABLE
        ```
    """

    AWS_REGION: str = Field(default="ca-central-1", alias="AWS_REGION")
    DYNAMODB_ENDPOINT_URL: str | None = Field(
        default=None, alias="DYNAMODB_ENDPOINT_URL"
    )
    BROADCASTS_TABLE: str = Field(default="broadcasts", alias="BROADCASTS_TABLE")
    DELIVERIES_TABLE: str = Field(
        default="broadcast_deliveries", alias="DELIVERIES_TABLE"
    )
    USERS_TABLE: str = Field(default="users", alias="USERS_TABLE")
