"""AWS client factory."""

from typing import Optional

import boto3  # type: ignore
from botocore.client import BaseClient  # type: ignore
from botocore.config import Config  # type: ignore

from infrastructure.configuration.integrations.aws import AwsSettings

# Let botocore absorb short throttling bursts before errors reach the stores
DEFAULT_CLIENT_CONFIG = Config(
    retries={"max_attempts": 3, "mode": "standard"},
    connect_timeout=5,
    read_timeout=10,
)


def get_aws_client(
    service_name: str,
    aws_settings: AwsSettings,
    endpoint_url: Optional[str] = None,
    client_config: Optional[Config] = None,
) -> BaseClient:
    """
    Create a boto3 AWS service client.

    Args:
        service_name (str): The name of the AWS service.
        aws_settings (AwsSettings): Region configuration.
        endpoint_url (str, optional): Endpoint override (e.g. local DynamoDB).
        client_config (Config, optional): botocore client configuration.
    """
    session = boto3.Session(region_name=aws_settings.AWS_REGION)
    kwargs = {"config": client_config or DEFAULT_CLIENT_CONFIG}
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    return session.client(service_name, **kwargs)
