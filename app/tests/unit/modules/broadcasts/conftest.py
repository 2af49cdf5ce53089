"""Fixtures for broadcast module unit tests."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError


@pytest.fixture
def dynamodb_client():
    """MagicMock standing in for a boto3 DynamoDB client."""
    return MagicMock()


@pytest.fixture
def client_error():
    """Factory for botocore ClientError instances."""

    def _factory(code: str = "ConditionalCheckFailedException", operation="UpdateItem"):
        return ClientError(
            {"Error": {"Code": code, "Message": code}},
            operation,
        )

    return _factory
