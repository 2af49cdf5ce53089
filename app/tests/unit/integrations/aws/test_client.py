from unittest.mock import patch

import pytest

from infrastructure.configuration.integrations.aws import AwsSettings
from integrations.aws import client as aws_client


@pytest.fixture
def aws_settings():
    return AwsSettings(AWS_REGION="ca-central-1")


@pytest.mark.unit
@patch("integrations.aws.client.boto3.Session")
def test_get_aws_client_uses_region_and_default_config(mock_session, aws_settings):
    client = aws_client.get_aws_client("dynamodb", aws_settings)

    mock_session.assert_called_once_with(region_name="ca-central-1")
    mock_session.return_value.client.assert_called_once_with(
        "dynamodb", config=aws_client.DEFAULT_CLIENT_CONFIG
    )
    assert client is mock_session.return_value.client.return_value


@pytest.mark.unit
@patch("integrations.aws.client.boto3.Session")
def test_get_aws_client_with_endpoint_override(mock_session, aws_settings):
    aws_client.get_aws_client(
        "dynamodb", aws_settings, endpoint_url="http://localhost:8001"
    )

    kwargs = mock_session.return_value.client.call_args.kwargs
    assert kwargs["endpoint_url"] == "http://localhost:8001"


@pytest.mark.unit
def test_get_aws_client_builds_real_client(aws_settings):
    client = aws_client.get_aws_client("dynamodb", aws_settings)
    assert client.meta.region_name == "ca-central-1"
    assert client.meta.service_model.service_name == "dynamodb"
