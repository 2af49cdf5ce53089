"""DynamoDB helpers shared by the broadcast stores.

Wraps low-level client calls so every `ClientError` / `BotoCoreError` is
classified once and surfaces as `StoreUnavailableError`. Conditional check
failures are returned to the caller, since they are an expected outcome of
compare-and-set writes.
"""

from typing import Any, Callable, Dict, Iterator, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer  # type: ignore
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore

from infrastructure.logging import get_module_logger
from infrastructure.operations import classify_aws_error
from modules.broadcasts.errors import StoreUnavailableError

logger = get_module_logger()

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def serialize(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a plain dict into DynamoDB attribute values, dropping None."""
    return {k: _serializer.serialize(v) for k, v in item.items() if v is not None}


def serialize_value(value: Any) -> Dict[str, Any]:
    return _serializer.serialize(value)


def deserialize(item: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _deserializer.deserialize(v) for k, v in item.items()}


def is_conditional_check_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == CONDITIONAL_CHECK_FAILED


def execute(operation: str, call: Callable[..., Dict[str, Any]], **kwargs) -> Dict[str, Any]:
    """Run one DynamoDB call, translating provider failures.

    Args:
        operation: Name used in logs (e.g. "get_broadcast")
        call: Bound client method (e.g. client.get_item)
        **kwargs: Parameters for the call

    Returns:
        The raw DynamoDB response.

    Raises:
        ClientError: for conditional check failures only
        StoreUnavailableError: for every other provider failure
    """
    try:
        return call(**kwargs)
    except ClientError as e:
        if is_conditional_check_failure(e):
            raise
        result = classify_aws_error(e)
        logger.error(
            "dynamodb_operation_failed",
            operation=operation,
            table=kwargs.get("TableName"),
            error=result.message,
            error_code=result.error_code,
        )
        raise StoreUnavailableError(
            f"{operation} failed: {result.message}", response=result
        ) from e
    except BotoCoreError as e:
        result = classify_aws_error(e)
        logger.error(
            "dynamodb_operation_failed",
            operation=operation,
            table=kwargs.get("TableName"),
            error=result.message,
        )
        raise StoreUnavailableError(
            f"{operation} failed: {result.message}", response=result
        ) from e


def paginate(
    operation: str, call: Callable[..., Dict[str, Any]], **kwargs
) -> Iterator[Dict[str, Any]]:
    """Yield deserialized items across every page of a query or scan."""
    start_key: Optional[Dict[str, Any]] = None
    while True:
        params = dict(kwargs)
        if start_key:
            params["ExclusiveStartKey"] = start_key
        response = execute(operation, call, **params)
        for item in response.get("Items", []):
            yield deserialize(item)
        start_key = response.get("LastEvaluatedKey")
        if not start_key:
            break
