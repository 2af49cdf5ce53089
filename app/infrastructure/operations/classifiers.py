"""Error classifiers for provider exceptions.

Converts provider-specific exceptions (Slack Web API, GC Notify over HTTP,
AWS SDK) into standardized OperationResult objects so every channel reports
failures the same way.

Key Functions:
- classify_slack_error(): slack_sdk errors -> OperationResult
- classify_http_error(): requests errors -> OperationResult
- classify_aws_error(): AWS SDK errors -> OperationResult

Usage:
    from infrastructure.operations.classifiers import classify_http_error

    try:
        response = post_event(url, payload)
        response.raise_for_status()
    except Exception as exc:
        return classify_http_error(exc)
"""

from typing import Optional

import requests
from botocore.exceptions import ClientError
from slack_sdk.errors import SlackApiError

from infrastructure.operations.result import OperationResult

DEFAULT_RETRY_AFTER = 60

# Slack error codes that will not succeed on a later attempt
PERMANENT_SLACK_ERRORS = frozenset(
    {
        "account_inactive",
        "channel_not_found",
        "invalid_auth",
        "invalid_blocks",
        "is_archived",
        "msg_too_long",
        "no_text",
        "not_authed",
        "not_in_channel",
        "restricted_action",
        "token_revoked",
        "user_disabled",
        "user_not_found",
    }
)

AWS_THROTTLING_ERRORS = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "ProvisionedThroughputExceededException",
    }
)

# GC Notify 400 messages for recipients outside a trial service's team
NOTIFY_SANDBOX_MARKERS = ("trial mode", "team-only api key")


def _parse_retry_after(value: Optional[str]) -> int:
    if not value:
        return DEFAULT_RETRY_AFTER
    try:
        return int(value)
    except (ValueError, TypeError):
        return DEFAULT_RETRY_AFTER


def classify_slack_error(exc: Exception) -> OperationResult:
    """Classify Slack Web API errors into OperationResult.

    Error Mapping:
    - ratelimited / HTTP 429: TRANSIENT_ERROR with retry_after
    - HTTP 5xx, internal_error, fatal_error, service_unavailable: TRANSIENT_ERROR
    - Known recipient/auth/payload errors: PERMANENT_ERROR
    - Any other Slack error code: PERMANENT_ERROR
    - Non-Slack exceptions (socket timeouts, connection resets): TRANSIENT_ERROR

    Args:
        exc: Exception raised by slack_sdk.WebClient

    Returns:
        OperationResult with appropriate status, message, error_code, and
        retry_after (if applicable)
    """
    if not isinstance(exc, SlackApiError):
        return OperationResult.transient_error(
            f"Slack connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    response = exc.response
    error = "unknown_error"
    status_code: Optional[int] = None
    if response is not None:
        error = response.get("error") or error
        status_code = getattr(response, "status_code", None)

    if error == "ratelimited" or status_code == 429:
        headers = getattr(response, "headers", None) or {}
        return OperationResult.transient_error(
            "Slack API rate limited",
            error_code="RATE_LIMITED",
            retry_after=_parse_retry_after(headers.get("Retry-After")),
        )

    if (status_code and status_code >= 500) or error in (
        "internal_error",
        "fatal_error",
        "service_unavailable",
        "request_timeout",
    ):
        return OperationResult.transient_error(
            f"Slack API unavailable: {error}",
            error_code=error,
        )

    if error in PERMANENT_SLACK_ERRORS:
        return OperationResult.permanent_error(
            f"Slack API rejected message: {error}",
            error_code=error,
        )

    return OperationResult.permanent_error(
        f"Slack API error: {error}",
        error_code=error,
    )


def classify_http_error(exc: Exception) -> OperationResult:
    """Classify HTTP errors raised by `requests` into OperationResult.

    Status Code Mapping:
    - 429: Rate limiting -> TRANSIENT_ERROR with retry_after
    - 408, 5xx: Server side -> TRANSIENT_ERROR
    - 400 from GC Notify trial mode or a team-only key -> TRANSIENT_ERROR
      (PROVIDER_SANDBOXED), the recipient becomes reachable once the
      service goes live
    - 400, 401, 403, 404 and other 4xx -> PERMANENT_ERROR
    - Timeouts and connection errors -> TRANSIENT_ERROR

    Args:
        exc: Exception raised while calling an HTTP API with requests

    Returns:
        OperationResult with appropriate status, message, error_code, and
        retry_after (if applicable)
    """
    if isinstance(exc, requests.Timeout):
        return OperationResult.transient_error(
            f"HTTP request timed out: {str(exc)}",
            error_code="TIMEOUT",
        )

    response = getattr(exc, "response", None)
    if not isinstance(exc, requests.HTTPError) or response is None:
        return OperationResult.transient_error(
            f"Connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    status_code = response.status_code

    if status_code == 429:
        return OperationResult.transient_error(
            "HTTP API rate limited",
            error_code="RATE_LIMITED",
            retry_after=_parse_retry_after(response.headers.get("Retry-After")),
        )

    if status_code == 408 or 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"HTTP API server error ({status_code})",
            error_code=f"HTTP_{status_code}",
        )

    if status_code in (401, 403):
        return OperationResult.permanent_error(
            f"HTTP API authorization failed ({status_code})",
            error_code="UNAUTHORIZED",
        )

    body = response.text or ""
    if status_code == 400 and any(
        marker in body.lower() for marker in NOTIFY_SANDBOX_MARKERS
    ):
        return OperationResult.transient_error(
            f"Recipient blocked by provider sandbox: {body[:200]}",
            error_code="PROVIDER_SANDBOXED",
        )

    return OperationResult.permanent_error(
        f"HTTP API client error ({status_code}): {response.text[:200]}",
        error_code=f"HTTP_{status_code}",
    )


def classify_aws_error(exc: Exception) -> OperationResult:
    """Classify AWS SDK errors into OperationResult.

    Error Code Mapping:
    - Throttling family: TRANSIENT_ERROR with retry_after
    - AccessDeniedException: PERMANENT_ERROR
    - ResourceNotFoundException: PERMANENT_ERROR (missing table)
    - ValidationException: PERMANENT_ERROR
    - Other: TRANSIENT_ERROR (AWS convention)

    Args:
        exc: Exception raised by boto3/botocore

    Returns:
        OperationResult with appropriate status, message and error_code
    """
    if not isinstance(exc, ClientError):
        return OperationResult.transient_error(
            f"AWS connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    error_code = exc.response.get("Error", {}).get("Code", "Unknown")

    if error_code in AWS_THROTTLING_ERRORS:
        return OperationResult.transient_error(
            "AWS API throttled",
            error_code="RATE_LIMITED",
            retry_after=DEFAULT_RETRY_AFTER,
        )

    if error_code in (
        "AccessDeniedException",
        "ResourceNotFoundException",
        "ValidationException",
    ):
        return OperationResult.permanent_error(
            f"AWS request rejected: {error_code}",
            error_code=error_code,
        )

    # Unknown AWS errors are retried by default
    return OperationResult.transient_error(
        f"AWS client error: {error_code}",
        error_code=error_code,
    )
