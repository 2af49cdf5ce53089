"""GC Notify client."""

import calendar
import json
import time
from typing import Optional

import jwt
import requests

from infrastructure.configuration.integrations.notify import NotifySettings
from infrastructure.logging import get_module_logger
from infrastructure.services.providers import get_settings

logger = get_module_logger()


# generate the epoch seconds for the jwt token
def epoch_seconds():
    return calendar.timegm(time.gmtime())


def create_jwt_token(secret, client_id):
    """
    Generate a JWT Token for the Notify API

    Tokens have a header consisting of:
    {
        "typ": "JWT",
        "alg": "HS256"
    }

    Parameters:
    secret: Application signing secret
    client_id: Identifier for the client

    Claims are:
    iss: identifier for the client
    iat: epoch seconds for the token (UTC)

    Returns a JWT token for this request
    """
    if not secret:
        logger.error("jwt_token_creation_failed", error="Missing secret key")
        raise ValueError("Missing secret key")
    if not client_id:
        logger.error("jwt_token_creation_failed", error="Missing client id")
        raise ValueError("Missing client id")

    headers = {"typ": "JWT", "alg": "HS256"}

    claims = {"iss": client_id, "iat": epoch_seconds()}
    return jwt.encode(payload=claims, key=secret, headers=headers)


def create_authorization_header(notify_settings: Optional[NotifySettings] = None):
    """Create the authorization header for the Notify API"""
    notify_settings = notify_settings or get_settings().notify
    client_id = notify_settings.NOTIFY_SRE_USER_NAME
    secret = notify_settings.NOTIFY_SRE_CLIENT_SECRET

    if not client_id:
        error = "NOTIFY_SRE_USER_NAME is missing"
        logger.error("authorization_header_creation_failed", error=error)
        raise ValueError(error)
    if not secret:
        error = "NOTIFY_SRE_CLIENT_SECRET is missing"
        logger.error("authorization_header_creation_failed", error=error)
        raise ValueError(error)

    token = create_jwt_token(secret=secret, client_id=client_id)
    return "Authorization", "Bearer {}".format(token)


def post_event(url, payload, notify_settings: Optional[NotifySettings] = None):
    """Post a notification request to Notify.

    Returns the raw `requests.Response`; callers decide how to interpret the
    status code. Connection errors and timeouts propagate.
    """
    notify_settings = notify_settings or get_settings().notify
    header_key, header_value = create_authorization_header(notify_settings)
    header = {header_key: header_value, "Content-Type": "application/json"}

    return requests.post(
        url,
        data=json.dumps(payload),
        headers=header,
        timeout=notify_settings.NOTIFY_TIMEOUT_SECONDS,
    )


def get_notification_id(response) -> Optional[str]:
    """Return the Notify notification id from a successful response, if readable."""
    try:
        return response.json().get("id")
    except ValueError:
        return None
