"""Errors for the broadcasts module."""

from typing import Optional

from infrastructure.operations import OperationResult


class BroadcastError(Exception):
    """Base class for broadcast dispatch errors."""


class BroadcastValidationError(BroadcastError):
    """Raised when a broadcast is malformed and must not enter `sending`."""


class BroadcastNotFoundError(BroadcastError):
    """Raised when a broadcast id does not exist."""

    def __init__(self, broadcast_id: str):
        super().__init__(f"Broadcast not found: {broadcast_id}")
        self.broadcast_id = broadcast_id


class DeliveryNotFoundError(BroadcastError):
    """Raised when no delivery exists for a (broadcast, user) pair."""

    def __init__(self, broadcast_id: str, user_id: str):
        super().__init__(f"Delivery not found: {broadcast_id}#{user_id}")
        self.broadcast_id = broadcast_id
        self.user_id = user_id


class StoreUnavailableError(BroadcastError):
    """Raised when the backing store cannot be read or written.

    Attributes:
        message: human-friendly message
        response: the classified OperationResult for the underlying error
    """

    def __init__(self, message: str, response: Optional[OperationResult] = None):
        super().__init__(message)
        self.response = response
