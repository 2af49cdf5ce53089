"""User directory used by the broadcast module.

The user directory is owned elsewhere; this module only reads user records and
backfills the identity-provider subject (`external_id`) on first sign-in.
"""

import threading
from typing import Dict, List, Optional, Protocol

from botocore.exceptions import ClientError  # type: ignore

from infrastructure.logging import get_module_logger
from modules.broadcasts import dynamodb
from modules.broadcasts.models import User

logger = get_module_logger()

EMAIL_INDEX = "email-index"
EXTERNAL_ID_INDEX = "externalId-index"


class UserDirectory(Protocol):
    """Read access to user records, plus the identity backfill write."""

    def get(self, user_id: str) -> Optional[User]: ...

    def list_all(self) -> List[User]: ...

    def find_by_external_id(self, external_id: str) -> Optional[User]: ...

    def find_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive email lookup."""
        ...

    def set_external_id(self, user_id: str, external_id: str) -> None: ...


class InMemoryUserDirectory:
    """Dict-backed user directory for local runs and tests."""

    def __init__(self, users: Optional[List[User]] = None):
        self._lock = threading.Lock()
        self._users: Dict[str, User] = {u.id: u for u in users or []}

    def add(self, user: User) -> None:
        with self._lock:
            self._users[user.id] = user

    def get(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None

    def list_all(self) -> List[User]:
        with self._lock:
            return [u.model_copy() for u in self._users.values()]

    def find_by_external_id(self, external_id: str) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.external_id == external_id:
                    return user.model_copy()
        return None

    def find_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        with self._lock:
            for user in self._users.values():
                if user.email and user.email.lower() == wanted:
                    return user.model_copy()
        return None

    def set_external_id(self, user_id: str, external_id: str) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is not None and not user.external_id:
                user.external_id = external_id


class DynamoDBUserDirectory:
    """User directory backed by the `users` table.

    Table Schema:
        PK: id (String)
        GSI: email-index (email_lower, the lowercased email; ALL projection)
             externalId-index (external_id; ALL projection)
    """

    def __init__(self, client, table_name: str):
        self._client = client
        self._table = table_name

    def get(self, user_id: str) -> Optional[User]:
        response = dynamodb.execute(
            "get_user",
            self._client.get_item,
            TableName=self._table,
            Key={"id": {"S": user_id}},
        )
        item = response.get("Item")
        return User.model_validate(dynamodb.deserialize(item)) if item else None

    def list_all(self) -> List[User]:
        return [
            User.model_validate(item)
            for item in dynamodb.paginate(
                "list_users", self._client.scan, TableName=self._table
            )
        ]

    def _query_one(
        self, operation: str, index: str, attribute: str, value: str
    ) -> Optional[User]:
        for item in dynamodb.paginate(
            operation,
            self._client.query,
            TableName=self._table,
            IndexName=index,
            KeyConditionExpression=f"{attribute} = :value",
            ExpressionAttributeValues={":value": {"S": value}},
            Limit=1,
        ):
            return User.model_validate(item)
        return None

    def find_by_external_id(self, external_id: str) -> Optional[User]:
        return self._query_one(
            "find_user_by_external_id", EXTERNAL_ID_INDEX, "external_id", external_id
        )

    def find_by_email(self, email: str) -> Optional[User]:
        return self._query_one(
            "find_user_by_email", EMAIL_INDEX, "email_lower", email.strip().lower()
        )

    def set_external_id(self, user_id: str, external_id: str) -> None:
        try:
            dynamodb.execute(
                "set_user_external_id",
                self._client.update_item,
                TableName=self._table,
                Key={"id": {"S": user_id}},
                UpdateExpression="SET external_id = :external_id",
                ConditionExpression=(
                    "attribute_not_exists(external_id) OR external_id = :external_id"
                ),
                ExpressionAttributeValues={":external_id": {"S": external_id}},
            )
        except ClientError as e:
            if not dynamodb.is_conditional_check_failure(e):
                raise
            # Another identity already claimed this record; leave it untouched
            logger.warning(
                "user_identity_backfill_conflict",
                user_id=user_id,
                external_id=external_id,
            )


def resolve_identity(
    directory: UserDirectory,
    external_id: Optional[str],
    email: Optional[str],
) -> Optional[User]:
    """Resolve an authenticated caller to a user record.

    Looks up by identity-provider subject first, then by email. An email
    match without a stored subject gets the subject written back so the next
    lookup takes the first path. Records that already carry a subject are
    never overwritten.

    Args:
        directory: User directory to search
        external_id: Identity-provider subject of the caller
        email: Email claim of the caller

    Returns:
        The user record, or None when neither lookup matches.
    """
    if external_id:
        user = directory.find_by_external_id(external_id)
        if user:
            return user

    if not email:
        return None

    user = directory.find_by_email(email)
    if user is None:
        return None

    if external_id and not user.external_id:
        directory.set_external_id(user.id, external_id)
        user.external_id = external_id
        logger.info(
            "user_identity_backfilled",
            user_id=user.id,
            external_id=external_id,
        )
    return user
