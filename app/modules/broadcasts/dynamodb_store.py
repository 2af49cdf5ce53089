"""DynamoDB-backed broadcast and delivery stores.

Table Schema:
    broadcasts
        PK: id (String)
        Attributes: broadcast fields, due_at (Number, epoch seconds of
                    scheduled_at or created_at), claim_worker, claim_expires_at
        GSI: status-scheduledAt-index (status + due_at)

    broadcast_deliveries
        PK: id (String, "{broadcast_id}#{user_id}")
        Attributes: delivery fields, one map per channel state
        GSI: broadcastId-index (broadcast_id)
             userId-createdAt-index (user_id + created_at)

Compare-and-set transitions use conditional writes; a failed condition is a
normal outcome and never surfaces as `StoreUnavailableError`.
"""

import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from botocore.exceptions import ClientError  # type: ignore

from infrastructure.logging import get_module_logger
from modules.broadcasts import dynamodb
from modules.broadcasts.errors import (
    BroadcastNotFoundError,
    BroadcastValidationError,
    DeliveryNotFoundError,
)
from modules.broadcasts.models import (
    Broadcast,
    BroadcastStats,
    BroadcastStatus,
    Channel,
    ChannelState,
    Delivery,
    utc_now,
)
from modules.broadcasts.store import CONTENT_FIELDS

logger = get_module_logger()

STATUS_INDEX = "status-scheduledAt-index"
BROADCAST_INDEX = "broadcastId-index"
USER_INDEX = "userId-createdAt-index"

DISPATCHABLE_CONDITION = "#status IN (:draft, :scheduled)"
RESUMABLE_CONDITION = (
    "(#status = :sending AND "
    "(attribute_not_exists(claim_expires_at) OR claim_expires_at < :now))"
)


def _now_iso() -> str:
    return utc_now().isoformat()


def _broadcast_to_item(broadcast: Broadcast) -> Dict[str, Any]:
    item = broadcast.model_dump(mode="json")
    due = broadcast.scheduled_at or broadcast.created_at
    item["due_at"] = int(due.timestamp())
    return dynamodb.serialize(item)


def _item_to_broadcast(item: Dict[str, Any]) -> Broadcast:
    return Broadcast.model_validate(dynamodb.deserialize(item))


def _item_to_delivery(item: Dict[str, Any]) -> Delivery:
    return Delivery.model_validate(dynamodb.deserialize(item))


class DynamoDBBroadcastStore:
    """Broadcast store backed by the `broadcasts` table.

    Args:
        client: boto3 DynamoDB client
        table_name: Broadcasts table name
    """

    def __init__(self, client, table_name: str):
        self._client = client
        self._table = table_name
        logger.info("dynamodb_broadcast_store_initialized", table_name=table_name)

    def _key(self, broadcast_id: str) -> Dict[str, Any]:
        return {"id": {"S": broadcast_id}}

    def _update(self, operation: str, broadcast_id: str, **kwargs) -> Dict[str, Any]:
        return dynamodb.execute(
            operation,
            self._client.update_item,
            TableName=self._table,
            Key=self._key(broadcast_id),
            **kwargs,
        )

    def create(self, broadcast: Broadcast) -> Broadcast:
        try:
            dynamodb.execute(
                "create_broadcast",
                self._client.put_item,
                TableName=self._table,
                Item=_broadcast_to_item(broadcast),
                ConditionExpression="attribute_not_exists(id)",
            )
        except ClientError as e:
            if dynamodb.is_conditional_check_failure(e):
                raise BroadcastValidationError(
                    f"Broadcast already exists: {broadcast.id}"
                ) from e
            raise
        return broadcast

    def get(self, broadcast_id: str) -> Optional[Broadcast]:
        response = dynamodb.execute(
            "get_broadcast",
            self._client.get_item,
            TableName=self._table,
            Key=self._key(broadcast_id),
            ConsistentRead=True,
        )
        item = response.get("Item")
        return _item_to_broadcast(item) if item else None

    def update_content(self, broadcast_id: str, fields: Dict) -> Broadcast:
        unknown = set(fields) - CONTENT_FIELDS
        if unknown:
            raise BroadcastValidationError(
                f"Not editable: {', '.join(sorted(unknown))}"
            )
        current = self.get(broadcast_id)
        if current is None:
            raise BroadcastNotFoundError(broadcast_id)
        updated = Broadcast.model_validate(
            {**current.model_dump(), **fields, "updated_at": utc_now()}
        )
        values = updated.model_dump(mode="json")

        names = {"#status": "status"}
        attribute_values = {
            ":draft": {"S": BroadcastStatus.DRAFT.value},
            ":scheduled": {"S": BroadcastStatus.SCHEDULED.value},
            ":updated_at": {"S": values["updated_at"]},
        }
        assignments = ["updated_at = :updated_at"]
        for i, field in enumerate(sorted(fields)):
            names[f"#f{i}"] = field
            attribute_values[f":f{i}"] = dynamodb.serialize_value(values[field])
            assignments.append(f"#f{i} = :f{i}")

        try:
            self._update(
                "update_broadcast_content",
                broadcast_id,
                UpdateExpression="SET " + ", ".join(assignments),
                ConditionExpression=DISPATCHABLE_CONDITION,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=attribute_values,
            )
        except ClientError as e:
            if dynamodb.is_conditional_check_failure(e):
                raise BroadcastValidationError(
                    f"Cannot edit broadcast {broadcast_id} once sending has started"
                ) from e
            raise
        return updated

    def delete(self, broadcast_id: str) -> bool:
        try:
            dynamodb.execute(
                "delete_broadcast",
                self._client.delete_item,
                TableName=self._table,
                Key=self._key(broadcast_id),
                ConditionExpression="#status = :draft",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":draft": {"S": BroadcastStatus.DRAFT.value},
                },
            )
        except ClientError as e:
            if dynamodb.is_conditional_check_failure(e):
                return False
            raise
        return True

    def list_broadcasts(
        self, status: Optional[BroadcastStatus] = None
    ) -> List[Broadcast]:
        if status is None:
            items = dynamodb.paginate(
                "list_broadcasts",
                self._client.scan,
                TableName=self._table,
            )
        else:
            items = dynamodb.paginate(
                "list_broadcasts_by_status",
                self._client.query,
                TableName=self._table,
                IndexName=STATUS_INDEX,
                KeyConditionExpression="#status = :status",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={":status": {"S": status.value}},
            )
        broadcasts = [Broadcast.model_validate(item) for item in items]
        return sorted(broadcasts, key=lambda b: b.created_at, reverse=True)

    def schedule(self, broadcast_id: str, scheduled_at: datetime) -> bool:
        try:
            self._update(
                "schedule_broadcast",
                broadcast_id,
                UpdateExpression=(
                    "SET #status = :scheduled, scheduled_at = :scheduled_at, "
                    "due_at = :due_at, updated_at = :now"
                ),
                ConditionExpression=f"attribute_exists(id) AND {DISPATCHABLE_CONDITION}",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":draft": {"S": BroadcastStatus.DRAFT.value},
                    ":scheduled": {"S": BroadcastStatus.SCHEDULED.value},
                    ":scheduled_at": {"S": scheduled_at.isoformat()},
                    ":due_at": {"N": str(int(scheduled_at.timestamp()))},
                    ":now": {"S": _now_iso()},
                },
            )
        except ClientError as e:
            if not dynamodb.is_conditional_check_failure(e):
                raise
            if self.get(broadcast_id) is None:
                raise BroadcastNotFoundError(broadcast_id) from e
            return False
        return True

    def claim(
        self,
        broadcast_id: str,
        worker_id: str,
        lease_seconds: int,
        resume: bool = False,
    ) -> bool:
        now = int(time.time())
        condition = DISPATCHABLE_CONDITION
        values = {
            ":draft": {"S": BroadcastStatus.DRAFT.value},
            ":scheduled": {"S": BroadcastStatus.SCHEDULED.value},
            ":sending": {"S": BroadcastStatus.SENDING.value},
            ":worker": {"S": worker_id},
            ":expires": {"N": str(now + lease_seconds)},
            ":updated_at": {"S": _now_iso()},
        }
        if resume:
            condition = f"{DISPATCHABLE_CONDITION} OR {RESUMABLE_CONDITION}"
            values[":now"] = {"N": str(now)}

        try:
            self._update(
                "claim_broadcast",
                broadcast_id,
                UpdateExpression=(
                    "SET #status = :sending, claim_worker = :worker, "
                    "claim_expires_at = :expires, updated_at = :updated_at"
                ),
                ConditionExpression=condition,
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            if dynamodb.is_conditional_check_failure(e):
                logger.debug(
                    "broadcast_claim_rejected",
                    broadcast_id=broadcast_id,
                    worker=worker_id,
                )
                return False
            raise
        return True

    def release(self, broadcast_id: str, worker_id: str) -> None:
        try:
            self._update(
                "release_broadcast",
                broadcast_id,
                UpdateExpression="REMOVE claim_worker, claim_expires_at",
                ConditionExpression="claim_worker = :worker",
                ExpressionAttributeValues={":worker": {"S": worker_id}},
            )
        except ClientError as e:
            if not dynamodb.is_conditional_check_failure(e):
                raise
            # Lease already expired and was taken over by another run
            logger.warning(
                "broadcast_release_skipped",
                broadcast_id=broadcast_id,
                worker=worker_id,
            )

    def update_stats(self, broadcast_id: str, stats: BroadcastStats) -> None:
        self._update(
            "update_broadcast_stats",
            broadcast_id,
            UpdateExpression="SET #stats = :stats, updated_at = :now",
            ExpressionAttributeNames={"#stats": "stats"},
            ExpressionAttributeValues={
                ":stats": dynamodb.serialize_value(stats.model_dump(mode="json")),
                ":now": {"S": _now_iso()},
            },
        )

    def finish(
        self,
        broadcast_id: str,
        status: BroadcastStatus,
        sent_at: Optional[datetime] = None,
    ) -> None:
        assignments = ["#status = :status", "updated_at = :now"]
        values = {
            ":status": {"S": status.value},
            ":now": {"S": _now_iso()},
        }
        if sent_at is not None:
            assignments.append("sent_at = :sent_at")
            values[":sent_at"] = {"S": sent_at.isoformat()}
        self._update(
            "finish_broadcast",
            broadcast_id,
            UpdateExpression=(
                "SET " + ", ".join(assignments) + " REMOVE claim_worker, claim_expires_at"
            ),
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues=values,
        )

    def increment_read(self, broadcast_id: str) -> None:
        try:
            self._update(
                "increment_broadcast_read",
                broadcast_id,
                UpdateExpression=(
                    "SET #stats.#read = if_not_exists(#stats.#read, :zero) + :one"
                ),
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeNames={"#stats": "stats", "#read": "read"},
                ExpressionAttributeValues={
                    ":zero": {"N": "0"},
                    ":one": {"N": "1"},
                },
            )
        except ClientError as e:
            if dynamodb.is_conditional_check_failure(e):
                raise BroadcastNotFoundError(broadcast_id) from e
            raise

    def list_due(self, now: datetime) -> List[Broadcast]:
        items = dynamodb.paginate(
            "list_due_broadcasts",
            self._client.query,
            TableName=self._table,
            IndexName=STATUS_INDEX,
            KeyConditionExpression="#status = :scheduled AND due_at <= :now",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues={
                ":scheduled": {"S": BroadcastStatus.SCHEDULED.value},
                ":now": {"N": str(int(now.timestamp()))},
            },
        )
        return [Broadcast.model_validate(item) for item in items]

    def list_sending(self) -> List[Broadcast]:
        items = dynamodb.paginate(
            "list_sending_broadcasts",
            self._client.query,
            TableName=self._table,
            IndexName=STATUS_INDEX,
            KeyConditionExpression="#status = :sending",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues={
                ":sending": {"S": BroadcastStatus.SENDING.value},
            },
        )
        return [Broadcast.model_validate(item) for item in items]


class DynamoDBDeliveryStore:
    """Delivery store backed by the `broadcast_deliveries` table.

    Args:
        client: boto3 DynamoDB client
        table_name: Deliveries table name
    """

    def __init__(self, client, table_name: str):
        self._client = client
        self._table = table_name
        logger.info("dynamodb_delivery_store_initialized", table_name=table_name)

    def _key(self, broadcast_id: str, user_id: str) -> Dict[str, Any]:
        return {"id": {"S": Delivery.make_id(broadcast_id, user_id)}}

    def get_or_create(self, delivery: Delivery) -> Tuple[Delivery, bool]:
        delivery = delivery.model_copy(
            update={"id": Delivery.make_id(delivery.broadcast_id, delivery.user_id)}
        )
        try:
            dynamodb.execute(
                "create_delivery",
                self._client.put_item,
                TableName=self._table,
                Item=dynamodb.serialize(delivery.model_dump(mode="json")),
                ConditionExpression="attribute_not_exists(id)",
            )
        except ClientError as e:
            if not dynamodb.is_conditional_check_failure(e):
                raise
            existing = self.get(delivery.broadcast_id, delivery.user_id)
            if existing is None:
                raise
            return existing, False
        return delivery, True

    def get(self, broadcast_id: str, user_id: str) -> Optional[Delivery]:
        response = dynamodb.execute(
            "get_delivery",
            self._client.get_item,
            TableName=self._table,
            Key=self._key(broadcast_id, user_id),
            ConsistentRead=True,
        )
        item = response.get("Item")
        return _item_to_delivery(item) if item else None

    def update_channel(
        self,
        broadcast_id: str,
        user_id: str,
        channel: Channel,
        state: ChannelState,
    ) -> None:
        try:
            dynamodb.execute(
                "update_delivery_channel",
                self._client.update_item,
                TableName=self._table,
                Key=self._key(broadcast_id, user_id),
                UpdateExpression="SET #channel = :state",
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeNames={"#channel": channel.value},
                ExpressionAttributeValues={
                    ":state": dynamodb.serialize_value(state.model_dump(mode="json"))
                },
            )
        except ClientError as e:
            if dynamodb.is_conditional_check_failure(e):
                raise DeliveryNotFoundError(broadcast_id, user_id) from e
            raise

    def mark_read(self, broadcast_id: str, user_id: str, read_at: datetime) -> bool:
        try:
            dynamodb.execute(
                "mark_delivery_read",
                self._client.update_item,
                TableName=self._table,
                Key=self._key(broadcast_id, user_id),
                UpdateExpression="SET read_at = :read_at",
                ConditionExpression="attribute_exists(id) AND attribute_not_exists(read_at)",
                ExpressionAttributeValues={":read_at": {"S": read_at.isoformat()}},
            )
        except ClientError as e:
            if not dynamodb.is_conditional_check_failure(e):
                raise
            if self.get(broadcast_id, user_id) is None:
                raise DeliveryNotFoundError(broadcast_id, user_id) from e
            return False
        return True

    def list_for_broadcast(self, broadcast_id: str) -> List[Delivery]:
        items = dynamodb.paginate(
            "list_broadcast_deliveries",
            self._client.query,
            TableName=self._table,
            IndexName=BROADCAST_INDEX,
            KeyConditionExpression="broadcast_id = :broadcast_id",
            ExpressionAttributeValues={":broadcast_id": {"S": broadcast_id}},
        )
        deliveries = [Delivery.model_validate(item) for item in items]
        return sorted(deliveries, key=lambda d: d.created_at)

    def list_for_user(self, user_id: str) -> List[Delivery]:
        items = dynamodb.paginate(
            "list_user_deliveries",
            self._client.query,
            TableName=self._table,
            IndexName=USER_INDEX,
            KeyConditionExpression="user_id = :user_id",
            ExpressionAttributeValues={":user_id": {"S": user_id}},
            ScanIndexForward=False,
        )
        deliveries = [Delivery.model_validate(item) for item in items]
        return sorted(deliveries, key=lambda d: d.created_at, reverse=True)
