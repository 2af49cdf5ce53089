"""Unit tests for the user directory and identity resolution."""

from unittest.mock import MagicMock

import pytest

from modules.broadcasts import dynamodb
from modules.broadcasts.errors import StoreUnavailableError
from modules.broadcasts.users import (
    EMAIL_INDEX,
    EXTERNAL_ID_INDEX,
    DynamoDBUserDirectory,
    InMemoryUserDirectory,
    resolve_identity,
)
from tests.factories.broadcasts import make_user


def _user_item(**overrides):
    return dynamodb.serialize(make_user(**overrides).model_dump(mode="json"))


@pytest.mark.unit
class TestInMemoryUserDirectory:
    def test_lookups(self):
        directory = InMemoryUserDirectory(
            [make_user("u1", email="Ada@Example.com", external_id="sub-1")]
        )
        assert directory.get("u1").id == "u1"
        assert directory.get("missing") is None
        assert directory.find_by_external_id("sub-1").id == "u1"
        assert directory.find_by_email("ada@example.COM").id == "u1"
        assert directory.find_by_email("other@example.com") is None

    def test_returns_copies(self):
        directory = InMemoryUserDirectory([make_user("u1")])
        user = directory.get("u1")
        user.role = "owner"
        assert directory.get("u1").role == "talent"

    def test_set_external_id_never_overwrites(self):
        directory = InMemoryUserDirectory([make_user("u1", external_id="sub-1")])
        directory.set_external_id("u1", "sub-2")
        assert directory.get("u1").external_id == "sub-1"


@pytest.mark.unit
class TestResolveIdentity:
    def test_finds_by_external_id_first(self):
        directory = InMemoryUserDirectory(
            [
                make_user("u1", email="a@example.com", external_id="sub-1"),
                make_user("u2", email="b@example.com"),
            ]
        )
        user = resolve_identity(directory, "sub-1", "b@example.com")
        assert user.id == "u1"

    def test_falls_back_to_email_and_backfills(self):
        directory = InMemoryUserDirectory([make_user("u1", email="a@example.com")])

        user = resolve_identity(directory, "sub-1", "A@example.com")

        assert user.id == "u1"
        assert user.external_id == "sub-1"
        assert directory.get("u1").external_id == "sub-1"
        # Second lookup takes the first path
        assert directory.find_by_external_id("sub-1").id == "u1"

    def test_backfill_is_idempotent(self):
        directory = MagicMock()
        directory.find_by_external_id.return_value = None
        directory.find_by_email.return_value = make_user("u1", external_id=None)

        resolve_identity(directory, "sub-1", "alex@example.com")
        directory.find_by_external_id.return_value = make_user("u1", external_id="sub-1")
        resolve_identity(directory, "sub-1", "alex@example.com")

        directory.set_external_id.assert_called_once_with("u1", "sub-1")

    def test_existing_external_id_not_overwritten(self):
        directory = MagicMock()
        directory.find_by_external_id.return_value = None
        directory.find_by_email.return_value = make_user("u1", external_id="other-sub")

        user = resolve_identity(directory, "sub-1", "alex@example.com")

        assert user.external_id == "other-sub"
        directory.set_external_id.assert_not_called()

    def test_no_match(self):
        directory = InMemoryUserDirectory([make_user("u1")])
        assert resolve_identity(directory, "sub-x", "nobody@example.com") is None
        assert resolve_identity(directory, "sub-x", None) is None


@pytest.mark.unit
class TestDynamoDBUserDirectory:
    def test_get(self, dynamodb_client):
        dynamodb_client.get_item.return_value = {"Item": _user_item(user_id="u1")}
        directory = DynamoDBUserDirectory(dynamodb_client, "users")

        user = directory.get("u1")

        assert user.id == "u1"
        dynamodb_client.get_item.assert_called_once_with(
            TableName="users", Key={"id": {"S": "u1"}}
        )

    def test_get_missing(self, dynamodb_client):
        dynamodb_client.get_item.return_value = {}
        assert DynamoDBUserDirectory(dynamodb_client, "users").get("u1") is None

    def test_list_all_follows_pages(self, dynamodb_client):
        dynamodb_client.scan.side_effect = [
            {"Items": [_user_item(user_id="u1")], "LastEvaluatedKey": {"id": {"S": "u1"}}},
            {"Items": [_user_item(user_id="u2")]},
        ]
        users = DynamoDBUserDirectory(dynamodb_client, "users").list_all()

        assert [u.id for u in users] == ["u1", "u2"]
        second_call = dynamodb_client.scan.call_args_list[1]
        assert second_call.kwargs["ExclusiveStartKey"] == {"id": {"S": "u1"}}

    def test_find_by_email_queries_lowercased_index(self, dynamodb_client):
        dynamodb_client.query.return_value = {
            "Items": [_user_item(user_id="u1", email="Ada@Example.com")]
        }
        directory = DynamoDBUserDirectory(dynamodb_client, "users")

        assert directory.find_by_email(" Ada@EXAMPLE.com").id == "u1"

        kwargs = dynamodb_client.query.call_args.kwargs
        assert kwargs["IndexName"] == EMAIL_INDEX
        assert kwargs["KeyConditionExpression"] == "email_lower = :value"
        assert kwargs["ExpressionAttributeValues"] == {":value": {"S": "ada@example.com"}}
        dynamodb_client.scan.assert_not_called()

    def test_find_by_email_no_match(self, dynamodb_client):
        dynamodb_client.query.return_value = {"Items": []}
        directory = DynamoDBUserDirectory(dynamodb_client, "users")
        assert directory.find_by_email("nobody@example.com") is None

    def test_find_by_external_id_queries_index(self, dynamodb_client):
        dynamodb_client.query.return_value = {
            "Items": [_user_item(user_id="u1", external_id="idp|123")]
        }
        directory = DynamoDBUserDirectory(dynamodb_client, "users")

        assert directory.find_by_external_id("idp|123").id == "u1"

        kwargs = dynamodb_client.query.call_args.kwargs
        assert kwargs["IndexName"] == EXTERNAL_ID_INDEX
        assert kwargs["ExpressionAttributeValues"] == {":value": {"S": "idp|123"}}
        dynamodb_client.scan.assert_not_called()

    def test_set_external_id_conditional(self, dynamodb_client):
        DynamoDBUserDirectory(dynamodb_client, "users").set_external_id("u1", "sub-1")

        kwargs = dynamodb_client.update_item.call_args.kwargs
        assert "attribute_not_exists(external_id)" in kwargs["ConditionExpression"]
        assert kwargs["ExpressionAttributeValues"] == {":external_id": {"S": "sub-1"}}

    def test_set_external_id_conflict_is_ignored(self, dynamodb_client, client_error):
        dynamodb_client.update_item.side_effect = client_error()
        DynamoDBUserDirectory(dynamodb_client, "users").set_external_id("u1", "sub-1")

    def test_store_failure_raises(self, dynamodb_client, client_error):
        dynamodb_client.get_item.side_effect = client_error(
            "InternalServerError", "GetItem"
        )
        with pytest.raises(StoreUnavailableError):
            DynamoDBUserDirectory(dynamodb_client, "users").get("u1")
