from __future__ import annotations

from decimal import Decimal

import pytest

from domino_py import (
    ConditionFailedError,
    DynamoTable,
    KeyValue,
    ListField,
    NumericField,
    SerializationError,
    StringField,
    ValidationError,
    and_,
)
from domino_py.mocks import ANY, FakeDynamoDBClient, client_error

email = StringField("email")
password = StringField("password")
visits = ListField("visits")
login_count = NumericField("loginCount")

users = DynamoTable(name="users", partition_key=email, range_key=password)
sessions = DynamoTable(name="sessions", partition_key=StringField("token"))

KEY = KeyValue("a@b.com", "pw")
WIRE_KEY = {"email": {"S": "a@b.com"}, "password": {"S": "pw"}}


def test_table_requires_scalar_keys() -> None:
    with pytest.raises(ValidationError, match="table name"):
        DynamoTable(name="", partition_key=email)
    with pytest.raises(ValidationError, match="S/N/B"):
        DynamoTable(name="t", partition_key=visits)


def test_key_requires_range_value_iff_table_defines_one() -> None:
    assert users.key(KEY) == WIRE_KEY
    with pytest.raises(ValidationError, match="range key"):
        users.key(KeyValue("a@b.com"))
    with pytest.raises(ValidationError, match="does not define a range key"):
        sessions.key(KeyValue("t", "extra"))
    with pytest.raises(ValidationError, match="partition key"):
        sessions.key(KeyValue(None))


def test_get_item_build() -> None:
    assert users.get_item(KEY).build() == {"TableName": "users", "Key": WIRE_KEY}

    req = users.get_item(KEY).set_consistent_read().set_projection(email, StringField("name")).build()
    assert req["ConsistentRead"] is True
    assert req["ProjectionExpression"] == "email, #name_0"
    assert req["ExpressionAttributeNames"] == {"#name_0": "name"}
    assert "ExpressionAttributeValues" not in req


def test_get_item_execute_with() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "get_item",
        {"TableName": "users", "Key": WIRE_KEY},
        response={"Item": {"email": {"S": "a@b.com"}, "loginCount": {"N": "3"}}},
    )
    client.expect("get_item", response={})

    assert users.get_item(KEY).execute_with(client) == {"email": "a@b.com", "loginCount": Decimal("3")}
    assert users.get_item(KEY).execute_with(client) is None
    client.assert_no_pending()


def test_put_item_build_with_condition() -> None:
    req = (
        users.put_item({"email": "a@b.com", "password": "pw", "visits": []})
        .set_condition_expression(email.not_exists())
        .return_all_old()
        .build()
    )
    assert req == {
        "TableName": "users",
        "Item": {"email": {"S": "a@b.com"}, "password": {"S": "pw"}, "visits": {"L": []}},
        "ConditionExpression": "attribute_not_exists(email)",
        "ReturnValues": "ALL_OLD",
    }


def test_put_item_validates_item() -> None:
    with pytest.raises(ValidationError, match="missing key attribute: password"):
        users.put_item({"email": "a@b.com"}).build()
    with pytest.raises(SerializationError):
        users.put_item({"email": "a@b.com", "password": "pw", "bad": object()}).build()


def test_put_item_maps_conditional_check_failure() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "put_item",
        {"Item": ANY, "ConditionExpression": "attribute_not_exists(email)"},
        error=client_error("ConditionalCheckFailedException", "nope", operation="PutItem"),
    )

    builder = users.put_item({"email": "a@b.com", "password": "pw"}).set_condition_expression(email.not_exists())
    with pytest.raises(ConditionFailedError, match="nope"):
        builder.execute_with(client)


def test_delete_item_build_and_execute() -> None:
    builder = users.delete_item(KEY).set_condition_expression(login_count.greater_than(3)).return_all_old()
    req = builder.build()
    assert req["ConditionExpression"] == "loginCount > :3_1"
    assert req["ExpressionAttributeValues"] == {":3_1": {"N": "3"}}

    client = FakeDynamoDBClient()
    client.expect("delete_item", {"Key": WIRE_KEY}, response={"Attributes": {"email": {"S": "a@b.com"}}})
    assert builder.execute_with(client) == {"email": "a@b.com"}


def test_update_item_builds_condition_before_update() -> None:
    req = (
        users.update_item(KEY)
        .set_update_expression(login_count.increment(), visits.append("home"))
        .set_condition_expression(email.exists())
        .return_all_new()
        .build()
    )
    assert req == {
        "TableName": "users",
        "Key": WIRE_KEY,
        "ConditionExpression": "attribute_exists(email)",
        "UpdateExpression": "SET visits = list_append(visits,:list_101) ADD loginCount :1_100",
        "ExpressionAttributeValues": {
            ":1_100": {"N": "1"},
            ":list_101": {"L": [{"S": "home"}]},
        },
        "ReturnValues": "ALL_NEW",
    }


def test_update_item_ranges_stay_disjoint_when_condition_is_large() -> None:
    condition = and_(*(login_count.not_equals(i) for i in range(120)))
    req = users.update_item(KEY).set_update_expression(login_count.add(1)).set_condition_expression(condition).build()

    assert req["UpdateExpression"] == "ADD loginCount :1_121"
    assert len(req["ExpressionAttributeValues"]) == 121


def test_update_item_escapes_reserved_names() -> None:
    req = (
        users.update_item(KEY)
        .set_update_expression(StringField("status").set_field("active"))
        .set_condition_expression(StringField("status").equals("pending"))
        .build()
    )
    assert req["ConditionExpression"] == "#status_1 = :pending_1"
    assert req["UpdateExpression"] == "SET #status_100 = :active_100"
    assert req["ExpressionAttributeNames"] == {"#status_1": "status", "#status_100": "status"}


def test_update_item_rejects_key_fields_and_empty_updates() -> None:
    with pytest.raises(ValidationError, match="cannot update key field: email"):
        users.update_item(KEY).set_update_expression(email.set_field("x"))
    with pytest.raises(ValidationError, match="no updates"):
        users.update_item(KEY).build()


def test_update_item_execute_returns_attributes() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "update_item",
        {"UpdateExpression": "ADD loginCount :1_100", "ReturnValues": "UPDATED_NEW"},
        response={"Attributes": {"loginCount": {"N": "4"}}},
    )
    out = (
        users.update_item(KEY)
        .set_update_expression(login_count.increment())
        .return_updated_new()
        .execute_with(client, loader=lambda d: int(d["loginCount"]))
    )
    assert out == 4
    client.assert_no_pending()
