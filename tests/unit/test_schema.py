from __future__ import annotations

import pytest

from domino_py import (
    DynamoTable,
    GlobalSecondaryIndex,
    LocalSecondaryIndex,
    NumericField,
    Projection,
    StringField,
    ValidationError,
)
from domino_py.errors import AwsError, NotFoundError
from domino_py.mocks import FakeDynamoDBClient, client_error
from domino_py.schema import (
    build_create_table_request,
    create_table,
    delete_table,
    describe_table,
    ensure_table,
)
from domino_py.testkit import no_sleep

email = StringField("email")
password = StringField("password")
registration_date = NumericField("registrationDate")
first_name = StringField("firstName")
last_name = StringField("lastName")

users = DynamoTable(
    name="users",
    partition_key=email,
    range_key=password,
    global_secondary_indexes=(
        GlobalSecondaryIndex("name-index", first_name, last_name, projection=Projection.include(email)),
    ),
    local_secondary_indexes=(
        LocalSecondaryIndex("registrationDate-index", email, registration_date, projection=Projection.keys_only()),
    ),
)


def test_build_create_table_request_includes_indexes_and_sorted_attributes() -> None:
    req = build_create_table_request(users)

    assert req["TableName"] == "users"
    assert req["BillingMode"] == "PAY_PER_REQUEST"
    assert req["KeySchema"] == [
        {"AttributeName": "email", "KeyType": "HASH"},
        {"AttributeName": "password", "KeyType": "RANGE"},
    ]
    assert req["AttributeDefinitions"] == [
        {"AttributeName": "email", "AttributeType": "S"},
        {"AttributeName": "firstName", "AttributeType": "S"},
        {"AttributeName": "lastName", "AttributeType": "S"},
        {"AttributeName": "password", "AttributeType": "S"},
        {"AttributeName": "registrationDate", "AttributeType": "N"},
    ]
    assert req["GlobalSecondaryIndexes"] == [
        {
            "IndexName": "name-index",
            "KeySchema": [
                {"AttributeName": "firstName", "KeyType": "HASH"},
                {"AttributeName": "lastName", "KeyType": "RANGE"},
            ],
            "Projection": {"ProjectionType": "INCLUDE", "NonKeyAttributes": ["email"]},
        }
    ]
    assert req["LocalSecondaryIndexes"] == [
        {
            "IndexName": "registrationDate-index",
            "KeySchema": [
                {"AttributeName": "email", "KeyType": "HASH"},
                {"AttributeName": "registrationDate", "KeyType": "RANGE"},
            ],
            "Projection": {"ProjectionType": "KEYS_ONLY"},
        }
    ]
    assert "ProvisionedThroughput" not in req


def test_provisioned_table_gets_index_throughput_defaults() -> None:
    req = users.create_table().set_provisioned_throughput(5, 6).build()

    assert req["BillingMode"] == "PROVISIONED"
    assert req["ProvisionedThroughput"] == {"ReadCapacityUnits": 5, "WriteCapacityUnits": 6}
    assert req["GlobalSecondaryIndexes"][0]["ProvisionedThroughput"] == {
        "ReadCapacityUnits": 10,
        "WriteCapacityUnits": 10,
    }


def test_partition_only_gsi_has_hash_key_only() -> None:
    table = DynamoTable(
        name="t",
        partition_key=email,
        global_secondary_indexes=(GlobalSecondaryIndex("by-name", first_name, read_units=3, write_units=4),),
    )
    req = build_create_table_request(
        table,
        billing_mode="PROVISIONED",
        provisioned_throughput={"ReadCapacityUnits": 1, "WriteCapacityUnits": 1},
    )
    gsi = req["GlobalSecondaryIndexes"][0]
    assert gsi["KeySchema"] == [{"AttributeName": "firstName", "KeyType": "HASH"}]
    assert gsi["Projection"] == {"ProjectionType": "ALL"}
    assert gsi["ProvisionedThroughput"] == {"ReadCapacityUnits": 3, "WriteCapacityUnits": 4}


def test_build_create_table_request_validation() -> None:
    with pytest.raises(ValidationError, match="billing_mode"):
        build_create_table_request(users, billing_mode="FREE")
    with pytest.raises(ValidationError, match="provisioned_throughput"):
        build_create_table_request(users, billing_mode="PROVISIONED")

    bad_lsi = DynamoTable(
        name="t",
        partition_key=email,
        range_key=password,
        local_secondary_indexes=(LocalSecondaryIndex("lsi", first_name, registration_date),),
    )
    with pytest.raises(ValidationError, match="LSI partition key"):
        build_create_table_request(bad_lsi)

    conflicting = DynamoTable(
        name="t",
        partition_key=email,
        global_secondary_indexes=(GlobalSecondaryIndex("gsi", NumericField("email")),),
    )
    with pytest.raises(ValidationError, match="conflicting attribute types"):
        build_create_table_request(conflicting)


def test_create_table_waits_for_active() -> None:
    client = FakeDynamoDBClient()
    client.expect("create_table", {"TableName": "users"})
    client.expect("describe_table", response={"Table": {"TableStatus": "CREATING"}})
    client.expect("describe_table", response={"Table": {"TableStatus": "ACTIVE"}})

    users.create_table().execute_with(client, sleep=no_sleep)
    client.assert_no_pending()


def test_create_table_tolerates_existing_table() -> None:
    client = FakeDynamoDBClient()
    client.expect("create_table", error=client_error("ResourceInUseException"))
    create_table(users, client=client, wait_for_active=False)
    client.assert_no_pending()


def test_ensure_table_creates_missing_table() -> None:
    client = FakeDynamoDBClient()
    client.expect("describe_table", error=client_error("ResourceNotFoundException"))
    client.expect("create_table", {"TableName": "users"})
    client.expect("describe_table", response={"Table": {"TableStatus": "ACTIVE"}})

    ensure_table(users, client=client, sleep=no_sleep)
    client.assert_no_pending()


def test_ensure_table_maps_other_errors() -> None:
    client = FakeDynamoDBClient()
    client.expect("describe_table", error=client_error("AccessDeniedException", "denied"))
    with pytest.raises(AwsError, match="AccessDeniedException"):
        ensure_table(users, client=client)


def test_delete_table_waits_until_gone() -> None:
    client = FakeDynamoDBClient()
    client.expect("delete_table", {"TableName": "users"})
    client.expect("describe_table", response={"Table": {"TableStatus": "DELETING"}})
    client.expect("describe_table", error=client_error("ResourceNotFoundException"))

    users.delete_table().execute_with(client, sleep=no_sleep)
    client.assert_no_pending()
    assert users.delete_table().build() == {"TableName": "users"}


def test_delete_table_missing() -> None:
    client = FakeDynamoDBClient()
    client.expect("delete_table", error=client_error("ResourceNotFoundException", "gone"))
    delete_table(users, client=client, ignore_missing=True)

    client.expect("delete_table", error=client_error("ResourceNotFoundException", "gone"))
    with pytest.raises(NotFoundError, match="gone"):
        delete_table(users, client=client)


def test_describe_table() -> None:
    client = FakeDynamoDBClient()
    client.expect("describe_table", {"TableName": "users"}, response={"Table": {"TableName": "users"}})
    assert describe_table(users, client=client) == {"Table": {"TableName": "users"}}
